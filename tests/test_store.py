import base64

import pytest

from carousel_studio.domain import Absent, CarouselSlide, Fresh, Stale
from carousel_studio.errors import ValidationError
from carousel_studio.models import CarouselOutputRecord, CarouselTemplateRecord, TemplateSlideRecord
from carousel_studio.store import (
    carousel_from_record,
    slide_from_dict,
    slide_to_dict,
    template_from_records,
    zone_from_dict,
    zone_to_dict,
    zones_from_list,
)
from conftest import make_zone


def test_zone_dict_uses_camel_case_keys():
    data = zone_to_dict(make_zone("z1", kind="body", x=10, y=20, width=300, height=120, size=36, align="left"))

    assert data == {
        "id": "z1",
        "type": "body",
        "x": 10,
        "y": 20,
        "width": 300,
        "height": 120,
        "fontSize": 36,
        "fontFamily": "Arial, sans-serif",
        "fontWeight": "bold",
        "color": "#000000",
        "textAlign": "left",
        "lineHeight": 1.2,
    }
    assert zone_from_dict(data) == make_zone("z1", kind="body", x=10, y=20, width=300, height=120, size=36, align="left")


def test_zone_defaults_fill_missing_typography():
    zone = zone_from_dict({"id": "z", "type": "headline", "x": 0, "y": 0, "width": 10, "height": 10})
    assert zone.font.size_px == 48
    assert zone.align == "center"
    assert zone.line_height_multiple == 1.2


def test_malformed_zone():
    with pytest.raises(ValidationError):
        zone_from_dict({"id": "z", "type": "headline", "x": "left"})


def test_zone_list_is_validated():
    with pytest.raises(ValidationError):
        zones_from_list([{"id": "z", "type": "footer", "x": 0, "y": 0, "width": 10, "height": 10}])


class TestSlideDicts:

    def test_fresh_slide_keeps_png(self):
        slide = CarouselSlide(id="s", position=0, headline="H", render_cache=Fresh(b"png-bytes"))
        data = slide_to_dict(slide)

        assert data["rendered_image"] == base64.b64encode(b"png-bytes").decode()
        assert data["render_state"] == "fresh"
        assert slide_from_dict(data) == slide

    def test_stale_slide_drops_png(self):
        data = slide_to_dict(CarouselSlide(id="s", position=1, render_cache=Stale()))

        assert data["rendered_image"] is None
        assert data["render_state"] == "stale"
        assert isinstance(slide_from_dict(data).render_cache, Stale)

    def test_background_ref_stored_as_image_id(self):
        data = slide_to_dict(CarouselSlide(id="s", position=0, background_ref="asset-9"))
        assert data["image_id"] == "asset-9"

    def test_legacy_rendered_image_counts_as_fresh(self):
        slide = slide_from_dict({"id": "s", "position": 0, "headline": "H", "rendered_image": base64.b64encode(b"x").decode()})
        assert slide.render_cache == Fresh(b"x")

    def test_missing_image_is_absent(self):
        assert isinstance(slide_from_dict({"id": "s", "position": 0}).render_cache, Absent)

    def test_bad_base64(self):
        with pytest.raises(ValidationError):
            slide_from_dict({"id": "s", "position": 0, "rendered_image": "***"})

    def test_missing_position(self):
        with pytest.raises(ValidationError):
            slide_from_dict({"id": "s"})


def test_template_records_must_match_slide_count():
    record = CarouselTemplateRecord(id="t", project_id="p", name="T", slide_count=3)
    slides = [TemplateSlideRecord(id="a", template_id="t", position=0, text_zones=[])]
    with pytest.raises(ValidationError):
        template_from_records(record, slides)


def test_template_records_sorted_by_position():
    record = CarouselTemplateRecord(id="t", project_id="p", name="T", slide_count=2)
    slides = [
        TemplateSlideRecord(id="b", template_id="t", position=1, text_zones=[zone_to_dict(make_zone())]),
        TemplateSlideRecord(id="a", template_id="t", position=0, text_zones=None),
    ]
    template = template_from_records(record, slides)

    assert [s.id for s in template.slides] == ["a", "b"]
    assert template.slides[1].text_zones == [make_zone()]


def test_carousel_record_slides_sorted():
    record = CarouselOutputRecord(
        id="c",
        project_id="p",
        slides=[{"id": "b", "position": 1}, {"id": "a", "position": 0}],
    )
    carousel = carousel_from_record(record)
    assert [s.id for s in carousel.slides] == ["a", "b"]
