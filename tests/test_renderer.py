import asyncio
import threading
import time
from dataclasses import replace
from io import BytesIO

import pytest
from PIL import Image

from carousel_studio.domain import Absent, CarouselOutput, CarouselSlide, CarouselTemplate, Fresh, Stale, TemplateSlide
from carousel_studio.services import renderer
from carousel_studio.services.renderer import plan_render_jobs, render_carousel, render_slide
from conftest import make_zone, png_bytes


def template_with(backgrounds, zones=None):
    slides = [
        TemplateSlide(id=f"ts{i}", position=i, background=bg, text_zones=list(zones or []))
        for i, bg in enumerate(backgrounds)
    ]
    return CarouselTemplate(id="t1", project_id="p1", name="T", slide_count=len(slides), slides=slides)


def carousel_of(*slides):
    return CarouselOutput(id="c1", project_id="p1", template_id="t1", slides=list(slides))


def pixel(png: bytes, xy=(2, 2)):
    return Image.open(BytesIO(png)).convert("RGB").getpixel(xy)


class TestPlan:

    def test_background_precedence(self):
        template_bg = png_bytes((0, 255, 0))
        asset_bg = png_bytes((0, 0, 255))
        carousel = carousel_of(
            CarouselSlide(id="a", position=0, background_ref="asset-1"),
            CarouselSlide(id="b", position=1, background_color="#ff0000"),
            CarouselSlide(id="c", position=2, background_color="#ff0000"),
        )
        jobs = plan_render_jobs(carousel, template_with([template_bg, template_bg]), {"asset-1": asset_bg})

        assert jobs[0].background == asset_bg
        assert jobs[1].background == template_bg
        # no template slide at position 2
        assert jobs[2].background is None
        assert jobs[2].zones == []

    def test_missing_asset_falls_back_to_template(self):
        template_bg = png_bytes((0, 255, 0))
        carousel = carousel_of(CarouselSlide(id="a", position=0, background_ref="gone"))
        jobs = plan_render_jobs(carousel, template_with([template_bg]), {})
        assert jobs[0].background == template_bg

    def test_zones_come_from_matching_position(self):
        zone = make_zone(kind="cta")
        carousel = carousel_of(CarouselSlide(id="a", position=0), CarouselSlide(id="b", position=1))
        template = template_with([None, None])
        template.slides[1].text_zones = [zone]

        jobs = plan_render_jobs(carousel, template)
        assert jobs[0].zones == []
        assert jobs[1].zones == [zone]


class TestRenderCarousel:

    def test_big_launch_renders_every_slide(self):
        carousel = carousel_of(
            CarouselSlide(id="a", position=0, headline="Big Launch", body=""),
            CarouselSlide(id="b", position=1, headline="Second", body="More detail here"),
            CarouselSlide(id="c", position=2, headline="Third", cta="Shop now"),
        )
        report = asyncio.run(render_carousel(replace(carousel, template_id=None)))

        assert report.ok
        for slide in report.carousel.ordered_slides():
            assert isinstance(slide.render_cache, Fresh)
            img = Image.open(BytesIO(slide.rendered_image))
            assert img.format == "PNG"
            assert img.size == (1080, 1080)

    def test_failed_slide_is_reported_and_keeps_cache(self):
        previous = png_bytes((9, 9, 9))
        carousel = carousel_of(
            CarouselSlide(id="a", position=0, headline="ok", background_color="#00ff00"),
            CarouselSlide(id="b", position=1, headline="broken", render_cache=Fresh(previous)),
            CarouselSlide(id="c", position=2, headline="also ok", render_cache=Stale()),
        )
        template = template_with([None, b"garbage", None])

        report = asyncio.run(render_carousel(carousel, template))

        assert not report.ok
        assert report.failed_indices == [1]
        slides = report.carousel.ordered_slides()
        assert pixel(slides[0].rendered_image) == (0, 255, 0)
        assert slides[1].render_cache == Fresh(previous)
        assert isinstance(slides[2].render_cache, Fresh)

    def test_input_carousel_is_untouched(self):
        carousel = carousel_of(CarouselSlide(id="a", position=0, headline="x"))
        asyncio.run(render_carousel(carousel))
        assert isinstance(carousel.slides[0].render_cache, Absent)


def test_render_single_slide():
    carousel = carousel_of(
        CarouselSlide(id="a", position=0, headline="one"),
        CarouselSlide(id="b", position=1, headline="two", background_color="#0000ff"),
    )
    updated = render_slide(carousel, 1)

    assert isinstance(updated.slides[0].render_cache, Absent)
    assert pixel(updated.ordered_slides()[1].rendered_image) == (0, 0, 255)


def test_cancelled_render_does_not_wait_for_queued_slides(monkeypatch):
    release = threading.Event()

    def blocking_job(job, width, height):
        release.wait(timeout=5)
        return png_bytes()

    monkeypatch.setattr(renderer, "render_job", blocking_job)
    carousel = carousel_of(*[CarouselSlide(id=f"s{i}", position=i) for i in range(8)])

    async def cancel_midway():
        task = asyncio.create_task(render_carousel(carousel))
        await asyncio.sleep(0.1)
        task.cancel()
        started = time.perf_counter()
        with pytest.raises(asyncio.CancelledError):
            await task
        return time.perf_counter() - started

    timer = threading.Timer(2.0, release.set)
    timer.start()
    try:
        elapsed = asyncio.run(cancel_midway())
    finally:
        release.set()
        timer.cancel()

    assert elapsed < 1.0
