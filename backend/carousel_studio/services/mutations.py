"""Slide and template edits. Every function returns a new aggregate."""

from dataclasses import replace
from typing import Optional

from carousel_studio.domain import (
    EDITABLE_FIELDS,
    CarouselOutput,
    CarouselSlide,
    CarouselTemplate,
    TextZone,
    is_hex_color,
    new_id,
    utcnow,
    validate_carousel,
    validate_zones,
)
from carousel_studio.errors import InvariantViolation, ValidationError

NEW_SLIDE_HEADLINE = "New slide headline"
NEW_SLIDE_BODY = "Add your content here"


def _renumber(slides: list[CarouselSlide], invalidate_moved: bool = False) -> list[CarouselSlide]:
    """Assign positions 0..n-1; moved slides go stale when a template pairs by position."""
    renumbered = []
    for i, s in enumerate(slides):
        if s.position != i:
            s = replace(s, position=i)
            if invalidate_moved:
                s = s.invalidated()
        renumbered.append(s)
    return renumbered


def check_positions(slides: list[CarouselSlide]) -> None:
    positions = sorted(s.position for s in slides)
    if positions != list(range(len(slides))):
        raise InvariantViolation(f"slide positions {positions} are not contiguous from 0")


def _with_slides(carousel: CarouselOutput, slides: list[CarouselSlide]) -> CarouselOutput:
    check_positions(slides)
    updated = replace(carousel, slides=slides, updated_at=utcnow())
    validate_carousel(updated)
    return updated


def _check_index(carousel: CarouselOutput, index: int) -> None:
    if not 0 <= index < len(carousel.slides):
        raise ValidationError(f"slide index {index} out of range (carousel has {len(carousel.slides)} slides)")


def new_carousel(project_id: str, slide_texts: list[dict], template_id: Optional[str] = None, carousel_id: Optional[str] = None) -> CarouselOutput:
    """Build a carousel from finalized headline/body/cta/visual_prompt values."""
    if not project_id:
        raise ValidationError("project_id is required")
    if not slide_texts:
        raise ValidationError("a carousel needs at least one slide")

    slides = [
        CarouselSlide(
            id=new_id(),
            position=i,
            headline=data.get("headline") or "",
            body=data.get("body"),
            cta=data.get("cta"),
            visual_prompt=data.get("visual_prompt"),
            background_color=data.get("background_color"),
        )
        for i, data in enumerate(slide_texts)
    ]
    carousel = CarouselOutput(id=carousel_id or new_id(), project_id=project_id, template_id=template_id)
    return _with_slides(carousel, slides)


def add_slide(carousel: CarouselOutput, headline: str = NEW_SLIDE_HEADLINE, body: str = NEW_SLIDE_BODY) -> CarouselOutput:
    slides = carousel.ordered_slides()
    slides.append(CarouselSlide(id=new_id(), position=len(slides), headline=headline, body=body))
    return _with_slides(carousel, slides)


def delete_slide(carousel: CarouselOutput, index: int) -> CarouselOutput:
    """Remove slide `index`; a carousel never drops below one slide."""
    if len(carousel.slides) <= 1:
        raise InvariantViolation("cannot delete the last remaining slide")
    _check_index(carousel, index)

    slides = carousel.ordered_slides()
    del slides[index]
    return _with_slides(carousel, _renumber(slides, invalidate_moved=bool(carousel.template_id)))


def reorder_slide(carousel: CarouselOutput, from_index: int, to_index: int) -> CarouselOutput:
    _check_index(carousel, from_index)
    _check_index(carousel, to_index)
    if from_index == to_index:
        return carousel

    slides = carousel.ordered_slides()
    moved = slides.pop(from_index)
    slides.insert(to_index, moved)
    return _with_slides(carousel, _renumber(slides, invalidate_moved=bool(carousel.template_id)))


def edit_slide_field(carousel: CarouselOutput, index: int, field: str, value: Optional[str]) -> CarouselOutput:
    """Set one text field of one slide and invalidate its render cache."""
    if field not in EDITABLE_FIELDS:
        raise ValidationError(f"field must be one of {', '.join(EDITABLE_FIELDS)}")
    if field == "background_color" and value and not is_hex_color(value):
        raise ValidationError(f"background color '{value}' is not a hex color")
    if field == "headline" and value is None:
        value = ""
    _check_index(carousel, index)

    slides = carousel.ordered_slides()
    slides[index] = replace(slides[index], **{field: value}).invalidated()
    return _with_slides(carousel, slides)


def set_slide_background(carousel: CarouselOutput, index: int, asset_id: Optional[str]) -> CarouselOutput:
    """Point a slide at an uploaded asset, or clear it with None."""
    _check_index(carousel, index)
    slides = carousel.ordered_slides()
    slides[index] = replace(slides[index], background_ref=asset_id or None).invalidated()
    return _with_slides(carousel, slides)


def bind_template(carousel: CarouselOutput, template_id: Optional[str]) -> CarouselOutput:
    """Bind (or unbind) a template; every slide's cache goes stale."""
    slides = [s.invalidated() for s in carousel.ordered_slides()]
    return replace(_with_slides(carousel, slides), template_id=template_id)


def clamp_selection(selected: int, slide_count: int) -> int:
    if slide_count <= 0:
        return 0
    return max(0, min(selected, slide_count - 1))


def rename_template(template: CarouselTemplate, name: str) -> CarouselTemplate:
    if not name or not name.strip():
        raise ValidationError("template name is required")
    return replace(template, name=name.strip())


def update_template_text_zones(template: CarouselTemplate, slide_id: str, zones: list[TextZone]) -> CarouselTemplate:
    """Replace the zones of one template slide.

    Carousels already rendered against this template keep their caches.
    """
    validate_zones(zones)
    if not any(s.id == slide_id for s in template.slides):
        raise ValidationError(f"template slide '{slide_id}' not found")

    slides = [
        replace(s, text_zones=list(zones)) if s.id == slide_id else s
        for s in template.slides
    ]
    return replace(template, slides=slides)
