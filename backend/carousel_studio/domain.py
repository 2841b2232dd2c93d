"""
Carousel data model.

Templates and carousels are independent aggregates:
1. CAROUSEL TEMPLATE - reusable backgrounds + text zone placements
2. CAROUSEL OUTPUT - one project's slides (headline/body/cta) and their render cache

Slide i of a carousel pairs with the template slide at position i.
"""

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import ClassVar, Optional, Union

from carousel_studio.errors import ValidationError

ZONE_KINDS = ("headline", "body", "cta")
ALIGNMENTS = ("left", "center", "right")
FONT_WEIGHTS = ("normal", "bold")
EDITABLE_FIELDS = ("headline", "body", "cta", "background_color", "visual_prompt")

HEX_COLOR = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6}|[0-9a-fA-F]{8})$")


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_hex_color(value: Optional[str]) -> bool:
    return bool(value) and HEX_COLOR.match(value) is not None


# ============================================
# TEXT ZONES
# ============================================

@dataclass(frozen=True)
class Rect:
    """Zone rectangle in slide pixels."""
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class FontSpec:
    size_px: float = 48
    family: str = "Arial, sans-serif"
    weight: str = "bold"
    color_hex: str = "#000000"


@dataclass
class TextZone:
    """Placement of one content field (headline/body/cta) on a slide."""
    id: str
    kind: str
    rect: Rect
    font: FontSpec = field(default_factory=FontSpec)
    align: str = "center"
    line_height_multiple: float = 1.2


def zone_issues(zone: TextZone) -> list[str]:
    """Return every geometry/typography problem with a zone."""
    issues = []
    label = f"zone '{zone.id}'"
    if not zone.id:
        issues.append("zone id is required")
    if zone.kind not in ZONE_KINDS:
        issues.append(f"{label}: kind must be one of {', '.join(ZONE_KINDS)}")
    if zone.rect.width <= 0 or zone.rect.height <= 0:
        issues.append(f"{label}: width and height must be positive")
    if zone.font.size_px <= 0:
        issues.append(f"{label}: font size must be positive")
    if zone.font.weight not in FONT_WEIGHTS:
        issues.append(f"{label}: font weight must be normal or bold")
    if not is_hex_color(zone.font.color_hex):
        issues.append(f"{label}: color '{zone.font.color_hex}' is not a hex color")
    if zone.align not in ALIGNMENTS:
        issues.append(f"{label}: align must be one of {', '.join(ALIGNMENTS)}")
    if zone.line_height_multiple <= 0:
        issues.append(f"{label}: line height must be positive")
    return issues


def validate_zones(zones: list[TextZone]) -> None:
    issues = []
    seen = set()
    for zone in zones:
        issues.extend(zone_issues(zone))
        if zone.id in seen:
            issues.append(f"duplicate zone id '{zone.id}'")
        seen.add(zone.id)
    if issues:
        raise ValidationError(issues)


# ============================================
# TEMPLATES
# ============================================

@dataclass
class TemplateSlide:
    id: str
    position: int
    background: Optional[bytes] = None
    text_zones: list[TextZone] = field(default_factory=list)


@dataclass
class CarouselTemplate:
    id: str
    project_id: str
    name: str
    slide_count: int
    slides: list[TemplateSlide] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)

    def slide_at(self, position: int) -> Optional[TemplateSlide]:
        for slide in self.slides:
            if slide.position == position:
                return slide
        return None


def validate_template(template: CarouselTemplate) -> None:
    issues = []
    if not template.id:
        issues.append("template id is required")
    if not template.project_id:
        issues.append("template project_id is required")
    if not template.name:
        issues.append("template name is required")
    if template.slide_count != len(template.slides):
        issues.append(
            f"slide_count {template.slide_count} does not match {len(template.slides)} slides"
        )
    positions = sorted(s.position for s in template.slides)
    if positions != list(range(len(template.slides))):
        issues.append("template slide positions must be contiguous from 0")
    if issues:
        raise ValidationError(issues)
    for slide in template.slides:
        validate_zones(slide.text_zones)


# ============================================
# RENDER CACHE
# ============================================

@dataclass(frozen=True)
class Fresh:
    """PNG of the last composite, valid for the slide's current content."""
    png: bytes
    state: ClassVar[str] = "fresh"


@dataclass(frozen=True)
class Stale:
    state: ClassVar[str] = "stale"


@dataclass(frozen=True)
class Absent:
    state: ClassVar[str] = "absent"


RenderCache = Union[Fresh, Stale, Absent]


def invalidate(cache: RenderCache) -> RenderCache:
    if isinstance(cache, Fresh):
        return Stale()
    return cache


# ============================================
# CAROUSELS
# ============================================

@dataclass
class CarouselSlide:
    id: str
    position: int
    headline: str = ""
    body: Optional[str] = None
    cta: Optional[str] = None
    background_ref: Optional[str] = None  # project asset id
    background_color: Optional[str] = None
    visual_prompt: Optional[str] = None
    render_cache: RenderCache = field(default_factory=Absent)

    @property
    def rendered_image(self) -> Optional[bytes]:
        if isinstance(self.render_cache, Fresh):
            return self.render_cache.png
        return None

    def invalidated(self) -> "CarouselSlide":
        return replace(self, render_cache=invalidate(self.render_cache))


@dataclass
class CarouselOutput:
    id: str
    project_id: str
    template_id: Optional[str] = None
    slides: list[CarouselSlide] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def ordered_slides(self) -> list[CarouselSlide]:
        return sorted(self.slides, key=lambda s: s.position)


def validate_carousel(carousel: CarouselOutput) -> None:
    issues = []
    if not carousel.id:
        issues.append("carousel id is required")
    if not carousel.project_id:
        issues.append("carousel project_id is required")
    for slide in carousel.slides:
        if slide.background_color and not is_hex_color(slide.background_color):
            issues.append(
                f"slide {slide.position}: background color '{slide.background_color}' is not a hex color"
            )
    if issues:
        raise ValidationError(issues)
