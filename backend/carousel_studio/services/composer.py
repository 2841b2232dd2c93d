"""
Slide compositing engine.

Background (decoded image or solid color) -> one transparent text layer
per non-empty zone -> alpha composite -> PNG bytes.
"""

import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image, ImageColor, ImageDraw, ImageFont

from carousel_studio.config import get_settings
from carousel_studio.domain import CarouselSlide, FontSpec, Rect, TextZone
from carousel_studio.errors import RenderError
from carousel_studio.services.layout import Measure, TextLayout, layout_text, width_estimator

logger = logging.getLogger(__name__)

# Slide dimensions
WIDTH = 1080
HEIGHT = 1080

# Pillow anchors: horizontal part + baseline
ANCHORS = {"left": "ls", "center": "ms", "right": "rs"}


class FontLoader:
    """Resolves zone font specs to Pillow fonts."""

    FALLBACK_FILES = {
        "normal": "DejaVuSans.ttf",
        "bold": "DejaVuSans-Bold.ttf",
    }

    def __init__(self, font_path: Optional[str] = None):
        self.font_path = Path(font_path or get_settings().font_path)
        self.fonts = self._load_fonts()
        self._cache: dict[tuple[str, str, int], ImageFont.FreeTypeFont] = {}

    def _load_fonts(self) -> dict:
        """Index font files under font_path by lower-cased stem."""
        fonts = {}
        if not self.font_path.is_dir():
            return fonts
        for path in sorted(self.font_path.rglob("*")):
            if path.suffix.lower() in (".ttf", ".otf"):
                fonts.setdefault(path.stem.lower(), str(path))
        return fonts

    def _candidates(self, family: str, weight: str) -> list[str]:
        names = []
        for name in family.split(","):
            compact = name.strip().strip("'\"").replace(" ", "").lower()
            if not compact:
                continue
            if weight == "bold":
                names += [f"{compact}-bold", f"{compact}bold", f"{compact}-bd"]
            names += [f"{compact}-regular", compact]
        return names

    def get_font(self, font: FontSpec) -> ImageFont.FreeTypeFont:
        """Get font for the FontSpec family, weight and size."""
        size = max(1, int(round(font.size_px)))
        key = (font.family, font.weight, size)
        if key not in self._cache:
            self._cache[key] = self._resolve(font.family, font.weight, size)
        return self._cache[key]

    def _resolve(self, family: str, weight: str, size: int):
        for name in self._candidates(family, weight):
            path = self.fonts.get(name)
            if path:
                return ImageFont.truetype(path, size)
        try:
            return ImageFont.truetype(self.FALLBACK_FILES.get(weight, "DejaVuSans.ttf"), size)
        except OSError:
            logger.debug(f"No TrueType font for '{family}' ({weight}), using Pillow default")
            return ImageFont.load_default(size=size)


def default_zone_pair(slide_width: int = WIDTH, slide_height: int = HEIGHT) -> list[TextZone]:
    """Headline + body zones used when a slide has no template zones."""
    return [
        TextZone(
            id="default-headline",
            kind="headline",
            rect=Rect(80, slide_height / 2 - 100, slide_width - 160, 150),
            font=FontSpec(size_px=72, weight="bold", color_hex="#1a1a1a"),
            align="center",
        ),
        TextZone(
            id="default-body",
            kind="body",
            rect=Rect(80, slide_height / 2 + 80, slide_width - 160, 200),
            font=FontSpec(size_px=36, weight="normal", color_hex="#4a4a4a"),
            align="center",
        ),
    ]


def effective_zones(zones: Optional[list[TextZone]], slide_width: int = WIDTH, slide_height: int = HEIGHT) -> list[TextZone]:
    if zones:
        return list(zones)
    return default_zone_pair(slide_width, slide_height)


def resolve_zone_text(zone: TextZone, slide: CarouselSlide) -> str:
    if zone.kind == "headline":
        return slide.headline or ""
    if zone.kind == "body":
        return slide.body or ""
    if zone.kind == "cta":
        return slide.cta or ""
    return ""


@dataclass(frozen=True)
class ZoneOverlay:
    """One zone's text, ready to draw."""
    zone: TextZone
    text: str
    layout: TextLayout


def build_overlay(zones: list[TextZone], slide: CarouselSlide, measure: Optional[Measure] = None) -> list[ZoneOverlay]:
    """Lay out every zone that has text, in paint order."""
    measure = measure or width_estimator(get_settings().char_width_ratio)
    overlay = []
    for zone in zones:
        text = resolve_zone_text(zone, slide)
        if not text:
            continue
        layout = layout_text(text, zone, measure)
        if layout.overflows:
            logger.debug(
                f"Zone '{zone.id}' overflows (width={layout.overflows_width}, height={layout.overflows_height})"
            )
        overlay.append(ZoneOverlay(zone, text, layout))
    return overlay


def crop_to_fill(image: Image.Image, target_w: int, target_h: int) -> Image.Image:
    """Scale to cover the target box, then center-crop."""
    source_w, source_h = image.size
    target_ratio = target_w / target_h
    source_ratio = source_w / source_h

    if source_ratio > target_ratio:
        scaled_w = max(target_w, round(source_w * target_h / source_h))
        resized = image.resize((scaled_w, target_h), Image.Resampling.LANCZOS)
        crop_x = (scaled_w - target_w) // 2
        return resized.crop((crop_x, 0, crop_x + target_w, target_h))

    scaled_h = max(target_h, round(source_h * target_w / source_w))
    resized = image.resize((target_w, scaled_h), Image.Resampling.LANCZOS)
    crop_y = (scaled_h - target_h) // 2
    return resized.crop((0, crop_y, target_w, crop_y + target_h))


def decode_background(data: bytes, width: int, height: int, slide_index: int) -> Image.Image:
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            frame = img.convert("RGBA")
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise RenderError(slide_index, f"background image could not be decoded ({type(e).__name__})") from e
    return crop_to_fill(frame, width, height)


def solid_background(color: Optional[str], width: int, height: int, slide_index: int) -> Image.Image:
    try:
        fill = ImageColor.getcolor(color or get_settings().default_background_color, "RGBA")
    except ValueError as e:
        raise RenderError(slide_index, f"invalid background color '{color}'") from e
    return Image.new("RGBA", (width, height), fill)


def draw_zone_layer(overlay: ZoneOverlay, size: tuple[int, int], fonts: FontLoader) -> Image.Image:
    """Draw one zone's lines on a transparent layer."""
    layer = Image.new("RGBA", size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    zone = overlay.zone
    font = fonts.get_font(zone.font)
    fill = ImageColor.getcolor(zone.font.color_hex, "RGBA")
    anchor = ANCHORS.get(zone.align, "ms")

    for line in overlay.layout.lines:
        draw.text((round(line.x), round(line.baseline_y)), line.text, font=font, fill=fill, anchor=anchor)

    return layer


def compose_slide(
    background: Optional[bytes],
    zones: Optional[list[TextZone]],
    slide: CarouselSlide,
    slide_width: int = WIDTH,
    slide_height: int = HEIGHT,
    slide_index: Optional[int] = None,
    fonts: Optional[FontLoader] = None,
    measure: Optional[Measure] = None,
) -> bytes:
    """Render one slide to PNG bytes."""
    index = slide.position if slide_index is None else slide_index
    fonts = fonts or FontLoader()

    if background:
        img = decode_background(background, slide_width, slide_height, index)
    else:
        img = solid_background(slide.background_color, slide_width, slide_height, index)

    overlay = build_overlay(effective_zones(zones, slide_width, slide_height), slide, measure)

    try:
        for item in overlay:
            img = Image.alpha_composite(img, draw_zone_layer(item, img.size, fonts))

        buf = BytesIO()
        img.convert("RGB").save(buf, "PNG")
    except (OSError, ValueError) as e:
        raise RenderError(index, f"compositing failed: {e}") from e

    return buf.getvalue()
