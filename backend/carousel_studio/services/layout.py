"""
Text layout for fixed rectangular zones.

Greedy word wrap against an estimated text width, then the block is
centered vertically in the zone. Width is a character-count heuristic,
not a font metric; swap `measure` to change it. Overflow is reported,
never corrected.
"""

from dataclasses import dataclass
from typing import Callable

from carousel_studio.domain import TextZone

CHAR_WIDTH_RATIO = 0.6

Measure = Callable[[str, float], float]


def estimate_text_width(text: str, font_size: float, ratio: float = CHAR_WIDTH_RATIO) -> float:
    """Estimated rendered width of `text` in pixels."""
    return len(text) * (font_size * ratio)


def width_estimator(ratio: float = CHAR_WIDTH_RATIO) -> Measure:
    def measure(text: str, font_size: float) -> float:
        return estimate_text_width(text, font_size, ratio)
    return measure


def wrap_words(text: str, max_width: float, font_size: float, measure: Measure = estimate_text_width) -> list[str]:
    """Greedily pack whitespace-separated words into lines no wider than max_width."""
    lines = []
    current_line = ""

    for word in text.split():
        candidate = f"{current_line} {word}" if current_line else word
        if measure(candidate, font_size) > max_width and current_line:
            lines.append(current_line)
            current_line = word
        else:
            current_line = candidate

    if current_line:
        lines.append(current_line)

    return lines


def anchor_x(zone: TextZone) -> float:
    """Horizontal anchor for the zone's alignment."""
    rect = zone.rect
    if zone.align == "left":
        return rect.x
    if zone.align == "right":
        return rect.x + rect.width
    return rect.x + rect.width / 2


@dataclass(frozen=True)
class LaidOutLine:
    text: str
    x: float
    baseline_y: float


@dataclass(frozen=True)
class TextLayout:
    lines: tuple[LaidOutLine, ...]
    line_spacing: float
    block_height: float
    overflows_width: bool
    overflows_height: bool

    @property
    def overflows(self) -> bool:
        return self.overflows_width or self.overflows_height

    def pairs(self) -> list[tuple[str, float]]:
        return [(line.text, line.baseline_y) for line in self.lines]


def layout_text(text: str, zone: TextZone, measure: Measure = estimate_text_width) -> TextLayout:
    """Wrap `text` into `zone` and position each line's baseline."""
    font_size = zone.font.size_px
    line_spacing = font_size * zone.line_height_multiple

    wrapped = wrap_words(text or "", zone.rect.width, font_size, measure)
    if not wrapped:
        return TextLayout((), line_spacing, 0.0, False, False)

    total_height = len(wrapped) * line_spacing
    start_y = zone.rect.y + (zone.rect.height - total_height) / 2 + font_size
    x = anchor_x(zone)

    lines = tuple(
        LaidOutLine(line, x, start_y + i * line_spacing)
        for i, line in enumerate(wrapped)
    )
    return TextLayout(
        lines=lines,
        line_spacing=line_spacing,
        block_height=total_height,
        overflows_width=any(measure(line, font_size) > zone.rect.width for line in wrapped),
        overflows_height=total_height > zone.rect.height,
    )
