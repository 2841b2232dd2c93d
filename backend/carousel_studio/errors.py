"""Errors raised by the carousel template and rendering engine."""

from __future__ import annotations


class CarouselError(ValueError):
    """Base class for recoverable carousel errors."""


class ValidationError(CarouselError):
    """Raised when a zone, slide, template or request is malformed."""

    def __init__(self, issues: list[str] | str):
        if isinstance(issues, str):
            issues = [issues]
        self.issues = [str(i).strip() for i in issues if str(i).strip()]
        if not self.issues:
            self.issues = ["Invalid carousel data"]
        super().__init__(self._format())

    def _format(self) -> str:
        if len(self.issues) == 1:
            return self.issues[0]
        lines = ["Validation failed:"]
        for issue in self.issues:
            lines.append(f"- {issue}")
        return "\n".join(lines)


class RenderError(CarouselError):
    """Raised when one slide cannot be composed."""

    def __init__(self, slide_index: int, reason: str):
        self.slide_index = slide_index
        self.reason = reason
        super().__init__(f"Slide {slide_index}: {reason}")


class NotRendered(CarouselError):
    """Raised when an export is attempted before every slide is rendered."""

    def __init__(self, missing: list[int]):
        self.missing = sorted(missing)
        listed = ", ".join(str(i) for i in self.missing)
        super().__init__(f"Carousel slides need to be rendered first (missing: {listed})")


class InvariantViolation(CarouselError):
    """Raised when a mutation would break the carousel's structural rules."""
