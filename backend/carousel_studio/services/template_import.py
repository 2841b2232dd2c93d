"""
Template import.

Turns uploaded files into template slides (one background per slide,
no text zones yet):
- image/*           -> one slide
- ZIP               -> one slide per png/jpg/jpeg entry, natural name order
- PDF               -> light-gray placeholder slides to be replaced later
"""

import logging
import re
import zipfile
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from PIL import Image, ImageOps

from carousel_studio.config import get_settings
from carousel_studio.domain import CarouselTemplate, TemplateSlide, new_id, validate_template
from carousel_studio.errors import ValidationError

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg")
PLACEHOLDER_COLOR = (245, 245, 245)
PDF_PAGE_MARKER = re.compile(rb"/Type\s*/Page\b")


@dataclass(frozen=True)
class ImportFile:
    filename: str
    data: bytes
    mime_type: str


def natural_key(name: str) -> list:
    return [int(part) if part.isdigit() else part.lower() for part in re.split(r"(\d+)", name)]


def normalize_image(data: bytes, filename: str, width: int, height: int) -> bytes:
    """Fit the image inside the slide canvas on white, as PNG."""
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            rgb = img.convert("RGB")
    except (OSError, ValueError, Image.DecompressionBombError) as e:
        raise ValidationError(f"'{filename}' is not a readable image") from e

    fitted = ImageOps.pad(rgb, (width, height), color=(255, 255, 255))
    buf = BytesIO()
    fitted.save(buf, "PNG")
    return buf.getvalue()


def placeholder_image(width: int, height: int) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), PLACEHOLDER_COLOR).save(buf, "PNG")
    return buf.getvalue()


def pdf_page_count(data: bytes) -> int:
    return len(PDF_PAGE_MARKER.findall(data))


def extract_zip_images(data: bytes, filename: str, width: int, height: int) -> list[bytes]:
    try:
        with zipfile.ZipFile(BytesIO(data)) as archive:
            names = [
                info.filename for info in archive.infolist()
                if not info.is_dir() and info.filename.lower().endswith(IMAGE_EXTENSIONS)
            ]
            names.sort(key=natural_key)
            return [normalize_image(archive.read(name), name, width, height) for name in names]
    except zipfile.BadZipFile as e:
        raise ValidationError(f"Failed to extract images from '{filename}'") from e


def backgrounds_for_file(upload: ImportFile, width: int, height: int, placeholder_pages: int) -> list[bytes]:
    mime_type = (upload.mime_type or "").lower()
    if mime_type == "application/pdf":
        pages = pdf_page_count(upload.data) or placeholder_pages
        return [placeholder_image(width, height) for _ in range(pages)]
    if mime_type == "application/zip" or upload.filename.lower().endswith(".zip"):
        return extract_zip_images(upload.data, upload.filename, width, height)
    if mime_type.startswith("image/"):
        return [normalize_image(upload.data, upload.filename, width, height)]

    logger.warning(f"Skipping unsupported file type: {upload.mime_type} ({upload.filename})")
    return []


def import_template(project_id: str, name: str, files: list[ImportFile], template_id: Optional[str] = None) -> CarouselTemplate:
    """Create a template with one slide per imported background."""
    if not project_id:
        raise ValidationError("project_id is required")
    if not name:
        raise ValidationError("name is required")
    if not files:
        raise ValidationError("files are required")

    settings = get_settings()
    backgrounds = []
    for upload in files:
        backgrounds.extend(
            backgrounds_for_file(upload, settings.slide_width, settings.slide_height, settings.pdf_placeholder_pages)
        )

    if not backgrounds:
        raise ValidationError("No valid slides found in uploaded files")

    slides = [
        TemplateSlide(id=new_id(), position=i, background=data, text_zones=[])
        for i, data in enumerate(backgrounds)
    ]
    template = CarouselTemplate(
        id=template_id or new_id(),
        project_id=project_id,
        name=name,
        slide_count=len(slides),
        slides=slides,
    )
    validate_template(template)
    logger.info(f"Imported template '{name}' from {len(files)} file(s): {len(slides)} slides")
    return template
