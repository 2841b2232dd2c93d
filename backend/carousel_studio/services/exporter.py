"""
Carousel export.

Packages already-rendered slides, in position order, as:
- a PDF with one square page per slide (the slide raster fills the page)
- a ZIP with slide-01.png, slide-02.png, ...
Everything is built in memory; nothing is returned unless it all succeeded.
"""

import logging
import re
import zipfile
from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from carousel_studio.config import get_settings
from carousel_studio.domain import CarouselOutput
from carousel_studio.errors import NotRendered, ValidationError

logger = logging.getLogger(__name__)

FORMAT_PDF = "pdf"
FORMAT_PNG_ZIP = "png-zip"
EXPORT_FORMATS = (FORMAT_PDF, FORMAT_PNG_ZIP)

MIME_TYPES = {
    FORMAT_PDF: "application/pdf",
    FORMAT_PNG_ZIP: "application/zip",
}
SUFFIXES = {
    FORMAT_PDF: "-carousel.pdf",
    FORMAT_PNG_ZIP: "-carousel.zip",
}


@dataclass(frozen=True)
class ExportResult:
    filename: str
    data: bytes
    mime_type: str


def safe_filename(project_name: str) -> str:
    """Lower-case slug: non-alphanumeric runs become one hyphen."""
    slug = re.sub(r"[^a-z0-9]+", "-", (project_name or "").lower()).strip("-")
    return slug or "carousel"


def archive_entry_name(index: int) -> str:
    return f"slide-{index + 1:02d}.png"


def rendered_pages(carousel: CarouselOutput) -> list[bytes]:
    """PNG bytes per slide in position order; raises NotRendered if any is missing or stale."""
    slides = carousel.ordered_slides()
    missing = [s.position for s in slides if not s.rendered_image]
    if missing:
        raise NotRendered(missing)
    return [s.rendered_image for s in slides]


def build_pdf(pages: list[bytes], page_size: int) -> bytes:
    buf = BytesIO()
    pdf = canvas.Canvas(buf, pagesize=(page_size, page_size))
    for png in pages:
        pdf.drawImage(ImageReader(BytesIO(png)), 0, 0, width=page_size, height=page_size)
        pdf.showPage()
    pdf.save()
    return buf.getvalue()


def build_zip(pages: list[bytes]) -> bytes:
    buf = BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as archive:
        for i, png in enumerate(pages):
            archive.writestr(archive_entry_name(i), png)
    return buf.getvalue()


def export_carousel(carousel: CarouselOutput, project_name: str, fmt: str = FORMAT_PDF, page_size: Optional[int] = None) -> ExportResult:
    """Export a fully rendered carousel as PDF or PNG ZIP."""
    if fmt not in EXPORT_FORMATS:
        raise ValidationError('format must be "pdf" or "png-zip"')

    pages = rendered_pages(carousel)

    if fmt == FORMAT_PDF:
        data = build_pdf(pages, page_size or get_settings().pdf_page_size)
    else:
        data = build_zip(pages)

    filename = f"{safe_filename(project_name)}{SUFFIXES[fmt]}"
    logger.info(f"Exported carousel {carousel.id} as {fmt}: {len(pages)} slides, {len(data)} bytes")
    return ExportResult(filename=filename, data=data, mime_type=MIME_TYPES[fmt])
