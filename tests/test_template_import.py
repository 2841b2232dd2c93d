import zipfile
from io import BytesIO

import pytest
from PIL import Image

from carousel_studio.errors import ValidationError
from carousel_studio.services.template_import import (
    PLACEHOLDER_COLOR,
    ImportFile,
    import_template,
    natural_key,
    pdf_page_count,
)
from conftest import png_bytes


def center_pixel(data: bytes):
    img = Image.open(BytesIO(data)).convert("RGB")
    return img.getpixel((img.width // 2, img.height // 2))


def zip_of(entries: dict) -> bytes:
    buf = BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        for name, data in entries.items():
            archive.writestr(name, data)
    return buf.getvalue()


def fake_pdf(pages: int) -> bytes:
    objects = b"".join(b"%d 0 obj << /Type /Page /Parent 1 0 R >> endobj\n" % (i + 2) for i in range(pages))
    return b"%PDF-1.4\n1 0 obj << /Type /Pages /Count " + str(pages).encode() + b" >> endobj\n" + objects + b"%%EOF"


def test_natural_key_orders_numbers_numerically():
    names = ["slide10.png", "slide2.png", "Slide1.png"]
    assert sorted(names, key=natural_key) == ["Slide1.png", "slide2.png", "slide10.png"]


def test_pdf_page_count_ignores_pages_tree():
    assert pdf_page_count(fake_pdf(4)) == 4
    assert pdf_page_count(b"%PDF-1.4 nothing here") == 0


class TestImportTemplate:

    def test_single_image_becomes_one_slide(self):
        upload = ImportFile("cover.png", png_bytes((10, 20, 30), size=(200, 100)), "image/png")
        template = import_template("p1", "Launch", [upload])

        assert template.slide_count == 1
        slide = template.slides[0]
        assert slide.position == 0
        assert slide.text_zones == []
        img = Image.open(BytesIO(slide.background))
        assert img.format == "PNG"
        assert img.size == (1080, 1080)
        # letterboxed on white
        assert img.convert("RGB").getpixel((540, 5)) == (255, 255, 255)
        assert center_pixel(slide.background) == (10, 20, 30)

    def test_zip_entries_in_natural_order(self):
        archive = zip_of({
            "deck/slide10.png": png_bytes((0, 0, 255)),
            "deck/slide2.jpg": png_bytes((0, 255, 0)),
            "deck/slide1.png": png_bytes((255, 0, 0)),
            "deck/notes.txt": b"ignore me",
        })
        template = import_template("p1", "Deck", [ImportFile("deck.zip", archive, "application/zip")])

        assert [s.position for s in template.slides] == [0, 1, 2]
        assert [center_pixel(s.background) for s in template.slides] == [(255, 0, 0), (0, 255, 0), (0, 0, 255)]

    def test_pdf_yields_placeholder_per_page(self):
        template = import_template("p1", "Deck", [ImportFile("deck.pdf", fake_pdf(3), "application/pdf")])

        assert template.slide_count == 3
        assert center_pixel(template.slides[0].background) == PLACEHOLDER_COLOR

    def test_unparseable_pdf_uses_fallback_page_count(self):
        template = import_template("p1", "Deck", [ImportFile("deck.pdf", b"%PDF-garbage", "application/pdf")])
        assert template.slide_count == 5

    def test_files_are_concatenated_in_upload_order(self):
        files = [
            ImportFile("a.png", png_bytes((255, 0, 0)), "image/png"),
            ImportFile("b.zip", zip_of({"1.png": png_bytes((0, 255, 0)), "2.png": png_bytes((0, 0, 255))}), "application/zip"),
        ]
        template = import_template("p1", "Mixed", files)
        assert [center_pixel(s.background) for s in template.slides] == [(255, 0, 0), (0, 255, 0), (0, 0, 255)]

    def test_unsupported_files_are_skipped(self):
        files = [
            ImportFile("notes.txt", b"hello", "text/plain"),
            ImportFile("cover.png", png_bytes(), "image/png"),
        ]
        assert import_template("p1", "Deck", files).slide_count == 1

    def test_nothing_usable(self):
        with pytest.raises(ValidationError, match="No valid slides"):
            import_template("p1", "Deck", [ImportFile("notes.txt", b"hello", "text/plain")])

    def test_corrupt_image(self):
        with pytest.raises(ValidationError):
            import_template("p1", "Deck", [ImportFile("cover.png", b"not a png", "image/png")])

    def test_corrupt_zip(self):
        with pytest.raises(ValidationError):
            import_template("p1", "Deck", [ImportFile("deck.zip", b"PK nope", "application/zip")])

    @pytest.mark.parametrize("project_id,name,files", [
        ("", "Deck", [ImportFile("a.png", b"", "image/png")]),
        ("p1", "", [ImportFile("a.png", b"", "image/png")]),
        ("p1", "Deck", []),
    ])
    def test_required_arguments(self, project_id, name, files):
        with pytest.raises(ValidationError):
            import_template(project_id, name, files)
