import base64
from io import BytesIO

import pytest
from PIL import Image

from carousel_studio import database
from carousel_studio.domain import Absent, CarouselOutput, CarouselSlide, FontSpec, Fresh, Rect, TextZone


def png_bytes(color=(255, 0, 0), size=(64, 64)) -> bytes:
    buf = BytesIO()
    Image.new("RGB", size, color).save(buf, "PNG")
    return buf.getvalue()


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def make_zone(zone_id="z1", kind="headline", x=0, y=0, width=100, height=100, size=20, align="center", line_height=1.2, color="#000000"):
    return TextZone(
        id=zone_id,
        kind=kind,
        rect=Rect(x, y, width, height),
        font=FontSpec(size_px=size, color_hex=color),
        align=align,
        line_height_multiple=line_height,
    )


def make_carousel(count=3, rendered=False) -> CarouselOutput:
    slides = [
        CarouselSlide(
            id=f"s{i}",
            position=i,
            headline=f"Headline {i}",
            render_cache=Fresh(png_bytes((i * 40, 0, 0))) if rendered else Absent(),
        )
        for i in range(count)
    ]
    return CarouselOutput(id="c1", project_id="p1", slides=slides)


@pytest.fixture
def client(tmp_path):
    from fastapi.testclient import TestClient
    from carousel_studio.main import app

    database.configure(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    with TestClient(app) as test_client:
        yield test_client
    database.configure(None)
