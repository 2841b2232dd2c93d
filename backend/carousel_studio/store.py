"""
Storage boundary.

Zones and slides are stored as JSON columns; this module is the only place
that converts between those dicts and the typed aggregates in `domain`.
"""

import base64
import binascii
import logging
from typing import Iterable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from carousel_studio.domain import (
    Absent,
    CarouselOutput,
    CarouselSlide,
    CarouselTemplate,
    FontSpec,
    Fresh,
    Rect,
    Stale,
    TemplateSlide,
    TextZone,
    new_id,
    utcnow,
    validate_template,
    validate_zones,
)
from carousel_studio.errors import ValidationError
from carousel_studio.models import (
    CarouselOutputRecord,
    CarouselTemplateRecord,
    Project,
    ProjectAsset,
    TemplateSlideRecord,
)

logger = logging.getLogger(__name__)


# ============================================
# SERIALIZATION
# ============================================

def zone_to_dict(zone: TextZone) -> dict:
    return {
        "id": zone.id,
        "type": zone.kind,
        "x": zone.rect.x,
        "y": zone.rect.y,
        "width": zone.rect.width,
        "height": zone.rect.height,
        "fontSize": zone.font.size_px,
        "fontFamily": zone.font.family,
        "fontWeight": zone.font.weight,
        "color": zone.font.color_hex,
        "textAlign": zone.align,
        "lineHeight": zone.line_height_multiple,
    }


def zone_from_dict(data: dict) -> TextZone:
    defaults = FontSpec()
    try:
        return TextZone(
            id=str(data["id"]),
            kind=data["type"],
            rect=Rect(float(data["x"]), float(data["y"]), float(data["width"]), float(data["height"])),
            font=FontSpec(
                size_px=float(data.get("fontSize") or defaults.size_px),
                family=data.get("fontFamily") or defaults.family,
                weight=data.get("fontWeight") or defaults.weight,
                color_hex=data.get("color") or defaults.color_hex,
            ),
            align=data.get("textAlign") or "center",
            line_height_multiple=float(data.get("lineHeight") or 1.2),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"malformed text zone: {e}") from e


def zones_from_list(items: Optional[Iterable[dict]]) -> list[TextZone]:
    zones = [zone_from_dict(item) for item in items or []]
    validate_zones(zones)
    return zones


def slide_to_dict(slide: CarouselSlide) -> dict:
    png = slide.rendered_image
    return {
        "id": slide.id,
        "position": slide.position,
        "headline": slide.headline,
        "body": slide.body,
        "cta": slide.cta,
        "image_id": slide.background_ref,
        "background_color": slide.background_color,
        "visual_prompt": slide.visual_prompt,
        "rendered_image": base64.b64encode(png).decode("ascii") if png else None,
        "render_state": slide.render_cache.state,
    }


def _cache_from_dict(data: dict):
    encoded = data.get("rendered_image")
    state = data.get("render_state")
    if state == "stale":
        return Stale()
    if encoded and state in (None, "fresh"):
        try:
            return Fresh(base64.b64decode(encoded, validate=True))
        except (binascii.Error, ValueError) as e:
            raise ValidationError(f"slide {data.get('id')}: rendered image is not valid base64") from e
    return Absent()


def slide_from_dict(data: dict) -> CarouselSlide:
    try:
        return CarouselSlide(
            id=str(data["id"]),
            position=int(data["position"]),
            headline=data.get("headline") or "",
            body=data.get("body"),
            cta=data.get("cta"),
            background_ref=data.get("image_id"),
            background_color=data.get("background_color"),
            visual_prompt=data.get("visual_prompt"),
            render_cache=_cache_from_dict(data),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"malformed carousel slide: {e}") from e


def template_from_records(record: CarouselTemplateRecord, slide_records: list[TemplateSlideRecord]) -> CarouselTemplate:
    slides = [
        TemplateSlide(
            id=s.id,
            position=s.position,
            background=s.background_data,
            text_zones=zones_from_list(s.text_zones),
        )
        for s in sorted(slide_records, key=lambda s: s.position)
    ]
    template = CarouselTemplate(
        id=record.id,
        project_id=record.project_id,
        name=record.name,
        slide_count=record.slide_count,
        slides=slides,
        created_at=record.created_at or utcnow(),
    )
    validate_template(template)
    return template


def carousel_from_record(record: CarouselOutputRecord) -> CarouselOutput:
    slides = [slide_from_dict(item) for item in record.slides or []]
    return CarouselOutput(
        id=record.id,
        project_id=record.project_id,
        template_id=record.template_id,
        slides=sorted(slides, key=lambda s: s.position),
        created_at=record.created_at or utcnow(),
        updated_at=record.updated_at or utcnow(),
    )


# ============================================
# PROJECTS & ASSETS
# ============================================

async def create_project(db: AsyncSession, name: str) -> Project:
    if not name or not name.strip():
        raise ValidationError("project name is required")
    project = Project(id=new_id(), name=name.strip())
    db.add(project)
    await db.commit()
    await db.refresh(project)
    return project


async def get_project(db: AsyncSession, project_id: str) -> Optional[Project]:
    result = await db.execute(select(Project).where(Project.id == project_id))
    return result.scalar_one_or_none()


async def add_asset(db: AsyncSession, project_id: str, filename: str, mime_type: Optional[str], data: bytes) -> ProjectAsset:
    asset = ProjectAsset(id=new_id(), project_id=project_id, filename=filename, mime_type=mime_type, data=data)
    db.add(asset)
    await db.commit()
    return asset


async def load_assets(db: AsyncSession, asset_ids: Iterable[str]) -> dict[str, bytes]:
    ids = {i for i in asset_ids if i}
    if not ids:
        return {}
    result = await db.execute(select(ProjectAsset.id, ProjectAsset.data).where(ProjectAsset.id.in_(ids)))
    return {row.id: row.data for row in result}


# ============================================
# TEMPLATES
# ============================================

async def save_template(db: AsyncSession, template: CarouselTemplate) -> CarouselTemplate:
    """Insert or fully replace a template and its slides."""
    validate_template(template)

    record = await db.get(CarouselTemplateRecord, template.id)
    if record is None:
        record = CarouselTemplateRecord(id=template.id, project_id=template.project_id)
        db.add(record)
    record.name = template.name
    record.slide_count = template.slide_count

    result = await db.execute(
        select(TemplateSlideRecord).where(TemplateSlideRecord.template_id == template.id)
    )
    existing = {s.id: s for s in result.scalars().all()}

    for slide in template.slides:
        slide_record = existing.pop(slide.id, None)
        if slide_record is None:
            slide_record = TemplateSlideRecord(id=slide.id, template_id=template.id)
            db.add(slide_record)
        slide_record.position = slide.position
        slide_record.background_data = slide.background
        slide_record.text_zones = [zone_to_dict(z) for z in slide.text_zones]

    for stale_record in existing.values():
        await db.delete(stale_record)

    await db.commit()
    return template


async def get_template(db: AsyncSession, template_id: str) -> Optional[CarouselTemplate]:
    record = await db.get(CarouselTemplateRecord, template_id)
    if record is None:
        return None
    result = await db.execute(
        select(TemplateSlideRecord)
        .where(TemplateSlideRecord.template_id == template_id)
        .order_by(TemplateSlideRecord.position)
    )
    return template_from_records(record, list(result.scalars().all()))


async def list_templates(db: AsyncSession, project_id: str) -> list[CarouselTemplate]:
    result = await db.execute(
        select(CarouselTemplateRecord.id)
        .where(CarouselTemplateRecord.project_id == project_id)
        .order_by(CarouselTemplateRecord.created_at)
    )
    templates = []
    for template_id in result.scalars().all():
        template = await get_template(db, template_id)
        if template:
            templates.append(template)
    return templates


async def delete_template(db: AsyncSession, template_id: str) -> bool:
    record = await db.get(CarouselTemplateRecord, template_id)
    if record is None:
        return False
    await db.execute(delete(TemplateSlideRecord).where(TemplateSlideRecord.template_id == template_id))
    await db.execute(
        update(CarouselOutputRecord)
        .where(CarouselOutputRecord.template_id == template_id)
        .values(template_id=None)
    )
    await db.delete(record)
    await db.commit()
    logger.info(f"Deleted template {template_id}")
    return True


# ============================================
# CAROUSELS
# ============================================

async def save_carousel(db: AsyncSession, carousel: CarouselOutput) -> CarouselOutput:
    """Persist the whole slide list in one write."""
    record = await db.get(CarouselOutputRecord, carousel.id)
    if record is None:
        record = CarouselOutputRecord(id=carousel.id, project_id=carousel.project_id)
        db.add(record)
    record.template_id = carousel.template_id
    record.slides = [slide_to_dict(s) for s in carousel.ordered_slides()]
    record.updated_at = carousel.updated_at
    await db.commit()
    return carousel


async def get_carousel(db: AsyncSession, carousel_id: str, project_id: Optional[str] = None) -> Optional[CarouselOutput]:
    query = select(CarouselOutputRecord).where(CarouselOutputRecord.id == carousel_id)
    if project_id:
        query = query.where(CarouselOutputRecord.project_id == project_id)
    result = await db.execute(query)
    record = result.scalar_one_or_none()
    return carousel_from_record(record) if record else None


async def get_project_carousel(db: AsyncSession, project_id: str) -> Optional[CarouselOutput]:
    result = await db.execute(
        select(CarouselOutputRecord).where(CarouselOutputRecord.project_id == project_id)
    )
    record = result.scalars().first()
    return carousel_from_record(record) if record else None
