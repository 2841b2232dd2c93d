"""
API routes for the carousel template & rendering engine.
"""

import base64
import binascii
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from carousel_studio import store
from carousel_studio.database import get_db
from carousel_studio.domain import CarouselOutput, CarouselTemplate
from carousel_studio.errors import CarouselError, InvariantViolation, NotRendered, RenderError
from carousel_studio.services.exporter import export_carousel
from carousel_studio.services.mutations import (
    NEW_SLIDE_BODY,
    NEW_SLIDE_HEADLINE,
    add_slide,
    bind_template,
    delete_slide,
    edit_slide_field,
    new_carousel,
    rename_template,
    reorder_slide,
    set_slide_background,
    update_template_text_zones,
)
from carousel_studio.services.renderer import render_carousel
from carousel_studio.services.template_import import ImportFile, import_template

router = APIRouter()


# Request/Response Models

class ProjectCreate(BaseModel):
    name: str


class ProjectResponse(BaseModel):
    id: str
    name: str


class AssetUpload(BaseModel):
    filename: str
    data: str  # base64
    mime_type: Optional[str] = None


class AssetResponse(BaseModel):
    id: str
    project_id: str
    filename: str
    mime_type: Optional[str] = None


class TextZonePayload(BaseModel):
    id: str
    type: str
    x: float
    y: float
    width: float
    height: float
    fontSize: float = 48
    fontFamily: Optional[str] = None
    fontWeight: Optional[str] = None
    color: Optional[str] = None
    textAlign: Optional[str] = None
    lineHeight: Optional[float] = None


class ImportFilePayload(BaseModel):
    filename: str
    data: str  # base64
    mime_type: str


class TemplateImportRequest(BaseModel):
    project_id: str
    name: str
    files: list[ImportFilePayload]


class TemplateSlideUpdate(BaseModel):
    id: str
    text_zones: list[TextZonePayload]


class TemplateUpdate(BaseModel):
    name: Optional[str] = None
    slides: Optional[list[TemplateSlideUpdate]] = None


class TemplateSlideResponse(BaseModel):
    id: str
    template_id: str
    position: int
    background_data: Optional[str] = None
    text_zones: list[dict]


class TemplateResponse(BaseModel):
    id: str
    project_id: str
    name: str
    slide_count: int
    slides: list[TemplateSlideResponse]
    created_at: str


class SlideInput(BaseModel):
    headline: str
    body: Optional[str] = None
    cta: Optional[str] = None
    visual_prompt: Optional[str] = None
    background_color: Optional[str] = None


class CarouselCreate(BaseModel):
    project_id: str
    template_id: Optional[str] = None
    slides: list[SlideInput] = Field(min_length=1)


class CarouselResponse(BaseModel):
    id: str
    project_id: str
    template_id: Optional[str] = None
    slides: list[dict]
    created_at: str
    updated_at: str


class SlideErrorResponse(BaseModel):
    slide_index: int
    error: str


class RenderResponse(CarouselResponse):
    errors: list[SlideErrorResponse] = []


class TemplateBinding(BaseModel):
    template_id: Optional[str] = None


class AddSlideRequest(BaseModel):
    headline: str = NEW_SLIDE_HEADLINE
    body: str = NEW_SLIDE_BODY


class ReorderRequest(BaseModel):
    from_index: int
    to_index: int


class SlideFieldUpdate(BaseModel):
    field: str
    value: Optional[str] = None


class SlideBackgroundUpdate(BaseModel):
    asset_id: Optional[str] = None


class ExportRequest(BaseModel):
    project_id: str
    carousel_id: str
    format: str = "pdf"


class ExportResponse(BaseModel):
    filename: str
    data: str  # base64
    mime_type: str


# Helpers

def _http_error(e: CarouselError) -> HTTPException:
    if isinstance(e, (InvariantViolation, NotRendered)):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, RenderError):
        return HTTPException(status_code=422, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


def _decode_b64(data: str, label: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail=f"{label} is not valid base64")


def _template_response(template: CarouselTemplate) -> TemplateResponse:
    return TemplateResponse(
        id=template.id,
        project_id=template.project_id,
        name=template.name,
        slide_count=template.slide_count,
        slides=[
            TemplateSlideResponse(
                id=s.id,
                template_id=template.id,
                position=s.position,
                background_data=base64.b64encode(s.background).decode("ascii") if s.background else None,
                text_zones=[store.zone_to_dict(z) for z in s.text_zones],
            )
            for s in template.slides
        ],
        created_at=template.created_at.isoformat() if template.created_at else "",
    )


def _carousel_payload(carousel: CarouselOutput) -> dict:
    return dict(
        id=carousel.id,
        project_id=carousel.project_id,
        template_id=carousel.template_id,
        slides=[store.slide_to_dict(s) for s in carousel.ordered_slides()],
        created_at=carousel.created_at.isoformat() if carousel.created_at else "",
        updated_at=carousel.updated_at.isoformat() if carousel.updated_at else "",
    )


async def _require_project(db: AsyncSession, project_id: str):
    project = await store.get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


async def _load_template(db: AsyncSession, template_id: str) -> CarouselTemplate:
    try:
        template = await store.get_template(db, template_id)
    except CarouselError as e:
        raise _http_error(e)
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


async def _load_carousel(db: AsyncSession, carousel_id: str, project_id: Optional[str] = None) -> CarouselOutput:
    try:
        carousel = await store.get_carousel(db, carousel_id, project_id)
    except CarouselError as e:
        raise _http_error(e)
    if not carousel:
        raise HTTPException(status_code=404, detail="Carousel not found")
    return carousel


# Routes

@router.post("/projects", response_model=ProjectResponse)
async def create_project(request: ProjectCreate, db: AsyncSession = Depends(get_db)):
    try:
        project = await store.create_project(db, request.name)
    except CarouselError as e:
        raise _http_error(e)
    return ProjectResponse(id=project.id, name=project.name)


@router.get("/projects/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, db: AsyncSession = Depends(get_db)):
    project = await _require_project(db, project_id)
    return ProjectResponse(id=project.id, name=project.name)


@router.post("/projects/{project_id}/assets", response_model=AssetResponse)
async def upload_asset(project_id: str, request: AssetUpload, db: AsyncSession = Depends(get_db)):
    """Store an image usable as a slide background."""
    await _require_project(db, project_id)
    data = _decode_b64(request.data, "data")
    asset = await store.add_asset(db, project_id, request.filename, request.mime_type, data)
    return AssetResponse(id=asset.id, project_id=project_id, filename=asset.filename, mime_type=asset.mime_type)


@router.post("/templates/import", response_model=TemplateResponse)
async def import_template_route(request: TemplateImportRequest, db: AsyncSession = Depends(get_db)):
    """Import a carousel template from PDF, ZIP, or individual image files."""
    await _require_project(db, request.project_id)
    files = [
        ImportFile(filename=f.filename, data=_decode_b64(f.data, f.filename), mime_type=f.mime_type)
        for f in request.files
    ]
    try:
        template = import_template(request.project_id, request.name, files)
        await store.save_template(db, template)
    except CarouselError as e:
        raise _http_error(e)
    return _template_response(template)


@router.get("/templates", response_model=list[TemplateResponse])
async def list_templates(project_id: str = Query(...), db: AsyncSession = Depends(get_db)):
    try:
        templates = await store.list_templates(db, project_id)
    except CarouselError as e:
        raise _http_error(e)
    return [_template_response(t) for t in templates]


@router.get("/templates/{template_id}", response_model=TemplateResponse)
async def get_template(template_id: str, db: AsyncSession = Depends(get_db)):
    return _template_response(await _load_template(db, template_id))


@router.patch("/templates/{template_id}", response_model=TemplateResponse)
async def update_template(template_id: str, request: TemplateUpdate, db: AsyncSession = Depends(get_db)):
    """Update template name or slide text zones."""
    template = await _load_template(db, template_id)
    try:
        if request.name:
            template = rename_template(template, request.name)
        for slide in request.slides or []:
            zones = [store.zone_from_dict(z.model_dump()) for z in slide.text_zones]
            template = update_template_text_zones(template, slide.id, zones)
        await store.save_template(db, template)
    except CarouselError as e:
        raise _http_error(e)
    return _template_response(template)


@router.delete("/templates/{template_id}")
async def delete_template(template_id: str, db: AsyncSession = Depends(get_db)):
    """Delete a carousel template and its slides."""
    if not await store.delete_template(db, template_id):
        raise HTTPException(status_code=404, detail="Template not found")
    return {"success": True}


@router.post("/carousels", response_model=CarouselResponse)
async def create_carousel(request: CarouselCreate, db: AsyncSession = Depends(get_db)):
    """Create (or replace) the project's carousel from finalized slide text."""
    await _require_project(db, request.project_id)
    if request.template_id:
        await _load_template(db, request.template_id)

    existing = await store.get_project_carousel(db, request.project_id)
    try:
        carousel = new_carousel(
            request.project_id,
            [s.model_dump() for s in request.slides],
            template_id=request.template_id,
            carousel_id=existing.id if existing else None,
        )
    except CarouselError as e:
        raise _http_error(e)
    await store.save_carousel(db, carousel)
    return CarouselResponse(**_carousel_payload(carousel))


@router.get("/carousels/{carousel_id}", response_model=CarouselResponse)
async def get_carousel(carousel_id: str, db: AsyncSession = Depends(get_db)):
    return CarouselResponse(**_carousel_payload(await _load_carousel(db, carousel_id)))


@router.put("/carousels/{carousel_id}/template", response_model=CarouselResponse)
async def bind_carousel_template(carousel_id: str, request: TemplateBinding, db: AsyncSession = Depends(get_db)):
    carousel = await _load_carousel(db, carousel_id)
    if request.template_id:
        await _load_template(db, request.template_id)
    carousel = bind_template(carousel, request.template_id)
    await store.save_carousel(db, carousel)
    return CarouselResponse(**_carousel_payload(carousel))


@router.post("/carousels/{carousel_id}/slides", response_model=CarouselResponse)
async def add_carousel_slide(carousel_id: str, request: Optional[AddSlideRequest] = None, db: AsyncSession = Depends(get_db)):
    request = request or AddSlideRequest()
    carousel = add_slide(await _load_carousel(db, carousel_id), request.headline, request.body)
    await store.save_carousel(db, carousel)
    return CarouselResponse(**_carousel_payload(carousel))


@router.delete("/carousels/{carousel_id}/slides/{index}", response_model=CarouselResponse)
async def delete_carousel_slide(carousel_id: str, index: int, db: AsyncSession = Depends(get_db)):
    carousel = await _load_carousel(db, carousel_id)
    try:
        carousel = delete_slide(carousel, index)
    except CarouselError as e:
        raise _http_error(e)
    await store.save_carousel(db, carousel)
    return CarouselResponse(**_carousel_payload(carousel))


@router.post("/carousels/{carousel_id}/slides/reorder", response_model=CarouselResponse)
async def reorder_carousel_slide(carousel_id: str, request: ReorderRequest, db: AsyncSession = Depends(get_db)):
    carousel = await _load_carousel(db, carousel_id)
    try:
        carousel = reorder_slide(carousel, request.from_index, request.to_index)
    except CarouselError as e:
        raise _http_error(e)
    await store.save_carousel(db, carousel)
    return CarouselResponse(**_carousel_payload(carousel))


@router.patch("/carousels/{carousel_id}/slides/{index}", response_model=CarouselResponse)
async def edit_carousel_slide(carousel_id: str, index: int, request: SlideFieldUpdate, db: AsyncSession = Depends(get_db)):
    carousel = await _load_carousel(db, carousel_id)
    try:
        carousel = edit_slide_field(carousel, index, request.field, request.value)
    except CarouselError as e:
        raise _http_error(e)
    await store.save_carousel(db, carousel)
    return CarouselResponse(**_carousel_payload(carousel))


@router.put("/carousels/{carousel_id}/slides/{index}/background", response_model=CarouselResponse)
async def set_carousel_slide_background(carousel_id: str, index: int, request: SlideBackgroundUpdate, db: AsyncSession = Depends(get_db)):
    carousel = await _load_carousel(db, carousel_id)
    try:
        carousel = set_slide_background(carousel, index, request.asset_id)
    except CarouselError as e:
        raise _http_error(e)
    await store.save_carousel(db, carousel)
    return CarouselResponse(**_carousel_payload(carousel))


@router.post("/carousels/{carousel_id}/render", response_model=RenderResponse)
async def render_carousel_route(carousel_id: str, db: AsyncSession = Depends(get_db)):
    """Render all carousel slides with text overlaid on their backgrounds."""
    carousel = await _load_carousel(db, carousel_id)
    template = await _load_template(db, carousel.template_id) if carousel.template_id else None
    assets = await store.load_assets(db, [s.background_ref for s in carousel.slides])

    report = await render_carousel(carousel, template, assets)
    await store.save_carousel(db, report.carousel)

    return RenderResponse(
        **_carousel_payload(report.carousel),
        errors=[SlideErrorResponse(slide_index=e.slide_index, error=e.reason) for e in report.errors],
    )


@router.post("/export/carousel", response_model=ExportResponse)
async def export_carousel_route(request: ExportRequest, db: AsyncSession = Depends(get_db)):
    """Export carousel as PDF or PNG ZIP."""
    project = await _require_project(db, request.project_id)
    carousel = await _load_carousel(db, request.carousel_id, request.project_id)
    try:
        result = export_carousel(carousel, project.name, request.format)
    except CarouselError as e:
        raise _http_error(e)
    return ExportResponse(
        filename=result.filename,
        data=base64.b64encode(result.data).decode("ascii"),
        mime_type=result.mime_type,
    )
