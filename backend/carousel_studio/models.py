from sqlalchemy import Column, Integer, String, Text, DateTime, JSON, LargeBinary, ForeignKey
from sqlalchemy.sql import func
from carousel_studio.database import Base


class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ProjectAsset(Base):
    """Uploaded image usable as a slide background."""
    __tablename__ = "project_assets"

    id = Column(String(36), primary_key=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    filename = Column(String(255), nullable=False)
    mime_type = Column(String(100), nullable=True)
    data = Column(LargeBinary, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CarouselTemplateRecord(Base):
    __tablename__ = "carousel_templates"

    id = Column(String(36), primary_key=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    slide_count = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class TemplateSlideRecord(Base):
    __tablename__ = "carousel_template_slides"

    id = Column(String(36), primary_key=True)
    template_id = Column(String(36), ForeignKey("carousel_templates.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    background_data = Column(LargeBinary, nullable=True)
    text_zones = Column(JSON, nullable=False, default=list)  # list of zone dicts


class CarouselOutputRecord(Base):
    """One project's active carousel."""
    __tablename__ = "carousel_outputs"

    id = Column(String(36), primary_key=True)
    project_id = Column(String(36), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    template_id = Column(String(36), ForeignKey("carousel_templates.id", ondelete="SET NULL"), nullable=True)
    slides = Column(JSON, nullable=False, default=list)  # list of slide dicts
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
