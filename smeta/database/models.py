"""SQLAlchemy models for all database tables."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from smeta.core.database import Base


class GenerationTask(Base):
    """One end-to-end analysis of an uploaded design PDF."""

    __tablename__ = "generation_tasks"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    estimate_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String, nullable=False, default="pending"
    )  # pending | processing | completed | failed
    current_stage: Mapped[str | None] = mapped_column(String, nullable=True)
    progress_percent: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    page_classifications: Mapped[list["PageClassification"]] = relationship(
        "PageClassification", back_populates="task", cascade="all, delete-orphan"
    )
    rooms: Mapped[list["ExtractedRoomData"]] = relationship(
        "ExtractedRoomData", back_populates="task", cascade="all, delete-orphan"
    )
    intermediate_data: Mapped[list["IntermediateData"]] = relationship(
        "IntermediateData", back_populates="task", cascade="all, delete-orphan"
    )


class PageClassification(Base):
    """Stage 1 result for a single PDF page."""

    __tablename__ = "page_classifications"
    __table_args__ = (
        UniqueConstraint("task_id", "page_number", name="uq_page_classification_task_page"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    task_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("generation_tasks.id", ondelete="CASCADE"), nullable=False
    )
    page_number: Mapped[int] = mapped_column(Integer, nullable=False)
    page_type: Mapped[str] = mapped_column(
        String, nullable=False
    )  # plan | wall_layout | specification | visualization | other
    room_name: Mapped[str | None] = mapped_column(String, nullable=True)
    # Full-resolution page as a data URL; later stages crop from it
    image_data_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )

    task: Mapped["GenerationTask"] = relationship(
        "GenerationTask", back_populates="page_classifications"
    )


class ExtractedRoomData(Base):
    """Per-room areas and the extracted room profile."""

    __tablename__ = "extracted_room_data"
    __table_args__ = (
        UniqueConstraint("task_id", "room_name", name="uq_extracted_room_task_room"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    task_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("generation_tasks.id", ondelete="CASCADE"), nullable=False
    )
    room_name: Mapped[str] = mapped_column(String, nullable=False)
    room_type: Mapped[str | None] = mapped_column(String, nullable=True)
    area: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    wall_area: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    floor_area: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    ceiling_area: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    extracted_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )

    task: Mapped["GenerationTask"] = relationship("GenerationTask", back_populates="rooms")


class IntermediateData(Base):
    """Append-only JSON snapshot produced by a pipeline stage."""

    __tablename__ = "intermediate_data"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    task_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("generation_tasks.id", ondelete="CASCADE"), nullable=False
    )
    stage: Mapped[str] = mapped_column(String, nullable=False)
    data_type: Mapped[str] = mapped_column(String, nullable=False)
    data: Mapped[Any] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), server_default=func.now()
    )

    task: Mapped["GenerationTask"] = relationship(
        "GenerationTask", back_populates="intermediate_data"
    )
