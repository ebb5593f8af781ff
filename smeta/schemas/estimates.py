"""Request/response schemas for the estimates API."""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from smeta.models.estimate_models import MaterialBill, PageClassificationResult, ProjectStructure


class HealthCheckResponse(BaseModel):
    status: str = Field(..., description="healthy or degraded")
    version: str
    service: str


class GenerationStartedResponse(BaseModel):
    task_id: UUID = Field(..., description="ID to poll for progress")
    status: str = Field(..., description="Initial task status")


class TaskStatusResponse(BaseModel):
    """Polling view of a generation task."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: str
    current_stage: Optional[str] = None
    progress_percent: int = 0
    error_message: Optional[str] = None
    estimate_id: Optional[UUID] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TaskListResponse(BaseModel):
    tasks: List[TaskStatusResponse]


class StoredClassificationResponse(BaseModel):
    """A persisted page classification, without the page image."""

    model_config = ConfigDict(from_attributes=True)

    page_number: int
    page_type: str
    room_name: Optional[str] = None


class StoredClassificationsResponse(BaseModel):
    task_id: UUID
    classifications: List[StoredClassificationResponse]


class ClassificationResponse(BaseModel):
    task_id: UUID
    status: str
    classifications: List[PageClassificationResult]


class StructureResponse(BaseModel):
    task_id: UUID
    structure: ProjectStructure


class RoomDataResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    room_name: str
    room_type: Optional[str] = None
    area: Optional[float] = None
    wall_area: Optional[float] = None
    floor_area: Optional[float] = None
    ceiling_area: Optional[float] = None
    extracted_data: Optional[Dict[str, Any]] = None


class RoomListResponse(BaseModel):
    task_id: UUID
    rooms: List[RoomDataResponse]


class MaterialBillsResponse(BaseModel):
    material_bills: List[MaterialBill]
