from functools import lru_cache
from typing import Annotated, List, Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Header, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from smeta.core.database import async_session_maker, get_async_session as get_session
from smeta.core.exceptions import (
    AppError,
    APIClientError,
    ConfigurationError,
    ContentInsufficientError,
    ModelOutputError,
    TaskNotFoundError,
    ValidationError,
)
from smeta.models.estimate_models import PageType
from smeta.schemas.estimates import (
    ClassificationResponse,
    GenerationStartedResponse,
    MaterialBillsResponse,
    RoomDataResponse,
    RoomListResponse,
    StoredClassificationResponse,
    StoredClassificationsResponse,
    StructureResponse,
    TaskListResponse,
    TaskStatusResponse,
)
from smeta.services.estimate_generation_service import (
    EstimateGenerationService,
    run_generation_in_background,
)
from smeta.services.pipeline.material_bill_extractor import MaterialBillExtractor
from smeta.services.vision.vision_adapter import VisionModelAdapter, build_vision_adapter
from smeta.utils.logging import get_logger

LOGGER = get_logger(__name__)

router = APIRouter()

PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf", "application/octet-stream"}


@lru_cache(maxsize=1)
def get_vision_adapter() -> VisionModelAdapter:
    try:
        return build_vision_adapter()
    except ConfigurationError as e:
        LOGGER.error("Vision model is not configured", extra={"error": str(e)})
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e)) from e


async def get_estimate_service(
    db_session: Annotated[AsyncSession, Depends(get_session)],
    adapter: Annotated[VisionModelAdapter, Depends(get_vision_adapter)],
) -> EstimateGenerationService:
    return EstimateGenerationService(db_session, adapter=adapter)


async def get_current_user_id(
    x_user_id: Annotated[Optional[str], Header(alias="X-User-Id")] = None,
) -> str:
    """Owner identity supplied by the upstream auth gateway."""
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    return x_user_id


def _to_http_error(error: AppError) -> HTTPException:
    if isinstance(error, TaskNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, (ValidationError, ContentInsufficientError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    if isinstance(error, (APIClientError, ModelOutputError)):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))


async def _read_pdf(file: UploadFile) -> bytes:
    if file.content_type and file.content_type not in PDF_CONTENT_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Expected a PDF file, got {file.content_type}",
        )
    data = await file.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")
    return data


@router.post(
    "/generate",
    response_model=GenerationStartedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start estimate generation from a design PDF",
    operation_id="start_estimate_generation",
)
async def generate_estimate(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(..., description="Design project PDF"),
    title: str = Form(...),
    pricelist_url: Optional[str] = Form(None),
    comments: Optional[str] = Form(None),
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    service: Annotated[EstimateGenerationService, Depends(get_estimate_service)] = None,
    adapter: Annotated[VisionModelAdapter, Depends(get_vision_adapter)] = None,
) -> GenerationStartedResponse:
    """Create a task and run the analysis pipeline in the background.

    Poll GET /tasks/{task_id} for progress.
    """
    pdf_bytes = await _read_pdf(file)

    task = await service.create_task(
        user_id,
        request={
            "title": title,
            "pricelist_url": pricelist_url,
            "comments": comments,
            "file_name": file.filename,
        },
    )
    background_tasks.add_task(run_generation_in_background, async_session_maker, task.id, pdf_bytes, adapter)

    return GenerationStartedResponse(task_id=task.id, status=task.status)


@router.post(
    "/classify-pages",
    response_model=ClassificationResponse,
    summary="Classify the pages of a design PDF",
    operation_id="classify_pages",
)
async def classify_pages(
    file: UploadFile = File(..., description="Design project PDF"),
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    service: Annotated[EstimateGenerationService, Depends(get_estimate_service)] = None,
) -> ClassificationResponse:
    """Run only page classification (diagnostic)."""
    pdf_bytes = await _read_pdf(file)
    try:
        task, results = await service.classify_only(user_id, pdf_bytes)
    except AppError as e:
        LOGGER.error("Page classification failed", extra={"error": str(e)})
        raise _to_http_error(e) from e

    return ClassificationResponse(task_id=task.id, status=task.status, classifications=results)


@router.get(
    "/tasks",
    response_model=TaskListResponse,
    summary="List the caller's generation tasks",
    operation_id="list_generation_tasks",
)
async def list_tasks(
    limit: int = Query(50, ge=1, le=200),
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    service: Annotated[EstimateGenerationService, Depends(get_estimate_service)] = None,
) -> TaskListResponse:
    tasks = await service.list_tasks(user_id, limit)
    return TaskListResponse(tasks=[TaskStatusResponse.model_validate(task) for task in tasks])


@router.get(
    "/tasks/{task_id}",
    response_model=TaskStatusResponse,
    summary="Get generation task status",
    operation_id="get_generation_task",
)
async def get_task_status(
    task_id: UUID,
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    service: Annotated[EstimateGenerationService, Depends(get_estimate_service)] = None,
) -> TaskStatusResponse:
    try:
        task = await service.get_task(task_id, user_id)
    except AppError as e:
        raise _to_http_error(e) from e
    return TaskStatusResponse.model_validate(task)


@router.get(
    "/tasks/{task_id}/classifications",
    response_model=StoredClassificationsResponse,
    summary="Get stored page classifications for a task",
    operation_id="get_generation_task_classifications",
)
async def get_task_classifications(
    task_id: UUID,
    page_type: Optional[PageType] = Query(None, description="Only pages of this type"),
    room_name: Optional[str] = Query(None, description="Only pages tagged with this room"),
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    service: Annotated[EstimateGenerationService, Depends(get_estimate_service)] = None,
) -> StoredClassificationsResponse:
    try:
        rows = await service.get_classifications(task_id, user_id, page_type=page_type, room_name=room_name)
    except AppError as e:
        raise _to_http_error(e) from e
    return StoredClassificationsResponse(
        task_id=task_id,
        classifications=[StoredClassificationResponse.model_validate(row) for row in rows],
    )


@router.get(
    "/tasks/{task_id}/structure",
    response_model=StructureResponse,
    summary="Get the project structure found for a task",
    operation_id="get_generation_task_structure",
)
async def get_task_structure(
    task_id: UUID,
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    service: Annotated[EstimateGenerationService, Depends(get_estimate_service)] = None,
) -> StructureResponse:
    try:
        structure = await service.get_structure(task_id, user_id)
    except AppError as e:
        raise _to_http_error(e) from e

    if structure is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Structure not available yet")
    return StructureResponse(task_id=task_id, structure=structure)


@router.get(
    "/tasks/{task_id}/rooms",
    response_model=RoomListResponse,
    summary="Get extracted room data for a task",
    operation_id="get_generation_task_rooms",
)
async def get_task_rooms(
    task_id: UUID,
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    service: Annotated[EstimateGenerationService, Depends(get_estimate_service)] = None,
) -> RoomListResponse:
    try:
        rooms = await service.get_rooms(task_id, user_id)
    except AppError as e:
        raise _to_http_error(e) from e
    return RoomListResponse(
        task_id=task_id,
        rooms=[RoomDataResponse.model_validate(room) for room in rooms],
    )


@router.post(
    "/material-bills",
    response_model=MaterialBillsResponse,
    summary="Extract material bills from table images",
    operation_id="extract_material_bills",
)
async def extract_material_bills(
    files: List[UploadFile] = File(..., description="Images of material bill tables"),
    room_name: Optional[str] = Form(None),
    user_id: Annotated[str, Depends(get_current_user_id)] = None,
    adapter: Annotated[VisionModelAdapter, Depends(get_vision_adapter)] = None,
) -> MaterialBillsResponse:
    """Ad hoc bill extraction outside a generation task."""
    images = [await upload.read() for upload in files]
    images = [image for image in images if image]
    if not images:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No images uploaded")

    try:
        bills = await MaterialBillExtractor(adapter).extract(images, room_name)
    except AppError as e:
        LOGGER.error("Material bill extraction failed", extra={"error": str(e), "user_id": user_id})
        raise _to_http_error(e) from e
    return MaterialBillsResponse(material_bills=bills)
