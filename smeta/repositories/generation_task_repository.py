import uuid
from typing import Optional, List
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from smeta.core.exceptions import TaskNotFoundError
from smeta.database.models import GenerationTask
from smeta.repositories.base_repository import BaseRepository


class GenerationTaskRepository(BaseRepository[GenerationTask]):
    """Repository for estimate generation task records."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, GenerationTask)

    async def create_task(
        self,
        user_id: str,
        status: str = "pending",
        current_stage: Optional[str] = None,
        progress_percent: int = 0,
    ) -> GenerationTask:
        """Create a new generation task.

        Args:
            user_id: Owner of the task
            status: Initial status (default: "pending")
            current_stage: Initial stage label
            progress_percent: Initial progress

        Returns:
            Created GenerationTask instance
        """
        now = datetime.now(timezone.utc)
        return await self.create(
            user_id=user_id,
            status=status,
            current_stage=current_stage,
            progress_percent=progress_percent,
            created_at=now,
            updated_at=now,
        )

    async def get_task(self, task_id: uuid.UUID) -> GenerationTask:
        """Get a task or raise TaskNotFoundError."""
        task = await self.get_by_id(task_id)
        if not task:
            raise TaskNotFoundError(f"Generation task {task_id} not found")
        return task

    async def get_for_user(self, task_id: uuid.UUID, user_id: str) -> GenerationTask:
        """Get a task owned by user_id; other owners see it as missing."""
        task = await self.get_by_id(task_id)
        if not task or task.user_id != user_id:
            raise TaskNotFoundError(f"Generation task {task_id} not found")
        return task

    async def list_for_user(self, user_id: str, limit: int = 50) -> List[GenerationTask]:
        """Most recent tasks of one owner first."""
        return await self.find_many(order_by=GenerationTask.created_at.desc(), limit=limit, user_id=user_id)

    async def update_status(
        self,
        task_id: uuid.UUID,
        status: str,
        current_stage: Optional[str] = None,
        progress_percent: Optional[int] = None,
    ) -> GenerationTask:
        """Move a task to a new status/stage and commit so pollers see it.

        Args:
            task_id: Task record ID
            status: New status value
            current_stage: Stage label, left unchanged when None
            progress_percent: Progress 0-100, left unchanged when None

        Returns:
            Updated GenerationTask instance
        """
        task = await self.get_task(task_id)

        task.status = status
        if current_stage is not None:
            task.current_stage = current_stage
        if progress_percent is not None:
            task.progress_percent = max(0, min(100, progress_percent))
        task.updated_at = datetime.now(timezone.utc)

        await self.session.flush()
        await self.session.commit()
        return task

    async def set_error(self, task_id: uuid.UUID, error_message: str) -> GenerationTask:
        """Record a failure; progress keeps the last completed value."""
        task = await self.get_task(task_id)

        task.status = "failed"
        task.error_message = error_message
        task.updated_at = datetime.now(timezone.utc)

        await self.session.flush()
        await self.session.commit()
        return task
