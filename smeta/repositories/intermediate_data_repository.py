import uuid
from typing import Optional, List, Any
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from smeta.database.models import IntermediateData
from smeta.repositories.base_repository import BaseRepository


class IntermediateDataRepository(BaseRepository[IntermediateData]):
    """Append-only store for per-stage JSON snapshots."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, IntermediateData)

    async def save(self, task_id: uuid.UUID, stage: str, data_type: str, data: Any) -> IntermediateData:
        """Append one snapshot.

        Args:
            task_id: Owning task
            stage: Stage label, e.g. "stage_3"
            data_type: Payload kind, e.g. "project_structure"
            data: JSON-serializable payload

        Returns:
            Created IntermediateData instance
        """
        return await self.create(
            task_id=task_id,
            stage=stage,
            data_type=data_type,
            data=data,
            created_at=datetime.now(timezone.utc),
        )

    async def get_latest(self, task_id: uuid.UUID, data_type: str) -> Optional[IntermediateData]:
        records = await self.find_many(
            order_by=IntermediateData.created_at.desc(), limit=1, task_id=task_id, data_type=data_type
        )
        return records[0] if records else None

