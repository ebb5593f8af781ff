import uuid
from typing import Optional, List, Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from smeta.database.models import ExtractedRoomData
from smeta.repositories.base_repository import BaseRepository


class RoomDataRepository(BaseRepository[ExtractedRoomData]):
    """Repository for per-room extracted data, unique by (task_id, room_name)."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ExtractedRoomData)

    async def get_room(self, task_id: uuid.UUID, room_name: str) -> Optional[ExtractedRoomData]:
        return await self.find_one(task_id=task_id, room_name=room_name)

    async def get_by_task(self, task_id: uuid.UUID) -> List[ExtractedRoomData]:
        return await self.find_many(order_by=ExtractedRoomData.created_at, task_id=task_id)

    async def save_room(
        self,
        task_id: uuid.UUID,
        room_name: str,
        room_type: Optional[str] = None,
        area: Optional[float] = None,
        wall_area: Optional[float] = None,
        floor_area: Optional[float] = None,
        ceiling_area: Optional[float] = None,
        extracted_data: Optional[Dict[str, Any]] = None,
    ) -> ExtractedRoomData:
        """Insert or replace the record for one room.

        Args:
            task_id: Owning task
            room_name: Room name as listed by structure analysis
            room_type: Room type label
            area: Room area in m²
            wall_area: Wall area in m²
            floor_area: Floor area in m²
            ceiling_area: Ceiling area in m²
            extracted_data: Room profile and related JSON

        Returns:
            The stored row
        """
        return await self.upsert(
            key={"task_id": task_id, "room_name": room_name},
            values={
                "room_type": room_type,
                "area": area,
                "wall_area": wall_area,
                "floor_area": floor_area,
                "ceiling_area": ceiling_area,
                "extracted_data": extracted_data,
            },
        )
