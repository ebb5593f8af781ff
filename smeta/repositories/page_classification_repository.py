import uuid
from typing import Optional, List, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from smeta.database.models import PageClassification
from smeta.repositories.base_repository import BaseRepository


class PageClassificationRepository(BaseRepository[PageClassification]):
    """Repository for per-page classification rows.

    A (task_id, page_number) pair holds at most one row; saving the same
    page again overwrites it.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(session, PageClassification)

    async def save_page(
        self,
        task_id: uuid.UUID,
        page_number: int,
        page_type: str,
        room_name: Optional[str] = None,
        image_data_url: Optional[str] = None,
        commit: bool = True,
    ) -> PageClassification:
        """Insert or overwrite the classification of one page.

        Args:
            task_id: Owning task
            page_number: 1-indexed page number
            page_type: Page type value
            room_name: Room shown on the page
            image_data_url: Full-resolution page image as a data URL
            commit: Commit immediately; pass False when saving a batch

        Returns:
            The stored row
        """
        return await self.upsert(
            key={"task_id": task_id, "page_number": page_number},
            values={"page_type": page_type, "room_name": room_name, "image_data_url": image_data_url},
            commit=commit,
        )

    async def save_batch(self, task_id: uuid.UUID, rows: Sequence[dict]) -> List[PageClassification]:
        """Upsert several pages and commit once.

        Args:
            task_id: Owning task
            rows: Dicts with page_number, page_type, room_name, image_data_url

        Returns:
            Stored rows in input order
        """
        saved = []
        for row in rows:
            saved.append(
                await self.save_page(
                    task_id=task_id,
                    page_number=row["page_number"],
                    page_type=row["page_type"],
                    room_name=row.get("room_name"),
                    image_data_url=row.get("image_data_url"),
                    commit=False,
                )
            )
        await self.session.commit()
        return saved

    async def get_by_task(self, task_id: uuid.UUID) -> List[PageClassification]:
        return await self.find_many(order_by=PageClassification.page_number, task_id=task_id)

    async def get_by_type(self, task_id: uuid.UUID, page_type: str) -> List[PageClassification]:
        return await self.find_many(
            order_by=PageClassification.page_number, task_id=task_id, page_type=page_type
        )

    async def get_by_room(self, task_id: uuid.UUID, room_name: str) -> List[PageClassification]:
        """Exact room-name lookup; callers needing fuzzy matching filter get_by_task."""
        return await self.find_many(
            order_by=PageClassification.page_number, task_id=task_id, room_name=room_name
        )
