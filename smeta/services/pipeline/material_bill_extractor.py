"""Transcribes material bill tables into structured items."""

from typing import Any, List, Optional, Sequence

from smeta.core.exceptions import ModelOutputError
from smeta.models.estimate_models import MaterialBill, MaterialBillItem
from smeta.prompts.system_prompts import MATERIAL_BILL_PROMPT
from smeta.services.vision.vision_adapter import VisionModelAdapter, image_part, text_part
from smeta.utils.coercion import ensure_list
from smeta.utils.logging import get_logger

LOGGER = get_logger(__name__)


def number_positions(items: Sequence[MaterialBillItem]) -> List[MaterialBillItem]:
    """Fill missing positions by counting on from the previous row."""
    numbered = []
    previous = 0
    for item in items:
        position = item.position if item.position is not None else previous + 1
        numbered.append(item.model_copy(update={"position": position}))
        previous = position
    return numbered


def normalize_bills(reply: Any, room_name: Optional[str] = None) -> List[MaterialBill]:
    """Turn a model reply into a list of bills.

    A single bill object becomes a one-element list, a bare list of items
    becomes one untitled bill. Items without a name are dropped.

    Raises:
        ModelOutputError: If a bill object does not fit the bill shape
    """
    if isinstance(reply, dict) and "bills" in reply:
        reply = reply["bills"]

    objects = [obj for obj in ensure_list(reply) if isinstance(obj, dict)]
    if objects and all("items" not in obj for obj in objects) and any("name" in obj for obj in objects):
        objects = [{"title": "", "items": objects}]

    bills = []
    for obj in objects:
        try:
            bill = MaterialBill.model_validate(obj)
        except ValueError as e:
            raise ModelOutputError(f"Malformed material bill: {e}", raw_excerpt=str(obj)[:500], original_error=e) from e
        items = [item for item in bill.items if item.name]
        if not items:
            LOGGER.info(f"Skipping bill '{bill.title}' with no items")
            continue
        bills.append(bill.model_copy(update={
            "items": number_positions(items),
            "room_name": bill.room_name or room_name,
        }))
    return bills


class MaterialBillExtractor:
    """Reads one or more material bill crops in a single request."""

    def __init__(self, adapter: VisionModelAdapter):
        self.adapter = adapter

    async def extract(self, images: Sequence[bytes], room_name: Optional[str] = None) -> List[MaterialBill]:
        """Extract bills from table images.

        Args:
            images: JPEG crops of bill tables
            room_name: Room the tables belong to, used when the model omits it

        Returns:
            One MaterialBill per recognizable table

        Raises:
            ModelOutputError: If the reply is not JSON
            APIClientError: On transport failure
        """
        if not images:
            return []

        parts = []
        if room_name:
            parts.append(text_part(f"Room: {room_name}"))
        for index, image in enumerate(images):
            parts.append(text_part(f"Table {index + 1}:"))
            parts.append(image_part(image))

        reply = await self.adapter.call_json(MATERIAL_BILL_PROMPT, parts)
        bills = normalize_bills(reply, room_name)

        LOGGER.info(
            f"Extracted {len(bills)} material bills",
            extra={"room_name": room_name, "items": sum(len(b.items) for b in bills)}
        )
        return bills
