"""Database models."""

from smeta.database.models import (
    ExtractedRoomData,
    GenerationTask,
    IntermediateData,
    PageClassification,
)

__all__ = [
    "ExtractedRoomData",
    "GenerationTask",
    "IntermediateData",
    "PageClassification",
]
