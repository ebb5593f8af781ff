from smeta.repositories.base_repository import BaseRepository
from smeta.repositories.generation_task_repository import GenerationTaskRepository
from smeta.repositories.intermediate_data_repository import IntermediateDataRepository
from smeta.repositories.page_classification_repository import PageClassificationRepository
from smeta.repositories.room_data_repository import RoomDataRepository

__all__ = [
    "BaseRepository",
    "GenerationTaskRepository",
    "IntermediateDataRepository",
    "PageClassificationRepository",
    "RoomDataRepository",
]
