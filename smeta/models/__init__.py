from smeta.models.estimate_models import (
    DetectedRegion,
    DetectionDimensions,
    LocatedPage,
    MaterialBill,
    MaterialBillItem,
    PageClassificationResult,
    PageImage,
    PageType,
    PlanType,
    ProjectRoom,
    ProjectStructure,
    Rect,
    RegionCrop,
    RegionType,
    RoomAreas,
    RoomProfile,
)

__all__ = [
    "DetectedRegion",
    "DetectionDimensions",
    "LocatedPage",
    "MaterialBill",
    "MaterialBillItem",
    "PageClassificationResult",
    "PageImage",
    "PageType",
    "PlanType",
    "ProjectRoom",
    "ProjectStructure",
    "Rect",
    "RegionCrop",
    "RegionType",
    "RoomAreas",
    "RoomProfile",
]
