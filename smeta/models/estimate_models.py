"""Data models for the floor-plan analysis pipeline.

These models sit between the vision model's loosely typed JSON replies and
the rest of the application. Numeric fields are coerced leniently ("12,5 м²"
becomes 12.5) but never invented: anything unreadable becomes None.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from smeta.utils.coercion import coerce_float, coerce_int, coerce_str, ensure_list


class PageType(str, Enum):
    """Kinds of pages found in an interior design project."""

    PLAN = "plan"
    WALL_LAYOUT = "wall_layout"
    SPECIFICATION = "specification"
    VISUALIZATION = "visualization"
    OTHER = "other"

    @classmethod
    def coerce(cls, value: Any) -> "PageType":
        """Map a model-provided label onto a page type, defaulting to OTHER."""
        if isinstance(value, cls):
            return value
        label = str(value or "").strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(label)
        except ValueError:
            return cls.OTHER


class PlanType(str, Enum):
    """Which state of the apartment a floor plan shows."""

    ORIGINAL = "original"
    RENOVATED = "renovated"
    BOTH = "both"

    @classmethod
    def coerce(cls, value: Any) -> "PlanType":
        label = str(value or "").strip().lower()
        try:
            return cls(label)
        except ValueError:
            return cls.BOTH


class RegionType(str, Enum):
    """Semantic type of a detected page region."""

    TABLE = "table"
    SPECIFICATION = "specification"
    DIMENSIONS = "dimensions"
    LEGEND = "legend"
    NOTE = "note"

    @classmethod
    def coerce(cls, value: Any) -> "RegionType":
        label = str(value or "").strip().lower()
        try:
            return cls(label)
        except ValueError:
            return cls.NOTE


class PageImage(BaseModel):
    """A rendered PDF page held in memory."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    page_number: int = Field(..., ge=1, description="1-indexed page number")
    image: bytes = Field(..., repr=False, description="Full-resolution JPEG bytes")
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    thumbnail: Optional[bytes] = Field(None, repr=False)


class PageClassificationResult(BaseModel):
    """Classification result for a single page."""

    page_number: int = Field(..., ge=1, description="1-indexed page number")
    page_type: PageType = Field(PageType.OTHER, description="Classified page type")
    room_name: Optional[str] = Field(None, description="Room shown on the page, if any")

    @field_validator("page_type", mode="before")
    @classmethod
    def _coerce_page_type(cls, value: Any) -> PageType:
        return PageType.coerce(value)

    @field_validator("room_name", mode="before")
    @classmethod
    def _coerce_room_name(cls, value: Any) -> Optional[str]:
        return coerce_str(value)


class Rect(BaseModel):
    """Axis-aligned pixel rectangle."""

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    @field_validator("x", "y", "width", "height", mode="before")
    @classmethod
    def _coerce_pixels(cls, value: Any) -> int:
        number = coerce_int(value)
        return number if number is not None else 0

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


class DetectedRegion(BaseModel):
    """A region the vision model located on a page image."""

    page_index: int = Field(0, ge=0, description="0-indexed position in the input batch")
    rect: Rect
    region_type: RegionType = RegionType.NOTE
    description: str = ""

    @field_validator("region_type", mode="before")
    @classmethod
    def _coerce_region_type(cls, value: Any) -> RegionType:
        return RegionType.coerce(value)

    @field_validator("description", mode="before")
    @classmethod
    def _coerce_description(cls, value: Any) -> str:
        return coerce_str(value) or ""


class LocatedPage(BaseModel):
    """All regions found on one input image, in input order."""

    page_index: int = Field(..., ge=0)
    regions: List[DetectedRegion] = Field(default_factory=list)
    plan_type: Optional[PlanType] = None


class DetectionDimensions(BaseModel):
    """True image size versus the size the model actually saw."""

    original_width: int
    original_height: int
    detection_width: int
    detection_height: int

    @property
    def scale_x(self) -> float:
        if self.detection_width <= 0:
            return 1.0
        return self.original_width / self.detection_width

    @property
    def scale_y(self) -> float:
        if self.detection_height <= 0:
            return 1.0
        return self.original_height / self.detection_height

    @property
    def is_resized(self) -> bool:
        return (
            self.original_width != self.detection_width
            or self.original_height != self.detection_height
        )


class ProjectRoom(BaseModel):
    """A room as listed in an area table (explication)."""

    name: str = ""
    type: Optional[str] = None
    area: Optional[float] = Field(None, description="m², only when printed in a table")
    plan_type: PlanType = PlanType.BOTH
    source: Optional[str] = Field(None, description="Which table or page the row came from")

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> str:
        return coerce_str(value) or ""

    @field_validator("type", "source", mode="before")
    @classmethod
    def _coerce_optional_str(cls, value: Any) -> Optional[str]:
        return coerce_str(value)

    @field_validator("area", mode="before")
    @classmethod
    def _coerce_area(cls, value: Any) -> Optional[float]:
        return coerce_float(value)

    @field_validator("plan_type", mode="before")
    @classmethod
    def _coerce_plan_type(cls, value: Any) -> PlanType:
        return PlanType.coerce(value)


class ProjectStructure(BaseModel):
    """Apartment-level summary produced by structure analysis."""

    total_area: Optional[float] = None
    address: Optional[str] = None
    room_count: int = 0
    rooms: List[ProjectRoom] = Field(default_factory=list)
    plan_types: List[PlanType] = Field(default_factory=list)

    @field_validator("total_area", mode="before")
    @classmethod
    def _coerce_total_area(cls, value: Any) -> Optional[float]:
        return coerce_float(value)

    @field_validator("address", mode="before")
    @classmethod
    def _coerce_address(cls, value: Any) -> Optional[str]:
        return coerce_str(value)

    @field_validator("rooms", mode="before")
    @classmethod
    def _coerce_rooms(cls, value: Any) -> List[Any]:
        return [room for room in ensure_list(value) if isinstance(room, (dict, ProjectRoom))]


class MaterialBillItem(BaseModel):
    """One row of a material bill (ведомость материалов)."""

    position: Optional[int] = None
    name: str = ""
    unit: Optional[str] = None
    quantity: Optional[float] = None
    article: Optional[str] = None
    brand: Optional[str] = None
    manufacturer: Optional[str] = None
    description: Optional[str] = None

    @field_validator("position", mode="before")
    @classmethod
    def _coerce_position(cls, value: Any) -> Optional[int]:
        return coerce_int(value)

    @field_validator("quantity", mode="before")
    @classmethod
    def _coerce_quantity(cls, value: Any) -> Optional[float]:
        return coerce_float(value)

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> str:
        return coerce_str(value) or ""

    @field_validator("unit", "article", "brand", "manufacturer", "description", mode="before")
    @classmethod
    def _coerce_optional_str(cls, value: Any) -> Optional[str]:
        return coerce_str(value)


class MaterialBill(BaseModel):
    title: str = ""
    room_name: Optional[str] = None
    items: List[MaterialBillItem] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, value: Any) -> str:
        return coerce_str(value) or ""

    @field_validator("room_name", mode="before")
    @classmethod
    def _coerce_room_name(cls, value: Any) -> Optional[str]:
        return coerce_str(value)

    @field_validator("items", mode="before")
    @classmethod
    def _coerce_items(cls, value: Any) -> List[Any]:
        return [item for item in ensure_list(value) if isinstance(item, (dict, MaterialBillItem))]


class SurfaceFinish(BaseModel):
    """Finish applied to a wall, floor or ceiling surface."""

    name: str = ""
    material: Optional[str] = None
    color: Optional[str] = None
    area: Optional[float] = None
    notes: Optional[str] = None

    @field_validator("area", mode="before")
    @classmethod
    def _coerce_area(cls, value: Any) -> Optional[float]:
        return coerce_float(value)

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: Any) -> str:
        return coerce_str(value) or ""

    @field_validator("material", "color", "notes", mode="before")
    @classmethod
    def _coerce_optional_str(cls, value: Any) -> Optional[str]:
        return coerce_str(value)


class ElectricalPoints(BaseModel):
    sockets: Optional[int] = None
    switches: Optional[int] = None
    light_fixtures: Optional[int] = None
    other: List[str] = Field(default_factory=list)

    @field_validator("sockets", "switches", "light_fixtures", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> Optional[int]:
        return coerce_int(value)

    @field_validator("other", mode="before")
    @classmethod
    def _coerce_other(cls, value: Any) -> List[str]:
        return [str(item) for item in ensure_list(value) if coerce_str(item)]


class Opening(BaseModel):
    """Door or window opening."""

    type: str = "door"
    width: Optional[float] = None
    height: Optional[float] = None
    count: int = 1

    @field_validator("width", "height", mode="before")
    @classmethod
    def _coerce_size(cls, value: Any) -> Optional[float]:
        return coerce_float(value)

    @field_validator("count", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        number = coerce_int(value)
        return number if number is not None and number > 0 else 1


class RoomDimensions(BaseModel):
    length: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    area: Optional[float] = None
    perimeter: Optional[float] = None

    @field_validator("length", "width", "height", "area", "perimeter", mode="before")
    @classmethod
    def _coerce_measure(cls, value: Any) -> Optional[float]:
        return coerce_float(value)


class RoomProfile(BaseModel):
    """Detailed finishing data for one room."""

    room_name: str
    room_type: Optional[str] = None
    wall_materials: List[SurfaceFinish] = Field(default_factory=list)
    floor_materials: List[SurfaceFinish] = Field(default_factory=list)
    ceiling_materials: List[SurfaceFinish] = Field(default_factory=list)
    electrical: ElectricalPoints = Field(default_factory=ElectricalPoints)
    openings: List[Opening] = Field(default_factory=list)
    dimensions: RoomDimensions = Field(default_factory=RoomDimensions)
    notes: List[str] = Field(default_factory=list)

    @field_validator("wall_materials", "floor_materials", "ceiling_materials", "openings", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> List[Any]:
        return ensure_list(value)

    @field_validator("electrical", "dimensions", mode="before")
    @classmethod
    def _coerce_objects(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else {}

    @field_validator("notes", mode="before")
    @classmethod
    def _coerce_notes(cls, value: Any) -> List[str]:
        return [str(item) for item in ensure_list(value) if coerce_str(item)]

    @field_validator("room_type", mode="before")
    @classmethod
    def _coerce_room_type(cls, value: Any) -> Optional[str]:
        return coerce_str(value)


class RoomAreas(BaseModel):
    """Resolved numeric areas persisted with a room."""

    area: Optional[float] = None
    wall_area: Optional[float] = None
    floor_area: Optional[float] = None
    ceiling_area: Optional[float] = None


class RegionCrop(BaseModel):
    """A cropped region ready to be sent to the model."""

    region: DetectedRegion
    page_number: int = Field(..., ge=1)
    image: bytes = Field(..., repr=False)

    @property
    def label(self) -> str:
        text = f"{self.region.region_type.value}"
        if self.region.description:
            text += f": {self.region.description}"
        return text
