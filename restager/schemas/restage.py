"""重新布置流程的领域模型"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Sequence, Union

from ..core.exceptions import UnsupportedModeError, ValidationError


class RoomType(str, Enum):
    BEDROOM = "bedroom"
    BATHROOM = "bathroom"
    LIVING_ROOM = "living_room"
    DINING_ROOM = "dining_room"
    KITCHEN = "kitchen"
    LIVING_DINING_KITCHEN = "living_dining_kitchen"
    LIVING_KITCHEN = "living_kitchen"
    OUTSIDE_SPACE = "outside_space"
    OTHER = "other"

    @property
    def label(self) -> str:
        return ROOM_TYPE_LABELS[self]

    @classmethod
    def parse(cls, value: Union[str, "RoomType"]) -> Union[str, "RoomType"]:
        """接受枚举值或界面上的显示名称；都不匹配时原样返回（自由文本房间类型）"""
        if isinstance(value, cls):
            return value
        text = (value or "").strip()
        for room_type, label in ROOM_TYPE_LABELS.items():
            if text.lower() in (room_type.value, label.lower()):
                return room_type
        return text


ROOM_TYPE_LABELS = {
    RoomType.BEDROOM: "Bedroom",
    RoomType.BATHROOM: "Bathroom",
    RoomType.LIVING_ROOM: "Living room",
    RoomType.DINING_ROOM: "Dining room",
    RoomType.KITCHEN: "Kitchen",
    RoomType.LIVING_DINING_KITCHEN: "Living room, Dining room, Kitchen combo",
    RoomType.LIVING_KITCHEN: "Living room/Kitchen combo",
    RoomType.OUTSIDE_SPACE: "Outside space",
    RoomType.OTHER: "Other - describe",
}


class DesignStyle(str, Enum):
    MODERN = "modern"
    CONTEMPORARY = "contemporary"
    MINIMALIST = "minimalist"
    INDUSTRIAL = "industrial"
    MID_CENTURY_MODERN = "mid_century_modern"
    SCANDINAVIAN = "scandinavian"
    BOHEMIAN = "bohemian"
    FARMHOUSE = "farmhouse"
    COASTAL = "coastal"
    WARM_AND_RUSTIC = "warm_and_rustic"


class FlooringMaterial(str, Enum):
    CARPET = "carpet"
    WOOD = "wood"
    TILE = "tile"
    LAMINATE = "laminate"


class TransformationMode(str, Enum):
    FURNISH = "furnish"
    EMPTY = "empty"
    REDESIGN = "redesign"
    ENHANCE = "enhance"
    RENOVATE = "renovate"
    DAY_TO_DUSK = "day_to_dusk"
    OUTDOOR = "outdoor"
    BLUE_SKY = "blue_sky"

    @classmethod
    def parse(cls, value: Union[str, "TransformationMode"]) -> "TransformationMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise UnsupportedModeError(value)


class SpaceType(str, Enum):
    INTERIOR = "interior"
    EXTERIOR = "exterior"


class TaskState(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ProcessingStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


@dataclass
class RestageOptions:
    repaint: bool = False
    paint_color: Optional[str] = None
    change_flooring: bool = False
    flooring_material: FlooringMaterial = FlooringMaterial.CARPET
    additional_instructions: Optional[str] = None
    transformation_mode: Union[TransformationMode, str] = TransformationMode.FURNISH
    update_flooring: bool = False
    block_decorative: bool = True
    space_type: SpaceType = SpaceType.INTERIOR


@dataclass
class RestageRequest:
    source_image: Union[bytes, str]
    mime_type: str = "image/jpeg"
    room_type: Union[RoomType, str] = RoomType.LIVING_ROOM
    custom_room_label: Optional[str] = None
    design_style: Union[DesignStyle, str] = DesignStyle.MODERN
    options: RestageOptions = field(default_factory=RestageOptions)

    def effective_room_label(self) -> str:
        room_type = RoomType.parse(self.room_type)
        if room_type is RoomType.OTHER:
            label = (self.custom_room_label or "").strip()
            if not label:
                raise ValidationError("Please describe the room type for images labeled 'Other'.")
            return label
        if isinstance(room_type, RoomType):
            return room_type.value
        if not room_type:
            raise ValidationError("Room type is required.")
        return room_type

    def validate(self) -> None:
        if self.source_image is None or (isinstance(self.source_image, (str, bytes)) and not self.source_image):
            raise ValidationError("Missing image data")
        self.effective_room_label()


@dataclass
class TaskStatus:
    """一次状态查询的归一化结果"""

    state: TaskState
    result_images: Sequence[str] = ()
    failure_reason: Optional[str] = None
    raw_state: Optional[str] = None


@dataclass
class Task:
    id: str
    submitted_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    state: TaskState = TaskState.PROCESSING
    result_images: List[str] = field(default_factory=list)
    failure_reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state in (TaskState.COMPLETED, TaskState.FAILED)

    def apply(self, status: TaskStatus) -> None:
        # completed / failed 之后不允许再变化
        if self.is_terminal:
            raise RuntimeError(f"Task {self.id} is already {self.state.value}")
        self.state = status.state
        if status.state is TaskState.COMPLETED:
            self.result_images = list(status.result_images)
        elif status.state is TaskState.FAILED:
            self.failure_reason = status.failure_reason


@dataclass
class ImageFile:
    """界面侧的单张上传图片及其处理状态"""

    id: str
    filename: str
    data: bytes
    mime_type: str = "image/jpeg"
    room_type: Union[RoomType, str] = RoomType.BEDROOM
    custom_room_label: str = ""
    design_style: Union[DesignStyle, str] = DesignStyle.MODERN
    options: RestageOptions = field(default_factory=RestageOptions)
    status: ProcessingStatus = ProcessingStatus.IDLE
    restaged_image: Optional[str] = None
    result_images: List[str] = field(default_factory=list)
    task_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_labeled(self) -> bool:
        room_type = RoomType.parse(self.room_type)
        if not room_type:
            return False
        if room_type is RoomType.OTHER:
            return bool((self.custom_room_label or "").strip())
        return True

    def to_request(self) -> RestageRequest:
        return RestageRequest(
            source_image=self.data,
            mime_type=self.mime_type,
            room_type=self.room_type,
            custom_room_label=self.custom_room_label,
            design_style=self.design_style,
            options=self.options,
        )
