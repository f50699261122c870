"""一次上传批次的会话状态

会话持有用户上传的图片及其标注、选项和处理状态，只存在于进程内存中。
clear_all() 会取消正在进行的轮询，之后到达的结果全部丢弃。
"""

import threading
import time
from dataclasses import fields
from typing import Iterable, List, Optional, Tuple, Union

from ..core.config import settings
from ..core.exceptions import ValidationError
from ..core.logging import logger
from ..schemas.restage import (
    DesignStyle, ImageFile, ProcessingStatus, RestageOptions, RoomType, TransformationMode
)
from ..utils.url_utils import guess_mime_type
from .restage_service import process_batch, process_image_file


# 按顺序匹配，第一个命中的关键字决定房间类型
_FILENAME_ROOM_KEYWORDS = [
    (("bedroom", "bed"), RoomType.BEDROOM),
    (("bathroom", "bath"), RoomType.BATHROOM),
    (("kitchen",), RoomType.KITCHEN),
    (("living",), RoomType.LIVING_ROOM),
    (("dining",), RoomType.DINING_ROOM),
    (("outside", "outdoor", "patio", "deck"), RoomType.OUTSIDE_SPACE),
]

_OPTION_FIELDS = {f.name for f in fields(RestageOptions)}
_IMAGE_FIELDS = {"room_type", "custom_room_label", "design_style", "mime_type"}

UNLABELED_MESSAGE = "Please describe the room type for images labeled 'Other'."


def detect_room_type_from_filename(filename):
    """根据文件名猜测房间类型，猜不出时默认卧室"""
    lower_name = (filename or "").lower()
    for keywords, room_type in _FILENAME_ROOM_KEYWORDS:
        if any(keyword in lower_name for keyword in keywords):
            return room_type
    return RoomType.BEDROOM


class RestageSession:
    def __init__(self, design_style=DesignStyle.MODERN, max_files=None, concurrency=None,
                 adapter=None, publishers=None, poll_config=None, fetch_results=False):
        self.design_style = design_style
        self.max_files = max_files or settings.MAX_FILES
        self.concurrency = concurrency
        self.images: List[ImageFile] = []
        self._pipeline_options = {
            "adapter": adapter,
            "publishers": publishers,
            "poll_config": poll_config,
            "fetch_results": fetch_results,
        }
        self._cancel_event = threading.Event()

    def add_files(self, files: Iterable[Union[Tuple[str, bytes], Tuple[str, bytes, str]]]) -> List[ImageFile]:
        """用新的一批文件替换当前图片；files 为 (filename, data[, mime_type]) 元组"""
        files = list(files)
        if len(files) > self.max_files:
            raise ValidationError(f"You can only upload a maximum of {self.max_files} images.")

        batch_id = int(time.time() * 1000)
        new_images = []
        for index, item in enumerate(files):
            filename, data = item[0], item[1]
            mime_type = item[2] if len(item) > 2 and item[2] else guess_mime_type(filename)
            new_images.append(ImageFile(
                id=f"{batch_id}-{index}",
                filename=filename,
                data=data,
                mime_type=mime_type,
                room_type=detect_room_type_from_filename(filename),
                design_style=self.design_style,
            ))
        self.images = new_images

        logger.info(
            f"Added {len(new_images)} images to session",
            data_size=sum(len(image.data) for image in new_images)
        )
        return new_images

    def get_image(self, image_id) -> ImageFile:
        for image in self.images:
            if image.id == image_id:
                return image
        raise ValidationError(f"Unknown image: {image_id}")

    def update_image(self, image_id, **updates) -> ImageFile:
        """更新单张图片的标注或选项，选项字段会写入 image.options"""
        image = self.get_image(image_id)
        for name, value in updates.items():
            if name == "room_type":
                image.room_type = RoomType.parse(value)
            elif name == "transformation_mode":
                image.options.transformation_mode = TransformationMode.parse(value)
            elif name in _OPTION_FIELDS:
                setattr(image.options, name, value)
            elif name in _IMAGE_FIELDS:
                setattr(image, name, value)
            else:
                raise ValidationError(f"Unknown image field: {name}")
        return image

    def set_design_style(self, design_style):
        self.design_style = design_style
        for image in self.images:
            image.design_style = design_style

    def all_labeled(self) -> bool:
        return all(image.is_labeled for image in self.images)

    def eligible_images(self) -> List[ImageFile]:
        return [image for image in self.images if image.is_labeled]

    async def restage_all(self) -> List[ImageFile]:
        """处理所有已标注的图片；未标注的图片直接标记为错误，不发起任何请求"""
        cancel_event = self._cancel_event
        eligible = []
        for image in self.images:
            if image.is_labeled:
                image.status = ProcessingStatus.PROCESSING
                image.error = None
                eligible.append(image)
            else:
                image.status = ProcessingStatus.ERROR
                image.error = UNLABELED_MESSAGE

        await process_batch(
            eligible,
            concurrency=self.concurrency,
            cancel_event=cancel_event,
            **self._pipeline_options
        )
        return eligible

    async def restage_one(self, image_id) -> ImageFile:
        image = self.get_image(image_id)
        if not image.is_labeled:
            image.status = ProcessingStatus.ERROR
            image.error = UNLABELED_MESSAGE
            return image
        return await process_image_file(image, cancel_event=self._cancel_event, **self._pipeline_options)

    def completed_images(self) -> List[ImageFile]:
        return [
            image for image in self.images
            if image.status is ProcessingStatus.DONE and image.restaged_image
        ]

    @property
    def is_processing(self) -> bool:
        return any(image.status is ProcessingStatus.PROCESSING for image in self.images)

    def clear_all(self, reason: Optional[str] = None):
        """清空会话；正在轮询的任务会在下一次检查时被取消"""
        self._cancel_event.set()
        self._cancel_event = threading.Event()
        cleared = len(self.images)
        self.images = []
        logger.info(
            f"Session cleared",
            cleared_count=cleared,
            reason=reason
        )
