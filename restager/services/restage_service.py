import asyncio
import functools
import traceback
import uuid
from dataclasses import dataclass
from typing import List, Optional

from ..core.config import settings
from ..core.exceptions import MissingResultError, RestageCancelled, RestageError, describe_error
from ..core.logging import logger
from ..schemas.restage import ProcessingStatus, Task
from ..utils.decorators import monitor_async_performance
from ..utils.image_utils import download_image, to_data_uri, to_image_reference
from ..utils.url_utils import is_http_url
from .image_publisher import publish_image
from .prompt_builder import RestagePrompt, build_prompt
from .providers.registry import get_adapter
from .task_poller import poll_task


@dataclass
class RestageResult:
    images: List[str]
    provider: str
    task_id: Optional[str] = None
    prompt: Optional[RestagePrompt] = None

    @property
    def image(self):
        return self.images[0]


async def _run_blocking(func, *args, **kwargs):
    # 在异步环境中调用同步函数
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


def _check_cancelled(cancel_event):
    if cancel_event is not None and cancel_event.is_set():
        raise RestageCancelled()


async def _fetch_results(images, request_id):
    """服务商返回的URL很快会过期，需要时立即下载并转成 data URI"""
    fetched = []
    for image in images:
        if is_http_url(image):
            data, mime_type = await _run_blocking(download_image, image, request_id=request_id)
            fetched.append(to_data_uri(data, mime_type))
        else:
            fetched.append(image)
    return fetched


@monitor_async_performance("Restage Pipeline")
async def restage(request, adapter=None, publishers=None, poll_config=None, cancel_event=None,
                  fetch_results=False, request_id='unknown'):
    """单张图片的完整流程：校验 → 生成提示词 → (上传图床) → 提交 → (轮询) → 结果"""
    request.validate()
    room_label = request.effective_room_label()
    prompt = build_prompt(room_label, request.design_style, request.options)

    adapter = adapter or get_adapter()
    image_ref = to_image_reference(request.source_image, request.mime_type)

    logger.info(
        f"Starting restage",
        request_id=request_id,
        provider=adapter.name,
        room_type=room_label,
        design_style=str(getattr(request.design_style, 'value', request.design_style)),
        transformation_type=str(getattr(request.options.transformation_mode, 'value', request.options.transformation_mode))
    )

    if adapter.requires_public_url and not is_http_url(image_ref):
        image_ref = await _run_blocking(publish_image, image_ref, publishers, request_id=request_id)
    _check_cancelled(cancel_event)

    submitted = await _run_blocking(
        adapter.submit, image_ref, prompt.text, request.mime_type, request_id=request_id
    )
    _check_cancelled(cancel_event)

    if submitted.is_async:
        task = Task(id=submitted.task_id)
        images = await poll_task(
            task, adapter.check_status, config=poll_config,
            cancel_event=cancel_event, request_id=request_id
        )
    else:
        images = list(submitted.images)

    if not images:
        raise MissingResultError("No restaged image was returned from the AI provider.")

    if fetch_results:
        images = await _fetch_results(images, request_id)

    return RestageResult(images=images, provider=adapter.name, task_id=submitted.task_id, prompt=prompt)


async def process_image_file(image_file, adapter=None, publishers=None, poll_config=None,
                             cancel_event=None, fetch_results=False, request_id=None):
    """驱动单张图片的状态：idle → processing → done / error

    所有异常都在这里转换为错误信息，不会影响其他图片的处理。
    """
    request_id = request_id or str(uuid.uuid4())
    image_file.status = ProcessingStatus.PROCESSING
    image_file.error = None

    try:
        result = await restage(
            image_file.to_request(),
            adapter=adapter,
            publishers=publishers,
            poll_config=poll_config,
            cancel_event=cancel_event,
            fetch_results=fetch_results,
            request_id=request_id,
        )
    except RestageCancelled:
        logger.info(
            f"Restage cancelled, discarding result",
            request_id=request_id,
            url=image_file.filename
        )
        image_file.status = ProcessingStatus.IDLE
        return image_file
    except RestageError as e:
        logger.error(
            f"Restage failed",
            request_id=request_id,
            url=image_file.filename,
            error_type=type(e).__name__,
            error_message=str(e)
        )
        image_file.status = ProcessingStatus.ERROR
        image_file.error = describe_error(e)
        return image_file
    except Exception as e:
        logger.error(
            f"Unexpected error during restage",
            request_id=request_id,
            url=image_file.filename,
            error_type=type(e).__name__,
            error_message=str(e),
            stack_trace=traceback.format_exc()
        )
        image_file.status = ProcessingStatus.ERROR
        image_file.error = describe_error(e)
        return image_file

    if cancel_event is not None and cancel_event.is_set():
        image_file.status = ProcessingStatus.IDLE
        return image_file

    image_file.status = ProcessingStatus.DONE
    image_file.task_id = result.task_id
    image_file.result_images = list(result.images)
    image_file.restaged_image = result.image
    return image_file


def _release_cancelled(image_file, request_id):
    """批量处理被取消后，尚未开始的图片退回 idle"""
    if image_file.status is ProcessingStatus.PROCESSING:
        image_file.status = ProcessingStatus.IDLE
        logger.debug(
            f"Skipping cancelled image",
            request_id=request_id,
            url=image_file.filename
        )
    return image_file


async def process_batch(image_files, concurrency=None, cancel_event=None, **kwargs):
    """批量处理；默认逐张顺序执行，concurrency > 1 时用信号量限制并发"""
    concurrency = concurrency or settings.MAX_CONCURRENT_RESTAGES
    request_id = str(uuid.uuid4())

    logger.info(
        f"Starting batch restage of {len(image_files)} images",
        request_id=request_id,
        concurrency=concurrency
    )

    if concurrency <= 1:
        for image_file in image_files:
            if cancel_event is not None and cancel_event.is_set():
                _release_cancelled(image_file, request_id)
                continue
            await process_image_file(image_file, cancel_event=cancel_event, **kwargs)
    else:
        semaphore = asyncio.Semaphore(concurrency)

        async def _bounded(image_file):
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    return _release_cancelled(image_file, request_id)
                return await process_image_file(image_file, cancel_event=cancel_event, **kwargs)

        await asyncio.gather(*[_bounded(image_file) for image_file in image_files])

    # 记录失败的图片
    failed = [image_file for image_file in image_files if image_file.status is ProcessingStatus.ERROR]
    if failed:
        logger.warning(
            f"Some images failed to restage",
            request_id=request_id,
            failed_count=len(failed),
            failed_files=[image_file.filename for image_file in failed[:5]]
        )
    return image_files
