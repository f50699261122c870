"""有上限的任务轮询

服务商没有推送通道，只能按固定间隔查询状态：
completed 立即返回结果，failed 立即终止且不重试，processing 继续下一次；
次数用完仍未结束则抛出 TaskTimeoutError。
"""

import asyncio
import functools
import inspect
import time
from dataclasses import dataclass
from typing import Optional

from ..core.config import settings
from ..core.exceptions import ProviderError, RestageCancelled, TaskFailedError, TaskTimeoutError
from ..core.logging import logger
from ..schemas.restage import TaskState


@dataclass(frozen=True)
class PollConfig:
    interval_ms: int = 2000
    max_attempts: int = 60
    first_delay_ms: Optional[int] = None

    @classmethod
    def from_settings(cls):
        return cls(
            interval_ms=settings.POLL_INTERVAL_MS,
            max_attempts=settings.POLL_MAX_ATTEMPTS,
            first_delay_ms=settings.POLL_FIRST_DELAY_MS,
        )

    def delay_for(self, attempt):
        if attempt == 1 and self.first_delay_ms is not None:
            return self.first_delay_ms / 1000
        return self.interval_ms / 1000


async def _call_check_status(check_status, task_id, request_id):
    if inspect.iscoroutinefunction(check_status):
        return await check_status(task_id, request_id=request_id)
    # 在异步环境中调用同步函数
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(
        None,
        functools.partial(check_status, task_id, request_id=request_id)
    )


def _raise_if_cancelled(cancel_event, task):
    if cancel_event is not None and cancel_event.is_set():
        raise RestageCancelled(f"Polling for task {task.id} was cancelled")


async def poll_task(task, check_status, config=None, cancel_event=None, request_id='unknown'):
    """轮询直到任务结束，返回结果图片列表

    check_status(task_id, request_id=...) 可以是同步函数或协程函数。
    同一个任务的查询严格串行；单次查询的临时性错误只消耗一次机会，不会中断整个轮询。
    """
    config = config or PollConfig.from_settings()
    started = time.monotonic()

    for attempt in range(1, config.max_attempts + 1):
        _raise_if_cancelled(cancel_event, task)
        await asyncio.sleep(config.delay_for(attempt))
        _raise_if_cancelled(cancel_event, task)

        try:
            status = await _call_check_status(check_status, task.id, request_id)
        except ProviderError as e:
            if not e.is_transient:
                raise
            logger.warning(
                f"Status check failed, will retry",
                request_id=request_id,
                task_id=task.id,
                attempt=attempt,
                error_type=type(e).__name__,
                error_message=str(e)
            )
            continue

        # 取消后晚到的结果直接丢弃
        _raise_if_cancelled(cancel_event, task)
        task.apply(status)

        if task.state is TaskState.COMPLETED:
            logger.info(
                f"Task completed",
                request_id=request_id,
                task_id=task.id,
                attempt=attempt,
                duration=f"{time.monotonic() - started:.3f}s"
            )
            return list(task.result_images)

        if task.state is TaskState.FAILED:
            logger.warning(
                f"Task failed at provider",
                request_id=request_id,
                task_id=task.id,
                attempt=attempt,
                state=status.raw_state,
                error_message=task.failure_reason
            )
            raise TaskFailedError(task.failure_reason)

        logger.debug(
            f"Task still processing",
            request_id=request_id,
            task_id=task.id,
            attempt=attempt,
            state=status.raw_state
        )

    elapsed_ms = int((time.monotonic() - started) * 1000)
    logger.warning(
        f"Task polling timed out",
        request_id=request_id,
        task_id=task.id,
        attempt=config.max_attempts,
        duration=f"{elapsed_ms / 1000:.3f}s"
    )
    raise TaskTimeoutError(elapsed_ms, config.max_attempts)
