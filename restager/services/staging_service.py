"""/stage 和 /status 代理接口的业务逻辑

前端不持有密钥，由这里补上 Kie.ai 的密钥并把响应整理成统一格式。
这两个接口只负责创建任务和单次查询，轮询由调用方完成。
"""

import asyncio
import functools

from ..core.exceptions import (
    ConfigurationError, MissingResultError, ProviderError, RestageError, ValidationError, http_status_for
)
from ..core.logging import logger
from ..schemas.restage import RestageOptions, TaskState, TransformationMode
from ..utils.image_utils import to_image_reference
from .prompt_builder import build_prompt
from .providers.registry import get_adapter

STAGE_PROVIDER = "kie"
STAGE_PROVIDER_LABEL = "kie.ai"
ESTIMATED_TIME = "20-30 seconds"
PROCESSING_MESSAGE = "Task is still being processed"

_PROXY_STATUS_MESSAGES = {
    401: "Unauthorized: Invalid Kie.ai API key",
    402: "Insufficient credits in Kie.ai account",
    429: "Rate limit exceeded. Please try again in a moment.",
}


async def _run_blocking(func, *args, **kwargs):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


def _stage_prompt(body):
    options = RestageOptions(
        transformation_mode=TransformationMode.parse(body.transformation_type),
        update_flooring=body.update_flooring,
        block_decorative=body.block_decorative,
        space_type=body.space_type,
    )
    return build_prompt(body.room_type, body.design_style, options)


async def create_stage_task(body, request_id='unknown'):
    """提交任务，立即返回 taskId，不等待结果"""
    if not body.image or not body.image.strip():
        raise ValidationError("Missing image data")
    adapter = get_adapter(STAGE_PROVIDER)
    prompt = _stage_prompt(body)

    logger.info(
        f"Stage request accepted",
        request_id=request_id,
        transformation_type=body.transformation_type,
        room_type=body.room_type,
        design_style=body.design_style,
        prompt_length=len(prompt.text)
    )

    image_ref = to_image_reference(body.image)
    submitted = await _run_blocking(adapter.submit, image_ref, prompt.text, request_id=request_id)
    task_id = submitted.task_id

    return {
        'success': True,
        'status': TaskState.PROCESSING.value,
        'taskId': task_id,
        'message': f"Task created successfully. Poll /status?taskId={task_id} for results.",
        'provider': STAGE_PROVIDER_LABEL,
        'estimatedTime': ESTIMATED_TIME,
    }


async def check_stage_status(task_id, request_id='unknown'):
    """查询一次任务状态；failed 以 200 返回，由调用方决定是否重新提交"""
    if not task_id or not task_id.strip():
        raise ValidationError("Missing task ID")
    adapter = get_adapter(STAGE_PROVIDER)
    status = await _run_blocking(adapter.check_status, task_id.strip(), request_id=request_id)

    if status.state is TaskState.COMPLETED:
        return {
            'success': True,
            'status': TaskState.COMPLETED.value,
            'images': list(status.result_images),
        }
    if status.state is TaskState.FAILED:
        return {
            'success': False,
            'status': TaskState.FAILED.value,
            'error': status.failure_reason,
        }
    return {
        'success': True,
        'status': TaskState.PROCESSING.value,
        'message': PROCESSING_MESSAGE,
    }


def proxy_error(exc, default_message):
    """异常 → (HTTP状态码, 响应体)，响应体统一为 {success: false, error}"""
    status_code = http_status_for(exc)

    if isinstance(exc, ConfigurationError):
        message = "Kie.ai API key not configured"
    elif isinstance(exc, ProviderError) and status_code in _PROXY_STATUS_MESSAGES:
        message = _PROXY_STATUS_MESSAGES[status_code]
    elif isinstance(exc, ProviderError) and 'api key' in exc.message.lower():
        message = "Invalid Kie.ai API key. Please check your configuration."
    elif isinstance(exc, MissingResultError):
        message = "Task completed but no result images were found in the provider response"
    elif isinstance(exc, RestageError):
        message = exc.message or default_message
    else:
        message = str(exc) or default_message

    return status_code, {'success': False, 'error': message}
