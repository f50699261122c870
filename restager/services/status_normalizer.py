"""把各服务商不一致的任务状态映射到 processing / completed / failed 三种状态"""

import json
import threading

from ..core.exceptions import MissingResultError
from ..core.logging import logger
from ..schemas.restage import TaskState, TaskStatus
from ..utils.lookup import first_present, first_value, is_present, lookup_path


STATE_TABLE = {
    'success': TaskState.COMPLETED,
    'successful': TaskState.COMPLETED,
    'completed': TaskState.COMPLETED,
    'fail': TaskState.FAILED,
    'failed': TaskState.FAILED,
    'processing': TaskState.PROCESSING,
    'queuing': TaskState.PROCESSING,
    'generating': TaskState.PROCESSING,
}

STATE_FIELDS = ('data.state', 'state', 'status', 'data.status')

RESULT_JSON_FIELDS = ('data.resultJson', 'resultJson')

RESULT_IMAGE_FIELDS = (
    'data.result.images',
    'data.result.output_url',
    'data.output_url',
    'data.images',
    'result.images',
    'result.output_url',
    'output_url',
    'images',
)

FAILURE_REASON_FIELDS = ('data.failMsg', 'data.fail_msg', 'data.error', 'error')
FAILURE_CODE_FIELDS = ('data.failCode', 'data.fail_code')

_seen_unknown_states = set()
_seen_lock = threading.Lock()


def _warn_unknown_state(raw_state):
    with _seen_lock:
        if raw_state in _seen_unknown_states:
            return
        _seen_unknown_states.add(raw_state)
    logger.warning(
        f"Unrecognized task state '{raw_state}', treating as processing",
        state=raw_state
    )


def normalize_state(raw_state):
    """未知状态一律视为 processing，只在第一次出现时记录警告"""
    if raw_state is None:
        return TaskState.PROCESSING
    key = str(raw_state).strip().lower()
    state = STATE_TABLE.get(key)
    if state is None:
        if key:
            _warn_unknown_state(key)
        return TaskState.PROCESSING
    return state


def _as_url_list(value):
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        urls = []
        for item in value:
            if isinstance(item, str) and item.strip():
                urls.append(item)
            elif isinstance(item, dict):
                url = first_value(item, ('url', 'output_url', 'image_url'))
                if url:
                    urls.append(url)
        return urls
    return []


def _parse_result_json(payload, task_id):
    _, raw = first_present(payload, RESULT_JSON_FIELDS)
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            logger.warning(
                f"Failed to parse resultJson",
                task_id=task_id,
                error_type=type(e).__name__,
                error_message=str(e)
            )
            return []
    if not isinstance(raw, dict):
        return []
    return _as_url_list(raw.get('resultUrls'))


def extract_result_images(payload, task_id=None):
    images = _parse_result_json(payload, task_id)
    if images:
        return images
    for path in RESULT_IMAGE_FIELDS:
        images = _as_url_list(lookup_path(payload, path))
        if images:
            return images
    return []


def extract_failure_reason(payload):
    reason = first_value(payload, FAILURE_REASON_FIELDS, default='Task failed')
    code = first_value(payload, FAILURE_CODE_FIELDS)
    if is_present(code):
        reason = f"{reason} (Code: {code})"
    return str(reason)


def normalize_status(payload, task_id=None):
    """把服务商的原始状态响应转换为 TaskStatus"""
    _, raw_state = first_present(payload, STATE_FIELDS)
    state = normalize_state(raw_state)

    if state is TaskState.COMPLETED:
        images = extract_result_images(payload, task_id)
        if not images:
            label = f"Task {task_id}" if task_id else "Task"
            raise MissingResultError(
                f"{label} reported '{raw_state}' but no result image was found in the response"
            )
        return TaskStatus(state=state, result_images=tuple(images), raw_state=raw_state)

    if state is TaskState.FAILED:
        return TaskStatus(state=state, failure_reason=extract_failure_reason(payload), raw_state=raw_state)

    return TaskStatus(state=TaskState.PROCESSING, raw_state=raw_state)
