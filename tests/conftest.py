"""
测试公共夹具

服务商调用不会离开进程：适配器换成假实现，requests 会话换成返回预设响应的 MagicMock。
"""

from unittest.mock import MagicMock

import pytest

from restager.schemas.restage import TaskState, TaskStatus
from restager.services.providers import registry
from restager.services.providers.base import ASYNC, SYNC, SubmitResult
from restager.services.task_poller import PollConfig

SAMPLE_JPEG = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 32


def make_response(status_code=200, json_data=None, text="", reason="OK"):
    """构造一个假的 requests.Response"""
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.reason = reason
    response.text = text
    if json_data is None:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = json_data
    return response


class FakeAsyncAdapter:
    """按预设顺序返回状态的异步（提交 + 轮询）服务商"""

    name = "fake-async"
    protocol = ASYNC

    def __init__(self, statuses, task_id="task-123", requires_public_url=False):
        self.statuses = list(statuses)
        self.task_id = task_id
        self.requires_public_url = requires_public_url
        self.submitted = []
        self.checked = []

    def submit(self, image, prompt, mime_type="image/jpeg", request_id="unknown"):
        self.submitted.append((image, prompt, mime_type))
        return SubmitResult(task_id=self.task_id)

    def check_status(self, task_id, request_id="unknown"):
        self.checked.append(task_id)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(status, Exception):
            raise status
        return status


class FakeSyncAdapter:
    name = "fake-sync"
    protocol = SYNC
    requires_public_url = False

    def __init__(self, image="data:image/png;base64,cmVzdWx0", error=None):
        self.image = image
        self.error = error
        self.submitted = []

    def submit(self, image, prompt, mime_type="image/jpeg", request_id="unknown"):
        self.submitted.append((image, prompt, mime_type))
        if self.error is not None:
            raise self.error
        return SubmitResult(images=[self.image])

    def check_status(self, task_id, request_id="unknown"):
        raise AssertionError("synchronous providers are never polled")


def processing():
    return TaskStatus(state=TaskState.PROCESSING, raw_state="generating")


def completed(*images):
    return TaskStatus(
        state=TaskState.COMPLETED,
        result_images=images or ("https://cdn.example.com/result.png",),
        raw_state="success",
    )


def failed(reason="Content policy violation"):
    return TaskStatus(state=TaskState.FAILED, failure_reason=reason, raw_state="fail")


@pytest.fixture
def fast_poll():
    """不真正等待的轮询配置"""
    return PollConfig(interval_ms=0, max_attempts=3)


@pytest.fixture
def mock_session():
    """requests.Session 的替身"""
    return MagicMock()


@pytest.fixture(autouse=True)
def clear_adapter_cache():
    registry._ADAPTERS.clear()
    yield
    registry._ADAPTERS.clear()
