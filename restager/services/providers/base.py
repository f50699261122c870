"""服务商适配器接口

同步服务商（Gemini、OpenAI）一次调用直接返回图片；
异步服务商（Kie.ai）提交后只返回 taskId，需要再通过 check_status 轮询。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol, Sequence

from ...core.exceptions import ProviderError
from ...schemas.restage import TaskStatus
from ...utils.lookup import first_value


SYNC = "sync"
ASYNC = "async"

ERROR_MESSAGE_FIELDS = ('message', 'msg', 'error.message', 'error', 'detail')


@dataclass
class SubmitResult:
    images: Sequence[str] = ()
    task_id: Optional[str] = None
    raw_response: Mapping[str, Any] = field(default_factory=dict)

    @property
    def is_async(self) -> bool:
        return self.task_id is not None


class ProviderAdapter(Protocol):
    name: str
    protocol: str
    requires_public_url: bool

    def submit(
        self,
        image: str,
        prompt: str,
        mime_type: str = "image/jpeg",
        request_id: str = "unknown",
    ) -> SubmitResult:
        ...

    def check_status(self, task_id: str, request_id: str = "unknown") -> TaskStatus:
        ...


class SynchronousProvider:
    """同步服务商的公共部分：没有任务可以查询"""

    protocol = SYNC
    requires_public_url = False

    def check_status(self, task_id: str, request_id: str = "unknown") -> TaskStatus:
        raise ProviderError(f"{self.name} returns results synchronously and has no task {task_id} to check")


def parse_json_body(response, provider_label: str) -> Mapping[str, Any]:
    """解析JSON响应体，非JSON或非对象时视为响应格式异常"""
    try:
        data = response.json()
    except ValueError:
        raise ProviderError(
            f"{provider_label} returned a non-JSON response",
            http_status=response.status_code if not response.ok else None,
        )
    if not isinstance(data, Mapping):
        raise ProviderError(f"{provider_label} returned an unexpected response body")
    return data


def error_message_from(data: Mapping[str, Any], default: str) -> str:
    message = first_value(data, ERROR_MESSAGE_FIELDS)
    if isinstance(message, str) and message.strip():
        return message.strip()
    return default


def envelope_status(code: Any) -> Optional[int]:
    """响应体中的 code 字段，可作为HTTP状态码时返回整数"""
    try:
        code = int(code)
    except (TypeError, ValueError):
        return None
    if 400 <= code <= 599:
        return code
    return None
