"""Kie.ai 适配器：createTask 提交任务，recordInfo 查询状态"""

import requests

from ...core.config import settings
from ...core.exceptions import ProviderError
from ...core.logging import logger
from ...schemas.restage import TaskStatus
from ...utils.decorators import monitor_performance
from ...utils.lookup import first_value
from ..status_normalizer import normalize_status
from .base import ASYNC, SubmitResult, envelope_status, error_message_from, parse_json_body


TASK_ID_FIELDS = ('taskId', 'task_id', 'id', 'data.taskId', 'data.task_id')
PROVIDER_LABEL = "Kie.ai"


class KieAdapter:
    name = "kie"
    protocol = ASYNC
    # 客户端直连时只接受公开的 http(s) 图片地址
    requires_public_url = True

    def __init__(self, api_key=None, base_url=None, model=None, session=None, timeout=None):
        self._api_key = api_key
        self.base_url = (base_url or settings.KIE_BASE_URL).rstrip('/')
        self.model = model or settings.KIE_MODEL
        self.timeout = timeout or settings.REQUEST_TIMEOUT
        self.session = session or requests.Session()

    def _headers(self, json_body=False):
        api_key = self._api_key or settings.require("KIEAI_API_KEY")
        headers = {'Authorization': f"Bearer {api_key}"}
        if json_body:
            headers['Content-Type'] = 'application/json'
        return headers

    def _check_envelope(self, data, default_message):
        code = data.get('code')
        if code is not None and str(code) != '200':
            raise ProviderError(
                error_message_from(data, default_message),
                http_status=envelope_status(code),
                code=code,
            )

    @monitor_performance("Kie.ai Create Task")
    def submit(self, image, prompt, mime_type="image/jpeg", request_id='unknown'):
        payload = {
            'model': self.model,
            'input': {
                'prompt': prompt,
                'image_urls': [image],
            },
        }
        logger.info(
            f"Creating Kie.ai task",
            request_id=request_id,
            provider=self.name,
            url=image,
            prompt_length=len(prompt)
        )

        try:
            response = self.session.post(
                f"{self.base_url}/createTask",
                json=payload,
                headers=self._headers(json_body=True),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Failed to reach Kie.ai: {e}")

        data = parse_json_body(response, PROVIDER_LABEL)
        if not response.ok:
            logger.error(
                f"Kie.ai createTask error",
                request_id=request_id,
                provider=self.name,
                status=response.status_code,
                error_message=error_message_from(data, '')
            )
            raise ProviderError(
                error_message_from(data, f"Failed to create task at Kie.ai (status {response.status_code})"),
                http_status=response.status_code,
            )
        self._check_envelope(data, "Failed to create Kie.ai task")

        task_id = first_value(data, TASK_ID_FIELDS)
        if not task_id:
            logger.error(
                f"No task ID found in Kie.ai response",
                request_id=request_id,
                provider=self.name,
                response_keys=sorted(data.keys())
            )
            raise ProviderError("No task ID returned from Kie.ai")

        logger.info(
            f"Kie.ai task created",
            request_id=request_id,
            provider=self.name,
            task_id=str(task_id)
        )
        return SubmitResult(task_id=str(task_id), raw_response=data)

    def check_status(self, task_id, request_id='unknown') -> TaskStatus:
        try:
            response = self.session.get(
                f"{self.base_url}/recordInfo",
                params={'taskId': task_id},
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"Failed to reach Kie.ai: {e}")

        data = parse_json_body(response, PROVIDER_LABEL)
        if not response.ok:
            raise ProviderError(
                error_message_from(data, f"Failed to check task status (status {response.status_code})"),
                http_status=response.status_code,
            )
        self._check_envelope(data, "Failed to check task status")

        status = normalize_status(data, task_id=task_id)
        logger.debug(
            f"Kie.ai status check",
            request_id=request_id,
            provider=self.name,
            task_id=task_id,
            state=status.raw_state
        )
        return status
