"""
服务商适配器与注册表测试

Kie.ai 适配器通过注入的 requests 会话调用；Gemini 和 OpenAI 注入 SDK 客户端，不访问网络。
"""

import base64
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from conftest import SAMPLE_JPEG, make_response
from restager.core.config import settings
from restager.core.exceptions import ConfigurationError, MissingResultError, ProviderError
from restager.schemas.restage import TaskState
from restager.services.providers import registry
from restager.services.providers.base import ASYNC, SYNC, envelope_status, error_message_from
from restager.services.providers.gemini import GeminiAdapter
from restager.services.providers.kie import KieAdapter
from restager.services.providers.openai import OpenAIAdapter

SAMPLE_DATA_URI = "data:image/jpeg;base64," + base64.b64encode(SAMPLE_JPEG).decode()


@pytest.fixture
def kie(mock_session):
    return KieAdapter(api_key="kie-test-key", base_url="https://kie.test/api/", session=mock_session, timeout=5)


class TestKieSubmit:
    def test_posts_create_task(self, kie, mock_session):
        mock_session.post.return_value = make_response(200, {"code": 200, "data": {"taskId": "abc"}})

        result = kie.submit("https://img.test/room.jpg", "stage it")

        assert result.task_id == "abc"
        assert result.is_async
        url = mock_session.post.call_args.args[0]
        kwargs = mock_session.post.call_args.kwargs
        assert url == "https://kie.test/api/createTask"
        assert kwargs["json"] == {
            "model": "google/nano-banana-edit",
            "input": {"prompt": "stage it", "image_urls": ["https://img.test/room.jpg"]},
        }
        assert kwargs["headers"]["Authorization"] == "Bearer kie-test-key"
        assert kwargs["timeout"] == 5

    @pytest.mark.parametrize("body", [
        {"taskId": "x1"},
        {"task_id": "x1"},
        {"id": "x1"},
        {"code": 200, "data": {"task_id": "x1"}},
    ])
    def test_task_id_aliases(self, kie, mock_session, body):
        mock_session.post.return_value = make_response(200, body)
        assert kie.submit("https://img.test/a.jpg", "p").task_id == "x1"

    def test_missing_task_id(self, kie, mock_session):
        mock_session.post.return_value = make_response(200, {"code": 200, "data": {}})
        with pytest.raises(ProviderError, match="No task ID"):
            kie.submit("https://img.test/a.jpg", "p")

    def test_http_error_keeps_status(self, kie, mock_session):
        mock_session.post.return_value = make_response(402, {"msg": "Insufficient credits"}, reason="Payment Required")
        with pytest.raises(ProviderError) as exc_info:
            kie.submit("https://img.test/a.jpg", "p")
        assert exc_info.value.http_status == 402
        assert exc_info.value.message == "Insufficient credits"

    def test_envelope_error_code(self, kie, mock_session):
        mock_session.post.return_value = make_response(200, {"code": 401, "msg": "You do not have access permissions"})
        with pytest.raises(ProviderError) as exc_info:
            kie.submit("https://img.test/a.jpg", "p")
        assert exc_info.value.http_status == 401
        assert exc_info.value.code == 401

    def test_non_json_body(self, kie, mock_session):
        mock_session.post.return_value = make_response(200, None, text="<html>")
        with pytest.raises(ProviderError, match="non-JSON"):
            kie.submit("https://img.test/a.jpg", "p")

    def test_transport_failure(self, kie, mock_session):
        mock_session.post.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(ProviderError) as exc_info:
            kie.submit("https://img.test/a.jpg", "p")
        assert exc_info.value.is_transient

    def test_missing_key_fails_before_network(self, mock_session, monkeypatch):
        monkeypatch.setattr(settings, "KIEAI_API_KEY", None)
        adapter = KieAdapter(session=mock_session)
        with pytest.raises(ConfigurationError):
            adapter.submit("https://img.test/a.jpg", "p")
        mock_session.post.assert_not_called()


class TestKieCheckStatus:
    def test_completed(self, kie, mock_session):
        mock_session.get.return_value = make_response(200, {
            "code": 200,
            "data": {"state": "success", "resultJson": '{"resultUrls": ["https://cdn.test/out.png"]}'},
        })

        status = kie.check_status("abc")

        assert status.state is TaskState.COMPLETED
        assert list(status.result_images) == ["https://cdn.test/out.png"]
        assert mock_session.get.call_args.args[0] == "https://kie.test/api/recordInfo"
        assert mock_session.get.call_args.kwargs["params"] == {"taskId": "abc"}

    def test_failed(self, kie, mock_session):
        mock_session.get.return_value = make_response(200, {
            "code": 200, "data": {"state": "fail", "failMsg": "Sensitive content", "failCode": "400"},
        })
        status = kie.check_status("abc")
        assert status.state is TaskState.FAILED
        assert status.failure_reason == "Sensitive content (Code: 400)"

    def test_is_idempotent(self, kie, mock_session):
        mock_session.get.return_value = make_response(200, {"data": {"state": "generating"}})
        first = kie.check_status("abc")
        second = kie.check_status("abc")
        assert first.state is second.state is TaskState.PROCESSING
        assert mock_session.get.call_count == 2

    def test_server_error_is_transient(self, kie, mock_session):
        mock_session.get.return_value = make_response(503, {"msg": "unavailable"})
        with pytest.raises(ProviderError) as exc_info:
            kie.check_status("abc")
        assert exc_info.value.is_transient

    def test_completed_without_result(self, kie, mock_session):
        mock_session.get.return_value = make_response(200, {"data": {"state": "success"}})
        with pytest.raises(MissingResultError):
            kie.check_status("abc")


class TestGemini:
    def _response(self, parts=None, block_reason=None):
        if parts is None:
            return SimpleNamespace(candidates=[], prompt_feedback=SimpleNamespace(block_reason=block_reason))
        return SimpleNamespace(candidates=[SimpleNamespace(content=SimpleNamespace(parts=parts))])

    def test_returns_inline_image_as_data_uri(self):
        client = MagicMock()
        client.models.generate_content.return_value = self._response(parts=[
            SimpleNamespace(inline_data=None, text="here you go"),
            SimpleNamespace(inline_data=SimpleNamespace(data=b"PNGDATA", mime_type="image/png")),
        ])
        adapter = GeminiAdapter(api_key="g", client=client)

        result = adapter.submit(SAMPLE_DATA_URI, "stage it")

        assert not result.is_async
        assert result.images == ["data:image/png;base64," + base64.b64encode(b"PNGDATA").decode()]
        kwargs = client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == settings.GEMINI_MODEL

    def test_blocked_request(self):
        client = MagicMock()
        client.models.generate_content.return_value = self._response(block_reason="SAFETY")
        adapter = GeminiAdapter(api_key="g", client=client)
        with pytest.raises(ProviderError, match="blocked"):
            adapter.submit(SAMPLE_DATA_URI, "p")

    def test_no_image_part(self):
        client = MagicMock()
        client.models.generate_content.return_value = self._response(parts=[SimpleNamespace(inline_data=None)])
        adapter = GeminiAdapter(api_key="g", client=client)
        with pytest.raises(ProviderError, match="No restaged image"):
            adapter.submit(SAMPLE_DATA_URI, "p")

    def test_has_no_task_to_check(self):
        with pytest.raises(ProviderError):
            GeminiAdapter(api_key="g", client=MagicMock()).check_status("t")


class TestOpenAI:
    def test_b64_result(self):
        client = MagicMock()
        client.images.edit.return_value = SimpleNamespace(data=[SimpleNamespace(b64_json="UkVTVUxU", url=None)])
        adapter = OpenAIAdapter(api_key="o", client=client, quality="HIGH")

        result = adapter.submit(SAMPLE_DATA_URI, "stage it")

        assert result.images == ["data:image/png;base64,UkVTVUxU"]
        kwargs = client.images.edit.call_args.kwargs
        assert kwargs["prompt"] == "stage it"
        assert kwargs["quality"] == "high"
        assert kwargs["image"] == ("image.jpg", SAMPLE_JPEG, "image/jpeg")

    def test_url_result(self):
        client = MagicMock()
        client.images.edit.return_value = SimpleNamespace(data=[SimpleNamespace(b64_json=None, url="https://o/x.png")])
        result = OpenAIAdapter(api_key="o", client=client).submit(SAMPLE_DATA_URI, "p")
        assert result.images == ["https://o/x.png"]

    def test_unknown_quality_falls_back_to_auto(self):
        assert OpenAIAdapter(api_key="o", client=MagicMock(), quality="ultra").quality == "auto"

    def test_empty_response(self):
        client = MagicMock()
        client.images.edit.return_value = SimpleNamespace(data=[])
        with pytest.raises(ProviderError):
            OpenAIAdapter(api_key="o", client=client).submit(SAMPLE_DATA_URI, "p")


class TestRegistry:
    @pytest.mark.parametrize("alias, expected", [
        ("kie", "kie"),
        ("Kie.ai", "kie"),
        ("nano-banana", "kie"),
        ("Gemini", "gemini"),
        ("gpt_image_1", "openai"),
    ])
    def test_aliases(self, alias, expected):
        assert registry.normalize_provider(alias) == expected

    def test_default_comes_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "RESTAGE_PROVIDER", "openai")
        assert registry.normalize_provider(None) == "openai"

    def test_capabilities(self):
        assert registry.get_capabilities("kie").protocol == ASYNC
        assert registry.get_capabilities("kie").requires_public_url
        assert registry.get_capabilities("gemini").protocol == SYNC

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            registry.get_capabilities("midjourney")

    def test_missing_key_raises_configuration_error(self, monkeypatch):
        monkeypatch.setattr(settings, "GEMINI_API_KEY", None)
        with pytest.raises(ConfigurationError) as exc_info:
            registry.get_adapter("gemini")
        assert exc_info.value.setting == "GEMINI_API_KEY"

    def test_adapter_is_cached(self, monkeypatch):
        monkeypatch.setattr(settings, "KIEAI_API_KEY", "k")
        assert registry.get_adapter("kie") is registry.get_adapter("kie-ai")


def test_envelope_status():
    assert envelope_status(401) == 401
    assert envelope_status("429") == 429
    assert envelope_status(200) is None
    assert envelope_status("oops") is None


def test_error_message_from():
    assert error_message_from({"error": {"message": "nested"}}, "d") == "nested"
    assert error_message_from({"msg": "  "}, "default") == "default"
