"""
图片临时公开托管（ImgBB / Catbox）测试
"""

import base64
from unittest.mock import MagicMock

import pytest
import requests

from conftest import SAMPLE_JPEG, make_response
from restager.core.config import settings
from restager.core.exceptions import PublishError
from restager.services.image_publisher import CatboxPublisher, ImgBBPublisher, publish_image

SAMPLE_B64 = base64.b64encode(SAMPLE_JPEG).decode()
SAMPLE_DATA_URI = f"data:image/jpeg;base64,{SAMPLE_B64}"


class TestImgBB:
    def test_uploads_stripped_base64_with_expiration(self, mock_session):
        mock_session.post.return_value = make_response(200, {
            "success": True, "data": {"url": "https://i.ibb.co/abc/room.jpg"},
        })
        publisher = ImgBBPublisher(api_key="imgbb-key", session=mock_session)

        url = publisher.publish(SAMPLE_DATA_URI)

        assert url == "https://i.ibb.co/abc/room.jpg"
        kwargs = mock_session.post.call_args.kwargs
        assert kwargs["params"] == {"key": "imgbb-key"}
        assert kwargs["data"] == {"image": SAMPLE_B64, "expiration": "600"}

    def test_accepts_raw_bytes(self, mock_session):
        mock_session.post.return_value = make_response(200, {"success": True, "data": {"url": "https://i.ibb.co/x"}})
        ImgBBPublisher(api_key="k", session=mock_session).publish(SAMPLE_JPEG)
        assert mock_session.post.call_args.kwargs["data"]["image"] == SAMPLE_B64

    def test_missing_key(self, mock_session, monkeypatch):
        monkeypatch.setattr(settings, "IMGBB_API_KEY", None)
        with pytest.raises(PublishError, match="IMGBB_API_KEY"):
            ImgBBPublisher(session=mock_session).publish(SAMPLE_DATA_URI)
        mock_session.post.assert_not_called()

    def test_rejected_upload(self, mock_session):
        mock_session.post.return_value = make_response(400, {"success": False}, reason="Bad Request")
        with pytest.raises(PublishError, match="400"):
            ImgBBPublisher(api_key="k", session=mock_session).publish(SAMPLE_DATA_URI)

    def test_missing_url_field(self, mock_session):
        mock_session.post.return_value = make_response(200, {"success": True, "data": {}})
        with pytest.raises(PublishError):
            ImgBBPublisher(api_key="k", session=mock_session).publish(SAMPLE_DATA_URI)


class TestCatbox:
    def test_uploads_file(self, mock_session):
        mock_session.post.return_value = make_response(200, text="https://files.catbox.moe/x1y2.jpg\n")

        url = CatboxPublisher(session=mock_session).publish(SAMPLE_DATA_URI)

        assert url == "https://files.catbox.moe/x1y2.jpg"
        kwargs = mock_session.post.call_args.kwargs
        assert kwargs["data"] == {"reqtype": "fileupload"}
        assert kwargs["files"]["fileToUpload"] == ("image.jpg", SAMPLE_JPEG, "image/jpeg")

    def test_invalid_response(self, mock_session):
        mock_session.post.return_value = make_response(200, text="error: file too large")
        with pytest.raises(PublishError, match="Invalid response"):
            CatboxPublisher(session=mock_session).publish(SAMPLE_DATA_URI)


class TestPublishImage:
    def _publisher(self, name, result=None, error=None):
        publisher = MagicMock()
        publisher.name = name
        if error is not None:
            publisher.publish.side_effect = error
        else:
            publisher.publish.return_value = result
        return publisher

    def test_first_success_wins(self):
        first = self._publisher("first", result="https://one")
        second = self._publisher("second", result="https://two")

        assert publish_image(SAMPLE_DATA_URI, [first, second]) == "https://one"
        second.publish.assert_not_called()

    def test_falls_back_in_order(self):
        first = self._publisher("imgbb", error=PublishError("ImgBB API error: 500 Server Error"))
        second = self._publisher("catbox", result="https://files.catbox.moe/ok.jpg")

        assert publish_image(SAMPLE_DATA_URI, [first, second]) == "https://files.catbox.moe/ok.jpg"

    def test_all_failing_lists_every_cause(self):
        first = self._publisher("imgbb", error=PublishError("no key"))
        second = self._publisher("catbox", error=PublishError("Catbox request failed: timeout"))

        with pytest.raises(PublishError) as exc_info:
            publish_image(SAMPLE_DATA_URI, [first, second])

        assert "imgbb: no key" in exc_info.value.message
        assert "catbox: Catbox request failed: timeout" in exc_info.value.message

    def test_catbox_transport_failure_is_publish_error(self, mock_session):
        mock_session.post.side_effect = requests.exceptions.Timeout("slow")
        with pytest.raises(PublishError):
            publish_image(SAMPLE_DATA_URI, [CatboxPublisher(session=mock_session)])
