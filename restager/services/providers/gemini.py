"""Gemini 适配器：图片和提示词在一次请求中内联发送，同步返回结果图片"""

import time
import traceback
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from ...core.config import settings
from ...core.exceptions import ProviderError
from ...core.logging import logger
from ...utils.decorators import monitor_performance
from ...utils.image_utils import decode_image, download_image, to_data_uri
from ...utils.url_utils import ensure_supported_mime_type, is_http_url
from .base import SubmitResult, SynchronousProvider


class GeminiAdapter(SynchronousProvider):
    name = "gemini"

    def __init__(self, api_key=None, model=None, client=None):
        self._api_key = api_key
        self._client = client
        self.model = model or settings.GEMINI_MODEL

    def _get_client(self):
        if self._client is not None:
            return self._client
        return genai.Client(api_key=self._api_key or settings.require("GEMINI_API_KEY"))

    @monitor_performance("Gemini Restage")
    def submit(self, image, prompt, mime_type="image/jpeg", request_id='unknown'):
        client = self._get_client()

        if is_http_url(image):
            image_data, mime_type = download_image(image, request_id=request_id)
        else:
            image_data, embedded_mime = decode_image(image)
            mime_type = embedded_mime or mime_type
        safe_mime_type = ensure_supported_mime_type(mime_type, request_id=request_id)

        contents = [
            types.Part.from_bytes(data=image_data, mime_type=safe_mime_type),
            types.Part.from_text(text=prompt),
        ]
        config = types.GenerateContentConfig(response_modalities=["IMAGE", "TEXT"])

        logger.info(
            f"Sending request to Gemini API",
            request_id=request_id,
            provider=self.name,
            model=self.model,
            data_size=len(image_data)
        )

        api_start_time = time.time()
        try:
            response = client.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as e:
            logger.error(
                f"Gemini API call failed",
                request_id=request_id,
                provider=self.name,
                error_type=type(e).__name__,
                error_message=str(e),
                stack_trace=traceback.format_exc()
            )
            raise ProviderError(e.message or str(e), http_status=e.code)

        logger.info(
            f"Received response from Gemini API",
            request_id=request_id,
            provider=self.name,
            duration=f"{time.time() - api_start_time:.3f}s"
        )
        return SubmitResult(images=[self._extract_image(response)])

    def _extract_image(self, response):
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            feedback = getattr(response, "prompt_feedback", None)
            block_reason = getattr(feedback, "block_reason", None)
            if block_reason:
                raise ProviderError(f"Request was blocked: {block_reason}. Please try a different image.")
            raise ProviderError("The AI model did not return a valid response.")

        content = getattr(candidates[0], "content", None)
        for part in getattr(content, "parts", None) or []:
            inline_data = getattr(part, "inline_data", None)
            if inline_data is None or inline_data.data is None:
                continue
            part_mime = inline_data.mime_type or "image/png"
            if part_mime.startswith("image/"):
                return to_data_uri(inline_data.data, part_mime)

        raise ProviderError("No restaged image was returned from the API.")
