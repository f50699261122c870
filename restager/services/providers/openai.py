"""OpenAI 适配器：通过 images.edit 同步重新布置"""

import openai
from openai import OpenAI

from ...core.config import settings
from ...core.exceptions import ProviderError
from ...core.logging import logger
from ...utils.decorators import monitor_performance
from ...utils.image_utils import decode_image, download_image, to_data_uri
from ...utils.url_utils import ensure_supported_mime_type, is_http_url
from .base import SubmitResult, SynchronousProvider


QUALITY_LEVELS = {"low", "medium", "high", "auto"}

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}


class OpenAIAdapter(SynchronousProvider):
    name = "openai"

    def __init__(self, api_key=None, model=None, quality=None, size="1024x1024", client=None):
        self._api_key = api_key
        self._client = client
        self.model = model or settings.OPENAI_MODEL
        quality = (quality or settings.OPENAI_IMAGE_QUALITY or "auto").lower()
        self.quality = quality if quality in QUALITY_LEVELS else "auto"
        self.size = size

    def _get_client(self):
        if self._client is not None:
            return self._client
        return OpenAI(api_key=self._api_key or settings.require("OPENAI_API_KEY"))

    @monitor_performance("OpenAI Restage")
    def submit(self, image, prompt, mime_type="image/jpeg", request_id='unknown'):
        client = self._get_client()

        if is_http_url(image):
            image_data, mime_type = download_image(image, request_id=request_id)
        else:
            image_data, embedded_mime = decode_image(image)
            mime_type = embedded_mime or mime_type
        mime_type = ensure_supported_mime_type(mime_type, request_id=request_id)
        filename = f"image.{_EXTENSIONS.get(mime_type, 'jpg')}"

        logger.info(
            f"Sending request to OpenAI images API",
            request_id=request_id,
            provider=self.name,
            model=self.model,
            data_size=len(image_data)
        )

        try:
            response = client.images.edit(
                model=self.model,
                image=(filename, image_data, mime_type),
                prompt=prompt,
                n=1,
                size=self.size,
                quality=self.quality,
            )
        except openai.APIStatusError as e:
            raise ProviderError(e.message or str(e), http_status=e.status_code)
        except openai.APIError as e:
            raise ProviderError(f"Failed to communicate with OpenAI: {e}")

        items = getattr(response, "data", None) or []
        b64_json = getattr(items[0], "b64_json", None) if items else None
        if b64_json:
            return SubmitResult(images=[to_data_uri(b64_json, "image/png")])
        url = getattr(items[0], "url", None) if items else None
        if url:
            return SubmitResult(images=[url])
        raise ProviderError("No restaged image was returned from the API.")
