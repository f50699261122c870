"""把base64图片上传到临时图床，换取公开URL

部分服务商（Kie.ai）只接受可公开访问的图片地址。上传后的地址有效期很短，
只能在本次重新布置流程中使用，不要缓存。
"""

import base64
import requests

from ..core.config import settings
from ..core.exceptions import PublishError, ValidationError
from ..core.logging import logger
from ..utils.decorators import monitor_performance
from ..utils.image_utils import decode_image, strip_data_uri_prefix
from ..utils.lookup import first_value


class ImgBBPublisher:
    """主图床：需要 IMGBB_API_KEY，图片在 expiration 秒后自动删除"""

    name = "imgbb"
    upload_url = "https://api.imgbb.com/1/upload"

    def __init__(self, api_key=None, expiration=None, session=None, timeout=None):
        self._api_key = api_key
        self.expiration = expiration or settings.IMGBB_EXPIRATION
        self.session = session or requests.Session()
        self.timeout = timeout or settings.REQUEST_TIMEOUT

    def publish(self, image, request_id='unknown'):
        api_key = self._api_key or settings.IMGBB_API_KEY
        if not api_key:
            raise PublishError("ImgBB API key is not configured. Please set IMGBB_API_KEY environment variable.")

        if isinstance(image, bytes):
            clean_base64 = base64.b64encode(image).decode('utf-8')
        else:
            clean_base64 = strip_data_uri_prefix(image.strip())

        try:
            response = self.session.post(
                self.upload_url,
                params={'key': api_key},
                data={'image': clean_base64, 'expiration': str(self.expiration)},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise PublishError(f"ImgBB request failed: {e}")

        if not response.ok:
            raise PublishError(f"ImgBB API error: {response.status_code} {response.reason}")

        try:
            data = response.json()
        except ValueError:
            raise PublishError("ImgBB returned a non-JSON response")

        url = first_value(data, ('data.url', 'data.display_url', 'data.image.url'))
        if not data.get('success') or not url:
            raise PublishError("Failed to upload image to ImgBB")
        return url


class CatboxPublisher:
    """备用图床：不需要密钥，但稳定性较差"""

    name = "catbox"
    upload_url = "https://catbox.moe/user/api.php"

    def __init__(self, session=None, timeout=None):
        self.session = session or requests.Session()
        self.timeout = timeout or settings.REQUEST_TIMEOUT

    def publish(self, image, request_id='unknown'):
        try:
            image_data, mime_type = decode_image(image)
        except ValidationError as e:
            raise PublishError(e.message)
        mime_type = mime_type or 'image/jpeg'
        extension = mime_type.split('/', 1)[1].replace('jpeg', 'jpg')

        try:
            response = self.session.post(
                self.upload_url,
                data={'reqtype': 'fileupload'},
                files={'fileToUpload': (f"image.{extension}", image_data, mime_type)},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise PublishError(f"Catbox request failed: {e}")

        if not response.ok:
            raise PublishError(f"Catbox API error: {response.status_code} {response.reason}")

        url = (response.text or '').strip()
        if not url.startswith('https://'):
            raise PublishError("Invalid response from Catbox")
        return url


def default_publishers():
    return [ImgBBPublisher(), CatboxPublisher()]


@monitor_performance("Image Publish")
def publish_image(image, publishers=None, request_id='unknown'):
    """按顺序尝试各个图床，第一个成功的结果即为返回值"""
    publishers = publishers if publishers is not None else default_publishers()
    failures = []
    for publisher in publishers:
        try:
            url = publisher.publish(image, request_id=request_id)
        except PublishError as e:
            logger.warning(
                f"Image publisher failed, trying next",
                request_id=request_id,
                provider=publisher.name,
                error_type=type(e).__name__,
                error_message=e.message
            )
            failures.append(f"{publisher.name}: {e.message}")
            continue

        logger.info(
            f"Image published",
            request_id=request_id,
            provider=publisher.name,
            url=url
        )
        return url

    logger.error(
        f"All image publishers failed",
        request_id=request_id,
        error_type="PublishError",
        error_message="; ".join(failures)
    )
    raise PublishError("; ".join(failures) or "No image publisher is configured")
