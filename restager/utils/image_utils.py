import base64
import binascii
import re
import time
import traceback
import requests
from ..core.logging import logger
from ..core.config import settings
from ..core.exceptions import ProviderError, ValidationError
from .url_utils import is_http_url, is_data_uri, is_likely_image_url, guess_mime_type
from ..utils.decorators import monitor_performance


_DATA_URI_RE = re.compile(r'^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[\w-]+=[^;,]*)*)(?P<b64>;base64)?,', re.IGNORECASE)

# 全局会话对象，重用HTTP连接
session = requests.Session()
session.headers.update({
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36'
})


def strip_data_uri_prefix(value):
    """去掉 data:image/...;base64, 前缀，只保留base64部分"""
    match = _DATA_URI_RE.match(value)
    if match:
        return value[match.end():]
    return value


def data_uri_mime_type(value, default='image/jpeg'):
    match = _DATA_URI_RE.match(value or '')
    if match and match.group('mime'):
        return match.group('mime').lower()
    return default


def to_data_uri(data, mime_type='image/jpeg'):
    """bytes 或 base64 字符串转为 data URI"""
    if isinstance(data, bytes):
        data = base64.b64encode(data).decode('utf-8')
    if is_data_uri(data):
        return data
    return f"data:{mime_type};base64,{data}"


def to_image_reference(image, mime_type='image/jpeg'):
    """把任意图片输入统一成 URL 或 data URI 字符串"""
    if isinstance(image, bytes):
        return to_data_uri(image, mime_type)
    if not isinstance(image, str) or not image.strip():
        raise ValidationError("Missing image data")
    image = image.strip()
    if is_http_url(image) or is_data_uri(image):
        return image
    # 没有前缀的裸base64
    return to_data_uri(image, mime_type)


def decode_image(image):
    """返回 (bytes, mime_type)，输入可以是 bytes、data URI 或裸base64"""
    if isinstance(image, bytes):
        return image, None
    if not isinstance(image, str) or not image.strip():
        raise ValidationError("Missing image data")
    if is_http_url(image):
        raise ValidationError("Image URLs must be downloaded before decoding")
    mime_type = data_uri_mime_type(image, default=None) if is_data_uri(image) else None
    try:
        return base64.b64decode(strip_data_uri_prefix(image.strip()), validate=False), mime_type
    except (binascii.Error, ValueError) as e:
        raise ValidationError(f"Image data is not valid base64: {e}")


@monitor_performance("Image Download")
def download_image(url, request_id='unknown'):
    """下载图片并返回原始数据和MIME类型"""
    try:
        logger.info(
            f"Starting image download",
            request_id=request_id,
            url=url
        )

        start_time = time.time()
        response = session.get(url, timeout=settings.DOWNLOAD_TIMEOUT)
        response.raise_for_status()

        content_type = response.headers.get('content-type', '').split(';')[0].lower()

        # 检查是否为HTML页面
        if 'text/html' in content_type:
            raise ProviderError("Result URL returned an HTML page instead of an image", http_status=response.status_code)

        if not content_type.startswith('image/'):
            if is_likely_image_url(url):
                logger.warning(
                    f"MIME type {content_type} is not an image type, inferring from URL",
                    request_id=request_id,
                    url=url
                )
                content_type = guess_mime_type(url)
            else:
                raise ProviderError(f"Unsupported result content type: {content_type}", http_status=response.status_code)

        download_time = time.time() - start_time
        logger.info(
            f"Image download completed successfully",
            request_id=request_id,
            url=url,
            duration=f"{download_time:.3f}s",
            data_size=len(response.content)
        )

        return response.content, content_type

    except requests.exceptions.Timeout as e:
        logger.error(
            f"Download timeout: {str(e)}",
            request_id=request_id,
            url=url,
            error_type=type(e).__name__
        )
        raise ProviderError("Timed out downloading the restaged image")
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        raise ProviderError(f"Failed to download the restaged image: {e}", http_status=status)
    except requests.exceptions.RequestException as e:
        logger.error(
            f"Network request error: {str(e)}",
            request_id=request_id,
            url=url,
            error_type=type(e).__name__,
            stack_trace=traceback.format_exc()
        )
        raise ProviderError(f"Network request failed: {e}")
