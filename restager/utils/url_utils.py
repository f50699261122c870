import re
from urllib.parse import urlparse
from ..core.logging import logger


_HTTP_URL_RE = re.compile(r'^https?://', re.IGNORECASE)

# 服务商普遍支持的图片MIME类型
SUPPORTED_MIME_TYPES = [
    'image/jpeg', 'image/png', 'image/gif', 'image/webp'
]

_EXTENSION_MIME_TYPES = {
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
    '.webp': 'image/webp',
}


def is_http_url(value):
    """判断是否为可公开访问的 http(s) 地址"""
    return isinstance(value, str) and bool(_HTTP_URL_RE.match(value.strip()))


def is_data_uri(value):
    return isinstance(value, str) and value.startswith('data:')


def is_likely_image_url(url):
    """根据URL扩展名判断是否可能为图片"""
    path = urlparse(url).path.lower()
    return any(path.endswith(ext) for ext in _EXTENSION_MIME_TYPES)


def guess_mime_type(name, default='image/jpeg'):
    """根据文件名或URL的扩展名推断MIME类型"""
    if not name:
        return default
    path = urlparse(name).path.lower() if is_http_url(name) else name.lower()
    for ext, mime_type in _EXTENSION_MIME_TYPES.items():
        if path.endswith(ext):
            return mime_type
    return default


def ensure_supported_mime_type(mime_type, name=None, request_id='unknown'):
    """确保MIME类型是服务商支持的图片格式"""
    mime_type = (mime_type or '').lower().strip()
    if mime_type == 'image/jpg':
        mime_type = 'image/jpeg'

    if mime_type in SUPPORTED_MIME_TYPES:
        return mime_type

    # 二进制或未知类型，根据文件名推断
    converted_type = guess_mime_type(name)
    logger.info(
        f"Converted MIME type for provider compatibility",
        request_id=request_id,
        original_mime_type=mime_type or None,
        converted_mime_type=converted_type
    )
    return converted_type
