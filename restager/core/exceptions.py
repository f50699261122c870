"""重新布置流程中使用的错误类型，以及面向用户的错误信息转换"""


class RestageError(Exception):
    """所有重新布置错误的基类"""

    def __init__(self, message):
        super().__init__(message)
        self.message = message


class ValidationError(RestageError):
    """请求参数不合法（缺少图片、taskId，或房间未标注），不会发起任何网络请求"""


class UnsupportedModeError(ValidationError):
    def __init__(self, mode):
        super().__init__(f"Unknown transformation type: {mode}")
        self.mode = mode


class ConfigurationError(RestageError):
    """缺少必要的配置（例如API密钥）"""

    def __init__(self, message, setting=None):
        super().__init__(message)
        self.setting = setting


class ProviderError(RestageError):
    """服务商返回非2xx、响应格式异常或网络传输失败"""

    def __init__(self, message, http_status=None, code=None):
        super().__init__(message)
        self.http_status = http_status
        self.code = code

    @property
    def is_transient(self):
        # 传输失败、响应不完整、5xx 和限流可以在轮询预算内重试
        if self.http_status is None:
            return True
        return self.http_status == 429 or self.http_status >= 500

    def __str__(self):
        if self.http_status:
            return f"{self.message} (HTTP {self.http_status})"
        return self.message


class PublishError(RestageError):
    """图片上传到公共图床失败"""


class MissingResultError(RestageError):
    """任务已完成但响应中找不到结果图片，通常意味着字段名不匹配"""


class TaskFailedError(RestageError):
    def __init__(self, reason):
        super().__init__(reason or "Task failed")
        self.reason = reason or "Task failed"


class TaskTimeoutError(RestageError):
    def __init__(self, elapsed_ms, attempts):
        super().__init__(f"Task timeout after {elapsed_ms / 1000:.1f} seconds ({attempts} status checks)")
        self.elapsed_ms = elapsed_ms
        self.attempts = attempts


class RestageCancelled(RestageError):
    def __init__(self, message="Restage was cancelled"):
        super().__init__(message)


# (匹配的子串, 给用户看的提示)，按顺序匹配
_KNOWN_PROVIDER_MESSAGES = [
    (("api key not valid", "invalid api key", "unauthorized", "401"),
     "The API key is invalid. Please check your configuration."),
    (("insufficient", "credits", "balance", "402"),
     "Insufficient credits in the provider account. Please top up and try again."),
    (("rate limit", "too many requests", "429"),
     "Rate limit exceeded. Please try again in a moment."),
    (("request was blocked", "blockreason", "safety"),
     "The request was blocked by the provider's content policy. Please try a different image."),
]


def _match_known_message(text):
    lowered = (text or "").lower()
    for needles, friendly in _KNOWN_PROVIDER_MESSAGES:
        if any(needle in lowered for needle in needles):
            return friendly
    return None


def describe_error(exc):
    """把任意异常转换成一条用户可读的错误信息"""
    if isinstance(exc, ProviderError):
        if exc.http_status == 401:
            return _KNOWN_PROVIDER_MESSAGES[0][1]
        if exc.http_status == 402:
            return _KNOWN_PROVIDER_MESSAGES[1][1]
        if exc.http_status == 429:
            return _KNOWN_PROVIDER_MESSAGES[2][1]
        return _match_known_message(exc.message) or exc.message or "Failed to communicate with the AI model."
    if isinstance(exc, TaskFailedError):
        return _match_known_message(exc.reason) or f"The AI provider could not restage this image: {exc.reason}"
    if isinstance(exc, TaskTimeoutError):
        return "The AI provider took too long to restage this image. Please try again."
    if isinstance(exc, MissingResultError):
        return "No restaged image was returned from the AI provider."
    if isinstance(exc, PublishError):
        return f"Image upload failed: {exc.message}"
    if isinstance(exc, ConfigurationError):
        return f"The service is not configured correctly: {exc.message}"
    if isinstance(exc, RestageError):
        return exc.message
    return str(exc) or "An unknown error occurred communicating with the AI model."


def http_status_for(exc):
    """代理接口使用的HTTP状态码"""
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, ConfigurationError):
        return 500
    if isinstance(exc, ProviderError):
        if exc.http_status in (401, 402, 429):
            return exc.http_status
        for status in (401, 402, 429):
            if str(status) in exc.message:
                return status
    return 500
