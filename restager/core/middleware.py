import time
import uuid
from .logging import logger


class RequestTrackingMiddleware:
    """为每个HTTP请求分配request_id，记录耗时，并通过 X-Request-ID 响应头返回"""

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = str(uuid.uuid4())
        start_time = time.time()

        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "unknown")
        client_info = scope.get("client") or ("unknown", 0)
        client_ip = client_info[0] if client_info else "unknown"

        # 预检请求太频繁，只记DEBUG
        log = logger.debug if method == "OPTIONS" else logger.info
        log(
            f"Request started: {method} {path}",
            request_id=request_id,
            path=path,
            method=method,
            client_ip=client_ip
        )

        # 将request_id添加到scope中，以便在路由中使用
        scope.setdefault("state", {})["request_id"] = request_id

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((b"x-request-id", request_id.encode("latin-1")))
                message["headers"] = headers

                duration = time.time() - start_time
                log(
                    f"Request completed: {method} {path} - Status: {message['status']}",
                    request_id=request_id,
                    path=path,
                    status=message["status"],
                    duration=f"{duration:.3f}s"
                )

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as e:
            duration = time.time() - start_time
            logger.error(
                f"Request failed: {method} {path} - Error: {str(e)}",
                request_id=request_id,
                path=path,
                error_type=type(e).__name__,
                duration=f"{duration:.3f}s"
            )
            raise
