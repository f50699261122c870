from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .core.config import settings
from .core.logging import logger
from .core.middleware import RequestTrackingMiddleware
from .api.v1.router import api_router

# 初始化FastAPI应用
app = FastAPI(
    title=settings.APP_TITLE,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION
)

# 请求跟踪中间件，为每个请求分配request_id
app.add_middleware(RequestTrackingMiddleware)

# 允许跨域
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 包含API路由
app.include_router(api_router)

# 记录服务配置（只记录服务商是否可用，不记录密钥）
provider_status = settings.validate()
logger.info(
    "Service configuration loaded",
    default_provider=settings.RESTAGE_PROVIDER,
    providers_configured=provider_status,
    poll_interval_ms=settings.POLL_INTERVAL_MS,
    poll_max_attempts=settings.POLL_MAX_ATTEMPTS,
    max_concurrent_restages=settings.MAX_CONCURRENT_RESTAGES
)
for provider, configured in provider_status.items():
    if not configured:
        logger.warning(
            f"{settings.PROVIDER_KEYS[provider]} is not set, {provider} will be unavailable",
            provider=provider
        )

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
