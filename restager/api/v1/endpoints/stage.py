import time
import uuid
import traceback
from typing import Optional
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from ....schemas.requests import StageRequest, StageResponse, StatusResponse, HealthResponse
from ....core.config import settings
from ....core.exceptions import RestageError
from ....core.logging import logger
from ....services.staging_service import create_stage_task, check_stage_status, proxy_error

router = APIRouter()

# 预检请求使用的宽松CORS头
CORS_HEADERS = {
    'Access-Control-Allow-Credentials': 'true',
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Methods': 'GET,OPTIONS,POST',
    'Access-Control-Allow-Headers': 'X-CSRF-Token, X-Requested-With, Accept, Accept-Version, '
                                    'Content-Length, Content-MD5, Content-Type, Date, X-Api-Version',
}

REJECTED_METHODS = ["PUT", "PATCH", "DELETE"]


def _request_id(http_request: Request):
    return getattr(http_request.state, 'request_id', None) or str(uuid.uuid4())


def _method_not_allowed():
    return JSONResponse(status_code=405, content={'error': 'Method not allowed'})


def _error_response(e, request_id, start_time, default_message):
    status_code, content = proxy_error(e, default_message)
    extra = {}
    if not isinstance(e, RestageError):
        extra["stack_trace"] = traceback.format_exc()
    log = logger.warning if status_code < 500 else logger.error
    log(
        default_message,
        request_id=request_id,
        status=status_code,
        error_type=type(e).__name__,
        error_message=str(e),
        duration=f"{time.time() - start_time:.3f}s",
        **extra
    )
    return JSONResponse(status_code=status_code, content=content)


@router.post("/stage", response_model=StageResponse, response_model_exclude_none=True)
async def stage(http_request: Request, request: Optional[StageRequest] = None):
    """创建重新布置任务，立即返回 taskId"""
    request_id = _request_id(http_request)
    start_time = time.time()
    request = request or StageRequest()

    try:
        result = await create_stage_task(request, request_id=request_id)
    except Exception as e:
        return _error_response(e, request_id, start_time, "Failed to stage image with Kie.ai")

    logger.info(
        f"Stage task created",
        request_id=request_id,
        task_id=result['taskId'],
        duration=f"{time.time() - start_time:.3f}s"
    )
    return result


@router.get("/status", response_model=StatusResponse, response_model_exclude_none=True)
async def status(http_request: Request, taskId: Optional[str] = None):
    """查询一次任务状态"""
    request_id = _request_id(http_request)
    start_time = time.time()

    try:
        return await check_stage_status(taskId, request_id=request_id)
    except Exception as e:
        return _error_response(e, request_id, start_time, "Failed to check task status")


@router.options("/stage")
@router.options("/status")
async def preflight():
    return Response(status_code=200, headers=CORS_HEADERS)


@router.api_route("/stage", methods=["GET", "HEAD"] + REJECTED_METHODS, include_in_schema=False)
async def stage_method_not_allowed():
    return _method_not_allowed()


@router.api_route("/status", methods=["POST", "HEAD"] + REJECTED_METHODS, include_in_schema=False)
async def status_method_not_allowed():
    return _method_not_allowed()


@router.get("/health", response_model=HealthResponse)
async def health():
    """服务状态，只返回各服务商是否已配置"""
    return {
        'status': 'ok',
        'service': settings.APP_TITLE,
        'version': settings.APP_VERSION,
        'providers': settings.validate(),
    }
