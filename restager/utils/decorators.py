import time
import functools
import traceback
from ..core.logging import logger


def _call_context(args, kwargs):
    """从调用参数中取出 request_id，以及适配器方法所属的服务商名称"""
    request_id = kwargs.get('request_id', 'unknown')
    if request_id == 'unknown':
        for arg in args:
            if isinstance(arg, str) and len(arg) == 36 and arg.count('-') == 4:
                request_id = arg
                break

    context = {'request_id': request_id}
    provider = getattr(args[0], 'name', None) if args else None
    if isinstance(provider, str):
        context['provider'] = provider
    return context


def _log_success(operation_name, context, start_time):
    logger.info(
        f"{operation_name} 完成",
        duration=f"{time.time() - start_time:.3f}s",
        **context
    )


def monitor_performance(operation_name):
    """同步调用的耗时监控；失败时记录堆栈并继续抛出"""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            context = _call_context(args, kwargs)
            logger.debug(f"开始 {operation_name}", **context)

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.error(
                    f"{operation_name} 失败: {str(e)}",
                    error_type=type(e).__name__,
                    duration=f"{time.time() - start_time:.3f}s",
                    stack_trace=traceback.format_exc(),
                    **context
                )
                raise

            _log_success(operation_name, context, start_time)
            return result
        return wrapper
    return decorator


def monitor_async_performance(operation_name):
    """协程的耗时监控；业务错误由调用方转换，这里只记录类型和耗时"""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            context = _call_context(args, kwargs)
            logger.debug(f"开始 {operation_name}", **context)

            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.warning(
                    f"{operation_name} 失败: {str(e)}",
                    error_type=type(e).__name__,
                    duration=f"{time.time() - start_time:.3f}s",
                    **context
                )
                raise

            _log_success(operation_name, context, start_time)
            return result
        return wrapper
    return decorator
