"""按顺序尝试多个候选字段的查找工具

服务商的响应格式并不统一（taskId / task_id / data.taskId ...），
提交和状态查询的解析都通过这里完成，候选路径用点号分隔。
"""

from typing import Any, Iterable, Mapping, Optional, Tuple

_MISSING = object()


def lookup_path(payload: Any, path: str) -> Any:
    """按点号路径取值，任何一层不存在时返回 None"""
    current = payload
    for part in path.split('.'):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return None
    return current


def is_present(value: Any) -> bool:
    """None、空字符串、空白字符串和空容器都视为不存在"""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return len(value) > 0
    return True


def first_present(payload: Any, candidates: Iterable[str]) -> Tuple[Optional[str], Any]:
    """返回第一个有值的 (路径, 值)，都没有时返回 (None, None)"""
    for path in candidates:
        value = lookup_path(payload, path)
        if is_present(value):
            return path, value
    return None, None


def first_value(payload: Any, candidates: Iterable[str], default: Any = None) -> Any:
    _, value = first_present(payload, candidates)
    return default if value is None else value
