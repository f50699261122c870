import logging
import os
import json as json_lib
from datetime import datetime
from logging.handlers import RotatingFileHandler
from .config import settings


# 这些字段名一律不写入日志
SECRET_FIELDS = {'api_key', 'apikey', 'key', 'authorization', 'token', 'secret'}


def _ensure_log_dir(path):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)


def _format_size(size):
    if size > 1024*1024:
        return f"{size/(1024*1024):.1f}MB"
    if size > 1024:
        return f"{size/1024:.1f}KB"
    return f"{size}字节"


def _short_error(record):
    """把常见的异常类型名翻译成简短的描述"""
    error_msg = record.error_type
    if record.levelname == 'ERROR':
        lowered = error_msg.lower()
        if 'timeout' in lowered:
            error_msg = "超时"
        elif 'ssl' in lowered:
            error_msg = "SSL证书错误"
        elif 'connection' in lowered or 'network' in lowered:
            error_msg = "网络错误"
        elif 'provider' in lowered:
            error_msg = f"服务商错误 ({record.error_type})"
    return error_msg


def _collect_details(record, url_limit):
    details = []

    # URL信息 (截断长URL，data URI 只显示前缀)
    if hasattr(record, 'url') and record.url:
        url = str(record.url)
        if url.startswith('data:'):
            url = url[:30] + "..."
        elif len(url) > url_limit:
            half = url_limit // 2
            url = url[:half] + "..." + url[-(half - 3):]
        details.append(f"URL: {url}")

    if hasattr(record, 'path'):
        details.append(f"路径: {record.path}")

    if hasattr(record, 'status'):
        details.append(f"状态: {record.status}")

    if hasattr(record, 'duration'):
        details.append(f"耗时: {record.duration}")

    # 任务与服务商
    if hasattr(record, 'provider'):
        details.append(f"服务商: {record.provider}")

    if hasattr(record, 'task_id') and record.task_id:
        details.append(f"任务: {record.task_id}")

    if hasattr(record, 'state'):
        details.append(f"任务状态: {record.state}")

    if hasattr(record, 'attempt'):
        details.append(f"第{record.attempt}次查询")

    if hasattr(record, 'error_type'):
        details.append(f"错误: {_short_error(record)}")

    if hasattr(record, 'client_ip') and record.client_ip != 'unknown':
        details.append(f"客户端: {record.client_ip}")

    if hasattr(record, 'method'):
        details.append(f"方法: {record.method}")

    if hasattr(record, 'data_size') and record.data_size:
        details.append(f"大小: {_format_size(record.data_size)}")

    return details


class StructuredLogger:
    def __init__(self, name, log_file=None):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG)

        # 清除现有的处理器
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)

        log_file = log_file or settings.LOG_FILE
        _ensure_log_dir(log_file)
        _ensure_log_dir(settings.LOG_BACKUP_FILE)

        # 文件处理器 - 轮转日志
        file_handler = RotatingFileHandler(
            log_file, maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT, encoding='utf-8'
        )
        file_handler.setLevel(logging.DEBUG)

        # 控制台处理器
        console_handler = logging.StreamHandler()
        console_handler.setLevel(logging.INFO)

        file_handler.setFormatter(ReadableFileFormatter())
        console_handler.setFormatter(LayeredFormatter())

        # 额外创建一个JSON备份文件（供程序解析使用）
        json_handler = RotatingFileHandler(
            settings.LOG_BACKUP_FILE, maxBytes=5*1024*1024,
            backupCount=3, encoding='utf-8'
        )
        json_handler.setLevel(logging.DEBUG)
        json_handler.setFormatter(BackupJSONFormatter())

        self.logger.addHandler(file_handler)
        self.logger.addHandler(console_handler)
        self.logger.addHandler(json_handler)

    def debug(self, message, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message, **kwargs):
        self._log(logging.ERROR, message, **kwargs)

    def critical(self, message, **kwargs):
        self._log(logging.CRITICAL, message, **kwargs)

    def _log(self, level, message, **kwargs):
        extra = {}
        for key, value in kwargs.items():
            if key.lower() in SECRET_FIELDS:
                continue
            extra[key] = value
        self.logger.log(level, message, extra=extra)


# 级别图标映射
LEVEL_ICONS = {
    'DEBUG': '🔍',
    'INFO': '✅',
    'WARNING': '⚠️',
    'ERROR': '🔴',
    'CRITICAL': '💥'
}


class _IconFormatter(logging.Formatter):
    """可读格式的公共部分：时间、图标和简化的请求ID"""

    timestamp_format = "%H:%M:%S"
    request_label = "请求: "
    url_limit = 60

    def _main_line(self, record):
        icon = LEVEL_ICONS.get(record.levelname, '📝')
        main_line = f"[{datetime.now().strftime(self.timestamp_format)}] {icon} {record.getMessage()}"

        request_id = getattr(record, 'request_id', None)
        if request_id and request_id != 'unknown':
            main_line += f" ({self.request_label}{request_id[:8]})"
        return main_line


class ReadableFileFormatter(_IconFormatter):
    timestamp_format = "%m-%d %H:%M:%S"
    request_label = "请求:"
    url_limit = 70

    def format(self, record):
        main_line = self._main_line(record)
        details = _collect_details(record, self.url_limit)

        if hasattr(record, 'stack_trace'):
            details.append(f"堆栈:\n{record.stack_trace}")

        if not details:
            return main_line
        # 如果详细信息太多，分行显示
        if len(details) > 3:
            return main_line + "\n" + "\n".join(f"    ├─ {detail}" for detail in details)
        return main_line + f"\n    └─ {' | '.join(details)}"


class BackupJSONFormatter(logging.Formatter):
    def format(self, record):
        now = datetime.now()
        log_entry = {
            "时间": now.strftime("%Y-%m-%d %H:%M:%S"),
            "级别": record.levelname,
            "日志器": record.name,
            "消息": record.getMessage(),
            "模块": record.module,
            "函数": record.funcName,
            "行号": record.lineno
        }

        # 添加额外的字段
        field_names = {
            'request_id': '请求ID',
            'url': 'URL',
            'path': '路径',
            'duration': '耗时',
            'status': '状态码',
            'error_type': '错误类型',
            'error_message': '错误信息',
            'client_ip': '客户端IP',
            'method': 'HTTP方法',
            'provider': '服务商',
            'task_id': '任务ID',
            'state': '任务状态',
            'attempt': '查询次数',
            'transformation_type': '转换类型',
            'room_type': '房间类型',
            'design_style': '设计风格',
            'stack_trace': '错误堆栈',
        }
        for attr, label in field_names.items():
            if hasattr(record, attr):
                log_entry[label] = getattr(record, attr)
        if hasattr(record, 'data_size'):
            log_entry['数据大小'] = f"{record.data_size}字节"

        return json_lib.dumps(log_entry, ensure_ascii=False, default=str)


class LayeredFormatter(_IconFormatter):
    """控制台格式：不输出堆栈，详细字段缩进显示"""

    def format(self, record):
        main_line = self._main_line(record)
        details = _collect_details(record, self.url_limit)

        if not details:
            return main_line
        if len(details) > 2:
            return main_line + "\n" + "\n".join(f"         {detail}" for detail in details)
        return main_line + "\n         " + " | ".join(details)


# 创建全局日志器
logger = StructuredLogger("restager")
