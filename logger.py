import json
from typing import Optional

import structlog
from flask import has_request_context, request
from structlog.processors import CallsiteParameter

from constants import LOG_FILE_NAME, MAX_LOG_LINES


class JSONFileProcessor:
    """
    Сохраняет последние события лога в json файл (кольцевой буфер из max_log_lines записей)
    """

    def __init__(self, file_path: str, max_log_lines: int = MAX_LOG_LINES):
        self.file_path = file_path
        self.max_log_lines = max_log_lines

    def __call__(self, _, __, event_dict: dict) -> dict:
        try:
            with open(self.file_path, "r", encoding="utf-8") as file:
                logs = json.load(file)

        except (FileNotFoundError, json.JSONDecodeError):
            logs = []

        # даты и прочие не-JSON значения приводим к строке
        logs.append(json.loads(json.dumps(event_dict, default=str)))

        if len(logs) > self.max_log_lines:
            logs = logs[-self.max_log_lines :]  # noqa: E203

        with open(self.file_path, "w", encoding="utf-8") as file:
            json.dump(logs, file, ensure_ascii=False, indent=2)

        return event_dict


def add_request_data(_, __, event_dict: dict) -> dict:
    """Добавляет request-данные, если лог пишется внутри запроса."""
    if has_request_context():
        event_dict["method"] = request.method
        event_dict["url"] = request.url
        event_dict["ip"] = request.remote_addr

    return event_dict


_logger_configured = False


def setup_logger(file_path: Optional[str]) -> None:
    """
    Настраивает structlog с JSON-форматированием.
    Вызывается один раз при импорте модуля.
    Пустой file_path отключает запись в файл.
    """
    global _logger_configured
    if _logger_configured:
        return
    _logger_configured = True

    processors = [
        # Порядок процессоров важен
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.CallsiteParameterAdder(
            {CallsiteParameter.FILENAME, CallsiteParameter.FUNC_NAME}
        ),
        structlog.processors.add_log_level,
        structlog.processors.dict_tracebacks,
        structlog.dev.set_exc_info,
        structlog.processors.format_exc_info,
        add_request_data,
    ]
    if file_path:
        processors.append(JSONFileProcessor(file_path))
    processors.append(structlog.processors.JSONRenderer(ensure_ascii=False, default=str))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def init_logger() -> structlog.stdlib.BoundLogger:
    """
    Инициализирует логгер.
    """
    return structlog.get_logger()


# Включает конфигурацию логера
setup_logger(LOG_FILE_NAME)
