# wildyak/infra/logging_config.py
import logging
import sys
import json
from datetime import datetime, timezone

# Extra record attributes understood by both formatters
CONTEXT_FIELDS = ("session_id", "session_type", "topic")


def _record_context(record: logging.LogRecord) -> dict:
    return {name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)}


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for log shippers"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        log_data.update(_record_context(record))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """Coloured single-line output for local development"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    # Short labels shown in the [..] block
    LABELS = {"session_id": "session", "session_type": "type", "topic": "topic"}

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S")

        parts = []
        for name, value in _record_context(record).items():
            if name == "session_id":
                value = mask_id(value)
            parts.append(f"{self.LABELS[name]}={value}")
        context = f" [{' '.join(parts)}]" if parts else ""

        line = f"{color}{timestamp} {record.levelname:8}{self.RESET} {record.name}{context} - {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(level: str | None = None, use_json: bool | None = None) -> None:
    """
    Configure the root logger.

    Missing arguments are taken from settings (LOG_LEVEL, LOG_JSON).
    """
    if level is None or use_json is None:
        from wildyak.config import settings
        level = level or settings.log_level
        use_json = settings.log_json if use_json is None else use_json

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if use_json else ConsoleFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    logging.getLogger("asyncpg").setLevel(logging.WARNING)

    root_logger.debug(f"Logging configured: level={level}, json={use_json}")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """Logger wrapper that stamps session fields onto every record"""

    def __init__(self, logger: logging.Logger, **fields):
        self.logger = logger
        self.fields = {k: v for k, v in fields.items() if k in CONTEXT_FIELDS and v is not None}

    def bind(self, **fields) -> "LogContext":
        """Copy with extra fields, e.g. the topic a hook ran in"""
        return LogContext(self.logger, **{**self.fields, **fields})

    def log(self, level: int, msg: str, *args, **kwargs):
        extra = {**kwargs.pop("extra", {}), **self.fields}
        self.logger.log(level, msg, *args, extra=extra, **kwargs)

    def debug(self, msg: str, *args, **kwargs):
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self.log(logging.ERROR, msg, *args, **kwargs)


def mask_id(value) -> str:
    """Mask a session or user id for logging: 1234567890 -> 1234***90"""
    value = str(value) if value is not None else ""
    if len(value) <= 6:
        return "***"
    return f"{value[:4]}***{value[-2:]}"
