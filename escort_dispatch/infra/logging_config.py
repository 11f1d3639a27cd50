# escort_dispatch/infra/logging_config.py
"""
Root logger setup plus the assignment-scoped context that dispatch log lines
carry. Production emits one JSON object per line; development gets a coloured
single-line format.
"""
import logging
import sys
import json
from datetime import datetime, timezone


# ``extra`` attribute -> short label used by the console format
CONTEXT_FIELDS = {
    "assignment_id": "assignment",
    "request_id": "request",
    "rider": "rider",
    "channel": "channel",
}

NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
}


def record_context(record: logging.LogRecord) -> dict:
    """Context fields attached to a record, in declaration order"""
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record"""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update(record_context(record))
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ConsoleFormatter(logging.Formatter):
    """Coloured single-line format for development"""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        tags = " ".join(
            f"{CONTEXT_FIELDS[name]}={value}" for name, value in record_context(record).items()
        )
        suffix = f" [{tags}]" if tags else ""

        line = f"{color}[{stamp}] {record.levelname:8}{self.RESET} {record.name}{suffix} - {record.getMessage()}"
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(level: str = "INFO", use_json: bool = False) -> None:
    """
    Replace root handlers with a single stdout handler.

    Args:
        level: Log level name
        use_json: JSON lines instead of the console format
    """
    root = logging.getLogger()
    root.setLevel(level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if use_json else ConsoleFormatter())
    root.addHandler(handler)

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)

    logging.info(f"Logging configured: level={level}, json={use_json}")


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """Logger wrapper that stamps assignment/request context onto every record"""

    def __init__(self, logger: logging.Logger, **context):
        unknown = set(context) - set(CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"Unknown log context fields: {sorted(unknown)}")
        self.logger = logger
        self.context = {k: v for k, v in context.items() if v}

    def log(self, level: int, msg: str, *args, **kwargs) -> None:
        extra = {**kwargs.pop("extra", {}), **self.context}
        self.logger.log(level, msg, *args, extra=extra, **kwargs)

    def debug(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs) -> None:
        self.log(logging.ERROR, msg, *args, **kwargs)


def mask_phone(phone: str | None) -> str:
    """Mask phone number for logging: 5045551234 -> 504***1234"""
    if not phone:
        return "***"
    clean = str(phone).strip()
    if len(clean) <= 6:
        return "***"
    return f"{clean[:3]}***{clean[-4:]}"


def mask_email(email: str | None) -> str:
    """Mask the local part of an address: jane.doe@example.com -> ja***@example.com

    Email-to-SMS relay addresses are masked the same way, so the
    phone digits never reach the log line.
    """
    if not email or "@" not in email:
        return "***"
    local, _, domain = str(email).strip().partition("@")
    return f"{local[:2]}***@{domain}"
