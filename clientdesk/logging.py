import logging
import logging.config
from contextvars import ContextVar
from datetime import datetime, timezone

from pythonjsonlogger import jsonlogger

from clientdesk.config import settings

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


class RequestIdFilter(logging.Filter):
    """Attach the current request id (if any) to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get() or "-"
        return True


class RequestJsonFormatter(jsonlogger.JsonFormatter):
    """JSON records with a UTC timestamp, level, logger name and request id."""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["ts"] = datetime.fromtimestamp(record.created, timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["request_id"] = getattr(record, "request_id", "-")


def build_logging_config(level: str | None = None, json_output: bool | None = None) -> dict:
    level = (level or settings.log_level).upper()
    json_output = settings.log_json if json_output is None else json_output
    formatter = "json" if json_output else "plain"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": RequestIdFilter}},
        "formatters": {
            "plain": {
                "format": "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s",
            },
            "json": {
                "()": RequestJsonFormatter,
                "fmt": "%(message)s",
                "json_ensure_ascii": False,
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": formatter,
                "filters": ["request_id"],
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            "uvicorn.access": {"level": "WARNING"},
            "httpx": {"level": "WARNING"},
        },
    }


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    logging.config.dictConfig(build_logging_config(level, json_output))
