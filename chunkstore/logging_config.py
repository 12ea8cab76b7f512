import contextvars
import logging
import os
import sys
import uuid
from typing import Protocol

from loki_logger_handler.loki_logger_handler import LokiLoggerHandler


NO_RAY_ID = "no-ray-id"
ray_id_context: contextvars.ContextVar[str] = contextvars.ContextVar("ray_id", default=NO_RAY_ID)

# Chatty at INFO/DEBUG and never useful when the service log level is lowered
QUIET_LOGGERS = ("aiosqlite", "asyncio", "sqlalchemy.engine", "httpx", "httpcore")


class LoggingConfig(Protocol):
    log_level: str
    loki_enabled: bool
    loki_url: str
    environment: str


def generate_ray_id() -> str:
    """Return a 16-character lowercase hex id (first 64 bits of a UUID4)."""
    return uuid.uuid4().hex[:16]


class RayIDFilter(logging.Filter):
    """Stamp every record with the current request's ray id.

    Records that already carry ``ray_id`` (passed via ``extra``) keep it;
    records logged outside a request get ``no-ray-id``.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "ray_id"):
            record.ray_id = ray_id_context.get()
        return True


def setup_loki_logging(config: LoggingConfig, service_name: str, include_ray_id: bool = True) -> logging.Logger:
    """
    Configure root logging to stdout, plus Loki when enabled.

    Args:
        config: Application configuration
        service_name: Loki ``service`` label and name of the returned logger ("api", "reconcile")
        include_ray_id: Prefix every line with the request ray id (off for CLI tools)

    Returns:
        Logger named after the service
    """
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if config.loki_enabled and config.loki_url:
        handlers.append(
            LokiLoggerHandler(
                url=config.loki_url,
                labels={
                    "service": service_name,
                    "environment": config.environment,
                    "host": os.getenv("HOSTNAME", "unknown"),
                },
                timeout=10,
                compressed=True,
            )
        )

    if include_ray_id:
        ray_id_filter = RayIDFilter()
        for handler in handlers:
            handler.addFilter(ray_id_filter)
        log_format = "%(asctime)s - [%(ray_id)s] - %(name)s - %(levelname)s - %(message)s"
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(level=log_level, format=log_format, handlers=handlers)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    return logging.getLogger(service_name)
