"""Logging configuration setup.

Builds a dictConfig dictionary from LoggingSettings:
- ContextInjectingFilter on the root logger for automatic context propagation
- All handlers on the root logger (child loggers propagate)
- JSONL format for machine parsing, or a plain text format for local runs
"""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gateway_service.core.settings.logs import LoggingSettings

logger = logging.getLogger(__name__)
_LOGGING_INITIALIZED = False

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Args:
        log_settings: Optional logging settings instance. If omitted, settings
            are loaded via get_logging_settings().
        force: Reconfigure logging even if it was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    settings_obj = log_settings
    if settings_obj is None:
        from gateway_service.core.settings import get_logging_settings

        settings_obj = get_logging_settings()

    log_config = {**settings_obj.to_logging_kwargs(), **configure_kwargs}
    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    log_level: str = "INFO",
    *,
    service_name: str = "graphql-gateway",
    json_logs: bool = True,
    console_enabled: bool = True,
    file_path: str | Path | None = None,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
    include_context: bool = True,
    capture_warnings: bool = True,
) -> dict[str, Any]:
    """Configure the root logger through logging.config.dictConfig.

    Returns:
        The applied dictConfig dictionary (handy in tests).
    """
    if capture_warnings:
        logging.captureWarnings(True)

    formatter = "json" if json_logs else "text"
    handlers: dict[str, Any] = {}

    if console_enabled:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": formatter,
            "stream": "ext://sys.stderr",
        }

    if file_path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "json",
            "filename": str(path),
            "maxBytes": file_max_bytes,
            "backupCount": file_backup_count,
            "encoding": "utf-8",
        }

    filters: dict[str, Any] = {}
    if include_context:
        filters["context"] = {
            "()": "gateway_service.infra.logging.context.ContextInjectingFilter",
        }

    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "gateway_service.infra.logging.formatters.JSONFormatter",
                "static": {"service": service_name},
            },
            "text": {"format": TEXT_FORMAT},
        },
        "filters": filters,
        "handlers": {
            name: {**handler, "filters": list(filters)} for name, handler in handlers.items()
        },
        "root": {
            "level": log_level.upper(),
            "handlers": list(handlers),
        },
    }

    logging.config.dictConfig(config)
    logger.debug(
        "Logging configured",
        extra={"handlers": list(handlers), "json_logs": json_logs},
    )
    return config
