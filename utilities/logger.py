"""
structlog configuration for the books API.

Events render as JSON lines (or colored console output in development).
Credential-bearing keys are masked before rendering so bearer tokens and
secrets never reach a log sink.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import structlog
from structlog.stdlib import LoggerFactory

REDACTED = "[REDACTED]"

SENSITIVE_KEYS = frozenset({
    "authorization",
    "token",
    "access_token",
    "access_token_secret",
    "secret",
    "password",
})


def redact_sensitive_values(logger, method_name, event_dict):
    """Mask credential values, including inside nested dicts such as headers."""
    return _redact(event_dict)


def _redact(values: dict) -> dict:
    redacted = {}
    for key, value in values.items():
        if isinstance(key, str) and key.lower() in SENSITIVE_KEYS:
            redacted[key] = REDACTED
        elif isinstance(value, dict):
            redacted[key] = _redact(value)
        else:
            redacted[key] = value
    return redacted


def build_processors(log_format: str = "json", debug: bool = False) -> list:
    """
    Processor chain shared by the API server and the tests.

    Redaction runs after exception formatting and before the renderer, so
    it sees every key that will be written out.
    """
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    processors.append(redact_sensitive_values)

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    return processors


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    log_file: Optional[str] = None,
    debug: bool = False
) -> None:
    """
    Route structlog through stdlib logging on stdout, and optionally a file.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        log_format: json or console
        log_file: Extra file sink; parent directories are created
        debug: Add call-site fields to every event
    """
    level = getattr(logging, log_level.upper())

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=build_processors(log_format, debug),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger().addHandler(file_handler)

    structlog.get_logger(__name__).info(
        "Books API logging configured",
        level=log_level,
        format=log_format,
        file=str(log_file) if log_file else None,
        debug=debug
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Named structlog logger, usually ``get_logger(__name__)``."""
    return structlog.get_logger(name)
