"""Structured logging configuration using structlog.

Call ``configure_logging()`` once at startup.  The CLI does so before every
command; ``create_app`` leaves it to whoever hosts the app.  Modules then
log through structlog::

    import structlog
    logger = structlog.get_logger(__name__)
    logger.info("proxy_request", method="POST", target="http://...")

Plain ``logging.getLogger(__name__)`` records (uvicorn, httpx) are routed
through the same renderer.
"""

from __future__ import annotations

import logging
import sys

import structlog
from structlog.types import EventDict, WrappedLogger

_SECRET_SUBSTRINGS: frozenset[str] = frozenset({
    "api_key",
    "apikey",
    "secret",
    "token",
    "credential",
    "bearer",
    "authorization",
})
"""Lower-cased substrings that identify event-dict keys whose values must
never reach a renderer."""


def _redact_secrets(
    logger: WrappedLogger,  # noqa: ARG001
    method_name: str,  # noqa: ARG001
    event_dict: EventDict,
) -> EventDict:
    """Replace values of secret-bearing keys with ``"[REDACTED]"``.

    Top-level keys and one level of nested dicts (e.g. ``headers={...}``)
    are scanned, case-insensitively.
    """
    redacted = "[REDACTED]"
    for key in list(event_dict.keys()):
        if any(secret in key.lower() for secret in _SECRET_SUBSTRINGS):
            event_dict[key] = redacted
            continue
        val = event_dict[key]
        if isinstance(val, dict):
            event_dict[key] = {
                k: (redacted if any(s in str(k).lower() for s in _SECRET_SUBSTRINGS) else v)
                for k, v in val.items()
            }
    return event_dict


def configure_logging(log_level: str = "INFO") -> None:
    """Configure structlog and the stdlib root logger.

    At ``DEBUG`` the output is structlog's coloured ``ConsoleRenderer``;
    at every other level it is newline-delimited JSON.  Calling this more
    than once replaces the previous configuration.

    Args:
        log_level: ``"DEBUG"``, ``"INFO"``, ``"WARNING"``, ``"ERROR"`` or
            ``"CRITICAL"``.  Case-insensitive; unknown values mean INFO.
    """
    level_upper = log_level.upper()
    numeric_level = getattr(logging, level_upper, logging.INFO)
    is_development = level_upper == "DEBUG"

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _redact_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if is_development:
        final_renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer(
            colors=True,
        )
    else:
        final_renderer = structlog.processors.JSONRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            final_renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    # Drop handlers from an earlier call so records are not duplicated.
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)

    if not is_development:
        for noisy_logger in ("uvicorn.access", "httpx", "httpcore"):
            logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
