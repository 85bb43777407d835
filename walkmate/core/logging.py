"""Observability setup: Pydantic Logfire over the standard logging module.

Modules log through ``logging.getLogger(__name__)`` and pass structured
fields in ``extra``; once ``configure_logfire`` has run, those records are
forwarded to Logfire. Service actions open a span per call::

    with span("walk_service.apply_to_request"):
        ...
"""

import logging

import logfire
from fastapi import FastAPI

from walkmate import __version__
from walkmate.core.config import settings


# Third-party loggers that log every request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite")


def configure_logfire() -> None:
    """Route standard logging into Logfire; records leave the process only when a token is set."""
    logfire.configure(
        token=settings.logfire_token,
        service_name="walkmate",
        service_version=__version__,
        environment=settings.environment,
        send_to_logfire="if-token-present",
    )
    logging.basicConfig(handlers=[logfire.LogfireLoggingHandler()], level=logging.INFO)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logfire configured", extra={"environment": settings.environment, "remote": bool(settings.logfire_token)}
    )


def instrument_fastapi(app: FastAPI) -> None:
    """Trace every view request."""
    logfire.instrument_fastapi(app)


def span(name: str) -> logfire.LogfireSpan:
    """Span named ``<module>.<action>`` around one service call."""
    return logfire.span(name)


def log_with_user_context(
    logger: logging.Logger,
    level: str,
    message: str,
    user_id: str | None = None,
    **extra: object,
) -> None:
    """Log at the named level with the acting user, when there is one, added to ``extra``.

    Args:
        logger: Logger of the calling module
        level: "debug", "info", "warning", "error" or "critical"
        message: Event name or message
        user_id: Signed-in user, None when signed out
        **extra: Further structured fields
    """
    fields = dict(extra)
    if user_id:
        fields["user_id"] = user_id
    logger.log(logging.getLevelNamesMapping()[level.upper()], message, extra=fields)
