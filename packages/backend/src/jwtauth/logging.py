"""structlog configuration.

Learn: Every log call goes through the same processor chain. Request-scoped
values (the request id bound by RequestIdMiddleware) are pulled in from
contextvars; operation-scoped values are bound explicitly with
``logger.bind(op=..., request_id=...)`` at the top of each operation, so no
shared logger is ever re-wrapped in place.
"""

import logging

import structlog


def configure_logging(environment: str = "development", log_level: str = "INFO") -> None:
    """Configure structlog for the given environment.

    Development gets coloured console output; anything else gets one JSON
    object per line.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if environment == "development":
        processors = shared_processors + [structlog.dev.ConsoleRenderer()]
    else:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

