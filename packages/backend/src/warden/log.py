"""structlog setup.

One call at process start picks the renderer and level by environment:
- local → colored console output, DEBUG
- dev   → JSON lines, DEBUG
- prod  → JSON lines, INFO

Request-scoped values (request_id) come in through contextvars, bound
by the request id middleware.
"""

import logging

import structlog

_LEVELS = {
    "local": logging.DEBUG,
    "dev": logging.DEBUG,
    "prod": logging.INFO,
}


def configure_logging(environment: str) -> None:
    level = _LEVELS.get(environment, logging.INFO)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if environment == "local":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
