import logging
import os
import sys

import structlog

LOG_LEVEL_ENV_VAR = "OPSCOCKPIT_LOG_LEVEL"


def setup_structlog() -> None:
    level = logging.getLevelName(os.environ.get(LOG_LEVEL_ENV_VAR, "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    # uvicorn and sqlalchemy log through the standard library, so route that
    # to the same stream
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
