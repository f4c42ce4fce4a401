import logging

import structlog


def configure_logging(production: bool) -> None:
    """Route structlog output through a level filter.

    Fetch progress is logged at INFO, so production mode (WARNING and above)
    only reports upstream failures.
    """
    level = logging.WARNING if production else logging.INFO
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if not production else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=False,
    )
