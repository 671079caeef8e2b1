"""Structured logging for the candle engine.

Every module logs through get_logger(__name__) with snake_case event names
(candle_built, backfill_phase1_complete, price_samples_collected). The
backfill binds asset_id and symbol as contextvars, so fetcher and store lines
emitted while one asset is repaired carry them without explicit arguments.
"""

import logging
import os

import structlog


def setup_logging(log_level: str = "INFO") -> None:
    """Route structlog and stdlib logging through one stream handler.

    LOG_FORMAT=json renders one JSON object per line for log shippers; any
    other value (default "console") uses the colored dev renderer. httpx
    request lines are raised to WARNING since the fetcher and price
    collector log their own per-request events.
    """
    log_format = os.environ.get("LOG_FORMAT", "console").lower()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Per-request and per-statement chatter from the transports and the store
    for noisy in ("httpx", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger with the given name."""
    return structlog.get_logger(name)
