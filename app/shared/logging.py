"""
Logging configuration for the market API.

Analysis runs in worker threads next to the event loop, so the format
carries the thread name. Per-tick DEBUG lines from the feed and hub are
kept at INFO unless ``tick_debug`` is set: at DEBUG they would log every
ticker message of every symbol.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

TICK_LOGGERS = ("tradecharts.realtime.feed", "tradecharts.realtime.hub")
QUIET_LOGGERS = ("uvicorn.access", "websockets", "httpx")


def configure_logging(level: str = "INFO", tick_debug: bool = False) -> None:
    """Install the root handler and tune library and per-tick loggers.

    Args:
        level: Root log level name (DEBUG, INFO, WARNING, ERROR).
        tick_debug: Let feed and hub per-tick DEBUG lines through.
    """
    root_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=root_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        stream=sys.stdout,
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    tick_level = logging.NOTSET if tick_debug else max(root_level, logging.INFO)
    for name in TICK_LOGGERS:
        logging.getLogger(name).setLevel(tick_level)
