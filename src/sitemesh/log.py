"""structlog setup for command-line use.

Library modules only ever call ``structlog.get_logger()``; configuring the
processors and output is left to the application, here the CLI.
"""

from __future__ import annotations

import logging
import sys

import structlog

LOG_FORMATS = ("plain", "json")


def configure_logging(level: str = "INFO", fmt: str = "plain") -> None:
    """Route structlog through stdlib logging on stderr.

    *fmt* ``"json"`` renders one JSON object per event, ``"plain"`` a
    human-readable console line.
    """
    if fmt not in LOG_FORMATS:
        raise ValueError(f"fmt must be one of {LOG_FORMATS}, got {fmt!r}")
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"unknown log level {level!r}")

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=numeric)
    logging.getLogger("sitemesh").setLevel(numeric)

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
