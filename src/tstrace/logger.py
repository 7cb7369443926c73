import logging
import sys

import structlog

LOGGER_NAME = "tstrace"


def _processors(json_output: bool) -> list:
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    return [
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S", utc=False),
        renderer,
    ]


def configure_structlog(json_output: bool = False) -> None:
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(logging.NOTSET),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
        processors=_processors(json_output),
    )


def setup_logging(debug: bool = False, json_output: bool = False) -> None:
    """
    Route analysis logs to stderr for command line use. Library callers keep
    whatever handlers the host application installed on the root logger.
    """
    configure_structlog(json_output)
    level = logging.DEBUG if debug else logging.WARNING
    root = logging.getLogger()
    root.setLevel(level)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        # structlog renders the whole line
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
    for handler in root.handlers:
        handler.setLevel(level)


configure_structlog()

_std_logger = logging.getLogger(LOGGER_NAME)
_std_logger.setLevel(logging.NOTSET)
_std_logger.propagate = True

logger: structlog.BoundLogger = structlog.get_logger(LOGGER_NAME)
