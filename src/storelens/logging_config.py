from __future__ import annotations

import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "storelens"

_DEFAULT_FMT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DEFAULT_DATEFMT = "%H:%M:%S"


def configure_logging(level: Optional[int]) -> None:
    """Route log records to stderr and set the verbosity of storelens loggers.

    The root handler is installed once, at WARNING, so libraries such as
    Pillow stay quiet under ``-vv``. ``level`` applies to the ``storelens``
    package logger only; ``None`` means WARNING. Safe to call repeatedly.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=logging.WARNING,
            format=_DEFAULT_FMT,
            datefmt=_DEFAULT_DATEFMT,
            stream=sys.stderr,
        )

    logging.getLogger(PACKAGE_LOGGER).setLevel(level if level is not None else logging.WARNING)
