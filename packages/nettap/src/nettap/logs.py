"""Logging setup for the nettap command line."""

import logging
import sys

__all__ = ["setup_logging"]

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level: str | int = "INFO") -> logging.Logger:
    """Attach a stream handler to the nettap package logger.

    Safe to call more than once; the handler is only added the first time.

    Args:
        level: Log level name or number

    Returns:
        The configured "nettap" logger
    """
    nettap_logger = logging.getLogger("nettap")
    nettap_logger.setLevel(level if isinstance(level, int) else level.upper())

    if not any(getattr(h, "_nettap", False) for h in nettap_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._nettap = True  # type: ignore[attr-defined]
        nettap_logger.addHandler(handler)

    return nettap_logger
