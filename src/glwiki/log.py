"""Logging setup for the command line, dashboard and API server."""

import logging
from typing import Optional

LOG_FORMAT = "%(levelname)s (%(name)s %(lineno)s): %(message)s"

_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Install one stream handler on the ``glwiki`` logger.

    Calling it again only changes the level, so the CLI group callback can
    run for every sub-command without stacking handlers.
    """
    root = logging.getLogger("glwiki")
    resolved = logging.getLevelName((level or "WARNING").upper())
    if not isinstance(resolved, int):
        resolved = logging.WARNING

    if not any(getattr(h, "_glwiki", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._glwiki = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    root.setLevel(resolved)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved, logging.WARNING))
    return root
