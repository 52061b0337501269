"""
Package loggers.

Every module logs under the ``nnetgraph`` namespace:

```python
from nnetgraph.utils.logging import get_logger

logger = get_logger("graph.assigner")
logger.debug("Assigned ids: %s", "x=0, h=1, y=2")
```

The ``NNETGRAPH_LOG_LEVEL`` environment variable (``DEBUG``, ``INFO``, ...)
overrides the level a channel is first configured with, e.g. to see each
parsed description line and every structural mutation.
"""

from __future__ import annotations

import logging
import os

from .formatters import NnetBannerFormatter, WarningFormatter

_LOGGER_NAME = "nnetgraph"
_LEVEL_ENV = "NNETGRAPH_LOG_LEVEL"

# Channels with a dedicated formatter; all others get the banner
_CHANNEL_FORMATTERS: dict[str, type[logging.Formatter]] = {
    "warnings": WarningFormatter,
}


def _resolve_level(default: int) -> int:
    value = os.environ.get(_LEVEL_ENV, "").strip().upper()
    if not value:
        return default
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value)
    return level if isinstance(level, int) else default


def get_logger(name: str | None = None, level: int = logging.INFO) -> logging.Logger:
    """
    Return the ``nnetgraph`` logger for a channel, configuring it on first use.

    Args:
        name (str | None): Channel below ``nnetgraph`` (e.g. ``"graph"``,
            ``"component"``, ``"warnings"``).
        level (int): Level used when ``NNETGRAPH_LOG_LEVEL`` is unset.

    Returns:
        logging.Logger: Logger with a single stream handler.

    """
    channel = _LOGGER_NAME if name is None else f"{_LOGGER_NAME}.{name}"
    logger = logging.getLogger(channel)
    if logger.handlers:
        return logger

    logger.setLevel(_resolve_level(level))
    logger.propagate = False
    handler = logging.StreamHandler()
    handler.setFormatter(_CHANNEL_FORMATTERS.get(name, NnetBannerFormatter)())
    logger.addHandler(handler)
    return logger
