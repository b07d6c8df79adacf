"""Toast/notification sink used to surface success and failure signals.

The presentation layer supplies its own implementation; ``LoggingNotifier``
is the default and simply records signals in the application log.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger("portal.scheduling.notifications")


class Notifier(Protocol):
    """Consumer of user-facing feedback emitted by the engine."""

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    """Notifier that writes every signal to the ``portal`` log."""

    def success(self, message: str) -> None:
        logger.info("notify success: %s", message)

    def error(self, message: str) -> None:
        logger.warning("notify error: %s", message)
