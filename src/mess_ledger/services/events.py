"""Change notifications between ledger writers and derived caches."""

import logging
from collections.abc import Iterable
from datetime import date
from typing import Protocol

logger = logging.getLogger(__name__)


class ChangeListener(Protocol):
    """Receives a signal after meal or ledger data of a mess changed."""

    def data_changed(self, mess_id: str, day: date) -> None:
        """React to a change affecting the given mess-local date."""


def emit_change(listeners: Iterable[ChangeListener], mess_id: str, day: date) -> None:
    """Call every listener; a failing listener does not stop the others."""
    for listener in listeners:
        try:
            listener.data_changed(mess_id, day)
        except Exception:
            logger.exception(
                "Change listener %s failed for mess %s",
                type(listener).__name__,
                mess_id,
            )
