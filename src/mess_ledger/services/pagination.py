"""Keyset pagination over ledger records ordered by date, newest first."""

import asyncio
import logging
from dataclasses import dataclass, field

from mess_ledger.domain.ledger import (
    COUNTED_STATUSES,
    Transaction,
    TransactionKind,
    TransactionStatus,
)
from mess_ledger.services.ledger import TransactionRepository

logger = logging.getLogger(__name__)


@dataclass
class TransactionCursor:
    """Holds pages fetched so far. Not reentrant: callers must not overlap calls."""

    repository: TransactionRepository
    mess_id: str
    kind: TransactionKind
    page_size: int = 20
    member_id: str | None = None
    statuses: frozenset[TransactionStatus] = COUNTED_STATUSES
    items: tuple[Transaction, ...] = field(default=(), init=False)
    has_more: bool = field(default=True, init=False)
    loading: bool = field(default=False, init=False)

    def __post_init__(self) -> None:
        if self.page_size <= 0:
            raise ValueError("page_size must be positive")

    async def reload(self) -> tuple[Transaction, ...]:
        """Fetch the first page and replace everything held so far."""
        page = await self._fetch(after=None)
        self.items = tuple(page)
        self.has_more = len(page) == self.page_size
        return self.items

    async def load_more(self) -> tuple[Transaction, ...]:
        """Append the next page unless a fetch is running or data ran out."""
        if self.loading or not self.has_more:
            return self.items
        after = self.items[-1] if self.items else None
        page = await self._fetch(after=after)
        self.items = self.items + tuple(page)
        self.has_more = len(page) == self.page_size
        return self.items

    async def _fetch(self, after: Transaction | None) -> list[Transaction]:
        self.loading = True
        try:
            return await asyncio.to_thread(
                self.repository.list_page,
                self.mess_id,
                self.kind,
                self.statuses,
                self.page_size,
                after,
                self.member_id,
            )
        except Exception:
            logger.exception("Error fetching page for %s", self.mess_id)
            raise
        finally:
            self.loading = False
