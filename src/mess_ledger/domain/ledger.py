"""Domain models for deposits and expenses."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class TransactionKind(Enum):
    """Ledger record kinds, each stored in its own table."""

    DEPOSIT = "deposit"
    EXPENSE = "expense"


class TransactionStatus(Enum):
    """Lifecycle state of a ledger record."""

    PENDING = "pending"
    APPROVED = "approved"
    DELETION_REQUESTED = "deletion_requested"


# Records in these states count towards balances and reports.
COUNTED_STATUSES = frozenset(
    {TransactionStatus.APPROVED, TransactionStatus.DELETION_REQUESTED}
)


@dataclass(frozen=True)
class Transaction:
    """A deposit or expense owned by a member."""

    id: UUID
    mess_id: str
    kind: TransactionKind
    member_id: str
    amount: float
    date: datetime
    status: TransactionStatus
    created_by: str
    description: str | None = None
    receipt_url: str | None = None

    @property
    def is_counted(self) -> bool:
        return self.status in COUNTED_STATUSES


@dataclass(frozen=True)
class NewTransaction:
    """Validated input for a ledger insert."""

    mess_id: str
    kind: TransactionKind
    member_id: str
    amount: float
    date: datetime
    status: TransactionStatus
    created_by: str
    description: str | None = None
    receipt_url: str | None = None
