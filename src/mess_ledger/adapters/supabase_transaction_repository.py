"""Supabase repository for deposits and expenses."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from mess_ledger.domain.ledger import (
    NewTransaction,
    Transaction,
    TransactionKind,
    TransactionStatus,
)
from mess_ledger.services.ledger import TransactionRepository

_TABLES = {
    TransactionKind.DEPOSIT: "deposits",
    TransactionKind.EXPENSE: "expenses",
}
_COLUMNS = {
    TransactionKind.DEPOSIT: "id, mess_id, member_id, amount, date, status, created_by",
    TransactionKind.EXPENSE: (
        "id, mess_id, member_id, amount, date, status, created_by, description, "
        "receipt_url"
    ),
}


@dataclass
class SupabaseTransactionRepository(TransactionRepository):
    """Supabase implementation storing each kind in its own table."""

    client: Client

    def create(self, transaction: NewTransaction) -> Transaction:
        """Insert a ledger row."""
        payload: dict[str, object] = {
            "mess_id": transaction.mess_id,
            "member_id": transaction.member_id,
            "amount": transaction.amount,
            "date": transaction.date.isoformat(),
            "status": transaction.status.value,
            "created_by": transaction.created_by,
        }
        if transaction.kind is TransactionKind.EXPENSE:
            payload["description"] = transaction.description
            payload["receipt_url"] = transaction.receipt_url
        table = self.client.table(_TABLES[transaction.kind])
        response = table.insert(payload).execute()
        if not response.data:
            raise RuntimeError(f"Failed to create {transaction.kind.value}")
        return _parse_row(transaction.kind, response.data[0])

    def get(
        self, mess_id: str, kind: TransactionKind, transaction_id: UUID
    ) -> Transaction | None:
        """Return a ledger row by id."""
        response = (
            self.client.table(_TABLES[kind])
            .select(_COLUMNS[kind])
            .eq("mess_id", mess_id)
            .eq("id", str(transaction_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_row(kind, response.data[0])

    def transition(
        self,
        mess_id: str,
        kind: TransactionKind,
        transaction_id: UUID,
        expected: TransactionStatus,
        new: TransactionStatus,
    ) -> bool:
        """Conditionally update the status; the status filter makes it a CAS."""
        response = (
            self.client.table(_TABLES[kind])
            .update({"status": new.value})
            .eq("mess_id", mess_id)
            .eq("id", str(transaction_id))
            .eq("status", expected.value)
            .execute()
        )
        return bool(response.data)

    def delete_if(
        self,
        mess_id: str,
        kind: TransactionKind,
        transaction_id: UUID,
        expected: Iterable[TransactionStatus],
    ) -> bool:
        """Delete the row only while it is in one of the expected states."""
        response = (
            self.client.table(_TABLES[kind])
            .delete()
            .eq("mess_id", mess_id)
            .eq("id", str(transaction_id))
            .in_("status", sorted(status.value for status in expected))
            .execute()
        )
        return bool(response.data)

    def update_fields(
        self,
        mess_id: str,
        kind: TransactionKind,
        transaction_id: UUID,
        fields: dict[str, object],
    ) -> None:
        """Update editable columns of a row."""
        payload = {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in fields.items()
        }
        self.client.table(_TABLES[kind]).update(payload).eq("mess_id", mess_id).eq(
            "id", str(transaction_id)
        ).execute()

    def list_transactions(  # noqa: PLR0913
        self,
        mess_id: str,
        kind: TransactionKind,
        statuses: Iterable[TransactionStatus],
        start: datetime | None = None,
        end: datetime | None = None,
        member_id: str | None = None,
    ) -> list[Transaction]:
        """Return rows in the given states and half-open date range."""
        query = (
            self.client.table(_TABLES[kind])
            .select(_COLUMNS[kind])
            .eq("mess_id", mess_id)
            .in_("status", sorted(status.value for status in statuses))
        )
        if start is not None:
            query = query.gte("date", start.isoformat())
        if end is not None:
            query = query.lt("date", end.isoformat())
        if member_id is not None:
            query = query.eq("member_id", member_id)
        response = query.order("date", desc=False).execute()
        return [_parse_row(kind, row) for row in response.data or []]

    def count_by_status(
        self, mess_id: str, kind: TransactionKind, status: TransactionStatus
    ) -> int:
        """Return the exact number of rows in a status."""
        response = (
            self.client.table(_TABLES[kind])
            .select("id", count="exact")
            .eq("mess_id", mess_id)
            .eq("status", status.value)
            .execute()
        )
        if response.count is not None:
            return int(response.count)
        return len(response.data or [])

    def list_page(  # noqa: PLR0913
        self,
        mess_id: str,
        kind: TransactionKind,
        statuses: Iterable[TransactionStatus],
        limit: int,
        after: Transaction | None = None,
        member_id: str | None = None,
    ) -> list[Transaction]:
        """Return one page ordered by (date, id) descending, after a cursor row."""
        query = (
            self.client.table(_TABLES[kind])
            .select(_COLUMNS[kind])
            .eq("mess_id", mess_id)
            .in_("status", sorted(status.value for status in statuses))
        )
        if member_id is not None:
            query = query.eq("member_id", member_id)
        if after is not None:
            cursor_date = after.date.isoformat()
            query = query.or_(
                f'date.lt."{cursor_date}",'
                f'and(date.eq."{cursor_date}",id.lt.{after.id})'
            )
        response = (
            query.order("date", desc=True).order("id", desc=True).limit(limit).execute()
        )
        return [_parse_row(kind, row) for row in response.data or []]


def _parse_row(kind: TransactionKind, row: dict[str, object]) -> Transaction:
    return Transaction(
        id=UUID(str(row["id"])),
        mess_id=str(row["mess_id"]),
        kind=kind,
        member_id=str(row["member_id"]),
        amount=float(row.get("amount", 0.0)),
        date=datetime.fromisoformat(str(row["date"])),
        status=TransactionStatus(row.get("status", TransactionStatus.PENDING.value)),
        created_by=str(row.get("created_by") or row["member_id"]),
        description=row.get("description"),
        receipt_url=row.get("receipt_url"),
    )
