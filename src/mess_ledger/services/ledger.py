"""Deposit and expense ledger with approval and deletion-request workflow."""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID

from mess_ledger.clock import local_today, utc_now
from mess_ledger.domain.errors import NotFoundError, StateConflictError, ValidationError
from mess_ledger.domain.ledger import (
    COUNTED_STATUSES,
    NewTransaction,
    Transaction,
    TransactionKind,
    TransactionStatus,
)
from mess_ledger.domain.models import Actor, Mess
from mess_ledger.domain.notifications import MANAGER_TARGET
from mess_ledger.services.events import ChangeListener, emit_change
from mess_ledger.services.messes import MessRepository
from mess_ledger.services.policy import Action, authorize

logger = logging.getLogger(__name__)


class TransactionRepository(Protocol):
    """Persistence interface for deposits and expenses."""

    def create(self, transaction: NewTransaction) -> Transaction:
        """Insert a ledger record and return it with its id."""

    def get(
        self, mess_id: str, kind: TransactionKind, transaction_id: UUID
    ) -> Transaction | None:
        """Return a record by id, if present."""

    def transition(
        self,
        mess_id: str,
        kind: TransactionKind,
        transaction_id: UUID,
        expected: TransactionStatus,
        new: TransactionStatus,
    ) -> bool:
        """Move a record from ``expected`` to ``new``; False if it was not there."""

    def delete_if(
        self,
        mess_id: str,
        kind: TransactionKind,
        transaction_id: UUID,
        expected: Iterable[TransactionStatus],
    ) -> bool:
        """Delete a record in one of ``expected``; False if nothing matched."""

    def update_fields(
        self,
        mess_id: str,
        kind: TransactionKind,
        transaction_id: UUID,
        fields: dict[str, object],
    ) -> None:
        """Update amount, description or date of a record."""

    def list_transactions(  # noqa: PLR0913
        self,
        mess_id: str,
        kind: TransactionKind,
        statuses: Iterable[TransactionStatus],
        start: datetime | None = None,
        end: datetime | None = None,
        member_id: str | None = None,
    ) -> list[Transaction]:
        """Return records in ``statuses`` with ``start <= date < end``."""

    def count_by_status(
        self, mess_id: str, kind: TransactionKind, status: TransactionStatus
    ) -> int:
        """Return how many records are in a status."""

    def list_page(  # noqa: PLR0913
        self,
        mess_id: str,
        kind: TransactionKind,
        statuses: Iterable[TransactionStatus],
        limit: int,
        after: Transaction | None = None,
        member_id: str | None = None,
    ) -> list[Transaction]:
        """Return up to ``limit`` records ordered by date then id, descending."""


class NotificationPublisher(Protocol):
    """Sink for notification records produced by ledger events."""

    def publish(
        self, mess_id: str, target: str, message: str, link: str | None = None
    ) -> object | None:
        """Persist a notification record and queue it for delivery."""


def validate_amount(amount: float) -> float:
    """Reject non-positive amounts."""
    if not amount > 0:
        raise ValidationError(f"Amount must be greater than zero, got {amount}")
    return float(amount)


def normalize_date(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def validate_description(description: str | None) -> str:
    """Reject missing or blank expense descriptions."""
    cleaned = (description or "").strip()
    if not cleaned:
        raise ValidationError("Expense description must not be empty")
    return cleaned


@dataclass
class TransactionLedgerService:
    """Commands and queries over deposits and expenses."""

    repository: TransactionRepository
    mess_repository: MessRepository
    notifications: NotificationPublisher
    listeners: list[ChangeListener] = field(default_factory=list)
    clock: Callable[[], datetime] = utc_now

    def submit(  # noqa: PLR0913
        self,
        actor: Actor,
        mess_id: str,
        kind: TransactionKind,
        amount: float,
        *,
        description: str | None = None,
        date: datetime | None = None,
        receipt_url: str | None = None,
        member_id: str | None = None,
    ) -> Transaction:
        """Record a deposit or expense; managers skip the approval queue."""
        authorize(actor, Action.SUBMIT)
        amount = validate_amount(amount)
        if kind is TransactionKind.EXPENSE:
            description = validate_description(description)
        else:
            description = None
            receipt_url = None
        owner_id = member_id or actor.member_id
        if owner_id != actor.member_id and not actor.is_manager:
            raise ValidationError("Members can only submit for themselves")
        mess = self._get_mess(mess_id)
        self._require_member(mess_id, owner_id)
        status = TransactionStatus.PENDING
        if actor.is_manager:
            status = TransactionStatus.APPROVED
        created = self.repository.create(
            NewTransaction(
                mess_id=mess_id,
                kind=kind,
                member_id=owner_id,
                amount=amount,
                date=normalize_date(date) if date else self.clock(),
                status=status,
                created_by=actor.member_id,
                description=description,
                receipt_url=receipt_url,
            )
        )
        logger.info(
            "Submitted %s %s of %.2f in %s as %s",
            kind.value,
            created.id,
            amount,
            mess_id,
            status.value,
        )
        if status is TransactionStatus.PENDING:
            self.notifications.publish(
                mess_id,
                MANAGER_TARGET,
                f"New {kind.value} of {amount:.2f} awaits approval",
                "/dashboard/review",
            )
        else:
            self._changed(mess, created)
        return created

    def approve(
        self, actor: Actor, mess_id: str, kind: TransactionKind, transaction_id: UUID
    ) -> Transaction:
        """Approve a pending record so it counts towards balances."""
        authorize(actor, Action.APPROVE)
        mess = self._get_mess(mess_id)
        record = self._get(mess_id, kind, transaction_id)
        self._transition(
            record, TransactionStatus.PENDING, TransactionStatus.APPROVED
        )
        self._changed(mess, record)
        self.notifications.publish(
            mess_id,
            record.member_id,
            f"Your {kind.value} of {record.amount:.2f} was approved",
            "/dashboard/transactions",
        )
        return self._get(mess_id, kind, transaction_id)

    def reject(
        self, actor: Actor, mess_id: str, kind: TransactionKind, transaction_id: UUID
    ) -> None:
        """Discard a pending record without touching balances."""
        authorize(actor, Action.REJECT)
        self._get_mess(mess_id)
        record = self._get(mess_id, kind, transaction_id)
        self._delete(record, [TransactionStatus.PENDING])
        self.notifications.publish(
            mess_id,
            record.member_id,
            f"Your {kind.value} of {record.amount:.2f} was rejected",
            "/dashboard/transactions",
        )

    def delete(
        self, actor: Actor, mess_id: str, kind: TransactionKind, transaction_id: UUID
    ) -> None:
        """Remove an approved record immediately."""
        authorize(actor, Action.DELETE)
        mess = self._get_mess(mess_id)
        record = self._get(mess_id, kind, transaction_id)
        self._delete(record, COUNTED_STATUSES)
        logger.info("Manager %s deleted %s %s", actor.member_id, kind.value, record.id)
        self._changed(mess, record)

    def edit(  # noqa: PLR0913
        self,
        actor: Actor,
        mess_id: str,
        kind: TransactionKind,
        transaction_id: UUID,
        *,
        amount: float | None = None,
        description: str | None = None,
        date: datetime | None = None,
    ) -> Transaction:
        """Correct the amount, description or date of a record."""
        authorize(actor, Action.EDIT_TRANSACTION)
        mess = self._get_mess(mess_id)
        record = self._get(mess_id, kind, transaction_id)
        fields: dict[str, object] = {}
        if amount is not None:
            fields["amount"] = validate_amount(amount)
        if description is not None:
            if kind is not TransactionKind.EXPENSE:
                raise ValidationError("Only expenses carry a description")
            fields["description"] = validate_description(description)
        if date is not None:
            fields["date"] = normalize_date(date)
        if not fields:
            return record
        self.repository.update_fields(mess_id, kind, transaction_id, fields)
        updated = self._get(mess_id, kind, transaction_id)
        if record.is_counted:
            self._changed(mess, record)
            if updated.date != record.date:
                self._changed(mess, updated)
        return updated

    def request_deletion(
        self, actor: Actor, mess_id: str, kind: TransactionKind, transaction_id: UUID
    ) -> Transaction:
        """Ask the manager to remove one of the actor's own approved records."""
        self._get_mess(mess_id)
        record = self._get(mess_id, kind, transaction_id)
        authorize(actor, Action.REQUEST_DELETION, owner_id=record.created_by)
        self._transition(
            record, TransactionStatus.APPROVED, TransactionStatus.DELETION_REQUESTED
        )
        self.notifications.publish(
            mess_id,
            MANAGER_TARGET,
            f"Deletion requested for a {kind.value} of {record.amount:.2f}",
            "/dashboard/review",
        )
        return self._get(mess_id, kind, transaction_id)

    def approve_deletion(
        self, actor: Actor, mess_id: str, kind: TransactionKind, transaction_id: UUID
    ) -> None:
        """Grant a deletion request and remove the record."""
        authorize(actor, Action.APPROVE_DELETION)
        mess = self._get_mess(mess_id)
        record = self._get(mess_id, kind, transaction_id)
        self._delete(record, [TransactionStatus.DELETION_REQUESTED])
        self._changed(mess, record)
        self.notifications.publish(
            mess_id,
            record.created_by,
            f"Your request to delete a {kind.value} was approved",
            "/dashboard/transactions",
        )

    def reject_deletion(
        self, actor: Actor, mess_id: str, kind: TransactionKind, transaction_id: UUID
    ) -> Transaction:
        """Deny a deletion request, returning the record to approved."""
        authorize(actor, Action.REJECT_DELETION)
        self._get_mess(mess_id)
        record = self._get(mess_id, kind, transaction_id)
        self._transition(
            record, TransactionStatus.DELETION_REQUESTED, TransactionStatus.APPROVED
        )
        self.notifications.publish(
            mess_id,
            record.created_by,
            f"Your request to delete a {kind.value} was rejected",
            "/dashboard/transactions",
        )
        return self._get(mess_id, kind, transaction_id)

    def get_transaction(
        self, mess_id: str, kind: TransactionKind, transaction_id: UUID
    ) -> Transaction:
        """Return a record or raise NotFoundError."""
        return self._get(mess_id, kind, transaction_id)

    def list_pending(self, mess_id: str) -> list[Transaction]:
        """Return pending deposits and expenses awaiting approval."""
        return self._list_all_kinds(mess_id, [TransactionStatus.PENDING])

    def list_deletion_requests(self, mess_id: str) -> list[Transaction]:
        """Return records whose owners asked for deletion."""
        return self._list_all_kinds(mess_id, [TransactionStatus.DELETION_REQUESTED])

    def list_page(  # noqa: PLR0913
        self,
        mess_id: str,
        kind: TransactionKind,
        limit: int,
        after_id: UUID | None = None,
        member_id: str | None = None,
    ) -> list[Transaction]:
        """Return counted records, newest first, following the ``after_id`` row."""
        if limit <= 0:
            raise ValidationError("limit must be positive")
        after = self._get(mess_id, kind, after_id) if after_id else None
        return self.repository.list_page(
            mess_id, kind, COUNTED_STATUSES, limit, after=after, member_id=member_id
        )

    def pending_review_count(self, mess_id: str) -> int:
        """Return how many records need a manager decision."""
        return sum(
            self.repository.count_by_status(mess_id, kind, status)
            for kind in TransactionKind
            for status in (
                TransactionStatus.PENDING,
                TransactionStatus.DELETION_REQUESTED,
            )
        )

    def _list_all_kinds(
        self, mess_id: str, statuses: list[TransactionStatus]
    ) -> list[Transaction]:
        records: list[Transaction] = []
        for kind in TransactionKind:
            records.extend(self.repository.list_transactions(mess_id, kind, statuses))
        return sorted(records, key=lambda record: record.date, reverse=True)

    def _transition(
        self,
        record: Transaction,
        expected: TransactionStatus,
        new: TransactionStatus,
    ) -> None:
        if record.status is not expected or not self.repository.transition(
            record.mess_id, record.kind, record.id, expected, new
        ):
            raise StateConflictError(
                f"{record.kind.value} {record.id} is {record.status.value}, "
                f"expected {expected.value}"
            )

    def _delete(
        self, record: Transaction, expected: Iterable[TransactionStatus]
    ) -> None:
        allowed = frozenset(expected)
        if record.status not in allowed or not self.repository.delete_if(
            record.mess_id, record.kind, record.id, allowed
        ):
            raise StateConflictError(
                f"{record.kind.value} {record.id} is {record.status.value}, "
                f"expected one of {sorted(s.value for s in allowed)}"
            )

    def _get(
        self, mess_id: str, kind: TransactionKind, transaction_id: UUID
    ) -> Transaction:
        record = self.repository.get(mess_id, kind, transaction_id)
        if record is None:
            raise NotFoundError(f"{kind.value} {transaction_id} not found")
        return record

    def _get_mess(self, mess_id: str) -> Mess:
        mess = self.mess_repository.get_mess(mess_id)
        if mess is None:
            raise NotFoundError(f"Mess {mess_id} not found")
        return mess

    def _require_member(self, mess_id: str, member_id: str) -> None:
        if self.mess_repository.get_member(mess_id, member_id) is None:
            raise NotFoundError(f"Member {member_id} not found in mess {mess_id}")

    def _changed(self, mess: Mess, record: Transaction) -> None:
        day = local_today(record.date, mess.meal_settings.timezone)
        emit_change(self.listeners, mess.id, day)
