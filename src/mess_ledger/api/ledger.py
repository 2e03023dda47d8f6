"""Deposit, expense, balance and report endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, status

from mess_ledger.api.dependencies import current_actor, get_container
from mess_ledger.api.schemas import EditTransactionRequest, SubmitTransactionRequest
from mess_ledger.api.serializers import (
    serialize_balance,
    serialize_report,
    serialize_transaction,
)
from mess_ledger.containers import AppContainer
from mess_ledger.domain.ledger import TransactionKind
from mess_ledger.domain.models import Actor

router = APIRouter(prefix="/messes/{mess_id}", tags=["ledger"])


def _schedule_fanout(
    background_tasks: BackgroundTasks, container: AppContainer
) -> None:
    background_tasks.add_task(container.notification_service.drain)


@router.post("/transactions/{kind}", status_code=status.HTTP_201_CREATED)
async def submit_transaction(  # noqa: PLR0913
    mess_id: str,
    kind: TransactionKind,
    body: SubmitTransactionRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Record a deposit or expense."""
    record = container.ledger_service.submit(
        actor,
        mess_id,
        kind,
        body.amount,
        description=body.description,
        date=body.date,
        receipt_url=body.receipt_url,
        member_id=body.member_id,
    )
    _schedule_fanout(background_tasks, container)
    return {"transaction": serialize_transaction(record)}


@router.get("/transactions/{kind}")
async def list_transactions(  # noqa: PLR0913
    mess_id: str,
    kind: TransactionKind,
    limit: int | None = None,
    after: UUID | None = None,
    member_id: str | None = None,
    actor: Actor = Depends(current_actor),  # noqa: ARG001
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Return one page of counted records, newest first."""
    page_size = limit or container.settings.page_size
    records = container.ledger_service.list_page(
        mess_id, kind, page_size, after_id=after, member_id=member_id
    )
    return {
        "transactions": [serialize_transaction(record) for record in records],
        "has_more": len(records) == page_size,
        "next_after": str(records[-1].id) if records else None,
    }


@router.get("/transactions/{kind}/{transaction_id}")
async def get_transaction(
    mess_id: str,
    kind: TransactionKind,
    transaction_id: UUID,
    actor: Actor = Depends(current_actor),  # noqa: ARG001
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    record = container.ledger_service.get_transaction(mess_id, kind, transaction_id)
    return {"transaction": serialize_transaction(record)}


@router.patch("/transactions/{kind}/{transaction_id}")
async def edit_transaction(  # noqa: PLR0913
    mess_id: str,
    kind: TransactionKind,
    transaction_id: UUID,
    body: EditTransactionRequest,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Correct amount, description or date of a record."""
    record = container.ledger_service.edit(
        actor,
        mess_id,
        kind,
        transaction_id,
        amount=body.amount,
        description=body.description,
        date=body.date,
    )
    return {"transaction": serialize_transaction(record)}


@router.delete("/transactions/{kind}/{transaction_id}")
async def delete_transaction(
    mess_id: str,
    kind: TransactionKind,
    transaction_id: UUID,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, str]:
    container.ledger_service.delete(actor, mess_id, kind, transaction_id)
    return {"status": "ok"}


@router.post("/transactions/{kind}/{transaction_id}/approve")
async def approve_transaction(  # noqa: PLR0913
    mess_id: str,
    kind: TransactionKind,
    transaction_id: UUID,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    record = container.ledger_service.approve(actor, mess_id, kind, transaction_id)
    _schedule_fanout(background_tasks, container)
    return {"transaction": serialize_transaction(record)}


@router.post("/transactions/{kind}/{transaction_id}/reject")
async def reject_transaction(  # noqa: PLR0913
    mess_id: str,
    kind: TransactionKind,
    transaction_id: UUID,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, str]:
    container.ledger_service.reject(actor, mess_id, kind, transaction_id)
    _schedule_fanout(background_tasks, container)
    return {"status": "ok"}


@router.post("/transactions/{kind}/{transaction_id}/deletion-request")
async def request_deletion(  # noqa: PLR0913
    mess_id: str,
    kind: TransactionKind,
    transaction_id: UUID,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Ask the manager to delete one of the caller's records."""
    record = container.ledger_service.request_deletion(
        actor, mess_id, kind, transaction_id
    )
    _schedule_fanout(background_tasks, container)
    return {"transaction": serialize_transaction(record)}


@router.post("/transactions/{kind}/{transaction_id}/deletion-request/approve")
async def approve_deletion(  # noqa: PLR0913
    mess_id: str,
    kind: TransactionKind,
    transaction_id: UUID,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, str]:
    container.ledger_service.approve_deletion(actor, mess_id, kind, transaction_id)
    _schedule_fanout(background_tasks, container)
    return {"status": "ok"}


@router.post("/transactions/{kind}/{transaction_id}/deletion-request/reject")
async def reject_deletion(  # noqa: PLR0913
    mess_id: str,
    kind: TransactionKind,
    transaction_id: UUID,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    record = container.ledger_service.reject_deletion(
        actor, mess_id, kind, transaction_id
    )
    _schedule_fanout(background_tasks, container)
    return {"transaction": serialize_transaction(record)}


@router.get("/review")
async def review_queue(
    mess_id: str,
    actor: Actor = Depends(current_actor),  # noqa: ARG001
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Return records waiting on a manager decision."""
    ledger = container.ledger_service
    return {
        "pending": [serialize_transaction(r) for r in ledger.list_pending(mess_id)],
        "deletion_requests": [
            serialize_transaction(r) for r in ledger.list_deletion_requests(mess_id)
        ],
        "count": ledger.pending_review_count(mess_id),
    }


@router.get("/balances/{member_id}")
async def member_balance(
    mess_id: str,
    member_id: str,
    as_of: date | None = None,
    actor: Actor = Depends(current_actor),  # noqa: ARG001
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Return a member's month-to-date balance."""
    balance = container.balance_service.compute_member_balance(
        mess_id, member_id, as_of
    )
    return {"balance": serialize_balance(balance)}


@router.get("/meal-rate")
async def meal_rate(
    mess_id: str,
    start: date,
    end: date,
    actor: Actor = Depends(current_actor),  # noqa: ARG001
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    rate = container.balance_service.compute_meal_rate(mess_id, start, end)
    return {"start": start.isoformat(), "end": end.isoformat(), "meal_rate": rate}


@router.get("/reports/{year}/{month}")
async def monthly_report(  # noqa: PLR0913
    mess_id: str,
    year: int,
    month: int,
    cached: bool = False,
    actor: Actor = Depends(current_actor),  # noqa: ARG001
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Return the settlement report for a month, recomputed unless ``cached``."""
    report = container.report_service.generate(mess_id, year, month, use_cache=cached)
    return {"report": serialize_report(report)}
