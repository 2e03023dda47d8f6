"""Notification inbox and device token endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends

from mess_ledger.api.dependencies import current_actor, get_container, require_member_id
from mess_ledger.api.schemas import RegisterTokenRequest
from mess_ledger.api.serializers import serialize_notification
from mess_ledger.containers import AppContainer
from mess_ledger.domain.models import Actor

router = APIRouter(tags=["notifications"])


@router.get("/messes/{mess_id}/notifications")
async def list_notifications(
    mess_id: str,
    limit: int = 50,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Return notifications addressed to the caller or the caller's role."""
    member = container.mess_service.get_member(mess_id, actor.member_id)
    records = container.notification_service.list_for_member(mess_id, member, limit)
    return {"notifications": [serialize_notification(r) for r in records]}


@router.post("/messes/{mess_id}/notifications/{notification_id}/read")
async def mark_notification_read(
    mess_id: str,
    notification_id: UUID,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, str]:
    """Mark a notification addressed to the caller as read."""
    container.notification_service.mark_read(actor, mess_id, notification_id)
    return {"status": "ok"}


@router.post("/devices/tokens")
async def register_device_token(
    body: RegisterTokenRequest,
    member_id: str = Depends(require_member_id),
    container: AppContainer = Depends(get_container),
) -> dict[str, str]:
    """Register a push token for the caller's devices."""
    container.notification_service.register_token(member_id, body.token)
    return {"status": "ok"}
