"""Capability checks for every mutating operation."""

from enum import Enum

from mess_ledger.domain.errors import PermissionDeniedError
from mess_ledger.domain.models import Actor


class Action(Enum):
    """Mutating operations guarded by the policy table."""

    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    DELETE = "delete"
    EDIT_TRANSACTION = "edit_transaction"
    REQUEST_DELETION = "request_deletion"
    APPROVE_DELETION = "approve_deletion"
    REJECT_DELETION = "reject_deletion"
    EDIT_MEALS = "edit_meals"
    UPDATE_MEAL_SETTINGS = "update_meal_settings"
    TRANSFER_MANAGER = "transfer_manager"
    REMOVE_MEMBER = "remove_member"


MANAGER_ONLY = frozenset(
    {
        Action.APPROVE,
        Action.REJECT,
        Action.DELETE,
        Action.EDIT_TRANSACTION,
        Action.APPROVE_DELETION,
        Action.REJECT_DELETION,
        Action.EDIT_MEALS,
        Action.UPDATE_MEAL_SETTINGS,
        Action.TRANSFER_MANAGER,
        Action.REMOVE_MEMBER,
    }
)

OWNER_ONLY = frozenset({Action.REQUEST_DELETION})


def is_allowed(actor: Actor, action: Action, owner_id: str | None = None) -> bool:
    """Return True when the policy table permits the action."""
    if action in MANAGER_ONLY:
        return actor.is_manager
    if action in OWNER_ONLY:
        # Managers delete directly instead of asking themselves.
        return not actor.is_manager and owner_id == actor.member_id
    return True


def authorize(actor: Actor, action: Action, owner_id: str | None = None) -> None:
    """Raise PermissionDeniedError when the actor may not perform the action."""
    if not is_allowed(actor, action, owner_id):
        raise PermissionDeniedError(
            f"{actor.role.value} {actor.member_id} may not {action.value}"
        )
