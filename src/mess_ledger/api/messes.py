"""Mess, membership and meal endpoints."""

from datetime import date

from fastapi import APIRouter, Depends, status

from mess_ledger.api.dependencies import (
    current_actor,
    get_container,
    require_member_id,
)
from mess_ledger.api.schemas import (
    CreateMessRequest,
    GuestMealsRequest,
    JoinMessRequest,
    MealSettingsRequest,
    MealStatusRequest,
    ToggleMealRequest,
    TransferManagerRequest,
)
from mess_ledger.api.serializers import (
    serialize_history_entry,
    serialize_meal_settings,
    serialize_meal_status,
    serialize_member,
    serialize_mess,
)
from mess_ledger.containers import AppContainer
from mess_ledger.domain.meals import MealStatus, MealType
from mess_ledger.domain.models import Actor

router = APIRouter(prefix="/messes", tags=["messes"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_mess(
    body: CreateMessRequest,
    member_id: str = Depends(require_member_id),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Create a mess with the caller as its manager."""
    mess = container.mess_service.create_mess(body.name, member_id, body.display_name)
    return {"mess": serialize_mess(mess)}


@router.post("/join")
async def join_mess(
    body: JoinMessRequest,
    member_id: str = Depends(require_member_id),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Join a mess by invite code."""
    member = container.mess_service.join_by_invite_code(
        body.invite_code, member_id, body.display_name
    )
    return {"member": serialize_member(member)}


@router.get("/{mess_id}")
async def get_mess(
    mess_id: str,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Return the mess and its members."""
    mess = container.mess_service.get_mess(mess_id)
    members = container.mess_service.list_members(mess_id)
    return {
        "mess": serialize_mess(mess),
        "members": [serialize_member(member) for member in members],
        "role": actor.role.value,
    }


@router.post("/{mess_id}/manager")
async def transfer_manager(
    mess_id: str,
    body: TransferManagerRequest,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, str]:
    """Hand the manager role to another member."""
    container.mess_service.transfer_manager(actor, mess_id, body.member_id)
    return {"status": "ok"}


@router.delete("/{mess_id}/members/{member_id}")
async def remove_member(
    mess_id: str,
    member_id: str,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, str]:
    """Remove a member from the mess."""
    container.mess_service.remove_member(actor, mess_id, member_id)
    return {"status": "ok"}


@router.patch("/{mess_id}/meal-settings")
async def update_meal_settings(
    mess_id: str,
    body: MealSettingsRequest,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Change meal switches, cutoffs or timezone."""
    settings = container.mess_service.update_meal_settings(
        actor, mess_id, **body.model_dump(exclude_none=True)
    )
    return {"meal_settings": serialize_meal_settings(settings)}


@router.get("/{mess_id}/meals/today")
async def my_meals_today(
    mess_id: str,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Return the caller's status for today and which meals are locked."""
    meal_service = container.meal_service
    mess = container.mess_service.get_mess(mess_id)
    today = meal_service.today(mess)
    current = meal_service.get_meal_status(mess_id, actor.member_id, today)
    return {
        "date": today.isoformat(),
        "status": serialize_meal_status(current),
        "locked": {
            meal.value: meal_service.is_locked(mess, meal) for meal in MealType
        },
    }


@router.get("/{mess_id}/meals/statuses")
async def todays_statuses(
    mess_id: str,
    actor: Actor = Depends(current_actor),  # noqa: ARG001
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Return today's status for every member."""
    statuses = container.meal_service.get_todays_statuses(mess_id)
    return {
        "statuses": {
            member_id: serialize_meal_status(meal_status)
            for member_id, meal_status in statuses.items()
        }
    }


@router.post("/{mess_id}/meals/today/ensure")
async def ensure_todays_statuses(
    mess_id: str,
    actor: Actor = Depends(current_actor),  # noqa: ARG001
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Create default records for members with no status today."""
    created = container.meal_service.ensure_daily_statuses(mess_id)
    return {
        "created": {
            member_id: serialize_meal_status(meal_status)
            for member_id, meal_status in created.items()
        }
    }


@router.post("/{mess_id}/meals/toggle")
async def toggle_meal(
    mess_id: str,
    body: ToggleMealRequest,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Switch one of the caller's meals for today on or off."""
    updated = container.meal_service.toggle_meal(
        actor, mess_id, body.meal, body.enabled
    )
    return {"status": serialize_meal_status(updated)}


@router.post("/{mess_id}/meals/guests")
async def log_guest_meals(
    mess_id: str,
    body: GuestMealsRequest,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Add guest meals to the caller's record for a date."""
    updated = container.meal_service.log_guest_meals(
        actor,
        mess_id,
        body.date,
        breakfast=body.breakfast,
        lunch=body.lunch,
        dinner=body.dinner,
    )
    return {"status": serialize_meal_status(updated)}


@router.get("/{mess_id}/meals/history")
async def meal_history(
    mess_id: str,
    days: int = 7,
    actor: Actor = Depends(current_actor),  # noqa: ARG001
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Return every member's recent meal records."""
    history = container.meal_service.get_mess_meal_history(mess_id, days)
    return {"history": [serialize_history_entry(entry) for entry in history]}


@router.get("/{mess_id}/members/{member_id}/meals")
async def member_meal_ledger(
    mess_id: str,
    member_id: str,
    days: int | None = None,
    actor: Actor = Depends(current_actor),  # noqa: ARG001
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Return a member's meal ledger, oldest day first."""
    container.mess_service.get_member(mess_id, member_id)
    window = days if days is not None else container.settings.meal_ledger_days
    ledger = container.meal_service.get_meal_ledger(mess_id, member_id, window)
    return {
        "entries": [
            {
                "date": entry.day.isoformat(),
                "status": serialize_meal_status(entry.status),
            }
            for entry in ledger
        ]
    }


@router.put("/{mess_id}/members/{member_id}/meals/{day}")
async def edit_meal_status(  # noqa: PLR0913
    mess_id: str,
    member_id: str,
    day: date,
    body: MealStatusRequest,
    actor: Actor = Depends(current_actor),
    container: AppContainer = Depends(get_container),
) -> dict[str, object]:
    """Overwrite a member's record for a date."""
    updated = container.meal_service.edit_meal_status(
        actor, mess_id, member_id, day, MealStatus(**body.model_dump())
    )
    return {"status": serialize_meal_status(updated)}
