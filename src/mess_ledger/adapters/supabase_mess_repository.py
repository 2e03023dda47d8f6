"""Supabase repository for messes and members."""

from dataclasses import dataclass
from datetime import datetime, time

from supabase import Client

from mess_ledger.domain.meals import MealSettings
from mess_ledger.domain.models import Member, Mess, Role
from mess_ledger.services.messes import MessRepository

_MEMBER_COLUMNS = "mess_id, member_id, name, role, balance, meals"


@dataclass
class SupabaseMessRepository(MessRepository):
    """Supabase implementation for mess and membership persistence."""

    client: Client

    def create_mess(
        self,
        name: str,
        founder_id: str,
        founder_name: str,
        invite_code: str,
        meal_settings: MealSettings,
    ) -> Mess:
        """Create the mess row and its founding manager."""
        response = (
            self.client.table("messes")
            .insert(
                {
                    "name": name,
                    "manager_id": founder_id,
                    "invite_code": invite_code,
                    "meal_settings": _dump_settings(meal_settings),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create mess")
        mess = _parse_mess(response.data[0])
        self.add_member(mess.id, founder_id, founder_name, Role.MANAGER)
        return mess

    def get_mess(self, mess_id: str) -> Mess | None:
        """Return a mess by id, if present."""
        response = (
            self.client.table("messes")
            .select("id, name, manager_id, invite_code, meal_settings, created_at")
            .eq("id", mess_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_mess(response.data[0])

    def find_by_invite_code(self, invite_code: str) -> Mess | None:
        """Return the mess owning an invite code."""
        response = (
            self.client.table("messes")
            .select("id, name, manager_id, invite_code, meal_settings, created_at")
            .eq("invite_code", invite_code)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_mess(response.data[0])

    def update_meal_settings(self, mess_id: str, settings: MealSettings) -> None:
        """Replace the meal settings document."""
        self.client.table("messes").update(
            {"meal_settings": _dump_settings(settings)}
        ).eq("id", mess_id).execute()

    def list_members(self, mess_id: str) -> list[Member]:
        """Return all members of a mess."""
        response = (
            self.client.table("members")
            .select(_MEMBER_COLUMNS)
            .eq("mess_id", mess_id)
            .order("member_id", desc=False)
            .execute()
        )
        return [_parse_member(row) for row in response.data or []]

    def get_member(self, mess_id: str, member_id: str) -> Member | None:
        """Return one member of a mess."""
        response = (
            self.client.table("members")
            .select(_MEMBER_COLUMNS)
            .eq("mess_id", mess_id)
            .eq("member_id", member_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_member(response.data[0])

    def find_membership(self, member_id: str) -> Member | None:
        """Return the user's membership in any mess."""
        response = (
            self.client.table("members")
            .select(_MEMBER_COLUMNS)
            .eq("member_id", member_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_member(response.data[0])

    def add_member(
        self, mess_id: str, member_id: str, name: str, role: Role
    ) -> Member:
        """Insert a member row."""
        response = (
            self.client.table("members")
            .insert(
                {
                    "mess_id": mess_id,
                    "member_id": member_id,
                    "name": name,
                    "role": role.value,
                    "balance": 0,
                    "meals": 0,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to add member")
        return _parse_member(response.data[0])

    def remove_member(self, mess_id: str, member_id: str) -> None:
        """Delete a member row."""
        self.client.table("members").delete().eq("mess_id", mess_id).eq(
            "member_id", member_id
        ).execute()

    def transfer_manager(
        self, mess_id: str, old_manager_id: str, new_manager_id: str
    ) -> None:
        """Swap roles in a single database function call."""
        self.client.rpc(
            "transfer_mess_manager",
            {
                "p_mess_id": mess_id,
                "p_old_manager_id": old_manager_id,
                "p_new_manager_id": new_manager_id,
            },
        ).execute()

    def update_member_cache(
        self, mess_id: str, member_id: str, balance: float, meals: float
    ) -> None:
        """Store the denormalized balance and meal count."""
        self.client.table("members").update({"balance": balance, "meals": meals}).eq(
            "mess_id", mess_id
        ).eq("member_id", member_id).execute()


def _dump_settings(settings: MealSettings) -> dict[str, object]:
    return {
        "breakfast_cutoff": settings.breakfast_cutoff.strftime("%H:%M"),
        "lunch_cutoff": settings.lunch_cutoff.strftime("%H:%M"),
        "dinner_cutoff": settings.dinner_cutoff.strftime("%H:%M"),
        "is_breakfast_on": settings.is_breakfast_on,
        "is_lunch_on": settings.is_lunch_on,
        "is_dinner_on": settings.is_dinner_on,
        "is_cutoff_enabled": settings.is_cutoff_enabled,
        "timezone": settings.timezone,
    }


def _parse_settings(raw: object) -> MealSettings:
    if not isinstance(raw, dict):
        return MealSettings()
    defaults = MealSettings()
    return MealSettings(
        breakfast_cutoff=_parse_time(
            raw.get("breakfast_cutoff"), defaults.breakfast_cutoff
        ),
        lunch_cutoff=_parse_time(raw.get("lunch_cutoff"), defaults.lunch_cutoff),
        dinner_cutoff=_parse_time(raw.get("dinner_cutoff"), defaults.dinner_cutoff),
        is_breakfast_on=bool(raw.get("is_breakfast_on", True)),
        is_lunch_on=bool(raw.get("is_lunch_on", True)),
        is_dinner_on=bool(raw.get("is_dinner_on", True)),
        is_cutoff_enabled=bool(raw.get("is_cutoff_enabled", True)),
        timezone=str(raw.get("timezone") or defaults.timezone),
    )


def _parse_time(value: object, default: time) -> time:
    if isinstance(value, str) and value:
        return time.fromisoformat(value)
    return default


def _parse_mess(row: dict[str, object]) -> Mess:
    return Mess(
        id=str(row["id"]),
        name=str(row.get("name", "")),
        manager_id=str(row.get("manager_id", "")),
        invite_code=str(row.get("invite_code", "")),
        meal_settings=_parse_settings(row.get("meal_settings")),
        created_at=datetime.fromisoformat(row["created_at"])
        if isinstance(row.get("created_at"), str)
        else datetime.min,
    )


def _parse_member(row: dict[str, object]) -> Member:
    return Member(
        id=str(row["member_id"]),
        mess_id=str(row["mess_id"]),
        name=str(row.get("name") or "Unnamed Member"),
        role=Role(row.get("role", Role.MEMBER.value)),
        balance=float(row.get("balance") or 0.0),
        meals=float(row.get("meals") or 0.0),
    )
