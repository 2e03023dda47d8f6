"""Supabase repository for per-day meal statuses."""

from dataclasses import dataclass
from datetime import date

from supabase import Client

from mess_ledger.domain.meals import MealStatus
from mess_ledger.services.meals import MealStatusRepository

_COLUMNS = (
    "member_id, day, breakfast, lunch, dinner, guest_breakfast, guest_lunch, "
    "guest_dinner, is_set_by_user"
)


@dataclass
class SupabaseMealStatusRepository(MealStatusRepository):
    """Supabase implementation keyed by (mess_id, member_id, day)."""

    client: Client

    def get_status(self, mess_id: str, member_id: str, day: date) -> MealStatus | None:
        """Return the status stored for a key."""
        response = (
            self.client.table("meal_statuses")
            .select(_COLUMNS)
            .eq("mess_id", mess_id)
            .eq("member_id", member_id)
            .eq("day", day.isoformat())
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_status(response.data[0])

    def put_status(
        self, mess_id: str, member_id: str, day: date, status: MealStatus
    ) -> None:
        """Upsert every column so the write fully replaces the record."""
        self.client.table("meal_statuses").upsert(
            {
                "mess_id": mess_id,
                "member_id": member_id,
                "day": day.isoformat(),
                **status.counts(),
                "is_set_by_user": status.is_set_by_user,
            },
            on_conflict="mess_id,member_id,day",
        ).execute()

    def list_member_statuses(
        self, mess_id: str, member_id: str, start: date, end: date
    ) -> dict[date, MealStatus]:
        """Return a member's statuses in the date range."""
        response = (
            self.client.table("meal_statuses")
            .select(_COLUMNS)
            .eq("mess_id", mess_id)
            .eq("member_id", member_id)
            .gte("day", start.isoformat())
            .lte("day", end.isoformat())
            .order("day", desc=False)
            .execute()
        )
        return {
            date.fromisoformat(row["day"]): _parse_status(row)
            for row in response.data or []
        }

    def list_mess_statuses(
        self, mess_id: str, start: date, end: date
    ) -> list[tuple[str, date, MealStatus]]:
        """Return every member's statuses in the date range."""
        response = (
            self.client.table("meal_statuses")
            .select(_COLUMNS)
            .eq("mess_id", mess_id)
            .gte("day", start.isoformat())
            .lte("day", end.isoformat())
            .order("day", desc=False)
            .execute()
        )
        return [
            (str(row["member_id"]), date.fromisoformat(row["day"]), _parse_status(row))
            for row in response.data or []
        ]


def _parse_status(row: dict[str, object]) -> MealStatus:
    return MealStatus(
        breakfast=float(row.get("breakfast") or 0.0),
        lunch=float(row.get("lunch") or 0.0),
        dinner=float(row.get("dinner") or 0.0),
        guest_breakfast=float(row.get("guest_breakfast") or 0.0),
        guest_lunch=float(row.get("guest_lunch") or 0.0),
        guest_dinner=float(row.get("guest_dinner") or 0.0),
        is_set_by_user=bool(row.get("is_set_by_user", False)),
    )
