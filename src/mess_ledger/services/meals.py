"""Meal participation tracking with cutoff locking."""

import logging
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from mess_ledger.clock import local_today, utc_now
from mess_ledger.domain.errors import LockedError, NotFoundError, ValidationError
from mess_ledger.domain.meals import (
    MealLedgerEntry,
    MealStatus,
    MealType,
    MessMealHistoryEntry,
)
from mess_ledger.domain.models import Actor, Mess
from mess_ledger.services.events import ChangeListener, emit_change
from mess_ledger.services.messes import MessRepository
from mess_ledger.services.policy import Action, authorize

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_DAYS = 30


class MealStatusRepository(Protocol):
    """Persistence interface for per-day meal statuses."""

    def get_status(self, mess_id: str, member_id: str, day: date) -> MealStatus | None:
        """Return the stored status for a key, if present."""

    def put_status(
        self, mess_id: str, member_id: str, day: date, status: MealStatus
    ) -> None:
        """Overwrite the status stored for a key."""

    def list_member_statuses(
        self, mess_id: str, member_id: str, start: date, end: date
    ) -> dict[date, MealStatus]:
        """Return a member's statuses for dates in ``[start, end]``."""

    def list_mess_statuses(
        self, mess_id: str, start: date, end: date
    ) -> list[tuple[str, date, MealStatus]]:
        """Return ``(member_id, date, status)`` for every record in the range."""


def validate_meal_count(name: str, value: float) -> float:
    """Reject negative counts and counts that are not half-unit steps."""
    if value < 0 or not float(value * 2).is_integer():
        raise ValidationError(
            f"{name} must be a non-negative multiple of 0.5, got {value}"
        )
    return float(value)


def validate_status(status: MealStatus) -> MealStatus:
    """Validate every count field of a status."""
    for name, value in status.counts().items():
        validate_meal_count(name, value)
    return status


@dataclass
class MealStatusService:
    """Reads and writes meal statuses, enforcing cutoff and ownership rules."""

    repository: MealStatusRepository
    mess_repository: MessRepository
    listeners: list[ChangeListener] = field(default_factory=list)
    clock: Callable[[], datetime] = utc_now

    def set_meal_status(
        self, mess_id: str, member_id: str, day: date, status: MealStatus
    ) -> MealStatus:
        """Replace the stored record for the key with ``status``."""
        validate_status(status)
        self.repository.put_status(mess_id, member_id, day, status)
        emit_change(self.listeners, mess_id, day)
        return status

    def get_meal_status(self, mess_id: str, member_id: str, day: date) -> MealStatus:
        """Return the stored record or a zero-filled default."""
        return self.repository.get_status(mess_id, member_id, day) or MealStatus()

    def get_meal_ledger(
        self, mess_id: str, member_id: str, window_days: int = DEFAULT_LEDGER_DAYS
    ) -> Iterator[MealLedgerEntry]:
        """Return the most recent ``window_days`` days, oldest first.

        Days without a stored record are synthesized as zero. The store is
        queried once, when iteration starts.
        """
        if window_days <= 0:
            raise ValidationError("window_days must be positive")
        mess = self._get_mess(mess_id)
        end = self.today(mess)
        start = end - timedelta(days=window_days - 1)
        return self._iter_ledger(mess_id, member_id, start, window_days)

    def _iter_ledger(
        self, mess_id: str, member_id: str, start: date, days: int
    ) -> Iterator[MealLedgerEntry]:
        end = start + timedelta(days=days - 1)
        stored = self.repository.list_member_statuses(mess_id, member_id, start, end)
        for offset in range(days):
            day = start + timedelta(days=offset)
            yield MealLedgerEntry(day=day, status=stored.get(day, MealStatus()))

    def get_mess_meal_history(
        self, mess_id: str, days: int = 7
    ) -> list[MessMealHistoryEntry]:
        """Return every member's ledger, newest date first then by name."""
        members = self.mess_repository.list_members(mess_id)
        history: list[MessMealHistoryEntry] = []
        for member in members:
            for entry in self.get_meal_ledger(mess_id, member.id, days):
                history.append(
                    MessMealHistoryEntry(
                        member_id=member.id,
                        member_name=member.name,
                        day=entry.day,
                        status=entry.status,
                    )
                )
        history.sort(key=lambda item: item.member_name)
        history.sort(key=lambda item: item.day, reverse=True)
        return history

    def get_todays_statuses(self, mess_id: str) -> dict[str, MealStatus]:
        """Return today's status for every member of the mess."""
        mess = self._get_mess(mess_id)
        today = self.today(mess)
        return {
            member.id: self.get_meal_status(mess_id, member.id, today)
            for member in self.mess_repository.list_members(mess_id)
        }

    def ensure_daily_statuses(self, mess_id: str) -> dict[str, MealStatus]:
        """Create today's record for every member that has none.

        Each meal starts at 1 when it is switched on in the mess settings.
        Existing records are left untouched. Returns the created records.
        """
        mess = self._get_mess(mess_id)
        today = self.today(mess)
        defaults = MealStatus()
        for meal in MealType:
            if mess.meal_settings.is_enabled(meal):
                defaults = defaults.with_meal(meal, 1.0)

        created: dict[str, MealStatus] = {}
        for member in self.mess_repository.list_members(mess_id):
            if self.repository.get_status(mess_id, member.id, today) is not None:
                continue
            self.repository.put_status(mess_id, member.id, today, defaults)
            created[member.id] = defaults
        if created:
            logger.info(
                "Created %d meal statuses for %s on %s", len(created), mess_id, today
            )
            emit_change(self.listeners, mess_id, today)
        return created

    def toggle_meal(
        self, actor: Actor, mess_id: str, meal: MealType, enabled: bool
    ) -> MealStatus:
        """Switch one of the actor's own meals for today on or off."""
        mess = self._get_mess(mess_id)
        self._require_member(mess_id, actor.member_id)
        settings = mess.meal_settings
        if not settings.is_enabled(meal):
            raise ValidationError(f"{meal.value} is switched off for this mess")
        if not actor.is_manager and self.is_locked(mess, meal):
            raise LockedError(
                f"{meal.value} is locked after "
                f"{settings.cutoff_for(meal).strftime('%H:%M')}"
            )
        today = self.today(mess)
        current = self.get_meal_status(mess_id, actor.member_id, today)
        updated = current.with_meal(meal, 1.0 if enabled else 0.0)
        logger.info(
            "Member %s set %s=%s for %s", actor.member_id, meal.value, enabled, today
        )
        return self.set_meal_status(mess_id, actor.member_id, today, updated)

    def edit_meal_status(
        self,
        actor: Actor,
        mess_id: str,
        member_id: str,
        day: date,
        status: MealStatus,
    ) -> MealStatus:
        """Manager override for any member and date, bypassing cutoffs."""
        authorize(actor, Action.EDIT_MEALS)
        self._get_mess(mess_id)
        self._require_member(mess_id, member_id)
        return self.set_meal_status(
            mess_id, member_id, day, replace(status, is_set_by_user=True)
        )

    def log_guest_meals(  # noqa: PLR0913
        self,
        actor: Actor,
        mess_id: str,
        day: date | None,
        breakfast: float = 0.0,
        lunch: float = 0.0,
        dinner: float = 0.0,
    ) -> MealStatus:
        """Add guest meals to the actor's own record for a past or present date."""
        if day is None:
            raise ValidationError("A date is required to log guest meals")
        for name, value in (
            ("guest_breakfast", breakfast),
            ("guest_lunch", lunch),
            ("guest_dinner", dinner),
        ):
            validate_meal_count(name, value)
        if breakfast + lunch + dinner == 0:
            raise ValidationError("Enter at least one guest meal")
        mess = self._get_mess(mess_id)
        if day > self.today(mess):
            raise ValidationError("Guest meals cannot be logged for a future date")
        self._require_member(mess_id, actor.member_id)
        current = self.get_meal_status(mess_id, actor.member_id, day)
        updated = replace(
            current,
            guest_breakfast=current.guest_breakfast + breakfast,
            guest_lunch=current.guest_lunch + lunch,
            guest_dinner=current.guest_dinner + dinner,
        )
        return self.set_meal_status(mess_id, actor.member_id, day, updated)

    def is_locked(self, mess: Mess, meal: MealType) -> bool:
        """Return True once today's cutoff for the meal has passed."""
        settings = mess.meal_settings
        if not settings.is_cutoff_enabled:
            return False
        local_now = self.clock().astimezone(ZoneInfo(settings.timezone))
        return local_now.time() >= settings.cutoff_for(meal)

    def today(self, mess: Mess) -> date:
        """Return the current mess-local date."""
        return local_today(self.clock(), mess.meal_settings.timezone)

    def _get_mess(self, mess_id: str) -> Mess:
        mess = self.mess_repository.get_mess(mess_id)
        if mess is None:
            raise NotFoundError(f"Mess {mess_id} not found")
        return mess

    def _require_member(self, mess_id: str, member_id: str) -> None:
        if self.mess_repository.get_member(mess_id, member_id) is None:
            raise NotFoundError(f"Member {member_id} not found in mess {mess_id}")
