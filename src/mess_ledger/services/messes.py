"""Mess creation, membership and role management."""

import logging
import secrets
import string
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime, time
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from mess_ledger.clock import local_today, utc_now
from mess_ledger.domain.errors import NotFoundError, ValidationError
from mess_ledger.domain.meals import MealSettings
from mess_ledger.domain.models import Actor, Member, Mess, Role
from mess_ledger.services.events import ChangeListener, emit_change
from mess_ledger.services.policy import Action, authorize

logger = logging.getLogger(__name__)

INVITE_CODE_LENGTH = 6
_INVITE_ALPHABET = string.ascii_uppercase + string.digits


class MessRepository(Protocol):
    """Persistence interface for messes and members."""

    def create_mess(
        self,
        name: str,
        founder_id: str,
        founder_name: str,
        invite_code: str,
        meal_settings: MealSettings,
    ) -> Mess:
        """Create a mess with its founder as manager and return it."""

    def get_mess(self, mess_id: str) -> Mess | None:
        """Return a mess by id, if present."""

    def find_by_invite_code(self, invite_code: str) -> Mess | None:
        """Return the mess that owns an invite code."""

    def update_meal_settings(self, mess_id: str, settings: MealSettings) -> None:
        """Replace the meal settings of a mess."""

    def list_members(self, mess_id: str) -> list[Member]:
        """Return all members of a mess."""

    def get_member(self, mess_id: str, member_id: str) -> Member | None:
        """Return a member of a mess, if present."""

    def find_membership(self, member_id: str) -> Member | None:
        """Return the membership of a user in any mess."""

    def add_member(
        self, mess_id: str, member_id: str, name: str, role: Role
    ) -> Member:
        """Add a member to a mess and return it."""

    def remove_member(self, mess_id: str, member_id: str) -> None:
        """Remove a member from a mess."""

    def transfer_manager(
        self, mess_id: str, old_manager_id: str, new_manager_id: str
    ) -> None:
        """Demote the old manager and promote the new one in one write."""

    def update_member_cache(
        self, mess_id: str, member_id: str, balance: float, meals: float
    ) -> None:
        """Store the denormalized balance and meal count for a member."""


def generate_invite_code() -> str:
    """Return a random uppercase invite code."""
    return "".join(secrets.choice(_INVITE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def parse_cutoff(raw: str) -> time:
    """Parse an ``HH:MM`` cutoff string."""
    try:
        hours, minutes = (int(part) for part in raw.strip().split(":"))
        return time(hours, minutes)
    except ValueError as exc:
        raise ValidationError(f"Invalid cutoff time: {raw!r}") from exc


@dataclass
class MessService:
    """Application service for mess lifecycle and membership."""

    repository: MessRepository
    default_timezone: str = "Asia/Dhaka"
    code_factory: Callable[[], str] = generate_invite_code
    listeners: list[ChangeListener] = field(default_factory=list)
    clock: Callable[[], datetime] = utc_now

    def create_mess(self, name: str, founder_id: str, founder_name: str) -> Mess:
        """Create a mess owned by the founder with default meal settings."""
        cleaned = name.strip()
        if not cleaned:
            raise ValidationError("Mess name must not be empty")
        if self.repository.find_membership(founder_id) is not None:
            raise ValidationError("User already belongs to a mess")
        mess = self.repository.create_mess(
            name=cleaned,
            founder_id=founder_id,
            founder_name=founder_name,
            invite_code=self.code_factory(),
            meal_settings=MealSettings(timezone=self.default_timezone),
        )
        logger.info("Created mess %s for %s", mess.id, founder_id)
        return mess

    def join_by_invite_code(self, invite_code: str, user_id: str, name: str) -> Member:
        """Join the mess identified by an invite code as a regular member."""
        mess = self.repository.find_by_invite_code(invite_code.strip().upper())
        if mess is None:
            raise NotFoundError("Invalid invite code. No mess found.")
        if self.repository.find_membership(user_id) is not None:
            raise ValidationError("User already belongs to a mess")
        return self.repository.add_member(mess.id, user_id, name, Role.MEMBER)

    def get_mess(self, mess_id: str) -> Mess:
        """Return a mess or raise NotFoundError."""
        mess = self.repository.get_mess(mess_id)
        if mess is None:
            raise NotFoundError(f"Mess {mess_id} not found")
        return mess

    def get_member(self, mess_id: str, member_id: str) -> Member:
        """Return a member or raise NotFoundError."""
        member = self.repository.get_member(mess_id, member_id)
        if member is None:
            raise NotFoundError(f"Member {member_id} not found in mess {mess_id}")
        return member

    def list_members(self, mess_id: str) -> list[Member]:
        """Return members of an existing mess."""
        self.get_mess(mess_id)
        return self.repository.list_members(mess_id)

    def resolve_actor(self, mess_id: str, member_id: str) -> Actor:
        """Build the actor for a member from its stored role."""
        member = self.get_member(mess_id, member_id)
        return Actor(member_id=member.id, role=member.role)

    def transfer_manager(
        self, actor: Actor, mess_id: str, new_manager_id: str
    ) -> None:
        """Hand the manager role to another member."""
        authorize(actor, Action.TRANSFER_MANAGER)
        if new_manager_id == actor.member_id:
            raise ValidationError("Cannot transfer the manager role to yourself")
        self.get_member(mess_id, new_manager_id)
        self.repository.transfer_manager(mess_id, actor.member_id, new_manager_id)
        logger.info(
            "Transferred manager of %s from %s to %s",
            mess_id,
            actor.member_id,
            new_manager_id,
        )

    def remove_member(self, actor: Actor, mess_id: str, member_id: str) -> None:
        """Remove a member from the mess."""
        authorize(actor, Action.REMOVE_MEMBER)
        if member_id == actor.member_id:
            raise ValidationError("Managers cannot remove themselves")
        mess = self.get_mess(mess_id)
        self.get_member(mess_id, member_id)
        self.repository.remove_member(mess_id, member_id)
        logger.info(
            "Manager %s removed %s from %s", actor.member_id, member_id, mess_id
        )
        emit_change(
            self.listeners,
            mess_id,
            local_today(self.clock(), mess.meal_settings.timezone),
        )

    def update_meal_settings(  # noqa: PLR0913
        self,
        actor: Actor,
        mess_id: str,
        *,
        breakfast_cutoff: str | None = None,
        lunch_cutoff: str | None = None,
        dinner_cutoff: str | None = None,
        is_breakfast_on: bool | None = None,
        is_lunch_on: bool | None = None,
        is_dinner_on: bool | None = None,
        is_cutoff_enabled: bool | None = None,
        timezone: str | None = None,
    ) -> MealSettings:
        """Update meal switches and cutoffs; omitted values are kept."""
        authorize(actor, Action.UPDATE_MEAL_SETTINGS)
        current = self.get_mess(mess_id).meal_settings
        changes: dict[str, object] = {}
        for key, raw in (
            ("breakfast_cutoff", breakfast_cutoff),
            ("lunch_cutoff", lunch_cutoff),
            ("dinner_cutoff", dinner_cutoff),
        ):
            if raw is not None:
                changes[key] = parse_cutoff(raw)
        for key, flag in (
            ("is_breakfast_on", is_breakfast_on),
            ("is_lunch_on", is_lunch_on),
            ("is_dinner_on", is_dinner_on),
            ("is_cutoff_enabled", is_cutoff_enabled),
        ):
            if flag is not None:
                changes[key] = flag
        if timezone is not None:
            try:
                ZoneInfo(timezone)
            except (ZoneInfoNotFoundError, ValueError) as exc:
                raise ValidationError(f"Unknown timezone: {timezone}") from exc
            changes["timezone"] = timezone
        updated = replace(current, **changes)
        self.repository.update_meal_settings(mess_id, updated)
        return updated
