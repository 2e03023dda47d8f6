"""Domain models for messes and their members."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from mess_ledger.domain.meals import MealSettings


class Role(Enum):
    """Member role within a mess."""

    MANAGER = "manager"
    MEMBER = "member"


@dataclass(frozen=True)
class Mess:
    """A group sharing meals and expenses."""

    id: str
    name: str
    manager_id: str
    invite_code: str
    meal_settings: MealSettings
    created_at: datetime


@dataclass(frozen=True)
class Member:
    """A member of a mess with a cached balance."""

    id: str
    mess_id: str
    name: str
    role: Role
    balance: float = 0.0
    meals: float = 0.0

    @property
    def is_manager(self) -> bool:
        return self.role is Role.MANAGER


@dataclass(frozen=True)
class Actor:
    """The member performing a command, with the role it is checked against."""

    member_id: str
    role: Role

    @property
    def is_manager(self) -> bool:
        return self.role is Role.MANAGER
