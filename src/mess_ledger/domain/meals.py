"""Domain models for daily meal participation."""

from dataclasses import dataclass, replace
from datetime import date, time
from enum import Enum


class MealType(Enum):
    """Meal slots tracked per day."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


@dataclass(frozen=True)
class MealStatus:
    """Personal and guest meal counts for one member on one date."""

    breakfast: float = 0.0
    lunch: float = 0.0
    dinner: float = 0.0
    guest_breakfast: float = 0.0
    guest_lunch: float = 0.0
    guest_dinner: float = 0.0
    is_set_by_user: bool = False

    @property
    def personal_total(self) -> float:
        return self.breakfast + self.lunch + self.dinner

    @property
    def guest_total(self) -> float:
        return self.guest_breakfast + self.guest_lunch + self.guest_dinner

    @property
    def total(self) -> float:
        return self.personal_total + self.guest_total

    def counts(self) -> dict[str, float]:
        """Return every count field keyed by its storage name."""
        return {
            "breakfast": self.breakfast,
            "lunch": self.lunch,
            "dinner": self.dinner,
            "guest_breakfast": self.guest_breakfast,
            "guest_lunch": self.guest_lunch,
            "guest_dinner": self.guest_dinner,
        }

    def with_meal(self, meal: MealType, count: float) -> "MealStatus":
        """Return a copy with one personal meal count replaced."""
        return replace(self, **{meal.value: count})


@dataclass(frozen=True)
class MealLedgerEntry:
    """Meal status for a member on a specific date."""

    day: date
    status: MealStatus


@dataclass(frozen=True)
class MessMealHistoryEntry:
    """Ledger entry annotated with the member it belongs to."""

    member_id: str
    member_name: str
    day: date
    status: MealStatus


@dataclass(frozen=True)
class MealSettings:
    """Per-mess meal switches and cutoff times in mess-local time."""

    breakfast_cutoff: time = time(2, 0)
    lunch_cutoff: time = time(13, 0)
    dinner_cutoff: time = time(20, 0)
    is_breakfast_on: bool = True
    is_lunch_on: bool = True
    is_dinner_on: bool = True
    is_cutoff_enabled: bool = True
    timezone: str = "Asia/Dhaka"

    def cutoff_for(self, meal: MealType) -> time:
        return {
            MealType.BREAKFAST: self.breakfast_cutoff,
            MealType.LUNCH: self.lunch_cutoff,
            MealType.DINNER: self.dinner_cutoff,
        }[meal]

    def is_enabled(self, meal: MealType) -> bool:
        return {
            MealType.BREAKFAST: self.is_breakfast_on,
            MealType.LUNCH: self.is_lunch_on,
            MealType.DINNER: self.is_dinner_on,
        }[meal]
