"""Domain models for balances and monthly settlement."""

from dataclasses import dataclass
from datetime import date


@dataclass(frozen=True)
class Period:
    """Inclusive date range used for rate and balance computation."""

    start: date
    end: date


@dataclass(frozen=True)
class MemberBalance:
    """Computed standing of a member for a period."""

    member_id: str
    period: Period
    total_deposits: float
    total_meals: float
    meal_rate: float
    meal_cost: float
    balance: float


@dataclass(frozen=True)
class SettlementRow:
    """Per-member row of a monthly report."""

    member_id: str
    member_name: str
    total_meals: float
    meal_cost: float
    total_deposits: float
    final_balance: float


@dataclass(frozen=True)
class MonthlyReport:
    """Settlement report for one calendar month."""

    mess_id: str
    year: int
    month: int
    total_expenses: float
    total_meals: float
    meal_rate: float
    total_deposits: float
    members: tuple[SettlementRow, ...]
