"""Balance and meal-rate computation from approved ledger and meal records."""

import calendar
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from zoneinfo import ZoneInfo

from mess_ledger.clock import local_today, utc_now
from mess_ledger.domain.errors import NotFoundError, ValidationError
from mess_ledger.domain.ledger import COUNTED_STATUSES, Transaction, TransactionKind
from mess_ledger.domain.models import Mess
from mess_ledger.domain.reports import MemberBalance, Period
from mess_ledger.services.ledger import TransactionRepository
from mess_ledger.services.meals import MealStatusRepository
from mess_ledger.services.messes import MessRepository

logger = logging.getLogger(__name__)


def meal_rate(total_expenses: float, total_meals: float) -> float:
    """Return cost per meal unit, or 0 when no meals were logged."""
    if total_meals <= 0:
        return 0.0
    return total_expenses / total_meals


def month_period(year: int, month: int) -> Period:
    """Return the inclusive bounds of a calendar month."""
    if not 1 <= month <= 12:  # noqa: PLR2004
        raise ValidationError(f"Invalid month: {month}")
    last_day = calendar.monthrange(year, month)[1]
    return Period(start=date(year, month, 1), end=date(year, month, last_day))


def day_start_utc(day: date, timezone_name: str) -> datetime:
    """Return mess-local midnight of ``day`` as a UTC instant."""
    tz = ZoneInfo(timezone_name)
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(UTC)


@dataclass(frozen=True)
class PeriodTotals:
    """Approved money and logged meals for a period, grouped by member."""

    period: Period
    total_expenses: float
    total_deposits: float
    meals_by_member: dict[str, float]
    deposits_by_member: dict[str, float]

    @property
    def total_meals(self) -> float:
        return sum(self.meals_by_member[key] for key in sorted(self.meals_by_member))

    @property
    def meal_rate(self) -> float:
        return meal_rate(self.total_expenses, self.total_meals)

    def balance_for(
        self, member_id: str, total_deposits: float | None = None
    ) -> MemberBalance:
        """Return the standing of one member within this period.

        ``total_deposits`` replaces the in-period deposit sum, for running
        balances that carry deposits made before the period started.
        """
        meals = self.meals_by_member.get(member_id, 0.0)
        deposits = total_deposits
        if deposits is None:
            deposits = self.deposits_by_member.get(member_id, 0.0)
        rate = self.meal_rate
        cost = meals * rate
        return MemberBalance(
            member_id=member_id,
            period=self.period,
            total_deposits=deposits,
            total_meals=meals,
            meal_rate=rate,
            meal_cost=cost,
            balance=deposits - cost,
        )


@dataclass
class BalanceService:
    """Derives balances and meal rates; the stored balance is only a cache."""

    meal_repository: MealStatusRepository
    transaction_repository: TransactionRepository
    mess_repository: MessRepository
    clock: Callable[[], datetime] = utc_now

    def summarize_period(self, mess_id: str, start: date, end: date) -> PeriodTotals:
        """Aggregate approved transactions and meal records in ``[start, end]``."""
        if end < start:
            raise ValidationError("Period end precedes its start")
        mess = self._get_mess(mess_id)
        window_start = day_start_utc(start, mess.meal_settings.timezone)
        window_end = day_start_utc(
            end + timedelta(days=1), mess.meal_settings.timezone
        )

        expenses = self._counted(
            mess_id, TransactionKind.EXPENSE, window_start, window_end
        )
        deposits = self._counted(
            mess_id, TransactionKind.DEPOSIT, window_start, window_end
        )
        deposits_by_member: dict[str, float] = {}
        for record in deposits:
            deposits_by_member[record.member_id] = (
                deposits_by_member.get(record.member_id, 0.0) + record.amount
            )

        meals_by_member: dict[str, float] = {}
        rows = self.meal_repository.list_mess_statuses(mess_id, start, end)
        for member_id, _day, status in sorted(rows, key=lambda row: (row[0], row[1])):
            meals_by_member[member_id] = (
                meals_by_member.get(member_id, 0.0) + status.total
            )

        return PeriodTotals(
            period=Period(start=start, end=end),
            total_expenses=sum(record.amount for record in expenses),
            total_deposits=sum(record.amount for record in deposits),
            meals_by_member=meals_by_member,
            deposits_by_member=deposits_by_member,
        )

    def compute_meal_rate(
        self, mess_id: str, period_start: date, period_end: date
    ) -> float:
        """Return approved expenses divided by all meals logged in the period."""
        return self.summarize_period(mess_id, period_start, period_end).meal_rate

    def compute_member_balance(
        self, mess_id: str, member_id: str, as_of: date | None = None
    ) -> MemberBalance:
        """Return a member's running balance as of ``as_of``.

        Every counted deposit up to the end of ``as_of`` is credited. Meal
        cost covers the month to date only, at that period's rate.
        """
        mess = self._get_mess(mess_id)
        if self.mess_repository.get_member(mess_id, member_id) is None:
            raise NotFoundError(f"Member {member_id} not found in mess {mess_id}")
        period = self._month_to_date(mess, as_of)
        return self._running_balances(mess, period, [member_id])[0]

    def recompute_balance(
        self, mess_id: str, member_id: str, as_of: date | None = None
    ) -> MemberBalance:
        """Rebuild one member's cached balance from source records."""
        balance = self.compute_member_balance(mess_id, member_id, as_of)
        self.mess_repository.update_member_cache(
            mess_id, member_id, balance=balance.balance, meals=balance.total_meals
        )
        return balance

    def refresh_cached_balances(self, mess_id: str) -> list[MemberBalance]:
        """Rebuild every member's cached balance as of today."""
        mess = self._get_mess(mess_id)
        period = self._month_to_date(mess, None)
        member_ids = [m.id for m in self.mess_repository.list_members(mess_id)]
        balances = self._running_balances(mess, period, member_ids)
        for balance in balances:
            self.mess_repository.update_member_cache(
                mess_id,
                balance.member_id,
                balance=balance.balance,
                meals=balance.total_meals,
            )
        logger.info("Refreshed %d cached balances for %s", len(balances), mess_id)
        return balances

    def data_changed(self, mess_id: str, day: date) -> None:
        """Refresh cached balances unless the change lies in a later month."""
        mess = self._get_mess(mess_id)
        today = local_today(self.clock(), mess.meal_settings.timezone)
        if (day.year, day.month) <= (today.year, today.month):
            self.refresh_cached_balances(mess_id)

    def _running_balances(
        self, mess: Mess, period: Period, member_ids: list[str]
    ) -> list[MemberBalance]:
        totals = self.summarize_period(mess.id, period.start, period.end)
        window_end = day_start_utc(
            period.end + timedelta(days=1), mess.meal_settings.timezone
        )
        deposits_by_member: dict[str, float] = {}
        deposits = self._counted(mess.id, TransactionKind.DEPOSIT, None, window_end)
        for record in deposits:
            deposits_by_member[record.member_id] = (
                deposits_by_member.get(record.member_id, 0.0) + record.amount
            )
        return [
            totals.balance_for(member_id, deposits_by_member.get(member_id, 0.0))
            for member_id in member_ids
        ]

    def _month_to_date(self, mess: Mess, as_of: date | None) -> Period:
        end = as_of or local_today(self.clock(), mess.meal_settings.timezone)
        return Period(start=end.replace(day=1), end=end)

    def _counted(
        self,
        mess_id: str,
        kind: TransactionKind,
        start: datetime | None,
        end: datetime,
    ) -> list[Transaction]:
        records = self.transaction_repository.list_transactions(
            mess_id, kind, COUNTED_STATUSES, start=start, end=end
        )
        return sorted(records, key=lambda record: (record.date, str(record.id)))

    def _get_mess(self, mess_id: str) -> Mess:
        mess = self.mess_repository.get_mess(mess_id)
        if mess is None:
            raise NotFoundError(f"Mess {mess_id} not found")
        return mess
