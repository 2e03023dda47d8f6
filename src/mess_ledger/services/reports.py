"""Monthly settlement reports."""

import logging
from dataclasses import dataclass
from datetime import date

from mess_ledger.domain.reports import MonthlyReport, SettlementRow
from mess_ledger.services.balances import BalanceService, month_period
from mess_ledger.services.cache import Cache
from mess_ledger.services.messes import MessRepository

logger = logging.getLogger(__name__)

FORMER_MEMBER_NAME = "Former member"


def report_cache_key(mess_id: str, year: int, month: int) -> str:
    return f"report:{mess_id}:{year:04d}-{month:02d}"


@dataclass
class ReportService:
    """Builds settlement reports; cached copies are never authoritative."""

    balance_service: BalanceService
    mess_repository: MessRepository
    cache: Cache
    cache_ttl_seconds: int = 300

    def generate(
        self, mess_id: str, year: int, month: int, use_cache: bool = True
    ) -> MonthlyReport:
        """Return the settlement report for a calendar month."""
        key = report_cache_key(mess_id, year, month)
        if use_cache:
            cached = self.cache.get(key)
            if isinstance(cached, MonthlyReport):
                return cached

        period = month_period(year, month)
        totals = self.balance_service.summarize_period(
            mess_id, period.start, period.end
        )
        names = {
            member.id: member.name
            for member in self.mess_repository.list_members(mess_id)
        }
        member_ids = (
            set(names) | set(totals.meals_by_member) | set(totals.deposits_by_member)
        )
        rows = []
        for member_id in sorted(member_ids):
            balance = totals.balance_for(member_id)
            rows.append(
                SettlementRow(
                    member_id=member_id,
                    member_name=names.get(member_id, FORMER_MEMBER_NAME),
                    total_meals=balance.total_meals,
                    meal_cost=balance.meal_cost,
                    total_deposits=balance.total_deposits,
                    final_balance=balance.balance,
                )
            )
        report = MonthlyReport(
            mess_id=mess_id,
            year=year,
            month=month,
            total_expenses=totals.total_expenses,
            total_meals=totals.total_meals,
            meal_rate=totals.meal_rate,
            total_deposits=totals.total_deposits,
            members=tuple(rows),
        )
        self.cache.set(key, report, self.cache_ttl_seconds)
        return report

    def invalidate(self, mess_id: str, year: int, month: int) -> None:
        """Drop a cached report so the next request recomputes it."""
        self.cache.delete(report_cache_key(mess_id, year, month))

    def data_changed(self, mess_id: str, day: date) -> None:
        """Invalidate the month containing a changed record."""
        logger.debug("Invalidating report %s %s", mess_id, day.strftime("%Y-%m"))
        self.invalidate(mess_id, day.year, day.month)
