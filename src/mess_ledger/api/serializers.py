"""Conversions from domain objects to JSON-ready dicts."""

from mess_ledger.domain.ledger import Transaction
from mess_ledger.domain.meals import MealSettings, MealStatus, MessMealHistoryEntry
from mess_ledger.domain.models import Member, Mess
from mess_ledger.domain.notifications import NotificationRecord
from mess_ledger.domain.reports import MemberBalance, MonthlyReport


def serialize_meal_settings(settings: MealSettings) -> dict[str, object]:
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


def serialize_mess(mess: Mess) -> dict[str, object]:
    return {
        "id": mess.id,
        "name": mess.name,
        "manager_id": mess.manager_id,
        "invite_code": mess.invite_code,
        "meal_settings": serialize_meal_settings(mess.meal_settings),
        "created_at": mess.created_at.isoformat(),
    }


def serialize_member(member: Member) -> dict[str, object]:
    return {
        "id": member.id,
        "mess_id": member.mess_id,
        "name": member.name,
        "role": member.role.value,
        "balance": member.balance,
        "meals": member.meals,
    }


def serialize_meal_status(status: MealStatus) -> dict[str, object]:
    payload: dict[str, object] = dict(status.counts())
    payload["is_set_by_user"] = status.is_set_by_user
    payload["total"] = status.total
    return payload


def serialize_history_entry(entry: MessMealHistoryEntry) -> dict[str, object]:
    return {
        "member_id": entry.member_id,
        "member_name": entry.member_name,
        "date": entry.day.isoformat(),
        "status": serialize_meal_status(entry.status),
    }


def serialize_transaction(record: Transaction) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": str(record.id),
        "mess_id": record.mess_id,
        "kind": record.kind.value,
        "member_id": record.member_id,
        "amount": record.amount,
        "date": record.date.isoformat(),
        "status": record.status.value,
        "created_by": record.created_by,
    }
    if record.description is not None:
        payload["description"] = record.description
    if record.receipt_url is not None:
        payload["receipt_url"] = record.receipt_url
    return payload


def serialize_balance(balance: MemberBalance) -> dict[str, object]:
    return {
        "member_id": balance.member_id,
        "period_start": balance.period.start.isoformat(),
        "period_end": balance.period.end.isoformat(),
        "total_deposits": balance.total_deposits,
        "total_meals": balance.total_meals,
        "meal_rate": balance.meal_rate,
        "meal_cost": balance.meal_cost,
        "balance": balance.balance,
    }


def serialize_report(report: MonthlyReport) -> dict[str, object]:
    return {
        "mess_id": report.mess_id,
        "year": report.year,
        "month": report.month,
        "total_expenses": report.total_expenses,
        "total_meals": report.total_meals,
        "meal_rate": report.meal_rate,
        "total_deposits": report.total_deposits,
        "members": [
            {
                "member_id": row.member_id,
                "member_name": row.member_name,
                "total_meals": row.total_meals,
                "meal_cost": row.meal_cost,
                "total_deposits": row.total_deposits,
                "final_balance": row.final_balance,
            }
            for row in report.members
        ],
    }


def serialize_notification(record: NotificationRecord) -> dict[str, object]:
    return {
        "id": str(record.id),
        "target": record.target,
        "message": record.message,
        "link": record.link,
        "created_at": record.created_at.isoformat(),
        "read": record.read,
    }
