"""Tests for admin endpoints."""

from fastapi.testclient import TestClient

from mess_ledger.api.app import create_app
from mess_ledger.domain.ledger import TransactionKind
from mess_ledger.services.reports import report_cache_key
from tests.conftest import InMemoryMessRepository

ADMIN_HEADERS = {"X-Admin-Token": "admin-token"}


def test_admin_requires_token(container) -> None:
    client = TestClient(create_app(container))

    missing = client.get("/admin/health")
    wrong = client.get("/admin/health", headers={"X-Admin-Token": "nope"})
    ok = client.get("/admin/health", headers=ADMIN_HEADERS)

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert ok.json() == {"status": "ok"}


def test_admin_recomputes_cached_balances(
    container, mess, mess_repository: InMemoryMessRepository
) -> None:
    manager = container.mess_service.resolve_actor(mess.id, "manager-1")
    container.ledger_service.submit(
        manager, mess.id, TransactionKind.DEPOSIT, 400, member_id="member-2"
    )
    mess_repository.cache_writes.clear()
    client = TestClient(create_app(container))

    response = client.post(
        f"/admin/messes/{mess.id}/balances/recompute", headers=ADMIN_HEADERS
    )

    assert response.status_code == 200
    balances = {b["member_id"]: b["balance"] for b in response.json()["balances"]}
    assert balances == {"manager-1": 0.0, "member-1": 0.0, "member-2": 400.0}
    assert len(mess_repository.cache_writes) == 3
    assert mess_repository.get_member(mess.id, "member-2").balance == 400.0


def test_admin_invalidates_cached_report(container, mess) -> None:
    report_service = container.report_service
    report_service.generate(mess.id, 2024, 3)
    key = report_cache_key(mess.id, 2024, 3)
    client = TestClient(create_app(container))

    response = client.delete(
        f"/admin/messes/{mess.id}/reports/2024/3", headers=ADMIN_HEADERS
    )

    assert response.status_code == 200
    assert report_service.cache.get(key) is None
