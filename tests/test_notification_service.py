"""Tests for notification records, push fanout and token cleanup."""

import asyncio
import json
from uuid import uuid4

import httpx
import pytest

from mess_ledger.adapters.fcm_push_client import (
    MAX_TOKENS_PER_REQUEST,
    HttpxFcmPushClient,
)
from mess_ledger.domain.errors import NotFoundError, PermissionDeniedError
from mess_ledger.domain.ledger import TransactionKind
from mess_ledger.domain.models import Role
from mess_ledger.domain.notifications import MANAGER_TARGET
from mess_ledger.services.notifications import NotificationService

INVALID = "messaging/registration-token-not-registered"


def _two_managers(mess_repository, mess, token_repository) -> None:
    mess_repository.add_member(mess.id, "manager-2", "Sabina", Role.MANAGER)
    token_repository.tokens = {
        "manager-1": ["tok-a", "tok-b"],
        "manager-2": ["tok-c"],
        "member-1": ["tok-m"],
    }


def test_manager_fanout_prunes_only_invalid_tokens(
    container, mess, mess_repository, token_repository, push_client
) -> None:
    _two_managers(mess_repository, mess, token_repository)
    push_client.errors = {
        "tok-b": "messaging/invalid-registration-token",
        "tok-c": "messaging/internal-error",
    }
    service = container.notification_service

    service.publish(mess.id, MANAGER_TARGET, "New deposit awaits approval")
    summaries = asyncio.run(service.drain())

    assert push_client.sent[0][0] == ["tok-a", "tok-b", "tok-c"]
    assert summaries[0].targets == 2
    assert summaries[0].tokens == 3
    assert summaries[0].delivered == 1
    assert summaries[0].pruned == 1
    assert token_repository.tokens["manager-1"] == ["tok-a"]
    assert token_repository.tokens["manager-2"] == ["tok-c"]
    assert token_repository.tokens["member-1"] == ["tok-m"]
    assert service.outbox == []


def test_pruning_matches_tokens_exactly(
    container, mess, token_repository, push_client
) -> None:
    token_repository.tokens = {"member-1": ["abc", "abc-123", "xabc"]}
    push_client.errors = {"abc": INVALID}
    record = container.notification_service.publish(mess.id, "member-1", "Hello")

    asyncio.run(container.notification_service.dispatch(record))

    assert token_repository.tokens["member-1"] == ["abc-123", "xabc"]


def test_invalid_token_removed_from_every_holder(
    container, mess, token_repository, push_client
) -> None:
    token_repository.tokens = {"member-1": ["shared"], "member-2": ["shared", "own"]}
    push_client.errors = {"shared": INVALID}
    record = container.notification_service.publish(mess.id, "member-1", "Hi")

    summary = asyncio.run(container.notification_service.dispatch(record))

    assert summary.pruned == 2
    assert token_repository.tokens == {"member-1": [], "member-2": ["own"]}


def test_failed_cleanup_does_not_stop_other_removals(
    container, mess, token_repository, push_client
) -> None:
    token_repository.tokens = {"member-1": ["broken", "gone", "fine"]}
    token_repository.failing_tokens = {"broken"}
    push_client.errors = {"broken": INVALID, "gone": INVALID}
    record = container.notification_service.publish(mess.id, "member-1", "Hi")

    summary = asyncio.run(container.notification_service.dispatch(record))

    assert summary.pruned == 1
    assert token_repository.tokens["member-1"] == ["broken", "fine"]


def test_push_outage_is_contained(
    container, mess, token_repository, push_client
) -> None:
    token_repository.tokens = {"member-1": ["tok"]}
    push_client.unavailable = True
    record = container.notification_service.publish(mess.id, "member-1", "Hi")

    summary = asyncio.run(container.notification_service.dispatch(record))

    assert summary.delivered == 0
    assert token_repository.tokens["member-1"] == ["tok"]


def test_no_targets_or_tokens_is_a_no_op(container, mess, push_client) -> None:
    service = container.notification_service
    orphan = service.publish("mess-unknown", MANAGER_TARGET, "Anyone?")
    silent = service.publish(mess.id, "member-1", "No devices")

    no_targets = asyncio.run(service.dispatch(orphan))
    no_tokens = asyncio.run(service.dispatch(silent))

    assert no_targets.targets == 0
    assert no_tokens.targets == 1
    assert no_tokens.tokens == 0
    assert push_client.sent == []


def test_drain_continues_after_a_failing_record(
    container, mess, token_repository, push_client, monkeypatch
) -> None:
    token_repository.tokens = {"member-2": ["tok-2"]}
    original = token_repository.list_tokens

    def flaky_list_tokens(user_ids: list[str]) -> dict[str, list[str]]:
        if "member-1" in user_ids:
            raise RuntimeError("store unavailable")
        return original(user_ids)

    monkeypatch.setattr(token_repository, "list_tokens", flaky_list_tokens)
    service = container.notification_service
    service.publish(mess.id, "member-1", "First")
    service.publish(mess.id, "member-2", "Second")

    summaries = asyncio.run(service.drain())

    assert len(summaries) == 1
    assert push_client.sent[0][0] == ["tok-2"]
    assert service.outbox == []


def test_record_failure_does_not_block_ledger_write(
    container, mess, notification_repository
) -> None:
    notification_repository.fail = True
    member = container.mess_service.resolve_actor(mess.id, "member-1")

    record = container.ledger_service.submit(
        member, mess.id, TransactionKind.DEPOSIT, 100
    )

    assert container.ledger_service.get_transaction(
        mess.id, TransactionKind.DEPOSIT, record.id
    )
    assert container.notification_service.outbox == []


def test_payload_uses_default_link(
    container, mess, token_repository, push_client
) -> None:
    token_repository.tokens = {"member-1": ["tok"]}
    service = container.notification_service
    record = service.publish(mess.id, "member-1", "Plain")

    asyncio.run(service.dispatch(record))

    payload = push_client.sent[0][1]
    assert payload.title == "Mess Ledger"
    assert payload.body == "Plain"
    assert payload.link == "/dashboard"


def test_register_token_is_idempotent(container, token_repository) -> None:
    service = container.notification_service

    service.register_token("member-1", " tok-1 ")
    service.register_token("member-1", "tok-1")
    service.register_token("member-1", "   ")

    assert token_repository.tokens == {"member-1": ["tok-1"]}


def test_inbox_includes_role_target_for_managers(container, mess) -> None:
    service = container.notification_service
    service.publish(mess.id, MANAGER_TARGET, "For managers")
    direct = service.publish(mess.id, "manager-1", "Direct")
    service.publish(mess.id, "member-1", "Not mine")
    manager = container.mess_service.get_member(mess.id, "manager-1")
    member = container.mess_service.get_member(mess.id, "member-1")
    manager_actor = container.mess_service.resolve_actor(mess.id, "manager-1")

    inbox = service.list_for_member(mess.id, manager)
    service.mark_read(manager_actor, mess.id, direct.id)

    assert [record.message for record in inbox] == ["Direct", "For managers"]
    assert [r.message for r in service.list_for_member(mess.id, member)] == [
        "Not mine"
    ]
    read = {r.message: r.read for r in service.list_for_member(mess.id, manager)}
    assert read == {"Direct": True, "For managers": False}


def test_mark_read_requires_the_addressee(container, mess) -> None:
    service = container.notification_service
    direct = service.publish(mess.id, "member-1", "Deposit approved")
    for_managers = service.publish(mess.id, MANAGER_TARGET, "Review deposits")
    member_1 = container.mess_service.resolve_actor(mess.id, "member-1")
    member_2 = container.mess_service.resolve_actor(mess.id, "member-2")
    manager = container.mess_service.resolve_actor(mess.id, "manager-1")

    with pytest.raises(PermissionDeniedError):
        service.mark_read(member_2, mess.id, direct.id)
    with pytest.raises(PermissionDeniedError):
        service.mark_read(member_1, mess.id, for_managers.id)
    with pytest.raises(PermissionDeniedError):
        service.mark_read(manager, mess.id, direct.id)
    with pytest.raises(NotFoundError):
        service.mark_read(member_1, mess.id, uuid4())
    service.mark_read(member_1, mess.id, direct.id)
    service.mark_read(manager, mess.id, for_managers.id)

    manager_member = container.mess_service.get_member(mess.id, "manager-1")
    member = container.mess_service.get_member(mess.id, "member-1")
    assert [r.read for r in service.list_for_member(mess.id, member)] == [True]
    assert [r.read for r in service.list_for_member(mess.id, manager_member)] == [
        True
    ]


def test_failed_push_batch_still_prunes_earlier_invalid_tokens(
    container, mess, mess_repository, notification_repository, token_repository
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        tokens = json.loads(request.content.decode())["registration_ids"]
        if len(tokens) == MAX_TOKENS_PER_REQUEST:
            return httpx.Response(
                200, json={"results": [{"error": "NotRegistered"}] * len(tokens)}
            )
        return httpx.Response(503, text="unavailable")

    tokens = [f"tok-{index}" for index in range(MAX_TOKENS_PER_REQUEST + 1)]
    token_repository.tokens = {"member-1": list(tokens)}
    service = NotificationService(
        repository=notification_repository,
        token_repository=token_repository,
        mess_repository=mess_repository,
        push_client=HttpxFcmPushClient(
            server_key="server-key",
            base_url="https://fcm.googleapis.com/fcm/send",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        ),
    )
    record = service.publish(mess.id, "member-1", "Deposit approved")

    summary = asyncio.run(service.dispatch(record))

    assert summary.tokens == MAX_TOKENS_PER_REQUEST + 1
    assert summary.delivered == 0
    assert summary.pruned == MAX_TOKENS_PER_REQUEST
    assert token_repository.tokens["member-1"] == ["tok-1000"]
