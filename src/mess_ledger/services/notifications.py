"""Notification records, push fanout and device-token cleanup."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol
from uuid import UUID

from mess_ledger.domain.errors import (
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
)
from mess_ledger.domain.models import Actor, Member
from mess_ledger.domain.notifications import (
    MANAGER_TARGET,
    DeliveryResult,
    DispatchSummary,
    NotificationRecord,
    PushPayload,
)
from mess_ledger.services.messes import MessRepository

logger = logging.getLogger(__name__)


class NotificationRepository(Protocol):
    """Persistence interface for notification records."""

    def create_notification(
        self, mess_id: str, target: str, message: str, link: str | None
    ) -> NotificationRecord:
        """Create a notification record and return it."""

    def list_notifications(
        self, mess_id: str, targets: list[str], limit: int
    ) -> list[NotificationRecord]:
        """Return recent records addressed to any of ``targets``, newest first."""

    def get_notification(
        self, mess_id: str, notification_id: UUID
    ) -> NotificationRecord | None:
        """Return a record by id."""

    def mark_read(self, mess_id: str, notification_id: UUID) -> None:
        """Flag a record as read."""


class TokenRepository(Protocol):
    """Persistence interface for device tokens held by user records."""

    def list_tokens(self, user_ids: list[str]) -> dict[str, list[str]]:
        """Return the tokens registered to each user id."""

    def add_token(self, user_id: str, token: str) -> None:
        """Register a token for a user if it is not already present."""

    def find_token_holders(self, token: str) -> list[str]:
        """Return ids of user records whose token list contains ``token``."""

    def remove_token(self, user_id: str, token: str) -> None:
        """Remove exactly ``token`` from a user's token list."""


class PushClient(Protocol):
    """Interface for the push delivery service."""

    async def send(
        self, tokens: list[str], payload: PushPayload
    ) -> list[DeliveryResult]:
        """Deliver a payload and return one result per token, in order."""


@dataclass
class NotificationService:
    """Creates notification records and fans them out as push messages."""

    repository: NotificationRepository
    token_repository: TokenRepository
    mess_repository: MessRepository
    push_client: PushClient
    title: str = "Mess Ledger"
    default_link: str = "/dashboard"
    outbox: list[NotificationRecord] = field(default_factory=list)

    def publish(
        self, mess_id: str, target: str, message: str, link: str | None = None
    ) -> NotificationRecord | None:
        """Persist a record and queue it for delivery.

        Returns None when the record could not be stored; the caller's write
        is not rolled back.
        """
        try:
            record = self.repository.create_notification(mess_id, target, message, link)
        except Exception:
            logger.exception("Failed to create notification for %s", target)
            return None
        self.outbox.append(record)
        return record

    async def drain(self) -> list[DispatchSummary]:
        """Dispatch every queued record; one failing record does not stop the rest."""
        summaries = []
        while self.outbox:
            record = self.outbox.pop(0)
            try:
                summaries.append(await self.dispatch(record))
            except Exception:
                logger.exception("Dispatch failed for notification %s", record.id)
        return summaries

    def resolve_targets(self, mess_id: str, target: str) -> list[str]:
        """Return user ids addressed by a notification target."""
        if target == MANAGER_TARGET:
            return [
                member.id
                for member in self.mess_repository.list_members(mess_id)
                if member.is_manager
            ]
        return [target]

    def gather_tokens(self, user_ids: list[str]) -> list[str]:
        """Return the union of tokens registered to the users, in first-seen order."""
        tokens_by_user = self.token_repository.list_tokens(user_ids)
        tokens: list[str] = []
        seen: set[str] = set()
        for user_id in user_ids:
            for token in tokens_by_user.get(user_id, []):
                if token not in seen:
                    seen.add(token)
                    tokens.append(token)
        return tokens

    async def dispatch(self, record: NotificationRecord) -> DispatchSummary:
        """Deliver one record to every device of its targets and prune dead tokens."""
        user_ids = self.resolve_targets(record.mess_id, record.target)
        if not user_ids:
            logger.info("No managers found for mess %s", record.mess_id)
            return DispatchSummary(targets=0, tokens=0, delivered=0, pruned=0)
        tokens = self.gather_tokens(user_ids)
        if not tokens:
            logger.info("No device tokens found for notification %s", record.id)
            return DispatchSummary(
                targets=len(user_ids), tokens=0, delivered=0, pruned=0
            )

        payload = PushPayload(
            title=self.title,
            body=record.message,
            link=record.link or self.default_link,
        )
        logger.info("Sending notification %s to %d tokens", record.id, len(tokens))
        try:
            results = await self.push_client.send(tokens, payload)
        except ExternalServiceError:
            logger.exception("Push delivery failed for notification %s", record.id)
            return DispatchSummary(
                targets=len(user_ids), tokens=len(tokens), delivered=0, pruned=0
            )

        invalid: list[str] = []
        for result in results:
            if result.success:
                continue
            logger.warning(
                "Failure sending notification to %s: %s",
                result.token,
                result.error_code,
            )
            if result.is_token_invalid:
                invalid.append(result.token)
        pruned = await self.prune_tokens(invalid)
        return DispatchSummary(
            targets=len(user_ids),
            tokens=len(tokens),
            delivered=sum(1 for result in results if result.success),
            pruned=pruned,
        )

    async def prune_tokens(self, tokens: list[str]) -> int:
        """Remove invalid tokens concurrently; return how many removals succeeded."""
        if not tokens:
            return 0
        outcomes = await asyncio.gather(
            *(asyncio.to_thread(self._prune_token, token) for token in tokens),
            return_exceptions=True,
        )
        removed = 0
        for token, outcome in zip(tokens, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                logger.error("Failed to prune token %s", token, exc_info=outcome)
                continue
            removed += outcome
        return removed

    def _prune_token(self, token: str) -> int:
        logger.info("Scheduling cleanup for invalid token %s", token)
        holders = self.token_repository.find_token_holders(token)
        for user_id in holders:
            self.token_repository.remove_token(user_id, token)
        return len(holders)

    def register_token(self, user_id: str, token: str) -> None:
        """Register a device token for a user."""
        cleaned = token.strip()
        if cleaned:
            self.token_repository.add_token(user_id, cleaned)

    def list_for_member(
        self, mess_id: str, member: Member, limit: int = 50
    ) -> list[NotificationRecord]:
        """Return notifications addressed to the member or to its role."""
        targets = [member.id]
        if member.is_manager:
            targets.append(MANAGER_TARGET)
        return self.repository.list_notifications(mess_id, targets, limit)

    def mark_read(self, actor: Actor, mess_id: str, notification_id: UUID) -> None:
        """Flag a notification as read; only its addressee may do so."""
        record = self.repository.get_notification(mess_id, notification_id)
        if record is None:
            raise NotFoundError(f"Notification {notification_id} not found")
        if record.target == MANAGER_TARGET:
            allowed = actor.is_manager
        else:
            allowed = record.target == actor.member_id
        if not allowed:
            raise PermissionDeniedError(
                f"Notification {notification_id} is not addressed to {actor.member_id}"
            )
        self.repository.mark_read(mess_id, notification_id)
