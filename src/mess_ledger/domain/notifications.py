"""Domain models for notifications and push delivery."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

MANAGER_TARGET = "manager"

INVALID_TOKEN_CODES = frozenset(
    {
        "messaging/invalid-registration-token",
        "messaging/registration-token-not-registered",
    }
)


@dataclass(frozen=True)
class NotificationRecord:
    """A notification addressed to a member or to every manager of a mess."""

    id: UUID
    mess_id: str
    target: str
    message: str
    link: str | None
    created_at: datetime
    read: bool = False


@dataclass(frozen=True)
class PushPayload:
    """Payload handed to the push delivery service."""

    title: str
    body: str
    link: str


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of delivering a payload to one device token."""

    token: str
    success: bool
    error_code: str | None = None

    @property
    def is_token_invalid(self) -> bool:
        return not self.success and self.error_code in INVALID_TOKEN_CODES


@dataclass(frozen=True)
class DispatchSummary:
    """Counts reported after a fanout run."""

    targets: int
    tokens: int
    delivered: int
    pruned: int
