"""Supabase repositories for notification records and device tokens."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from mess_ledger.domain.notifications import NotificationRecord
from mess_ledger.services.notifications import NotificationRepository, TokenRepository


@dataclass
class SupabaseNotificationRepository(NotificationRepository):
    """Supabase implementation for per-mess notification records."""

    client: Client

    def create_notification(
        self, mess_id: str, target: str, message: str, link: str | None
    ) -> NotificationRecord:
        """Insert a notification row."""
        response = (
            self.client.table("notifications")
            .insert(
                {
                    "mess_id": mess_id,
                    "user_id": target,
                    "message": message,
                    "link": link,
                    "read": False,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create notification")
        return _parse_notification(response.data[0])

    def list_notifications(
        self, mess_id: str, targets: list[str], limit: int
    ) -> list[NotificationRecord]:
        """Return the newest records addressed to the targets."""
        response = (
            self.client.table("notifications")
            .select("id, mess_id, user_id, message, link, read, created_at")
            .eq("mess_id", mess_id)
            .in_("user_id", targets)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [_parse_notification(row) for row in response.data or []]

    def get_notification(
        self, mess_id: str, notification_id: UUID
    ) -> NotificationRecord | None:
        """Return a notification row by id."""
        response = (
            self.client.table("notifications")
            .select("id, mess_id, user_id, message, link, read, created_at")
            .eq("mess_id", mess_id)
            .eq("id", str(notification_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _parse_notification(response.data[0])

    def mark_read(self, mess_id: str, notification_id: UUID) -> None:
        """Flag a notification row as read."""
        self.client.table("notifications").update({"read": True}).eq(
            "mess_id", mess_id
        ).eq("id", str(notification_id)).execute()


@dataclass
class SupabaseTokenRepository(TokenRepository):
    """Device tokens stored as the ``fcm_tokens`` array of user rows."""

    client: Client

    def list_tokens(self, user_ids: list[str]) -> dict[str, list[str]]:
        """Return tokens per user id."""
        if not user_ids:
            return {}
        response = (
            self.client.table("users")
            .select("id, fcm_tokens")
            .in_("id", user_ids)
            .execute()
        )
        return {
            str(row["id"]): [str(token) for token in row.get("fcm_tokens") or []]
            for row in response.data or []
        }

    def add_token(self, user_id: str, token: str) -> None:
        """Append a token unless present, in one database call."""
        self.client.rpc(
            "add_fcm_token", {"p_user_id": user_id, "p_token": token}
        ).execute()

    def find_token_holders(self, token: str) -> list[str]:
        """Return ids of users whose token array contains the token."""
        response = (
            self.client.table("users")
            .select("id")
            .contains("fcm_tokens", [token])
            .execute()
        )
        return [str(row["id"]) for row in response.data or []]

    def remove_token(self, user_id: str, token: str) -> None:
        """Remove one exact token value with ``array_remove`` server-side."""
        self.client.rpc(
            "remove_fcm_token", {"p_user_id": user_id, "p_token": token}
        ).execute()


def _parse_notification(row: dict[str, object]) -> NotificationRecord:
    created_raw = row.get("created_at")
    return NotificationRecord(
        id=UUID(str(row["id"])),
        mess_id=str(row["mess_id"]),
        target=str(row["user_id"]),
        message=str(row.get("message", "")),
        link=row.get("link"),
        created_at=datetime.fromisoformat(created_raw)
        if isinstance(created_raw, str) and created_raw
        else datetime.min,
        read=bool(row.get("read", False)),
    )
