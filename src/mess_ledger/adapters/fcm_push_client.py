"""Firebase Cloud Messaging push client."""

import logging
from dataclasses import dataclass

import httpx

from mess_ledger.domain.errors import ExternalServiceError
from mess_ledger.domain.notifications import DeliveryResult, PushPayload
from mess_ledger.services.notifications import PushClient

logger = logging.getLogger(__name__)

# The legacy endpoint accepts at most this many registration ids per request.
MAX_TOKENS_PER_REQUEST = 1000

_ERROR_CODES = {
    "InvalidRegistration": "messaging/invalid-registration-token",
    "NotRegistered": "messaging/registration-token-not-registered",
    "MismatchSenderId": "messaging/mismatched-credential",
    "MessageTooBig": "messaging/payload-size-limit-exceeded",
    "Unavailable": "messaging/server-unavailable",
    "InternalServerError": "messaging/internal-error",
    "DeviceMessageRateExceeded": "messaging/device-message-rate-exceeded",
}

# Reported for every token of a batch whose request failed as a whole.
BATCH_FAILURE_CODE = "messaging/server-unavailable"


@dataclass
class HttpxFcmPushClient(PushClient):
    """Push client implemented with httpx against the FCM send endpoint."""

    server_key: str
    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, server_key: str, base_url: str) -> "HttpxFcmPushClient":
        """Create a push client with a managed httpx session."""
        return cls(
            server_key=server_key, base_url=base_url, http_client=httpx.AsyncClient()
        )

    async def send(
        self, tokens: list[str], payload: PushPayload
    ) -> list[DeliveryResult]:
        """Send the payload to every token and return per-token results.

        A failed batch reports its tokens as undelivered with
        ``BATCH_FAILURE_CODE`` and later batches are still sent. Raises
        ExternalServiceError only when every batch failed.
        """
        results: list[DeliveryResult] = []
        last_error: ExternalServiceError | None = None
        delivered_batches = 0
        for start in range(0, len(tokens), MAX_TOKENS_PER_REQUEST):
            batch = tokens[start : start + MAX_TOKENS_PER_REQUEST]
            try:
                results.extend(await self._send_batch(batch, payload))
            except ExternalServiceError as exc:
                logger.warning("Push batch of %d tokens failed: %s", len(batch), exc)
                last_error = exc
                results.extend(
                    DeliveryResult(
                        token=token, success=False, error_code=BATCH_FAILURE_CODE
                    )
                    for token in batch
                )
            else:
                delivered_batches += 1
        if last_error is not None and delivered_batches == 0:
            raise last_error
        return results

    async def _send_batch(
        self, tokens: list[str], payload: PushPayload
    ) -> list[DeliveryResult]:
        body = {
            "registration_ids": tokens,
            "notification": {"title": payload.title, "body": payload.body},
            "webpush": {
                "notification": {"icon": "/icon-192x192.png"},
                "fcm_options": {"link": payload.link},
            },
        }
        try:
            response = await self.http_client.post(
                self.base_url,
                json=body,
                headers={"Authorization": f"key={self.server_key}"},
                timeout=10,
            )
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ExternalServiceError(f"Push delivery failed: {exc}") from exc
        raw_results = data.get("results") or []
        if len(raw_results) != len(tokens):
            raise ExternalServiceError(
                f"Push service returned {len(raw_results)} results "
                f"for {len(tokens)} tokens"
            )
        return [
            _parse_result(token, raw)
            for token, raw in zip(tokens, raw_results, strict=True)
        ]

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _parse_result(token: str, raw: dict[str, object]) -> DeliveryResult:
    error = raw.get("error")
    if not error:
        return DeliveryResult(token=token, success=True)
    code = _ERROR_CODES.get(str(error), f"messaging/{error}")
    return DeliveryResult(token=token, success=False, error_code=code)
