"""
Flutterwave Payment Service
===========================

Starts M-Pesa mobile-money charges (STK push) through the Flutterwave
``/payments`` API and maps each response to one settlement outcome:

- HTTP 2xx, ``status == "success"``   -> ``SETTLED``
- HTTP 2xx, any other ``status``      -> ``FAILED`` (definite decline)
- non-2xx, timeout, transport error   -> ``ERROR``  (indeterminate)

Exactly one HTTP call is made per tip. There is no retry here: a blind retry
of a mobile-money push can charge the supporter twice.

The secret key is read from the secret store on every call (see
``get_provider_credential``) and is never logged.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Optional

import httpx

from tipkesho.core.config import settings
from tipkesho.core.errors import FailedPrecondition

if TYPE_CHECKING:
    from tipkesho.models import TipRecord
    from tipkesho.services.auth_service import CallerSession
    from tipkesho.services.tipValidator import NormalizedTipRequest

logger = logging.getLogger(__name__)

PROVIDER_NOT_CONFIGURED = "payment provider configuration error"

DEFAULT_CUSTOMER_NAME = "TipKesho Supporter"
PAYMENT_OPTIONS = "mpesa"


# ---------------------------------------------------------------------------
# Secret store
# ---------------------------------------------------------------------------

def get_provider_credential() -> Optional[str]:
    """Return the Flutterwave secret key, or None when it is not configured."""
    key = (settings.flutterwave_secret_key or "").strip()
    return key or None


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------

class OutcomeKind(str, enum.Enum):
    SETTLED = "settled"
    FAILED = "failed"
    ERROR = "error"


@dataclass(frozen=True)
class GatewayOutcome:
    """Result of one payment initiation call.

    Attributes:
        kind: The settlement outcome.
        payload: Raw provider response body (``SETTLED`` and ``FAILED``).
        error: Raw error payload (``ERROR``).
        message: Provider-supplied message, when the body carried one.
    """
    kind: OutcomeKind
    payload: Optional[dict[str, Any]] = None
    error: Optional[dict[str, Any]] = None
    message: Optional[str] = None


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------

def build_payment_payload(
    tip: "TipRecord",
    request: "NormalizedTipRequest",
    caller: "CallerSession",
) -> dict[str, Any]:
    """Compose the ``POST /payments`` body for a tip.

    Customer details fall back from the explicit request fields to the
    caller's profile, then to a platform default.
    """
    email = (
        request.tipper_email
        or caller.email
        or f"supporter_{caller.user_id[:5]}@tipkesho.com"
    )
    name = request.tipper_name or caller.display_name or DEFAULT_CUSTOMER_NAME

    return {
        "tx_ref": tip.tx_ref,
        "amount": format(tip.amount, "f"),
        "currency": tip.currency,
        "redirect_url": settings.payment_redirect_url,
        "payment_options": PAYMENT_OPTIONS,
        "customer": {
            "email": email,
            "phonenumber": request.tipper_phone_number,
            "name": name,
        },
        "customizations": {
            "title": f"Tip to {tip.to_creator_handle} on TipKesho",
            "description": (
                f"Supporting creative talent. Tip Amount: {tip.currency} {tip.amount}"
            ),
            "logo": settings.payment_logo_url,
        },
        "meta": {
            "tip_id": str(tip.id),
            "from_user_id": tip.from_user_id,
            "to_creator_id": tip.to_creator_id,
        },
    }


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

def _decode_body(response: httpx.Response) -> Optional[dict[str, Any]]:
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _provider_message(body: Optional[dict[str, Any]]) -> Optional[str]:
    """Return the body's ``message`` when it is a non-empty string."""
    message = body.get("message") if body else None
    return message if isinstance(message, str) and message else None


class FlutterwaveGateway:
    """Payment gateway adapter for the Flutterwave v3 API.

    Args:
        credential_provider: Returns the secret key or None; called per request.
        base_url: API root, e.g. ``https://api.flutterwave.com/v3``.
        timeout_seconds: Bound on the whole call; exceeding it is an
                         indeterminate outcome.
        transport: Optional httpx transport, used by tests to stub the API.
    """

    def __init__(
        self,
        credential_provider: Callable[[], Optional[str]] = get_provider_credential,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._credential_provider = credential_provider
        self._base_url = (base_url or settings.flutterwave_base_url).rstrip("/")
        self._timeout = (
            timeout_seconds
            if timeout_seconds is not None
            else settings.payment_provider_timeout_seconds
        )
        self._transport = transport

    def credential(self) -> str:
        """Return the secret key.

        Raises:
            FailedPrecondition: If no key is configured. The service cannot
                operate at all in that state, so this is logged as an error.
        """
        key = self._credential_provider()
        if not key:
            logger.error(
                "CRITICAL: Flutterwave secret key is not configured. Tips cannot "
                "be processed until FLUTTERWAVE_SECRET_KEY is set."
            )
            raise FailedPrecondition(PROVIDER_NOT_CONFIGURED)
        return key

    async def initiate_payment(self, payload: dict[str, Any]) -> GatewayOutcome:
        """Send one payment initiation request and classify the result.

        Raises:
            FailedPrecondition: If the secret key is missing. No request is sent.
        """
        key = self.credential()
        tx_ref = payload.get("tx_ref")

        logger.info("Calling Flutterwave payments API: tx_ref=%s", tx_ref)
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    "/payments",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.TimeoutException as exc:
            logger.error("Flutterwave API timeout: tx_ref=%s: %s", tx_ref, exc)
            return GatewayOutcome(
                kind=OutcomeKind.ERROR,
                error={
                    "message": str(exc) or "request timed out",
                    "type": type(exc).__name__,
                    "isTimeout": True,
                },
            )
        except httpx.HTTPError as exc:
            logger.error("Flutterwave API transport error: tx_ref=%s: %s", tx_ref, exc)
            return GatewayOutcome(
                kind=OutcomeKind.ERROR,
                error={
                    "message": str(exc),
                    "type": type(exc).__name__,
                    "isTimeout": False,
                },
            )

        body = _decode_body(response)
        message = _provider_message(body)

        if not response.is_success:
            logger.error(
                "Flutterwave API HTTP error: tx_ref=%s, status=%d, message=%s",
                tx_ref,
                response.status_code,
                message,
            )
            return GatewayOutcome(
                kind=OutcomeKind.ERROR,
                error={
                    "httpStatus": response.status_code,
                    "body": body if body is not None else response.text,
                },
                message=message,
            )

        if body is None:
            logger.error(
                "Flutterwave API returned an undecodable body: tx_ref=%s", tx_ref
            )
            return GatewayOutcome(
                kind=OutcomeKind.ERROR,
                error={"httpStatus": response.status_code, "body": response.text},
            )

        if body.get("status") == "success":
            logger.info("Flutterwave payment initiation succeeded: tx_ref=%s", tx_ref)
            return GatewayOutcome(kind=OutcomeKind.SETTLED, payload=body, message=message)

        logger.warning(
            "Flutterwave payment initiation declined: tx_ref=%s, status=%s, message=%s",
            tx_ref,
            body.get("status"),
            message,
        )
        return GatewayOutcome(kind=OutcomeKind.FAILED, payload=body, message=message)
