"""
Unit tests for the Flutterwave payment gateway adapter.

The real adapter runs against ``httpx.MockTransport``; no network access.
Covers outcome classification, the missing-credential guard, and the
request payload.
"""

from __future__ import annotations

import json
import uuid
from decimal import Decimal

import httpx
import pytest

from tipkesho.core.errors import FailedPrecondition
from tipkesho.integrations.flutterwave import (
    PROVIDER_NOT_CONFIGURED,
    FlutterwaveGateway,
    OutcomeKind,
    build_payment_payload,
)
from tipkesho.models import TipRecord
from tipkesho.services.auth_service import CallerSession
from tipkesho.services.tipValidator import NormalizedTipRequest

from tests.conftest import TEST_SECRET_KEY, FakeFlutterwave

PAYLOAD = {"tx_ref": "TIPKESHO-test", "amount": "100.00", "currency": "KES"}


# ---------------------------------------------------------------------------
# Outcome classification
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestInitiatePayment:

    async def test_success_is_settled(self, flutterwave: FakeFlutterwave):
        outcome = await flutterwave.gateway().initiate_payment(PAYLOAD)

        assert outcome.kind is OutcomeKind.SETTLED
        assert outcome.payload["data"]["flw_ref"] == "FLW-MOCK-0001"
        assert outcome.error is None

    async def test_sends_one_authenticated_post(self, flutterwave: FakeFlutterwave):
        await flutterwave.gateway().initiate_payment(PAYLOAD)

        assert len(flutterwave.requests) == 1
        request = flutterwave.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://flutterwave.test/v3/payments"
        assert request.headers["Authorization"] == f"Bearer {TEST_SECRET_KEY}"
        assert json.loads(request.content) == PAYLOAD

    async def test_decline_is_failed(self, flutterwave: FakeFlutterwave):
        flutterwave.respond(200, {"status": "error", "message": "Insufficient funds"})

        outcome = await flutterwave.gateway().initiate_payment(PAYLOAD)

        assert outcome.kind is OutcomeKind.FAILED
        assert outcome.message == "Insufficient funds"
        assert outcome.payload == {"status": "error", "message": "Insufficient funds"}

    async def test_non_2xx_is_error_with_message(self, flutterwave: FakeFlutterwave):
        flutterwave.respond(400, {"status": "error", "message": "Invalid phone"})

        outcome = await flutterwave.gateway().initiate_payment(PAYLOAD)

        assert outcome.kind is OutcomeKind.ERROR
        assert outcome.message == "Invalid phone"
        assert outcome.error["httpStatus"] == 400
        assert outcome.error["body"]["message"] == "Invalid phone"

    @pytest.mark.parametrize("status_code", [200, 400])
    async def test_non_string_message_is_dropped(
        self, flutterwave: FakeFlutterwave, status_code
    ):
        body = {"status": "error", "message": {"detail": "bad phone"}}
        flutterwave.respond(status_code, body)

        outcome = await flutterwave.gateway().initiate_payment(PAYLOAD)

        assert outcome.message is None
        raw = outcome.payload if outcome.kind is OutcomeKind.FAILED else outcome.error["body"]
        assert raw == body

    async def test_server_error_without_json(self, flutterwave: FakeFlutterwave):
        flutterwave.respond(502, "Bad Gateway")

        outcome = await flutterwave.gateway().initiate_payment(PAYLOAD)

        assert outcome.kind is OutcomeKind.ERROR
        assert outcome.message is None
        assert outcome.error == {"httpStatus": 502, "body": "Bad Gateway"}

    async def test_undecodable_success_body_is_error(self, flutterwave: FakeFlutterwave):
        flutterwave.respond(200, "<html>ok</html>")

        outcome = await flutterwave.gateway().initiate_payment(PAYLOAD)

        assert outcome.kind is OutcomeKind.ERROR

    async def test_timeout_is_error(self, flutterwave: FakeFlutterwave):
        flutterwave.fail_with(httpx.ReadTimeout("read timed out"))

        outcome = await flutterwave.gateway().initiate_payment(PAYLOAD)

        assert outcome.kind is OutcomeKind.ERROR
        assert outcome.error["isTimeout"] is True
        assert outcome.error["type"] == "ReadTimeout"
        assert len(flutterwave.requests) == 1

    async def test_transport_error_is_error(self, flutterwave: FakeFlutterwave):
        flutterwave.fail_with(httpx.ConnectError("connection refused"))

        outcome = await flutterwave.gateway().initiate_payment(PAYLOAD)

        assert outcome.kind is OutcomeKind.ERROR
        assert outcome.error["isTimeout"] is False
        assert len(flutterwave.requests) == 1


# ---------------------------------------------------------------------------
# Credential
# ---------------------------------------------------------------------------


class TestCredential:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("key", [None, ""])
    async def test_missing_key_raises_without_calling(
        self, flutterwave: FakeFlutterwave, key
    ):
        flutterwave.secret_key = key
        gateway = flutterwave.gateway()

        with pytest.raises(FailedPrecondition) as exc_info:
            await gateway.initiate_payment(PAYLOAD)

        assert exc_info.value.message == PROVIDER_NOT_CONFIGURED
        assert flutterwave.requests == []

    def test_key_read_on_every_call(self, flutterwave: FakeFlutterwave):
        gateway = flutterwave.gateway()
        assert gateway.credential() == TEST_SECRET_KEY

        flutterwave.secret_key = None
        with pytest.raises(FailedPrecondition):
            gateway.credential()

    def test_missing_key_is_logged(self, caplog):
        gateway = FlutterwaveGateway(credential_provider=lambda: None)

        with pytest.raises(FailedPrecondition):
            gateway.credential()

        assert "FLUTTERWAVE_SECRET_KEY" in caplog.text


# ---------------------------------------------------------------------------
# Payload
# ---------------------------------------------------------------------------


def _tip() -> TipRecord:
    return TipRecord(
        id=uuid.UUID("12345678-1234-5678-1234-567812345678"),
        tx_ref="TIPKESHO-abc",
        from_user_id="uid-supporter-0001",
        from_username="Wanjiku Kamau",
        to_creator_id="uid-creator-0001",
        to_creator_handle="baraka_beats",
        amount=Decimal("250.00"),
        platform_fee=Decimal("12.50"),
        creator_amount=Decimal("237.50"),
        currency="KES",
    )


def _request(**overrides) -> NormalizedTipRequest:
    fields = dict(
        to_creator_id="uid-creator-0001",
        amount=Decimal("250.00"),
        message=None,
        tipper_phone_number="+254712345678",
    )
    fields.update(overrides)
    return NormalizedTipRequest(**fields)


def _caller(**overrides) -> CallerSession:
    fields = dict(
        user_id="uid-supporter-0001",
        session_id=uuid.uuid4(),
        display_name="Wanjiku Kamau",
        email="wanjiku@example.com",
    )
    fields.update(overrides)
    return CallerSession(**fields)


class TestBuildPaymentPayload:

    def test_payload_shape(self):
        payload = build_payment_payload(_tip(), _request(), _caller())

        assert payload["tx_ref"] == "TIPKESHO-abc"
        assert payload["amount"] == "250.00"
        assert payload["currency"] == "KES"
        assert payload["payment_options"] == "mpesa"
        assert payload["customer"]["phonenumber"] == "+254712345678"
        assert "baraka_beats" in payload["customizations"]["title"]
        assert payload["meta"] == {
            "tip_id": "12345678-1234-5678-1234-567812345678",
            "from_user_id": "uid-supporter-0001",
            "to_creator_id": "uid-creator-0001",
        }

    def test_explicit_customer_fields_win(self):
        payload = build_payment_payload(
            _tip(),
            _request(tipper_email="fan@example.com", tipper_name="Achieng"),
            _caller(),
        )
        assert payload["customer"]["email"] == "fan@example.com"
        assert payload["customer"]["name"] == "Achieng"

    def test_falls_back_to_caller_profile(self):
        payload = build_payment_payload(_tip(), _request(), _caller())
        assert payload["customer"]["email"] == "wanjiku@example.com"
        assert payload["customer"]["name"] == "Wanjiku Kamau"

    def test_falls_back_to_platform_defaults(self):
        payload = build_payment_payload(
            _tip(), _request(), _caller(display_name=None, email=None)
        )
        assert payload["customer"]["email"] == "supporter_uid-s@tipkesho.com"
        assert payload["customer"]["name"] == "TipKesho Supporter"
