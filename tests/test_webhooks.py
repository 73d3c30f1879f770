from pathlib import Path
import hashlib
import hmac
import json
import sys
import time

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from koloni.errors import InvalidAmount, MissingParameter, SignatureVerificationFailed
from koloni.ledger import TokenLedger
from koloni.store import InMemoryLedgerStore
from koloni.webhooks import PaymentWebhookProcessor, verify_event

SECRET = "whsec_test_secret"


def sign(payload: str, secret: str = SECRET, timestamp: int | None = None) -> str:
    timestamp = timestamp if timestamp is not None else int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def checkout_event(metadata: dict) -> str:
    return json.dumps({
        "id": "evt_1",
        "type": "checkout.session.completed",
        "data": {"object": {"id": "cs_1", "metadata": metadata}},
    })


@pytest.fixture
def ledger():
    return TokenLedger(InMemoryLedgerStore(), default_tokens=100)


@pytest.fixture
def processor(ledger):
    return PaymentWebhookProcessor(ledger, SECRET)


def test_verified_checkout_adds_tokens(processor, ledger):
    payload = checkout_event({"userId": "alice", "tokenAmount": "250"})

    assert processor.process(payload, sign(payload)) == {"received": True}
    assert ledger.balance("alice") == 350
    assert ledger.report("alice")["transactions"][-1]["type"] == "add"


def test_bad_signature_is_rejected(processor, ledger):
    payload = checkout_event({"userId": "alice", "tokenAmount": "250"})

    with pytest.raises(SignatureVerificationFailed):
        processor.process(payload, sign(payload, secret="whsec_other"))
    assert ledger.store.get("alice") is None


def test_tampered_payload_is_rejected(processor):
    payload = checkout_event({"userId": "alice", "tokenAmount": "250"})
    header = sign(payload)
    tampered = payload.replace("250", "9999")

    with pytest.raises(SignatureVerificationFailed):
        processor.process(tampered, header)


def test_stale_timestamp_is_rejected(processor):
    payload = checkout_event({"userId": "alice", "tokenAmount": "5"})
    with pytest.raises(SignatureVerificationFailed):
        processor.process(payload, sign(payload, timestamp=int(time.time()) - 3600))


def test_missing_header_or_secret():
    with pytest.raises(SignatureVerificationFailed):
        verify_event("{}", None, SECRET)
    with pytest.raises(SignatureVerificationFailed):
        verify_event("{}", "t=1,v1=abc", "")


def test_missing_metadata(processor):
    payload = checkout_event({"userId": "alice"})
    with pytest.raises(MissingParameter):
        processor.process(payload, sign(payload))


def test_unparseable_token_amount_counts_as_missing(processor):
    payload = checkout_event({"userId": "alice", "tokenAmount": "lots"})
    with pytest.raises(MissingParameter):
        processor.process(payload, sign(payload))


def test_leading_integer_token_amount(processor, ledger):
    payload = checkout_event({"userId": "alice", "tokenAmount": "50 tokens"})
    processor.process(payload, sign(payload))
    assert ledger.balance("alice") == 150


def test_negative_token_amount_is_invalid(processor):
    payload = checkout_event({"userId": "alice", "tokenAmount": "-20"})
    with pytest.raises(InvalidAmount):
        processor.process(payload, sign(payload))


def test_unknown_event_types_are_acknowledged(processor, ledger):
    payload = json.dumps({"type": "invoice.created", "data": {"object": {"id": "in_1"}}})
    assert processor.process(payload, sign(payload)) == {"received": True}
    assert len(ledger.store) == 0


def test_payment_intent_events_do_not_touch_ledger(processor, ledger):
    payload = json.dumps({"type": "payment_intent.succeeded", "data": {"object": {"id": "pi_1"}}})
    assert processor.process(payload, sign(payload)) == {"received": True}
    assert len(ledger.store) == 0
