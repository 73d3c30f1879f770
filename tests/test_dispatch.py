from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from koloni.dispatch import GenerationDispatcher, format_cost
from koloni.errors import GenerationBackendError, InsufficientBalance, MissingParameter, UnknownFormat
from koloni.ledger import TokenLedger
from koloni.models import ContentFormat, GenerationRequest
from koloni.providers import TextProvider
from koloni.store import InMemoryLedgerStore


class FakeProvider(TextProvider):
    provider_name = "fake"

    def __init__(self, reply="Generated text", error=None, on_call=None):
        self.reply = reply
        self.error = error
        self.on_call = on_call
        self.calls = []

    def generate(self, system_prompt, user_prompt, temperature=0.7, max_tokens=500):
        self.calls.append({
            "system": system_prompt,
            "user": user_prompt,
            "temperature": temperature,
            "max_tokens": max_tokens,
        })
        if self.on_call:
            self.on_call()
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def ledger():
    return TokenLedger(InMemoryLedgerStore(), default_tokens=100)


def _request(fmt="emu", **options):
    return GenerationRequest(format=fmt, prompt="a cat in space", user_id="alice", options=options)


def test_costs():
    assert format_cost(ContentFormat.EMU) == 15
    assert format_cost(ContentFormat.LONGCAT) == 10


def test_emu_generation_deducts_after_success(ledger):
    provider = FakeProvider()
    result = GenerationDispatcher(ledger, provider).generate(_request("emu", tone="witty"))

    assert result.content == "Generated text"
    assert result.charged is True
    assert result.tokens_used == 15
    assert result.balance == 85
    assert ledger.balance("alice") == 85

    call = provider.calls[0]
    assert "Emu format" in call["system"]
    assert "Prompt: a cat in space" in call["user"]
    assert "Tone: witty" in call["user"]
    assert "Length: short" in call["user"]
    assert call["temperature"] == 0.7
    assert call["max_tokens"] == 500


def test_longcat_defaults_and_metadata(ledger):
    provider = FakeProvider(reply="scroll scroll")
    result = GenerationDispatcher(ledger, provider).generate(_request("longcat"))

    body = result.to_dict()
    assert body["success"] is True
    assert body["content"] == "scroll scroll"
    assert body["metadata"]["format"] == "longcat"
    assert body["metadata"]["style"] == "creative"
    assert body["metadata"]["duration"] == "medium"
    assert body["metadata"]["timestamp"]
    assert provider.calls[0]["max_tokens"] == 1000
    assert ledger.balance("alice") == 90


def test_content_is_returned_verbatim(ledger):
    raw = "  Line one\n\n#tag  "
    result = GenerationDispatcher(ledger, FakeProvider(reply=raw)).generate(_request())
    assert result.content == raw


def test_unknown_format_touches_nothing(ledger):
    provider = FakeProvider()
    with pytest.raises(UnknownFormat):
        GenerationDispatcher(ledger, provider).generate(_request("haiku"))

    assert provider.calls == []
    assert ledger.store.get("alice") is None


def test_missing_prompt(ledger):
    provider = FakeProvider()
    request = GenerationRequest(format="emu", prompt="", user_id="alice")
    with pytest.raises(MissingParameter):
        GenerationDispatcher(ledger, provider).generate(request)
    assert provider.calls == []


def test_insufficient_balance_skips_backend(ledger):
    ledger.deduct("alice", 90)
    provider = FakeProvider()

    with pytest.raises(InsufficientBalance) as exc_info:
        GenerationDispatcher(ledger, provider).generate(_request("emu"))

    assert exc_info.value.balance == 10
    assert exc_info.value.status_code == 402
    assert len(provider.calls) == 0
    assert ledger.balance("alice") == 10


def test_backend_failure_does_not_deduct(ledger):
    provider = FakeProvider(error=TimeoutError("request timed out"))

    with pytest.raises(GenerationBackendError) as exc_info:
        GenerationDispatcher(ledger, provider).generate(_request())

    assert "timed out" in exc_info.value.details
    assert exc_info.value.status_code == 502
    assert ledger.balance("alice") == 100
    assert ledger.report("alice")["transactions"] == []


def test_empty_backend_reply_is_an_error(ledger):
    with pytest.raises(GenerationBackendError):
        GenerationDispatcher(ledger, FakeProvider(reply="   ")).generate(_request())
    assert ledger.balance("alice") == 100


def test_lost_race_returns_content_uncharged(ledger, caplog):
    # Another request spends the balance while this one is generating.
    provider = FakeProvider(on_call=lambda: ledger.deduct("alice", 95))

    with caplog.at_level("ERROR", logger="koloni.dispatch"):
        result = GenerationDispatcher(ledger, provider).generate(_request("emu"))

    assert result.content == "Generated text"
    assert result.charged is False
    assert result.tokens_used == 0
    assert ledger.balance("alice") == 5
    assert "deduction of 15 failed" in caplog.text


def test_provider_factory_not_built_when_balance_is_short(ledger):
    ledger.deduct("alice", 90)
    built = []

    def factory():
        built.append(True)
        return FakeProvider()

    with pytest.raises(InsufficientBalance):
        GenerationDispatcher(ledger, factory).generate(_request("emu"))
    with pytest.raises(MissingParameter):
        GenerationDispatcher(ledger, factory).generate(
            GenerationRequest(format="emu", prompt="", user_id="alice"))

    assert built == []


def test_provider_factory_built_once_for_a_valid_request(ledger):
    provider = FakeProvider()
    built = []

    def factory():
        built.append(True)
        return provider

    result = GenerationDispatcher(ledger, factory).generate(_request("emu"))

    assert result.charged is True
    assert len(built) == 1
    assert len(provider.calls) == 1


class BrokenStoreLedger(TokenLedger):
    def deduct(self, user_id, cost):
        raise RuntimeError("ledger storage unavailable")


def test_ledger_write_failure_returns_content_uncharged(caplog):
    ledger = BrokenStoreLedger(InMemoryLedgerStore(), default_tokens=100)

    with caplog.at_level("ERROR", logger="koloni.dispatch"):
        result = GenerationDispatcher(ledger, FakeProvider()).generate(_request("emu"))

    assert result.content == "Generated text"
    assert result.charged is False
    assert result.tokens_used == 0
    assert result.balance is None
    assert "deduction of 15 failed" in caplog.text
    assert "ledger storage unavailable" in caplog.text
    assert ledger.balance("alice") == 100
