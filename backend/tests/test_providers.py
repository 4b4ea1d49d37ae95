"""Outbound providers with requests patched out."""
import pytest
import requests

from whatsapp_accounting.core.config import Settings
from whatsapp_accounting.whatsapp import providers
from whatsapp_accounting.whatsapp.providers import (
    BotBizProvider,
    ConsoleProvider,
    Dialog360Provider,
    MetaProvider,
    TwilioProvider,
    build_provider,
)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self.ok = 200 <= status_code < 300
        self._payload = payload if payload is not None else {}
        self.text = text

    def json(self):
        return self._payload


class _Calls(list):
    pass


@pytest.fixture
def post(monkeypatch):
    recorded = _Calls()
    recorded.response = FakeResponse()

    def fake_post(url, **kwargs):
        recorded.append((url, kwargs))
        return recorded.response

    monkeypatch.setattr(providers.requests, "post", fake_post)
    return recorded


def test_botbiz_send(post):
    post.response = FakeResponse(payload={"success": True, "data": {"messageId": "bb-1"}})
    provider = BotBizProvider(api_key="key-123", base_url="https://api.botbiz.io/")

    result = provider.send_message("+919876543210", "hello")

    url, kwargs = post[0]
    assert result.success is True
    assert result.message_id == "bb-1"
    assert url == "https://api.botbiz.io/api/v1/messages/send"
    assert kwargs["json"] == {"phone": "919876543210", "message": "hello", "type": "text"}
    assert kwargs["headers"]["Authorization"] == "Bearer key-123"


def test_twilio_send(post):
    post.response = FakeResponse(status_code=201, payload={"sid": "SM123"})
    provider = TwilioProvider(account_sid="AC1", auth_token="secret", phone_number="+14155238886")

    result = provider.send_message("919876543210", "hello")

    url, kwargs = post[0]
    assert result.message_id == "SM123"
    assert url == "https://api.twilio.com/2010-04-01/Accounts/AC1/Messages.json"
    assert kwargs["data"] == {"From": "whatsapp:+14155238886", "To": "whatsapp:+919876543210", "Body": "hello"}
    assert kwargs["auth"] == ("AC1", "secret")


def test_dialog360_send(post):
    post.response = FakeResponse(payload={"messages": [{"id": "d-1"}]})
    provider = Dialog360Provider(api_key="d360")

    result = provider.send_message("+919876543210", "hello")

    url, kwargs = post[0]
    assert result.message_id == "d-1"
    assert url == "https://waba.360dialog.io/v1/messages"
    assert kwargs["headers"]["D360-API-KEY"] == "d360"
    assert kwargs["json"]["to"] == "919876543210"
    assert kwargs["json"]["text"] == {"body": "hello"}


def test_meta_send(post):
    post.response = FakeResponse(payload={"messages": [{"id": "wamid.abc"}]})
    provider = MetaProvider(access_token="tok", phone_number_id="PNID")

    result = provider.send_message("+919876543210", "hello")

    url, kwargs = post[0]
    assert result.message_id == "wamid.abc"
    assert url == "https://graph.facebook.com/v17.0/PNID/messages"
    assert kwargs["headers"]["Authorization"] == "Bearer tok"
    assert kwargs["json"]["messaging_product"] == "whatsapp"


def test_http_error_becomes_failed_result(post):
    post.response = FakeResponse(status_code=401, text="unauthorized")
    provider = MetaProvider(access_token="bad", phone_number_id="PNID")

    result = provider.send_message("+919876543210", "hello")

    assert result.success is False
    assert "HTTP 401" in result.error


def test_network_error_becomes_failed_result(monkeypatch):
    def unreachable(url, **kwargs):
        raise requests.ConnectionError("no route")

    monkeypatch.setattr(providers.requests, "post", unreachable)

    result = BotBizProvider(api_key="k").send_message("+919876543210", "hello")

    assert result.success is False
    assert result.error == "Network error: ConnectionError"


@pytest.mark.parametrize("provider", [
    BotBizProvider(api_key="k"),
    Dialog360Provider(api_key="k"),
    MetaProvider(access_token="t", phone_number_id="PNID"),
])
def test_non_object_body_is_sent_without_id(post, provider):
    post.response = FakeResponse(payload=[])

    result = provider.send_message("+919876543210", "hello")

    assert result.success is True
    assert result.message_id is None


def test_unexpected_error_becomes_failed_result(post):
    post.response = FakeResponse(payload={"data": ["not", "an", "object"]})

    result = BotBizProvider(api_key="k").send_message("+919876543210", "hello")

    assert result.success is False
    assert result.error == "Unexpected error: AttributeError"


def test_empty_text_is_not_sent(post):
    result = BotBizProvider(api_key="k").send_message("+919876543210", "")

    assert result.success is False
    assert post == []


def test_console_provider_only_logs():
    result = ConsoleProvider().send_message("+919876543210", "hello")

    assert result.success is True
    assert result.to_dict() == {"success": True, "provider": "console"}


def test_botbiz_fetch_messages(monkeypatch):
    seen = {}

    def fake_get(url, **kwargs):
        seen.update(url=url, **kwargs)
        return FakeResponse(payload={"messages": [{"from": "91", "text": "hi"}]})

    monkeypatch.setattr(providers.requests, "get", fake_get)

    messages = BotBizProvider(api_key="k").fetch_messages(after="2024-01-01T00:00:00Z")

    assert messages == [{"from": "91", "text": "hi"}]
    assert seen["url"] == "https://api.botbiz.io/api/v1/messages/list"
    assert seen["params"] == {"after": "2024-01-01T00:00:00Z", "limit": 50}


# ==============================================================================
# SELECTION
# ==============================================================================

@pytest.fixture
def config(monkeypatch):
    for flag in ("BOTBIZ_ENABLED", "META_ENABLED", "TWILIO_ENABLED", "DIALOG360_ENABLED"):
        monkeypatch.delenv(flag, raising=False)
    config = Settings()
    config.WHATSAPP_PROVIDER = ""
    return config


def test_explicit_provider_wins(config, monkeypatch):
    monkeypatch.setenv("BOTBIZ_ENABLED", "true")
    config.WHATSAPP_PROVIDER = "twilio"
    config.TWILIO_ACCOUNT_SID = "AC1"
    config.TWILIO_AUTH_TOKEN = "secret"
    config.TWILIO_PHONE_NUMBER = "+14155238886"

    provider = build_provider(config)

    assert isinstance(provider, TwilioProvider)
    assert provider.is_configured()


def test_legacy_flags_follow_fixed_order(config, monkeypatch):
    monkeypatch.setenv("TWILIO_ENABLED", "true")
    monkeypatch.setenv("META_ENABLED", "true")

    assert config.active_provider_name() == "meta"


def test_nothing_configured_falls_back_to_console(config):
    assert isinstance(build_provider(config), ConsoleProvider)


def test_unknown_provider_is_rejected(config):
    config.WHATSAPP_PROVIDER = "pigeon"

    with pytest.raises(ValueError):
        config.active_provider_name()
