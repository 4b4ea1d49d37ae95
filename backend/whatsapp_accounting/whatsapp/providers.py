"""
Messaging Providers - outbound WhatsApp sends behind one interface.

One provider is chosen at startup from configuration (build_provider) and
injected wherever replies are sent; nothing picks a backend per message.

USAGE:
    provider = build_provider(settings)
    result = provider.send_message("+919876543210", "Hello!")
    if not result.success:
        ...

Supported: BotBiz, Twilio, 360dialog, Meta (Graph API) and a console
provider that only logs (used when nothing is configured).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from whatsapp_accounting.core.exceptions import ProviderError
from whatsapp_accounting.whatsapp.phone import normalize_phone, to_provider_number

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    success: bool
    provider: str
    message_id: Optional[str] = None
    error: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        result = {"success": self.success, "provider": self.provider}
        if self.message_id:
            result["messageId"] = self.message_id
        if self.error:
            result["error"] = self.error
        return result


class MessagingProvider(ABC):
    """
    Abstract base class for WhatsApp messaging providers.
    Implement _send() to add a new backend; send_message() never raises.
    """

    name: str = "base"

    def __init__(self, timeout: int = 10):
        self.timeout = timeout

    def send_message(self, to: str, text: str) -> SendResult:
        """Send a text message to a phone number."""
        if not to or not text:
            return SendResult(success=False, provider=self.name, error="Recipient and text are required")
        try:
            result = self._send(to, text)
            logger.info(f"[{self.name}] Sent message to {to} (id={result.message_id})")
            return result
        except ProviderError as e:
            logger.error(f"[{self.name}] Provider rejected message to {to}: {e}")
            return SendResult(success=False, provider=self.name, error=str(e))
        except requests.RequestException as e:
            logger.error(f"[{self.name}] Could not reach provider sending to {to}: {e}")
            return SendResult(success=False, provider=self.name, error=f"Network error: {type(e).__name__}")
        except Exception as e:
            logger.error(f"[{self.name}] Unexpected error sending to {to}: {type(e).__name__}: {e}", exc_info=True)
            return SendResult(success=False, provider=self.name, error=f"Unexpected error: {type(e).__name__}")

    @abstractmethod
    def _send(self, to: str, text: str) -> SendResult:
        ...

    def is_configured(self) -> bool:
        return True

    def _check_response(self, response: requests.Response) -> dict:
        if not response.ok:
            raise ProviderError(
                self.name,
                f"HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}


class ConsoleProvider(MessagingProvider):
    """No provider configured: log the reply instead of sending it."""

    name = "console"

    def _send(self, to: str, text: str) -> SendResult:
        logger.info(f"[console] Message to {to}:\n{text}")
        return SendResult(success=True, provider=self.name, data={"message": "Message logged (no provider configured)"})


class BotBizProvider(MessagingProvider):
    """BotBiz REST API (bearer API key)."""

    name = "botbiz"
    SEND_PATH = "/api/v1/messages/send"
    LIST_PATH = "/api/v1/messages/list"

    def __init__(self, api_key: str, phone_number: str = "", base_url: str = "https://api.botbiz.io", timeout: int = 10):
        super().__init__(timeout=timeout)
        self.api_key = api_key
        self.phone_number = phone_number
        self.base_url = base_url.rstrip("/")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _send(self, to: str, text: str) -> SendResult:
        response = requests.post(
            f"{self.base_url}{self.SEND_PATH}",
            json={"phone": to_provider_number(to), "message": text, "type": "text"},
            headers=self.headers(),
            timeout=self.timeout,
        )
        data = self._check_response(response)
        return SendResult(
            success=True,
            provider=self.name,
            message_id=data.get("messageId") or (data.get("data") or {}).get("messageId"),
            data=data,
        )

    def fetch_messages(self, after: str, limit: int = 50) -> list:
        """Inbound messages newer than ``after``. Raises on failure (poller logs it)."""
        response = requests.get(
            f"{self.base_url}{self.LIST_PATH}",
            params={"after": after, "limit": limit},
            headers=self.headers(),
            timeout=self.timeout,
        )
        data = self._check_response(response)
        return data.get("messages") or []


class TwilioProvider(MessagingProvider):
    """Twilio Programmable Messaging, WhatsApp channel."""

    name = "twilio"
    API_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"

    def __init__(self, account_sid: str, auth_token: str, phone_number: str, timeout: int = 10):
        super().__init__(timeout=timeout)
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.phone_number = phone_number

    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.phone_number)

    @staticmethod
    def whatsapp_address(phone: str) -> str:
        return f"whatsapp:{normalize_phone(phone)}"

    def _send(self, to: str, text: str) -> SendResult:
        response = requests.post(
            self.API_URL.format(sid=self.account_sid),
            data={
                "From": self.whatsapp_address(self.phone_number),
                "To": self.whatsapp_address(to),
                "Body": text,
            },
            auth=(self.account_sid, self.auth_token),
            timeout=self.timeout,
        )
        data = self._check_response(response)
        return SendResult(success=True, provider=self.name, message_id=data.get("sid"), data=data)


class Dialog360Provider(MessagingProvider):
    """360dialog WhatsApp Business API."""

    name = "dialog360"
    API_URL = "https://waba.360dialog.io/v1/messages"

    def __init__(self, api_key: str, phone_number_id: str = "", timeout: int = 10):
        super().__init__(timeout=timeout)
        self.api_key = api_key
        self.phone_number_id = phone_number_id

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _send(self, to: str, text: str) -> SendResult:
        response = requests.post(
            self.API_URL,
            json={
                "recipient_type": "individual",
                "to": to_provider_number(to),
                "type": "text",
                "text": {"body": text},
            },
            headers={"Content-Type": "application/json", "D360-API-KEY": self.api_key},
            timeout=self.timeout,
        )
        data = self._check_response(response)
        return SendResult(success=True, provider=self.name, message_id=_first_message_id(data), data=data)


class MetaProvider(MessagingProvider):
    """Meta WhatsApp Business Cloud API (Graph API)."""

    name = "meta"
    API_URL = "https://graph.facebook.com/{version}/{phone_number_id}/messages"

    def __init__(self, access_token: str, phone_number_id: str, graph_version: str = "v17.0", timeout: int = 10):
        super().__init__(timeout=timeout)
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.graph_version = graph_version

    def is_configured(self) -> bool:
        return bool(self.access_token and self.phone_number_id)

    def _send(self, to: str, text: str) -> SendResult:
        response = requests.post(
            self.API_URL.format(version=self.graph_version, phone_number_id=self.phone_number_id),
            json={
                "messaging_product": "whatsapp",
                "recipient_type": "individual",
                "to": to_provider_number(to),
                "type": "text",
                "text": {"body": text},
            },
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.access_token}",
            },
            timeout=self.timeout,
        )
        data = self._check_response(response)
        return SendResult(success=True, provider=self.name, message_id=_first_message_id(data), data=data)


def _first_message_id(data: dict) -> Optional[str]:
    messages = data.get("messages") or []
    if messages and isinstance(messages[0], dict):
        return messages[0].get("id")
    return None


def build_provider(config) -> MessagingProvider:
    """Instantiate the configured provider. Called once at startup."""
    name = config.active_provider_name()
    timeout = config.PROVIDER_TIMEOUT_SECONDS

    if name == "botbiz":
        provider = BotBizProvider(
            api_key=config.BOTBIZ_API_KEY,
            phone_number=config.BOTBIZ_PHONE_NUMBER,
            base_url=config.BOTBIZ_BASE_URL,
            timeout=timeout,
        )
    elif name == "twilio":
        provider = TwilioProvider(
            account_sid=config.TWILIO_ACCOUNT_SID,
            auth_token=config.TWILIO_AUTH_TOKEN,
            phone_number=config.TWILIO_PHONE_NUMBER,
            timeout=timeout,
        )
    elif name == "dialog360":
        provider = Dialog360Provider(
            api_key=config.DIALOG360_API_KEY,
            phone_number_id=config.DIALOG360_PHONE_NUMBER_ID,
            timeout=timeout,
        )
    elif name == "meta":
        provider = MetaProvider(
            access_token=config.META_ACCESS_TOKEN,
            phone_number_id=config.META_PHONE_NUMBER_ID,
            graph_version=config.META_GRAPH_VERSION,
            timeout=timeout,
        )
    else:
        provider = ConsoleProvider(timeout=timeout)

    if not provider.is_configured():
        logger.warning(f"[Providers] '{name}' selected but credentials are incomplete; sends will fail")
    logger.info(f"[Providers] Active WhatsApp provider: {provider.name}")
    return provider
