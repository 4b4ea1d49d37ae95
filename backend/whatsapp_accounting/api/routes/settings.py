"""WhatsApp provider settings: masked credentials and a test send."""
import logging

from fastapi import APIRouter, Depends

from whatsapp_accounting.api.deps import get_provider
from whatsapp_accounting.core.config import settings
from whatsapp_accounting.core.exceptions import BusinessError
from whatsapp_accounting.schemas.settings import ProviderTestRequest
from whatsapp_accounting.services import reply_renderer as replies
from whatsapp_accounting.whatsapp.phone import is_valid_whatsapp_number, mask_secret
from whatsapp_accounting.whatsapp.providers import MessagingProvider

logger = logging.getLogger(__name__)

router = APIRouter()

# Identifiers shown in full; everything else is masked
UNMASKED_FIELDS = {"phoneNumber", "phoneNumberId"}


@router.get("/whatsapp")
def get_whatsapp_settings(provider: MessagingProvider = Depends(get_provider)):
    """Configured credentials per provider, masked, plus which one is active."""
    result = {}
    for name, credentials in settings.provider_credentials().items():
        result[name] = {
            key: value if key in UNMASKED_FIELDS else mask_secret(value)
            for key, value in credentials.items()
        }
        result[name]["enabled"] = provider.name == name
    result["activeProvider"] = provider.name
    return result


@router.post("/whatsapp/test")
def test_whatsapp(data: ProviderTestRequest, provider: MessagingProvider = Depends(get_provider)):
    """Send a test message through the active provider."""
    if data.provider and data.provider != provider.name:
        raise BusinessError.bad_request(
            f"Provider '{data.provider}' is not active (active provider: {provider.name})"
        )
    if not data.phone_number:
        raise BusinessError.bad_request("Phone number is required")
    if not is_valid_whatsapp_number(data.phone_number):
        raise BusinessError.bad_request("Phone number must contain 10 to 15 digits")

    result = provider.send_message(data.phone_number, data.message or replies.TEST_MESSAGE)
    if not result.success:
        logger.error(f"[Settings] Test message via {provider.name} failed: {result.error}")
        raise BusinessError.server_error(detail="Failed to send test message")

    logger.info(f"[Settings] Test message sent via {provider.name}")
    return {
        "message": "Test message sent successfully",
        "provider": provider.name,
        "result": result.to_dict(),
    }
