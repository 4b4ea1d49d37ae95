"""Phone number helpers shared by the provider adapters."""
import re

_NON_DIGITS = re.compile(r"\D")


def digits_only(phone: str) -> str:
    return _NON_DIGITS.sub("", phone or "")


def normalize_phone(phone: str) -> str:
    """
    Provider-agnostic sender id: "+" followed by digits.

    Handles the shapes the providers send:
        "whatsapp:+919876543210" (Twilio)
        "919876543210@c.us"      (360dialog)
        "919876543210"           (Meta, BotBiz)
    """
    if not phone:
        return ""
    cleaned = phone.strip().replace("whatsapp:", "").split("@")[0]
    digits = digits_only(cleaned)
    return f"+{digits}" if digits else ""


def to_provider_number(phone: str) -> str:
    """Digits without "+", the recipient format the provider APIs expect."""
    return digits_only(phone)


def is_valid_whatsapp_number(phone: str) -> bool:
    """Basic shape check: 10-15 digits once formatting is stripped."""
    return 10 <= len(digits_only(phone)) <= 15


def mask_secret(value: str) -> str:
    """Show only the first and last four characters of a credential."""
    if not value:
        return ""
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}{'*' * (len(value) - 8)}{value[-4:]}"
