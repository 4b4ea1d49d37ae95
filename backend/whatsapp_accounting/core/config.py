"""Application configuration.

Environment variables override all defaults. This is the only module that
reads the environment; everything else imports ``settings``.
"""

import os
from pathlib import Path
from typing import List


from dotenv import load_dotenv

# Load .env for local development; real environment variables win
_BACKEND_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)


def _flag(name: str) -> bool:
    return os.getenv(name, "false").strip().lower() == "true"


# Legacy selection order when WHATSAPP_PROVIDER is not set explicitly
_LEGACY_PROVIDER_FLAGS = [
    ("botbiz", "BOTBIZ_ENABLED"),
    ("meta", "META_ENABLED"),
    ("twilio", "TWILIO_ENABLED"),
    ("dialog360", "DIALOG360_ENABLED"),
]

SUPPORTED_PROVIDERS = ("botbiz", "twilio", "dialog360", "meta", "console")


class Settings:
    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./whatsapp_accounting.db")

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "DEBUG" if DEBUG else "INFO")

    # CORS (dashboard origins only, no wildcards)
    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]

    # Rate limiting (dashboard API only; webhooks are exempt)
    RATE_LIMIT_REQUESTS: int = int(os.getenv("RATE_LIMIT_REQUESTS", "100"))
    RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))

    # Reply formatting
    CURRENCY_SYMBOL: str = os.getenv("CURRENCY_SYMBOL", "₹")
    CURRENCY_GROUPING: str = os.getenv("CURRENCY_GROUPING", "indian")
    DEFAULT_PAYMENT_METHOD: str = "Cash"

    # Duplicate webhook deliveries are ignored for this long
    IDEMPOTENCY_TTL_SECONDS: int = int(os.getenv("IDEMPOTENCY_TTL_SECONDS", "86400"))

    # Messaging provider selection (explicit name wins over legacy *_ENABLED flags)
    WHATSAPP_PROVIDER: str = os.getenv("WHATSAPP_PROVIDER", "").strip().lower()
    PROVIDER_TIMEOUT_SECONDS: int = int(os.getenv("PROVIDER_TIMEOUT_SECONDS", "10"))

    # BotBiz
    BOTBIZ_API_KEY: str = os.getenv("BOTBIZ_API_KEY", "")
    BOTBIZ_PHONE_NUMBER: str = os.getenv("BOTBIZ_PHONE_NUMBER", "")
    BOTBIZ_VERIFY_TOKEN: str = os.getenv("BOTBIZ_VERIFY_TOKEN", "")
    BOTBIZ_BASE_URL: str = os.getenv("BOTBIZ_BASE_URL", "https://api.botbiz.io")
    BOTBIZ_POLLING_INTERVAL: int = int(os.getenv("BOTBIZ_POLLING_INTERVAL", "10000"))  # ms
    BOTBIZ_POLLING_ENABLED: bool = os.getenv("BOTBIZ_POLLING_ENABLED", "true").lower() == "true"

    # Twilio
    TWILIO_ACCOUNT_SID: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    TWILIO_AUTH_TOKEN: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    TWILIO_PHONE_NUMBER: str = os.getenv("TWILIO_PHONE_NUMBER", "")

    # 360dialog
    DIALOG360_API_KEY: str = os.getenv("DIALOG360_API_KEY", "")
    DIALOG360_PHONE_NUMBER_ID: str = os.getenv("DIALOG360_PHONE_NUMBER_ID", "")

    # Meta WhatsApp Business (Graph API)
    META_APP_ID: str = os.getenv("META_APP_ID", "")
    META_APP_SECRET: str = os.getenv("META_APP_SECRET", "")
    META_PHONE_NUMBER_ID: str = os.getenv("META_PHONE_NUMBER_ID", "")
    META_ACCESS_TOKEN: str = os.getenv("META_ACCESS_TOKEN", "")
    META_WEBHOOK_VERIFY_TOKEN: str = os.getenv("META_WEBHOOK_VERIFY_TOKEN", "")
    META_GRAPH_VERSION: str = os.getenv("META_GRAPH_VERSION", "v17.0")

    def active_provider_name(self) -> str:
        """Resolve which messaging backend to use. Evaluated once at startup."""
        if self.WHATSAPP_PROVIDER:
            if self.WHATSAPP_PROVIDER not in SUPPORTED_PROVIDERS:
                raise ValueError(
                    f"Unknown WHATSAPP_PROVIDER '{self.WHATSAPP_PROVIDER}'. "
                    f"Expected one of: {', '.join(SUPPORTED_PROVIDERS)}"
                )
            return self.WHATSAPP_PROVIDER

        for name, flag in _LEGACY_PROVIDER_FLAGS:
            if _flag(flag):
                return name
        return "console"

    def provider_credentials(self) -> dict:
        """Raw credentials per provider. Callers mask before exposing them."""
        return {
            "botbiz": {
                "apiKey": self.BOTBIZ_API_KEY,
                "phoneNumber": self.BOTBIZ_PHONE_NUMBER,
                "verifyToken": self.BOTBIZ_VERIFY_TOKEN,
            },
            "twilio": {
                "accountSid": self.TWILIO_ACCOUNT_SID,
                "authToken": self.TWILIO_AUTH_TOKEN,
                "phoneNumber": self.TWILIO_PHONE_NUMBER,
            },
            "dialog360": {
                "apiKey": self.DIALOG360_API_KEY,
                "phoneNumberId": self.DIALOG360_PHONE_NUMBER_ID,
            },
            "meta": {
                "appId": self.META_APP_ID,
                "appSecret": self.META_APP_SECRET,
                "phoneNumberId": self.META_PHONE_NUMBER_ID,
                "accessToken": self.META_ACCESS_TOKEN,
                "webhookVerifyToken": self.META_WEBHOOK_VERIFY_TOKEN,
            },
        }


settings = Settings()
