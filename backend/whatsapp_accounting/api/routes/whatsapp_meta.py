"""
Meta WhatsApp Business (Cloud API) webhook.

GET answers the hub.* subscription challenge. POST acknowledges with
EVENT_RECEIVED straight away and handles the text messages in a background
task; Meta retries anything that is not acknowledged quickly.
"""
import logging
import secrets
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import PlainTextResponse, Response

from whatsapp_accounting.agent.conversation import ConversationHandler, InboundMessage
from whatsapp_accounting.api.deps import get_conversation_handler
from whatsapp_accounting.core.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


def _dicts(items) -> List[dict]:
    """Dict items of a payload list; anything malformed is dropped."""
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)]


def extract_meta_messages(payload: dict) -> List[InboundMessage]:
    """Text messages from a whatsapp_business_account webhook body."""
    if not isinstance(payload, dict) or payload.get("object") != "whatsapp_business_account":
        logger.info(f"[Meta] Not a WhatsApp Business webhook (object={payload.get('object') if isinstance(payload, dict) else None})")
        return []

    inbound = []
    for entry in _dicts(payload.get("entry")):
        for change in _dicts(entry.get("changes")):
            if change.get("field") != "messages":
                continue
            value = change.get("value")
            for message in _dicts(value.get("messages") if isinstance(value, dict) else None):
                body = message.get("text")
                text = body.get("body") if isinstance(body, dict) else None
                if message.get("type") != "text" or not text:
                    logger.debug(f"[Meta] Skipping non-text message of type: {message.get('type')}")
                    continue
                inbound.append(
                    InboundMessage(
                        sender=message.get("from", ""),
                        text=text,
                        message_id=message.get("id"),
                        provider="meta",
                    )
                )
    return inbound


@router.get("")
def verify_meta_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
):
    if not (mode and token):
        return Response(status_code=200)

    expected = settings.META_WEBHOOK_VERIFY_TOKEN
    if mode == "subscribe" and expected and secrets.compare_digest(token, expected):
        logger.info("[Meta] Webhook verified")
        return PlainTextResponse(challenge or "")

    logger.warning("[Meta] Webhook verification failed")
    return Response(status_code=403)


@router.post("")
async def meta_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    handler: ConversationHandler = Depends(get_conversation_handler),
):
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("[Meta] Webhook body is not JSON")
        payload = {}

    messages = extract_meta_messages(payload)
    if messages:
        background_tasks.add_task(handler.handle_and_send_all, messages)
    return PlainTextResponse("EVENT_RECEIVED")
