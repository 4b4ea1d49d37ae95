"""360dialog WhatsApp webhook. Acknowledged immediately, processed in the background."""
import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from fastapi.responses import Response

from whatsapp_accounting.agent.conversation import ConversationHandler, InboundMessage
from whatsapp_accounting.api.deps import get_conversation_handler

logger = logging.getLogger(__name__)

router = APIRouter()


def extract_360dialog_messages(payload: dict) -> List[InboundMessage]:
    if not isinstance(payload, dict) or not isinstance(payload.get("messages"), list):
        logger.info("[360dialog] No messages in webhook payload")
        return []

    inbound = []
    for message in payload["messages"]:
        if not isinstance(message, dict):
            logger.warning(f"[360dialog] Skipping malformed message item: {message!r}")
            continue
        body = message.get("text")
        text = body.get("body") if isinstance(body, dict) else None
        if message.get("type") != "text" or not text:
            logger.debug(f"[360dialog] Skipping non-text message of type: {message.get('type')}")
            continue
        # "919876543210@c.us" -> sender id without the suffix
        sender = str(message.get("from") or "").split("@")[0]
        inbound.append(
            InboundMessage(sender=sender, text=text, message_id=message.get("id"), provider="dialog360")
        )
    return inbound


@router.post("")
async def dialog360_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    handler: ConversationHandler = Depends(get_conversation_handler),
):
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("[360dialog] Webhook body is not JSON")
        payload = {}

    messages = extract_360dialog_messages(payload)
    if messages:
        background_tasks.add_task(handler.handle_and_send_all, messages)
    return Response(status_code=200)
