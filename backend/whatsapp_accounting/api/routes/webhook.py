"""
Generic inbound webhook.

Accepts an already-normalized message {from, text, messageId?}, runs it
through the conversation handler, sends the reply via the active provider
and echoes it in the response body.
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from whatsapp_accounting.agent.conversation import ConversationHandler, InboundMessage
from whatsapp_accounting.api.deps import get_conversation_handler
from whatsapp_accounting.schemas.webhook import WebhookReply

logger = logging.getLogger(__name__)

router = APIRouter()


def _missing_fields() -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": "Missing required fields",
            "message": 'Both "from" and "text" fields are required',
        },
    )


@router.post("/webhook", response_model=WebhookReply)
@router.post("/api/webhook", response_model=WebhookReply, include_in_schema=False)
async def receive_message(request: Request, handler: ConversationHandler = Depends(get_conversation_handler)):
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    if not isinstance(payload, dict):
        return _missing_fields()

    sender = payload.get("from")
    text = payload.get("text")
    if not isinstance(sender, str) or not sender.strip() or not isinstance(text, str) or not text.strip():
        logger.info(f"[Webhook] Rejected payload without from/text: keys={sorted(payload)}")
        return _missing_fields()

    message_id = payload.get("messageId")
    inbound = InboundMessage(
        sender=sender,
        text=text,
        message_id=str(message_id) if message_id else None,
        provider="webhook",
    )
    result = await run_in_threadpool(handler.handle_and_send, inbound)
    return WebhookReply(**result.to_dict())
