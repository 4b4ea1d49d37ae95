"""
Twilio WhatsApp webhook.

Twilio posts form-encoded fields (From, Body, MessageSid) and delivers
whatever TwiML we answer with, so the reply goes back in the HTTP response
rather than through the provider's send API.
"""
import logging

from fastapi import APIRouter, Depends, Form
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool
from twilio.twiml.messaging_response import MessagingResponse

from whatsapp_accounting.agent.conversation import ConversationHandler, InboundMessage
from whatsapp_accounting.api.deps import get_conversation_handler
from whatsapp_accounting.whatsapp.phone import normalize_phone

logger = logging.getLogger(__name__)

router = APIRouter()


def twiml_response(message: str) -> Response:
    resp = MessagingResponse()
    resp.message(message)
    return Response(content=str(resp), media_type="text/xml")


@router.post("")
async def twilio_webhook(
    From: str = Form(""),
    Body: str = Form(""),
    MessageSid: str = Form(""),
    handler: ConversationHandler = Depends(get_conversation_handler),
):
    sender = normalize_phone(From)
    if not sender:
        logger.error("[Twilio] No sender phone number found in request")
        return twiml_response("Error: No sender phone number")

    logger.info(f"[Twilio] Received WhatsApp message from {sender} (sid={MessageSid or '-'})")
    inbound = InboundMessage(sender=sender, text=Body, message_id=MessageSid or None, provider="twilio")
    result = await run_in_threadpool(handler.handle, inbound)
    return twiml_response(result.message)
