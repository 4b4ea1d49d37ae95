"""
BotBiz WhatsApp webhook.

Both verbs check ?token= against BOTBIZ_VERIFY_TOKEN. POST handles the
batch synchronously and reports per-message outcomes in the format BotBiz
expects: {success, message, data: {processed, messages}}.
"""
import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from whatsapp_accounting.agent.conversation import ConversationHandler, InboundMessage
from whatsapp_accounting.api.deps import get_conversation_handler
from whatsapp_accounting.core.config import settings
from whatsapp_accounting.schemas.webhook import BotBizBatch, BotBizMessageStatus, BotBizWebhookReply

logger = logging.getLogger(__name__)

router = APIRouter()


def verify_token(token: Optional[str]) -> bool:
    expected = settings.BOTBIZ_VERIFY_TOKEN
    if not expected:
        logger.warning("[BotBiz] BOTBIZ_VERIFY_TOKEN is not set; rejecting webhook calls")
        return False
    return bool(token) and secrets.compare_digest(token, expected)


@router.get("")
def verify_botbiz_webhook(token: Optional[str] = Query(None)):
    if verify_token(token):
        logger.info("[BotBiz] Webhook verification successful")
        return PlainTextResponse("Webhook verified")
    logger.error("[BotBiz] Webhook verification failed - invalid token")
    return PlainTextResponse("Invalid verification token", status_code=403)


def process_batch(handler: ConversationHandler, messages: list) -> BotBizBatch:
    processed = 0
    statuses = []

    for message in messages:
        if not isinstance(message, dict):
            continue
        sender = message.get("from")
        text = (message.get("text") or {}).get("body") if isinstance(message.get("text"), dict) else None
        if not sender or not text:
            logger.info(f"[BotBiz] Skipping message {message.get('id')} - missing sender or text")
            continue

        message_id = str(message["id"]) if message.get("id") else None
        inbound = InboundMessage(sender=str(sender), text=text, message_id=message_id, provider="botbiz")
        try:
            result = handler.handle_and_send(inbound)
        except Exception as e:
            logger.error(f"[BotBiz] Error processing message {message_id} from {sender}: {e}", exc_info=True)
            statuses.append(BotBizMessageStatus(id=message_id, status="error", error="Failed to process message"))
            continue

        if result.duplicate:
            statuses.append(BotBizMessageStatus(id=message_id, status="duplicate", response=result.message))
        elif result.send_result is not None and result.send_result.success:
            processed += 1
            statuses.append(
                BotBizMessageStatus(
                    id=message_id,
                    status="success",
                    response=result.message,
                    messageId=result.send_result.message_id,
                )
            )
        else:
            error = result.send_result.error if result.send_result is not None else "Failed to send response"
            statuses.append(BotBizMessageStatus(id=message_id, status="error", error=error))

    return BotBizBatch(processed=processed, messages=statuses)


@router.post("", response_model=BotBizWebhookReply)
async def botbiz_webhook(
    request: Request,
    token: Optional[str] = Query(None),
    handler: ConversationHandler = Depends(get_conversation_handler),
):
    if not verify_token(token):
        logger.error("[BotBiz] Webhook call with invalid verification token")
        return JSONResponse(status_code=401, content={"error": "Invalid verification token"})

    try:
        payload = await request.json()
    except ValueError:
        payload = {}

    messages = payload.get("messages") if isinstance(payload, dict) else None
    if not isinstance(messages, list):
        return BotBizWebhookReply(
            success=True,
            message="No messages to process",
            data=BotBizBatch(processed=0, messages=[]),
        )

    batch = await run_in_threadpool(process_batch, handler, messages)
    logger.info(f"[BotBiz] Processed {batch.processed} of {len(messages)} messages")
    return BotBizWebhookReply(success=True, message=f"Processed {batch.processed} messages", data=batch)
