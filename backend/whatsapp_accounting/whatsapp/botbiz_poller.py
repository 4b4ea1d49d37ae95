"""
BotBiz Poller - pulls inbound messages when BotBiz cannot push webhooks.

Every BOTBIZ_POLLING_INTERVAL ms:
    1. GET messages newer than the watermark (limit 50)
    2. Advance the watermark to the newest message's timestamp
    3. Feed each message through the conversation handler and send the reply

Messages that share a watermark window can come back twice; the message id
(or sender+timestamp when BotBiz omits it) goes through the handler's
duplicate-delivery guard, so a repeat is answered from the stored reply and
not sent again.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from whatsapp_accounting.agent.conversation import ConversationHandler, InboundMessage
from whatsapp_accounting.whatsapp.providers import BotBizProvider

logger = logging.getLogger(__name__)

POLL_LIMIT = 50


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def to_inbound(message: dict) -> Optional[InboundMessage]:
    """BotBiz list item -> InboundMessage. None when sender or text is missing."""
    sender = message.get("from")
    text = message.get("text")
    if isinstance(text, dict):
        text = text.get("body")
    if not sender or not text:
        return None

    message_id = message.get("id")
    if not message_id and message.get("timestamp"):
        message_id = f"botbiz:{sender}:{message['timestamp']}"
    return InboundMessage(sender=sender, text=text, message_id=message_id, provider="botbiz")


class BotBizPoller:
    def __init__(
        self,
        provider: BotBizProvider,
        handler: ConversationHandler,
        interval_ms: int = 10000,
        watermark: Optional[str] = None,
    ):
        self.provider = provider
        self.handler = handler
        self.interval_seconds = max(interval_ms, 1000) / 1000
        self.watermark = watermark or _now_iso()
        self.running = False
        self._task: Optional[asyncio.Task] = None

    def poll_once(self) -> int:
        """One fetch-and-process cycle. Returns how many messages were handled."""
        try:
            messages: List[dict] = self.provider.fetch_messages(after=self.watermark, limit=POLL_LIMIT)
        except Exception as e:
            logger.error(f"[BotBizPoller] Error polling BotBiz API: {e}")
            return 0

        if not isinstance(messages, list) or not messages:
            logger.debug("[BotBizPoller] No new messages")
            return 0

        logger.info(f"[BotBizPoller] Received {len(messages)} new messages from BotBiz API")
        newest = messages[0]
        if isinstance(newest, dict) and newest.get("timestamp"):
            self.watermark = newest["timestamp"]

        handled = 0
        for message in messages:
            inbound = to_inbound(message) if isinstance(message, dict) else None
            if inbound is None:
                logger.warning(f"[BotBizPoller] Skipping message without sender or text: {message}")
                continue
            try:
                self.handler.handle_and_send(inbound)
            except Exception as e:
                # The watermark already moved past this page; keep going with the rest
                logger.error(f"[BotBizPoller] Error processing message from {inbound.sender}: {e}", exc_info=True)
                continue
            handled += 1
        return handled

    async def _loop(self):
        self.running = True
        logger.info(f"[BotBizPoller] Polling started. Interval: {self.interval_seconds}s")

        while self.running:
            try:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, self.poll_once)
            except Exception as e:
                logger.error(f"[BotBizPoller] Poll cycle error: {e}")

            await asyncio.sleep(self.interval_seconds)

    def start(self):
        """Schedule the loop on the running event loop. Called from the app lifespan."""
        self._task = asyncio.create_task(self._loop())
        logger.info("[BotBizPoller] BotBiz polling service initialized")

    async def stop(self):
        self.running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("[BotBizPoller] Polling stopped")
