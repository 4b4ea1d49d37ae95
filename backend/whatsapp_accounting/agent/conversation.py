"""
Conversation Handler - the single entry point for inbound WhatsApp messages.

Every provider adapter (generic webhook, Twilio, 360dialog, Meta, BotBiz
webhook and poller) normalizes its payload to an InboundMessage and calls
handle() / handle_and_send().

States per message:
    RECEIVED -> CLASSIFIED -> RESOLVED -> REPLIED
                         \\-> FAILED (unexpected exception; apology reply)

Ledger problems the service already understands (bad input, unknown
customer, store down) come back as LedgerFailure and still end in REPLIED.
FAILED is only for exceptions nobody converted. Either way a reply is
returned, never an exception: providers need a fast 200 whatever happened.

Duplicate deliveries: when the provider gives a message id, the reply is
remembered in processed_messages and a redelivery inside the TTL gets the
same reply back without touching the ledger again.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from whatsapp_accounting.agent.intent_parser import classify
from whatsapp_accounting.agent.intent_schema import IntentType, ParsedIntent
from whatsapp_accounting.core.audit import AuditLog
from whatsapp_accounting.core.config import settings
from whatsapp_accounting.models.processed_message import ProcessedMessage
from whatsapp_accounting.services import ledger_service
from whatsapp_accounting.services import reply_renderer as replies
from whatsapp_accounting.whatsapp.phone import normalize_phone
from whatsapp_accounting.whatsapp.providers import MessagingProvider, SendResult

logger = logging.getLogger(__name__)


class ConversationState(str, Enum):
    RECEIVED = "RECEIVED"
    CLASSIFIED = "CLASSIFIED"
    RESOLVED = "RESOLVED"
    REPLIED = "REPLIED"
    FAILED = "FAILED"


@dataclass
class InboundMessage:
    """Provider-agnostic inbound message."""
    sender: str
    text: str
    message_id: Optional[str] = None
    provider: str = "webhook"


@dataclass
class ConversationResult:
    success: bool
    message: str
    intent: IntentType
    state: ConversationState
    duplicate: bool = False
    parsed: Optional[ParsedIntent] = None
    send_result: Optional[SendResult] = None
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"success": self.success, "message": self.message}


class ConversationHandler:
    """Classify, resolve against the ledger, render a reply."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        provider: Optional[MessagingProvider] = None,
        idempotency_ttl: int = settings.IDEMPOTENCY_TTL_SECONDS,
    ):
        self.session_factory = session_factory
        self.provider = provider
        self.idempotency_ttl = idempotency_ttl

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def handle(self, inbound: InboundMessage) -> ConversationResult:
        """Process one message to a reply. Never raises."""
        state = ConversationState.RECEIVED
        sender = inbound.sender
        parsed = classify(inbound.text)
        db = None
        try:
            sender = normalize_phone(inbound.sender) or inbound.sender
            state = ConversationState.CLASSIFIED
            logger.debug(f"[Conversation] {sender} -> {parsed.type.value} ({parsed.to_dict()})")

            db = self.session_factory()
            if inbound.message_id:
                cached = self._find_processed(db, inbound.message_id)
                if cached is not None:
                    logger.warning(
                        f"[Conversation] Duplicate delivery of {inbound.message_id} from {sender}; replaying stored reply"
                    )
                    result = ConversationResult(
                        success=True,
                        message=cached.reply,
                        intent=IntentType(cached.intent),
                        state=ConversationState.REPLIED,
                        duplicate=True,
                        parsed=parsed,
                    )
                    self._log(inbound, sender, result)
                    return result

            reply, details = self._resolve(db, parsed, sender, inbound.message_id)
            state = ConversationState.RESOLVED

            if inbound.message_id:
                self._remember(db, inbound.message_id, sender, parsed.type, reply)

            state = ConversationState.REPLIED
            result = ConversationResult(
                success=True,
                message=reply,
                intent=parsed.type,
                state=state,
                parsed=parsed,
                details=details,
            )

        except Exception as e:
            logger.error(
                f"[Conversation] Unexpected error in state {state.value} for message from {sender}: "
                f"{type(e).__name__}: {e}",
                exc_info=True,
            )
            if db is not None:
                db.rollback()
            result = ConversationResult(
                success=False,
                message=replies.GENERIC_APOLOGY_REPLY,
                intent=parsed.type,
                state=ConversationState.FAILED,
                parsed=parsed,
            )
        finally:
            if db is not None:
                db.close()

        self._log(inbound, sender, result)
        return result

    def handle_and_send(self, inbound: InboundMessage) -> ConversationResult:
        """handle(), then transmit the reply through the configured provider.

        Replayed duplicates are not sent again.
        """
        result = self.handle(inbound)
        if self.provider is None or result.duplicate:
            return result

        result.send_result = self.provider.send_message(inbound.sender, result.message)
        if not result.send_result.success:
            logger.error(
                f"[Conversation] Reply to {inbound.sender} not delivered via {self.provider.name}: "
                f"{result.send_result.error}"
            )
        return result

    def handle_and_send_all(self, messages: List[InboundMessage]) -> List[ConversationResult]:
        """Background work for push-style providers (Meta, 360dialog)."""
        results = []
        for inbound in messages:
            try:
                results.append(self.handle_and_send(inbound))
            except Exception as e:
                logger.error(
                    f"[Conversation] Error processing {inbound.provider} message from {inbound.sender}: {e}",
                    exc_info=True,
                )
                if self.provider is not None:
                    self.provider.send_message(inbound.sender, replies.PROVIDER_FALLBACK_REPLY)
        return results

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve(self, db: Session, parsed: ParsedIntent, sender: str, message_id: Optional[str]):
        """Return (reply text, details dict) for a classified message."""
        if parsed.type == IntentType.PAYMENT:
            outcome = ledger_service.record_payment(
                db, parsed.name, parsed.amount, parsed.direction, sender, message_id=message_id
            )
        elif parsed.type == IntentType.BALANCE_QUERY:
            outcome = ledger_service.query_balance(db, parsed.name, sender)
        elif parsed.type == IntentType.HISTORY_QUERY:
            outcome = ledger_service.query_history(db, parsed.name, sender)
        elif parsed.type == IntentType.GREETING:
            return replies.greeting_reply(), {}
        elif parsed.type == IntentType.HELP:
            return replies.help_reply(), {}
        else:
            return replies.unclear_reply(), {}

        if isinstance(outcome, ledger_service.LedgerFailure):
            logger.info(f"[Conversation] {parsed.type.value} for {sender} not completed: {outcome.error}")
            return outcome.reply, {"error": outcome.error}

        details = dict(outcome.customer_data)
        if outcome.payment is not None:
            details["paymentId"] = outcome.payment.id
        if outcome.balance is not None:
            details["balance"] = float(outcome.balance)
        return outcome.reply, details

    # ------------------------------------------------------------------
    # Duplicate-delivery guard
    # ------------------------------------------------------------------

    def _find_processed(self, db: Session, message_id: str) -> Optional[ProcessedMessage]:
        record = db.query(ProcessedMessage).filter(ProcessedMessage.message_id == message_id).first()
        if record is None:
            return None

        if _age_seconds(record.created_at) > self.idempotency_ttl:
            logger.info(f"[Conversation] Seen-record for {message_id} expired; processing again")
            db.delete(record)
            db.commit()
            return None
        return record

    def _remember(self, db: Session, message_id: str, sender: str, intent: IntentType, reply: str):
        try:
            db.add(ProcessedMessage(message_id=message_id, sender=sender, intent=intent.value, reply=reply))
            db.commit()
        except IntegrityError:
            # Same id processed concurrently by another worker
            db.rollback()
            logger.warning(f"[Conversation] Message {message_id} already remembered")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[Conversation] Could not remember message {message_id}: {e}")

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    @staticmethod
    def _log(inbound: InboundMessage, sender: str, result: ConversationResult):
        logger.info(f"[MESSAGE LOG] From: {sender}, Type: {result.intent.value}, Provider: {inbound.provider}")
        logger.debug(f"> Received: {inbound.text}")
        logger.debug(f"> Response: {result.message}")
        AuditLog.log_message_processed(
            sender=sender,
            intent=result.intent.value,
            state=result.state.value,
            text=inbound.text if isinstance(inbound.text, str) else None,
            message_id=inbound.message_id,
            duplicate=result.duplicate,
        )


def _age_seconds(created_at: Optional[datetime]) -> float:
    if created_at is None:
        return 0.0
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return (datetime.now(timezone.utc) - created_at).total_seconds()
