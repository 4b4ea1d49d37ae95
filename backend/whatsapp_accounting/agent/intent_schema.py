"""Intent Schema - structured result of classifying one WhatsApp message.

Transient: never persisted. The conversation handler routes on ``type`` and
passes the extracted fields to the ledger service.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class IntentType(str, Enum):
    """Fixed set of intents, checked in this precedence by the classifier."""
    PAYMENT = "PAYMENT"
    BALANCE_QUERY = "BALANCE_QUERY"
    HISTORY_QUERY = "HISTORY_QUERY"
    GREETING = "GREETING"
    HELP = "HELP"
    UNCLEAR = "UNCLEAR"


class Direction(str, Enum):
    """Which way money moved, from the business's point of view."""
    PAID = "paid"          # business paid the counterparty
    RECEIVED = "received"  # business received from the counterparty


class ParsedIntent(BaseModel):
    """Classifier output.

    Fields:
        type: Intent tag
        name: Counterparty name (lowercased span from the message), PAYMENT and queries only
        amount: Whole-unit amount, PAYMENT only
        direction: Money flow, PAYMENT only
        original_message: The message as received, original casing kept
    """
    model_config = ConfigDict(frozen=True)

    type: IntentType = IntentType.UNCLEAR
    name: Optional[str] = None
    amount: Optional[int] = None
    direction: Optional[Direction] = None
    original_message: Optional[str] = None

    def to_dict(self) -> dict:
        """Wire shape used in webhook responses and logs."""
        data = {"type": self.type.value, "originalMessage": self.original_message}
        if self.type == IntentType.PAYMENT:
            data.update(
                name=self.name,
                amount=self.amount,
                direction=self.direction.value if self.direction else None,
            )
        elif self.type in (IntentType.BALANCE_QUERY, IntentType.HISTORY_QUERY):
            data["name"] = self.name
        return data

    def is_ledger_intent(self) -> bool:
        """True when handling this intent touches the customer/payment store."""
        return self.type in (IntentType.PAYMENT, IntentType.BALANCE_QUERY, IntentType.HISTORY_QUERY)
