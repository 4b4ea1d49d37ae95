"""
Reply Renderer - WhatsApp reply text for every conversation outcome.

Pure formatting, no I/O. Amounts are whole currency units (no decimals),
grouped the Indian way by default (₹1,00,000).

Balance polarity, shared by every reply that shows one:
    positive balance -> "(to receive)"  the customer owes the business
    negative balance -> "(to pay)"      the business owes the customer
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union

from whatsapp_accounting.core.config import settings

Number = Union[int, float, Decimal]

HISTORY_LIMIT = 5


# ==============================================================================
# FORMATTING
# ==============================================================================

def _group_digits(digits: str, grouping: str) -> str:
    if len(digits) <= 3:
        return digits
    if grouping != "indian":
        return f"{int(digits):,}"

    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_currency(
    amount: Number,
    symbol: Optional[str] = None,
    grouping: Optional[str] = None,
) -> str:
    """
    Format an amount as whole-unit currency.

    Examples:
        format_currency(500)       -> "₹500"
        format_currency(100000)    -> "₹1,00,000"
        format_currency(-2500.5)   -> "-₹2,501"
    """
    symbol = settings.CURRENCY_SYMBOL if symbol is None else symbol
    grouping = settings.CURRENCY_GROUPING if grouping is None else grouping

    value = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{_group_digits(str(abs(int(value))), grouping)}"


def format_date(value: Union[datetime, date, None]) -> str:
    """Short day/month/year date used in history lines."""
    if value is None:
        return ""
    return value.strftime("%d/%m/%Y")


def balance_label(balance: Number) -> str:
    return "(to receive)" if balance >= 0 else "(to pay)"


def format_balance(balance: Number) -> str:
    """Absolute amount plus the polarity label, e.g. "₹300 (to receive)"."""
    return f"{format_currency(abs(Decimal(str(balance))))} {balance_label(balance)}"


# ==============================================================================
# STATIC REPLIES
# ==============================================================================

GREETING_REPLY = (
    "👋 Hello! Welcome to WhatsApp Accounting.\n\n"
    "How can I help you today?\n\n"
    "- Record a payment\n"
    "- Check balance\n"
    "- View transaction history\n"
    "- Type \"help\" for more information"
)

HELP_REPLY = (
    "📚 *WhatsApp Accounting Help*\n\n"
    "Here's how you can use me:\n\n"
    "*Recording Payments*\n"
    "- \"Received 500 from Rahul\"\n"
    "- \"Paid 1000 to Priya via UPI\"\n"
    "- \"Got 2500 from Jay on 15th June\"\n\n"
    "*Checking Balance*\n"
    "- \"Balance for Rahul\"\n"
    "- \"What's my balance?\"\n\n"
    "*Viewing History*\n"
    "- \"Show transactions for Priya\"\n"
    "- \"Show my history\"\n\n"
    "For more help, contact customer support."
)

UNCLEAR_REPLY = (
    "I'm not sure what you mean. Here are some things you can do:\n\n"
    "- Record a payment: \"Received 500 from Rahul\"\n"
    "- Check balance: \"Balance for Rahul\"\n"
    "- View history: \"Show transactions for Priya\"\n\n"
    "Type \"help\" for more information."
)

INVALID_PAYMENT_REPLY = (
    "I couldn't process that payment. Please include who the payment is to/from and the amount. "
    "For example: 'Received 500 from Rahul' or 'Paid 1000 to Priya via UPI'."
)

GENERIC_APOLOGY_REPLY = "Sorry, something went wrong. Please try again later."

PROVIDER_FALLBACK_REPLY = "I'm having trouble processing your message right now. Please try again later."

TEST_MESSAGE = (
    "🔄 Test message from WhatsApp Accounting. "
    "If you're receiving this, your integration is working correctly! ✅"
)


def greeting_reply() -> str:
    return GREETING_REPLY


def help_reply() -> str:
    return HELP_REPLY


def unclear_reply() -> str:
    return UNCLEAR_REPLY


def invalid_payment_reply() -> str:
    return INVALID_PAYMENT_REPLY


def technical_issue_reply(action: str) -> str:
    """Store failure. ``action`` says what could not be done, never why."""
    return f"I couldn't {action} due to a technical issue. Please try again later."


def customer_not_found_reply(name: Optional[str]) -> str:
    if name:
        return (
            f"I couldn't find any records for {name}. "
            "Please check the spelling or add them as a new customer."
        )
    return "I couldn't find your records in our system. Would you like to add a payment to get started?"


# ==============================================================================
# LEDGER REPLIES
# ==============================================================================

def payment_recorded_reply(name: str, amount: Number, received: bool, balance: Number) -> str:
    """
    Confirmation after a payment is stored.

    Example:
        ✅ Successfully recorded: ₹500 received from rahul.

        Current balance with rahul: ₹500 (to receive)
    """
    action, preposition = ("received", "from") if received else ("paid", "to")
    return (
        f"✅ Successfully recorded: {format_currency(amount)} {action} {preposition} {name}.\n\n"
        f"Current balance with {name}: {format_balance(balance)}"
    )


def balance_reply(name: str, total_received: Number, total_paid: Number, balance: Number) -> str:
    return (
        f"📊 *Balance Statement for {name}*\n\n"
        f"Total Received: {format_currency(total_received)}\n"
        f"Total Paid: {format_currency(total_paid)}\n"
        f"Current Balance: {format_balance(balance)}"
    )


def history_line(payment_date, received: bool, amount: Number, method: Optional[str], note: Optional[str]) -> str:
    """One transaction: "<date>: <Received|Paid> <amount> via <method>(<note>)"."""
    direction = "Received" if received else "Paid"
    suffix = f" ({note})" if note else ""
    return f"{format_date(payment_date)}: {direction} {format_currency(amount)} via {method or settings.DEFAULT_PAYMENT_METHOD}{suffix}"


def history_reply(name: str, lines: Iterable[str]) -> str:
    body = "\n".join(lines)
    if not body:
        return no_history_reply(name)
    return f"📝 *Recent Transactions for {name}*\n\n{body}"


def no_history_reply(name: str) -> str:
    return f"No transaction history found for {name}. Add a payment to get started."
