"""
Intent Parser - deterministic keyword/regex classification.

Layers, first match wins (the order is what disambiguates, do not reorder):
1. Payment patterns, in PAYMENT_PATTERNS order
2. Balance query ("balance")
3. History query ("history" / "transactions" / "statement")
4. Greeting (substring of GREETING_WORDS)
5. Help ("help" / "?" / "menu" / "options")
6. UNCLEAR

Name spans are greedy runs of letters and spaces, so filler words next to a
name end up inside it ("check balance for rahul" -> "check").

classify() is pure and never raises.
"""
import re
import logging
from typing import Callable, List, Optional, Tuple

from .intent_schema import Direction, IntentType, ParsedIntent

logger = logging.getLogger(__name__)

PAYMENT_VERBS = r"(paid|received|gave|got|sent)"
RECEIVE_VERBS = ("received", "got")
GREETING_WORDS = ["hi", "hello", "hey", "greetings", "howdy", "hola", "namaste"]
HELP_KEYWORDS = ["help", "?", "menu", "options"]
HISTORY_KEYWORDS = ["history", "transactions", "statement"]

Extractor = Callable[[re.Match, str], Tuple[str, int, Direction]]


def _amount_first_direction(verb: str, text: str) -> Direction:
    """Direction for forms where the verb describes the business's own action."""
    if verb in RECEIVE_VERBS or ("from" in text and "to" not in text):
        return Direction.RECEIVED
    return Direction.PAID


def _name_first_direction(verb: str) -> Direction:
    """Direction for "<name> <verb> <amount>": the verb is the counterparty's action.

    "Kumar paid 2000" means the business received 2000.
    """
    if verb in RECEIVE_VERBS:
        return Direction.PAID
    return Direction.RECEIVED


def _extract_received_from(match: re.Match, text: str) -> Tuple[str, int, Direction]:
    return match.group(3).strip(), int(match.group(1)), Direction.RECEIVED


def _extract_amount_first(match: re.Match, text: str) -> Tuple[str, int, Direction]:
    return match.group(3).strip(), int(match.group(1)), _amount_first_direction(match.group(2), text)


def _extract_name_first(match: re.Match, text: str) -> Tuple[str, int, Direction]:
    return match.group(1).strip(), int(match.group(3)), _name_first_direction(match.group(2))


def _extract_verb_first(match: re.Match, text: str) -> Tuple[str, int, Direction]:
    return match.group(3).strip(), int(match.group(2)), _amount_first_direction(match.group(1), text)


# (label, pattern, extractor); patterns starting with ^ only match at the start of the message
PAYMENT_PATTERNS: List[Tuple[str, re.Pattern, Extractor]] = [
    # "500 received from Rahul"
    ("received_from", re.compile(r"^(\d+)\s+(received|got)\s+from\s+([a-z\s]+)", re.IGNORECASE),
     _extract_received_from),
    # "500 paid to Rahul", "500 got from Rahul"
    ("amount_first", re.compile(rf"^(\d+)\s+{PAYMENT_VERBS}\s+(?:to|from)\s+([a-z\s]+)", re.IGNORECASE),
     _extract_amount_first),
    # "Kumar paid 2000"
    ("name_first", re.compile(rf"([a-z\s]+)\s+{PAYMENT_VERBS}\s+(\d+)", re.IGNORECASE),
     _extract_name_first),
    # "paid 1000 to Priya"
    ("verb_first", re.compile(rf"{PAYMENT_VERBS}\s+(\d+)\s+(?:to|from)\s+([a-z\s]+)", re.IGNORECASE),
     _extract_verb_first),
]

BALANCE_NAME_PATTERN = re.compile(
    r"(balance\s+for\s+)([a-z\s]+)|(balance\s+of\s+)([a-z\s]+)|([a-z\s]+)(\s+balance)",
    re.IGNORECASE,
)
BALANCE_NAME_GROUPS = (2, 4, 5)

HISTORY_NAME_PATTERN = re.compile(
    r"(history\s+for\s+)([a-z\s]+)|(transactions\s+of\s+)([a-z\s]+)"
    r"|([a-z\s]+)(\s+history)|([a-z\s]+)(\s+transactions)",
    re.IGNORECASE,
)
HISTORY_NAME_GROUPS = (2, 4, 5, 7)


def classify(text) -> ParsedIntent:
    """Classify a raw message into a ParsedIntent. Never raises."""
    if not isinstance(text, str) or not text:
        return ParsedIntent(type=IntentType.UNCLEAR, original_message=text if isinstance(text, str) else None)

    try:
        return _classify(text)
    except Exception as e:  # pragma: no cover
        logger.error(f"Intent classification failed for {text[:50]!r}: {e}", exc_info=True)
        return ParsedIntent(type=IntentType.UNCLEAR, original_message=text)


def _classify(message: str) -> ParsedIntent:
    text = message.strip().lower()

    # === LAYER 1: PAYMENTS ===
    payment = match_payment(text)
    if payment:
        name, amount, direction = payment
        return ParsedIntent(
            type=IntentType.PAYMENT,
            name=name,
            amount=amount,
            direction=direction,
            original_message=message,
        )

    # === LAYER 2: QUERIES ===
    if "balance" in text:
        return ParsedIntent(
            type=IntentType.BALANCE_QUERY,
            name=extract_query_name(text, BALANCE_NAME_PATTERN, BALANCE_NAME_GROUPS),
            original_message=message,
        )

    if any(kw in text for kw in HISTORY_KEYWORDS):
        return ParsedIntent(
            type=IntentType.HISTORY_QUERY,
            name=extract_query_name(text, HISTORY_NAME_PATTERN, HISTORY_NAME_GROUPS),
            original_message=message,
        )

    # === LAYER 3: CONVERSATIONAL ===
    if any(word in text for word in GREETING_WORDS):
        return ParsedIntent(type=IntentType.GREETING, original_message=message)

    if any(kw in text for kw in HELP_KEYWORDS):
        return ParsedIntent(type=IntentType.HELP, original_message=message)

    # === FALLBACK ===
    return ParsedIntent(type=IntentType.UNCLEAR, original_message=message)


def match_payment(text: str) -> Optional[Tuple[str, int, Direction]]:
    """Run PAYMENT_PATTERNS in order against normalized text.

    Returns:
        (name, amount, direction) for the first pattern that matches, else None
    """
    for label, pattern, extractor in PAYMENT_PATTERNS:
        match = pattern.search(text)
        if match:
            name, amount, direction = extractor(match, text)
            logger.debug(f"Payment pattern '{label}' matched: name={name!r} amount={amount} direction={direction.value}")
            return name, amount, direction
    return None


def extract_query_name(text: str, pattern: re.Pattern, groups: Tuple[int, ...]) -> Optional[str]:
    """Pick the first non-empty name group; None means "the sender's own records"."""
    match = pattern.search(text)
    if not match:
        return None
    for group in groups:
        value = match.group(group)
        if value and value.strip():
            return value.strip()
    return None
