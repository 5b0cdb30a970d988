# /shopgenie/services/rule_classifier.py

"""
Keyword and regex intent classifier. Used on its own when no language
model is configured, and as the fallback when the model call fails or is
not confident enough.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from shopgenie.config import rules
from shopgenie.config.retailers import RETAILER_ALIASES, SUPPORTED_RETAILERS, normalize_retailer_key
from shopgenie.models.domain import OrderItem
from shopgenie.models.intent import IntentTag, ResolvedIntent, SelectionChoice

logger = logging.getLogger(__name__)

# Words that never belong to an item name
_FILLER_WORDS = (
    rules.ORDER_KEYWORDS_SET
    | rules.ADD_KEYWORDS_SET
    | rules.REMOVE_KEYWORDS_SET
    | {"please", "pls", "some", "i", "me", "my", "and", "of", "a", "an", "the", "to", "from", "cart", "also"}
)

_RETAILER_FOR_ITEM_RE = re.compile(r"(?P<retailer>[a-z]+)\s+for\s+(?P<item>[a-z][a-z ]*?)(?=\s*(?:,|\band\b|$))")


def _words(text: str) -> List[str]:
    return rules.WORD_RE.findall(text.lower())


def normalize_unit(unit: Optional[str]) -> str:
    if not unit:
        return "pc"
    return rules.UNIT_ALIASES.get(unit.lower(), unit.lower())


def _clean_name(name: str) -> str:
    return " ".join(w for w in _words(name) if w not in _FILLER_WORDS)


def _to_number(value: str) -> float:
    number = float(value)
    return int(number) if number.is_integer() else number


# ==================== Address extraction ====================

def looks_like_address(text: str) -> bool:
    if not text:
        return False
    if rules.PINCODE_RE.search(text) or rules.BUILDING_NUMBER_RE.search(text) or rules.UNIT_NUMBER_RE.search(text):
        return True
    words = set(_words(text))
    if words & rules.ADDRESS_KEYWORDS or "address" in words:
        return True
    return any(ch.isdigit() for ch in text) and "," in text


def find_address(text: str) -> Tuple[Optional[str], int]:
    """
    Returns the delivery address embedded in a message and the offset where
    its marker starts, or (None, len(text)). Only address-shaped tails count,
    so "I want to order milk" has no address.
    """
    for prefix in rules.ADDRESS_PREFIXES:
        if text.lower().startswith(prefix):
            tail = text[len(prefix):].strip(" :,-")
            return (tail, 0) if tail else (None, len(text))

    for marker in rules.ADDRESS_MARKER_RE.finditer(text):
        tail = text[marker.end():].strip(" ,.")
        if looks_like_address(tail):
            return tail, marker.start()
    return None, len(text)


# ==================== Item extraction ====================

def extract_items(text: str) -> List[OrderItem]:
    """
    Pulls grocery items out of free text. Quantity phrases ("2 kg rice",
    "rice 2kg", "6 eggs") are tried first; otherwise known item names are
    picked up with a default quantity of 1.
    """
    lowered = text.lower()
    found: Dict[str, OrderItem] = {}

    def add(name: str, quantity: float = 1, unit: str = "pc") -> None:
        name = _clean_name(name)
        if name and name not in found:
            found[name] = OrderItem(name=name, quantity=quantity, unit=unit)

    for m in rules.QUANTITY_FIRST_RE.finditer(lowered):
        add(m.group("name"), _to_number(m.group("quantity")), normalize_unit(m.group("unit")))
    if not found:
        for m in rules.NAME_FIRST_RE.finditer(lowered):
            add(m.group("name"), _to_number(m.group("quantity")), normalize_unit(m.group("unit")))
    if not found:
        for m in rules.COUNT_FIRST_RE.finditer(lowered):
            if m.group("name") in rules.SINGLE_WORD_ITEMS:
                add(m.group("name"), _to_number(m.group("quantity")))

    # Known names not already covered by a quantity phrase
    remaining = lowered
    for phrase in rules.MULTI_WORD_ITEMS:
        if re.search(rf"\b{re.escape(phrase)}\b", remaining):
            if not any(phrase in name or name in phrase for name in found):
                add(phrase)
            remaining = re.sub(rf"\b{re.escape(phrase)}\b", " ", remaining)
    for word in _words(remaining):
        if word in rules.SINGLE_WORD_ITEMS and not any(word in name.split() for name in found):
            add(word)

    return list(found.values())


def extract_retailer(text: str) -> Optional[str]:
    for word in _words(text):
        if word in SUPPORTED_RETAILERS or word in RETAILER_ALIASES:
            return normalize_retailer_key(word)
    return None


def extract_retailer_choices(text: str) -> Dict[str, str]:
    # "zepto for milk, blinkit for bread" -> {"milk": "zepto", "bread": "blinkit"}
    choices = {}
    for m in _RETAILER_FOR_ITEM_RE.finditer(text.lower()):
        retailer = m.group("retailer")
        if retailer in SUPPORTED_RETAILERS or retailer in RETAILER_ALIASES:
            item = _clean_name(m.group("item"))
            if item:
                choices[item] = normalize_retailer_key(retailer)
    return choices


# ==================== Classification ====================

def classify(text: str) -> ResolvedIntent:
    normalized = " ".join((text or "").lower().split())
    if not normalized:
        return ResolvedIntent(intent=IntentTag.UNKNOWN, confidence=0.0)
    words = set(_words(normalized))

    selection = rules.SELECTION_RE.match(normalized)
    if selection:
        return ResolvedIntent(
            intent=IntentTag.PRODUCT_SELECTION,
            choices=SelectionChoice(number=int(selection.group("number")), item=selection.group("item").strip()),
            confidence=0.9,
        )
    select_all = rules.SELECT_ALL_RE.match(normalized)
    if select_all:
        return ResolvedIntent(
            intent=IntentTag.PRODUCT_SELECTION,
            choices=SelectionChoice(number=int(select_all.group("number")), select_all=True),
            confidence=0.9,
        )

    address, address_start = find_address(text.strip())
    item_text = text.strip()[:address_start]

    if words & rules.ORDER_KEYWORDS_SET:
        return ResolvedIntent(
            intent=IntentTag.ORDER,
            items=extract_items(item_text),
            address=address,
            confidence=0.8,
        )

    if words & rules.REMOVE_KEYWORDS_SET:
        return ResolvedIntent(intent=IntentTag.REMOVE_ITEM, items=extract_items(normalized), confidence=0.8)

    if words & rules.ADD_KEYWORDS_SET:
        return ResolvedIntent(intent=IntentTag.ADD_ITEM, items=extract_items(item_text), address=address, confidence=0.8)

    if words & rules.AFFIRMATIVE_RESPONSES or normalized in rules.AFFIRMATIVE_RESPONSES:
        return ResolvedIntent(intent=IntentTag.ADDRESS_CONFIRMATION, confirmed=True, confidence=0.9)
    if words & rules.NEGATIVE_RESPONSES or normalized in rules.NEGATIVE_RESPONSES:
        return ResolvedIntent(intent=IntentTag.ADDRESS_CONFIRMATION, confirmed=False, confidence=0.9)

    if words & rules.GREETING_KEYWORDS_SET or any(p in normalized for p in rules.GREETING_PHRASES):
        return ResolvedIntent(intent=IntentTag.HELP, confidence=0.9)

    if words & rules.PRICE_KEYWORDS_SET:
        return ResolvedIntent(intent=IntentTag.SHOW_PRICES, items=extract_items(normalized), confidence=0.8)

    if words & rules.CART_KEYWORDS_SET:
        return ResolvedIntent(intent=IntentTag.SHOW_CART, confidence=0.8)

    if (address and address_start == 0) or (not address and looks_like_address(text)):
        return ResolvedIntent(intent=IntentTag.ORDER, address=address or text.strip(), confidence=0.6)

    if words & rules.AUTH_KEYWORDS_SET or any(p in normalized for p in rules.AUTH_PHRASES):
        return ResolvedIntent(intent=IntentTag.AUTHENTICATION, retailer=extract_retailer(normalized), confidence=0.8)

    retailer = extract_retailer(normalized)
    if retailer:
        return ResolvedIntent(
            intent=IntentTag.RETAILER_SELECTION,
            retailer=retailer,
            items=extract_items(normalized),
            retailer_choices=extract_retailer_choices(normalized),
            confidence=0.7,
        )

    # Bare item names ("milk and bread") read as an order
    items = extract_items(normalized)
    if items:
        return ResolvedIntent(intent=IntentTag.ORDER, items=items, confidence=0.6)

    logger.debug(f"No rule matched message: {normalized[:50]}")
    return ResolvedIntent(intent=IntentTag.UNKNOWN, confidence=0.3)
