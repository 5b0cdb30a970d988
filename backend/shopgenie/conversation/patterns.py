# /shopgenie/conversation/patterns.py

"""
Fast-path pattern matching for inbound messages.

The table below is evaluated top to bottom and the first matching rule
wins. Its order is fixed: it is never rearranged according to the active
flow. Deciding whether a recognised command is actionable in the current
session belongs to the resolver, not to this module.

Matching is side-effect free. Comparisons run against a lower-cased,
trimmed, whitespace-collapsed copy of the message; the original text is
carried on the result for handlers that need its casing.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Pattern


class PatternAction(str, Enum):
    CLEAR_SESSION = "clear_session"
    CLEAR_ALL = "clear_all"
    HELP = "help"
    STOP = "stop"
    SHOW_CART = "show_cart"
    SHOW_PRICES = "show_prices"
    CHECKOUT = "checkout"
    SHOW_CONNECTED_RETAILERS = "show_connected_retailers"
    LOGIN = "login"
    LOGIN_METHOD = "login_method"
    RESEND_OTP = "resend_otp"
    SELECT_PRODUCT = "select_product"
    SELECT_ALL_PRODUCTS = "select_all_products"
    CANCEL_CHECKOUT = "cancel_checkout"
    CANCEL_ORDER = "cancel_order"
    CONFIRM_ORDER = "confirm_order"
    EDIT_CART = "edit_cart"
    SELECT_RETAILER = "select_retailer"
    SKIP_ITEM = "skip_item"
    ADD_SELECTED = "add_selected"


@dataclass(frozen=True)
class PatternResult:
    action: PatternAction
    raw_text: str
    params: Dict[str, Any] = field(default_factory=dict)
    rule: str = ""


@dataclass(frozen=True)
class PatternRule:
    """
    A single row of the priority table: either an exact phrase set or a
    regex with named groups. `params` are fixed values attached to every
    match of the rule (e.g. which login method a bare token stands for).
    """
    name: str
    action: PatternAction
    phrases: FrozenSet[str] = frozenset()
    regex: Optional[Pattern] = None
    params: Dict[str, Any] = field(default_factory=dict)

    def match(self, normalized: str, raw_text: str) -> Optional[PatternResult]:
        if self.phrases:
            if normalized not in self.phrases:
                return None
            return PatternResult(self.action, raw_text, dict(self.params), self.name)

        if self.regex is None:
            return None
        found = self.regex.match(normalized)
        if not found:
            return None
        params = dict(self.params)
        for key, value in found.groupdict().items():
            if value is None:
                continue
            value = value.strip()
            params[key] = int(value) if key == "number" else value
        return PatternResult(self.action, raw_text, params, self.name)


def _phrases(*values: str) -> FrozenSet[str]:
    return frozenset(values)


CONNECTED_RETAILER_PHRASES = _phrases(
    "connected retailers", "show connected", "show connected retailers", "my retailers",
    "my apps", "connected apps", "my loginned apps", "my logged in apps", "logged in apps",
)

# Priority order. Numeric selection (group 6) must stay ahead of the
# retailer-for-item rule (group 7): "3 for milk" fits both shapes.
PATTERN_RULES: List[PatternRule] = [
    # 1. Emergency resets
    PatternRule("reset_all", PatternAction.CLEAR_ALL, phrases=_phrases("clear all", "reset all")),
    PatternRule("reset", PatternAction.CLEAR_SESSION, phrases=_phrases("clear session", "reset")),
    # 2. Simple commands
    PatternRule("help", PatternAction.HELP, phrases=_phrases("help", "start")),
    PatternRule("stop", PatternAction.STOP, phrases=_phrases("stop", "unsubscribe")),
    PatternRule("show_cart", PatternAction.SHOW_CART, phrases=_phrases("show cart", "view cart")),
    PatternRule("show_prices", PatternAction.SHOW_PRICES, phrases=_phrases("show prices", "prices")),
    PatternRule("checkout", PatternAction.CHECKOUT, phrases=_phrases("checkout")),
    PatternRule("connected_retailers", PatternAction.SHOW_CONNECTED_RETAILERS, phrases=CONNECTED_RETAILER_PHRASES),
    # 3. Login prefix
    PatternRule("login", PatternAction.LOGIN, regex=re.compile(r"^login\s+(?P<retailer>.+)$")),
    # 4. Bare login-method tokens
    PatternRule("method_phone", PatternAction.LOGIN_METHOD, phrases=_phrases("phone", "1"), params={"method": "phone"}),
    PatternRule("method_email", PatternAction.LOGIN_METHOD, phrases=_phrases("email", "2"), params={"method": "email"}),
    # 5. OTP resend
    PatternRule("resend_otp", PatternAction.RESEND_OTP, phrases=_phrases("resend otp", "resend")),
    # 6. Structured selection
    PatternRule("select_product", PatternAction.SELECT_PRODUCT, regex=re.compile(r"^(?P<number>\d+)\s+for\s+(?P<item>.+)$")),
    PatternRule("select_all", PatternAction.SELECT_ALL_PRODUCTS, regex=re.compile(r"^all\s+(?P<number>\d+)$")),
    # 7. Checkout syntax
    PatternRule("cancel_checkout", PatternAction.CANCEL_CHECKOUT, phrases=_phrases("cancel checkout")),
    PatternRule("cancel_order", PatternAction.CANCEL_ORDER, phrases=_phrases("cancel order")),
    PatternRule("confirm_order", PatternAction.CONFIRM_ORDER, phrases=_phrases("confirm order")),
    PatternRule("edit_cart", PatternAction.EDIT_CART, phrases=_phrases("edit cart")),
    PatternRule("select_retailer", PatternAction.SELECT_RETAILER, regex=re.compile(r"^(?P<retailer>\w+)\s+for\s+(?P<item>.+)$")),
    PatternRule("skip_item", PatternAction.SKIP_ITEM, regex=re.compile(r"^skip\s+(?P<item>.+)$")),
    # 8. Order flow commit
    PatternRule("add_selected", PatternAction.ADD_SELECTED, phrases=_phrases("add selected")),
]


def normalize_message(text: Optional[str]) -> str:
    if not text:
        return ""
    return " ".join(text.lower().split())


class PatternMatcher:
    def __init__(self, rules: Optional[List[PatternRule]] = None):
        self.rules = rules if rules is not None else PATTERN_RULES

    def match(self, raw_text: Optional[str]) -> Optional[PatternResult]:
        normalized = normalize_message(raw_text)
        if not normalized:
            return None
        for rule in self.rules:
            result = rule.match(normalized, raw_text or "")
            if result is not None:
                return result
        return None


pattern_matcher = PatternMatcher()
