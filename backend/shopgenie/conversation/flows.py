# /shopgenie/conversation/flows.py

"""
Pure transition functions for the auth, checkout and order sub-flows.

Every function takes the current flow (or nothing, for entry points) and
returns the next flow object. Terminal auth steps return the accepted value
instead; the caller then stores it and clears the session. Invalid user
input raises `InvalidFlowInput`; the caller re-prompts and leaves the
session untouched.

No database writes, no message sending and no logging happen here.
Entering a flow always builds a fresh object, so data from a previous
flow never carries over.
"""

import re
from typing import Dict, List, Optional

from shopgenie.models.domain import OrderItem, ProductSuggestion
from shopgenie.models.session import (
    AuthFlow,
    AuthStep,
    CheckoutFlow,
    OrderFlow,
)

PHONE_RE = re.compile(r"^\+[1-9]\d{1,14}$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class InvalidFlowInput(ValueError):
    """Raised when user input does not satisfy the current step. `field` names what failed."""

    def __init__(self, field: str, message: str = ""):
        super().__init__(message or f"invalid {field}")
        self.field = field


# ==================== Validators ====================

def normalize_phone(text: str) -> str:
    return re.sub(r"\s+", "", text or "")


def is_valid_phone(text: str) -> bool:
    return bool(PHONE_RE.match(normalize_phone(text)))


def is_valid_otp(text: str, length: int = 6) -> bool:
    return bool(re.fullmatch(rf"\d{{{length}}}", (text or "").strip()))


def is_valid_email(text: str) -> bool:
    return bool(EMAIL_RE.match((text or "").strip()))


# ==================== Auth flow ====================

def begin_auth(retailer: str) -> AuthFlow:
    return AuthFlow(step=AuthStep.METHOD_SELECTION, retailer=retailer)


def choose_login_method(flow: AuthFlow, method: str) -> AuthFlow:
    if flow.step != AuthStep.METHOD_SELECTION:
        raise InvalidFlowInput("method", f"login method not expected in {flow.step.value}")
    if method == "phone":
        return AuthFlow(step=AuthStep.PHONE_INPUT, retailer=flow.retailer)
    if method == "email":
        return AuthFlow(step=AuthStep.EMAIL_INPUT, retailer=flow.retailer)
    raise InvalidFlowInput("method", f"unsupported login method {method!r}")


def submit_phone(flow: AuthFlow, text: str) -> AuthFlow:
    if not is_valid_phone(text):
        raise InvalidFlowInput("phone_number")
    return AuthFlow(step=AuthStep.OTP_INPUT, retailer=flow.retailer, phone_number=normalize_phone(text))


def submit_otp(flow: AuthFlow, text: str, length: int = 6) -> str:
    """Returns the accepted code. The auth flow ends after this step."""
    if not is_valid_otp(text, length):
        raise InvalidFlowInput("otp")
    return text.strip()


def submit_email(flow: AuthFlow, text: str) -> AuthFlow:
    if not is_valid_email(text):
        raise InvalidFlowInput("email")
    return AuthFlow(step=AuthStep.PASSWORD_INPUT, retailer=flow.retailer, email=text.strip().lower())


def submit_password(flow: AuthFlow, text: str) -> str:
    # Passwords are not format-checked.
    return text or ""


# ==================== Checkout flow ====================

def begin_checkout(item_names: List[str]) -> CheckoutFlow:
    seen: Dict[str, None] = {}
    for name in item_names:
        seen.setdefault(name.strip().lower(), None)
    if not seen:
        raise InvalidFlowInput("items", "checkout needs at least one item")
    return CheckoutFlow(items=list(seen), current_index=0, selections={})


def resolve_checkout_item(flow: CheckoutFlow, item_name: str) -> str:
    """Maps user text onto one of the checkout items (exact, then substring match)."""
    wanted = item_name.strip().lower()
    if wanted in flow.items:
        return wanted
    for name in flow.items:
        if wanted in name or name in wanted:
            return name
    raise InvalidFlowInput("item", f"{item_name!r} is not part of this checkout")


def record_checkout_choice(flow: CheckoutFlow, item_name: str, retailer: Optional[str]) -> CheckoutFlow:
    """Selects a retailer for an item (or skips it with None) and moves to the next index."""
    if flow.is_complete:
        raise InvalidFlowInput("item", "every item already has a choice")
    item = resolve_checkout_item(flow, item_name)
    selections = dict(flow.selections)
    selections[item] = retailer
    return CheckoutFlow(
        items=list(flow.items),
        current_index=min(flow.current_index + 1, len(flow.items)),
        selections=selections,
    )


def restart_checkout(flow: CheckoutFlow) -> CheckoutFlow:
    return CheckoutFlow(items=list(flow.items), current_index=0, selections=dict(flow.selections))


# ==================== Order flow ====================

def begin_order(items: List[OrderItem], cart_id: str) -> OrderFlow:
    if not items:
        raise InvalidFlowInput("items", "an order needs at least one item")
    return OrderFlow(items=[item.model_copy() for item in items], cart_id=cart_id, selections={})


def record_order_selection(flow: OrderFlow, item_name: str, suggestion: ProductSuggestion) -> OrderFlow:
    item = flow.find_item(item_name)
    if item is None:
        raise InvalidFlowInput("item", f"{item_name!r} is not part of this order")
    selections = dict(flow.selections)
    selections[item.name] = suggestion
    return flow.model_copy(update={"selections": selections})


def pick_suggestion(suggestions: List[ProductSuggestion], number: int) -> ProductSuggestion:
    for suggestion in suggestions:
        if suggestion.number == number:
            return suggestion
    raise InvalidFlowInput("number", f"option {number} is out of range")
