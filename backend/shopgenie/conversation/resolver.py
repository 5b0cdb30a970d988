# /shopgenie/conversation/resolver.py

"""
Routing decisions for inbound messages.

Given the user's current session and the pattern-match result, the
resolver picks the handler to run. When neither a pattern nor an active
flow claims the message it returns None, and the caller asks the intent
classifier; `resolve_intent` then maps the classified tag onto a
standalone handler.

The resolver is synchronous and pure. Session writes happen in the
handlers, after the route has been chosen.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from shopgenie.conversation.patterns import PatternAction, PatternResult
from shopgenie.models.intent import IntentTag, ResolvedIntent
from shopgenie.models.session import (
    AuthFlow,
    AuthStep,
    CheckoutFlow,
    OrderFlow,
    Session,
)


class Handler(str, Enum):
    # resets and simple commands
    CLEAR_SESSION = "clear_session"
    CLEAR_ALL = "clear_all"
    HELP = "help"
    STOP = "stop"
    SHOW_CART = "show_cart"
    SHOW_PRICES = "show_prices"
    SHOW_CONNECTED_RETAILERS = "show_connected_retailers"
    CANCEL = "cancel"
    # auth flow
    LOGIN = "login"
    AUTH_METHOD = "auth_method"
    AUTH_PHONE = "auth_phone"
    AUTH_OTP = "auth_otp"
    AUTH_EMAIL = "auth_email"
    AUTH_PASSWORD = "auth_password"
    RESEND_OTP = "resend_otp"
    NO_ACTIVE_OTP = "no_active_otp"
    # checkout flow
    CHECKOUT_START = "checkout_start"
    CHECKOUT_SELECT_RETAILER = "checkout_select_retailer"
    CHECKOUT_SKIP = "checkout_skip"
    CHECKOUT_CONFIRM = "checkout_confirm"
    CHECKOUT_INCOMPLETE = "checkout_incomplete"
    CHECKOUT_EDIT = "checkout_edit"
    NO_ACTIVE_CHECKOUT = "no_active_checkout"
    # order flow
    ORDER_SELECT = "order_select"
    ORDER_SELECT_ALL = "order_select_all"
    ORDER_ADD_SELECTED = "order_add_selected"
    NO_ORDER_SELECTION = "no_order_selection"
    # classifier intents
    ORDER = "order"
    ADD_ITEM = "add_item"
    REMOVE_ITEM = "remove_item"
    ADDRESS_CONFIRMATION = "address_confirmation"
    CREDENTIAL_INPUT = "credential_input"
    PRODUCT_SELECTION = "product_selection"
    RETAILER_SELECTION = "retailer_selection"
    UNKNOWN = "unknown"


# Handlers that only make sense once the user has connected a retailer.
# The orchestrator checks this guard before dispatching.
REQUIRES_CONNECTED_RETAILER = frozenset({
    Handler.ORDER,
    Handler.ADD_ITEM,
    Handler.SHOW_PRICES,
    Handler.CHECKOUT_START,
    Handler.RETAILER_SELECTION,
})


@dataclass(frozen=True)
class Route:
    handler: Handler
    source: str
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def requires_connected_retailer(self) -> bool:
        return self.handler in REQUIRES_CONNECTED_RETAILER


# Commands that are always actionable, whatever flow is active
_DIRECT_ACTIONS = {
    PatternAction.CLEAR_SESSION: Handler.CLEAR_SESSION,
    PatternAction.CLEAR_ALL: Handler.CLEAR_ALL,
    PatternAction.HELP: Handler.HELP,
    PatternAction.STOP: Handler.STOP,
    PatternAction.SHOW_CART: Handler.SHOW_CART,
    PatternAction.SHOW_PRICES: Handler.SHOW_PRICES,
    PatternAction.CHECKOUT: Handler.CHECKOUT_START,
    PatternAction.SHOW_CONNECTED_RETAILERS: Handler.SHOW_CONNECTED_RETAILERS,
    PatternAction.LOGIN: Handler.LOGIN,
    PatternAction.CANCEL_CHECKOUT: Handler.CANCEL,
    PatternAction.CANCEL_ORDER: Handler.CANCEL,
}

_AUTH_INPUT_HANDLERS = {
    AuthStep.PHONE_INPUT: Handler.AUTH_PHONE,
    AuthStep.OTP_INPUT: Handler.AUTH_OTP,
    AuthStep.EMAIL_INPUT: Handler.AUTH_EMAIL,
    AuthStep.PASSWORD_INPUT: Handler.AUTH_PASSWORD,
}

_INTENT_HANDLERS = {
    IntentTag.ORDER: Handler.ORDER,
    IntentTag.ADD_ITEM: Handler.ADD_ITEM,
    IntentTag.REMOVE_ITEM: Handler.REMOVE_ITEM,
    IntentTag.SHOW_PRICES: Handler.SHOW_PRICES,
    IntentTag.SHOW_CART: Handler.SHOW_CART,
    IntentTag.ADDRESS_CONFIRMATION: Handler.ADDRESS_CONFIRMATION,
    IntentTag.AUTHENTICATION: Handler.LOGIN,
    IntentTag.CREDENTIAL_INPUT: Handler.CREDENTIAL_INPUT,
    IntentTag.PRODUCT_SELECTION: Handler.PRODUCT_SELECTION,
    IntentTag.RETAILER_SELECTION: Handler.RETAILER_SELECTION,
    IntentTag.HELP: Handler.HELP,
    IntentTag.UNKNOWN: Handler.UNKNOWN,
}


class FlowResolver:
    def resolve(self, session: Session, match: Optional[PatternResult]) -> Optional[Route]:
        """
        Routes a message using the pattern result and the active flow.
        Returns None when the intent classifier has to decide.
        """
        if match is not None:
            route = self._route_pattern(session, match)
            if route is not None:
                return route
        return self._route_active_flow(session)

    def resolve_intent(self, session: Session, intent: ResolvedIntent) -> Route:
        handler = _INTENT_HANDLERS.get(intent.intent, Handler.UNKNOWN)
        params: Dict[str, Any] = {"intent": intent}
        if handler == Handler.LOGIN:
            params["retailer"] = intent.retailer
        return Route(handler, "classifier", params)

    # ==================== Pattern routing ====================

    def _route_pattern(self, session: Session, match: PatternResult) -> Optional[Route]:
        action = match.action
        flow = session.flow

        if action in _DIRECT_ACTIONS:
            return Route(_DIRECT_ACTIONS[action], "pattern", dict(match.params))

        if action == PatternAction.LOGIN_METHOD:
            # Only a pending method choice makes "1"/"phone" meaningful.
            if isinstance(flow, AuthFlow) and flow.step == AuthStep.METHOD_SELECTION:
                return Route(Handler.AUTH_METHOD, "pattern", dict(match.params))
            return None

        if action == PatternAction.RESEND_OTP:
            if isinstance(flow, AuthFlow) and flow.step == AuthStep.OTP_INPUT:
                return Route(Handler.RESEND_OTP, "pattern")
            return Route(Handler.NO_ACTIVE_OTP, "pattern")

        if action in (PatternAction.SELECT_PRODUCT, PatternAction.SELECT_ALL_PRODUCTS):
            if not isinstance(flow, OrderFlow):
                return None
            handler = Handler.ORDER_SELECT if action == PatternAction.SELECT_PRODUCT else Handler.ORDER_SELECT_ALL
            return Route(handler, "pattern", dict(match.params))

        if action == PatternAction.SELECT_RETAILER:
            if not isinstance(flow, CheckoutFlow):
                return None
            return Route(Handler.CHECKOUT_SELECT_RETAILER, "pattern", dict(match.params))

        if action in (PatternAction.SKIP_ITEM, PatternAction.EDIT_CART, PatternAction.CONFIRM_ORDER):
            if not isinstance(flow, CheckoutFlow):
                return Route(Handler.NO_ACTIVE_CHECKOUT, "pattern")
            if action == PatternAction.SKIP_ITEM:
                return Route(Handler.CHECKOUT_SKIP, "pattern", dict(match.params))
            if action == PatternAction.EDIT_CART:
                return Route(Handler.CHECKOUT_EDIT, "pattern")
            if not flow.is_complete:
                return Route(Handler.CHECKOUT_INCOMPLETE, "pattern")
            return Route(Handler.CHECKOUT_CONFIRM, "pattern")

        if action == PatternAction.ADD_SELECTED:
            if not isinstance(flow, OrderFlow):
                return Route(Handler.NO_ORDER_SELECTION, "pattern")
            return Route(Handler.ORDER_ADD_SELECTED, "pattern")

        return None

    # ==================== Active flow claims ====================

    def _route_active_flow(self, session: Session) -> Optional[Route]:
        flow = session.flow
        # Only auth input steps consume free text. Method selection, checkout
        # and order flows leave unrecognised messages to the classifier.
        if isinstance(flow, AuthFlow) and flow.step in _AUTH_INPUT_HANDLERS:
            return Route(_AUTH_INPUT_HANDLERS[flow.step], "flow")
        return None


flow_resolver = FlowResolver()
