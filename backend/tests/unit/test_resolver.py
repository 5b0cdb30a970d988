# backend/tests/unit/test_resolver.py

import pytest

from shopgenie.conversation import flows
from shopgenie.conversation.patterns import pattern_matcher
from shopgenie.conversation.resolver import Handler, flow_resolver
from shopgenie.models.domain import OrderItem
from shopgenie.models.intent import IntentTag, ResolvedIntent
from shopgenie.models.session import Session


def _session(flow=None) -> Session:
    return Session(user_id="u1", flow=flow)


def _checkout(index: int = 0):
    flow = flows.begin_checkout(["milk", "bread", "eggs"])
    for item in flow.items[:index]:
        flow = flows.record_checkout_choice(flow, item, "zepto")
    return flow


def _resolve(text: str, flow=None):
    return flow_resolver.resolve(_session(flow), pattern_matcher.match(text))


AUTH_METHOD = flows.begin_auth("zepto")
AUTH_PHONE = flows.choose_login_method(AUTH_METHOD, "phone")
AUTH_OTP = flows.submit_phone(AUTH_PHONE, "+919876543210")
AUTH_EMAIL = flows.choose_login_method(AUTH_METHOD, "email")
AUTH_PASSWORD = flows.submit_email(AUTH_EMAIL, "a@b.co")
ORDER = flows.begin_order([OrderItem(name="milk")], "c1")


@pytest.mark.parametrize("flow", [None, AUTH_OTP, _checkout(2), ORDER])
@pytest.mark.parametrize("text, handler", [
    ("reset", Handler.CLEAR_SESSION),
    ("clear session", Handler.CLEAR_SESSION),
    ("reset all", Handler.CLEAR_ALL),
    ("help", Handler.HELP),
    ("stop", Handler.STOP),
    ("show cart", Handler.SHOW_CART),
])
def test_resets_and_commands_win_in_any_flow(flow, text, handler):
    route = _resolve(text, flow)
    assert route.handler == handler
    assert route.source == "pattern"


def test_login_carries_retailer():
    route = _resolve("login blinkit")
    assert route.handler == Handler.LOGIN
    assert route.params["retailer"] == "blinkit"


class TestAuthRouting:

    def test_method_token_needs_method_selection(self):
        assert _resolve("1", AUTH_METHOD).handler == Handler.AUTH_METHOD
        assert _resolve("email", AUTH_METHOD).params["method"] == "email"
        assert _resolve("1") is None

    @pytest.mark.parametrize("flow, handler", [
        (AUTH_PHONE, Handler.AUTH_PHONE),
        (AUTH_OTP, Handler.AUTH_OTP),
        (AUTH_EMAIL, Handler.AUTH_EMAIL),
        (AUTH_PASSWORD, Handler.AUTH_PASSWORD),
    ])
    def test_input_steps_claim_free_text(self, flow, handler):
        route = _resolve("whatever the user typed", flow)
        assert route.handler == handler
        assert route.source == "flow"

    def test_otp_digits_go_to_otp_handler(self):
        assert _resolve("482913", AUTH_OTP).handler == Handler.AUTH_OTP

    def test_method_selection_leaves_free_text_to_classifier(self):
        assert _resolve("order milk", AUTH_METHOD) is None

    def test_resend(self):
        assert _resolve("resend otp", AUTH_OTP).handler == Handler.RESEND_OTP
        assert _resolve("resend otp").handler == Handler.NO_ACTIVE_OTP
        assert _resolve("resend", AUTH_PHONE).handler == Handler.NO_ACTIVE_OTP


class TestCheckoutRouting:

    def test_retailer_for_item(self):
        route = _resolve("zepto for milk", _checkout())
        assert route.handler == Handler.CHECKOUT_SELECT_RETAILER
        assert route.params == {"retailer": "zepto", "item": "milk"}

    def test_retailer_for_item_outside_checkout_goes_to_classifier(self):
        assert _resolve("zepto for milk") is None

    def test_numeric_selection_never_reads_as_retailer(self):
        assert _resolve("3 for milk", _checkout()) is None
        assert _resolve("3 for milk", ORDER).handler == Handler.ORDER_SELECT

    def test_confirm_requires_full_walk(self):
        assert _resolve("confirm order", _checkout(2)).handler == Handler.CHECKOUT_INCOMPLETE
        assert _resolve("confirm order", _checkout(3)).handler == Handler.CHECKOUT_CONFIRM

    def test_checkout_commands_without_checkout(self):
        for text in ("skip milk", "edit cart", "confirm order"):
            assert _resolve(text).handler == Handler.NO_ACTIVE_CHECKOUT

    def test_skip_and_edit(self):
        assert _resolve("skip bread", _checkout()).handler == Handler.CHECKOUT_SKIP
        assert _resolve("edit cart", _checkout(1)).handler == Handler.CHECKOUT_EDIT

    def test_cancel(self):
        assert _resolve("cancel checkout", _checkout(1)).handler == Handler.CANCEL

    def test_checkout_command_starts_checkout(self):
        route = _resolve("checkout")
        assert route.handler == Handler.CHECKOUT_START
        assert route.requires_connected_retailer

    def test_free_text_in_checkout_goes_to_classifier(self):
        assert _resolve("order eggs", _checkout(1)) is None


class TestOrderRouting:

    def test_selection(self):
        assert _resolve("1 for milk", ORDER).params == {"number": 1, "item": "milk"}
        assert _resolve("all 2", ORDER).handler == Handler.ORDER_SELECT_ALL

    def test_selection_outside_order_goes_to_classifier(self):
        assert _resolve("all 1") is None

    def test_add_selected(self):
        assert _resolve("add selected", ORDER).handler == Handler.ORDER_ADD_SELECTED
        assert _resolve("add selected").handler == Handler.NO_ORDER_SELECTION

    def test_cancel(self):
        assert _resolve("cancel order", ORDER).handler == Handler.CANCEL


class TestIntentRouting:

    @pytest.mark.parametrize("tag, handler, guarded", [
        (IntentTag.ORDER, Handler.ORDER, True),
        (IntentTag.ADD_ITEM, Handler.ADD_ITEM, True),
        (IntentTag.SHOW_PRICES, Handler.SHOW_PRICES, True),
        (IntentTag.RETAILER_SELECTION, Handler.RETAILER_SELECTION, True),
        (IntentTag.REMOVE_ITEM, Handler.REMOVE_ITEM, False),
        (IntentTag.SHOW_CART, Handler.SHOW_CART, False),
        (IntentTag.ADDRESS_CONFIRMATION, Handler.ADDRESS_CONFIRMATION, False),
        (IntentTag.CREDENTIAL_INPUT, Handler.CREDENTIAL_INPUT, False),
        (IntentTag.PRODUCT_SELECTION, Handler.PRODUCT_SELECTION, False),
        (IntentTag.HELP, Handler.HELP, False),
        (IntentTag.UNKNOWN, Handler.UNKNOWN, False),
    ])
    def test_tags_map_to_standalone_handlers(self, tag, handler, guarded):
        route = flow_resolver.resolve_intent(_session(), ResolvedIntent(intent=tag))
        assert route.handler == handler
        assert route.source == "classifier"
        assert route.requires_connected_retailer is guarded

    def test_authentication_becomes_login(self):
        intent = ResolvedIntent(intent=IntentTag.AUTHENTICATION, retailer="zepto")
        route = flow_resolver.resolve_intent(_session(), intent)
        assert route.handler == Handler.LOGIN
        assert route.params["retailer"] == "zepto"
        assert route.params["intent"] is intent

    def test_unrecognised_tag_is_unknown(self):
        intent = ResolvedIntent.model_validate({"intent": "book_flight"})
        assert flow_resolver.resolve_intent(_session(), intent).handler == Handler.UNKNOWN
