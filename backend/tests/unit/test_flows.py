# backend/tests/unit/test_flows.py

import pytest

from shopgenie.conversation import flows
from shopgenie.conversation.flows import InvalidFlowInput
from shopgenie.models.domain import OrderItem, ProductSuggestion
from shopgenie.models.session import AuthStep


def _suggestion(number: int, name: str = "Amul Full Cream Milk 1L") -> ProductSuggestion:
    return ProductSuggestion(
        number=number, name=name, price=58, retailer="zepto", retailer_name="Zepto",
        delivery_time="10 min", search_url="https://www.zepto.in/search?q=milk",
    )


class TestAuthFlow:

    def test_phone_path(self):
        flow = flows.begin_auth("zepto")
        assert flow.step == AuthStep.METHOD_SELECTION

        flow = flows.choose_login_method(flow, "phone")
        assert flow.step == AuthStep.PHONE_INPUT
        assert flow.retailer == "zepto"

        flow = flows.submit_phone(flow, "+91 98765 43210")
        assert flow.step == AuthStep.OTP_INPUT
        assert flow.phone_number == "+919876543210"

        assert flows.submit_otp(flow, " 482913 ") == "482913"

    def test_email_path(self):
        flow = flows.choose_login_method(flows.begin_auth("blinkit"), "email")
        assert flow.step == AuthStep.EMAIL_INPUT

        flow = flows.submit_email(flow, "Someone@Example.com")
        assert flow.step == AuthStep.PASSWORD_INPUT
        assert flow.email == "someone@example.com"
        assert flows.submit_password(flow, "hunter2") == "hunter2"

    @pytest.mark.parametrize("phone", ["9876543210", "+0123456789", "+91abc", ""])
    def test_invalid_phone(self, phone):
        flow = flows.choose_login_method(flows.begin_auth("zepto"), "phone")
        with pytest.raises(InvalidFlowInput) as excinfo:
            flows.submit_phone(flow, phone)
        assert excinfo.value.field == "phone_number"

    @pytest.mark.parametrize("code", ["12345", "1234567", "12a456", ""])
    def test_invalid_otp(self, code):
        flow = flows.submit_phone(flows.choose_login_method(flows.begin_auth("zepto"), "phone"), "+919876543210")
        with pytest.raises(InvalidFlowInput):
            flows.submit_otp(flow, code)

    def test_invalid_email(self):
        flow = flows.choose_login_method(flows.begin_auth("zepto"), "email")
        with pytest.raises(InvalidFlowInput):
            flows.submit_email(flow, "not-an-email")

    def test_method_only_accepted_at_method_selection(self):
        flow = flows.choose_login_method(flows.begin_auth("zepto"), "phone")
        with pytest.raises(InvalidFlowInput):
            flows.choose_login_method(flow, "email")

    def test_new_auth_flow_never_inherits_old_data(self):
        old = flows.submit_phone(flows.choose_login_method(flows.begin_auth("zepto"), "phone"), "+919876543210")
        fresh = flows.begin_auth("blinkit")
        assert fresh.phone_number is None
        assert old.phone_number == "+919876543210"


class TestCheckoutFlow:

    def test_begin_dedupes_and_lowercases(self):
        flow = flows.begin_checkout(["Milk", "bread", "milk "])
        assert flow.items == ["milk", "bread"]
        assert flow.current_index == 0

    def test_begin_requires_items(self):
        with pytest.raises(InvalidFlowInput):
            flows.begin_checkout([])

    def test_walk_to_completion(self):
        flow = flows.begin_checkout(["milk", "bread"])
        flow = flows.record_checkout_choice(flow, "milk", "zepto")
        assert flow.current_item == "bread"
        flow = flows.record_checkout_choice(flow, "bread", None)
        assert flow.is_complete
        assert flow.selections == {"milk": "zepto", "bread": None}

    def test_choice_after_completion_is_rejected(self):
        flow = flows.record_checkout_choice(flows.begin_checkout(["milk"]), "milk", "zepto")
        with pytest.raises(InvalidFlowInput):
            flows.record_checkout_choice(flow, "milk", "blinkit")

    def test_resolve_item_by_substring(self):
        flow = flows.begin_checkout(["peanut butter", "milk"])
        assert flows.resolve_checkout_item(flow, "Peanut") == "peanut butter"
        with pytest.raises(InvalidFlowInput):
            flows.resolve_checkout_item(flow, "rice")

    def test_restart_keeps_selections(self):
        flow = flows.record_checkout_choice(flows.begin_checkout(["milk", "bread"]), "milk", "zepto")
        restarted = flows.restart_checkout(flow)
        assert restarted.current_index == 0
        assert restarted.selections == {"milk": "zepto"}


class TestOrderFlow:

    def test_begin_requires_items(self):
        with pytest.raises(InvalidFlowInput):
            flows.begin_order([], "c1")

    def test_record_selection(self):
        flow = flows.begin_order([OrderItem(name="milk"), OrderItem(name="bread")], "c1")
        updated = flows.record_order_selection(flow, "MILK", _suggestion(2))
        assert updated.selections["milk"].number == 2
        assert flow.selections == {}

    def test_record_selection_unknown_item(self):
        flow = flows.begin_order([OrderItem(name="milk")], "c1")
        with pytest.raises(InvalidFlowInput):
            flows.record_order_selection(flow, "rice", _suggestion(1))

    def test_pick_suggestion(self):
        suggestions = [_suggestion(1), _suggestion(2, "Nestle Fresh Milk 1L")]
        assert flows.pick_suggestion(suggestions, 2).name == "Nestle Fresh Milk 1L"
        with pytest.raises(InvalidFlowInput):
            flows.pick_suggestion(suggestions, 7)
