# backend/tests/unit/test_session_model.py

from shopgenie.models.domain import OrderItem, ProductSuggestion
from shopgenie.models.session import (
    AuthFlow,
    AuthStep,
    CheckoutFlow,
    FlowKind,
    OrderFlow,
    Session,
)


def test_empty_session_blob():
    session = Session(user_id="u1")
    assert session.flow_kind == FlowKind.NONE
    assert session.flow_step is None
    assert session.is_empty
    assert session.to_blob() == {"flow_kind": "none", "flow_step": None, "flow_data": {}}


def test_auth_blob_drops_unset_fields():
    session = Session(user_id="u1", flow=AuthFlow(step=AuthStep.METHOD_SELECTION, retailer="zepto"))
    assert session.to_blob() == {
        "flow_kind": "auth",
        "flow_step": "method_selection",
        "flow_data": {"retailer": "zepto"},
    }


def test_checkout_round_trip():
    flow = CheckoutFlow(items=["milk", "bread"], current_index=1, selections={"milk": "zepto"})
    blob = Session(user_id="u1", flow=flow).to_blob()

    restored = Session.from_blob("u1", blob, version=4)

    assert restored.flow == flow
    assert restored.version == 4
    assert restored.flow_kind == FlowKind.CHECKOUT
    assert restored.flow.current_item == "bread"
    assert restored.flow.remaining == 1


def test_order_round_trip_keeps_suggestions():
    suggestion = ProductSuggestion(
        number=1, name="Amul Full Cream Milk 1L", price=58, retailer="zepto",
        retailer_name="Zepto", delivery_time="10 min", search_url="https://www.zepto.in/search?q=milk",
    )
    flow = OrderFlow(items=[OrderItem(name="milk")], cart_id="c1", selections={"milk": suggestion})

    restored = Session.from_blob("u1", Session(user_id="u1", flow=flow).to_blob())

    assert restored.flow.selections["milk"] == suggestion


def test_flow_without_step_is_stale():
    session = Session.from_blob("u1", {"flow_kind": "auth", "flow_step": None, "flow_data": {"retailer": "zepto"}})
    assert session.stale
    assert session.flow is None
    assert not session.is_empty


def test_unparseable_flow_data_is_stale():
    session = Session.from_blob("u1", {"flow_kind": "checkout", "flow_step": "item_selection", "flow_data": {}})
    assert session.stale


def test_missing_blob_is_empty():
    assert Session.from_blob("u1", None).is_empty
    assert Session.from_blob("u1", {"flow_kind": "none"}).is_empty


def test_order_flow_find_item():
    flow = OrderFlow(items=[OrderItem(name="peanut butter"), OrderItem(name="milk")], cart_id="c1")
    assert flow.find_item("Milk").name == "milk"
    assert flow.find_item("butter").name == "peanut butter"
    assert flow.find_item("rice") is None


def test_secret_steps():
    assert Session(user_id="u1", flow=AuthFlow(step=AuthStep.OTP_INPUT, retailer="zepto",
                                               phone_number="+919876543210")).expects_secret
    assert Session(user_id="u1", flow=AuthFlow(step=AuthStep.PASSWORD_INPUT, retailer="zepto",
                                               email="a@b.co")).expects_secret
    assert not Session(user_id="u1", flow=AuthFlow(step=AuthStep.EMAIL_INPUT, retailer="zepto")).expects_secret
    assert not Session(user_id="u1", flow=CheckoutFlow(items=["milk"])).expects_secret
    assert not Session(user_id="u1").expects_secret
