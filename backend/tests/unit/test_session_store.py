# backend/tests/unit/test_session_store.py

import pytest

from shopgenie.conversation import flows
from shopgenie.models.domain import OrderItem
from shopgenie.models.session import FlowKind
from shopgenie.services.session_store import SessionConflictError, session_store


@pytest.mark.asyncio
async def test_get_unknown_user_is_empty(sessions):
    session = await session_store.get("u1")
    assert session.is_empty
    assert session.version == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("flow", [
    flows.begin_auth("zepto"),
    flows.submit_phone(flows.choose_login_method(flows.begin_auth("zepto"), "phone"), "+919876543210"),
    flows.begin_checkout(["milk", "bread", "eggs"]),
    flows.begin_order([OrderItem(name="milk")], "c1"),
])
async def test_clear_always_yields_empty_session(sessions, flow):
    await session_store.set_flow("u1", flow)

    await session_store.clear("u1")
    session = await session_store.get("u1")

    assert session.is_empty
    assert session.to_blob() == {"flow_kind": "none", "flow_step": None, "flow_data": {}}


@pytest.mark.asyncio
async def test_clear_removes_stale_blob(sessions):
    sessions.rows["u1"] = {"flow_kind": "auth", "flow_step": None, "flow_data": {"retailer": "zepto"}, "version": 3}
    assert (await session_store.get("u1")).stale

    await session_store.clear("u1")

    assert (await session_store.get("u1")).is_empty


@pytest.mark.asyncio
async def test_every_write_bumps_version(sessions):
    first = await session_store.set_flow("u1", flows.begin_auth("zepto"))
    second = await session_store.set_flow("u1", flows.begin_auth("blinkit"), expected_version=first.version)
    assert second.version == first.version + 1
    assert second.flow.retailer == "blinkit"


@pytest.mark.asyncio
async def test_stale_version_write_conflicts(sessions):
    current = await session_store.set_flow("u1", flows.begin_auth("zepto"))

    with pytest.raises(SessionConflictError):
        await session_store.clear("u1", expected_version=current.version - 1)

    assert (await session_store.get("u1")).flow_kind == FlowKind.AUTH


@pytest.mark.asyncio
async def test_merge_replaces_flow_data_wholesale(sessions):
    await session_store.set_flow("u1", flows.submit_email(
        flows.choose_login_method(flows.begin_auth("zepto"), "email"), "a@b.co"
    ))

    session = await session_store.merge("u1", {"flow_step": "email_input", "flow_data": {"retailer": "zepto"}})

    assert session.flow.email is None
    assert sessions.rows["u1"]["flow_data"] == {"retailer": "zepto"}


@pytest.mark.asyncio
async def test_merge_rejects_unknown_fields(sessions):
    with pytest.raises(ValueError):
        await session_store.merge("u1", {"order_mode": True})
