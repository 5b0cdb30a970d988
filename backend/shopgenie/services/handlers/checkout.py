# /shopgenie/services/handlers/checkout.py

import logging
from typing import List

from shopgenie.config import strings
from shopgenie.config.retailers import format_retailer_list, get_retailer
from shopgenie.conversation import flows
from shopgenie.conversation.flows import InvalidFlowInput
from shopgenie.conversation.resolver import Route
from shopgenie.models.domain import FinalCart, RetailerOrder
from shopgenie.models.session import CheckoutFlow
from shopgenie.services.cart_service import cart_service
from shopgenie.services.credential_service import credential_service
from shopgenie.services.handlers.context import MessageContext, end_flow, save_flow
from shopgenie.services.price_service import price_service
from shopgenie.services.string_service import string_service

logger = logging.getLogger(__name__)


# ==================== Formatting ====================

def format_item_prompt(flow: CheckoutFlow, connected: List[str]) -> str:
    item = flow.current_item
    prices = price_service.get_retailer_prices(item, connected)
    if prices:
        price_lines = "\n".join(
            f"• *{p.retailer_name}*: ₹{p.price} - {p.product} ({p.delivery_time})" for p in prices
        )
        example = prices[0].retailer
    else:
        price_lines = string_service.get_string("CHECKOUT_NO_PRICES", strings.CHECKOUT_NO_PRICES)
        example = connected[0] if connected else "zepto"

    return string_service.get_string("CHECKOUT_ITEM_PROMPT", strings.CHECKOUT_ITEM_PROMPT).format(
        position=flow.current_index + 1,
        total=len(flow.items),
        item=item,
        prices=price_lines,
        example=example,
    )


def _amount(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


def format_order_lines(order: RetailerOrder) -> str:
    lines = [f"*{order.retailer_name}* (delivery in {order.delivery_time})"]
    for line in order.lines:
        if line.unit_price is None:
            lines.append(f"• {line.item}: price unavailable")
            continue
        lines.append(
            f"• {line.item}: {line.product}, ₹{line.unit_price} × {_amount(line.quantity)} = ₹{_amount(line.line_total)}"
        )
    lines.append(f"Subtotal: ₹{_amount(order.total)}")
    return "\n".join(lines)


def format_final_cart(final_cart: FinalCart) -> str:
    sections = [format_order_lines(order) for order in final_cart.orders]
    if final_cart.skipped:
        sections.append(f"Skipped: {', '.join(final_cart.skipped)}")
    return string_service.get_string("CHECKOUT_SUMMARY", strings.CHECKOUT_SUMMARY).format(
        summary="\n\n".join(sections), total=_amount(final_cart.total)
    )


async def _final_cart(ctx: MessageContext, flow: CheckoutFlow) -> FinalCart:
    cart = await cart_service.get_active_cart(ctx.user_id)
    cart_items = await cart_service.get_items(cart.id) if cart else []
    return cart_service.build_final_cart(flow.items, flow.selections, cart_items)


async def _continue_walk(ctx: MessageContext, flow: CheckoutFlow, acknowledgement: str) -> str:
    """Stores the advanced flow and shows either the next item or the final cart."""
    await save_flow(ctx, flow)
    if flow.is_complete:
        return f"{acknowledgement}\n\n{format_final_cart(await _final_cart(ctx, flow))}"
    connected = await credential_service.list_connected_retailers(ctx.user_id)
    return f"{acknowledgement}\n\n{format_item_prompt(flow, connected)}"


def _unknown_item(flow: CheckoutFlow, item: str) -> str:
    return string_service.get_string("CHECKOUT_UNKNOWN_ITEM", strings.CHECKOUT_UNKNOWN_ITEM).format(
        item=item, current=flow.current_item or "-"
    )


# ==================== Handlers ====================

async def handle_checkout_start(ctx: MessageContext, route: Route) -> str:
    """Snapshots the active cart's item names and walks them one at a time."""
    cart = await cart_service.get_active_cart(ctx.user_id)
    items = await cart_service.get_combined_items(cart.id) if cart else []
    if not items:
        return string_service.get_string("CART_EMPTY", strings.CART_EMPTY)

    flow = flows.begin_checkout([item.name for item in items])
    await save_flow(ctx, flow)
    logger.info(f"User {ctx.user_id} started checkout with {len(flow.items)} items")
    connected = await credential_service.list_connected_retailers(ctx.user_id)
    return format_item_prompt(flow, connected)


async def handle_checkout_select_retailer(ctx: MessageContext, route: Route) -> str:
    flow: CheckoutFlow = ctx.session.flow
    item = route.params.get("item", "")
    requested = route.params.get("retailer", "")

    if flow.is_complete:
        return format_final_cart(await _final_cart(ctx, flow))

    retailer = get_retailer(requested)
    if retailer is None:
        return string_service.get_string("RETAILER_NOT_SUPPORTED", strings.RETAILER_NOT_SUPPORTED).format(
            retailer=requested, retailers=format_retailer_list()
        )
    if not await credential_service.has_credentials(ctx.user_id, retailer.key):
        return string_service.get_string("CART_RETAILER_NOT_CONNECTED", strings.CART_RETAILER_NOT_CONNECTED).format(
            retailer=retailer.key
        )

    try:
        item_name = flows.resolve_checkout_item(flow, item)
        next_flow = flows.record_checkout_choice(flow, item_name, retailer.key)
    except InvalidFlowInput:
        return _unknown_item(flow, item)

    prices = price_service.get_retailer_prices(item_name, [retailer.key])
    if not prices:
        return string_service.get_string("CHECKOUT_RETAILER_NO_PRICE", strings.CHECKOUT_RETAILER_NO_PRICE).format(
            retailer_name=retailer.display_name, item=item_name
        )

    cart = await cart_service.get_active_cart(ctx.user_id)
    if cart:
        await cart_service.set_checkout_choice(cart.id, item_name, retailer.key)

    price = prices[0]
    acknowledgement = string_service.get_string("CHECKOUT_RETAILER_SELECTED", strings.CHECKOUT_RETAILER_SELECTED).format(
        retailer_name=retailer.display_name, item=item_name, product=price.product, price=price.price,
        delivery_time=price.delivery_time,
    )
    return await _continue_walk(ctx, next_flow, acknowledgement)


async def handle_checkout_skip(ctx: MessageContext, route: Route) -> str:
    flow: CheckoutFlow = ctx.session.flow
    item = route.params.get("item", "")

    if flow.is_complete:
        return format_final_cart(await _final_cart(ctx, flow))

    try:
        item_name = flows.resolve_checkout_item(flow, item)
        next_flow = flows.record_checkout_choice(flow, item_name, None)
    except InvalidFlowInput:
        return _unknown_item(flow, item)

    acknowledgement = string_service.get_string("CHECKOUT_ITEM_SKIPPED", strings.CHECKOUT_ITEM_SKIPPED).format(
        item=item_name
    )
    return await _continue_walk(ctx, next_flow, acknowledgement)


async def handle_checkout_confirm(ctx: MessageContext, route: Route) -> str:
    flow: CheckoutFlow = ctx.session.flow
    final_cart = await _final_cart(ctx, flow)
    if not final_cart.orders:
        return string_service.get_string("CHECKOUT_NOTHING_SELECTED", strings.CHECKOUT_NOTHING_SELECTED)

    cart = await cart_service.get_active_cart(ctx.user_id)
    if cart:
        await cart_service.mark_handed_off(cart.id)
    await end_flow(ctx)

    links = "\n\n".join(
        f"{format_order_lines(order)}\n{order.checkout_url}" for order in final_cart.orders
    )
    logger.info(f"User {ctx.user_id} confirmed checkout across {len(final_cart.orders)} retailers")
    return string_service.get_string("CHECKOUT_CONFIRMED", strings.CHECKOUT_CONFIRMED).format(
        links=links, total=_amount(final_cart.total)
    )


async def handle_checkout_incomplete(ctx: MessageContext, route: Route) -> str:
    flow: CheckoutFlow = ctx.session.flow
    return string_service.get_string("CHECKOUT_INCOMPLETE", strings.CHECKOUT_INCOMPLETE).format(
        remaining=flow.remaining, current=flow.current_item
    )


async def handle_checkout_edit(ctx: MessageContext, route: Route) -> str:
    flow = flows.restart_checkout(ctx.session.flow)
    await save_flow(ctx, flow)
    connected = await credential_service.list_connected_retailers(ctx.user_id)
    return format_item_prompt(flow, connected)


async def handle_no_active_checkout(ctx: MessageContext, route: Route) -> str:
    return string_service.get_string("CHECKOUT_NO_ACTIVE", strings.CHECKOUT_NO_ACTIVE)
