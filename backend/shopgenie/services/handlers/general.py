# /shopgenie/services/handlers/general.py

import logging

from shopgenie.config import strings
from shopgenie.config.retailers import format_retailer_list
from shopgenie.conversation.resolver import Route
from shopgenie.models.session import FlowKind
from shopgenie.services.cart_service import cart_service
from shopgenie.services.credential_service import credential_service
from shopgenie.services.handlers.context import MessageContext, end_flow
from shopgenie.services.price_service import price_service
from shopgenie.services.string_service import string_service
from shopgenie.services.user_service import user_service

logger = logging.getLogger(__name__)


async def handle_help(ctx: MessageContext, route: Route) -> str:
    return string_service.get_string("HELP_MESSAGE", strings.HELP_MESSAGE)


async def handle_unknown(ctx: MessageContext, route: Route) -> str:
    return string_service.get_string("UNKNOWN_INTENT", strings.UNKNOWN_INTENT)


async def handle_stop(ctx: MessageContext, route: Route) -> str:
    await user_service.set_allowed(ctx.user_id, False)
    return string_service.get_string("UNSUBSCRIBED", strings.UNSUBSCRIBED)


# ==================== Resets ====================

async def handle_clear_session(ctx: MessageContext, route: Route) -> str:
    await end_flow(ctx)
    return string_service.get_string("SESSION_CLEARED", strings.SESSION_CLEARED)


async def handle_clear_all(ctx: MessageContext, route: Route) -> str:
    """Clears the session, removes every connected retailer and empties the active cart."""
    await end_flow(ctx)
    await credential_service.delete_all_credentials(ctx.user_id)
    cart = await cart_service.get_active_cart(ctx.user_id)
    if cart:
        await cart_service.clear_cart(cart.id)
    logger.info(f"Cleared all data for user {ctx.user_id}")
    return string_service.get_string("ALL_DATA_CLEARED", strings.ALL_DATA_CLEARED)


async def handle_cancel(ctx: MessageContext, route: Route) -> str:
    kind = ctx.session.flow_kind
    await end_flow(ctx)
    if kind == FlowKind.CHECKOUT:
        return string_service.get_string("CHECKOUT_CANCELLED", strings.CHECKOUT_CANCELLED)
    if kind == FlowKind.ORDER:
        return string_service.get_string("ORDER_CANCELLED", strings.ORDER_CANCELLED)
    if kind == FlowKind.AUTH:
        return string_service.get_string("SESSION_CLEARED", strings.SESSION_CLEARED)
    return string_service.get_string("NOTHING_TO_CANCEL", strings.NOTHING_TO_CANCEL)


# ==================== Cart and prices ====================

async def handle_show_cart(ctx: MessageContext, route: Route) -> str:
    cart = await cart_service.get_active_cart(ctx.user_id)
    items = await cart_service.get_combined_items(cart.id) if cart else []
    if not items:
        return string_service.get_string("CART_EMPTY", strings.CART_EMPTY)
    return string_service.get_string("CART_SUMMARY", strings.CART_SUMMARY).format(
        items="\n".join(f"• {item.describe()}" for item in items)
    )


async def handle_show_prices(ctx: MessageContext, route: Route) -> str:
    """Cheapest price per connected retailer for the named items, or for the whole cart."""
    intent = route.params.get("intent")
    names = [item.name for item in intent.items] if intent is not None else []
    if not names:
        cart = await cart_service.get_active_cart(ctx.user_id)
        names = [item.name for item in await cart_service.get_combined_items(cart.id)] if cart else []
    if not names:
        return string_service.get_string("CART_EMPTY", strings.CART_EMPTY)

    connected = await credential_service.list_connected_retailers(ctx.user_id)
    blocks = [string_service.get_string("PRICE_COMPARISON_HEADER", strings.PRICE_COMPARISON_HEADER)]
    for name in names:
        prices = price_service.get_retailer_prices(name, connected)
        if prices:
            lines = "\n".join(f"• {p.retailer_name}: ₹{p.price} - {p.product}" for p in prices)
        else:
            lines = string_service.get_string("CHECKOUT_NO_PRICES", strings.CHECKOUT_NO_PRICES)
        blocks.append(f"*{name}*\n{lines}")
    return "\n\n".join(blocks)


async def handle_show_connected_retailers(ctx: MessageContext, route: Route) -> str:
    connected = await credential_service.list_connected_retailers(ctx.user_id)
    if not connected:
        return string_service.get_string("NO_CONNECTED_RETAILERS", strings.NO_CONNECTED_RETAILERS)
    return string_service.get_string("CONNECTED_RETAILERS", strings.CONNECTED_RETAILERS).format(
        retailers=format_retailer_list(connected)
    )


# ==================== Addresses ====================

async def handle_address_confirmation(ctx: MessageContext, route: Route) -> str:
    """Yes/no answer to a pending address. Never touches the session."""
    intent = route.params.get("intent")
    address = await user_service.get_primary_address(ctx.user_id)
    if address is None or address.confirmed or intent is None or intent.confirmed is None:
        return string_service.get_string("ADDRESS_NOTHING_PENDING", strings.ADDRESS_NOTHING_PENDING)

    if intent.confirmed:
        await user_service.confirm_primary_address(ctx.user_id)
        return string_service.get_string("ADDRESS_CONFIRMED", strings.ADDRESS_CONFIRMED)

    await user_service.reject_primary_address(ctx.user_id)
    return string_service.get_string("ADDRESS_REJECTED", strings.ADDRESS_REJECTED)
