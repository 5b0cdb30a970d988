# /shopgenie/services/handlers/order.py

import logging
from collections import defaultdict
from typing import Dict, List

from shopgenie.config import strings
from shopgenie.config.retailers import get_retailer
from shopgenie.conversation import flows
from shopgenie.conversation.flows import InvalidFlowInput
from shopgenie.conversation.resolver import Route
from shopgenie.models.domain import OrderItem, ProductSuggestion
from shopgenie.models.intent import ResolvedIntent
from shopgenie.models.session import OrderFlow
from shopgenie.services.cart_service import cart_service
from shopgenie.services.credential_service import credential_service
from shopgenie.services.geocoding_service import geocoding_service
from shopgenie.services.handlers.context import MessageContext, end_flow, save_flow
from shopgenie.services.price_service import price_service
from shopgenie.services.string_service import string_service
from shopgenie.services.user_service import user_service

logger = logging.getLogger(__name__)


def _intent(route: Route) -> ResolvedIntent:
    return route.params.get("intent") or ResolvedIntent()


def _format_suggestions(items: List[OrderItem], connected: List[str]) -> str:
    blocks = [string_service.get_string("ORDER_SUGGESTIONS_HEADER", strings.ORDER_SUGGESTIONS_HEADER)]
    for item in items:
        suggestions = price_service.get_suggestions(item.name, connected)
        if not suggestions:
            blocks.append(
                string_service.get_string("ORDER_NO_SUGGESTIONS", strings.ORDER_NO_SUGGESTIONS).format(item=item.name)
            )
            continue
        lines = [f"*{item.describe()}*"]
        lines.extend(
            f"{s.number}. {s.name} - ₹{s.price} ({s.retailer_name}, {s.delivery_time})" for s in suggestions
        )
        blocks.append("\n".join(lines))
    blocks.append(string_service.get_string("ORDER_SUGGESTIONS_FOOTER", strings.ORDER_SUGGESTIONS_FOOTER))
    return "\n\n".join(blocks)


# ==================== Order flow ====================

async def handle_order(ctx: MessageContext, route: Route) -> str:
    """
    Address first, then items. An address in the message is stored
    unconfirmed and must be confirmed before an order can start. With a
    confirmed address and parsed items the order flow begins and product
    suggestions are shown.
    """
    intent = _intent(route)

    if intent.address:
        geo = await geocoding_service.geocode(intent.address)
        address = await user_service.save_unconfirmed_address(ctx.user_id, intent.address, geo)
        return string_service.get_string("ADDRESS_CONFIRM_REQUEST", strings.ADDRESS_CONFIRM_REQUEST).format(
            address=address.display
        )

    address = await user_service.get_primary_address(ctx.user_id)
    if address is None:
        return string_service.get_string("ADDRESS_REQUEST", strings.ADDRESS_REQUEST)
    if not address.confirmed:
        return string_service.get_string("ADDRESS_CONFIRM_REQUEST", strings.ADDRESS_CONFIRM_REQUEST).format(
            address=address.display
        )

    if not intent.items:
        return string_service.get_string("ORDER_ASK_ITEMS", strings.ORDER_ASK_ITEMS)

    cart = await cart_service.get_or_create_active_cart(ctx.user_id)
    flow = flows.begin_order(intent.items, cart.id)
    await save_flow(ctx, flow)
    logger.info(f"User {ctx.user_id} started an order with {len(flow.items)} items")

    connected = await credential_service.list_connected_retailers(ctx.user_id)
    return _format_suggestions(flow.items, connected)


async def handle_order_select(ctx: MessageContext, route: Route) -> str:
    flow: OrderFlow = ctx.session.flow
    number = route.params.get("number")
    requested = route.params.get("item", "")

    item = flow.find_item(requested)
    if item is None:
        return string_service.get_string("ORDER_UNKNOWN_ITEM", strings.ORDER_UNKNOWN_ITEM).format(
            item=requested, items=", ".join(i.name for i in flow.items)
        )

    connected = await credential_service.list_connected_retailers(ctx.user_id)
    try:
        suggestion = flows.pick_suggestion(price_service.get_suggestions(item.name, connected), number)
    except InvalidFlowInput:
        return string_service.get_string("ORDER_INVALID_SELECTION", strings.ORDER_INVALID_SELECTION).format(
            number=number, item=item.name
        )

    await save_flow(ctx, flows.record_order_selection(flow, item.name, suggestion))
    return string_service.get_string("ORDER_SELECTION_RECORDED", strings.ORDER_SELECTION_RECORDED).format(
        product=suggestion.name, item=item.name
    )


async def handle_order_select_all(ctx: MessageContext, route: Route) -> str:
    """Applies the same option number to every item that offers it."""
    flow: OrderFlow = ctx.session.flow
    number = route.params.get("number")
    connected = await credential_service.list_connected_retailers(ctx.user_id)

    replies = []
    for item in flow.items:
        try:
            suggestion = flows.pick_suggestion(price_service.get_suggestions(item.name, connected), number)
        except InvalidFlowInput:
            replies.append(
                string_service.get_string("ORDER_INVALID_SELECTION", strings.ORDER_INVALID_SELECTION).format(
                    number=number, item=item.name
                )
            )
            continue
        flow = flows.record_order_selection(flow, item.name, suggestion)
        replies.append(
            string_service.get_string("ORDER_SELECTION_RECORDED", strings.ORDER_SELECTION_RECORDED).format(
                product=suggestion.name, item=item.name
            )
        )

    if flow.selections != ctx.session.flow.selections:
        await save_flow(ctx, flow)
    return "\n".join(replies)


async def handle_order_add_selected(ctx: MessageContext, route: Route) -> str:
    """Adds every requested item to the pre-created cart, with its chosen product when there is one."""
    flow: OrderFlow = ctx.session.flow
    lines = []
    for item in flow.items:
        product = flow.selections.get(item.name)
        await cart_service.add_item(flow.cart_id, item, product)
        lines.append(f"• {item.describe()}" + (f" ({product.name}, {product.retailer_name})" if product else ""))

    await end_flow(ctx)
    logger.info(f"User {ctx.user_id} added {len(flow.items)} items to cart {flow.cart_id}")
    return string_service.get_string("ORDER_ITEMS_ADDED", strings.ORDER_ITEMS_ADDED).format(items="\n".join(lines))


async def handle_no_order_selection(ctx: MessageContext, route: Route) -> str:
    return string_service.get_string("ORDER_NO_ITEMS_SELECTED", strings.ORDER_NO_ITEMS_SELECTED)


# ==================== Standalone cart intents ====================

async def handle_add_item(ctx: MessageContext, route: Route) -> str:
    intent = _intent(route)
    if not intent.items:
        return string_service.get_string("CART_NOTHING_TO_ADD", strings.CART_NOTHING_TO_ADD)

    cart = await cart_service.get_or_create_active_cart(ctx.user_id)
    for item in intent.items:
        await cart_service.add_item(cart.id, item)
    return string_service.get_string("CART_ITEMS_ADDED", strings.CART_ITEMS_ADDED).format(
        items=", ".join(item.describe() for item in intent.items)
    )


async def handle_remove_item(ctx: MessageContext, route: Route) -> str:
    intent = _intent(route)
    cart = await cart_service.get_active_cart(ctx.user_id)
    if cart is None:
        return string_service.get_string("CART_EMPTY", strings.CART_EMPTY)

    names = [item.name for item in intent.items]
    removed = await cart_service.remove_items(cart.id, names) if names else []
    if not removed:
        return string_service.get_string("CART_ITEM_NOT_FOUND", strings.CART_ITEM_NOT_FOUND).format(
            items=", ".join(names) or "those items"
        )
    return string_service.get_string("CART_ITEMS_REMOVED", strings.CART_ITEMS_REMOVED).format(items=", ".join(removed))


async def handle_product_selection(ctx: MessageContext, route: Route) -> str:
    """
    "1 for milk" / "all 1" outside an order flow: applies the numbered
    suggestion to items already in the active cart.
    """
    intent = _intent(route)
    cart = await cart_service.get_active_cart(ctx.user_id)
    items = await cart_service.get_combined_items(cart.id) if cart else []
    if not items:
        return string_service.get_string("CART_EMPTY", strings.CART_EMPTY)

    choice = intent.choices
    if choice is None:
        return string_service.get_string("UNKNOWN_INTENT", strings.UNKNOWN_INTENT)

    targets = items if choice.select_all else cart_service.match_items(items, [choice.item or ""])
    if not targets:
        return string_service.get_string("CART_ITEM_NOT_FOUND", strings.CART_ITEM_NOT_FOUND).format(
            items=choice.item or "that item"
        )

    connected = await credential_service.list_connected_retailers(ctx.user_id)
    replies = []
    for item in targets:
        try:
            suggestion: ProductSuggestion = flows.pick_suggestion(
                price_service.get_suggestions(item.name, connected), choice.number
            )
        except InvalidFlowInput:
            replies.append(
                string_service.get_string("ORDER_INVALID_SELECTION", strings.ORDER_INVALID_SELECTION).format(
                    number=choice.number, item=item.name
                )
            )
            continue
        await cart_service.set_item_product(item.id, suggestion)
        replies.append(
            string_service.get_string("PRODUCT_SELECTION_RECORDED", strings.PRODUCT_SELECTION_RECORDED).format(
                item=item.name, product=suggestion.name
            )
        )
    return "\n".join(replies)


async def handle_retailer_selection(ctx: MessageContext, route: Route) -> str:
    """Records a preferred retailer on cart items, e.g. "zepto for milk, blinkit for bread"."""
    intent = _intent(route)
    cart = await cart_service.get_active_cart(ctx.user_id)
    items = await cart_service.get_items(cart.id) if cart else []
    if not items:
        return string_service.get_string("CART_EMPTY", strings.CART_EMPTY)

    choices: Dict[str, str] = dict(intent.retailer_choices)
    if not choices and intent.retailer:
        names = [item.name for item in intent.items] or sorted({item.name for item in items})
        choices = {name: intent.retailer for name in names}

    by_retailer: Dict[str, List[str]] = defaultdict(list)
    for name, retailer_key in choices.items():
        by_retailer[retailer_key].append(name)

    connected = await credential_service.list_connected_retailers(ctx.user_id)
    replies = []
    for retailer_key, names in by_retailer.items():
        retailer = get_retailer(retailer_key)
        if retailer is None or retailer.key not in connected:
            replies.append(
                string_service.get_string("CART_RETAILER_NOT_CONNECTED", strings.CART_RETAILER_NOT_CONNECTED).format(
                    retailer=retailer_key
                )
            )
            continue
        matched = cart_service.match_items(items, names)
        if not matched:
            replies.append(
                string_service.get_string("CART_ITEM_NOT_FOUND", strings.CART_ITEM_NOT_FOUND).format(
                    items=", ".join(names)
                )
            )
            continue
        await cart_service.choose_retailer(matched, retailer.key)
        replies.append(
            string_service.get_string("CART_RETAILER_PREFERENCE", strings.CART_RETAILER_PREFERENCE).format(
                retailer_name=retailer.display_name, items=", ".join(sorted({i.name for i in matched}))
            )
        )

    if not replies:
        return string_service.get_string("UNKNOWN_INTENT", strings.UNKNOWN_INTENT)
    return "\n".join(replies)
