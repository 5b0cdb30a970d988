# /shopgenie/services/cart_service.py

import logging
from typing import Dict, List, Optional

from shopgenie.config.retailers import get_retailer
from shopgenie.models.domain import (
    Cart, CartItem, FinalCart, FinalCartLine, OrderItem, ProductSuggestion, RetailerOrder, RetailerPrice,
)
from shopgenie.services.db_service import CartStatus, db_service
from shopgenie.services.price_service import price_service

logger = logging.getLogger(__name__)


def _to_cart(document: Dict) -> Cart:
    return Cart(id=document["_id"], user_id=document["user_id"], status=document.get("status", CartStatus.ACTIVE),
                created_at=document.get("created_at"))


def _to_item(document: Dict) -> CartItem:
    return CartItem(
        id=document["_id"],
        cart_id=document["cart_id"],
        name=document["name"],
        quantity=document.get("quantity", 1),
        unit=document.get("unit", "pc"),
        product_name=document.get("product_name"),
        product_price=document.get("product_price"),
        retailer=document.get("retailer"),
    )


class CartService:
    """Active-cart bookkeeping and the final per-retailer hand-off."""

    async def get_active_cart(self, user_id: str) -> Optional[Cart]:
        document = await db_service.get_active_cart(user_id)
        return _to_cart(document) if document else None

    async def create_cart(self, user_id: str) -> Cart:
        cart = _to_cart(await db_service.create_cart(user_id))
        logger.info(f"Created cart {cart.id} for user {user_id}")
        return cart

    async def get_or_create_active_cart(self, user_id: str) -> Cart:
        return await self.get_active_cart(user_id) or await self.create_cart(user_id)

    async def add_item(self, cart_id: str, item: OrderItem, product: Optional[ProductSuggestion] = None) -> None:
        """Adds an item, merging quantities with an existing line of the same name and unit."""
        name = item.name.strip().lower()
        existing = await db_service.find_cart_item(cart_id, name, item.unit)
        if existing:
            await db_service.increment_cart_item(existing["_id"], item.quantity)
            if product is not None:
                await self.set_item_product(existing["_id"], product)
            return

        document = {"cart_id": cart_id, "name": name, "quantity": item.quantity, "unit": item.unit}
        if product is not None:
            document.update(product_name=product.name, product_price=product.price, retailer=product.retailer)
        await db_service.insert_cart_item(document)

    async def get_items(self, cart_id: str) -> List[CartItem]:
        return [_to_item(doc) for doc in await db_service.get_cart_items(cart_id)]

    async def get_combined_items(self, cart_id: str) -> List[CartItem]:
        """Lines grouped by name and unit with quantities summed."""
        combined: Dict[tuple, CartItem] = {}
        for item in await self.get_items(cart_id):
            key = (item.name, item.unit)
            if key in combined:
                merged = combined[key]
                merged.quantity += item.quantity
                merged.product_name = merged.product_name or item.product_name
                merged.product_price = merged.product_price or item.product_price
                merged.retailer = merged.retailer or item.retailer
            else:
                combined[key] = item.model_copy()
        return list(combined.values())

    def match_items(self, items: List[CartItem], names: List[str]) -> List[CartItem]:
        """Cart lines whose name matches any of the given names (exact or substring)."""
        wanted = [n.strip().lower() for n in names if n and n.strip()]
        return [item for item in items if any(w == item.name or w in item.name or item.name in w for w in wanted)]

    async def remove_items(self, cart_id: str, names: List[str]) -> List[str]:
        matched = self.match_items(await self.get_items(cart_id), names)
        removed = sorted({item.name for item in matched})
        if removed:
            await db_service.delete_cart_items(cart_id, removed)
        return removed

    async def set_item_product(self, item_id: str, product: ProductSuggestion) -> None:
        await db_service.update_cart_item(item_id, {
            "product_name": product.name,
            "product_price": product.price,
            "retailer": product.retailer,
        })

    async def set_item_retailer(self, item_id: str, retailer: str, price: Optional[RetailerPrice] = None) -> None:
        """Records the retailer for a line; with a price, the priced product replaces any earlier pick."""
        fields = {"retailer": retailer}
        if price is not None:
            fields.update(product_name=price.product, product_price=price.price)
        await db_service.update_cart_item(item_id, fields)

    async def choose_retailer(self, lines: List[CartItem], retailer: str) -> None:
        """
        Moves cart lines to a retailer. A product already picked at that
        retailer is kept; otherwise the retailer's cheapest catalog product
        is recorded.
        """
        for line in lines:
            if line.retailer == retailer and line.product_price is not None:
                await self.set_item_retailer(line.id, retailer)
                continue
            prices = price_service.get_retailer_prices(line.name, [retailer])
            await self.set_item_retailer(line.id, retailer, prices[0] if prices else None)

    async def set_checkout_choice(self, cart_id: str, item_name: str, retailer: str) -> int:
        """Stores a checkout choice on every cart line of the item."""
        lines = [item for item in await self.get_items(cart_id) if item.name == item_name]
        await self.choose_retailer(lines, retailer)
        return len(lines)

    async def clear_cart(self, cart_id: str) -> int:
        return await db_service.delete_cart_items(cart_id)

    async def mark_handed_off(self, cart_id: str) -> None:
        await db_service.set_cart_status(cart_id, CartStatus.HANDED_OFF)
        logger.info(f"Cart {cart_id} handed off to retailers")

    def _price_line(self, item: str, retailer_key: str, cart_lines: List[CartItem]) -> FinalCartLine:
        quantity = sum(line.quantity for line in cart_lines) or 1
        unit = cart_lines[0].unit if cart_lines else "pc"
        picked = next(
            (line for line in cart_lines if line.retailer == retailer_key and line.product_price is not None), None
        )
        if picked is not None:
            return FinalCartLine(item=item, quantity=quantity, unit=unit,
                                 product=picked.product_name, unit_price=picked.product_price)

        prices = price_service.get_retailer_prices(item, [retailer_key])
        if not prices:
            return FinalCartLine(item=item, quantity=quantity, unit=unit)
        return FinalCartLine(item=item, quantity=quantity, unit=unit,
                             product=prices[0].product, unit_price=prices[0].price)

    def build_final_cart(
        self,
        items: List[str],
        selections: Dict[str, Optional[str]],
        cart_items: Optional[List[CartItem]] = None,
    ) -> FinalCart:
        """
        Groups items by their selected retailer and builds one search link
        per retailer. Items without a selection are reported as skipped.

        Each line is priced from the product stored on the cart at that
        retailer, falling back to the retailer's cheapest catalog product.
        Quantities are summed over the cart lines of the same name.
        """
        lines_by_name: Dict[str, List[CartItem]] = {}
        for line in cart_items or []:
            lines_by_name.setdefault(line.name, []).append(line)

        grouped: Dict[str, List[FinalCartLine]] = {}
        skipped: List[str] = []
        for item in items:
            retailer = get_retailer(selections.get(item))
            if retailer is None:
                skipped.append(item)
                continue
            grouped.setdefault(retailer.key, []).append(
                self._price_line(item, retailer.key, lines_by_name.get(item, []))
            )

        orders = []
        for retailer_key, lines in grouped.items():
            retailer = get_retailer(retailer_key)
            orders.append(RetailerOrder(
                retailer=retailer.key,
                retailer_name=retailer.display_name,
                delivery_time=retailer.delivery_time,
                lines=lines,
                checkout_url=retailer.search_link(" ".join(line.item for line in lines)),
            ))
        return FinalCart(orders=orders, skipped=skipped)


cart_service = CartService()
