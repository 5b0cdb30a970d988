# backend/tests/unit/test_price_cart.py

import pytest

from shopgenie.models.domain import CartItem, OrderItem
from shopgenie.services.cart_service import cart_service
from shopgenie.services.price_service import MAX_SUGGESTIONS, price_service


class TestPriceService:

    def test_suggestions_are_cheapest_first_and_numbered(self):
        suggestions = price_service.get_suggestions("milk", ["zepto", "blinkit"])

        assert len(suggestions) == MAX_SUGGESTIONS
        assert [s.number for s in suggestions] == [1, 2, 3, 4, 5, 6]
        assert [s.price for s in suggestions] == sorted(s.price for s in suggestions)
        first = suggestions[0]
        assert (first.name, first.price, first.retailer) == ("Mother Dairy Toned Milk 1L", 54, "zepto")
        assert first.search_url.startswith("https://www.zepto.in/search?q=")

    def test_suggestions_are_deterministic(self):
        assert price_service.get_suggestions("bread", ["zepto"]) == price_service.get_suggestions("bread", ["zepto"])

    def test_only_connected_retailers_are_priced(self):
        assert price_service.get_suggestions("milk", []) == []
        assert {s.retailer for s in price_service.get_suggestions("milk", ["instamart"])} == {"instamart"}

    def test_unknown_item_has_no_suggestions(self):
        assert price_service.get_suggestions("caviar", ["zepto"]) == []
        assert price_service.get_retailer_prices("caviar", ["zepto"]) == []

    @pytest.mark.parametrize("name, expected", [
        ("curd", "Mother Dairy Curd 400g"),
        ("Peanut Butter", "Pintola Peanut Butter 340g"),
        ("breads", "Modern White Bread 400g"),
        ("egg", "Fresho Table Eggs 6pc"),
    ])
    def test_catalog_lookup_variants(self, name, expected):
        assert price_service.get_suggestions(name, ["zepto"])[0].name == expected

    def test_retailer_prices(self):
        prices = price_service.get_retailer_prices("milk", ["blinkit", "zepto"])
        assert [(p.retailer, p.price) for p in prices] == [("zepto", 54), ("blinkit", 57)]


class TestCartService:

    @pytest.mark.asyncio
    async def test_add_item_merges_same_name_and_unit(self, fake_db):
        cart = await cart_service.get_or_create_active_cart("u1")
        await cart_service.add_item(cart.id, OrderItem(name="Milk", quantity=1, unit="L"))
        await cart_service.add_item(cart.id, OrderItem(name="milk", quantity=2, unit="L"))
        await cart_service.add_item(cart.id, OrderItem(name="bread"))

        items = await cart_service.get_combined_items(cart.id)

        assert [(i.name, i.quantity, i.unit) for i in items] == [("milk", 3, "L"), ("bread", 1, "pc")]

    @pytest.mark.asyncio
    async def test_add_item_with_product(self, fake_db):
        cart = await cart_service.get_or_create_active_cart("u1")
        product = price_service.get_suggestions("milk", ["zepto"])[0]

        await cart_service.add_item(cart.id, OrderItem(name="milk"), product)

        item = (await cart_service.get_items(cart.id))[0]
        assert item.product_name == product.name
        assert item.retailer == "zepto"

    @pytest.mark.asyncio
    async def test_get_or_create_reuses_active_cart(self, fake_db):
        first = await cart_service.get_or_create_active_cart("u1")
        second = await cart_service.get_or_create_active_cart("u1")
        assert first.id == second.id

    @pytest.mark.asyncio
    async def test_remove_items_by_substring(self, fake_db):
        cart = await cart_service.get_or_create_active_cart("u1")
        await cart_service.add_item(cart.id, OrderItem(name="peanut butter"))
        await cart_service.add_item(cart.id, OrderItem(name="milk"))

        removed = await cart_service.remove_items(cart.id, ["butter"])

        assert removed == ["peanut butter"]
        assert [i.name for i in await cart_service.get_items(cart.id)] == ["milk"]

    @pytest.mark.asyncio
    async def test_mark_handed_off_closes_cart(self, fake_db):
        cart = await cart_service.get_or_create_active_cart("u1")
        await cart_service.mark_handed_off(cart.id)

        assert await cart_service.get_active_cart("u1") is None
        assert fake_db.carts[0]["status"] == "handed_off"

    def test_build_final_cart_groups_by_retailer(self):
        final_cart = cart_service.build_final_cart(
            ["milk", "bread", "eggs"], {"milk": "zepto", "bread": None, "eggs": "zepto"}
        )

        assert len(final_cart.orders) == 1
        order = final_cart.by_retailer["zepto"]
        assert order.items == ["milk", "eggs"]
        assert order.checkout_url == "https://www.zepto.in/search?q=milk+eggs"
        assert final_cart.skipped == ["bread"]

    def test_match_items(self):
        items = [CartItem(id="1", cart_id="c", name="milk"), CartItem(id="2", cart_id="c", name="bread")]
        assert [i.id for i in cart_service.match_items(items, ["Milk"])] == ["1"]
        assert cart_service.match_items(items, ["", "rice"]) == []

    def test_build_final_cart_prices_lines_and_totals(self):
        cart_items = [
            CartItem(id="1", cart_id="c", name="milk", quantity=2, unit="L"),
            CartItem(id="2", cart_id="c", name="bread", product_name="Modern White Bread 400g",
                     product_price=29, retailer="blinkit"),
        ]

        final_cart = cart_service.build_final_cart(
            ["milk", "bread"], {"milk": "zepto", "bread": "blinkit"}, cart_items
        )

        zepto, blinkit = final_cart.by_retailer["zepto"], final_cart.by_retailer["blinkit"]
        milk = zepto.lines[0]
        assert (milk.product, milk.unit_price, milk.quantity, milk.line_total) == ("Mother Dairy Toned Milk 1L", 54, 2, 108)
        assert zepto.delivery_time == "10 min"
        assert blinkit.lines[0].unit_price == 29
        assert (zepto.total, blinkit.total, final_cart.total) == (108, 29, 137)

    def test_unpriced_line_adds_nothing_to_total(self):
        final_cart = cart_service.build_final_cart(["saffron", "eggs"], {"saffron": "zepto", "eggs": "zepto"})

        saffron, eggs = final_cart.by_retailer["zepto"].lines
        assert saffron.unit_price is None
        assert eggs.unit_price == 48
        assert final_cart.total == 48

    @pytest.mark.asyncio
    async def test_set_checkout_choice_records_retailer_product(self, fake_db):
        cart = await cart_service.get_or_create_active_cart("u1")
        zepto_bread = price_service.get_suggestions("bread", ["zepto"])[0]
        await cart_service.add_item(cart.id, OrderItem(name="bread"), zepto_bread)
        await cart_service.add_item(cart.id, OrderItem(name="milk"))

        updated = await cart_service.set_checkout_choice(cart.id, "bread", "blinkit")

        assert updated == 1
        bread, milk = await cart_service.get_items(cart.id)
        assert (bread.retailer, bread.product_name, bread.product_price) == ("blinkit", "Modern White Bread 400g", 29)
        assert milk.retailer is None

    @pytest.mark.asyncio
    async def test_choose_retailer_keeps_product_picked_there(self, fake_db):
        cart = await cart_service.get_or_create_active_cart("u1")
        pricier = [s for s in price_service.get_suggestions("milk", ["zepto"]) if s.price > 54][0]
        await cart_service.add_item(cart.id, OrderItem(name="milk"), pricier)

        await cart_service.choose_retailer(await cart_service.get_items(cart.id), "zepto")

        item = (await cart_service.get_items(cart.id))[0]
        assert (item.product_name, item.product_price) == (pricier.name, pricier.price)
