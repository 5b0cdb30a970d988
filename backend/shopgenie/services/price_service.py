# /shopgenie/services/price_service.py

import logging
from typing import Dict, List, Optional, Tuple

from shopgenie.config.retailers import SUPPORTED_RETAILERS, Retailer
from shopgenie.models.domain import ProductSuggestion, RetailerPrice

logger = logging.getLogger(__name__)

MAX_SUGGESTIONS = 6

# Deterministic product catalog: item -> [(product name, base price in INR)].
# Each retailer's price is the base price times its multiplier.
PRODUCT_VARIANTS: Dict[str, List[Tuple[str, int]]] = {
    "milk": [
        ("Amul Full Cream Milk 1L", 58),
        ("Nestle Fresh Milk 1L", 62),
        ("Mother Dairy Toned Milk 1L", 54),
    ],
    "butter": [
        ("Amul Butter 100g", 55),
        ("Nestle Butter 100g", 58),
        ("Mother Dairy Butter 100g", 52),
    ],
    "peanut butter": [
        ("Skippy Peanut Butter 340g", 185),
        ("Pintola Peanut Butter 340g", 165),
        ("MyFitness Peanut Butter 340g", 195),
    ],
    "bread": [
        ("Britannia Brown Bread 400g", 35),
        ("Harvest Gold Wheat Bread 400g", 32),
        ("Modern White Bread 400g", 28),
    ],
    "cheese": [
        ("Amul Processed Cheese 200g", 95),
        ("Britannia Cheese Slices 200g", 88),
        ("Go Cheese Block 200g", 102),
    ],
    "yogurt": [
        ("Amul Masti Dahi 400g", 25),
        ("Nestle A+ Curd 400g", 28),
        ("Mother Dairy Curd 400g", 22),
    ],
    "chips": [
        ("Lay's Classic Salted 30g", 20),
        ("Kurkure Chilli Chatka 30g", 18),
        ("Pringles Original 110g", 95),
    ],
    "snacks": [
        ("Haldiram's Mixture 150g", 45),
        ("Bikaji Bhujia 200g", 35),
        ("Kurkure Chilli Chatka 30g", 18),
    ],
    "rice": [
        ("India Gate Basmati Rice 1kg", 145),
        ("Daawat Rozana Basmati 1kg", 98),
        ("Fortune Sona Masoori 1kg", 72),
    ],
    "eggs": [
        ("Eggoz Farm Fresh Eggs 6pc", 65),
        ("Kegg Brown Eggs 6pc", 72),
        ("Fresho Table Eggs 6pc", 48),
    ],
}

ITEM_ALIASES = {
    "curd": "yogurt",
    "dahi": "yogurt",
    "egg": "eggs",
    "namkeen": "snacks",
}


class PriceService:
    """
    Price lookups against the static catalog. Retailer scraping is not
    performed; results are stable for a given item and retailer set.
    """

    def _catalog_key(self, item_name: str) -> Optional[str]:
        name = (item_name or "").strip().lower()
        name = ITEM_ALIASES.get(name, name)
        if name in PRODUCT_VARIANTS:
            return name
        if name.endswith("s") and name[:-1] in PRODUCT_VARIANTS:
            return name[:-1]
        # Longest key first so "peanut butter" wins over "butter"
        for key in sorted(PRODUCT_VARIANTS, key=len, reverse=True):
            if key in name:
                return key
        return None

    def _retailers(self, retailer_keys: List[str]) -> List[Retailer]:
        return [SUPPORTED_RETAILERS[k] for k in retailer_keys if k in SUPPORTED_RETAILERS]

    def get_suggestions(self, item_name: str, retailer_keys: List[str]) -> List[ProductSuggestion]:
        """Cheapest product options for an item across the given retailers, numbered from 1."""
        key = self._catalog_key(item_name)
        if key is None:
            logger.debug(f"No catalog entry for item '{item_name}'")
            return []

        candidates = []
        for retailer in self._retailers(retailer_keys):
            for product, base_price in PRODUCT_VARIANTS[key]:
                candidates.append((round(base_price * retailer.price_multiplier), product, retailer))
        candidates.sort(key=lambda c: (c[0], c[1], c[2].key))

        return [
            ProductSuggestion(
                number=index,
                name=product,
                price=price,
                retailer=retailer.key,
                retailer_name=retailer.display_name,
                delivery_time=retailer.delivery_time,
                search_url=retailer.search_link(product),
            )
            for index, (price, product, retailer) in enumerate(candidates[:MAX_SUGGESTIONS], start=1)
        ]

    def get_retailer_prices(self, item_name: str, retailer_keys: List[str]) -> List[RetailerPrice]:
        """The cheapest matching product at each retailer, cheapest retailer first."""
        key = self._catalog_key(item_name)
        if key is None:
            return []

        prices = []
        for retailer in self._retailers(retailer_keys):
            price, product = min(
                (round(base_price * retailer.price_multiplier), product)
                for product, base_price in PRODUCT_VARIANTS[key]
            )
            prices.append(RetailerPrice(
                retailer=retailer.key,
                retailer_name=retailer.display_name,
                product=product,
                price=price,
                delivery_time=retailer.delivery_time,
            ))
        return sorted(prices, key=lambda p: (p.price, p.retailer))


price_service = PriceService()
