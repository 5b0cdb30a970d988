# /shopgenie/config/retailers.py

from typing import Dict, List, Optional
from urllib.parse import quote_plus
from pydantic import BaseModel

# Static registry of the grocery apps a user can connect and order from.


class Retailer(BaseModel):
    key: str
    display_name: str
    login_methods: List[str]
    base_url: str
    search_url: str
    delivery_time: str
    description: str
    price_multiplier: float = 1.0

    class Config:
        frozen = True

    def search_link(self, query: str) -> str:
        return f"{self.search_url}{quote_plus(query)}"


SUPPORTED_RETAILERS: Dict[str, Retailer] = {
    "zepto": Retailer(
        key="zepto",
        display_name="Zepto",
        login_methods=["email", "phone"],
        base_url="https://www.zepto.in",
        search_url="https://www.zepto.in/search?q=",
        delivery_time="10 min",
        description="10-minute grocery delivery",
        price_multiplier=1.0,
    ),
    "blinkit": Retailer(
        key="blinkit",
        display_name="Blinkit",
        login_methods=["email", "phone"],
        base_url="https://blinkit.com",
        search_url="https://blinkit.com/s/?q=",
        delivery_time="9 min",
        description="9-minute grocery delivery",
        price_multiplier=1.05,
    ),
    "instamart": Retailer(
        key="instamart",
        display_name="Swiggy Instamart",
        login_methods=["email", "phone"],
        base_url="https://www.swiggy.com/instamart",
        search_url="https://www.swiggy.com/instamart?query=",
        delivery_time="15 min",
        description="15-minute grocery delivery",
        price_multiplier=1.08,
    ),
}

# Alternative spellings users type for the same app
RETAILER_ALIASES = {
    "swiggy": "instamart",
    "swiggy instamart": "instamart",
    "swiggyinstamart": "instamart",
    "blink it": "blinkit",
}


def normalize_retailer_key(name: Optional[str]) -> str:
    if not name:
        return ""
    key = " ".join(name.lower().split())
    return RETAILER_ALIASES.get(key, key)


def get_retailer(name: Optional[str]) -> Optional[Retailer]:
    return SUPPORTED_RETAILERS.get(normalize_retailer_key(name))


def supported_retailer_keys() -> List[str]:
    return list(SUPPORTED_RETAILERS.keys())


def format_retailer_list(keys: Optional[List[str]] = None) -> str:
    """Bullet list of retailers with their delivery promise, used in several replies."""
    retailers = [SUPPORTED_RETAILERS[k] for k in (keys or supported_retailer_keys()) if k in SUPPORTED_RETAILERS]
    return "\n".join(f"• *{r.display_name}* ({r.key}) - {r.description}" for r in retailers)
