# /shopgenie/models/intent.py

from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, field_validator

from shopgenie.models.domain import OrderItem


class IntentTag(str, Enum):
    ORDER = "order"
    ADD_ITEM = "add_item"
    REMOVE_ITEM = "remove_item"
    SHOW_PRICES = "show_prices"
    SHOW_CART = "show_cart"
    ADDRESS_CONFIRMATION = "address_confirmation"
    AUTHENTICATION = "authentication"
    CREDENTIAL_INPUT = "credential_input"
    PRODUCT_SELECTION = "product_selection"
    RETAILER_SELECTION = "retailer_selection"
    HELP = "help"
    UNKNOWN = "unknown"


class SelectionChoice(BaseModel):
    number: int
    item: Optional[str] = None
    select_all: bool = False


class ResolvedIntent(BaseModel):
    """
    Structured output of intent classification. Ephemeral: it is consumed
    once by the dispatcher and never persisted.
    """
    intent: IntentTag = IntentTag.UNKNOWN
    items: List[OrderItem] = Field(default_factory=list)
    address: Optional[str] = None
    confirmed: Optional[bool] = None
    retailer: Optional[str] = None
    choices: Optional[SelectionChoice] = None
    # item name -> retailer key, for "zepto for milk, blinkit for bread"
    retailer_choices: Dict[str, str] = Field(default_factory=dict)
    confidence: float = 0.0
    source: str = "rules"

    @field_validator("intent", mode="before")
    @classmethod
    def unknown_tags_become_unknown(cls, v: Any):
        if isinstance(v, IntentTag):
            return v
        try:
            return IntentTag(str(v).strip().lower())
        except ValueError:
            return IntentTag.UNKNOWN
