# /shopgenie/models/domain.py

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

# This file defines the core Pydantic models used throughout the application's
# business logic. These models ensure data consistency and provide validation.


class OrderItem(BaseModel):
    name: str
    quantity: float = 1
    unit: str = "pc"
    brand: Optional[str] = None

    def describe(self) -> str:
        quantity = int(self.quantity) if float(self.quantity).is_integer() else self.quantity
        return f"{quantity} {self.unit} {self.name}"


class ProductSuggestion(BaseModel):
    number: int
    name: str
    price: int
    retailer: str
    retailer_name: str
    delivery_time: str
    search_url: str
    in_stock: bool = True


class RetailerPrice(BaseModel):
    retailer: str
    retailer_name: str
    product: str
    price: int
    delivery_time: str


class Address(BaseModel):
    user_id: str
    text: str
    formatted_address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    verified: bool = False
    confirmed: bool = False
    is_primary: bool = True
    created_at: Optional[datetime] = None

    @property
    def display(self) -> str:
        return self.formatted_address or self.text


class GeocodeResult(BaseModel):
    formatted_address: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    verified: bool = False


class CartItem(BaseModel):
    id: str
    cart_id: str
    name: str
    quantity: float = 1
    unit: str = "pc"
    product_name: Optional[str] = None
    product_price: Optional[int] = None
    retailer: Optional[str] = None

    def describe(self) -> str:
        quantity = int(self.quantity) if float(self.quantity).is_integer() else self.quantity
        label = f"{quantity} {self.unit} {self.name}"
        if self.product_name:
            label += f" ({self.product_name})"
        return label


class Cart(BaseModel):
    id: str
    user_id: str
    status: str = "active"
    created_at: Optional[datetime] = None


class FinalCartLine(BaseModel):
    item: str
    quantity: float = 1
    unit: str = "pc"
    product: Optional[str] = None
    unit_price: Optional[int] = None

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity if self.unit_price is not None else 0


class RetailerOrder(BaseModel):
    retailer: str
    retailer_name: str
    delivery_time: str = ""
    lines: List[FinalCartLine] = Field(default_factory=list)
    checkout_url: str

    @property
    def items(self) -> List[str]:
        return [line.item for line in self.lines]

    @property
    def total(self) -> float:
        return sum(line.line_total for line in self.lines)


class FinalCart(BaseModel):
    orders: List[RetailerOrder] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)

    @property
    def by_retailer(self) -> Dict[str, RetailerOrder]:
        return {order.retailer: order for order in self.orders}

    @property
    def total(self) -> float:
        return sum(order.total for order in self.orders)
