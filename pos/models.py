"""
Records mirroring the remote DynamoDB tables.

Business data is never stored in the local Django database; these
dataclasses are what the stores hand to views and templates.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

PENDING = "Pending"
READY = "Ready"
DELIVERED = "Delivered"
ORDER_FLOW = (PENDING, READY, DELIVERED)

MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"


def next_status(status: str) -> Optional[str]:
    """Status following `status`, or None for the terminal/unknown ones."""
    if status not in ORDER_FLOW:
        return None
    index = ORDER_FLOW.index(status)
    return ORDER_FLOW[index + 1] if index + 1 < len(ORDER_FLOW) else None


def _decimal(value, default="0") -> Decimal:
    return Decimal(str(value if value is not None else default))


def _timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass
class Ingredient:  # a stocked raw material
    id: str
    name: str
    quantity: Decimal
    min_quantity: Decimal
    unit: str = "un"

    @property
    def is_low(self) -> bool:
        return self.quantity <= self.min_quantity

    @classmethod
    def from_item(cls, item: dict) -> "Ingredient":
        return cls(
            id=item["id"],
            name=item.get("name", ""),
            quantity=_decimal(item.get("quantity")),
            min_quantity=_decimal(item.get("min_quantity")),
            unit=item.get("unit", "un"),
        )

    def to_item(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "quantity": self.quantity,
            "min_quantity": self.min_quantity,
            "unit": self.unit,
        }


@dataclass
class RecipeLine:  # one ingredient consumed per unit of a product
    product_id: str
    ingredient_id: str
    quantity: Decimal

    @classmethod
    def from_item(cls, item: dict) -> "RecipeLine":
        return cls(
            product_id=item["product_id"],
            ingredient_id=item["ingredient_id"],
            quantity=_decimal(item.get("quantity")),
        )

    def to_item(self) -> dict:
        return {
            "product_id": self.product_id,
            "ingredient_id": self.ingredient_id,
            "quantity": self.quantity,
        }


@dataclass
class Product:  # a menu item
    id: str
    name: str
    description: str
    price: Decimal
    image_url: str = ""
    recipe: List[RecipeLine] = field(default_factory=list)

    @classmethod
    def from_item(cls, item: dict, recipe=None) -> "Product":
        return cls(
            id=item["id"],
            name=item.get("name", ""),
            description=item.get("description", ""),
            price=_decimal(item.get("price")),
            image_url=item.get("image_url") or "",
            recipe=list(recipe or []),
        )

    def to_item(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "image_url": self.image_url,
        }


@dataclass
class OrderItem:
    order_id: str
    product_id: str
    quantity: int
    unit_price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    @classmethod
    def from_item(cls, item: dict) -> "OrderItem":
        return cls(
            order_id=item["order_id"],
            product_id=item["product_id"],
            quantity=int(item.get("quantity", 0)),
            unit_price=_decimal(item.get("unit_price")),
        )


@dataclass
class Order:
    id: str
    customer_name: str
    status: str
    total: Decimal
    created_at: Optional[datetime]
    items: List[OrderItem] = field(default_factory=list)

    @property
    def next_status(self) -> Optional[str]:
        return next_status(self.status)

    @classmethod
    def from_item(cls, item: dict, items=None) -> "Order":
        return cls(
            id=item["id"],
            customer_name=item.get("customer_name", ""),
            status=item.get("status", PENDING),
            total=_decimal(item.get("total")),
            created_at=_timestamp(item.get("created_at")),
            items=list(items or []),
        )


@dataclass
class StockMovement:  # append-only audit row
    id: str
    ingredient_id: str
    direction: str
    quantity: Decimal
    description: str
    created_at: Optional[datetime]

    @classmethod
    def from_item(cls, item: dict) -> "StockMovement":
        return cls(
            id=item["id"],
            ingredient_id=item.get("ingredient_id", ""),
            direction=item.get("direction", MOVEMENT_OUT),
            quantity=_decimal(item.get("quantity")),
            description=item.get("description", ""),
            created_at=_timestamp(item.get("created_at")),
        )

    def to_item(self) -> dict:
        return {
            "id": self.id,
            "ingredient_id": self.ingredient_id,
            "direction": self.direction,
            "quantity": self.quantity,
            "description": self.description,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class Settings:
    brand_name: str = "CloudPOS"
    text_color: str = "#ffffff"
    accent_color: str = "#f97316"
    background_image_url: str = ""

    @classmethod
    def from_item(cls, item: dict) -> "Settings":
        defaults = cls()
        return cls(
            brand_name=item.get("brand_name") or defaults.brand_name,
            text_color=item.get("text_color") or defaults.text_color,
            accent_color=item.get("accent_color") or defaults.accent_color,
            background_image_url=item.get("background_image_url") or "",
        )

    def to_item(self) -> dict:
        return {
            "id": 1,
            "brand_name": self.brand_name,
            "text_color": self.text_color,
            "accent_color": self.accent_color,
            "background_image_url": self.background_image_url,
        }


@dataclass
class Profile:
    id: str
    email: str
    role: str

    @classmethod
    def from_item(cls, item: dict) -> "Profile":
        return cls(id=str(item["id"]), email=item.get("email", ""), role=item.get("role", ""))

    def to_item(self) -> dict:
        return {"id": self.id, "email": self.email, "role": self.role}
