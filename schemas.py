"""
Database Schemas for the Café Ordering Backend

Each Pydantic model represents a MongoDB collection (collection name is the lowercase of the class name).

This app manages:
- Products (the live catalog: name, category, price, availability)
- Customers (customers and staff, told apart by role)
- Carts (one per customer, lines copied from the catalog)
- Orders (immutable checkout snapshots moving through a fulfillment workflow)
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

CATEGORIES = ("Coffee", "Tea", "Juices", "Snacks", "Desserts")
ORDER_STATUSES = ("pending", "preparing", "ready", "on-the-way", "delivered", "cancelled")
ORDER_TYPES = ("delivery", "restaurant")


class Product(BaseModel):
    """
    Café menu products
    Collection name: "product"
    """
    name: str = Field(..., min_length=1, description="Product name")
    description: str = Field("", description="Short description")
    price: float = Field(..., ge=0, description="Unit price")
    category: Literal["Coffee", "Tea", "Juices", "Snacks", "Desserts"] = Field(..., description="Menu category")
    image: str = Field("", description="Image URL or base64 data URL")
    is_available: bool = Field(True, description="Available to order")


class Customer(BaseModel):
    """
    Customers and staff members
    Collection name: "customer"
    """
    name: str = Field(..., min_length=1, description="Display name")
    email: str = Field(..., description="Unique email address")
    phone: Optional[str] = Field(None, description="Phone number")
    role: str = Field("customer", description="customer | barista | courier | admin")


class CartLine(BaseModel):
    """
    Embedded cart line (not a collection); a snapshot of the product when it was added
    """
    product_id: str = Field(..., description="Referenced product _id as string")
    name: str = Field(..., description="Product name at time of adding")
    price: float = Field(..., description="Unit price at time of adding")
    quantity: int = Field(1, ge=1, description="Quantity")
    image: str = Field("", description="Product image at time of adding")
    description: str = Field("", description="Product description at time of adding")
    category: str = Field("", description="Product category at time of adding")


class OrderLine(BaseModel):
    """
    Embedded order line (not a collection), copied from the checkout payload
    """
    product_id: str = Field(..., description="Referenced product _id as string")
    name: Optional[str] = Field(None, description="Product name at time of order")
    price: Optional[float] = Field(None, description="Unit price at time of order")
    quantity: Optional[int] = Field(None, description="Quantity ordered")


class Order(BaseModel):
    """
    Orders placed at checkout
    Collection name: "order"
    """
    customer_id: str = Field(..., description="Ordering customer _id as string")
    items: List[OrderLine] = Field(..., description="Items included in the order")
    total_price: float = Field(..., gt=0, description="Total asserted by the client")
    status: Literal["pending", "preparing", "ready", "on-the-way", "delivered", "cancelled"] = Field("pending")
    order_type: Literal["delivery", "restaurant"] = Field(..., description="Fixed at creation")
    delivery_address: Optional[str] = Field(None, description="Set only for delivery orders")
    table_number: Optional[int] = Field(None, description="Set only for restaurant orders")
    prepared_by: Optional[str] = Field(None, description="Staff member preparing the order")
    delivery_person_id: Optional[str] = Field(None, description="Courier delivering the order")
    payment_status: Literal["unpaid", "paid"] = Field("paid")
    email: str = Field(..., description="Contact email, lower-cased")
    door_photo: Optional[str] = Field(None, description="Opaque photo reference (base64 or URL)")
