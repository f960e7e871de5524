"""
Orders: checkout snapshots and the fulfillment workflow.

An order copies its lines from the checkout payload, not from the stored
cart, so later catalog edits never change a historical order. After creation
only ``status``, ``prepared_by`` and ``delivery_person_id`` change.

Status workflow::

    pending -> preparing -> ready -> on-the-way -> delivered
                                                 \\-> cancelled

The arrows are the usual path only; any status may be set from any other.
"""

import re
from typing import List, Optional

import structlog
from pydantic import ValidationError as PydanticValidationError
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from catalog import PRODUCT_DISPLAY_FIELDS, parse_object_id, products_by_id, resolve_product
from customers import CUSTOMER_DISPLAY_FIELDS, STAFF_DISPLAY_FIELDS, customers_by_id, resolve_customer
from database import create_document, display_fields, get_documents, utcnow
from errors import (
    InvalidReference,
    InvalidStatus,
    OrderNotFound,
    ProductNotFound,
    ValidationError,
)
from schemas import ORDER_STATUSES, ORDER_TYPES, Order, OrderLine

logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")
NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]
ACTIVE_STATUSES = ("pending", "preparing", "ready", "on-the-way")


def _positive_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value > 0


def _line_product_id(item) -> Optional[str]:
    if not isinstance(item, dict):
        return None
    return item.get("product_id") or item.get("id")


def validate_checkout(customer_id, items, total_price, order_type, email,
                      delivery_address=None, table_number=None) -> None:
    """Field checks that run before any read; the first failure wins."""
    if not customer_id or not isinstance(items, list) or not items:
        raise ValidationError("Customer ID and items are required")

    if not _positive_number(total_price):
        raise ValidationError("Valid total price is required")

    if order_type not in ORDER_TYPES:
        raise ValidationError('Order type must be either "delivery" or "restaurant"')

    if not email:
        raise ValidationError("Email is required")
    if not isinstance(email, str) or not EMAIL_PATTERN.match(email.strip()):
        raise ValidationError("Please provide a valid email address")

    if order_type == "delivery" and not delivery_address:
        raise ValidationError("Delivery address is required for delivery orders")
    if order_type == "restaurant" and not table_number:
        raise ValidationError("Table number is required for restaurant orders")


def resolve_lines(db: Database, items: List[dict]) -> List[dict]:
    """All or nothing: every line must reference an existing product."""
    lines = []
    for item in items:
        product_id = _line_product_id(item)
        label = (item.get("name") if isinstance(item, dict) else None) or product_id
        try:
            product = resolve_product(db, product_id)
        except (InvalidReference, ProductNotFound):
            raise ProductNotFound(f"Product {label} not found")

        try:
            line = OrderLine(
                product_id=str(product["_id"]),
                name=item.get("name"),
                price=item.get("price"),
                quantity=item.get("quantity"),
            ).model_dump()
        except PydanticValidationError:
            raise ValidationError(f"Invalid item data for product {label}")
        line["product_id"] = product["_id"]
        lines.append(line)
    return lines


def create_order(db: Database, customer_id, items, total_price, order_type, email,
                 delivery_address=None, table_number=None, door_photo=None) -> dict:
    validate_checkout(customer_id, items, total_price, order_type, email,
                      delivery_address=delivery_address, table_number=table_number)

    customer = resolve_customer(db, customer_id)
    lines = resolve_lines(db, items)

    try:
        order = Order(
            customer_id=str(customer["_id"]),
            items=[{**line, "product_id": str(line["product_id"])} for line in lines],
            total_price=total_price,
            order_type=order_type,
            delivery_address=delivery_address if order_type == "delivery" else None,
            table_number=table_number if order_type == "restaurant" else None,
            email=email.strip().lower(),
            door_photo=door_photo or None,
            status="pending",
            payment_status="paid",
        )
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc)

    doc = order.model_dump()
    doc["customer_id"] = customer["_id"]
    doc["items"] = lines
    order_id = create_document(db, "order", doc)

    logger.info(
        "Order created",
        order_id=order_id,
        customer_id=str(customer["_id"]),
        order_type=order_type,
        lines=len(lines),
        total_price=order.total_price,
    )
    return get_order(db, order_id)


def set_status(db: Database, order_id, status, prepared_by=None, delivery_person_id=None) -> dict:
    if not status or status not in ORDER_STATUSES:
        raise InvalidStatus(f"Status must be one of: {', '.join(ORDER_STATUSES)}")

    try:
        order_oid = parse_object_id(order_id, "order ID")
    except InvalidReference:
        raise OrderNotFound()

    updates = {"status": status, "updated_at": utcnow()}
    # Staff references are stored as given; their role is not checked
    if prepared_by:
        updates["prepared_by"] = parse_object_id(prepared_by, "prepared_by ID")
    if delivery_person_id:
        updates["delivery_person_id"] = parse_object_id(delivery_person_id, "delivery person ID")

    doc = db["order"].find_one_and_update(
        {"_id": order_oid},
        {"$set": updates},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise OrderNotFound()

    logger.info("Order status updated", order_id=str(order_oid), status=status)
    return populate_orders(db, [doc], include_staff=True)[0]


def populate_orders(db: Database, orders: List[dict], include_customer: bool = True,
                    include_staff: bool = False) -> List[dict]:
    """Read-time join with current customer, product and staff display data."""
    product_ids = [line.get("product_id") for order in orders for line in order.get("items", [])]
    products = products_by_id(db, product_ids)

    people_ids = []
    for order in orders:
        if include_customer:
            people_ids.append(order.get("customer_id"))
        if include_staff:
            people_ids.extend([order.get("prepared_by"), order.get("delivery_person_id")])
    people = customers_by_id(db, people_ids)

    for order in orders:
        for line in order.get("items", []):
            line["product"] = display_fields(products.get(line.get("product_id")), PRODUCT_DISPLAY_FIELDS)
        if include_customer:
            order["customer"] = display_fields(people.get(order.get("customer_id")), CUSTOMER_DISPLAY_FIELDS)
        if include_staff:
            order["preparer"] = display_fields(people.get(order.get("prepared_by")), STAFF_DISPLAY_FIELDS)
            order["delivery_person"] = display_fields(
                people.get(order.get("delivery_person_id")), STAFF_DISPLAY_FIELDS
            )
    return orders


def get_order(db: Database, order_id) -> dict:
    try:
        order_oid = parse_object_id(order_id, "order ID")
    except InvalidReference:
        raise OrderNotFound()
    doc = db["order"].find_one({"_id": order_oid})
    if not doc:
        raise OrderNotFound()
    return populate_orders(db, [doc], include_staff=True)[0]


def list_customer_orders(db: Database, customer_id) -> List[dict]:
    customer_oid = parse_object_id(customer_id, "customer ID")
    docs = get_documents(db, "order", {"customer_id": customer_oid}, sort=NEWEST_FIRST)
    return populate_orders(db, docs, include_customer=False)


def list_all_orders(db: Database, status: Optional[str] = None) -> List[dict]:
    filt = {}
    if status:
        if status not in ORDER_STATUSES:
            raise InvalidStatus(f"Status must be one of: {', '.join(ORDER_STATUSES)}")
        filt["status"] = status
    docs = get_documents(db, "order", filt, sort=NEWEST_FIRST)
    return populate_orders(db, docs, include_staff=True)


def order_metrics(db: Database) -> dict:
    orders = db["order"]
    return {
        "total_products": db["product"].count_documents({}),
        "active_orders": orders.count_documents({"status": {"$in": list(ACTIVE_STATUSES)}}),
        "delivered_orders": orders.count_documents({"status": "delivered"}),
        "cancelled_orders": orders.count_documents({"status": "cancelled"}),
    }
