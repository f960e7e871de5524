"""
Cart management: one cart per customer, kept in step with the live catalog.

A cart is replaced wholesale on every save. Lines are snapshots of the
product at save time; submitted lines whose product cannot be resolved are
dropped instead of failing the whole save.
"""

import math
from typing import List, Optional

import structlog
from bson import ObjectId
from pydantic import ValidationError as PydanticValidationError
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from catalog import parse_object_id, products_by_id, resolve_product
from customers import resolve_customer
from database import create_document, display_fields, utcnow
from errors import (
    ConflictError,
    InvalidReference,
    NoValidItems,
    ProductNotFound,
    ValidationError,
)
from schemas import CartLine

logger = structlog.get_logger(__name__)

LIVE_PRODUCT_FIELDS = ("name", "price", "image", "category", "is_available")


def _number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def _quantity(value) -> int:
    number = _number(value)
    if number is None or number < 1:
        return 1
    return int(number)


def build_line(item: dict, product: dict) -> dict:
    """Merge a submitted line with the resolved product, client values first."""
    price = _number(item.get("price"))
    if price is None:
        price = _number(product.get("price")) or 0.0

    line = CartLine(
        product_id=str(product["_id"]),
        name=item.get("name") or product.get("name") or "Unknown Product",
        price=price,
        quantity=_quantity(item.get("quantity")),
        image=item.get("image") or product.get("image") or "",
        description=item.get("description") or product.get("description") or "",
        category=item.get("category") or product.get("category") or "",
    ).model_dump()
    line["product_id"] = product["_id"]
    return line


def build_lines(db: Database, items: List[dict]) -> List[dict]:
    lines = []
    for item in items:
        if not isinstance(item, dict):
            logger.warning("Skipping malformed cart line", item=item)
            continue
        product_id = item.get("product_id") or item.get("id")
        if not product_id:
            logger.warning("Skipping cart line without product id", name=item.get("name"))
            continue
        try:
            product = resolve_product(db, product_id)
        except (InvalidReference, ProductNotFound) as exc:
            logger.warning("Skipping cart line", product_id=str(product_id), reason=exc.message)
            continue
        try:
            lines.append(build_line(item, product))
        except PydanticValidationError as exc:
            logger.warning("Skipping cart line", product_id=str(product_id), reason=str(exc))
    return lines


def _find_cart(db: Database, customer_oid: ObjectId) -> Optional[dict]:
    return db["cart"].find_one({"customer_id": customer_oid})


def _replace_items(db: Database, cart_id: ObjectId, lines: List[dict]) -> Optional[dict]:
    return db["cart"].find_one_and_update(
        {"_id": cart_id},
        {"$set": {"items": lines, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


def _upsert_cart(db: Database, customer_oid: ObjectId, lines: List[dict]) -> dict:
    cart = _find_cart(db, customer_oid)
    if cart:
        updated = _replace_items(db, cart["_id"], lines)
        if updated:
            return updated
        # Cleared after it was read; start a new cart instead
        logger.info("Cart removed during save, recreating", customer_id=str(customer_oid))

    try:
        cart_id = create_document(db, "cart", {"customer_id": customer_oid, "items": lines})
    except DuplicateKeyError:
        # A concurrent save created the cart first; apply ours as an update
        cart = _find_cart(db, customer_oid)
        updated = _replace_items(db, cart["_id"], lines) if cart else None
        if not updated:
            raise ConflictError("Cart was modified concurrently, please retry")
        logger.info("Recovered concurrent cart creation", customer_id=str(customer_oid))
        return updated
    cart = db["cart"].find_one({"_id": ObjectId(cart_id)})
    if not cart:
        raise ConflictError("Cart was modified concurrently, please retry")
    return cart


def annotate_cart(db: Database, cart: dict) -> dict:
    """Attach the live product record to each line, next to its snapshot."""
    products = products_by_id(db, [line.get("product_id") for line in cart.get("items", [])])
    for line in cart.get("items", []):
        line["product"] = display_fields(products.get(line.get("product_id")), LIVE_PRODUCT_FIELDS)
    return cart


def save_cart(db: Database, customer_id, items) -> dict:
    if not customer_id:
        raise ValidationError("Customer ID is required")
    customer = resolve_customer(db, customer_id)
    customer_oid = customer["_id"]

    if not isinstance(items, list):
        raise ValidationError("Items must be an array")

    if not items:
        db["cart"].delete_one({"customer_id": customer_oid})
        return {"customer_id": customer_oid, "items": []}

    lines = build_lines(db, items)
    if not lines:
        raise NoValidItems(
            "No valid items found to save in cart. Please check that all products exist in the database."
        )

    cart = _upsert_cart(db, customer_oid, lines)
    logger.info("Cart saved", customer_id=str(customer_oid), lines=len(lines), dropped=len(items) - len(lines))
    return annotate_cart(db, cart)


def _empty_cart(customer_id) -> dict:
    return {"customer_id": customer_id, "items": [], "updated_at": utcnow()}


def get_cart(db: Database, customer_id) -> dict:
    # Reads never fail; an unknown or malformed id just has no cart
    try:
        customer_oid = parse_object_id(customer_id, "customer ID")
    except InvalidReference:
        return _empty_cart(customer_id)
    cart = _find_cart(db, customer_oid)
    if not cart:
        return _empty_cart(customer_oid)
    return annotate_cart(db, cart)


def clear_cart(db: Database, customer_id) -> None:
    customer_oid = parse_object_id(customer_id, "customer ID")
    db["cart"].delete_one({"customer_id": customer_oid})
