"""
Catalog reference resolution and catalog maintenance.

Carts and orders copy product attributes by value; this module is the single
read path they use to look up the live catalog. Nothing here is cached, every
resolution is a fresh read so current price and availability are picked up.
"""

from typing import List, Optional

import structlog
from bson import ObjectId
from pydantic import ValidationError as PydanticValidationError
from pymongo import DESCENDING, ReturnDocument
from pymongo.database import Database

from database import create_document, get_documents, utcnow
from errors import InvalidReference, ProductNotFound, ValidationError
from schemas import CATEGORIES, Product

logger = structlog.get_logger(__name__)

PRODUCT_DISPLAY_FIELDS = ("name", "price", "image", "category")


def parse_object_id(value, label: str = "ID") -> ObjectId:
    """Validate a 24 character hex reference without touching storage."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise InvalidReference(f"Invalid {label} format: {value}")
    return ObjectId(value)


def resolve_product(db: Database, product_id) -> dict:
    oid = parse_object_id(product_id, "product ID")
    doc = db["product"].find_one({"_id": oid})
    if not doc:
        raise ProductNotFound(f"Product {product_id} not found")
    return doc


def get_product(db: Database, product_id: str) -> dict:
    try:
        return resolve_product(db, product_id)
    except InvalidReference:
        raise ProductNotFound()


def products_by_id(db: Database, product_ids) -> dict:
    """Batch lookup used by read-time joins; unknown ids are simply absent."""
    ids = list({pid for pid in product_ids if isinstance(pid, ObjectId)})
    if not ids:
        return {}
    return {doc["_id"]: doc for doc in db["product"].find({"_id": {"$in": ids}})}


def list_products(db: Database, category: Optional[str] = None) -> List[dict]:
    # Unknown categories and "all" fall back to the unfiltered list
    filt = {}
    if category and category in CATEGORIES:
        filt["category"] = category
    return get_documents(db, "product", filt, sort=[("created_at", DESCENDING), ("_id", DESCENDING)])


def create_product(db: Database, product: Product) -> dict:
    inserted_id = create_document(db, "product", product)
    return db["product"].find_one({"_id": ObjectId(inserted_id)})


def _product_oid(product_id) -> ObjectId:
    try:
        return parse_object_id(product_id, "product ID")
    except InvalidReference:
        raise ProductNotFound()


def update_product(db: Database, product_id: str, payload: dict) -> dict:
    """Apply a partial edit; the merged record must still be a valid Product."""
    oid = _product_oid(product_id)
    current = db["product"].find_one({"_id": oid})
    if not current:
        raise ProductNotFound()

    changes = {key: value for key, value in payload.items() if key in Product.model_fields}
    if not changes:
        raise ValidationError(f"Nothing to update, expected any of: {', '.join(Product.model_fields)}")
    merged = {key: current[key] for key in Product.model_fields if key in current}
    merged.update(changes)
    try:
        product = Product(**merged)
    except PydanticValidationError as exc:
        raise ValidationError.from_pydantic(exc)

    updates = {key: getattr(product, key) for key in changes}
    updates["updated_at"] = utcnow()
    doc = db["product"].find_one_and_update(
        {"_id": oid}, {"$set": updates}, return_document=ReturnDocument.AFTER
    )
    if not doc:
        raise ProductNotFound()
    logger.info("Product updated", product_id=str(oid), fields=sorted(changes))
    return doc


def delete_product(db: Database, product_id: str) -> None:
    # Carts and orders keep their snapshots; their live product reads as null
    oid = _product_oid(product_id)
    res = db["product"].delete_one({"_id": oid})
    if res.deleted_count == 0:
        raise ProductNotFound()
    logger.info("Product deleted", product_id=str(oid))


def set_availability(db: Database, product_id: str, is_available) -> dict:
    if not isinstance(is_available, bool):
        raise ValidationError("is_available must be a boolean value")
    oid = _product_oid(product_id)
    doc = db["product"].find_one_and_update(
        {"_id": oid},
        {"$set": {"is_available": is_available, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not doc:
        raise ProductNotFound()
    return doc


def category_counts(db: Database) -> List[dict]:
    counts = {}
    for doc in db["product"].find({}, {"category": 1}):
        category = doc.get("category")
        counts[category] = counts.get(category, 0) + 1
    return [{"category": name, "count": counts[name]} for name in sorted(counts, key=str)]
