"""Customer directory: the lookups carts and orders need about customers and staff."""

from typing import Optional

from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document
from errors import ConflictError, CustomerNotFound
from schemas import Customer

CUSTOMER_DISPLAY_FIELDS = ("name", "email", "phone")
STAFF_DISPLAY_FIELDS = ("name", "email")


def resolve_customer(db: Database, customer_id) -> dict:
    if isinstance(customer_id, ObjectId):
        oid = customer_id
    elif isinstance(customer_id, str) and ObjectId.is_valid(customer_id):
        oid = ObjectId(customer_id)
    else:
        raise CustomerNotFound()
    doc = db["customer"].find_one({"_id": oid})
    if not doc:
        raise CustomerNotFound()
    return doc


def find_customer_by_email(db: Database, email: str) -> Optional[dict]:
    return db["customer"].find_one({"email": email.strip().lower()})


def register_customer(db: Database, customer: Customer) -> dict:
    data = customer.model_dump()
    data["email"] = data["email"].strip().lower()
    if find_customer_by_email(db, data["email"]):
        raise ConflictError(f"A customer with email {data['email']} already exists")
    try:
        inserted_id = create_document(db, "customer", data)
    except DuplicateKeyError:
        raise ConflictError(f"A customer with email {data['email']} already exists")
    return db["customer"].find_one({"_id": ObjectId(inserted_id)})


def customers_by_id(db: Database, customer_ids) -> dict:
    ids = list({cid for cid in customer_ids if isinstance(cid, ObjectId)})
    if not ids:
        return {}
    return {doc["_id"]: doc for doc in db["customer"].find({"_id": {"$in": ids}})}
