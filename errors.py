"""
Error taxonomy for the café API.

Every error carries the HTTP status it maps to; the handlers in main.py turn
them into ``{"success": False, "message": ...}`` payloads.
"""


class CafeError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CafeError):
    """Missing or malformed field."""
    status_code = 400

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Report the first error of a pydantic ValidationError as ``field: msg``."""
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error.get("loc", ()))
        return cls(f"{field}: {error.get('msg')}" if field else error.get("msg", "Invalid data"))


class InvalidReference(ValidationError):
    """Identifier is not a well-formed ObjectId."""


class NoValidItems(ValidationError):
    pass


class InvalidStatus(ValidationError):
    pass


class NotFoundError(CafeError):
    status_code = 404


class CustomerNotFound(NotFoundError):
    def __init__(self, message: str = "Customer not found"):
        super().__init__(message)


class ProductNotFound(NotFoundError):
    def __init__(self, message: str = "Product not found"):
        super().__init__(message)


class OrderNotFound(NotFoundError):
    def __init__(self, message: str = "Order not found"):
        super().__init__(message)


class ConflictError(CafeError):
    status_code = 409


class StorageError(CafeError):
    status_code = 500
