"""
Error taxonomy for the Data Grid API.

Every error carries the HTTP status the API answers with, so routes can
raise them directly and the exception handlers in main.py do the mapping.
"""


class DataGridError(Exception):
    """Base exception for all Data Grid errors."""
    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class InvalidColumn(DataGridError):
    """Column is not part of the column registry."""
    status_code = 400

    def __init__(self, column: str, message: str = None):
        self.column = column
        super().__init__(message or f"Invalid column: {column}")


class InvalidValue(DataGridError):
    """Value cannot be coerced to what the operator/column pair needs."""
    status_code = 400


class UnsupportedOperator(DataGridError):
    """Operator token outside the operator enumeration."""
    status_code = 400

    def __init__(self, operator, message: str = None):
        self.operator = operator
        super().__init__(message or f"Unsupported operator: {operator}")


class UnsupportedOperatorForColumn(DataGridError):
    """Known operator with no semantics for the column's kind."""
    status_code = 400


class InvalidRecord(DataGridError):
    """Incoming record does not match the registry's record schema."""
    status_code = 422


class ItemNotFound(DataGridError):
    status_code = 404

    def __init__(self, item_id=None):
        self.item_id = item_id
        super().__init__("Item not found")


class DuplicateItem(DataGridError):
    """A record with the requested id already exists."""
    status_code = 409

    def __init__(self, item_id, message: str = None):
        self.item_id = item_id
        super().__init__(message or f"Item {item_id} already exists")


class StorageError(DataGridError):
    """The record store (or the API in front of it) failed."""
    status_code = 500


class ComparisonUnavailable(DataGridError):
    """No text-generation provider could produce a comparison."""
    status_code = 503
