"""Error types raised by the expense service and store layers."""


class ExpenseServiceError(Exception):
    """Base error carrying the HTTP status the API should answer with."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ExpenseValidationError(ExpenseServiceError):
    """Bad or missing `cost` / `description`."""


class InvalidIdentifier(ExpenseServiceError):
    """The identifier in the path is not a valid expense id."""


class ExpenseNotFound(ExpenseServiceError):
    status_code = 404

    def __init__(self, message: str = "no entity with such `id`"):
        super().__init__(message)


class StorageUnavailable(ExpenseServiceError, ConnectionError):
    """The underlying store call failed or timed out."""
