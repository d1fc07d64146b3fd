"""
Common Error Constants

Centralized error messages shared by the cart layer and its HTTP surface.
"""

# Input validation
ERROR_INVALID_MERCHANDISE = "Invalid merchandise ID or quantity"
ERROR_INVALID_LINE_ID = "Invalid line ID"
ERROR_NO_ITEMS = "No items provided"

# Orchestration
ERROR_MUTATION_IN_PROGRESS = "Another mutation is already in progress"
ERROR_NO_CART_AFTER_MUTATION = "No cart state after mutation"
ERROR_MUTATION_TIMEOUT = "Timed out waiting for cart mutation to complete"
ERROR_CART_CREATE_FAILED = "Failed to create new cart"

# HTTP surface
ERROR_MISSING_SESSION = "Missing cart session header"
ERROR_INTERNAL = "Internal server error"


class CartAuthorityNotConfiguredError(RuntimeError):
    """Raised when the cart authority is used without its required setup."""


class StorefrontAPIError(Exception):
    """Transport-level failure talking to the remote cart service."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
