"""
Custom Exceptions

This module defines custom exceptions for better error handling
and more specific error messages.

Benefits:
- More specific error types for different failure scenarios
- Better error messages for API consumers
- Easier error handling and logging
"""


class ShelfQRException(Exception):
    """Base exception for the shelfqr service."""
    pass


class InvalidURLError(ShelfQRException):
    """Raised when URL validation fails."""

    def __init__(self, url: str, reason: str = "Invalid URL"):
        self.url = url
        self.reason = reason
        super().__init__(f"{reason}: {url}")


class QrCodeNotFoundError(ShelfQRException):
    """Raised when a QR code is not found in the database."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"QR code '{code}' not found")


class CollectionNotFoundError(ShelfQRException):
    """Raised when a collection does not exist (or is not active where required)."""

    def __init__(self, collection_id: str):
        self.collection_id = collection_id
        super().__init__(f"Collection '{collection_id}' not found")


class ShareNotFoundError(ShelfQRException):
    """Raised when a collection share does not exist."""

    def __init__(self, share_id: str):
        self.share_id = share_id
        super().__init__(f"Share '{share_id}' not found")


class PermissionDeniedError(ShelfQRException):
    """Raised when the caller is not allowed to perform an action."""

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Not allowed to {action}")


class InvalidSharePermissionError(ShelfQRException):
    """Raised when a share permission is neither 'read' nor 'readwrite'."""

    def __init__(self, permission: str):
        self.permission = permission
        super().__init__(f"Unknown share permission '{permission}'")


class MetadataFetchError(ShelfQRException):
    """Raised when fetching link metadata fails outright."""

    def __init__(self, url: str, timed_out: bool = False):
        self.url = url
        self.timed_out = timed_out
        reason = "Request timed out" if timed_out else "Failed to fetch metadata"
        super().__init__(f"{reason}: {url}")


class DatabaseError(ShelfQRException):
    """Raised when database operations fail."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(f"Database error: {message}")


class ShopNotFoundError(ShelfQRException):
    """Raised when a shop does not exist."""

    def __init__(self, shop_id: str):
        self.shop_id = shop_id
        super().__init__(f"Shop '{shop_id}' not found")


class ItemNotFoundError(ShelfQRException):
    """Raised when an item (collection entry or standalone product) does not exist."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item '{item_id}' not found")


class InviteNotFoundError(ShelfQRException):
    """Raised when no pending invitation matches the id and the caller's email."""

    def __init__(self, invite_id: str):
        self.invite_id = invite_id
        super().__init__(f"Invite '{invite_id}' not found")


class InvalidInputError(ShelfQRException):
    """Raised when a create/update request is missing a required value."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)
