"""
Custom exceptions for the gift card ledger.

Each carries a human-readable message plus a stable machine code so the
admin layer can hand back a structured failure without string matching.
"""


class GiftCardError(Exception):
    """Base exception for all ledger business logic errors."""

    def __init__(self, message: str, code: str = "GIFT_CARD_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(GiftCardError):
    """Resource not found."""

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} {identifier} not found"
        super().__init__(message, f"{resource.upper().replace(' ', '_')}_NOT_FOUND")


class GiftCardNotFoundError(NotFoundError):
    """Gift card code does not exist."""

    def __init__(self, identifier=None):
        super().__init__("Gift card", identifier)


class ValidationError(GiftCardError):
    """Invalid input data. Raised before any store mutation."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)


class DuplicateCodeError(GiftCardError):
    """The unique constraint on gift_cards.code rejected an insert."""

    def __init__(self, gift_card_code: str = None):
        self.gift_card_code = gift_card_code
        message = "Gift card code already exists"
        if gift_card_code:
            message = f"Gift card code {gift_card_code} already exists"
        super().__init__(message, "DUPLICATE_CODE")


class StoreWriteError(GiftCardError):
    """Underlying persistence failure on insert/update/delete."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message, "STORE_WRITE_ERROR")


class NotificationError(GiftCardError):
    """Dispatcher failure. Never allowed to reach the ledger path."""

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message, "NOTIFICATION_ERROR")


class ConfigurationError(GiftCardError):
    """Application configuration error."""

    def __init__(self, message: str):
        super().__init__(message, "CONFIGURATION_ERROR")
