from typing import Optional


class MealBotError(Exception):
    """Base error for failures reported back to the sender.

    Attributes:
        message: human-readable message
        cause: optional underlying exception
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        return self.message


class ExtractionError(MealBotError):
    """Raised when a meal photo cannot be downloaded or analyzed."""


class LedgerError(MealBotError):
    """Raised when daily totals cannot be written to the ledger."""
