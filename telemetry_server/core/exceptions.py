"""Custom exception types."""

from __future__ import annotations


class StoreError(Exception):
    """Raised when the record store cannot complete an operation."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
