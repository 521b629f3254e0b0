"""Exceptions raised by the catalog core."""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for catalog errors."""


class ValidationError(CatalogError):
    """A draft is missing required fields or carries unusable values."""

    def __init__(
        self,
        missing_fields: list[str] | tuple[str, ...] = (),
        invalid_fields: list[str] | tuple[str, ...] = (),
    ) -> None:
        self.missing_fields = list(missing_fields)
        self.invalid_fields = list(invalid_fields)
        parts = []
        if self.missing_fields:
            parts.append("missing " + ", ".join(self.missing_fields))
        if self.invalid_fields:
            parts.append("invalid " + ", ".join(self.invalid_fields))
        super().__init__("Book draft rejected: " + "; ".join(parts))


class NotFoundError(CatalogError):
    def __init__(self, book_id: str) -> None:
        self.book_id = book_id
        super().__init__(f"No book with id {book_id!r}")


class StorageError(CatalogError):
    """Durable storage could not be read or written."""

    def __init__(self, cause: BaseException) -> None:
        self.cause = cause
        super().__init__(f"Storage unavailable: {cause}")


class MalformedStoredDataError(CatalogError):
    """The stored blob cannot be decoded into records."""


class UnsupportedOperationError(CatalogError):
    """The operation does not exist for the store's variant."""


class ImagePickError(CatalogError):
    """The picker could not turn the chosen file into a cover reference."""
