"""Data models for catalog records and drafts."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum


class Variant(str, Enum):
    CATALOG = "catalog"
    COMMERCE = "commerce"


class Status(str, Enum):
    READ = "Read"
    UNREAD = "Unread"

    def toggled(self) -> Status:
        return Status.UNREAD if self is Status.READ else Status.READ


@dataclass(frozen=True)
class BookRecord:
    id: str
    title: str
    cover_image_ref: str


@dataclass(frozen=True)
class CatalogEntry(BookRecord):
    """A book on the reading shelf, tracked as read or unread."""

    author: str
    genre: str
    status: Status = Status.UNREAD


@dataclass(frozen=True)
class CommerceEntry(BookRecord):
    """A book listed for sale. ``price`` keeps the text the user entered."""

    price: str


# Required draft fields per variant, in form order.
REQUIRED_FIELDS: dict[Variant, tuple[str, ...]] = {
    Variant.CATALOG: ("title", "author", "genre", "cover_image_ref"),
    Variant.COMMERCE: ("title", "price", "cover_image_ref"),
}

RECORD_TYPES: dict[Variant, type[BookRecord]] = {
    Variant.CATALOG: CatalogEntry,
    Variant.COMMERCE: CommerceEntry,
}


@dataclass
class DraftBook:
    """Form values in progress, merged into the catalog only on confirm."""

    title: str = ""
    author: str = ""
    genre: str = ""
    price: str = ""
    cover_image_ref: str | None = None

    @classmethod
    def from_record(cls, record: BookRecord) -> DraftBook:
        """Pre-fill a draft for editing an existing record."""
        return cls(
            title=record.title,
            author=getattr(record, "author", ""),
            genre=getattr(record, "genre", ""),
            price=getattr(record, "price", ""),
            cover_image_ref=record.cover_image_ref,
        )

    def cleaned(self) -> DraftBook:
        return DraftBook(
            title=self.title.strip(),
            author=self.author.strip(),
            genre=self.genre.strip(),
            price=self.price.strip(),
            cover_image_ref=(self.cover_image_ref or "").strip() or None,
        )

    def missing_fields(self, variant: Variant) -> list[str]:
        cleaned = self.cleaned()
        return [name for name in REQUIRED_FIELDS[variant] if not getattr(cleaned, name)]

    def invalid_fields(self, variant: Variant) -> list[str]:
        if variant is Variant.COMMERCE and self.price.strip() and not is_valid_price(self.price):
            return ["price"]
        return []


def is_valid_price(text: str) -> bool:
    try:
        value = Decimal(text.strip())
    except InvalidOperation:
        return False
    return value.is_finite() and value >= 0
