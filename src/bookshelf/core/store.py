"""The catalog store: in-memory record list kept in step with one storage slot."""

from __future__ import annotations

import asyncio
import dataclasses
import time
import uuid
from typing import Callable

import structlog

from .codec import decode_records, encode_records
from .errors import (
    MalformedStoredDataError,
    NotFoundError,
    StorageError,
    UnsupportedOperationError,
    ValidationError,
)
from .models import BookRecord, CatalogEntry, CommerceEntry, DraftBook, Variant
from .storage import KeyValueStorage

log = structlog.get_logger()

DEFAULT_KEY = "books"


class TimestampIds:
    """Millisecond timestamp ids, strictly increasing within the process."""

    def __init__(self) -> None:
        self._last = 0

    def __call__(self) -> str:
        now = time.time_ns() // 1_000_000
        self._last = max(now, self._last + 1)
        return str(self._last)


def uuid_ids() -> str:
    return uuid.uuid4().hex


def default_id_factory(variant: Variant) -> Callable[[], str]:
    return TimestampIds() if variant is Variant.CATALOG else uuid_ids


class CatalogStore:
    """Owns the ordered book list and persists all of it after every mutation.

    Mutations build the new list aside, write it to storage and only then
    install it, so a failed write leaves the in-memory list untouched.
    Mutations are serialized by a lock; reads never wait on it.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        variant: Variant = Variant.CATALOG,
        key: str = DEFAULT_KEY,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.storage = storage
        self.variant = variant
        self.key = key
        self._new_id = id_factory or default_id_factory(variant)
        self._books: list[BookRecord] = []
        self._lock = asyncio.Lock()

    @property
    def books(self) -> list[BookRecord]:
        return list(self._books)

    async def load(self) -> list[BookRecord]:
        """Read the slot and replace the in-memory list with its contents.

        A missing slot loads as empty. A malformed one is logged and also
        loads as empty. Storage failures raise ``StorageError``.
        """
        async with self._lock:
            blob = await self.storage.get(self.key)
            if blob is None:
                books: list[BookRecord] = []
            else:
                try:
                    books = decode_records(blob, self.variant)
                except MalformedStoredDataError as e:
                    log.warning("stored_books_malformed", key=self.key, error=str(e))
                    books = []
            self._books = books
            log.info("books_loaded", key=self.key, count=len(books), variant=self.variant.value)
            return list(books)

    def get(self, book_id: str) -> BookRecord:
        return self._books[self._index_of(book_id)]

    def filter_by_title(self, query: str = "") -> list[BookRecord]:
        if not query.strip():
            return list(self._books)
        needle = query.casefold()
        return [b for b in self._books if needle in b.title.casefold()]

    async def add(self, draft: DraftBook) -> BookRecord:
        async with self._lock:
            cleaned = self._validate(draft)
            record = self._build(self._fresh_id(), cleaned)
            await self._commit([*self._books, record])
            log.info("book_added", id=record.id, title=record.title)
            return record

    async def update(self, book_id: str, draft: DraftBook) -> BookRecord:
        async with self._lock:
            cleaned = self._validate(draft)
            index = self._index_of(book_id)
            current = self._books[index]
            record = dataclasses.replace(current, **self._mutable_fields(cleaned))
            books = list(self._books)
            books[index] = record
            await self._commit(books)
            log.info("book_updated", id=book_id)
            return record

    async def remove(self, book_id: str) -> None:
        async with self._lock:
            books = [b for b in self._books if b.id != book_id]
            if len(books) == len(self._books):
                log.debug("book_remove_noop", id=book_id)
                return
            await self._commit(books)
            log.info("book_removed", id=book_id)

    async def toggle_status(self, book_id: str) -> BookRecord:
        if self.variant is not Variant.CATALOG:
            raise UnsupportedOperationError(
                f"Read status is not tracked by the {self.variant.value} variant"
            )
        async with self._lock:
            index = self._index_of(book_id)
            current = self._books[index]
            record = dataclasses.replace(current, status=current.status.toggled())
            books = list(self._books)
            books[index] = record
            await self._commit(books)
            log.info("book_status_toggled", id=book_id, status=record.status.value)
            return record

    def _index_of(self, book_id: str) -> int:
        for i, book in enumerate(self._books):
            if book.id == book_id:
                return i
        raise NotFoundError(book_id)

    def _validate(self, draft: DraftBook) -> DraftBook:
        missing = draft.missing_fields(self.variant)
        invalid = draft.invalid_fields(self.variant)
        if missing or invalid:
            log.info("draft_rejected", missing=missing, invalid=invalid)
            raise ValidationError(missing, invalid)
        return draft.cleaned()

    def _fresh_id(self) -> str:
        taken = {b.id for b in self._books}
        book_id = self._new_id()
        while book_id in taken:
            book_id = self._new_id()
        return book_id

    def _mutable_fields(self, draft: DraftBook) -> dict[str, str]:
        fields = {"title": draft.title, "cover_image_ref": draft.cover_image_ref or ""}
        if self.variant is Variant.CATALOG:
            fields.update(author=draft.author, genre=draft.genre)
        else:
            fields["price"] = draft.price
        return fields

    def _build(self, book_id: str, draft: DraftBook) -> BookRecord:
        fields = self._mutable_fields(draft)
        if self.variant is Variant.CATALOG:
            return CatalogEntry(id=book_id, **fields)
        return CommerceEntry(id=book_id, **fields)

    async def _commit(self, books: list[BookRecord]) -> None:
        try:
            await self.storage.set(self.key, encode_records(books))
        except StorageError:
            log.error("persist_failed", key=self.key, count=len(books))
            raise
        self._books = books
