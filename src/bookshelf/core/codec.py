"""Serialize the full record list to and from the stored JSON blob."""

from __future__ import annotations

import json
from typing import Any

from .errors import MalformedStoredDataError
from .models import BookRecord, CatalogEntry, CommerceEntry, Status, Variant

# Stored key for each record attribute. The cover lives under "image".
_CATALOG_KEYS = {
    "id": "id",
    "title": "title",
    "author": "author",
    "genre": "genre",
    "cover_image_ref": "image",
    "status": "status",
}
_COMMERCE_KEYS = {
    "id": "id",
    "title": "title",
    "price": "price",
    "cover_image_ref": "image",
}


def record_to_dict(record: BookRecord) -> dict[str, Any]:
    """Map a record to its flat stored/JSON shape."""
    if isinstance(record, CatalogEntry):
        data = {key: getattr(record, attr) for attr, key in _CATALOG_KEYS.items()}
        data["status"] = record.status.value
        return data
    if isinstance(record, CommerceEntry):
        return {key: getattr(record, attr) for attr, key in _COMMERCE_KEYS.items()}
    raise TypeError(f"Unknown record type {type(record).__name__}")


def record_from_dict(data: Any, variant: Variant) -> BookRecord:
    if not isinstance(data, dict):
        raise MalformedStoredDataError(f"Record is not an object: {data!r}")

    keys = _CATALOG_KEYS if variant is Variant.CATALOG else _COMMERCE_KEYS
    values: dict[str, str] = {}
    for attr, key in keys.items():
        value = data.get(key)
        if not isinstance(value, str):
            raise MalformedStoredDataError(f"Record field {key!r} missing or not a string")
        values[attr] = value

    if variant is Variant.COMMERCE:
        return CommerceEntry(**values)

    try:
        status = Status(values.pop("status"))
    except ValueError as e:
        raise MalformedStoredDataError(str(e)) from e
    return CatalogEntry(status=status, **values)


def encode_records(records: list[BookRecord]) -> str:
    return json.dumps([record_to_dict(r) for r in records])


def decode_records(blob: str, variant: Variant) -> list[BookRecord]:
    """Decode a stored blob, keeping list order.

    Raises ``MalformedStoredDataError`` if the blob is not a JSON array of
    records of the given variant or if ids repeat.
    """
    try:
        raw = json.loads(blob)
    except (TypeError, ValueError) as e:
        raise MalformedStoredDataError(f"Stored books are not valid JSON: {e}") from e

    if not isinstance(raw, list):
        raise MalformedStoredDataError("Stored books are not a list")

    records = [record_from_dict(entry, variant) for entry in raw]
    ids = [r.id for r in records]
    if len(set(ids)) != len(ids):
        raise MalformedStoredDataError("Stored books contain duplicate ids")
    return records
