"""FastAPI web application for Bookshelf."""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import structlog
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response

from ..core.codec import record_to_dict
from ..core.errors import (
    ImagePickError,
    NotFoundError,
    StorageError,
    UnsupportedOperationError,
    ValidationError,
)
from ..core.images import ImagePicker
from ..core.models import DraftBook, Variant
from ..core.storage import SqliteStorage
from ..core.store import DEFAULT_KEY, CatalogStore

load_dotenv()

log = structlog.get_logger()

VERSION = "0.1.0"
DATA_DIR = Path(os.environ.get("BOOKSHELF_DATA_DIR", ".bookshelf"))
VARIANT = Variant(os.environ.get("BOOKSHELF_VARIANT", Variant.CATALOG.value))
STORAGE_KEY = os.environ.get("BOOKSHELF_STORAGE_KEY", DEFAULT_KEY)
MAX_COVER_BYTES = int(os.environ.get("MAX_COVER_BYTES", str(10 * 1024 * 1024)))
MAX_BODY_BYTES = 50_000  # JSON drafts

# DraftBook attribute -> JSON key in request and error bodies
DRAFT_KEYS = {
    "title": "title",
    "author": "author",
    "genre": "genre",
    "price": "price",
    "cover_image_ref": "image",
}

DATA_DIR.mkdir(parents=True, exist_ok=True)
store = CatalogStore(SqliteStorage(DATA_DIR / "bookshelf.db"), variant=VARIANT, key=STORAGE_KEY)
picker = ImagePicker(DATA_DIR / "covers")


@asynccontextmanager
async def lifespan(app: FastAPI):
    await store.load()
    yield


app = FastAPI(title="Bookshelf", docs_url=None, redoc_url=None, lifespan=lifespan)


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


@app.exception_handler(ValidationError)
async def validation_failed(request: Request, exc: ValidationError):
    return JSONResponse(
        {
            "error": str(exc),
            "missing_fields": [DRAFT_KEYS.get(f, f) for f in exc.missing_fields],
            "invalid_fields": [DRAFT_KEYS.get(f, f) for f in exc.invalid_fields],
        },
        status_code=400,
    )


@app.exception_handler(NotFoundError)
async def not_found(request: Request, exc: NotFoundError):
    return JSONResponse({"error": str(exc)}, status_code=404)


@app.exception_handler(UnsupportedOperationError)
async def unsupported(request: Request, exc: UnsupportedOperationError):
    return JSONResponse({"error": str(exc)}, status_code=409)


@app.exception_handler(ImagePickError)
async def image_rejected(request: Request, exc: ImagePickError):
    return JSONResponse({"error": str(exc)}, status_code=400)


@app.exception_handler(StorageError)
async def storage_unavailable(request: Request, exc: StorageError):
    log.error("storage_unavailable", path=request.url.path, error=str(exc.cause))
    return JSONResponse(
        {"error": "Could not save your library. Please try again."},
        status_code=503,
    )


def _check_length(request: Request, limit: int, message: str) -> JSONResponse | None:
    content_length = request.headers.get("content-length")
    if content_length is None:
        return None
    if not content_length.strip().isdigit():
        return JSONResponse({"error": "Invalid Content-Length header."}, status_code=400)
    if int(content_length) > limit:
        return JSONResponse({"error": message}, status_code=413)
    return None


async def _read_draft(request: Request) -> DraftBook | JSONResponse:
    rejected = _check_length(request, MAX_BODY_BYTES, "Request too large.")
    if rejected:
        return rejected

    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"error": "Body must be a JSON object."}, status_code=400)
    if not isinstance(body, dict):
        return JSONResponse({"error": "Body must be a JSON object."}, status_code=400)

    # null is treated as an empty field; any other non-string is rejected
    invalid = [
        key for key in DRAFT_KEYS.values()
        if body.get(key) is not None and not isinstance(body[key], str)
    ]
    if invalid:
        return JSONResponse(
            {
                "error": "Fields must be strings: " + ", ".join(invalid),
                "missing_fields": [],
                "invalid_fields": invalid,
            },
            status_code=400,
        )

    fields = {attr: body.get(key) or "" for attr, key in DRAFT_KEYS.items()}
    fields["cover_image_ref"] = fields["cover_image_ref"] or None
    return DraftBook(**fields)


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": VERSION,
        "environment": os.environ.get("ENV", "dev"),
        "variant": store.variant.value,
        "books": len(store.books),
    }


@app.get("/api/books")
async def list_books(q: str = ""):
    return {"books": [record_to_dict(b) for b in store.filter_by_title(q)]}


@app.get("/api/books/{book_id}")
async def get_book(book_id: str):
    return record_to_dict(store.get(book_id))


@app.post("/api/books", status_code=201)
async def add_book(request: Request):
    draft = await _read_draft(request)
    if isinstance(draft, JSONResponse):
        return draft
    return record_to_dict(await store.add(draft))


@app.put("/api/books/{book_id}")
async def update_book(book_id: str, request: Request):
    draft = await _read_draft(request)
    if isinstance(draft, JSONResponse):
        return draft
    return record_to_dict(await store.update(book_id, draft))


@app.delete("/api/books/{book_id}", status_code=204)
async def delete_book(book_id: str):
    await store.remove(book_id)
    return Response(status_code=204)


@app.post("/api/books/{book_id}/status")
async def toggle_status(book_id: str):
    return record_to_dict(await store.toggle_status(book_id))


@app.post("/api/covers", status_code=201)
async def upload_cover(filename: str, request: Request):
    rejected = _check_length(request, MAX_COVER_BYTES, "Image too large.")
    if rejected:
        return rejected

    data = await request.body()
    if not data:
        return JSONResponse({"error": "No image selected."}, status_code=400)
    if len(data) > MAX_COVER_BYTES:
        return JSONResponse({"error": "Image too large."}, status_code=413)
    return {"image": picker.save_upload(filename, data)}


def main():
    port = int(os.environ.get("PORT", "8000"))
    is_dev = os.environ.get("ENV", "dev") == "dev"
    uvicorn.run(
        "bookshelf.web.app:app",
        host="0.0.0.0",
        port=port,
        reload=is_dev,
    )
