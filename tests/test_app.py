import importlib

import pytest
from fastapi.testclient import TestClient

DUNE = {"title": "Dune", "author": "Herbert", "genre": "SF", "image": "file://a.jpg"}


def _client(monkeypatch, tmp_path, variant="catalog"):
    monkeypatch.setenv("BOOKSHELF_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("BOOKSHELF_VARIANT", variant)
    import bookshelf.web.app as app_module

    # Reload so the module-level store picks up this test's data dir
    importlib.reload(app_module)
    return app_module, TestClient(app_module.app)


@pytest.fixture
def client(monkeypatch, tmp_path):
    _, test_client = _client(monkeypatch, tmp_path)
    with test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["variant"] == "catalog"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_add_and_list(client):
    response = client.post("/api/books", json=DUNE)
    assert response.status_code == 201
    created = response.json()
    assert created["status"] == "Unread"

    client.post("/api/books", json={**DUNE, "title": "Foundation"})
    titles = [b["title"] for b in client.get("/api/books").json()["books"]]
    assert titles == ["Dune", "Foundation"]

    found = client.get("/api/books", params={"q": "FOUND"}).json()["books"]
    assert [b["title"] for b in found] == ["Foundation"]
    assert client.get(f"/api/books/{created['id']}").json() == created


def test_add_missing_fields(client):
    response = client.post("/api/books", json={"title": "Dune"})
    assert response.status_code == 400
    assert response.json()["missing_fields"] == ["author", "genre", "image"]
    assert client.get("/api/books").json()["books"] == []


def test_add_rejects_non_object(client):
    response = client.post("/api/books", json=["Dune"])
    assert response.status_code == 400


def test_update_toggle_delete(client):
    book_id = client.post("/api/books", json=DUNE).json()["id"]

    response = client.put(f"/api/books/{book_id}", json={**DUNE, "genre": "Classic SF"})
    assert response.status_code == 200
    assert response.json()["genre"] == "Classic SF"
    assert response.json()["id"] == book_id

    response = client.post(f"/api/books/{book_id}/status")
    assert response.json()["status"] == "Read"

    assert client.delete(f"/api/books/{book_id}").status_code == 204
    assert client.delete(f"/api/books/{book_id}").status_code == 204
    assert client.get(f"/api/books/{book_id}").status_code == 404


def test_update_missing_book(client):
    response = client.put("/api/books/nope", json=DUNE)
    assert response.status_code == 404


def test_books_survive_restart(monkeypatch, tmp_path):
    _, first = _client(monkeypatch, tmp_path)
    with first:
        created = first.post("/api/books", json=DUNE).json()

    _, second = _client(monkeypatch, tmp_path)
    with second:
        assert second.get("/api/books").json()["books"] == [created]


def test_commerce_variant(monkeypatch, tmp_path):
    _, test_client = _client(monkeypatch, tmp_path, variant="commerce")
    with test_client:
        response = test_client.post(
            "/api/books", json={"title": "Dune", "price": "9.99", "image": "file://a.jpg"}
        )
        assert response.status_code == 201
        book_id = response.json()["id"]
        assert "status" not in response.json()
        assert test_client.post(f"/api/books/{book_id}/status").status_code == 409


def test_storage_failure_returns_503(monkeypatch, tmp_path):
    app_module, test_client = _client(monkeypatch, tmp_path)
    with test_client:
        app_module.store.storage.db_path = tmp_path / "gone" / "bookshelf.db"
        response = test_client.post("/api/books", json=DUNE)
        assert response.status_code == 503
        assert app_module.store.books == []


def test_upload_cover(client, tmp_path):
    response = client.post(
        "/api/covers",
        params={"filename": "dune.png"},
        content=b"png-bytes",
    )
    assert response.status_code == 201
    uri = response.json()["image"]
    assert uri.startswith("file://")
    assert "/data/covers/" in uri

    book = client.post("/api/books", json={**DUNE, "image": uri}).json()
    assert book["image"] == uri


def test_upload_cover_rejected(client):
    assert client.post("/api/covers", params={"filename": "a.png"}, content=b"").status_code == 400
    assert client.post("/api/covers", params={"filename": "a.exe"}, content=b"x").status_code == 400


def test_add_rejects_non_string_fields(client):
    response = client.post("/api/books", json={**DUNE, "author": 42, "image": ["file://a.jpg"]})
    assert response.status_code == 400
    assert response.json()["invalid_fields"] == ["author", "image"]
    assert client.get("/api/books").json()["books"] == []


def test_null_field_counts_as_missing(client):
    response = client.post("/api/books", json={**DUNE, "genre": None})
    assert response.status_code == 400
    assert response.json()["missing_fields"] == ["genre"]


def test_malformed_content_length(client):
    response = client.post(
        "/api/covers",
        params={"filename": "a.png"},
        content=b"png",
        headers={"content-length": "lots"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "Invalid Content-Length header."

    response = client.post("/api/books", content=b"{}", headers={"content-length": "-1"})
    assert response.status_code == 400
