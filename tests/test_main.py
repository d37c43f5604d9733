from __future__ import annotations

import io

import pytest
from fastapi.testclient import TestClient
from PIL import Image

import content
import main


@pytest.fixture
def client(backend):
    main.app.dependency_overrides[main.get_backend] = lambda: backend
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(client):
    response = client.post("/api/auth/login", json={"email": "admin@portfolio.dev", "password": "s3cret"})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def test_root(client) -> None:
    assert client.get("/").json() == {"status": "ok", "service": "portfolio-api"}


def test_public_project_routes(client, backend, make_project) -> None:
    content.create_project(backend, make_project(slug="live", featured=True))
    content.create_project(backend, make_project(slug="wip", status="draft"))

    listing = client.get("/api/projects").json()
    assert [p["slug"] for p in listing["items"]] == ["live"]
    assert listing["cursor"] is None
    assert "displayOrder" in listing["items"][0]

    assert client.get("/api/projects/live").json()["slug"] == "live"
    assert client.get("/api/projects/wip").status_code == 404
    assert [p["slug"] for p in client.get("/api/projects/featured").json()] == ["live"]


def test_bad_cursor_is_a_client_error(client) -> None:
    assert client.get("/api/projects", params={"cursor": "bogus"}).status_code == 400


def test_admin_routes_need_a_token(client, make_project) -> None:
    response = client.post("/api/projects", json=make_project())
    assert response.status_code == 401

    response = client.post("/api/projects", json=make_project(), headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


def test_login_rejects_bad_password(client) -> None:
    response = client.post("/api/auth/login", json={"email": "admin@portfolio.dev", "password": "nope"})
    assert response.status_code == 401


def test_admin_project_lifecycle(client, admin_headers, make_project) -> None:
    created = client.post("/api/projects", json=make_project(slug="x", status="draft"), headers=admin_headers)
    project_id = created.json()["id"]
    assert client.get("/api/projects/x").status_code == 404

    response = client.patch(f"/api/projects/{project_id}", json={"status": "published"}, headers=admin_headers)
    assert response.status_code == 200
    assert client.get("/api/projects/x").json()["id"] == project_id

    assert client.delete(f"/api/projects/{project_id}", headers=admin_headers).json() == {"deleted": True}
    assert client.patch(f"/api/projects/{project_id}", json={"title": "t"}, headers=admin_headers).status_code == 404


def test_admin_listing_covers_every_status_unless_filtered(client, backend, admin_headers, make_project) -> None:
    content.create_project(backend, make_project(slug="live", displayOrder=1))
    content.create_project(backend, make_project(slug="wip", status="draft", displayOrder=2))
    content.create_project(backend, make_project(slug="old", status="archived", displayOrder=3))

    everything = client.get("/api/admin/projects", headers=admin_headers).json()
    assert [p["slug"] for p in everything["items"]] == ["live", "wip", "old"]

    drafts = client.get("/api/admin/projects", params={"status": "draft"}, headers=admin_headers).json()
    assert [p["slug"] for p in drafts["items"]] == ["wip"]


def test_contact_submission_and_moderation(client, admin_headers) -> None:
    response = client.post(
        "/api/contact",
        json={"name": "Ada", "email": "ada@example.com", "message": "Hello", "inquiryType": "commission"},
    )
    assert response.status_code == 200
    submission_id = response.json()["id"]

    client.post(f"/api/contact/{submission_id}/read", headers=admin_headers)
    items = client.get("/api/contact", headers=admin_headers).json()["items"]
    assert items[0]["read"] is True
    assert items[0]["userAgent"] == "testclient"

    client.post(f"/api/contact/{submission_id}/archive", headers=admin_headers)
    assert client.get("/api/contact", headers=admin_headers).json()["items"] == []
    archived = client.get("/api/contact", params={"include_archived": True}, headers=admin_headers).json()
    assert [s["id"] for s in archived["items"]] == [submission_id]


def test_contact_failure_shows_generic_message(unconfigured_backend) -> None:
    main.app.dependency_overrides[main.get_backend] = lambda: unconfigured_backend
    try:
        response = TestClient(main.app).post(
            "/api/contact", json={"name": "Ada", "email": "ada@example.com", "message": "Hello"}
        )
    finally:
        main.app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"detail": main.CONTACT_FAILURE_MESSAGE}


def test_unconfigured_backend_returns_503(unconfigured_backend) -> None:
    main.app.dependency_overrides[main.get_backend] = lambda: unconfigured_backend
    try:
        response = TestClient(main.app).get("/api/projects")
    finally:
        main.app.dependency_overrides.clear()
    assert response.status_code == 503


def test_newsletter_routes(client) -> None:
    first = client.post("/api/newsletter/subscribe", json={"email": "a@b.com", "source": "footer"}).json()
    client.post("/api/newsletter/unsubscribe", json={"email": "a@b.com"})
    second = client.post("/api/newsletter/subscribe", json={"email": "a@b.com", "source": "homepage"}).json()
    assert first["id"] == second["id"]


def test_singleton_routes(client, admin_headers) -> None:
    assert client.get("/api/site-config").status_code == 404

    response = client.patch(
        "/api/site-config",
        json={"siteInfo": {"siteName": "iwan.crafford"}, "footer": {"copyright": "(c) Iwan"}},
        headers=admin_headers,
    )
    assert response.status_code == 200

    body = client.get("/api/site-config").json()
    assert body["id"] == "main"
    assert body["siteInfo"]["siteName"] == "iwan.crafford"


def test_upload_and_download(client, admin_headers) -> None:
    out = io.BytesIO()
    Image.new("RGB", (64, 32), color=(10, 20, 30)).save(out, format="PNG")

    response = client.post(
        "/api/uploads",
        files={"file": ("render.png", out.getvalue(), "image/png")},
        data={"folder": "projects", "subfolder": "frieda"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    url = response.json()["url"]
    assert url.startswith("/files/projects/frieda/")

    downloaded = client.get(url)
    assert downloaded.status_code == 200
    assert downloaded.headers["content-type"] == "image/png"
    assert downloaded.content == out.getvalue()

    assert client.get("/files/projects/missing.png").status_code == 404


def test_upload_rejects_non_images(client, admin_headers) -> None:
    response = client.post(
        "/api/uploads",
        files={"file": ("notes.txt", b"hello", "text/plain")},
        headers=admin_headers,
    )
    assert response.status_code == 400
