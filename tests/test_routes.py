import pytest
from fastapi.testclient import TestClient

from lumenpress.config import settings
from lumenpress.main import app
from lumenpress.storage.factory import get_storage
from lumenpress.storage.local_adapter import LocalStorageAdapter
from lumenpress.utils.auth import hash_password
from lumenpress.utils.rate_limit import limiter
from tests.conftest import jpeg_bytes

ADMIN = {"X-CMS-Password": "admin-secret"}


@pytest.fixture
def client(sample_site, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_PASSWORD_HASH", hash_password("admin-secret", rounds=4))
    app.dependency_overrides[get_storage] = lambda: sample_site
    limiter.reset()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def protected(sample_site):
    hashed = hash_password("letmein", rounds=4)
    sample_site.put("galleries/tokyo-2024/gallery.yaml", f'title: Tokyo 2024\npassword: "{hashed}"\n')
    return "tokyo-2024"


class TestHealth:
    def test_root_and_health(self, client):
        assert client.get("/").json()["status"] == "healthy"
        assert client.get("/health").json() == {"status": "healthy"}

    def test_storage_health(self, client):
        response = client.get("/health/storage")
        assert response.status_code == 200
        assert response.json()["storage"] == "local"

    def test_storage_health_missing_root(self, client, tmp_path):
        app.dependency_overrides[get_storage] = lambda: LocalStorageAdapter(tmp_path / "missing")
        response = client.get("/health/storage")
        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"


class TestPublicContent:
    def test_content_index(self, client):
        response = client.get("/api/content-index")
        assert response.status_code == 200
        body = response.json()
        assert body["version"] == 1
        assert [g["slug"] for g in body["galleries"]] == ["tokyo-2024", "travel/japan"]
        assert [p["slug"] for p in body["posts"]] == ["trip", "first-post"]
        assert body["warnings"] == []

    def test_entries(self, client):
        assert client.get("/api/galleries").status_code == 200
        assert client.get("/api/galleries/travel/japan").json()["title"] == "Japan"
        assert client.get("/api/posts/trip").json()["title"] == "The Trip"
        assert [p["slug"] for p in client.get("/api/pages").json()] == ["about"]
        assert client.get("/api/pages/about").json()["title"] == "About Me"
        assert client.get("/api/tags").json() == {"travel": 2, "japan": 1}

        nav = client.get("/api/navigation").json()
        assert [n["slug"] for n in nav] == ["tokyo-2024", "travel"]
        assert nav[1]["virtual"] is True

    def test_not_found(self, client):
        response = client.get("/api/galleries/nowhere")
        assert response.status_code == 404
        assert response.json()["error"] == "Not found"
        assert client.get("/api/posts/nowhere").status_code == 404

    def test_missing_content_root(self, client, tmp_path):
        app.dependency_overrides[get_storage] = lambda: LocalStorageAdapter(tmp_path / "missing")
        response = client.get("/api/content-index")
        assert response.status_code == 503
        assert response.json()["error"] == "Content root missing"

    def test_slug_collision(self, client, sample_site):
        sample_site.put("pages/about.md", "Another about page")
        response = client.get("/api/pages")
        assert response.status_code == 409
        assert sorted(response.json()["paths"]) == ["pages/about.md", "pages/about/index.md"]


class TestImages:
    def test_original_with_cache_headers(self, client, sample_site):
        response = client.get("/api/images/galleries/tokyo-2024/a.jpg")
        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.headers["cache-control"] == "public, max-age=31536000, immutable"
        assert response.content == sample_site.get("galleries/tokyo-2024/a.jpg")

    def test_not_modified(self, client):
        etag = client.get("/api/images/galleries/tokyo-2024/a.jpg").headers["etag"]

        cached = client.get("/api/images/galleries/tokyo-2024/a.jpg", headers={"If-None-Match": etag})
        assert cached.status_code == 304
        assert cached.content == b""
        assert cached.headers["etag"] == etag

        fresh = client.get("/api/images/galleries/tokyo-2024/a.jpg", headers={"If-None-Match": '"stale"'})
        assert fresh.status_code == 200
        assert fresh.content

    def test_variant(self, client, sample_site):
        sample_site.put("galleries/tokyo-2024/a_400w.webp", b"webp-bytes")
        response = client.get("/api/images/galleries/tokyo-2024/a.jpg?w=300")
        assert response.headers["content-type"] == "image/webp"
        assert response.content == b"webp-bytes"

    def test_forbidden_and_missing(self, client):
        assert client.get("/api/images/galleries/tokyo-2024/gallery.yaml").status_code == 403
        assert client.get("/api/images/_content-index.json").status_code == 403
        assert client.get("/api/images/galleries/tokyo-2024/zzz.jpg").status_code == 404

    def test_invalid_width(self, client):
        response = client.get("/api/images/galleries/tokyo-2024/a.jpg?w=0")
        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"


class TestGalleryUnlock:
    def test_protected_gallery_hides_photos(self, client, protected):
        body = client.get(f"/api/galleries/{protected}").json()
        assert body["is_protected"] is True
        assert body["photos"] == []
        assert body["password_hash"] is None

    def test_unlock(self, client, protected):
        wrong = client.post(f"/api/galleries/{protected}/unlock", json={"password": "nope"})
        assert wrong.status_code == 401
        assert wrong.json()["error"] == "Invalid password"

        right = client.post(f"/api/galleries/{protected}/unlock", json={"password": "letmein"})
        assert right.status_code == 200
        assert [p["filename"] for p in right.json()["photos"]] == ["a.jpg", "b.jpg"]
        assert right.json()["password_hash"] is None

    def test_unlock_is_rate_limited(self, client, protected):
        statuses = [
            client.post(f"/api/galleries/{protected}/unlock", json={"password": "nope"}).status_code
            for _ in range(6)
        ]
        assert statuses == [401] * 5 + [429]


class TestCms:
    def test_requires_password(self, client):
        missing = client.get("/api/cms/content-index")
        assert missing.status_code == 401
        assert missing.json()["error"] == "Missing password"

        wrong = client.get("/api/cms/content-index", headers={"X-CMS-Password": "guess"})
        assert wrong.status_code == 401
        assert wrong.json()["error"] == "Invalid password"

    def test_unconfigured_admin_hash(self, client, monkeypatch):
        monkeypatch.setattr(settings, "ADMIN_PASSWORD_HASH", "")
        response = client.get("/api/cms/content-index", headers=ADMIN)
        assert response.status_code == 500
        assert response.json()["error"] == "Authentication not configured"

    def test_full_index_includes_drafts(self, client, sample_site):
        sample_site.put("blog/wip.md", "---\ndraft: true\n---\nSoon")
        body = client.get("/api/cms/content-index", headers=ADMIN).json()
        assert "wip" in [p["slug"] for p in body["posts"]]
        assert "wip" not in [p["slug"] for p in client.get("/api/posts").json()]

    def test_index_actions(self, client):
        client.get("/api/content-index")

        rebuilt = client.post("/api/cms/content-index", json={"action": "rebuild"}, headers=ADMIN)
        assert rebuilt.status_code == 200
        assert rebuilt.json()["version"] == 2
        assert rebuilt.json()["stats"]["photos"] == 3

        invalidated = client.post("/api/cms/content-index", json={"action": "invalidate"}, headers=ADMIN)
        assert invalidated.json()["success"] is True
        assert client.get("/api/content-index").json()["version"] == 3

        bogus = client.post("/api/cms/content-index", json={"action": "explode"}, headers=ADMIN)
        assert bogus.status_code == 400

    def test_post_lifecycle(self, client):
        created = client.post(
            "/api/cms/posts/new-post", json={"title": "New", "body": "Text", "draft": False}, headers=ADMIN
        )
        assert created.status_code == 201
        assert client.get("/api/posts/new-post").json()["title"] == "New"

        again = client.post("/api/cms/posts/new-post", json={"title": "New"}, headers=ADMIN)
        assert again.status_code == 409
        assert again.json()["error"] == "Slug collision"

        bad = client.post("/api/cms/posts/Bad%20Slug", json={"title": "x"}, headers=ADMIN)
        assert bad.status_code == 400

        updated = client.put(
            "/api/cms/posts/new-post", json={"title": "Renamed", "draft": False}, headers=ADMIN
        )
        assert updated.status_code == 200
        assert client.get("/api/posts/new-post").json()["title"] == "Renamed"

        assert client.delete("/api/cms/posts/new-post", headers=ADMIN).status_code == 200
        assert client.get("/api/posts/new-post").status_code == 404

    def test_rebuild_after_write_setting(self, client, monkeypatch):
        monkeypatch.setattr(settings, "REBUILD_AFTER_WRITE", True)
        created = client.post(
            "/api/cms/posts/fresh", json={"title": "Fresh", "draft": False}, headers=ADMIN
        )
        assert created.status_code == 201
        assert created.json()["index"].startswith("rebuilt")

        monkeypatch.setattr(settings, "REBUILD_AFTER_WRITE", False)
        removed = client.delete("/api/cms/posts/fresh", headers=ADMIN)
        assert removed.json()["index"] == "invalidated"

    def test_pages(self, client):
        saved = client.put("/api/cms/pages/contact", json={"title": "Contact"}, headers=ADMIN)
        assert saved.status_code == 200
        assert client.get("/api/pages/contact").json()["title"] == "Contact"
        assert client.delete("/api/cms/pages/contact", headers=ADMIN).status_code == 200
        assert client.get("/api/pages/contact").status_code == 404

    def test_gallery_metadata_and_photos(self, client):
        response = client.put(
            "/api/cms/galleries/travel/japan/metadata",
            json={"title": "Japan 2023", "order": 1},
            headers=ADMIN,
        )
        assert response.status_code == 200
        assert client.get("/api/galleries/travel/japan").json()["title"] == "Japan 2023"

        overrides = client.put(
            "/api/cms/galleries/tokyo-2024/photos",
            json={"photos": [{"filename": "b.jpg", "hidden": True}]},
            headers=ADMIN,
        )
        assert overrides.status_code == 200
        photos = client.get("/api/galleries/tokyo-2024").json()["photos"]
        assert [p["filename"] for p in photos] == ["a.jpg"]

    def test_upload_and_delete_photo(self, client, sample_site):
        uploaded = client.post(
            "/api/cms/galleries/tokyo-2024/photos",
            files=[("files", ("c.jpg", jpeg_bytes(), "image/jpeg"))],
            headers=ADMIN,
        )
        assert uploaded.status_code == 201
        assert sample_site.exists("galleries/tokyo-2024/c.jpg")

        rejected = client.post(
            "/api/cms/galleries/tokyo-2024/photos",
            files=[("files", ("notes.txt", b"text", "text/plain"))],
            headers=ADMIN,
        )
        assert rejected.status_code == 400

        deleted = client.delete("/api/cms/galleries/tokyo-2024/photos/c.jpg", headers=ADMIN)
        assert deleted.status_code == 200
        assert not sample_site.exists("galleries/tokyo-2024/c.jpg")

    def test_delete_nested_gallery(self, client, sample_site):
        response = client.delete("/api/cms/galleries/travel/japan", headers=ADMIN)
        assert response.status_code == 200
        assert not sample_site.exists("galleries/travel/japan")
        assert client.get("/api/galleries/travel/japan").status_code == 404
