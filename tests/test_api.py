"""
Coh Music Site - API & Page Tests

End-to-end tests through the FastAPI TestClient. Validates:
- Health check and the error envelope
- Session enforcement (admin pages, writes, private reads)
- Music release CRUD with release timing
- Drag-and-drop ordering endpoints, including rollback on failure
- Gallery uploads (asset host mocked), videos, press releases, press kit
- Newsletter signup, duplicates and CSV export
- Download redirects
- Public and admin pages
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from coh_music import assets, auth, database


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _create_release(client, payload) -> dict:
    response = client.post("/api/music", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def _list(client, path: str) -> list:
    response = client.get(path)
    assert response.status_code == 200
    return response.json()["data"]


# ===========================================================================
# Health & envelope
# ===========================================================================


class TestHealth:
    def test_health(self, client):
        body = client.get("/api/health").json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"
        assert body["assets_configured"] is False
        assert "version" in body

    def test_missing_body(self, client):
        response = client.post("/api/music", content=b"not json",
                               headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json() == {"error": "Missing request body."}

    def test_array_body_rejected(self, client):
        response = client.put("/api/hero", json=["not", "an", "object"])
        assert response.status_code == 400
        assert response.json()["error"] == "Missing request body."


# ===========================================================================
# Auth
# ===========================================================================


class TestAuthEnforcement:
    def test_write_without_session_is_401(self, secured_client, release_payload):
        response = secured_client.post("/api/music", json=release_payload)
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_reorder_without_session_is_401(self, secured_client):
        response = secured_client.patch("/api/videos/order", json={"ids": []})
        assert response.status_code == 401

    def test_public_reads_are_open(self, secured_client):
        assert secured_client.get("/api/music").status_code == 200
        assert secured_client.get("/").status_code == 200

    def test_undecodable_cookie_is_ignored(self, secured_client):
        headers = {"cookie": "coh_session=abc|sigé".encode("utf-8")}
        assert secured_client.get("/", headers=headers).status_code == 200
        response = secured_client.get("/admin", headers=headers, follow_redirects=False)
        assert response.status_code == 302

    def test_subscriber_list_is_private(self, secured_client):
        assert secured_client.get("/api/newsletter").status_code == 401
        assert secured_client.get("/api/newsletter/csv").status_code == 401

    def test_newsletter_signup_is_public(self, secured_client):
        response = secured_client.post("/api/newsletter", json={"email": "fan@example.com"})
        assert response.status_code == 201

    def test_admin_redirects_to_login(self, secured_client):
        response = secured_client.get("/admin", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/login?next=/admin"

    def test_session_cookie_unlocks_writes(self, secured_client, admin_cookie, release_payload):
        secured_client.cookies.update(admin_cookie)
        response = secured_client.post("/api/music", json=release_payload)
        assert response.status_code == 201

    def test_login_sets_cookie(self, secured_client, monkeypatch):
        monkeypatch.setattr(auth, "ADMIN_EMAIL", "admin@cohmusic.com")
        response = secured_client.post(
            "/login",
            data={"email": "Admin@CohMusic.com", "password": "correct-horse", "next": "/admin"},
            follow_redirects=False,
        )
        assert response.status_code == 302
        assert response.headers["location"] == "/admin"
        assert "coh_session" in response.headers["set-cookie"]

    def test_bad_login_shows_error(self, secured_client):
        response = secured_client.post(
            "/login", data={"email": "admin@cohmusic.com", "password": "wrong"}
        )
        assert response.status_code == 401
        assert "Invalid email or password" in response.text

    def test_logout_redirects_home(self, secured_client):
        response = secured_client.get("/logout", follow_redirects=False)
        assert response.status_code == 302
        assert response.headers["location"] == "/"


# ===========================================================================
# Music releases
# ===========================================================================


class TestMusicReleases:
    def test_create_resolves_timing(self, client, release_payload):
        release = _create_release(client, release_payload)
        assert release["slug"] == "night-signals"
        assert release["releaseDate"] == "2025-03-01T00:00:00+00:00"
        assert release["releaseAt"] == "2025-03-01T17:30:00+00:00"
        assert release["comingSoon"] is False
        assert release["showComingSoon"] is False
        assert release["sortOrder"] == 0
        assert release["streamingLinks"][0]["id"] == (
            "night-signals-Spotify-https://open.spotify.com/track/abc"
        )

    def test_future_release_is_coming_soon(self, client, make_release):
        release = _create_release(client, make_release("far-off", releaseDate="2099-06-01"))
        assert release["comingSoon"] is True
        assert release["showComingSoon"] is True

    def test_undated_release_is_coming_soon(self, client):
        release = _create_release(client, {"title": "Untitled", "slug": "untitled"})
        assert release["releaseDate"] is None
        assert release["releaseAt"] is None
        assert release["comingSoon"] is True

    def test_invalid_payload(self, client, release_payload):
        release_payload["slug"] = "Not A Slug"
        response = client.post("/api/music", json=release_payload)
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid music release payload."
        assert "slug" in body["issues"]

    def test_time_without_date(self, client):
        response = client.post(
            "/api/music", json={"title": "Demo", "slug": "demo", "releaseTime": "10:00"}
        )
        assert response.status_code == 400
        assert response.json()["issues"]["releaseDate"] == [
            "Provide a release date when release time or timezone is set."
        ]

    def test_duplicate_slug_is_409(self, client, release_payload):
        _create_release(client, release_payload)
        response = client.post("/api/music", json=release_payload)
        assert response.status_code == 409
        assert response.json()["error"] == "Slug already exists."

    def test_create_appends(self, client, make_release):
        orders = [_create_release(client, make_release(s))["sortOrder"] for s in ("a1", "b2", "c3")]
        assert orders == [0, 1, 2]

    def test_update_keeps_sort_order(self, client, make_release):
        _create_release(client, make_release("first"))
        second = _create_release(client, make_release("second"))

        payload = make_release("second", title="Second (Remastered)", id=second["id"])
        response = client.put("/api/music", json=payload)

        assert response.status_code == 200
        updated = response.json()["data"]
        assert updated["title"] == "Second (Remastered)"
        assert updated["sortOrder"] == 1

    def test_update_requires_id(self, client, release_payload):
        response = client.put("/api/music", json=release_payload)
        assert response.status_code == 400
        assert response.json()["error"] == "Music release id is required."

    def test_update_unknown_id(self, client, release_payload):
        response = client.put("/api/music", json=dict(release_payload, id="missing"))
        assert response.status_code == 404

    def test_delete(self, client, release_payload):
        release = _create_release(client, release_payload)
        response = client.delete("/api/music", params={"id": release["id"]})
        assert response.json() == {"success": True}
        assert _list(client, "/api/music") == []

    def test_delete_unknown(self, client):
        assert client.delete("/api/music", params={"id": "nope"}).status_code == 404
        assert client.delete("/api/music").status_code == 400

    def test_delete_removes_hosted_assets(self, client, release_payload, monkeypatch):
        release_payload["coverCloudinaryPublicId"] = "coh/covers/night"
        release = _create_release(client, release_payload)
        destroy = AsyncMock(return_value=1)
        monkeypatch.setattr(assets, "destroy_assets", destroy)

        client.delete("/api/music", params={"id": release["id"]})

        destroy.assert_awaited_once_with(("coh/covers/night", "image"), (None, "video"))

    def test_legacy_cover_public_id(self, client, release_payload):
        release_payload["cloudinaryPublicId"] = "coh/legacy/cover"
        release = _create_release(client, release_payload)
        assert release["coverCloudinaryPublicId"] == "coh/legacy/cover"


# ===========================================================================
# Ordering
# ===========================================================================


class TestOrdering:
    @pytest.fixture
    def three_releases(self, client, make_release):
        return [_create_release(client, make_release(s))["id"] for s in ("one", "two", "three")]

    def test_reorder_round_trip(self, client, three_releases):
        a, b, c = three_releases
        response = client.patch("/api/music/order", json={"ids": [c, a, b]})

        assert response.status_code == 200
        assert response.json() == {"success": True, "data": {"count": 3}}
        listed = _list(client, "/api/music")
        assert [r["id"] for r in listed] == [c, a, b]
        assert [r["sortOrder"] for r in listed] == [0, 1, 2]

    def test_non_string_ids_are_dropped(self, client, three_releases):
        a, b, c = three_releases
        response = client.patch("/api/music/order", json={"ids": [b, 7, c, None, a]})
        assert response.status_code == 200
        assert [r["id"] for r in _list(client, "/api/music")] == [b, c, a]

    def test_unknown_id_is_404(self, client, three_releases):
        a, b, c = three_releases
        response = client.patch("/api/music/order", json={"ids": [a, b, c, "ghost"]})
        assert response.status_code == 404
        assert "ghost" in response.json()["error"]
        assert [r["id"] for r in _list(client, "/api/music")] == three_releases

    def test_partial_list_is_400(self, client, three_releases):
        response = client.patch("/api/music/order", json={"ids": three_releases[:2]})
        assert response.status_code == 400

    def test_empty_list_is_400(self, client, three_releases):
        response = client.patch("/api/music/order", json={"ids": []})
        assert response.status_code == 400
        assert response.json()["error"] == "No valid release ids provided."

    def test_malformed_body_is_400(self, client):
        response = client.patch("/api/videos/order", json={"ids": "a,b"})
        assert response.status_code == 400
        assert response.json()["error"] == "Expected an array of ids."

    def test_persistence_error_is_500(self, client, three_releases, monkeypatch):
        async def broken(table, ids):
            raise RuntimeError("disk full")

        monkeypatch.setattr(database, "reorder_rows", broken)
        a, b, c = three_releases
        response = client.patch("/api/music/order", json={"ids": [c, b, a]})

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to persist release order."}
        assert [r["id"] for r in _list(client, "/api/music")] == three_releases

    def test_video_order(self, client, video_payload):
        ids = []
        for title in ("Clip One", "Clip Two"):
            response = client.post("/api/videos", json=dict(video_payload, title=title))
            ids.append(response.json()["data"]["id"])

        client.patch("/api/videos/order", json={"ids": list(reversed(ids))})

        assert [v["title"] for v in _list(client, "/api/videos")] == ["Clip Two", "Clip One"]


# ===========================================================================
# Gallery
# ===========================================================================


class TestGallery:
    IMAGE = ("stage.jpg", b"\xff\xd8\xff fake jpeg", "image/jpeg")

    def test_requires_file(self, client):
        response = client.post("/api/gallery", data={"title": "Stage"})
        assert response.status_code == 400
        assert response.json()["error"] == "Image file is required."

    def test_unconfigured_asset_host(self, client):
        response = client.post("/api/gallery", data={"title": "Stage"}, files={"file": self.IMAGE})
        assert response.status_code == 503

    def test_bad_tags(self, client):
        response = client.post(
            "/api/gallery", data={"title": "Stage", "tags": "[live"}, files={"file": self.IMAGE}
        )
        assert response.status_code == 400

    def test_upload(self, client, monkeypatch):
        monkeypatch.setattr(assets, "is_configured", lambda: True)
        upload = AsyncMock(
            return_value={
                "url": "https://res.cloudinary.com/demo/image/upload/stage.jpg",
                "public_id": "coh/gallery/stage",
                "width": 1600,
                "height": 900,
            }
        )
        monkeypatch.setattr(assets, "upload_asset", upload)

        response = client.post(
            "/api/gallery",
            data={"title": "Stage", "altText": "Band on stage", "tags": '["live", 3, "crowd"]'},
            files={"file": self.IMAGE},
        )

        assert response.status_code == 201, response.text
        item = response.json()["data"]
        assert item["imageUrl"].endswith("stage.jpg")
        assert item["cloudinaryPublicId"] == "coh/gallery/stage"
        assert item["altText"] == "Band on stage"
        assert item["tags"] == ["live", "crowd"]
        assert item["sortOrder"] == 0
        upload.assert_awaited_once()

    def test_failed_upload_is_500(self, client, monkeypatch):
        monkeypatch.setattr(assets, "is_configured", lambda: True)
        monkeypatch.setattr(assets, "upload_asset", AsyncMock(return_value=None))
        response = client.post("/api/gallery", data={"title": "Stage"}, files={"file": self.IMAGE})
        assert response.status_code == 500


# ===========================================================================
# Videos and press
# ===========================================================================


class TestVideos:
    def test_create_detects_youtube(self, client, video_payload):
        response = client.post("/api/videos", json=video_payload)
        assert response.status_code == 201
        video = response.json()["data"]
        assert video["provider"] == "YOUTUBE"
        assert video["externalId"] == "dQw4w9WgXcQ"
        assert video["tags"] == ["live", "warehouse"]

    def test_update_and_delete(self, client, video_payload):
        video = client.post("/api/videos", json=video_payload).json()["data"]
        payload = dict(video_payload, id=video["id"], videoUrl="https://vimeo.com/42")

        updated = client.put("/api/videos", json=payload).json()["data"]
        assert updated["provider"] == "OTHER"

        assert client.delete("/api/videos", params={"id": video["id"]}).json() == {"success": True}


class TestPressReleases:
    def test_direct_download_url(self, client, press_release_payload):
        response = client.post("/api/press-releases", json=press_release_payload)
        assert response.status_code == 201
        release = response.json()["data"]
        assert release["date"] == "2025-02-14T00:00:00+00:00"
        assert release["directDownloadUrl"] == "https://dl.dropboxusercontent.com/s/abc123/ep.pdf"
        assert release["featured"] is True

    def test_invalid_date(self, client, press_release_payload):
        press_release_payload["date"] = "someday"
        response = client.post("/api/press-releases", json=press_release_payload)
        assert response.status_code == 400
        assert response.json()["issues"] == {"date": ["Invalid release date."]}

    def test_featured_first(self, client, press_release_payload):
        client.post("/api/press-releases", json=dict(press_release_payload, title="Featured one"))
        client.post(
            "/api/press-releases",
            json=dict(press_release_payload, title="Newer", date="2025-06-01", featured=False),
        )
        titles = [r["title"] for r in _list(client, "/api/press-releases")]
        assert titles == ["Featured one", "Newer"]


class TestPressKit:
    def test_save_and_read(self, client):
        payload = {
            "links": [
                {"label": "Press Photos", "url": "https://drive.example/photos", "mode": "open"},
                {"label": "", "url": "https://skip.example"},
            ]
        }
        saved = client.post("/api/press-kit", json=payload).json()["data"]
        assert [link["label"] for link in saved["links"]] == ["Press Photos"]
        assert client.get("/api/press-kit").json()["data"] == saved

    def test_empty_kit(self, client):
        assert client.get("/api/press-kit").json() == {"data": {"links": []}}


class TestSingletons:
    def test_hero_round_trip(self, client):
        payload = {
            "title": "Creature of Habit",
            "subtitle": "Cinematic electronics from the north.",
            "primaryCtaLabel": "Listen",
            "primaryCtaHref": "https://open.spotify.com/artist/coh",
        }
        assert client.get("/api/hero").json() == {"data": None}
        saved = client.put("/api/hero", json=payload).json()["data"]
        assert saved["primaryCtaHref"] == payload["primaryCtaHref"]

        client.put("/api/hero", json=dict(payload, title="Creature of Habit, live"))
        assert client.get("/api/hero").json()["data"]["title"] == "Creature of Habit, live"

    def test_contact_links_get_ids(self, client):
        payload = {
            "emailContact": "hello@cohmusic.com",
            "socialLinks": [{"label": "Instagram", "url": "https://instagram.com/coh"}],
        }
        contact = client.put("/api/contact", json=payload).json()["data"]
        assert contact["socialLinks"][0]["id"] == "social-Instagram-https://instagram.com/coh"

    def test_invalid_hero(self, client):
        response = client.put("/api/hero", json={"title": "Short"})
        assert response.status_code == 400
        assert set(response.json()["issues"]) == {"title", "subtitle"}


# ===========================================================================
# Newsletter
# ===========================================================================


class TestNewsletter:
    def test_subscribe_lowercases(self, client):
        response = client.post(
            "/api/newsletter", json={"email": "Fan@Example.com", "source": "home"}
        )
        assert response.status_code == 201
        assert response.json()["data"]["email"] == "fan@example.com"

    def test_duplicate_is_409(self, client):
        client.post("/api/newsletter", json={"email": "fan@example.com"})
        response = client.post("/api/newsletter", json={"email": "FAN@example.com"})
        assert response.status_code == 409
        assert response.json()["error"] == "Email is already subscribed."

    def test_invalid_email(self, client):
        response = client.post("/api/newsletter", json={"email": "nope"})
        assert response.status_code == 400
        assert "email" in response.json()["issues"]

    def test_csv_export(self, client):
        client.post("/api/newsletter", json={"email": "first@example.com", "source": "home"})
        client.post("/api/newsletter", json={"email": "second@example.com"})

        response = client.get("/api/newsletter/csv")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]
        lines = response.text.splitlines()
        assert lines[0] == "email,created_at,source"
        assert lines[1].startswith('"first@example.com",')
        assert lines[1].endswith(',"home"')
        assert lines[2].endswith(',""')

    def test_unsubscribe(self, client):
        sub = client.post("/api/newsletter", json={"email": "fan@example.com"}).json()["data"]
        assert client.delete("/api/newsletter", params={"id": sub["id"]}).status_code == 200
        response = client.delete("/api/newsletter", params={"id": sub["id"]})
        assert response.status_code == 404
        assert response.json()["error"] == "Subscriber not found."


# ===========================================================================
# Downloads
# ===========================================================================


class TestDownload:
    def test_redirects(self, client):
        url = "https://dl.dropboxusercontent.com/s/abc123/ep.pdf"
        response = client.get("/api/download", params={"url": url}, follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"] == url

    @pytest.mark.parametrize("url", ["ftp://example.com/a.pdf", "javascript:alert(1)", "/local"])
    def test_rejects_non_http(self, client, url):
        response = client.get("/api/download", params={"url": url}, follow_redirects=False)
        assert response.status_code == 400

    def test_missing_url(self, client):
        assert client.get("/api/download").status_code == 400


# ===========================================================================
# Pages
# ===========================================================================


class TestPages:
    def test_home_renders_empty_site(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "Composer • Producer • Multi-Instrumentalist" in response.text

    def test_release_page(self, client, release_payload):
        _create_release(client, release_payload)
        response = client.get("/music/night-signals")
        assert response.status_code == 200
        assert "Night Signals" in response.text
        assert "Mixed by A. Person" in response.text
        assert 'data-coming-soon="true"' not in response.text

    def test_upcoming_release_page_has_badge(self, client, make_release):
        _create_release(client, make_release("far-off", releaseDate="2099-06-01"))
        response = client.get("/music/far-off")
        # 18:30 in Stockholm (CEST)
        expected = int(datetime(2099, 6, 1, 16, 30, tzinfo=timezone.utc).timestamp() * 1000)
        assert 'data-coming-soon="true"' in response.text
        assert f'data-release-timestamp="{expected}"' in response.text

    def test_unknown_release_is_404(self, client):
        assert client.get("/music/does-not-exist").status_code == 404

    def test_press_kit_page(self, client):
        client.post(
            "/api/press-kit",
            json={"links": [{"label": "One-Pager", "url": "https://x.example/one.pdf"}]},
        )
        response = client.get("/press-kit")
        assert response.status_code == 200
        assert "One-Pager" in response.text

    def test_admin_lists_sortable_collections(self, client, release_payload):
        release = _create_release(client, release_payload)
        response = client.get("/admin")
        assert response.status_code == 200
        assert 'data-order-endpoint="/api/music/order"' in response.text
        assert f'data-id="{release["id"]}"' in response.text

    def test_admin_has_editor_for_every_section(self, client):
        response = client.get("/admin")
        assert response.status_code == 200
        for endpoint in (
            "/api/hero",
            "/api/labels",
            "/api/about",
            "/api/contact",
            "/api/music",
            "/api/gallery",
            "/api/videos",
            "/api/press-releases",
            "/api/press-kit",
        ):
            assert f'data-endpoint="{endpoint}"' in response.text
        assert 'data-encoding="multipart"' in response.text
        assert 'name="releaseTime"' in response.text
        assert 'name="timeZone"' in response.text
        assert "/static/js/admin-forms.js" in response.text

    def test_admin_prefills_release_editor(self, client, release_payload):
        release = _create_release(client, release_payload)
        text = client.get("/admin").text
        assert f'<input type="hidden" name="id" value="{release["id"]}" />' in text
        assert 'value="2025-03-01"' in text
        assert 'value="18:30"' in text
        assert 'value="Europe/Stockholm"' in text
        assert "Spotify | https://open.spotify.com/track/abc" in text
        assert 'data-delete-endpoint="/api/music"' in text

    def test_admin_lists_subscribers(self, client):
        client.post("/api/newsletter", json={"email": "fan@example.com"})
        text = client.get("/admin").text
        assert "1 subscriber<" in text
        assert "fan@example.com" in text
        assert 'data-delete-endpoint="/api/newsletter"' in text
