"""Integration tests for API endpoints using FastAPI TestClient.

The app runs its real lifespan against in-memory SQLite and the memory
ephemeral tier; only the transcript providers are replaced.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from fakes import FakeProvider, VIDEO_ID
from transcript_service.config import get_settings
from transcript_service.domain.exceptions import ProviderRateLimitedError
from transcript_service.main import create_app

MISSING_ID = "aaaaaaaaaaa"


@pytest.fixture
def settings():
    return get_settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        redis_url="",
        supadata_api_key="",
        scrapecreators_api_key="sc-test-key",
    )


@pytest.fixture
def scraper() -> FakeProvider:
    return FakeProvider("youtube-transcript")


@pytest.fixture
def paid_api() -> FakeProvider:
    return FakeProvider("scrapecreators")


@pytest.fixture
def client(settings, scraper, paid_api):
    app = create_app(
        settings,
        providers={"youtube-transcript": scraper, "scrapecreators": paid_api},
    )
    with TestClient(app) as client:
        yield client


class TestHealthEndpoints:
    def test_health_check(self, client):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "ok"
        assert data["services"] == {"database": "connected", "cache": "connected"}

    def test_metrics_endpoint(self, client):
        client.get("/api/v1/health")
        resp = client.get("/api/v1/metrics")
        assert resp.status_code == 200
        assert b"http_requests_total" in resp.content

    def test_request_id_is_echoed(self, client):
        resp = client.get("/api/v1/health", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"
        assert client.get("/api/v1/health").headers["X-Request-ID"]


class TestTranscriptEndpoints:
    def test_fetch_then_serve_from_cache(self, client, scraper):
        first = client.get(f"/api/v1/transcripts/{VIDEO_ID}")
        assert first.status_code == 200
        body = first.json()
        assert body["video_id"] == VIDEO_ID
        assert body["source"] == "youtube-transcript"
        assert body["full_text"] == "hello world again"
        assert body["cached"] is False
        assert len(body["segments"]) == 2

        second = client.get(f"/api/v1/transcripts/{VIDEO_ID}")
        assert second.status_code == 200
        assert second.json()["cached"] is True
        assert second.json()["access_count"] == 1
        assert scraper.calls == 1

    def test_accepts_share_urls(self, client, scraper):
        resp = client.get(f"/api/v1/transcripts/youtu.be/{VIDEO_ID}")
        assert resp.status_code == 200
        assert resp.json()["video_id"] == VIDEO_ID
        assert scraper.video_ids == [VIDEO_ID]

    def test_accepts_watch_url_as_query_parameter(self, client, scraper):
        resp = client.get(
            "/api/v1/transcripts",
            params={"url": f"https://www.youtube.com/watch?v={VIDEO_ID}&t=42s"},
        )
        assert resp.status_code == 200
        assert resp.json()["video_id"] == VIDEO_ID
        assert scraper.video_ids == [VIDEO_ID]

        cached = client.get(f"/api/v1/transcripts/{VIDEO_ID}")
        assert cached.json()["cached"] is True

    def test_url_parameter_is_required(self, client):
        assert client.get("/api/v1/transcripts").status_code == 422

    def test_invalid_video_id(self, client, scraper):
        resp = client.get("/api/v1/transcripts/abc")
        assert resp.status_code == 422
        assert resp.json()["code"] == "INVALID_VIDEO_ID"
        assert scraper.calls == 0

    def test_falls_back_to_next_provider(self, client, scraper, paid_api):
        scraper.default = ProviderRateLimitedError("youtube-transcript", "blocked")

        resp = client.get(f"/api/v1/transcripts/{VIDEO_ID}")

        assert resp.status_code == 200
        assert resp.json()["source"] == "scrapecreators"
        assert paid_api.calls == 1

    def test_not_found_is_cached(self, client, scraper, paid_api):
        scraper.default = None
        paid_api.default = None

        first = client.get(f"/api/v1/transcripts/{MISSING_ID}")
        assert first.status_code == 404
        assert first.json()["code"] == "TRANSCRIPT_NOT_FOUND"
        assert "scrapecreators" in first.json()["message"]

        second = client.get(f"/api/v1/transcripts/{MISSING_ID}")
        assert second.status_code == 404
        assert second.json()["message"] == first.json()["message"]
        assert scraper.calls == 1
        assert paid_api.calls == 1

    def test_refresh_bypasses_cache(self, client, scraper):
        client.get(f"/api/v1/transcripts/{VIDEO_ID}")
        resp = client.get(f"/api/v1/transcripts/{VIDEO_ID}", params={"refresh": "true"})
        assert resp.json()["cached"] is False
        assert scraper.calls == 2

    def test_invalidate_cache(self, client, scraper):
        client.get(f"/api/v1/transcripts/{VIDEO_ID}")

        resp = client.delete(f"/api/v1/transcripts/{VIDEO_ID}/cache")
        assert resp.status_code == 200
        assert resp.json() == {"video_id": VIDEO_ID, "removed": True}

        client.get(f"/api/v1/transcripts/{VIDEO_ID}")
        assert scraper.calls == 2

    def test_purge_expired(self, client):
        resp = client.post("/api/v1/transcripts/cache/purge")
        assert resp.status_code == 200
        assert resp.json() == {"purged": 0}


class TestProviderEndpoints:
    def test_status_lists_every_provider(self, client):
        client.get(f"/api/v1/transcripts/{VIDEO_ID}")

        resp = client.get("/api/v1/providers/status")

        assert resp.status_code == 200
        data = resp.json()
        assert list(data["providers"]) == ["youtube-transcript", "supadata", "scrapecreators"]
        assert data["providers"]["supadata"]["configured"] is False
        assert data["providers"]["youtube-transcript"]["success_rate"] == 100.0
        assert data["stats"]["total_requests"] == 1

    def test_reset_clears_cooldown(self, client, scraper):
        scraper.default = ProviderRateLimitedError("youtube-transcript", "blocked")
        client.get(f"/api/v1/transcripts/{VIDEO_ID}")
        status = client.get("/api/v1/providers/status").json()
        assert status["providers"]["youtube-transcript"]["in_cooldown"] is True

        resp = client.post("/api/v1/providers/youtube-transcript/reset")
        assert resp.status_code == 200
        assert resp.json() == {"status": "reset", "provider_id": "youtube-transcript"}

        status = client.get("/api/v1/providers/status").json()
        assert status["providers"]["youtube-transcript"]["in_cooldown"] is False

    def test_reset_all(self, client):
        resp = client.post("/api/v1/providers/reset")
        assert resp.status_code == 200
        assert resp.json() == {"status": "reset", "provider_id": None}

    def test_reset_unknown_provider(self, client):
        resp = client.post("/api/v1/providers/nope/reset")
        assert resp.status_code == 404


def test_lifespan_closes_providers(settings, scraper):
    with TestClient(create_app(settings, providers={"youtube-transcript": scraper})):
        pass
    assert scraper.closed
