"""
Integration Tests — /api/v1/analyze
════════════════════════════════════
Direct text analysis over HTTP: heuristic path (no provider key), cache
hits, target filtering and request limits.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

TEXT = "Our team is thrilled to launch the new dashboard today! What do you think?"


@pytest.mark.integration
class TestAnalyzeEndpoint:

    async def test_analyze_all_platforms(self, client):
        resp = await client.post("/api/v1/analyze", json={"text": TEXT})

        assert resp.status_code == 200
        body = resp.json()
        assert body["engine"] == "heuristic"
        assert body["cached"] is False
        rewrites = body["analysis"]["platform_rewrites"]
        assert rewrites["twitter"] == rewrites["instagram"] == rewrites["linkedin"] == TEXT

    async def test_second_request_is_cached(self, client):
        first  = (await client.post("/api/v1/analyze", json={"text": TEXT})).json()
        second = (await client.post("/api/v1/analyze", json={"text": TEXT})).json()

        assert second["cached"] is True
        assert second["analysis"] == first["analysis"]

    async def test_targets_filter_rewrites(self, client):
        resp = await client.post("/api/v1/analyze", json={"text": TEXT, "targets": ["instagram"]})

        rewrites = resp.json()["analysis"]["platform_rewrites"]
        assert rewrites["instagram"] == TEXT
        assert rewrites["twitter"] == ""
        assert rewrites["linkedin"] == ""

    async def test_blank_text_is_rejected(self, client):
        resp = await client.post("/api/v1/analyze", json={"text": "   "})

        assert resp.status_code == 422
        assert resp.json()["error_code"] == "VALIDATION_ERROR"

    async def test_unknown_platform_is_rejected(self, client):
        resp = await client.post("/api/v1/analyze", json={"text": TEXT, "targets": ["myspace"]})
        assert resp.status_code == 422

    async def test_text_too_long(self, make_runtime, make_client):
        runtime = make_runtime(max_analysis_chars=20)
        async with make_client(runtime) as ac:
            resp = await ac.post("/api/v1/analyze", json={"text": TEXT})

        assert resp.status_code == 413
        assert resp.json()["error_code"] == "TEXT_TOO_LONG"

    async def test_ai_failure_still_returns_complete_analysis(self, make_runtime, make_client):
        from lumio.core.exceptions import TransientProviderError

        llm = MagicMock()
        llm.complete_json = AsyncMock(side_effect=TransientProviderError("provider down"))
        runtime = make_runtime(llm=llm, analysis_ai_attempts=2, analysis_ai_base_delay_seconds=0.0)

        async with make_client(runtime) as ac:
            resp = await ac.post("/api/v1/analyze", json={"text": TEXT})

        assert resp.status_code == 200
        body = resp.json()
        assert body["engine"] == "heuristic"
        assert body["analysis"]["platform_rewrites"]["twitter"]
        assert llm.complete_json.await_count == 2


@pytest.mark.integration
class TestHashtagEndpoint:

    async def test_heuristic_hashtags(self, client):
        resp = await client.post(
            "/api/v1/analyze/hashtags",
            json={"text": "dashboard dashboard analytics launch launch launch"},
        )

        assert resp.status_code == 200
        body = resp.json()
        assert body["engine"] == "heuristic"
        assert body["hashtags"][0]["tag"] == "#launch"
        assert body["hashtags"][0]["rationale"].startswith("Popular term (score: ")
