"""
End-to-end API tests with the oracle mocked and an in-memory database.
"""

import inspect
import json
import uuid
from typing import Any, Callable, Dict, List
from unittest.mock import Mock

import anthropic
import httpx
import pytest
from fastapi.testclient import TestClient

from app.routers import sentiment

USER = {"X-User-ID": "user-123"}


def analyze(client: TestClient, session_id: str, texts: List[str]) -> Dict[str, Any]:
    response = client.post(f"/api/sessions/{session_id}/analyze",
                           json={"texts": [{"text": text} for text in texts]})
    assert response.status_code == 200, response.text
    return response.json()


class TestServiceEndpoints:
    """Test health and info endpoints."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_root(self, client: TestClient) -> None:
        assert client.get("/").json()["service"] == "SentiMood API"

    def test_correlation_id_echoed(self, client: TestClient) -> None:
        response = client.get("/health", headers={"X-Correlation-ID": "trace-42"})

        assert response.headers["X-Correlation-ID"] == "trace-42"

    def test_samples(self, client: TestClient) -> None:
        response = client.get("/api/sentiment/samples")

        assert response.status_code == 200
        assert len(response.json()["texts"]) == 5


class TestAnalyzeEndpoint:
    """Test classifying batches into a session."""

    def test_analyze_texts(self, client: TestClient, oracle_reply: Callable[[Any], None],
                           sample_oracle_entries: List[Dict[str, Any]]) -> None:
        oracle_reply(sample_oracle_entries)

        data = analyze(client, "tab-1", ["Amazing!", "Terrible service", "It is Tuesday"])

        assert data["session_id"] == "tab-1"
        assert [r["sentiment"] for r in data["results"]] == ["positive", "negative", "neutral"]
        assert [r["id"] for r in data["results"]] == ["generated-1", "generated-2", "generated-3"]
        assert data["stats"]["total"] == 3
        assert data["stats"]["positive"] == data["stats"]["negative"] == data["stats"]["neutral"] == 1
        assert data["stats"]["avg_confidence"] == pytest.approx((0.92 + 0.88 + 0.6) / 3)
        assert data["warning"] is None

    def test_analyze_keeps_caller_ids(self, client: TestClient, oracle_reply) -> None:
        oracle_reply([])

        response = client.post("/api/sessions/tab-1/analyze",
                               json={"texts": [{"text": "hello", "id": "mine"}]})

        assert response.json()["results"][0]["id"] == "mine"
        assert response.json()["results"][0]["sentiment"] == "neutral"

    def test_analyze_pasted_truncates(self, client: TestClient, oracle_reply) -> None:
        oracle_reply([])
        content = "\n".join(f"post number {i}" for i in range(60))

        response = client.post("/api/sessions/tab-1/analyze", json={"content": content})

        data = response.json()
        assert response.status_code == 200
        assert len(data["results"]) == 50
        assert data["warning"]["code"] == "TRUNCATED"
        assert data["warning"]["original_count"] == 60
        assert data["warning"]["kept_count"] == 50

    def test_analyze_empty(self, client: TestClient, mock_anthropic_client: Mock) -> None:
        response = client.post("/api/sessions/tab-1/analyze", json={"texts": []})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "EMPTY_BATCH"
        mock_anthropic_client.messages.create.assert_not_called()

    def test_analyze_blank_paste(self, client: TestClient) -> None:
        response = client.post("/api/sessions/tab-1/analyze", json={"content": "\n  \n"})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "EMPTY_BATCH"

    def test_analyze_too_many(self, client: TestClient, mock_anthropic_client: Mock) -> None:
        texts = [{"text": f"t{i}"} for i in range(51)]

        response = client.post("/api/sessions/tab-1/analyze", json={"texts": texts})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "BATCH_TOO_LARGE"
        mock_anthropic_client.messages.create.assert_not_called()

    def test_analyze_requires_one_source(self, client: TestClient) -> None:
        response = client.post("/api/sessions/tab-1/analyze", json={})

        assert response.status_code == 422

    def test_invalid_session_id(self, client: TestClient) -> None:
        response = client.post("/api/sessions/bad%20id/analyze", json={"content": "hi"})

        assert response.status_code == 422

    def test_rate_limited(self, client: TestClient, mock_anthropic_client: Mock) -> None:
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        mock_anthropic_client.messages.create.side_effect = anthropic.RateLimitError(
            "Error code: 429", response=httpx.Response(429, request=request), body=None)

        response = client.post("/api/sessions/tab-1/analyze", json={"content": "hello"})

        assert response.status_code == 429
        assert response.json()["error"]["code"] == "RATE_LIMITED"

    def test_quota_exhausted(self, client: TestClient, mock_anthropic_client: Mock) -> None:
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        mock_anthropic_client.messages.create.side_effect = anthropic.APIStatusError(
            "Error code: 402", response=httpx.Response(402, request=request), body=None)

        response = client.post("/api/sessions/tab-1/analyze", json={"content": "hello"})

        assert response.status_code == 402
        assert response.json()["error"]["code"] == "QUOTA_EXHAUSTED"

    def test_unparseable_reply_keeps_results(self, client: TestClient, oracle_reply,
                                             sample_oracle_entries) -> None:
        oracle_reply(sample_oracle_entries)
        analyze(client, "tab-1", ["a", "b", "c"])

        oracle_reply("I'm not able to do that.")
        response = client.post("/api/sessions/tab-1/analyze", json={"content": "new text"})

        assert response.status_code == 502
        assert response.json()["error"]["code"] == "ORACLE_UNAVAILABLE"
        assert client.get("/api/sessions/tab-1/stats").json()["total"] == 3


class TestSessionEndpoints:
    """Test reading, clearing and exporting session results."""

    def test_results_replaced_not_appended(self, client: TestClient, oracle_reply,
                                           sample_oracle_entries) -> None:
        oracle_reply(sample_oracle_entries)
        analyze(client, "tab-1", ["a", "b", "c"])
        oracle_reply(sample_oracle_entries[:1])
        analyze(client, "tab-1", ["d"])

        data = client.get("/api/sessions/tab-1/results").json()

        assert [r["text"] for r in data["results"]] == ["d"]
        assert data["stats"]["total"] == 1

    def test_sessions_isolated(self, client: TestClient, oracle_reply, sample_oracle_entries) -> None:
        oracle_reply(sample_oracle_entries)
        analyze(client, "tab-1", ["a", "b", "c"])

        data = client.get("/api/sessions/tab-2/results").json()

        assert data["results"] == []
        assert data["stats"]["avg_confidence"] == 0.0

    def test_clear(self, client: TestClient, oracle_reply, sample_oracle_entries) -> None:
        oracle_reply(sample_oracle_entries)
        analyze(client, "tab-1", ["a", "b", "c"])

        response = client.delete("/api/sessions/tab-1/results")

        assert response.status_code == 200
        assert client.get("/api/sessions/tab-1/stats").json()["total"] == 0
        assert len(client.app.state.session_registry) == 0

    def test_reads_do_not_create_sessions(self, client: TestClient) -> None:
        registry = client.app.state.session_registry

        for i in range(20):
            client.get(f"/api/sessions/s{i}/results")
            client.get(f"/api/sessions/s{i}/stats")
            client.get(f"/api/sessions/s{i}/export", params={"format": "json"})
            client.delete(f"/api/sessions/s{i}/results")

        assert len(registry) == 0

    def test_session_routes_run_on_event_loop(self) -> None:
        """Handlers touching the registry are coroutines, so none run in the threadpool."""
        for handler in (sentiment.analyze, sentiment.get_results, sentiment.get_stats,
                        sentiment.clear_results, sentiment.export_results, sentiment.restore_analysis):
            assert inspect.iscoroutinefunction(handler), handler.__name__

    def test_export_csv(self, client: TestClient, oracle_reply, sample_oracle_entries) -> None:
        oracle_reply(sample_oracle_entries)
        analyze(client, "tab-1", ["Amazing!", "Terrible service", "It is Tuesday"])

        response = client.get("/api/sessions/tab-1/export", params={"format": "csv"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="sentiment-analysis.csv"' in response.headers["content-disposition"]
        lines = response.text.split("\n")
        assert lines[0] == "Text,Sentiment,Confidence,Keywords,Explanation"
        assert lines[1].startswith('"Amazing!",positive,92.0%')

    def test_export_json(self, client: TestClient, oracle_reply, sample_oracle_entries) -> None:
        oracle_reply(sample_oracle_entries)
        analyze(client, "tab-1", ["Amazing!", "Terrible service", "It is Tuesday"])

        response = client.get("/api/sessions/tab-1/export",
                              params={"format": "json", "filename": "launch"})

        assert 'filename="launch.json"' in response.headers["content-disposition"]
        assert [r["text"] for r in json.loads(response.text)] == ["Amazing!", "Terrible service", "It is Tuesday"]

    def test_export_pdf(self, client: TestClient, oracle_reply, sample_oracle_entries) -> None:
        oracle_reply(sample_oracle_entries)
        analyze(client, "tab-1", ["Amazing!", "Terrible service", "It is Tuesday"])

        response = client.get("/api/sessions/tab-1/export", params={"format": "pdf"})

        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    def test_export_unknown_format(self, client: TestClient) -> None:
        response = client.get("/api/sessions/tab-1/export", params={"format": "xml"})

        assert response.status_code == 422


class TestUploadEndpoint:
    """Test file uploads."""

    def test_upload_json(self, client: TestClient) -> None:
        content = b'{"data":[{"text":"ok"},{"content":"fine"}]}'

        response = client.post("/api/sessions/tab-1/upload",
                               files={"file": ("posts.json", content, "application/json")})

        data = response.json()
        assert response.status_code == 200
        assert data["texts"] == ["ok", "fine"]
        assert data["count"] == 2
        assert data["source_type"] == "json"

    def test_upload_does_not_touch_results(self, client: TestClient, oracle_reply,
                                           sample_oracle_entries) -> None:
        oracle_reply(sample_oracle_entries)
        analyze(client, "tab-1", ["a", "b", "c"])

        client.post("/api/sessions/tab-1/upload", files={"file": ("posts.txt", b"new\n", "text/plain")})

        assert client.get("/api/sessions/tab-1/stats").json()["total"] == 3

    def test_upload_unsupported(self, client: TestClient) -> None:
        response = client.post("/api/sessions/tab-1/upload",
                               files={"file": ("doc.docx", b"data", "application/octet-stream")})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "UNSUPPORTED_FORMAT"

    def test_upload_empty(self, client: TestClient) -> None:
        response = client.post("/api/sessions/tab-1/upload",
                               files={"file": ("empty.csv", b"text\n", "text/csv")})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "EMPTY_EXTRACTION"

    def test_upload_invalid_json(self, client: TestClient) -> None:
        response = client.post("/api/sessions/tab-1/upload",
                               files={"file": ("bad.json", b"{nope", "application/json")})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "FILE_VALIDATION_ERROR"


class TestHistoryEndpoints:
    """Test saving, listing, loading, restoring and deleting analyses."""

    def save(self, client: TestClient, title: str = "Launch feedback") -> Dict[str, Any]:
        results = [
            {"id": "r1", "text": "Love the launch", "sentiment": "positive", "confidence": 0.9,
             "keywords": ["love"], "explanation": "Positive."},
            {"id": "r2", "text": "Crashes constantly", "sentiment": "negative", "confidence": 0.85,
             "keywords": ["crashes"], "explanation": "Negative."},
        ]
        response = client.post("/api/analyses", headers=USER,
                               json={"title": title, "source_type": "csv", "results": results})
        assert response.status_code == 201, response.text
        return response.json()

    def test_requires_user(self, client: TestClient) -> None:
        response = client.get("/api/analyses")

        assert response.status_code == 401
        assert response.json()["detail"]["error"]["code"] == "UNAUTHENTICATED"

    def test_save(self, client: TestClient) -> None:
        saved = self.save(client)

        assert saved["user_id"] == "user-123"
        assert saved["total_texts"] == 2
        assert saved["positive_count"] == 1
        assert saved["negative_count"] == 1
        assert saved["neutral_count"] == 0

    def test_save_requires_results(self, client: TestClient) -> None:
        response = client.post("/api/analyses", headers=USER,
                               json={"title": "Nothing", "results": []})

        assert response.status_code == 422

    def test_list(self, client: TestClient) -> None:
        self.save(client, "First")
        self.save(client, "Second")

        data = client.get("/api/analyses", headers=USER).json()

        assert data["total"] == 2
        assert {a["title"] for a in data["analyses"]} == {"First", "Second"}
        assert client.get("/api/analyses", headers={"X-User-ID": "other"}).json()["total"] == 0

    def test_get_with_items(self, client: TestClient) -> None:
        saved = self.save(client)

        data = client.get(f"/api/analyses/{saved['id']}", headers=USER).json()

        assert [item["text_content"] for item in data["items"]] == ["Love the launch", "Crashes constantly"]
        assert data["items"][1]["keywords"] == ["crashes"]

    def test_get_other_user(self, client: TestClient) -> None:
        saved = self.save(client)

        response = client.get(f"/api/analyses/{saved['id']}", headers={"X-User-ID": "intruder"})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ANALYSIS_NOT_FOUND"

    def test_delete(self, client: TestClient) -> None:
        saved = self.save(client)

        response = client.delete(f"/api/analyses/{saved['id']}", headers=USER)

        assert response.status_code == 200
        assert client.get(f"/api/analyses/{saved['id']}", headers=USER).status_code == 404

    def test_delete_missing(self, client: TestClient) -> None:
        response = client.delete(f"/api/analyses/{uuid.uuid4()}", headers=USER)

        assert response.status_code == 404

    def test_restore_into_session(self, client: TestClient) -> None:
        saved = self.save(client)

        response = client.post(f"/api/sessions/tab-9/restore/{saved['id']}", headers=USER)

        data = response.json()
        assert response.status_code == 200
        assert [r["text"] for r in data["results"]] == ["Love the launch", "Crashes constantly"]
        assert data["stats"]["total"] == 2
        assert client.get("/api/sessions/tab-9/stats").json()["positive"] == 1
