import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from mail_search import SearchManager

MESSAGES = [
    {
        "message_id": "m1",
        "subject": "Project Update",
        "sender": "alice@x.com",
        "to": "team@x.com",
        "body_text": "The quarterly budget numbers are ready.",
        "date": "2024-01-10",
    },
    {
        "message_id": "m2",
        "subject": "Invoice March",
        "sender": {"name": "Carol Jones", "address": "carol@y.org"},
        "body_html": "<p>Please find the <b>invoice</b> attached</p>",
        "date": "2024-03-05T23:30:00+00:00",
        "attachments": [{"filename": "Invoice-March.pdf", "mime_type": "application/pdf", "size": 5000}],
    },
]


@pytest.fixture
def client():
    return TestClient(create_app(SearchManager()))


@pytest.fixture
def indexed_client(client):
    resp = client.post("/api/index", json={"messages": MESSAGES})
    assert resp.status_code == 200
    return client


def test_search_before_indexing_is_conflict(client):
    resp = client.get("/api/search", params={"q": "budget"})
    assert resp.status_code == 409


def test_build_index_returns_stats(client):
    resp = client.post("/api/index", json={"messages": MESSAGES})
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_messages"] == 2
    assert body["attachments"] == 1
    assert body["dates_indexed"] == 2


def test_search(indexed_client):
    resp = indexed_client.get("/api/search", params={"q": "from:carol has:attachment"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["results"] == ["m2"]
    assert body["total_results"] == 1
    assert body["local"]["search_type"] == "advanced"
    assert body["local"]["parsed_query"]["from"] == ["carol"]
    assert body["remote"] is None


def test_search_sorted_and_limited(indexed_client):
    resp = indexed_client.get("/api/search", params={"q": "after:2024-01-01", "sort_by": "date", "limit": 1})
    body = resp.json()
    assert body["results"] == ["m2"]
    assert body["total_results"] == 2


def test_blank_search_is_empty(indexed_client):
    resp = indexed_client.get("/api/search", params={"q": "  "})
    assert resp.status_code == 200
    assert resp.json()["search_type"] == "empty"


def test_overlong_query_is_bad_request(indexed_client):
    resp = indexed_client.get("/api/search", params={"q": "x" * 600})
    assert resp.status_code == 400
    assert "Invalid search query" in resp.json()["detail"]


def test_index_single_message(indexed_client):
    resp = indexed_client.post("/api/index/messages", json={"message_id": "m3", "subject": "Offsite plan"})
    assert resp.json()["total_messages"] == 3
    assert indexed_client.get("/api/search", params={"q": "offsite"}).json()["results"] == ["m3"]


def test_stats_include_config(indexed_client):
    body = indexed_client.get("/api/index/stats").json()
    assert body["total_messages"] == 2
    assert body["config"]["is_initialized"] is True


def test_history_and_suggestions(indexed_client):
    indexed_client.get("/api/search", params={"q": "invoice"})

    history = indexed_client.get("/api/search/history").json()["history"]
    assert [h["query"] for h in history] == ["invoice"]
    assert history[0]["result_count"] == 1

    suggestions = indexed_client.get("/api/search/suggestions", params={"q": "inv"}).json()["suggestions"]
    texts = [s["text"] for s in suggestions]
    assert texts[0] == "invoice"
    assert 'subject:"invoice march"' in texts

    assert indexed_client.delete("/api/search/history").json() == {"cleared": True}
    assert indexed_client.get("/api/search/history").json()["history"] == []


def test_logs_capture_index_activity(indexed_client):
    logs = indexed_client.get("/api/logs", params={"component": "SearchIndex"}).json()["logs"]
    assert logs
    assert all(entry["logger"] == "mail_search.index" for entry in logs)
    assert any(entry["message"].startswith("built: 2 messages") for entry in logs)


def test_logs_filter_by_minimum_level_and_limit(indexed_client):
    indexed_client.post("/api/index/messages", json={"message_id": "m9", "subject": "Undated", "date": "not a date"})

    warnings = indexed_client.get("/api/logs", params={"level": "warning"}).json()["logs"]
    assert all(entry["levelno"] >= 30 for entry in warnings)
    assert any("m9" in entry["message"] for entry in warnings)

    latest = indexed_client.get("/api/logs", params={"limit": 1}).json()["logs"]
    assert len(latest) == 1


def test_logs_reject_unknown_level(client):
    assert client.get("/api/logs", params={"level": "loud"}).status_code == 400
