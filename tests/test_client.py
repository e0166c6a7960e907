from __future__ import annotations

import json

import httpx
import pytest

from tracker_client import TrackerApiClient, TrackerApiError


def test_request_posts_action_and_body() -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": 1, "product_name": "Rice"}])

    client = TrackerApiClient("https://tracker.test/api/index", transport=httpx.MockTransport(handler))
    rows = client.add_product("Rice", "Acme", priority="low")

    assert rows == [{"id": 1, "product_name": "Rice"}]
    request = seen[0]
    assert request.method == "POST"
    assert request.url.params["action"] == "add"
    assert json.loads(request.content) == {
        "productName": "Rice",
        "supplierName": "Acme",
        "priority": "low",
    }


def test_chat_returns_reply() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"reply": "Hi!"}))
    client = TrackerApiClient("https://tracker.test/api/index", transport=transport)
    assert client.chat_with_groq("hello") == "Hi!"


def test_error_payload_is_raised() -> None:
    transport = httpx.MockTransport(
        lambda request: httpx.Response(404, json={"error": "product not found"})
    )
    client = TrackerApiClient("https://tracker.test/api/index", transport=transport)

    with pytest.raises(TrackerApiError, match="product not found") as exc_info:
        client.mark_as_received(3)
    assert exc_info.value.status_code == 404


def test_error_without_json_body() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
    client = TrackerApiClient("https://tracker.test/api/index", transport=transport)

    with pytest.raises(TrackerApiError, match="Unknown API error"):
        client.get_metrics()
