"""
Tests for POST /collect.
"""
import asyncio

from fastapi import Request

from traytic_app.api.v1.collect import read_body
from tests.conftest import CHROME_UA, GOOGLEBOT_UA


PAYLOAD = {
    "siteId": "s1",
    "events": [{"type": "pageview", "url": "https://acme.com/", "referrer": "https://www.google.com/"}],
}


class TestCollectEndpoint:
    """Test that every request answers 204 and only valid ones are queued"""

    def test_accepted(self, client, queue, worker, store):
        response = client.post(
            "/collect",
            json=PAYLOAD,
            headers={"User-Agent": CHROME_UA, "X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
        )

        assert response.status_code == 204
        assert response.content == b""
        assert queue.get_queue_length() == 1

        asyncio.run(worker.drain())
        rows = asyncio.run(store.query("SELECT path, referrer_source FROM events"))
        assert rows == [{"path": "/", "referrer_source": "Google"}]

    def test_malformed_body(self, client, queue):
        response = client.post(
            "/collect",
            content=b"definitely not json",
            headers={"Content-Type": "application/json", "User-Agent": CHROME_UA},
        )
        assert response.status_code == 204
        assert queue.get_queue_length() == 0

    def test_unknown_domain(self, client, queue):
        response = client.post(
            "/collect",
            json={"domain": "unknown.example", "events": PAYLOAD["events"]},
            headers={"User-Agent": CHROME_UA},
        )
        assert response.status_code == 204
        assert queue.get_queue_length() == 0

    def test_bot(self, client, queue):
        response = client.post("/collect", json=PAYLOAD, headers={"User-Agent": GOOGLEBOT_UA})
        assert response.status_code == 204
        assert queue.get_queue_length() == 0

    def test_rate_limited_still_204(self, client, queue):
        for _ in range(200):
            client.post("/collect", json=PAYLOAD, headers={"User-Agent": CHROME_UA})

        response = client.post("/collect", json=PAYLOAD, headers={"User-Agent": CHROME_UA})

        assert response.status_code == 204
        assert queue.get_queue_length() == 200

    def test_oversized_body_is_dropped(self, client, queue):
        payload = dict(PAYLOAD, padding="x" * (1024 * 1024))
        response = client.post("/collect", json=payload, headers={"User-Agent": CHROME_UA})

        assert response.status_code == 204
        assert queue.get_queue_length() == 0

    def test_cors_preflight_from_any_origin(self, client):
        response = client.options(
            "/collect",
            headers={
                "Origin": "https://acme.com",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "https://acme.com"


class TestHealth:
    def test_root(self, client):
        assert client.get("/").json()["message"].startswith("Welcome to")

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"


def make_request(chunks, headers=()):
    messages = [
        {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
        for i, chunk in enumerate(chunks)
    ]

    async def receive():
        return messages.pop(0)

    scope = {
        "type": "http",
        "method": "POST",
        "path": "/collect",
        "headers": [(name.encode(), value.encode()) for name, value in headers],
    }
    return Request(scope, receive)


class TestReadBody:
    """Test the size-capped body reader"""

    def test_within_limit(self):
        request = make_request([b'{"a":', b"1}"])
        assert asyncio.run(read_body(request, limit=100)) == b'{"a":1}'

    def test_declared_length_over_limit(self):
        request = make_request([b"{}"], headers=[("content-length", "5000")])
        assert asyncio.run(read_body(request, limit=100)) is None

    def test_streamed_length_over_limit(self):
        # No Content-Length (chunked upload): counted while reading
        request = make_request([b"x" * 60, b"x" * 60])
        assert asyncio.run(read_body(request, limit=100)) is None
