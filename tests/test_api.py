"""
sentimentpool/tests/test_api.py

Tests for the REST API host:
- route handlers driven through _route_request
- engine error mapping to HTTP status
- one end-to-end request over a real socket
"""

import json
import socket

import pytest
import trio

from sentimentpool import EngineConfig, Identity, LedgerCustody, SentimentEngine
from sentimentpool.api import EngineAPI, Request


STAKE = 100


# ============================================================================
# Helpers
# ============================================================================

@pytest.fixture
def api():
    engine = SentimentEngine(EngineConfig(authority=Identity("oracle"), min_stake_amount=STAKE))
    return EngineAPI(engine)


def make_request(method, path, body=None, identity=None):
    headers = {}
    if identity:
        headers["x-identity"] = identity
    return Request(
        method=method,
        path=path,
        headers=headers,
        body=json.dumps(body).encode() if body is not None else b"",
    )


def call(api, method, path, body=None, identity=None):
    """Route one request and return (status, decoded body)."""
    response = trio.run(api._route_request, make_request(method, path, body, identity))
    if response.headers.get("Content-Type") == "application/json":
        return response.status, json.loads(response.body)
    return response.status, response.body.decode()


def get_free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


# ============================================================================
# Route handlers
# ============================================================================

class TestEngineAPIRoutes:
    """Test EngineAPI route handlers."""

    def test_api_init(self, api):
        assert api.host == "127.0.0.1"
        assert api.port == 8080
        assert api.metrics is not None
        assert api.engine.metrics is api.metrics

    def test_api_init_without_metrics(self):
        engine = SentimentEngine(EngineConfig(authority=Identity("oracle")))
        api = EngineAPI(engine, enable_metrics=False)
        assert api.metrics is None

        status, _ = call(api, "GET", "/metrics")
        assert status == 404

    def test_root(self, api):
        status, data = call(api, "GET", "/")
        assert status == 200
        assert data["name"] == "sentimentpool"
        assert "POST /submit" in data["endpoints"]

    def test_health(self, api):
        status, data = call(api, "GET", "/health")
        assert status == 200
        assert data["status"] == "healthy"
        assert data["current_period"] == 1
        assert data["config"]["authority"] == "oracle"

    def test_unknown_route(self, api):
        status, data = call(api, "GET", "/nope")
        assert status == 404

    def test_full_round(self, api):
        status, data = call(api, "POST", "/submit", {"sentiment": 80, "confidence": 50}, "alice")
        assert status == 201
        assert data == {"success": True, "period": 1}

        call(api, "POST", "/submit", {"sentiment": 60, "confidence": 30}, "bob")

        status, data = call(api, "POST", "/finalize", {"actual_outcome": 85}, "oracle")
        assert status == 200
        assert data["period"] == 1
        assert data["final_sentiment"] == 73

        status, data = call(api, "GET", "/claims/1/preview", identity="alice")
        assert status == 200
        assert data["accuracy"] == 95
        assert data["reward"] == STAKE

        status, data = call(api, "POST", "/claims/1", identity="alice")
        assert status == 200
        assert data["reward"] == STAKE

        status, data = call(api, "GET", "/reputation/alice")
        assert status == 200
        assert data["reputation_score"] == 100

        status, data = call(api, "GET", "/period")
        assert data == {"current_period": 2, "total_staked": STAKE}

    def test_read_endpoints(self, api):
        call(api, "POST", "/submit", {"sentiment": 80, "confidence": 50}, "alice")

        status, data = call(api, "GET", "/periods/1")
        assert status == 200
        assert data["total_weighted_sentiment"] == 4050
        assert data["state"] == "open"

        status, data = call(api, "GET", "/submissions/alice/1")
        assert status == 200
        assert data["sentiment"] == 80

        status, data = call(api, "GET", "/periods/1/submissions")
        assert data["count"] == 1

    def test_absent_records_404(self, api):
        assert call(api, "GET", "/periods/9")[0] == 404
        assert call(api, "GET", "/submissions/alice/1")[0] == 404
        assert call(api, "GET", "/reputation/alice")[0] == 404


class TestErrorMapping:
    """Engine errors map to HTTP status with stable codes."""

    def test_validation(self, api):
        status, data = call(api, "POST", "/submit", {"sentiment": 0, "confidence": 50}, "alice")
        assert status == 400
        assert data["code"] == 101

    def test_double_submit(self, api):
        call(api, "POST", "/submit", {"sentiment": 50, "confidence": 50}, "alice")
        status, data = call(api, "POST", "/submit", {"sentiment": 50, "confidence": 50}, "alice")
        assert status == 409
        assert data["code"] == 102

    def test_finalize_by_non_authority(self, api):
        call(api, "POST", "/submit", {"sentiment": 50, "confidence": 50}, "alice")
        status, data = call(api, "POST", "/finalize", {"actual_outcome": 50}, "alice")
        assert status == 403
        assert data["code"] == 100

    def test_finalize_empty_period(self, api):
        status, data = call(api, "POST", "/finalize", {"actual_outcome": 50}, "oracle")
        assert status == 404
        assert data["code"] == 105

    def test_claim_before_finalize(self, api):
        call(api, "POST", "/submit", {"sentiment": 50, "confidence": 50}, "alice")
        status, data = call(api, "POST", "/claims/1", identity="alice")
        assert status == 412
        assert data["code"] == 107

    def test_custody_refusal(self):
        engine = SentimentEngine(
            EngineConfig(authority=Identity("oracle"), min_stake_amount=STAKE),
            custody=LedgerCustody(),
        )
        api = EngineAPI(engine)

        status, data = call(api, "POST", "/submit", {"sentiment": 50, "confidence": 50}, "alice")

        assert status == 402
        assert data["code"] == 103
        assert 'operation="submit",code="103"' in api.metrics.collect()

    def test_missing_identity(self, api):
        status, data = call(api, "POST", "/submit", {"sentiment": 50, "confidence": 50})
        assert status == 401

    def test_invalid_json(self, api):
        request = make_request("POST", "/submit", identity="alice")
        request.body = b"{not json"
        response = trio.run(api._route_request, request)
        assert response.status == 400

    def test_non_integer_period(self, api):
        status, data = call(api, "GET", "/periods/abc")
        assert status == 400

    def test_path_parameter_matching(self, api):
        assert api._match_path("/periods/{period}", "/periods/") is None
        assert api._match_path("/periods/{period}", "/periods/3") == {"period": "3"}


class TestAPIEndToEnd:
    """End-to-end request over a real socket."""

    def test_submit_over_http(self, api):
        port = get_free_port()
        api.port = port

        async def run_test():
            async with trio.open_nursery() as nursery:
                nursery.start_soon(api.start)
                await trio.sleep(0.2)

                body = json.dumps({"sentiment": 70, "confidence": 40}).encode()
                request = (
                    f"POST /submit HTTP/1.1\r\n"
                    f"Host: 127.0.0.1:{port}\r\n"
                    f"X-Identity: alice\r\n"
                    f"Content-Type: application/json\r\n"
                    f"Content-Length: {len(body)}\r\n\r\n"
                ).encode() + body

                stream = await trio.open_tcp_stream("127.0.0.1", port)
                try:
                    await stream.send_all(request)
                    data = b""
                    while True:
                        chunk = await stream.receive_some(4096)
                        if not chunk:
                            break
                        data += chunk
                finally:
                    await stream.aclose()

                nursery.cancel_scope.cancel()
                return data

        raw = trio.run(run_test)

        header, _, body = raw.partition(b"\r\n\r\n")
        assert header.startswith(b"HTTP/1.1 201 Created")
        assert json.loads(body) == {"success": True, "period": 1}
        assert api.engine.get_submission(Identity("alice"), 1).confidence == 40
