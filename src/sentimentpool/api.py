"""
sentimentpool/api.py

REST API host for the sentiment engine.

Serves the engine over plain HTTP/1.1 on trio. Every request is handled
to completion before the engine lock is released, so operations reach
the engine one at a time. Caller identity is read verbatim from the
X-Identity header; authenticating it is the job of whatever sits in
front of this server.
"""

import json
import logging
import time
import trio
from typing import Any, Callable, Dict, Optional, Tuple
from dataclasses import dataclass, field

from . import __version__
from .engine import SentimentEngine
from .errors import (
    AuthorizationError,
    CustodyError,
    NotFoundError,
    PreconditionError,
    SentimentPoolError,
    StateConflictError,
    ValidationError,
)
from .identity import Identity
from .metrics import MetricsCollector

logger = logging.getLogger("sentimentpool.api")

IDENTITY_HEADER = "x-identity"

ERROR_STATUS = {
    AuthorizationError: 403,
    ValidationError: 400,
    StateConflictError: 409,
    NotFoundError: 404,
    PreconditionError: 412,
    CustodyError: 402,
}

STATUS_TEXT = {
    200: "OK",
    201: "Created",
    204: "No Content",
    400: "Bad Request",
    401: "Unauthorized",
    402: "Payment Required",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    412: "Precondition Failed",
    500: "Internal Server Error",
}


class BadRequest(Exception):
    """Malformed request that never reached the engine."""

    def __init__(self, message: str, status: int = 400):
        super().__init__(message)
        self.status = status


@dataclass
class Request:
    """HTTP request representation."""
    method: str
    path: str
    headers: Dict[str, str]
    body: bytes
    path_params: Dict[str, str] = field(default_factory=dict)

    def identity(self) -> Identity:
        raw = self.headers.get(IDENTITY_HEADER, "").strip()
        if not raw:
            raise BadRequest("X-Identity header is required", status=401)
        try:
            return Identity(raw)
        except ValueError as e:
            raise BadRequest(str(e))

    def json_body(self) -> dict:
        if not self.body:
            raise BadRequest("Request body required")
        try:
            data = json.loads(self.body)
        except json.JSONDecodeError:
            raise BadRequest("Invalid JSON")
        if not isinstance(data, dict):
            raise BadRequest("JSON body must be an object")
        return data

    def int_param(self, name: str) -> int:
        value = self.path_params.get(name, "")
        try:
            return int(value)
        except ValueError:
            raise BadRequest(f"{name} must be an integer, got {value!r}")


@dataclass
class Response:
    """HTTP response representation."""
    status: int
    headers: Dict[str, str]
    body: bytes

    @classmethod
    def json(cls, data: Any, status: int = 200) -> "Response":
        """Create JSON response."""
        body = json.dumps(data, indent=2).encode("utf-8")
        return cls(
            status=status,
            headers={"Content-Type": "application/json"},
            body=body,
        )

    @classmethod
    def text(cls, text: str, status: int = 200, content_type: str = "text/plain") -> "Response":
        """Create text response."""
        return cls(
            status=status,
            headers={"Content-Type": content_type},
            body=text.encode("utf-8"),
        )

    @classmethod
    def error(cls, message: str, status: int = 400) -> "Response":
        """Create error response."""
        return cls.json({"error": message}, status=status)

    @classmethod
    def from_engine_error(cls, error: SentimentPoolError) -> "Response":
        status = 400
        for error_type, error_status in ERROR_STATUS.items():
            if isinstance(error, error_type):
                status = error_status
                break
        return cls.json(error.to_dict(), status=status)


class EngineAPI:
    """
    REST API server for a SentimentEngine.

    Usage:
        from sentimentpool import SentimentEngine
        from sentimentpool.api import EngineAPI

        engine = SentimentEngine(config)
        api = EngineAPI(engine, host="0.0.0.0", port=8080)
        trio.run(api.start)
    """

    def __init__(
        self,
        engine: SentimentEngine,
        host: str = "127.0.0.1",
        port: int = 8080,
        enable_metrics: bool = True,
    ):
        """
        Initialize REST API server.

        Args:
            engine: SentimentEngine to expose
            host: Host to bind to (default: localhost)
            port: Port to listen on (default: 8080)
            enable_metrics: Enable Prometheus metrics endpoint
        """
        self.engine = engine
        self.host = host
        self.port = port
        self.enable_metrics = enable_metrics

        self.metrics = MetricsCollector(engine) if enable_metrics else None

        self._running = False
        self._start_time = time.time()

        self._routes: Dict[Tuple[str, str], Callable] = {
            ("GET", "/"): self._handle_root,
            ("GET", "/health"): self._handle_health,
            ("GET", "/period"): self._handle_current_period,
            ("GET", "/periods/{period}"): self._handle_get_period,
            ("GET", "/periods/{period}/submissions"): self._handle_period_submissions,
            ("GET", "/submissions/{owner}/{period}"): self._handle_get_submission,
            ("GET", "/reputation/{owner}"): self._handle_get_reputation,
            ("GET", "/claims/{period}/preview"): self._handle_preview_claim,
            ("POST", "/submit"): self._handle_submit,
            ("POST", "/finalize"): self._handle_finalize,
            ("POST", "/claims/{period}"): self._handle_claim,
            ("GET", "/metrics"): self._handle_metrics,
        }

    async def start(self) -> None:
        """Start the API server."""
        if self._running:
            logger.warning("API server already running")
            return

        self._running = True
        logger.info(f"Starting REST API server on {self.host}:{self.port}")

        try:
            await trio.serve_tcp(
                self._handle_connection,
                self.port,
                host=self.host,
            )
        except Exception as e:
            logger.error(f"API server error: {e}")
            self._running = False
            raise

    async def stop(self) -> None:
        """Stop the API server."""
        self._running = False
        logger.info("REST API server stopped")

    async def _handle_connection(self, stream: trio.SocketStream) -> None:
        """Handle incoming TCP connection."""
        try:
            request = await self._read_request(stream)
            if not request:
                return

            response = await self._route_request(request)
            await self._send_response(stream, response)

        except Exception as e:
            logger.error(f"Connection error: {e}")
            try:
                await self._send_response(stream, Response.error(str(e), status=500))
            except Exception as send_error:
                logger.debug(f"Could not send error response: {send_error}")
        finally:
            await stream.aclose()

    async def _read_request(self, stream: trio.SocketStream) -> Optional[Request]:
        """Read one HTTP/1.1 request: head up to the blank line, then Content-Length bytes."""
        buffer = b""
        try:
            while b"\r\n\r\n" not in buffer:
                chunk = await stream.receive_some(4096)
                if not chunk:
                    return None
                buffer += chunk

            head, _, body = buffer.partition(b"\r\n\r\n")
            request_line, *header_lines = head.decode("utf-8").split("\r\n")
            method, target = (request_line.split(" ") + ["/"])[:2]

            headers = {}
            for line in header_lines:
                name, sep, value = line.partition(":")
                if sep:
                    headers[name.strip().lower()] = value.strip()

            length = int(headers.get("content-length", 0))
            while len(body) < length:
                chunk = await stream.receive_some(4096)
                if not chunk:
                    break
                body += chunk
        except (UnicodeDecodeError, ValueError, trio.BrokenResourceError) as e:
            logger.warning(f"Dropping malformed request: {e}")
            return None

        return Request(
            method=method,
            path=target.split("?", 1)[0],
            headers=headers,
            body=body[:length],
        )

    async def _send_response(self, stream: trio.SocketStream, response: Response) -> None:
        """Write status line, headers and body, then the connection is closed."""
        response.headers.update({
            "Content-Length": str(len(response.body)),
            "Connection": "close",
            "Server": f"sentimentpool/{__version__}",
        })
        head = [f"HTTP/1.1 {response.status} {STATUS_TEXT.get(response.status, 'Unknown')}"]
        head += [f"{name}: {value}" for name, value in response.headers.items()]
        await stream.send_all(("\r\n".join(head) + "\r\n\r\n").encode("utf-8") + response.body)

    async def _route_request(self, request: Request) -> Response:
        """Route request to the matching handler and map errors to responses."""
        handler = self._routes.get((request.method, request.path))

        if handler is None:
            for (method, pattern), candidate in self._routes.items():
                params = self._match_path(pattern, request.path) if method == request.method else None
                if params is not None:
                    request.path_params = params
                    handler = candidate
                    break

        if handler is None:
            return Response.error("Not Found", status=404)

        try:
            return await handler(request)
        except SentimentPoolError as e:
            return Response.from_engine_error(e)
        except BadRequest as e:
            return Response.error(str(e), status=e.status)

    @staticmethod
    def _match_path(pattern: str, path: str) -> Optional[Dict[str, str]]:
        """Return path parameters when path fits pattern, else None."""
        expected = pattern.strip("/").split("/")
        actual = path.strip("/").split("/")
        if len(expected) != len(actual):
            return None

        params = {}
        for segment, value in zip(expected, actual):
            if segment[:1] == "{" and segment[-1:] == "}":
                if not value:
                    return None
                params[segment[1:-1]] = value
            elif segment != value:
                return None
        return params

    # ========== Route Handlers ==========

    async def _handle_root(self, request: Request) -> Response:
        return Response.json({
            "name": "sentimentpool",
            "version": __version__,
            "endpoints": list(f"{m} {p}" for (m, p) in self._routes.keys()),
        })

    async def _handle_health(self, request: Request) -> Response:
        return Response.json({
            "status": "healthy",
            "current_period": self.engine.get_current_period(),
            "config": self.engine.get_config().to_dict(),
            "uptime_seconds": time.time() - self._start_time,
        })

    async def _handle_current_period(self, request: Request) -> Response:
        context = self.engine.get_context()
        return Response.json(context.to_dict())

    async def _handle_get_period(self, request: Request) -> Response:
        period = request.int_param("period")
        aggregate = self.engine.get_period_aggregate(period)
        if aggregate is None:
            return Response.error(f"No aggregate for period {period}", status=404)
        return Response.json(aggregate.to_dict())

    async def _handle_period_submissions(self, request: Request) -> Response:
        period = request.int_param("period")
        submissions = self.engine.get_period_submissions(period)
        return Response.json({
            "period": period,
            "count": len(submissions),
            "submissions": [s.to_dict() for s in submissions],
        })

    async def _handle_get_submission(self, request: Request) -> Response:
        owner = self._owner_param(request)
        period = request.int_param("period")
        submission = self.engine.get_submission(owner, period)
        if submission is None:
            return Response.error(f"No submission from {owner} in period {period}", status=404)
        return Response.json(submission.to_dict())

    async def _handle_get_reputation(self, request: Request) -> Response:
        owner = self._owner_param(request)
        reputation = self.engine.get_reputation(owner)
        if reputation is None:
            return Response.error(f"No reputation recorded for {owner}", status=404)
        return Response.json(reputation.to_dict())

    async def _handle_preview_claim(self, request: Request) -> Response:
        settlement = self.engine.preview_claim(request.identity(), request.int_param("period"))
        return Response.json(settlement.to_dict())

    async def _handle_submit(self, request: Request) -> Response:
        owner = request.identity()
        body = request.json_body()
        self.engine.submit(owner, body.get("sentiment"), body.get("confidence"))
        return Response.json({
            "success": True,
            "period": self.engine.get_current_period(),
        }, status=201)

    async def _handle_finalize(self, request: Request) -> Response:
        caller = request.identity()
        body = request.json_body()
        period = self.engine.get_current_period()
        final_sentiment = self.engine.finalize(caller, body.get("actual_outcome"))
        return Response.json({
            "success": True,
            "period": period,
            "final_sentiment": final_sentiment,
        })

    async def _handle_claim(self, request: Request) -> Response:
        owner = request.identity()
        period = request.int_param("period")
        reward = self.engine.claim(owner, period)
        return Response.json({
            "success": True,
            "period": period,
            "reward": reward,
        })

    async def _handle_metrics(self, request: Request) -> Response:
        if not self.metrics:
            return Response.error("Metrics not enabled", status=404)

        return Response.text(
            self.metrics.collect(),
            content_type="text/plain; version=0.0.4; charset=utf-8",
        )

    def _owner_param(self, request: Request) -> Identity:
        try:
            return Identity(request.path_params.get("owner", ""))
        except ValueError as e:
            raise BadRequest(str(e))
