"""JSON-over-HTTP transport used by the booking service clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
import http.client
import json
import time
from urllib import error, request

import structlog

from suite_config.settings import ServiceEndpoint

LOGGER = structlog.get_logger("booking_api")


class TransportError(RuntimeError):
    """Network-level failure: the request never produced an HTTP response."""


@dataclass
class HttpResponse:
    """Status, body and timing of a performed request."""

    status_code: int
    body: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        if not self.body:
            return None
        return json.loads(self.body)

    def json_or_none(self) -> Any:
        try:
            return self.json()
        except ValueError:
            return None


class JsonHttpClient:
    """Sends requests relative to a resolved service endpoint.

    HTTP error statuses come back as ``HttpResponse`` objects; only transport
    failures raise.
    """

    def __init__(self, endpoint: ServiceEndpoint) -> None:
        self.endpoint = endpoint

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
    ) -> HttpResponse:
        method = method.upper()
        url = self.endpoint.url(path)
        merged_headers = {"Accept": "application/json"}
        body = _encode_body(json_body)
        if body is not None:
            merged_headers["Content-Type"] = "application/json"
        merged_headers.update(headers or {})

        status, payload, response_headers, elapsed_ms = self._perform_request(method, url, merged_headers, body)
        LOGGER.debug("http_request", method=method, url=url, status=status, elapsed_ms=round(elapsed_ms, 1))
        return HttpResponse(
            status_code=status,
            body=payload,
            headers=response_headers,
            elapsed_ms=round(elapsed_ms, 3),
        )

    def get(self, path: str, **kwargs: Any) -> HttpResponse:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> HttpResponse:
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs: Any) -> HttpResponse:
        return self.request("PUT", path, **kwargs)

    def delete(self, path: str, **kwargs: Any) -> HttpResponse:
        return self.request("DELETE", path, **kwargs)

    def _perform_request(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
    ) -> tuple[int, str, dict[str, str], float]:
        req = request.Request(url, data=body, headers=headers, method=method)
        start = time.perf_counter()
        try:
            with request.urlopen(req, timeout=self.endpoint.timeout) as response:
                payload = response.read().decode("utf-8", errors="replace")
                status = response.getcode()
                response_headers = dict(response.headers.items())
        except error.HTTPError as exc:
            payload = exc.read().decode("utf-8", errors="replace")
            status = exc.code
            response_headers = dict(exc.headers.items()) if exc.headers else {}
        except (OSError, http.client.HTTPException) as exc:
            raise TransportError(f"HTTP request failed for {method} {url}: {exc}") from exc
        elapsed_ms = (time.perf_counter() - start) * 1000
        return status, payload, response_headers, elapsed_ms


def _encode_body(payload: Any) -> bytes | None:
    if payload is None:
        return None
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload)
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return json.dumps(payload).encode("utf-8")
