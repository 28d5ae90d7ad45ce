"""Test bootstrap for booking-api plus an in-process booking service fake."""

from __future__ import annotations

import itertools
import json
import socketserver
import sys
import threading
from dataclasses import dataclass, field
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Any, Iterator

import pytest

APPS_DIR = Path(__file__).resolve().parents[2]
for package in ["booking-api", "fixture-data", "suite-config", "results-reporter"]:
    package_root = APPS_DIR / package
    path_str = str(package_root)
    if path_str not in sys.path:
        sys.path.insert(0, path_str)

from fixture_data.source import TabularFixtureSource  # noqa: E402
from suite_config.settings import Credentials, ServiceEndpoint, resolve_setting  # noqa: E402

VALID_TOKEN = "abc123"
JOHN_DOE_ROW = {
    "firstname": "John",
    "lastname": "Doe",
    "totalprice": 123,
    "depositpaid": True,
    "checkin": "2025-01-01",
    "checkout": "2025-01-10",
    "additionalneeds": "Breakfast",
}


class ThreadedHTTPServer(socketserver.ThreadingMixIn, HTTPServer):
    daemon_threads = True


@dataclass
class RecordedRequest:
    method: str
    path: str
    headers: dict[str, str]
    body: Any


@dataclass
class FakeBooker:
    """Booking service stand-in with the same status-code conventions as the real one."""

    username: str = "admin"
    password: str = "password123"
    fail_create: bool = False
    auth_status: int = 200
    issued_token: str = VALID_TOKEN
    wrong_read_name: bool = False
    delete_status: int = 201
    keep_deleted: bool = False
    bookings: dict[int, dict[str, Any]] = field(default_factory=dict)
    requests: list[RecordedRequest] = field(default_factory=list)
    base_url: str = ""
    _ids: Iterator[int] = field(default_factory=lambda: itertools.count(1))
    _lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def endpoint(self) -> ServiceEndpoint:
        return ServiceEndpoint(base_url=self.base_url, timeout=5.0)

    @property
    def credentials(self) -> Credentials:
        return Credentials(self.username, self.password)

    def calls(self) -> list[tuple[str, str]]:
        with self._lock:
            return [(item.method, item.path) for item in self.requests]

    def handle(self, method: str, path: str, headers: dict[str, str], body: Any) -> tuple[int, Any]:
        with self._lock:
            self.requests.append(RecordedRequest(method, path, headers, body))
            if method == "POST" and path == "/auth":
                if self.auth_status != 200:
                    return self.auth_status, "Service Unavailable"
                if isinstance(body, dict) and body.get("username") == self.username and body.get("password") == self.password:
                    return 200, {"token": self.issued_token}
                return 200, {"reason": "Bad credentials"}
            if method == "POST" and path == "/booking":
                if self.fail_create:
                    return 500, "Internal Server Error"
                booking_id = next(self._ids)
                self.bookings[booking_id] = dict(body)
                return 200, {"bookingid": booking_id, "booking": body}
            if path.startswith("/booking/"):
                booking_id = int(path.rsplit("/", 1)[-1])
                authorized = headers.get("Cookie") == f"token={VALID_TOKEN}"
                if method == "GET":
                    if booking_id not in self.bookings:
                        return 404, "Not Found"
                    if self.wrong_read_name:
                        return 200, {**self.bookings[booking_id], "firstname": "Someone", "lastname": "Else"}
                    return 200, self.bookings[booking_id]
                if method == "PUT":
                    if not authorized:
                        return 403, "Forbidden"
                    self.bookings[booking_id] = dict(body)
                    return 200, body
                if method == "DELETE":
                    if not authorized:
                        return 403, "Forbidden"
                    if not self.keep_deleted:
                        self.bookings.pop(booking_id, None)
                    return self.delete_status, "Created" if self.delete_status == 201 else ""
            return 404, "Not Found"


def _handler_for(booker: FakeBooker) -> type[BaseHTTPRequestHandler]:
    class Handler(BaseHTTPRequestHandler):
        def log_message(self, format: str, *args: Any) -> None:  # pragma: no cover - silence logs
            return

        def do_GET(self) -> None:  # noqa: N802 - HTTP handler requirement
            self._handle()

        def do_POST(self) -> None:  # noqa: N802
            self._handle()

        def do_PUT(self) -> None:  # noqa: N802
            self._handle()

        def do_DELETE(self) -> None:  # noqa: N802
            self._handle()

        def _handle(self) -> None:
            raw = self.rfile.read(int(self.headers.get("Content-Length", 0) or 0))
            body = json.loads(raw.decode("utf-8")) if raw else None
            status, payload = booker.handle(
                self.command,
                self.path.split("?", 1)[0],
                {key: value for key, value in self.headers.items()},
                body,
            )
            if isinstance(payload, str):
                data, content_type = payload.encode("utf-8"), "text/plain"
            else:
                data, content_type = json.dumps(payload).encode("utf-8"), "application/json"
            self.send_response(status)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(data)))
            self.end_headers()
            self.wfile.write(data)

    return Handler


@pytest.fixture
def booker() -> Iterator[FakeBooker]:
    fake = FakeBooker()
    server = ThreadedHTTPServer(("127.0.0.1", 0), _handler_for(fake))
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    fake.base_url = f"http://127.0.0.1:{server.server_address[1]}"
    try:
        yield fake
    finally:
        server.shutdown()
        server.server_close()
        thread.join(timeout=2)


@pytest.fixture
def john_doe_row() -> dict[str, Any]:
    return dict(JOHN_DOE_ROW)


def pytest_generate_tests(metafunc):
    """Parametrize ``fixture_row`` tests with every row of the file named by ``@pytest.mark.datafile``."""

    marker = metafunc.definition.get_closest_marker("datafile")
    if not marker or not marker.args or "fixture_row" not in metafunc.fixturenames:
        return
    env_name = marker.kwargs.get("env", "BOOKING_DATA_FILE")
    path = Path(resolve_setting(None, env_name, str(marker.args[0])))
    rows = TabularFixtureSource(path).rows()
    ids = [f"row{index}-{row.get('firstname', '')}-{row.get('lastname', '')}" for index, row in enumerate(rows, start=1)]
    metafunc.parametrize("fixture_row", rows, ids=ids)
