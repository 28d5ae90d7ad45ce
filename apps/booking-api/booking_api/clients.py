"""Thin clients for the booking service's auth and booking resources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from suite_config.settings import Credentials, ServiceEndpoint

from .http_client import HttpResponse, JsonHttpClient
from .models import BookingRecord

LOGGER = structlog.get_logger("booking_api")


class AuthError(Exception):
    """Token request rejected by the service."""

    def __init__(self, status: int, body: str) -> None:
        super().__init__(f"Auth failed: {status} - {body or '<no-body>'}")
        self.status = status
        self.body = body


@dataclass
class CreatedBooking:
    booking_id: int | None
    record: dict[str, Any] | None
    response: HttpResponse


def token_headers(token: str | None) -> dict[str, str]:
    if not token:
        return {}
    return {"Cookie": f"token={token}"}


class AuthClient:
    """Obtains bearer tokens from ``POST /auth``."""

    def __init__(self, endpoint: ServiceEndpoint | None = None, *, http: JsonHttpClient | None = None) -> None:
        self.http = http or JsonHttpClient(endpoint or ServiceEndpoint.resolve())

    def login(self, credentials: Credentials) -> str:
        response = self.http.post("/auth", json_body=credentials.as_payload())
        if not response.ok:
            raise AuthError(response.status_code, response.body)
        payload = response.json_or_none()
        token = payload.get("token") if isinstance(payload, dict) else None
        if not isinstance(token, str) or not token:
            # the service answers bad credentials with 200 {"reason": "Bad credentials"}
            raise AuthError(response.status_code, response.body)
        LOGGER.debug("auth_token_issued", username=credentials.username)
        return token


class BookingClient:
    """CRUD operations on ``/booking``; callers inspect the raw responses."""

    def __init__(self, endpoint: ServiceEndpoint | None = None, *, http: JsonHttpClient | None = None) -> None:
        self.http = http or JsonHttpClient(endpoint or ServiceEndpoint.resolve())

    def create(self, record: BookingRecord) -> CreatedBooking:
        response = self.http.post("/booking", json_body=record.as_payload())
        payload = response.json_or_none()
        booking_id: int | None = None
        booking: dict[str, Any] | None = None
        if isinstance(payload, dict):
            booking = payload.get("booking") if isinstance(payload.get("booking"), dict) else None
            raw_id = payload.get("bookingid")
            if raw_id is None and booking is not None:
                raw_id = booking.get("bookingid")
            booking_id = _as_int(raw_id)
        return CreatedBooking(booking_id=booking_id, record=booking, response=response)

    def get(self, booking_id: int) -> HttpResponse:
        return self.http.get(f"/booking/{booking_id}")

    def update(self, booking_id: int, record: BookingRecord, token: str | None = None) -> HttpResponse:
        return self.http.put(
            f"/booking/{booking_id}",
            json_body=record.as_payload(),
            headers=token_headers(token),
        )

    def delete(self, booking_id: int, token: str | None = None) -> HttpResponse:
        return self.http.delete(f"/booking/{booking_id}", headers=token_headers(token))


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
