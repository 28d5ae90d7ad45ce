"""Booking payload and scenario result models."""

from __future__ import annotations

import math
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from fixture_data.source import FixtureRow, FixtureRowError

UPDATED_FIRSTNAME = "Updated"


def coerce_price(value: Any) -> int | float:
    """Numeric parse of a fixture cell; blank or non-numeric input becomes 0."""

    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value or "").strip()
        if not text:
            return 0
        try:
            number = float(text)
        except ValueError:
            return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return int(number) if number.is_integer() else number


def coerce_deposit(value: Any) -> bool:
    return value is True or str(value).strip().lower() == "true"


class BookingDates(BaseModel):
    checkin: date
    checkout: date

    @field_validator("checkin", "checkout", mode="before")
    @classmethod
    def _parse_date(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str):
            return date.fromisoformat(value.strip())
        return value


class BookingRecord(BaseModel):
    """Booking as sent to and returned by the booking service."""

    firstname: str
    lastname: str
    totalprice: int | float = 0
    depositpaid: bool = False
    bookingdates: BookingDates
    additionalneeds: str = ""

    @field_validator("firstname", "lastname", "additionalneeds", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("totalprice", mode="before")
    @classmethod
    def _price(cls, value: Any) -> int | float:
        return coerce_price(value)

    @field_validator("depositpaid", mode="before")
    @classmethod
    def _deposit(cls, value: Any) -> bool:
        return coerce_deposit(value)

    @classmethod
    def from_row(cls, row: FixtureRow) -> "BookingRecord":
        """Build a booking from one fixture row, raising ``FixtureRowError`` when it cannot be coerced."""

        try:
            return cls.model_validate(
                {
                    "firstname": row.get("firstname", ""),
                    "lastname": row.get("lastname", ""),
                    "totalprice": row.get("totalprice", 0),
                    "depositpaid": row.get("depositpaid", False),
                    "bookingdates": {
                        "checkin": row.get("checkin", ""),
                        "checkout": row.get("checkout", ""),
                    },
                    "additionalneeds": row.get("additionalneeds", ""),
                }
            )
        except (ValidationError, ValueError) as exc:
            raise FixtureRowError(f"Fixture row cannot be converted to a booking: {exc}") from exc

    def with_firstname(self, firstname: str) -> "BookingRecord":
        return self.model_copy(update={"firstname": firstname})

    def as_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class StepResult(BaseModel):
    """Runtime result for one scenario step."""

    step_index: int
    step_name: str
    status: str
    started_at: datetime
    finished_at: datetime
    duration_ms: float
    error: Optional[str] = None


class ScenarioResult(BaseModel):
    """Outcome of one fixture row's booking lifecycle."""

    title: str
    row_index: int
    status: str = "passed"
    booking_id: Optional[int] = None
    duration_ms: float = 0.0
    steps: list[StepResult] = Field(default_factory=list)
    error: Optional[str] = None
    error_type: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status == "passed"


class SuiteResult(BaseModel):
    """Aggregated summary of a standalone suite run."""

    run_id: str
    base_url: str
    started_at: datetime
    finished_at: datetime
    duration_ms: float
    total: int
    passed: int
    failed: int
    scenarios: list[ScenarioResult] = Field(default_factory=list)
    events_file: str
    summary_file: str
    junit_file: str
