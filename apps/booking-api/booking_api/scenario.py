"""Five-step booking lifecycle executed once per fixture row.

Each row gets its own ``ScenarioContext``; the token and booking id obtained
while running one row are never visible to another.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

import structlog

from fixture_data.source import FixtureRow, FixtureRowError
from suite_config.settings import Credentials, ServiceEndpoint

from .clients import AuthClient, AuthError, BookingClient
from .models import UPDATED_FIRSTNAME, BookingRecord, ScenarioResult, StepResult

LOGGER = structlog.get_logger("booking_api")


class ScenarioFailure(AssertionError):
    """A step of the booking lifecycle did not produce the expected state."""

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"[{step}] {message}")
        self.step = step


class AuthFailure(ScenarioFailure):
    def __init__(self, status: int, body: str) -> None:
        super().__init__("authenticate", f"auth failed with status {status}: {body or '<no-body>'}")
        self.status = status
        self.body = body


class CreateFailure(ScenarioFailure):
    def __init__(self, status: int, body: str) -> None:
        super().__init__("create", f"response has no booking id (status {status}): {body or '<no-body>'}")
        self.status = status
        self.body = body


class StepAssertionFailure(ScenarioFailure):
    pass


@dataclass
class ScenarioContext:
    """State owned by one scenario run."""

    booking: BookingRecord
    credentials: Credentials
    token: str | None = None
    booking_id: int | None = None
    steps: list[StepResult] = field(default_factory=list)


@dataclass
class BookingServices:
    auth: AuthClient
    bookings: BookingClient

    @classmethod
    def for_endpoint(cls, endpoint: ServiceEndpoint) -> "BookingServices":
        return cls(auth=AuthClient(endpoint), bookings=BookingClient(endpoint))


def authenticate(ctx: ScenarioContext, services: BookingServices) -> None:
    try:
        ctx.token = services.auth.login(ctx.credentials)
    except AuthError as exc:
        raise AuthFailure(exc.status, exc.body) from exc


def create_booking(ctx: ScenarioContext, services: BookingServices) -> None:
    created = services.bookings.create(ctx.booking)
    if created.booking_id is None or created.booking_id <= 0:
        raise CreateFailure(created.response.status_code, created.response.body)
    ctx.booking_id = created.booking_id


def read_and_verify(ctx: ScenarioContext, services: BookingServices) -> None:
    booking_id = _require_booking_id(ctx, "read")
    response = services.bookings.get(booking_id)
    _expect_status("read", response.status_code, 200)
    body = response.json_or_none() or {}
    _expect_equal("read", "firstname", body.get("firstname"), ctx.booking.firstname)
    _expect_equal("read", "lastname", body.get("lastname"), ctx.booking.lastname)


def update_and_verify(ctx: ScenarioContext, services: BookingServices) -> None:
    booking_id = _require_booking_id(ctx, "update")
    updated = ctx.booking.with_firstname(UPDATED_FIRSTNAME)
    response = services.bookings.update(booking_id, updated, ctx.token)
    _expect_status("update", response.status_code, 200)
    reread = services.bookings.get(booking_id)
    body = reread.json_or_none() or {}
    _expect_equal("update", "firstname", body.get("firstname"), UPDATED_FIRSTNAME)


def delete_and_verify(ctx: ScenarioContext, services: BookingServices) -> None:
    booking_id = _require_booking_id(ctx, "delete")
    response = services.bookings.delete(booking_id, ctx.token)
    # the service signals a successful delete with 201
    _expect_status("delete", response.status_code, 201)
    reread = services.bookings.get(booking_id)
    _expect_status("delete", reread.status_code, 404)


Step = Callable[[ScenarioContext, BookingServices], None]

STEPS: list[tuple[str, Step]] = [
    ("authenticate", authenticate),
    ("create", create_booking),
    ("read-verify", read_and_verify),
    ("update-verify", update_and_verify),
    ("delete-verify", delete_and_verify),
]


def scenario_title(row: FixtureRow) -> str:
    return f"booking flow for {row.get('firstname', '')} {row.get('lastname', '')}".rstrip()


class BookingScenario:
    """Runs the lifecycle steps fail-fast for a single fixture row."""

    def __init__(self, services: BookingServices, credentials: Credentials) -> None:
        self.services = services
        self.credentials = credentials

    def run(self, row: FixtureRow, row_index: int = 0) -> ScenarioResult:
        """Execute all steps, raising the first failure."""

        result, failure = self._execute(row, row_index)
        if failure is not None:
            raise failure
        return result

    def execute(self, row: FixtureRow, row_index: int = 0) -> ScenarioResult:
        """Execute all steps, recording a failure in the result instead of raising."""

        result, _ = self._execute(row, row_index)
        return result

    def _execute(self, row: FixtureRow, row_index: int) -> tuple[ScenarioResult, Exception | None]:
        title = scenario_title(row)
        logger = LOGGER.bind(scenario=title, row=row_index)
        result = ScenarioResult(title=title, row_index=row_index)
        timer = time.perf_counter()
        failure: Exception | None = None

        try:
            ctx = ScenarioContext(
                booking=BookingRecord.from_row(row),
                credentials=self.credentials,
            )
        except FixtureRowError as exc:
            ctx = None
            failure = exc

        if ctx is not None:
            for index, (name, step) in enumerate(STEPS, start=1):
                step_result, failure = _run_step(index, name, step, ctx, self.services)
                ctx.steps.append(step_result)
                if failure is not None:
                    break
            result.steps = list(ctx.steps)
            result.booking_id = ctx.booking_id

        result.duration_ms = round((time.perf_counter() - timer) * 1000, 3)
        if failure is not None:
            result.status = "failed"
            result.error = str(failure)
            result.error_type = type(failure).__name__
            logger.warning("scenario_failed", error=result.error, booking_id=result.booking_id)
        else:
            logger.info("scenario_passed", booking_id=result.booking_id, duration_ms=result.duration_ms)
        return result, failure


def _run_step(
    index: int,
    name: str,
    step: Step,
    ctx: ScenarioContext,
    services: BookingServices,
) -> tuple[StepResult, Exception | None]:
    started_at = datetime.now(timezone.utc)
    timer = time.perf_counter()
    failure: Exception | None = None
    try:
        step(ctx, services)
    except Exception as exc:
        failure = exc
    duration_ms = (time.perf_counter() - timer) * 1000
    step_result = StepResult(
        step_index=index,
        step_name=name,
        status="failed" if failure else "passed",
        started_at=started_at,
        finished_at=datetime.now(timezone.utc),
        duration_ms=round(duration_ms, 3),
        error=str(failure) if failure else None,
    )
    return step_result, failure


def _require_booking_id(ctx: ScenarioContext, step: str) -> int:
    if ctx.booking_id is None:
        raise StepAssertionFailure(step, "no booking id available")
    return ctx.booking_id


def _expect_status(step: str, actual: int, expected: int) -> None:
    if actual != expected:
        raise StepAssertionFailure(step, f"expected status {expected} but received {actual}")


def _expect_equal(step: str, field_name: str, actual: object, expected: object) -> None:
    if actual != expected:
        raise StepAssertionFailure(step, f"expected {field_name} {expected!r} but received {actual!r}")
