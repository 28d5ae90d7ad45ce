"""Test outcome and run summary models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

OutcomeStatus = Literal["passed", "failed", "skipped", "flaky"]

MAX_LISTED_FAILURES = 5


class Attachment(BaseModel):
    name: str
    path: str


class TestOutcome(BaseModel):
    """Terminal status and diagnostics of one executed test case."""

    __test__ = False

    title: str
    status: OutcomeStatus
    file: str = ""
    error_messages: list[str] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    duration_ms: float = 0.0


class FailureRecord(BaseModel):
    """Failed test as kept by the aggregator; attachments reference existing files only."""

    title: str
    file: str = ""
    errors: list[str] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)


class RunSummary(BaseModel):
    """Frozen counts of one run plus the ordered failures."""

    model_config = ConfigDict(frozen=True)

    total: int = Field(default=0, ge=0)
    passed: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    skipped: int = Field(default=0, ge=0)
    flaky: int = Field(default=0, ge=0)
    duration_ms: int = Field(default=0, ge=0)
    failures: tuple[FailureRecord, ...] = ()

    @model_validator(mode="after")
    def _check_total(self) -> "RunSummary":
        if self.total != self.passed + self.failed + self.skipped + self.flaky:
            raise ValueError("total must equal passed + failed + skipped + flaky")
        return self

    @property
    def listed_failures(self) -> tuple[FailureRecord, ...]:
        return self.failures[:MAX_LISTED_FAILURES]


class DeliveryReport(BaseModel):
    """Result of one notification delivery attempt."""

    target: str
    ok: bool
    detail: str = ""
