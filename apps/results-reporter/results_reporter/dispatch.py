"""Delivery of run summaries to chat webhooks.

Targets are optional and resolved from explicit arguments or the environment
each time a summary is dispatched. Delivery problems are logged and reported
back as ``DeliveryReport`` entries; they never propagate to the test run.
"""

from __future__ import annotations

import contextlib
import json
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Any, Iterator, Optional

import httpx
import structlog

from suite_config.settings import resolve_setting

from .formatting import chat_message, message_card, screenshot_message
from .models import Attachment, DeliveryReport, FailureRecord, RunSummary

LOGGER = structlog.get_logger("results_reporter")

SLACK_UPLOAD_URL = "https://slack.com/api/files.upload"
DEFAULT_CHANNEL = "#general"
DEFAULT_TIMEOUT = 10.0
MAX_UPLOAD_WORKERS = 4


class DeliveryError(RuntimeError):
    """A notification endpoint rejected or failed a delivery."""


@dataclass(frozen=True)
class NotificationTargets:
    slack_webhook_url: Optional[str] = None
    slack_bot_token: Optional[str] = None
    slack_channel: str = DEFAULT_CHANNEL
    teams_webhook_url: Optional[str] = None

    @property
    def any(self) -> bool:
        return bool(self.slack_webhook_url or self.slack_bot_token or self.teams_webhook_url)


class NotificationDispatcher:
    """Posts a ``RunSummary`` to every configured chat target."""

    def __init__(
        self,
        *,
        slack_webhook_url: Optional[str] = None,
        slack_bot_token: Optional[str] = None,
        slack_channel: Optional[str] = None,
        teams_webhook_url: Optional[str] = None,
        client: Optional[httpx.Client] = None,
        upload_url: str = SLACK_UPLOAD_URL,
        timeout: float = DEFAULT_TIMEOUT,
        max_upload_workers: int = MAX_UPLOAD_WORKERS,
        today: Optional[date] = None,
    ) -> None:
        self._overrides = NotificationTargets(
            slack_webhook_url=slack_webhook_url,
            slack_bot_token=slack_bot_token,
            slack_channel=slack_channel or "",
            teams_webhook_url=teams_webhook_url,
        )
        self._client = client
        self.upload_url = upload_url
        self.timeout = timeout
        self.max_upload_workers = max(1, max_upload_workers)
        self.today = today

    def __call__(self, summary: RunSummary) -> list[DeliveryReport]:
        return self.dispatch(summary)

    def resolve_targets(self) -> NotificationTargets:
        overrides = self._overrides
        return NotificationTargets(
            slack_webhook_url=resolve_setting(overrides.slack_webhook_url, "SLACK_WEBHOOK_URL"),
            slack_bot_token=resolve_setting(overrides.slack_bot_token, "SLACK_BOT_TOKEN"),
            slack_channel=resolve_setting(overrides.slack_channel, "SLACK_CHANNEL", DEFAULT_CHANNEL) or DEFAULT_CHANNEL,
            teams_webhook_url=resolve_setting(overrides.teams_webhook_url, "TEAMS_WEBHOOK_URL"),
        )

    def dispatch(self, summary: RunSummary) -> list[DeliveryReport]:
        targets = self.resolve_targets()
        if not targets.any:
            LOGGER.debug("notification_skipped", reason="no targets configured")
            return []

        reports: list[DeliveryReport] = []
        with self._client_scope() as client:
            if targets.slack_webhook_url:
                reports.append(
                    self._post_json(client, "slack", targets.slack_webhook_url, {"text": chat_message(summary, self.today)})
                )
            if targets.slack_bot_token and summary.failures:
                reports.extend(self._upload_screenshots(client, targets, summary.failures))
            if targets.teams_webhook_url:
                reports.append(
                    self._post_json(client, "teams", targets.teams_webhook_url, message_card(summary, self.today))
                )
        return reports

    @contextlib.contextmanager
    def _client_scope(self) -> Iterator[httpx.Client]:
        if self._client is not None:
            yield self._client
            return
        with httpx.Client(timeout=self.timeout) as client:
            yield client

    def _post_json(self, client: httpx.Client, target: str, url: str, payload: dict[str, Any]) -> DeliveryReport:
        try:
            response = client.post(url, json=payload)
        except httpx.HTTPError as exc:
            LOGGER.warning("webhook_post_failed", target=target, error=str(exc))
            return DeliveryReport(target=target, ok=False, detail=str(exc))
        if not response.is_success:
            LOGGER.warning("webhook_post_failed", target=target, status=response.status_code, body=response.text[:500])
            return DeliveryReport(target=target, ok=False, detail=f"HTTP {response.status_code}: {response.text}")
        LOGGER.info("webhook_posted", target=target, status=response.status_code)
        return DeliveryReport(target=target, ok=True, detail=f"HTTP {response.status_code}")

    def _upload_screenshots(
        self,
        client: httpx.Client,
        targets: NotificationTargets,
        failures: tuple[FailureRecord, ...],
    ) -> list[DeliveryReport]:
        jobs = [(failure, attachment) for failure in failures for attachment in failure.attachments]
        if not jobs:
            return []
        workers = min(self.max_upload_workers, len(jobs))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="screenshot-upload") as pool:
            batches = list(pool.map(lambda job: self._upload_one(client, targets, *job), jobs))
        return [report for batch in batches for report in batch]

    def _upload_one(
        self,
        client: httpx.Client,
        targets: NotificationTargets,
        failure: FailureRecord,
        attachment: Attachment,
    ) -> list[DeliveryReport]:
        title = f"screenshot - {failure.title}"
        try:
            uploaded = self.upload_file(client, targets.slack_bot_token or "", Path(attachment.path), title, targets.slack_channel)
        except (DeliveryError, httpx.HTTPError, OSError) as exc:
            LOGGER.warning("screenshot_upload_failed", title=failure.title, path=attachment.path, error=str(exc))
            return [DeliveryReport(target="slack-upload", ok=False, detail=str(exc))]

        reports = [DeliveryReport(target="slack-upload", ok=True, detail=attachment.path)]
        permalink = (uploaded.get("file") or {}).get("permalink")
        if permalink and targets.slack_webhook_url:
            reports.append(
                self._post_json(client, "slack", targets.slack_webhook_url, {"text": screenshot_message(failure, permalink)})
            )
        return reports

    def upload_file(self, client: httpx.Client, token: str, path: Path, title: str, channel: str) -> dict[str, Any]:
        """Upload one file as multipart form data and return the API's JSON answer."""

        with path.open("rb") as handle:
            response = client.post(
                self.upload_url,
                headers={"Authorization": f"Bearer {token}"},
                data={"title": title, "channels": channel},
                files={"file": (path.name, handle, "application/octet-stream")},
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise DeliveryError(f"Upload returned non-JSON response (HTTP {response.status_code})") from exc
        if not isinstance(payload, dict) or not payload.get("ok"):
            raise DeliveryError(json.dumps(payload))
        return payload
