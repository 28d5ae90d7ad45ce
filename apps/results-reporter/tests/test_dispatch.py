from __future__ import annotations

import json
import threading
from datetime import date
from pathlib import Path

import httpx
import pytest
from structlog.testing import capture_logs

from results_reporter.dispatch import NotificationDispatcher
from results_reporter.models import Attachment, FailureRecord, RunSummary

SLACK_URL = "https://hooks.slack.test/services/T000"
TEAMS_URL = "https://teams.test/webhook"
UPLOAD_URL = "https://slack.test/api/files.upload"
TODAY = date(2025, 3, 14)


class Recorder:
    """Collects requests seen by an ``httpx.MockTransport``."""

    def __init__(self, responses: dict[str, httpx.Response] | None = None) -> None:
        self.requests: list[httpx.Request] = []
        self.responses = responses or {}
        self._lock = threading.Lock()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        url = str(request.url)
        if url in self.responses:
            return self.responses[url]
        if url == UPLOAD_URL:
            return httpx.Response(200, json={"ok": True, "file": {"permalink": "https://files.test/shot"}})
        return httpx.Response(200, text="ok")

    def to(self, url: str) -> list[httpx.Request]:
        return [request for request in self.requests if str(request.url) == url]


@pytest.fixture(autouse=True)
def _no_env_targets(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("SLACK_WEBHOOK_URL", "SLACK_BOT_TOKEN", "SLACK_CHANNEL", "TEAMS_WEBHOOK_URL"):
        monkeypatch.delenv(name, raising=False)


def _dispatcher(recorder: Recorder, **kwargs) -> NotificationDispatcher:
    return NotificationDispatcher(
        client=httpx.Client(transport=httpx.MockTransport(recorder)),
        upload_url=UPLOAD_URL,
        today=TODAY,
        **kwargs,
    )


def _failed_summary(tmp_path: Path) -> RunSummary:
    shot = tmp_path / "login.png"
    shot.write_bytes(b"\x89PNG")
    failure = FailureRecord(
        title="login fails",
        file="tests/test_login.py",
        errors=["AssertionError: expected inventory"],
        attachments=[Attachment(name="screenshot", path=str(shot))],
    )
    return RunSummary(total=2, passed=1, failed=1, failures=(failure,))


def test_no_targets_means_no_requests() -> None:
    recorder = Recorder()

    assert _dispatcher(recorder).dispatch(RunSummary(total=1, passed=1)) == []
    assert recorder.requests == []


def test_slack_webhook_receives_text_message() -> None:
    recorder = Recorder()

    reports = _dispatcher(recorder, slack_webhook_url=SLACK_URL).dispatch(RunSummary(total=3, passed=3))

    [request] = recorder.to(SLACK_URL)
    assert json.loads(request.content)["text"].startswith("*Test Summary*\n:white_check_mark: All 3 tests passed")
    assert [report.ok for report in reports] == [True]


def test_targets_resolved_from_environment_at_dispatch(monkeypatch: pytest.MonkeyPatch) -> None:
    recorder = Recorder()
    dispatcher = _dispatcher(recorder)
    monkeypatch.setenv("TEAMS_WEBHOOK_URL", TEAMS_URL)

    dispatcher(RunSummary())

    [request] = recorder.to(TEAMS_URL)
    card = json.loads(request.content)
    assert card["@type"] == "MessageCard"
    assert ":warning: No tests were run" in card["text"]


def test_screenshot_upload_and_permalink_followup(tmp_path: Path) -> None:
    recorder = Recorder()
    dispatcher = _dispatcher(recorder, slack_webhook_url=SLACK_URL, slack_bot_token="xoxb-1", slack_channel="#qa")

    reports = dispatcher.dispatch(_failed_summary(tmp_path))

    [upload] = recorder.to(UPLOAD_URL)
    assert upload.headers["Authorization"] == "Bearer xoxb-1"
    assert upload.headers["Content-Type"].startswith("multipart/form-data")
    body = upload.content
    assert b'name="title"' in body and b"screenshot - login fails" in body
    assert b'name="channels"' in body and b"#qa" in body
    assert b'filename="login.png"' in body

    slack_messages = [json.loads(request.content)["text"] for request in recorder.to(SLACK_URL)]
    assert slack_messages[1] == "Screenshot for *login fails*: https://files.test/shot"
    assert all(report.ok for report in reports)


def test_upload_uses_default_channel(tmp_path: Path) -> None:
    recorder = Recorder()

    _dispatcher(recorder, slack_bot_token="xoxb-1").dispatch(_failed_summary(tmp_path))

    [upload] = recorder.to(UPLOAD_URL)
    assert b"#general" in upload.content


def test_rejected_webhook_is_logged_not_raised() -> None:
    recorder = Recorder({SLACK_URL: httpx.Response(500, text="boom")})

    with capture_logs() as logs:
        reports = _dispatcher(recorder, slack_webhook_url=SLACK_URL, teams_webhook_url=TEAMS_URL).dispatch(
            RunSummary(total=1, passed=1)
        )

    assert [(report.target, report.ok) for report in reports] == [("slack", False), ("teams", True)]
    assert any(entry["event"] == "webhook_post_failed" and entry["status"] == 500 for entry in logs)


def test_transport_error_is_logged_not_raised() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    dispatcher = NotificationDispatcher(
        slack_webhook_url=SLACK_URL,
        client=httpx.Client(transport=httpx.MockTransport(refuse)),
    )

    with capture_logs() as logs:
        reports = dispatcher.dispatch(RunSummary())

    assert reports[0].ok is False
    assert logs[0]["event"] == "webhook_post_failed"


def test_failed_upload_does_not_block_card(tmp_path: Path) -> None:
    recorder = Recorder({UPLOAD_URL: httpx.Response(200, json={"ok": False, "error": "invalid_auth"})})

    reports = _dispatcher(recorder, slack_bot_token="bad", teams_webhook_url=TEAMS_URL).dispatch(
        _failed_summary(tmp_path)
    )

    assert [(report.target, report.ok) for report in reports] == [("slack-upload", False), ("teams", True)]
    assert "invalid_auth" in reports[0].detail


def test_one_rejected_upload_does_not_block_the_others(tmp_path: Path) -> None:
    failures = []
    for name in ("login", "cart", "sort"):
        shot = tmp_path / f"{name}.png"
        shot.write_bytes(b"\x89PNG")
        failures.append(
            FailureRecord(
                title=f"{name} fails",
                file=f"tests/test_{name}.py",
                errors=["AssertionError"],
                attachments=[Attachment(name="screenshot", path=str(shot))],
            )
        )
    summary = RunSummary(total=3, failed=3, failures=tuple(failures))

    class RejectLogin(Recorder):
        def __call__(self, request: httpx.Request) -> httpx.Response:
            request.read()
            if str(request.url) == UPLOAD_URL and b'filename="login.png"' in request.content:
                with self._lock:
                    self.requests.append(request)
                return httpx.Response(200, json={"ok": False, "error": "file_rejected"})
            if str(request.url) == UPLOAD_URL:
                name = request.content.split(b'filename="', 1)[1].split(b".png", 1)[0].decode()
                with self._lock:
                    self.requests.append(request)
                return httpx.Response(200, json={"ok": True, "file": {"permalink": f"https://files.test/{name}"}})
            return super().__call__(request)

    recorder = RejectLogin()
    dispatcher = _dispatcher(recorder, slack_webhook_url=SLACK_URL, slack_bot_token="xoxb-1", max_upload_workers=1)

    reports = dispatcher.dispatch(summary)

    assert len(recorder.to(UPLOAD_URL)) == 3
    uploads = [report for report in reports if report.target == "slack-upload"]
    assert [report.ok for report in uploads] == [False, True, True]
    assert "file_rejected" in uploads[0].detail
    texts = [json.loads(request.content)["text"] for request in recorder.to(SLACK_URL)]
    followups = sorted(text for text in texts if text.startswith("Screenshot for"))
    assert followups == [
        "Screenshot for *cart fails*: https://files.test/cart",
        "Screenshot for *sort fails*: https://files.test/sort",
    ]
