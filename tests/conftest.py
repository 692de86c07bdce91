"""Shared test fixtures for linear_reminder tests."""

import json
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from linear_reminder.errors import ClaimAlreadyFinalized, NotifierError
from linear_reminder.settings import ReminderConfig
from linear_reminder.signature import compute_signature

SECRET = b"lin_wh_test_secret"
NOW = datetime(2024, 3, 28, 5, 10, 45, tzinfo=timezone.utc)


def make_payload(
    issue_id="issue-a",
    state="Merged",
    action="update",
    event_type="Issue",
    created_at=NOW,
    webhook_timestamp=NOW,
    identifier="ENG-1",
    title="Ship the thing",
):
    """Serialized Linear webhook body."""
    data = {
        "id": issue_id,
        "identifier": identifier,
        "title": title,
        "url": f"https://linear.app/acme/issue/{identifier}",
        "priority": 2,
        "labelIds": [],
    }
    if state is not None:
        data["state"] = {"id": "state-1", "name": state, "type": "started", "color": "#f2c94c"}
    payload = {
        "action": action,
        "type": event_type,
        "createdAt": created_at.isoformat().replace("+00:00", "Z"),
        "data": data,
        "url": data["url"],
        "organizationId": "org-1",
        "webhookTimestamp": int(webhook_timestamp.timestamp() * 1000),
        "webhookId": "hook-1",
    }
    return json.dumps(payload).encode("utf-8")


def sign(body, secret=SECRET):
    return compute_signature(body, secret)


class InMemoryClaim:
    """Claim on an InMemoryIssueQueue row."""

    def __init__(self, queue, issue):
        self.queue = queue
        self.issue = issue
        self.finalized = False

    @property
    def id(self):
        return self.issue.id

    @property
    def created_at(self):
        return self.issue.created_at

    def commit(self, mark_reminded):
        self._finish()
        if self.queue.fail_commit is not None:
            raise self.queue.fail_commit
        row = self.queue.rows.get(self.issue.id)
        if mark_reminded and row is not None:
            row.reminded = True
            self.issue.reminded = True

    def rollback(self):
        self._finish()

    def _finish(self):
        if self.finalized:
            raise ClaimAlreadyFinalized(self.issue.id)
        self.finalized = True
        self.queue.locked.discard(self.issue.id)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self.finalized:
            self.rollback()
        return False


class InMemoryIssueQueue:
    """IssueQueue double with the same skip-locked claim semantics."""

    def __init__(self):
        self.rows = {}
        self.locked = set()
        self.fail_with = None
        self.fail_commit = None

    def _maybe_fail(self):
        if self.fail_with is not None:
            raise self.fail_with

    def upsert_if_absent(self, issue):
        self._maybe_fail()
        if issue.id in self.rows:
            return False
        self.rows[issue.id] = replace(issue, reminded=False)
        return True

    def remove_if_present(self, issue_id):
        self._maybe_fail()
        return self.rows.pop(issue_id, None) is not None

    def claim_oldest_due(self):
        self._maybe_fail()
        candidates = sorted(
            (r for r in self.rows.values() if not r.reminded and r.id not in self.locked),
            key=lambda r: r.created_at,
        )
        if not candidates:
            return None
        issue = candidates[0]
        self.locked.add(issue.id)
        return InMemoryClaim(self, replace(issue))

    def get(self, issue_id):
        return self.rows.get(issue_id)

    def count_pending(self):
        return sum(1 for r in self.rows.values() if not r.reminded)


class RecordingNotifier:
    """Notifier double that records every send and can be told to fail."""

    def __init__(self):
        self.sent = []
        self.error = None

    def send(self, issue):
        self.sent.append(issue.id)
        if self.error is not None:
            raise self.error
        return f"comment-{len(self.sent)}"

    def fail_with_status(self, status_code):
        self.error = NotifierError(f"Linear API returned {status_code}", status_code=status_code)


@pytest.fixture
def config():
    return ReminderConfig(
        database_url="postgresql://localhost/test",
        api_key="lin_api_test",
        signing_key=SECRET,
        time_to_remind=timedelta(hours=1),
        target_state="Merged",
        message_template="Is {identifier} deployed yet? {url}",
        poll_interval=1,
        notifier_timeout=1.0,
    )


@pytest.fixture
def queue():
    return InMemoryIssueQueue()


@pytest.fixture
def notifier():
    return RecordingNotifier()


class Clock:
    """Settable clock for handler and worker tests."""

    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, delta):
        self.now += delta


@pytest.fixture
def clock():
    return Clock()
