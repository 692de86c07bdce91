"""Tests for webhook payload parsing."""

import json
from datetime import datetime, timezone

import pytest

from linear_reminder.events import ParseError, WebhookEvent, parse_event

from conftest import NOW, make_payload


def _payload(**overrides):
    payload = json.loads(make_payload())
    payload.update(overrides)
    return payload


class TestParseEvent:
    def test_parses_issue_update(self):
        event = parse_event(make_payload(issue_id="abc", state="Merged"))
        assert event.action == "update"
        assert event.event_type == "Issue"
        assert event.is_issue_event
        assert event.issue.id == "abc"
        assert event.issue.state_name == "Merged"
        assert event.issue.identifier == "ENG-1"
        assert event.issue.title == "Ship the thing"
        assert event.issue.url == "https://linear.app/acme/issue/ENG-1"

    def test_timestamps_are_aware_utc(self):
        event = parse_event(make_payload())
        assert event.created_at == NOW
        assert event.created_at.tzinfo is not None
        assert event.webhook_timestamp == NOW

    def test_millisecond_created_at_with_z(self):
        event = WebhookEvent.from_payload(_payload(createdAt="2024-03-28T05:10:45.264Z"))
        assert event.created_at == datetime(2024, 3, 28, 5, 10, 45, 264000, tzinfo=timezone.utc)

    def test_offset_timestamp_converted_to_utc(self):
        event = WebhookEvent.from_payload(_payload(createdAt="2024-03-28T07:10:45+02:00"))
        assert event.created_at == datetime(2024, 3, 28, 5, 10, 45, tzinfo=timezone.utc)

    def test_unknown_fields_ignored(self):
        event = WebhookEvent.from_payload(_payload(somethingNew={"nested": [1, 2]}))
        assert event.issue.id == "issue-a"

    def test_remove_without_state_is_valid(self):
        event = parse_event(make_payload(action="remove", state=None))
        assert event.action == "remove"
        assert event.issue.state_name is None

    def test_non_issue_event_without_state_is_valid(self):
        event = parse_event(make_payload(event_type="Comment", state=None))
        assert not event.is_issue_event


class TestParseErrors:
    def test_invalid_json(self):
        with pytest.raises(ParseError):
            parse_event(b"{not json")

    def test_invalid_utf8(self):
        with pytest.raises(ParseError):
            parse_event(b"\xff\xfe\x00")

    def test_non_object_body(self):
        with pytest.raises(ParseError):
            parse_event(b"[1, 2, 3]")

    @pytest.mark.parametrize("field", ["action", "type", "createdAt", "webhookTimestamp", "data"])
    def test_missing_required_field(self, field):
        payload = _payload()
        del payload[field]
        with pytest.raises(ParseError):
            WebhookEvent.from_payload(payload)

    def test_missing_issue_id(self):
        payload = _payload()
        del payload["data"]["id"]
        with pytest.raises(ParseError, match="data.id"):
            WebhookEvent.from_payload(payload)

    def test_issue_update_without_state(self):
        with pytest.raises(ParseError, match="data.state.name"):
            parse_event(make_payload(state=None))

    def test_bad_created_at(self):
        with pytest.raises(ParseError, match="createdAt"):
            WebhookEvent.from_payload(_payload(createdAt="yesterday"))

    def test_boolean_webhook_timestamp(self):
        with pytest.raises(ParseError, match="webhookTimestamp"):
            WebhookEvent.from_payload(_payload(webhookTimestamp=True))

    def test_string_webhook_timestamp(self):
        with pytest.raises(ParseError, match="webhookTimestamp"):
            WebhookEvent.from_payload(_payload(webhookTimestamp="1711602645358"))
