"""Typed view of Linear webhook payloads."""
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

ISSUE_EVENT_TYPE = "Issue"
REMOVE_ACTION = "remove"


class ParseError(ValueError):
    """The webhook body is not a well-formed event."""


@dataclass(frozen=True)
class IssueData:
    """The subset of an issue's fields the reminder engine cares about."""

    id: str
    state_name: Optional[str] = None
    identifier: Optional[str] = None
    title: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class WebhookEvent:
    """One decoded webhook delivery."""

    action: str
    event_type: str
    created_at: datetime
    webhook_timestamp: datetime
    issue: IssueData

    @property
    def is_issue_event(self) -> bool:
        return self.event_type == ISSUE_EVENT_TYPE

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "WebhookEvent":
        """
        Build an event from a decoded JSON object.

        Unknown fields are ignored so new payload fields from Linear do not
        break intake.

        Raises:
            ParseError on a missing or wrongly typed required field
        """
        if not isinstance(payload, dict):
            raise ParseError("Event body must be a JSON object")

        action = _required_str(payload, "action")
        event_type = _required_str(payload, "type")
        created_at = _parse_iso(_required_str(payload, "createdAt"), "createdAt")
        webhook_timestamp = _parse_epoch_millis(payload.get("webhookTimestamp"))

        data = payload.get("data")
        if not isinstance(data, dict):
            raise ParseError("Missing or invalid field: data")
        issue_id = _required_str(data, "id", prefix="data.")

        state_name = None
        state = data.get("state")
        if isinstance(state, dict) and isinstance(state.get("name"), str):
            state_name = state["name"]
        if event_type == ISSUE_EVENT_TYPE and action != REMOVE_ACTION and state_name is None:
            raise ParseError("Missing or invalid field: data.state.name")

        issue = IssueData(
            id=issue_id,
            state_name=state_name,
            identifier=_optional_str(data, "identifier"),
            title=_optional_str(data, "title"),
            url=_optional_str(data, "url"),
        )
        return cls(
            action=action,
            event_type=event_type,
            created_at=created_at,
            webhook_timestamp=webhook_timestamp,
            issue=issue,
        )


def parse_event(raw_body: bytes) -> WebhookEvent:
    """Decode raw webhook bytes into a WebhookEvent."""
    try:
        payload = json.loads(raw_body)
    except (TypeError, ValueError) as e:
        raise ParseError(f"Body is not valid JSON: {e}") from e
    return WebhookEvent.from_payload(payload)


def _required_str(obj: Dict[str, Any], key: str, prefix: str = "") -> str:
    value = obj.get(key)
    if not isinstance(value, str) or not value:
        raise ParseError(f"Missing or invalid field: {prefix}{key}")
    return value


def _optional_str(obj: Dict[str, Any], key: str) -> Optional[str]:
    value = obj.get(key)
    return value if isinstance(value, str) else None


def _parse_iso(value: str, field_name: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing Z, into aware UTC."""
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ParseError(f"Invalid timestamp in {field_name}: {value!r}") from e
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_epoch_millis(value: Any) -> datetime:
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ParseError("Missing or invalid field: webhookTimestamp")
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise ParseError(f"webhookTimestamp out of range: {value!r}") from e
