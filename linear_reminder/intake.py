"""Apply authenticated webhook events to the reminder queue."""
import enum
from datetime import datetime
from typing import Callable, Optional

from linear_reminder import signature
from linear_reminder.clock import utcnow
from linear_reminder.errors import StoreError
from linear_reminder.events import REMOVE_ACTION, ParseError, WebhookEvent, parse_event
from linear_reminder.logging_conf import logger
from linear_reminder.queue.issue_queue import IssueQueue
from linear_reminder.queue.models import TrackedIssue
from linear_reminder.settings import ReminderConfig


class Outcome(enum.Enum):
    TRACKED = "tracked"
    UNTRACKED = "untracked"
    IGNORED = "ignored"
    UNAUTHORIZED = "unauthorized"
    BAD_REQUEST = "bad_request"
    INTERNAL_ERROR = "internal_error"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    Outcome.TRACKED: 200,
    Outcome.UNTRACKED: 200,
    Outcome.IGNORED: 200,
    Outcome.UNAUTHORIZED: 401,
    Outcome.BAD_REQUEST: 400,
    Outcome.INTERNAL_ERROR: 500,
}


class Eligibility(enum.Enum):
    ELIGIBLE = "eligible"
    NOT_ELIGIBLE = "not_eligible"


def eligibility(event: WebhookEvent, target_state: str) -> Eligibility:
    """An issue is eligible while it sits in the target state and still exists."""
    if event.action != REMOVE_ACTION and event.issue.state_name == target_state:
        return Eligibility.ELIGIBLE
    return Eligibility.NOT_ELIGIBLE


class IntakeHandler:
    """Verifies, decodes and applies one webhook delivery."""

    def __init__(
        self,
        config: ReminderConfig,
        queue: IssueQueue,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config
        self.queue = queue
        self.clock = clock

    def handle(self, raw_body: bytes, signature_header: Optional[str]) -> Outcome:
        if not signature.verify(raw_body, signature_header, self.config.signing_key):
            logger.warning("Rejected webhook with missing or invalid signature")
            return Outcome.UNAUTHORIZED

        try:
            event = parse_event(raw_body)
        except ParseError as e:
            logger.warning(f"Rejected malformed webhook: {e}")
            return Outcome.BAD_REQUEST

        if not signature.is_fresh(event.webhook_timestamp, self.clock(), self.config.replay_window):
            logger.warning(
                f"Rejected stale webhook for {event.issue.id} "
                f"(emitted {event.webhook_timestamp.isoformat()})"
            )
            return Outcome.BAD_REQUEST

        if not event.is_issue_event:
            logger.debug(f"Ignoring {event.event_type} {event.action} webhook")
            return Outcome.IGNORED

        try:
            return self._apply(event)
        except StoreError as e:
            logger.error(f"Failed to apply webhook for {event.issue.id}: {e}", exc_info=True)
            return Outcome.INTERNAL_ERROR

    def _apply(self, event: WebhookEvent) -> Outcome:
        decision = eligibility(event, self.config.target_state)
        if decision is Eligibility.ELIGIBLE:
            self.queue.upsert_if_absent(TrackedIssue.from_event(event))
            return Outcome.TRACKED

        # Harmless when the issue was never tracked
        self.queue.remove_if_present(event.issue.id)
        return Outcome.UNTRACKED
