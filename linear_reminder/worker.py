"""Background worker that posts reminders for issues left too long in the target state."""
import enum
import threading
import time
from datetime import datetime
from typing import Callable

from linear_reminder.clock import utcnow
from linear_reminder.errors import NotifierError, StoreError
from linear_reminder.linear_client import LinearClient
from linear_reminder.logging_conf import logger
from linear_reminder.queue.issue_queue import IssueQueue
from linear_reminder.settings import ReminderConfig


class TickResult(enum.Enum):
    IDLE = "idle"  # nothing claimable
    NOT_DUE = "not_due"
    REMINDED = "reminded"
    FAILED = "failed"  # notifier failed, claim rolled back
    ERROR = "error"  # store failure


class ReminderWorker:
    """Claims at most one issue per tick and reminds it once it is due."""

    def __init__(
        self,
        config: ReminderConfig,
        queue: IssueQueue,
        notifier: LinearClient,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.config = config
        self.queue = queue
        self.notifier = notifier
        self.clock = clock
        self.running = False
        self.thread = None

    def start(self):
        """Start the worker in a background thread."""
        if self.running:
            logger.warning("Worker is already running")
            return

        self.running = True
        self.thread = threading.Thread(target=self._run, name="reminder-worker", daemon=True)
        self.thread.start()
        logger.info(
            f"Worker started (interval: {self.config.poll_interval}s, "
            f"time to remind: {self.config.time_to_remind})"
        )

    def stop(self):
        """Stop the worker and wait for the current tick to finish."""
        if not self.running:
            return

        self.running = False
        if self.thread:
            self.thread.join(timeout=self.config.notifier_timeout + 10)
        logger.info("Worker stopped")

    def _run(self):
        """Main worker loop: tick, then wait one interval."""
        logger.info("Worker thread started")

        while self.running:
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Worker error: {e}", exc_info=True)

            for _ in range(self.config.poll_interval):
                if not self.running:
                    break
                time.sleep(1)

        logger.info("Worker thread stopped")

    def tick(self) -> TickResult:
        """Process at most one claimable issue."""
        try:
            claim = self.queue.claim_oldest_due()
        except StoreError as e:
            logger.error(f"Failed to claim an issue: {e}")
            return TickResult.ERROR

        if claim is None:
            return TickResult.IDLE

        with claim:
            issue = claim.issue
            age = self.clock() - issue.created_at
            if age <= self.config.time_to_remind:
                logger.debug(f"{issue.display_name} not due yet (age {age})")
                claim.rollback()
                return TickResult.NOT_DUE

            try:
                self.notifier.send(issue)
            except NotifierError as e:
                logger.warning(f"Reminder for {issue.display_name} failed, will retry: {e}")
                claim.rollback()
                return TickResult.FAILED

            try:
                claim.commit(mark_reminded=True)
            except StoreError as e:
                # Already delivered; the next tick will re-claim and post again
                logger.error(f"Reminded {issue.display_name} but could not record it: {e}")
                return TickResult.ERROR

        logger.info(f"Reminded {issue.display_name}")
        return TickResult.REMINDED
