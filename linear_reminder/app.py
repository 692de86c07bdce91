"""Main application - receives Linear webhooks and posts reminder comments."""
import signal
import sys

from linear_reminder.logging_conf import logger
from linear_reminder import settings
from linear_reminder.db import Database
from linear_reminder.errors import ConfigError, StoreError
from linear_reminder.intake import IntakeHandler
from linear_reminder.linear_client import LinearClient
from linear_reminder.queue.issue_queue import IssueQueue
from linear_reminder.server import create_app
from linear_reminder.worker import ReminderWorker


class Application:
    """Wires the queue, intake handler, worker and webhook receiver together."""

    def __init__(self, config: settings.ReminderConfig):
        self.config = config
        self.db = Database(
            config.database_url,
            config.db_pool_min,
            config.db_pool_max,
            acquire_timeout=config.db_acquire_timeout,
        )
        self.queue = IssueQueue(self.db)
        self.intake = IntakeHandler(config, self.queue)
        self.worker = ReminderWorker(config, self.queue, LinearClient(config))
        self.web = create_app(self.intake)
        self.running = False

    def start(self):
        """Run migrations and start the background worker."""
        logger.info("=" * 50)
        logger.info("Linear Reminder")
        logger.info("=" * 50)
        logger.info(f"Target state: {self.config.target_state}")
        logger.info(f"Time to remind: {self.config.time_to_remind}")
        logger.info(f"Poll interval: {self.config.poll_interval}s")
        logger.info("=" * 50)

        self.db.run_migrations()
        logger.info(f"{self.queue.count_pending()} issues waiting for a reminder")
        self.worker.start()
        self.running = True

    def stop(self):
        """Stop the worker and close the pool."""
        if not self.running:
            return
        self.running = False
        self.worker.stop()
        self.db.close()
        logger.info("Stopped")

    def run(self):
        """Start everything and serve webhooks until interrupted."""
        self.start()
        try:
            self.web.run(host=self.config.host, port=self.config.port, threaded=True)
        finally:
            self.stop()


def main():
    """Entry point."""
    try:
        config = settings.load_config()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    app = Application(config)

    def signal_handler(sig, frame):
        logger.info(f"Received signal {sig}")
        app.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        app.run()
    except StoreError as e:
        logger.error(f"Database error during startup: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
