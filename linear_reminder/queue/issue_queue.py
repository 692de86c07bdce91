"""Postgres-backed queue of issues awaiting a reminder."""
from datetime import datetime
from typing import Optional

import psycopg2
from psycopg2.extensions import connection as PgConnection
from psycopg2.extras import RealDictCursor

from linear_reminder.db import Database, safe_rollback
from linear_reminder.errors import ClaimAlreadyFinalized, StoreError
from linear_reminder.logging_conf import logger
from linear_reminder.queue.models import TrackedIssue

CLAIM_SQL = """
    SELECT id, created_at, reminded, identifier, title, url
    FROM issues
    WHERE reminded = FALSE
    ORDER BY created_at ASC
    LIMIT 1
    FOR UPDATE SKIP LOCKED
"""


class ClaimedIssue:
    """
    An exclusive hold on one queue row, backed by an open transaction.

    Exactly one of commit() or rollback() must be called. Used as a context
    manager, the claim is rolled back on exit unless it was already finalized,
    so the row lock cannot outlive the block.
    """

    def __init__(self, database: Database, conn: PgConnection, issue: TrackedIssue):
        self._database = database
        self._conn = conn
        self.issue = issue
        self.finalized = False

    @property
    def id(self) -> str:
        return self.issue.id

    @property
    def created_at(self) -> datetime:
        return self.issue.created_at

    def commit(self, mark_reminded: bool) -> None:
        """Finish the claim, optionally flagging the issue as reminded."""
        self._check_open()
        self.finalized = True
        try:
            if mark_reminded:
                with self._conn.cursor() as cur:
                    cur.execute(
                        "UPDATE issues SET reminded = TRUE WHERE id = %s",
                        (self.issue.id,),
                    )
            self._conn.commit()
        except psycopg2.Error as e:
            safe_rollback(self._conn)
            raise StoreError(f"Failed to commit claim for {self.issue.id}: {e}") from e
        finally:
            self._database.release(self._conn)
        if mark_reminded:
            self.issue.reminded = True

    def rollback(self) -> None:
        """Abandon the claim; the row stays unreminded and claimable."""
        self._check_open()
        self.finalized = True
        try:
            safe_rollback(self._conn)
        finally:
            self._database.release(self._conn)

    def _check_open(self):
        if self.finalized:
            raise ClaimAlreadyFinalized(f"Claim for {self.issue.id} is already finalized")

    def __enter__(self) -> "ClaimedIssue":
        return self

    def __exit__(self, exc_type, exc, tb):
        if not self.finalized:
            self.rollback()
        return False


class IssueQueue:
    """The durable table of tracked issues."""

    def __init__(self, database: Database):
        self.database = database

    def upsert_if_absent(self, issue: TrackedIssue) -> bool:
        """Start tracking an issue. Returns False if it was already tracked."""
        with self.database.transaction() as cur:
            cur.execute("""
                INSERT INTO issues (id, created_at, reminded, identifier, title, url)
                VALUES (%s, %s, FALSE, %s, %s, %s)
                ON CONFLICT (id) DO NOTHING
            """, (issue.id, issue.created_at, issue.identifier, issue.title, issue.url))
            inserted = cur.rowcount == 1
        if inserted:
            logger.info(f"Tracking issue {issue.display_name} (since {issue.created_at.isoformat()})")
        else:
            logger.debug(f"Issue {issue.display_name} already tracked")
        return inserted

    def remove_if_present(self, issue_id: str) -> bool:
        """Stop tracking an issue. Returns whether a row was removed."""
        with self.database.transaction() as cur:
            cur.execute("DELETE FROM issues WHERE id = %s", (issue_id,))
            removed = cur.rowcount > 0
        if removed:
            logger.info(f"Stopped tracking issue {issue_id}")
        return removed

    def claim_oldest_due(self) -> Optional[ClaimedIssue]:
        """
        Lock the oldest unreminded issue that no other claimer holds.

        Returns:
            A ClaimedIssue holding the open transaction, or None when there is
            nothing to claim
        """
        conn = self.database.acquire()
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(CLAIM_SQL)
                row = cur.fetchone()
        except psycopg2.Error as e:
            safe_rollback(conn)
            self.database.release(conn)
            raise StoreError(f"Failed to claim an issue: {e}") from e

        if row is None:
            safe_rollback(conn)
            self.database.release(conn)
            return None
        return ClaimedIssue(self.database, conn, TrackedIssue.from_row(row))

    def get(self, issue_id: str) -> Optional[TrackedIssue]:
        """Fetch one tracked issue without locking it."""
        with self.database.transaction() as cur:
            cur.execute("""
                SELECT id, created_at, reminded, identifier, title, url
                FROM issues
                WHERE id = %s
            """, (issue_id,))
            row = cur.fetchone()
        return TrackedIssue.from_row(row) if row else None

    def count_pending(self) -> int:
        """Number of issues still waiting for a reminder."""
        with self.database.transaction() as cur:
            cur.execute("SELECT COUNT(*) AS pending FROM issues WHERE reminded = FALSE")
            return cur.fetchone()["pending"]
