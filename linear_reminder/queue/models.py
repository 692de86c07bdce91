"""Queue data models."""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from linear_reminder.events import WebhookEvent


@dataclass
class TrackedIssue:
    """An issue waiting in the eligible state for its reminder."""

    id: str  # Linear issue UUID
    created_at: datetime  # From the triggering event, not insert time
    reminded: bool = False
    identifier: Optional[str] = None  # e.g. "ENG-123"
    title: Optional[str] = None
    url: Optional[str] = None

    @classmethod
    def from_event(cls, event: WebhookEvent) -> "TrackedIssue":
        """Factory method to create an unreminded entry from a webhook event."""
        return cls(
            id=event.issue.id,
            created_at=event.created_at,
            reminded=False,
            identifier=event.issue.identifier,
            title=event.issue.title,
            url=event.issue.url,
        )

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TrackedIssue":
        """Build from a RealDictCursor row."""
        return cls(
            id=row["id"],
            created_at=row["created_at"],
            reminded=row["reminded"],
            identifier=row.get("identifier"),
            title=row.get("title"),
            url=row.get("url"),
        )

    @property
    def display_name(self) -> str:
        return self.identifier or self.id
