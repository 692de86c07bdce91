"""Minimal Linear API client for posting reminder comments."""
from typing import Any, Dict, Optional

import requests

from linear_reminder.errors import NotifierError
from linear_reminder.logging_conf import logger
from linear_reminder.queue.models import TrackedIssue
from linear_reminder.settings import ReminderConfig

COMMENT_CREATE_MUTATION = """
mutation CommentCreate($input: CommentCreateInput!) {
  commentCreate(input: $input) {
    success
    comment { id }
  }
}
"""


PERSONAL_KEY_PREFIX = "lin_api_"


def authorization_header(api_key: str) -> str:
    """Personal API keys go in raw; OAuth access tokens use the Bearer scheme."""
    key = api_key.strip()
    if key.startswith(PERSONAL_KEY_PREFIX):
        return key
    return f"Bearer {key}"


class LinearClient:
    """Posts reminder comments on Linear issues."""

    def __init__(self, config: ReminderConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.api_url = config.api_url
        self.timeout = config.notifier_timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": authorization_header(config.api_key),
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    def render_message(self, issue: TrackedIssue) -> str:
        """Fill the configured template with this issue's fields."""
        return self.config.render_message(
            id=issue.id,
            identifier=issue.display_name,
            title=issue.title or "",
            url=issue.url or "",
        )

    def send(self, issue: TrackedIssue) -> str:
        """
        Post the reminder comment on an issue.

        Args:
            issue: The claimed issue to remind

        Returns:
            The id of the created comment (empty if Linear did not return one)

        Raises:
            NotifierError on network errors, timeouts, non-2xx responses or an
            unsuccessful mutation
        """
        variables = {"input": {"issueId": issue.id, "body": self.render_message(issue)}}
        data = self._graphql(COMMENT_CREATE_MUTATION, variables)

        result = data.get("commentCreate") or {}
        if not result.get("success"):
            raise NotifierError(f"commentCreate was not successful for {issue.display_name}")

        comment_id = (result.get("comment") or {}).get("id") or ""
        logger.info(f"Posted reminder on {issue.display_name} (comment {comment_id or 'unknown'})")
        return comment_id

    def _graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """Make one GraphQL request; no retries, the worker's next tick is the retry."""
        try:
            response = self.session.post(
                self.api_url,
                json={"query": query, "variables": variables},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise NotifierError(f"Linear API request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise NotifierError(
                f"Linear API returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as e:
            raise NotifierError(f"Linear API returned invalid JSON: {e}", response.status_code) from e

        if not isinstance(body, dict):
            raise NotifierError("Linear API returned an unexpected body", response.status_code)

        if body.get("errors"):
            messages = "; ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in body["errors"]
            )
            raise NotifierError(f"Linear API error: {messages}", status_code=response.status_code)

        return body.get("data") or {}
