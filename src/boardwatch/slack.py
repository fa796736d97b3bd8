from __future__ import annotations

import logging
from typing import Any

import requests

from .errors import SlackError
from .summary import clean_message

logger = logging.getLogger(__name__)

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"
HTTP_OK = 200


class SlackNotifier:
    """Posts the rendered report to a Slack channel."""

    def __init__(
        self,
        token: str | None,
        channel: str | None,
        *,
        session: requests.Session | None = None,
        url: str = SLACK_POST_MESSAGE_URL,
    ) -> None:
        self.token = token or ""
        self.channel = channel or ""
        self.url = url
        self._session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return bool(self.token and self.channel)

    def send(self, markdown: str) -> dict[str, Any] | None:
        """Clean ``markdown`` and post it; returns Slack's reply or ``None`` when skipped."""
        if not self.token:
            logger.warning("No Slack token provided, skipping Slack notification")
            return None
        if not self.channel:
            logger.warning("No Slack channel configured, skipping Slack notification")
            return None
        if not markdown:
            logger.debug("No message provided, skipping Slack notification")
            return None
        try:
            response = self._session.post(
                self.url,
                json={"channel": self.channel, "text": clean_message(markdown)},
                headers={"Authorization": f"Bearer {self.token}"},
                timeout=30,
            )
        except requests.RequestException as exc:
            raise SlackError(f"Unable to reach Slack: {exc}") from exc
        if response.status_code != HTTP_OK:
            raise SlackError(
                f"Slack returned HTTP {response.status_code}: {response.text}"
            )
        payload = response.json()
        if not isinstance(payload, dict) or not payload.get("ok"):
            error = payload.get("error") if isinstance(payload, dict) else payload
            raise SlackError(f"Unable to send Slack message: {error}")
        logger.info("Slack message sent to %s", self.channel)
        return payload


__all__ = ["SlackNotifier", "SLACK_POST_MESSAGE_URL"]
