from __future__ import annotations

import base64
import binascii
import json
import logging
from dataclasses import dataclass
from typing import Any

from .errors import GitHubAPIError
from .github_rest import GitHubRestClient
from .models import Envelope

logger = logging.getLogger(__name__)

COMMIT_MESSAGE = "Update board snapshot (run {run_id})"


@dataclass(frozen=True)
class StoredSnapshot:
    raw: Any
    sha: str | None


@dataclass(frozen=True)
class Committer:
    name: str
    email: str

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "email": self.email}


def decode_content(content: str | None) -> Any:
    """Decode a base64 contents-API body into JSON; empty bodies decode to ``{}``."""
    if not content or content == "undefined":
        return {}
    try:
        text = base64.b64decode(content).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ValueError(f"snapshot content is not valid base64 UTF-8: {exc}") from exc
    if not text.strip():
        return {}
    return json.loads(text)


def encode_envelope(envelope: Envelope) -> str:
    text = json.dumps(envelope.to_dict(), indent=2, ensure_ascii=False)
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


class SnapshotRepository:
    """Snapshot file kept in a GitHub repository via the contents API."""

    def __init__(
        self,
        client: GitHubRestClient,
        *,
        repository: str,
        path: str,
        branch: str | None = None,
        committer: Committer | None = None,
    ) -> None:
        self.client = client
        self.repository = repository
        self.path = path
        self.branch = branch
        self.committer = committer

    def read(self) -> StoredSnapshot | None:
        """Return the stored snapshot, or ``None`` when the file does not exist yet."""
        try:
            data = self.client.get_content(self.repository, self.path, ref=self.branch)
        except GitHubAPIError as exc:
            if exc.not_found:
                logger.info("No snapshot at %s:%s; treating as first run", self.repository, self.path)
                return None
            raise
        sha = data.get("sha")
        return StoredSnapshot(raw=decode_content(data.get("content")), sha=sha if isinstance(sha, str) else None)

    def write(self, envelope: Envelope, sha: str | None) -> dict[str, Any]:
        message = COMMIT_MESSAGE.format(run_id=envelope.metadata.run_id or "unknown")
        result = self.client.put_content(
            self.repository,
            self.path,
            content_b64=encode_envelope(envelope),
            message=message,
            sha=sha,
            branch=self.branch,
            committer=self.committer.to_dict() if self.committer else None,
        )
        logger.info(
            "Saved %d items to %s:%s (%s)",
            len(envelope.items),
            self.repository,
            self.path,
            message,
        )
        return result


__all__ = [
    "COMMIT_MESSAGE",
    "StoredSnapshot",
    "Committer",
    "decode_content",
    "encode_envelope",
    "SnapshotRepository",
]
