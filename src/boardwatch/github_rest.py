from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import requests

from .errors import GitHubAPIError
from .retry import RetryConfig, run_with_retries

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"
USER_AGENT = "boardwatch/0.3.0"
HTTP_ERROR_STATUS = 400
REQUEST_TIMEOUT = 30


@dataclass
class GitHubRestClient:
    """Lightweight REST/GraphQL client for the GitHub calls boardwatch makes."""

    token: str
    base_url: str = DEFAULT_API_URL
    graphql_url: str = DEFAULT_GRAPHQL_URL
    session: requests.Session | None = None
    retry: RetryConfig | None = None
    _session: requests.Session = field(init=False, repr=False)

    def __post_init__(self) -> None:  # pragma: no cover - simple wiring
        self._session = self.session or requests.Session()
        if self.token:
            self._session.headers.setdefault("Authorization", f"Bearer {self.token}")
        self._session.headers.setdefault("Accept", "application/vnd.github+json")
        self._session.headers.setdefault("User-Agent", USER_AGENT)

    # ---- REST helpers -------------------------------------------------
    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Any:
        url = (
            path
            if path.startswith("http")
            else f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"
        )

        def _run() -> Any:
            try:
                response = self._session.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    headers=self._session.headers,
                    timeout=REQUEST_TIMEOUT,
                )
            except requests.RequestException as exc:
                raise GitHubAPIError(f"GitHub API {method} {url} failed: {exc}") from exc
            if response.status_code >= HTTP_ERROR_STATUS:
                text = response.text
                retry_after = (getattr(response, "headers", None) or {}).get("Retry-After")
                if retry_after:
                    text = f"Retry-After: {retry_after}\n{text}"
                raise GitHubAPIError(
                    f"GitHub API {method} {url} failed with {response.status_code}",
                    status=response.status_code,
                    response_text=text,
                )
            return response

        response = run_with_retries(_run, cfg=self.retry)
        if response.text:
            try:
                return response.json()
            except ValueError:  # pragma: no cover - defensive
                return response.text
        return None

    # ---- Repository contents ------------------------------------------
    def get_content(self, repo: str, path: str, *, ref: str | None = None) -> dict[str, Any]:
        params = {"ref": ref} if ref else None
        data = self._request("GET", f"/repos/{repo}/contents/{path.lstrip('/')}", params=params)
        if not isinstance(data, dict):
            raise GitHubAPIError(f"Expected a file at {repo}:{path}, got {type(data).__name__}")
        return data

    def put_content(
        self,
        repo: str,
        path: str,
        *,
        content_b64: str,
        message: str,
        sha: str | None = None,
        branch: str | None = None,
        committer: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"message": message, "content": content_b64}
        if sha:
            payload["sha"] = sha
        if branch:
            payload["branch"] = branch
        if committer:
            payload["committer"] = dict(committer)
        data = self._request(
            "PUT", f"/repos/{repo}/contents/{path.lstrip('/')}", json_body=payload
        )
        return data if isinstance(data, dict) else {}

    # ---- GraphQL ------------------------------------------------------
    def graphql(self, query: str, variables: dict[str, Any] | None = None) -> dict[str, Any]:
        payload = {"query": query, "variables": variables or {}}
        data = self._request("POST", self.graphql_url, json_body=payload)
        if isinstance(data, dict) and data.get("errors"):
            raise GitHubAPIError(
                f"GraphQL query failed: {data['errors']}", response_text=str(data["errors"])
            )
        if not isinstance(data, dict):
            raise GitHubAPIError("GraphQL response was not a JSON object")
        body = data.get("data")
        return body if isinstance(body, dict) else {}


__all__ = ["GitHubRestClient", "DEFAULT_API_URL", "DEFAULT_GRAPHQL_URL"]
