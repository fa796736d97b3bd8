"""Environment-based credentials for boardwatch.

Tokens come from environment variables, optionally seeded from a ``.env``
file. The project and storage tokens fall back to the generic GitHub token
variables so a single token can serve both.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .logging import get_logger

GITHUB_FALLBACK_VARS = ("GITHUB_TOKEN", "GH_TOKEN")
DOTENV_LOCATIONS = (".env", ".env.local")


@dataclass
class EnvAuthConfig:
    """Names of the variables the credentials are read from."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    project_token_var: str = "BOARDWATCH_PROJECT_TOKEN"
    storage_token_var: str = "BOARDWATCH_STORAGE_TOKEN"
    slack_token_var: str = "SLACK_TOKEN"


@dataclass(frozen=True)
class Credentials:
    project_token: str | None
    storage_token: str | None
    slack_token: str | None


class EnvironmentAuthManager:
    """Resolves boardwatch credentials from the environment and ``.env`` files."""

    def __init__(self, config: EnvAuthConfig | None = None):
        self.config = config or EnvAuthConfig()
        self.logger = get_logger()
        self._dotenv_loaded = False
        if self.config.load_dotenv:
            self._load_dotenv()

    @property
    def dotenv_loaded(self) -> bool:
        return self._dotenv_loaded

    def _load_dotenv(self) -> None:
        candidates = (self.config.dotenv_path,) if self.config.dotenv_path else DOTENV_LOCATIONS
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                # existing environment variables take precedence over the file
                load_dotenv(str(env_path), override=False)
                self._dotenv_loaded = True
                self.logger.debug(f"Loaded environment variables from {env_path}")
                return

    def _github_token(self, primary_var: str) -> str | None:
        token = os.getenv(primary_var)
        if token:
            self.logger.debug(f"Found GitHub token in {primary_var}")
            return token
        for alt_var in GITHUB_FALLBACK_VARS:
            token = os.getenv(alt_var)
            if token:
                self.logger.debug(f"Using {alt_var} in place of {primary_var}")
                return token
        return None

    def get_project_token(self) -> str | None:
        return self._github_token(self.config.project_token_var)

    def get_storage_token(self) -> str | None:
        return self._github_token(self.config.storage_token_var)

    def get_slack_token(self) -> str | None:
        return os.getenv(self.config.slack_token_var) or None

    def credentials(self) -> Credentials:
        return Credentials(
            project_token=self.get_project_token(),
            storage_token=self.get_storage_token(),
            slack_token=self.get_slack_token(),
        )


def load_credentials(dotenv_path: str | None = None) -> Credentials:
    return EnvironmentAuthManager(EnvAuthConfig(dotenv_path=dotenv_path)).credentials()


__all__ = [
    "EnvAuthConfig",
    "Credentials",
    "EnvironmentAuthManager",
    "load_credentials",
]
