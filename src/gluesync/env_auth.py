"""Environment-based credentials for glue.

Loads ``.env`` files (python-dotenv) and resolves GitHub and JIRA
credentials from environment variables.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .logging import StructuredLogger, mask_secret

GITHUB_TOKEN_ALTERNATIVES = ("GH_TOKEN", "GITHUB_ACCESS_TOKEN", "GITHUB_PAT")
DOTENV_LOCATIONS = (".env", ".env.local")


@dataclass
class EnvAuthConfig:
    load_dotenv: bool = True
    dotenv_path: str | None = None
    github_token_var: str = "GITHUB_TOKEN"
    jira_url_var: str = "JIRA_URL"
    jira_username_var: str = "JIRA_USERNAME"
    jira_token_var: str = "JIRA_TOKEN"


class EnvironmentAuthManager:
    """Resolves credentials from a mapping of environment variables."""

    def __init__(
        self,
        config: EnvAuthConfig | None = None,
        *,
        env: Mapping[str, str] | None = None,
        logger: StructuredLogger | None = None,
    ):
        self.config = config or EnvAuthConfig()
        self.logger = logger
        self._dotenv_loaded = False
        if self.config.load_dotenv:
            self._load_dotenv()
        # read after dotenv so values from .env are visible
        self.env: Mapping[str, str] = env if env is not None else os.environ

    def _debug(self, message: str, **kw: object) -> None:
        if self.logger is not None:
            self.logger.debug(message, **kw)

    def _load_dotenv(self) -> None:
        candidates = (
            [self.config.dotenv_path] if self.config.dotenv_path else list(DOTENV_LOCATIONS)
        )
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                load_dotenv(str(env_path))
                self._dotenv_loaded = True
                self._debug("loaded environment variables", dotenv=str(env_path))
                break

    @property
    def dotenv_loaded(self) -> bool:
        return self._dotenv_loaded

    def get_github_token(self) -> str | None:
        token = self.env.get(self.config.github_token_var)
        if token:
            return token
        for alt_var in GITHUB_TOKEN_ALTERNATIVES:
            token = self.env.get(alt_var)
            if token:
                self._debug("found github token in alternative variable", variable=alt_var)
                return token
        return None

    def get_jira_credentials(self) -> dict[str, str | None]:
        creds = {
            "url": self.env.get(self.config.jira_url_var) or None,
            "username": self.env.get(self.config.jira_username_var) or None,
            "token": self.env.get(self.config.jira_token_var) or None,
        }
        self._debug(
            "jira configuration",
            base_url=creds["url"],
            username=creds["username"],
            token=mask_secret(creds["token"]),
        )
        return creds

    def missing_variables(self) -> list[str]:
        missing: list[str] = []
        if not self.get_github_token():
            missing.append(self.config.github_token_var)
        jira = self.get_jira_credentials()
        for key, var in (
            ("url", self.config.jira_url_var),
            ("username", self.config.jira_username_var),
            ("token", self.config.jira_token_var),
        ):
            if not jira[key]:
                missing.append(var)
        return missing


__all__ = ["EnvAuthConfig", "EnvironmentAuthManager"]
