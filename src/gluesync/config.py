from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import yaml

from .env_auth import EnvAuthConfig, EnvironmentAuthManager
from .errors import ConfigError
from .github_rest import PUBLIC_DOMAIN
from .jira_rest import DEFAULT_LINK_TYPE
from .retry import RetryConfig

CONFIG_DEFAULT = 'glue.config.yaml'


@dataclass
class GlueConfig:
    github_token: str
    github_domain: str
    jira_url: str
    jira_username: str
    jira_token: str
    jira_link_type: str
    # Logging configuration
    logging_level: str
    logging_json_enabled: bool
    # Retry configuration
    retry_attempts: int
    retry_base_sleep: float
    source_file: Path | None = None

    def retry_config(self) -> RetryConfig:
        return RetryConfig(attempts=self.retry_attempts, base_sleep=self.retry_base_sleep)


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        loaded = yaml.safe_load(path.read_text(encoding='utf-8')) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {path}: {exc}') from exc
    if not isinstance(loaded, dict):
        raise ConfigError(f'Configuration in {path} must be a mapping')
    return cast(dict[str, Any], loaded)


def load_config(
    path: str | Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    load_dotenv: bool = True,
) -> GlueConfig:
    """Build the runtime configuration.

    Credentials always come from the environment (``GITHUB_TOKEN``,
    ``JIRA_URL``, ``JIRA_USERNAME``, ``JIRA_TOKEN``). The optional YAML file
    supplies the GitHub domain, link type, logging and retry settings; env
    vars ``GITHUB_DOMAIN`` and ``LOG_LEVEL`` override it. An explicit
    ``path`` that does not exist is an error; the default file is optional.
    """
    raw: dict[str, Any] = {}
    source: Path | None = None
    if path is not None:
        source = Path(path)
        if not source.exists():
            raise ConfigError(f'Configuration file not found: {source}')
        raw = _read_yaml(source)
    elif Path(CONFIG_DEFAULT).exists():
        source = Path(CONFIG_DEFAULT)
        raw = _read_yaml(source)

    environ: Mapping[str, str] = env if env is not None else os.environ
    gh = cast(dict[str, Any], raw.get('github', {}) or {})
    jira = cast(dict[str, Any], raw.get('jira', {}) or {})
    logging_config = cast(dict[str, Any], raw.get('logging', {}) or {})
    retry_config = cast(dict[str, Any], raw.get('retry', {}) or {})

    auth = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=load_dotenv), env=environ)
    missing = auth.missing_variables()
    if missing:
        raise ConfigError(f'missing required environment variables: {", ".join(missing)}')
    jira_creds = auth.get_jira_credentials()

    return GlueConfig(
        github_token=cast(str, auth.get_github_token()),
        github_domain=environ.get('GITHUB_DOMAIN') or gh.get('domain') or PUBLIC_DOMAIN,
        jira_url=cast(str, jira_creds['url']),
        jira_username=cast(str, jira_creds['username']),
        jira_token=cast(str, jira_creds['token']),
        jira_link_type=str(jira.get('link_type') or DEFAULT_LINK_TYPE),
        logging_level=str(environ.get('LOG_LEVEL') or logging_config.get('level', 'INFO')).upper(),
        logging_json_enabled=bool(logging_config.get('json_enabled', False)),
        retry_attempts=int(retry_config.get('attempts', environ.get('GLUE_RETRY_ATTEMPTS', 3))),
        retry_base_sleep=float(retry_config.get('base_sleep', environ.get('GLUE_RETRY_BASE', 0.5))),
        source_file=source,
    )


__all__ = ['CONFIG_DEFAULT', 'GlueConfig', 'load_config']
