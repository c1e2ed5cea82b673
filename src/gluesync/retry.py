"""Centralized retry / backoff helpers.

Provides ``run_with_retries`` which wraps a single HTTP call with exponential
backoff and jitter. Transient failures are connection errors, timeouts and
responses with status 429/502/503/504; anything else is returned or raised
to the caller on the first attempt.

Environment overrides:
  GLUE_RETRY_ATTEMPTS (default 3)
  GLUE_RETRY_BASE (seconds base, default 0.5)
  GLUE_RETRY_MAX_SLEEP (cap in seconds, optional)
"""

from __future__ import annotations

import logging
import os
import random
import re
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import requests

TRANSIENT_STATUSES = frozenset({429, 502, 503, 504})

_RE_RETRY_AFTER = re.compile(r"retry[-\s]after:?\s*(\d+)", re.IGNORECASE)
_RE_SECONDS_HINT = re.compile(r"wait\s*(\d+)\s*seconds", re.IGNORECASE)
_JITTER = random.SystemRandom()

logger = logging.getLogger(__name__)


def _extract_explicit_backoff(text: str) -> float | None:
    """Extract an explicit backoff (seconds) from a header value or body.

    Supports a bare ``12`` (Retry-After header), ``Retry-After: 12``,
    ``retry after 12`` and ``wait 30 seconds``.
    """
    if not text:
        return None
    stripped = text.strip()
    if stripped.isdigit():
        val = float(stripped)
        return val if val > 0 else None
    for pattern in (_RE_RETRY_AFTER, _RE_SECONDS_HINT):
        m = pattern.search(text)
        if m:
            val = float(m.group(1))
            return val if val > 0 else None
    return None


@dataclass
class RetryConfig:
    attempts: int = field(default_factory=lambda: int(os.environ.get("GLUE_RETRY_ATTEMPTS", "3")))
    base_sleep: float = field(default_factory=lambda: float(os.environ.get("GLUE_RETRY_BASE", "0.5")))


def is_transient(response: requests.Response) -> bool:
    return response.status_code in TRANSIENT_STATUSES


def _compute_sleep(attempt: int, cfg: RetryConfig, hint: str) -> float:
    explicit = _extract_explicit_backoff(hint)
    backoff = cfg.base_sleep * (2 ** (attempt - 1)) + _JITTER.uniform(0, 0.25)
    sleep_for: float = explicit if explicit is not None else backoff
    max_cap_env = os.environ.get("GLUE_RETRY_MAX_SLEEP")
    if max_cap_env:
        try:
            cap = float(max_cap_env)
        except ValueError:
            return sleep_for
        if cap >= 0:
            sleep_for = min(sleep_for, cap)
    return sleep_for


def run_with_retries(
    fn: Callable[[], requests.Response],
    *,
    cfg: RetryConfig | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> requests.Response:
    cfg = cfg or RetryConfig()
    attempts = max(1, cfg.attempts)
    for attempt in range(1, attempts + 1):
        try:
            response = fn()
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as exc:
            if attempt >= attempts:
                raise
            sleep_for = _compute_sleep(attempt, cfg, "")
            logger.warning(
                "[retry] %s, attempt %d/%d, sleeping %.2fs",
                exc.__class__.__name__, attempt, attempts, sleep_for,
            )
            sleep(sleep_for)
            continue
        if attempt >= attempts or not is_transient(response):
            return response
        hint = response.headers.get("Retry-After", "") if response.headers else ""
        sleep_for = _compute_sleep(attempt, cfg, hint)
        logger.warning(
            "[retry] status %d, attempt %d/%d, sleeping %.2fs",
            response.status_code, attempt, attempts, sleep_for,
        )
        sleep(sleep_for)
    raise RuntimeError("retry logic exited unexpectedly")  # pragma: no cover


__all__ = ["RetryConfig", "run_with_retries", "is_transient", "TRANSIENT_STATUSES"]
