from __future__ import annotations

import logging
from collections.abc import Iterable

from .labels import resolve_ticket_key
from .models import Issue

logger = logging.getLogger(__name__)


def build_issue_to_ticket_map(issues: Iterable[Issue]) -> dict[int, str]:
    """Map GitHub issue numbers to JIRA ticket keys.

    Issues without a resolvable key are left out. Pass closed issues as well
    when they may be link targets.
    """
    out: dict[int, str] = {}
    for issue in issues:
        key, found = resolve_ticket_key(issue)
        if not found:
            continue
        out[issue.number] = key
        logger.debug('mapped github #%s to jira %s', issue.number, key)
    return out


__all__ = ["build_issue_to_ticket_map"]
