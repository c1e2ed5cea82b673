from __future__ import annotations

import logging
import re

from .models import ChildReference

ISSUES_HEADING = '## Issues'

_NEXT_SECTION_RE = re.compile(r'^## ', re.MULTILINE)

logger = logging.getLogger(__name__)


def find_issues_section(description: str) -> str:
    """Return the text between ``## Issues`` and the next level-2 heading.

    Empty string when the description has no ``## Issues`` heading.
    """
    if not description:
        return ''
    idx = description.find(ISSUES_HEADING)
    if idx == -1:
        return ''
    tail = description[idx + len(ISSUES_HEADING):]
    m = _NEXT_SECTION_RE.search(tail)
    return tail[: m.start()] if m else tail


def _reference_pattern(domain: str) -> re.Pattern[str]:
    return re.compile(
        rf'https://{re.escape(domain)}/([^/\s]+/[^/\s]+)/issues/(\d+)'
    )


def find_child_references(description: str, domain: str) -> list[ChildReference]:
    """Issue links listed under ``## Issues``, in textual order.

    Only links on ``domain`` are returned; duplicates are kept.
    """
    section = find_issues_section(description)
    if not section:
        return []
    refs: list[ChildReference] = []
    for m in _reference_pattern(domain).finditer(section):
        try:
            number = int(m.group(2))
        except ValueError:
            continue
        refs.append(ChildReference(repository=m.group(1), number=number))
    logger.debug('parsed %d child references', len(refs))
    return refs


__all__ = ["ISSUES_HEADING", "find_issues_section", "find_child_references"]
