"""
Query flag extraction for searchscope.

Users can configure rules that recognise a trailing pattern in the typed
query (for example ``foo -t py``) and turn it into extra tool flags. The
functions here are pure: no I/O and no shared state.
"""

import re
from typing import List, NamedTuple, Optional, Sequence
import logging

from ..models.config import QueryParamRule


logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r'\$(\d+)')


class QueryFlagExtraction(NamedTuple):
    """Residual query text and the flags pulled out of it."""
    query: str
    extra_flags: List[str]


def _substitute(template: str, groups: Sequence[Optional[str]]) -> str:
    # $1 maps to capture group 2, $2 to group 3, ...
    def replace(match: re.Match) -> str:
        index = int(match.group(1))
        if 1 <= index < len(groups):
            return groups[index] or ''
        return match.group(0)

    return _PLACEHOLDER.sub(replace, template)


def extract_query_flags(raw_query: str, rules: Sequence[QueryParamRule]) -> QueryFlagExtraction:
    """
    Extract extra tool flags from a raw query.

    Every rule is matched against the original query. A rule only counts
    when its regex yields at least two capture groups. The residual query
    is group 1 of the first matching rule.

    Args:
        raw_query: Query text as typed by the user
        rules: Ordered extraction rules

    Returns:
        QueryFlagExtraction with the residual query and collected flags
    """
    query: Optional[str] = None
    extra_flags: List[str] = []

    for rule in rules:
        if not rule.is_complete():
            continue

        pattern = rule.compile()
        if pattern is None:
            logger.debug(f"Skipping query param rule with invalid regex: {rule.regex}")
            continue

        match = pattern.search(raw_query)
        if not match or pattern.groups < 2:
            continue

        # groups[0] is capture group 1
        groups = match.groups()
        extra_flags.append(_substitute(rule.param, groups))
        if query is None:
            query = groups[0] or ''

    return QueryFlagExtraction(query=raw_query if query is None else query, extra_flags=extra_flags)


def describe_query_flags(query: str, extra_flags: Sequence[str]) -> Optional[str]:
    """
    Title hint showing how a query expanded, e.g. ``rg 'hello' -t js``.

    Returns:
        The hint, or None when no flags were extracted
    """
    if not extra_flags:
        return None
    return f"rg '{query}' {' '.join(extra_flags)}"
