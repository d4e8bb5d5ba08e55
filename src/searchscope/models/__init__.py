"""
Data models for searchscope.

This module contains all the core data structures used throughout the system.
"""

from .config import SearchConfig, MenuAction, QueryParamRule
from .search_request import SearchMode, SearchRequest
from .search_results import AppState, EventKind, MatchRecord, NoResultsOutcome, ParsedEvent

__all__ = [
    'SearchConfig',
    'MenuAction',
    'QueryParamRule',
    'SearchMode',
    'SearchRequest',
    'AppState',
    'EventKind',
    'MatchRecord',
    'NoResultsOutcome',
    'ParsedEvent',
]
