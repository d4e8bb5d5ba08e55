"""
Search results data models for searchscope.

This module defines the core data structures for representing search results,
including individual match records, parsed stream events, and the lifecycle
state of a search session.
"""

from typing import Dict, List, Optional, Any
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator


class AppState(Enum):
    """Lifecycle state of one search session."""
    IDLE = "idle"
    SEARCHING = "searching"
    FINISHED = "finished"


class EventKind(Enum):
    """Kinds of records emitted by the search tool in JSON mode."""
    BEGIN = "begin"
    MATCH = "match"
    END = "end"
    SUMMARY = "summary"


class NoResultsOutcome(Enum):
    """What happened to the displayed results when a search found nothing."""
    CLEARED = "cleared"
    RETAINED = "retained"


class MatchRecord(BaseModel):
    """
    One normalized search hit.

    Attributes:
        file_path: Path of the file containing the match, as reported by the tool
        line: 1-based line number
        column: 1-based column of the first submatch
        text: Matched line text with surrounding whitespace removed
        raw_event: The decoded tool record the match was built from
    """

    model_config = ConfigDict(frozen=True)

    file_path: str = Field(..., min_length=1, description="Path of the matched file")
    line: int = Field(..., ge=1, description="1-based line number")
    column: int = Field(..., ge=1, description="1-based column number")
    text: str = Field(..., description="Trimmed matched line text")
    raw_event: Dict[str, Any] = Field(default_factory=dict, description="Raw tool record")

    @field_validator('text')
    @classmethod
    def validate_text(cls, v: str) -> str:
        """Trim surrounding whitespace from the matched text."""
        return v.strip()

    @property
    def location(self) -> str:
        """Location string in the common ``path:line:column`` form."""
        return f"{self.file_path}:{self.line}:{self.column}"

    def __str__(self) -> str:
        return f"{self.location} {self.text}"


class ParsedEvent(BaseModel):
    """
    A single decoded record from the search tool's output stream.

    Only MATCH events carry a record; BEGIN and END carry the path of the
    file being scanned; SUMMARY carries nothing but the raw payload.
    """

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    path: Optional[str] = None
    record: Optional[MatchRecord] = None
    raw: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_match(self) -> bool:
        return self.kind == EventKind.MATCH and self.record is not None


def summarize_results(results: List[MatchRecord]) -> Dict[str, Any]:
    """
    Summarize a result snapshot for logging and display.

    Args:
        results: Match records to summarize

    Returns:
        Dictionary with total match and distinct file counts
    """
    files = {record.file_path for record in results}
    return {
        'total_matches': len(results),
        'total_files': len(files),
    }
