"""
Search request data model for searchscope.

A SearchRequest captures everything needed to run one invocation of the
search tool. A new request is built for every keystroke-triggered search.
"""

from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


class SearchMode(Enum):
    """What a search looks for."""
    ALL = "all"
    FILES = "files"
    CURRENT_FILE = "current_file"


class SearchRequest(BaseModel):
    """
    Immutable description of one search invocation.

    Attributes:
        raw_query: Text exactly as typed by the user
        query: Residual search term after query flag extraction
        extra_flags: Flags extracted from the query text
        menu_flags: Flags from the user-selected menu presets
        additional_paths: Extra paths searched besides the roots
        exclude_globs: Glob patterns excluded from the search
        generation: Monotonic sequence number, newer requests win
        current_file: Restrict the search to this single file
        mode: Content search or file name search
        line_hint: Line to open file results at (file search only)
        column_hint: Column to open file results at (file search only)
    """

    model_config = ConfigDict(frozen=True)

    raw_query: str = Field(..., description="Query text as typed")
    query: str = Field(..., description="Residual search term")
    extra_flags: List[str] = Field(default_factory=list, description="Flags extracted from the query")
    menu_flags: List[str] = Field(default_factory=list, description="Menu preset flags")
    additional_paths: List[str] = Field(default_factory=list, description="Additional search paths")
    exclude_globs: List[str] = Field(default_factory=list, description="Excluded glob patterns")
    generation: int = Field(..., ge=1, description="Request sequence number")
    current_file: Optional[str] = Field(None, description="Single file to search")
    mode: SearchMode = Field(SearchMode.ALL, description="Search mode")
    line_hint: int = Field(1, ge=1, description="Line for file results")
    column_hint: int = Field(1, ge=1, description="Column for file results")

    @field_validator('additional_paths', 'exclude_globs')
    @classmethod
    def validate_unique(cls, v: List[str]) -> List[str]:
        """These behave as sets; keep the first occurrence of each entry."""
        return list(dict.fromkeys(v))

    def __str__(self) -> str:
        parts = [f"Query: '{self.query}'"]
        parts.append(f"Generation: {self.generation}")

        if self.mode != SearchMode.ALL:
            parts.append(f"Mode: {self.mode.value}")

        if self.extra_flags:
            parts.append(f"Extra flags: {' '.join(self.extra_flags)}")

        if self.current_file:
            parts.append(f"File: {self.current_file}")

        return " | ".join(parts)
