"""
Wire models for the search tool's JSON lines output.

These mirror the payload of a ripgrep ``match`` record closely enough to
validate it; unknown keys are ignored so newer tool versions keep working.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class RgText(BaseModel):
    """A text-or-bytes field. Non UTF-8 data arrives base64 encoded in ``bytes``."""

    model_config = ConfigDict(extra='ignore')

    text: Optional[str] = None
    bytes: Optional[str] = None


class RgSubmatch(BaseModel):
    """Byte span of one submatch within the matched line."""

    model_config = ConfigDict(extra='ignore')

    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)
    match: Optional[RgText] = None


class RgMatchData(BaseModel):
    """Payload of a ``match`` record."""

    model_config = ConfigDict(extra='ignore')

    path: RgText
    lines: RgText
    line_number: Optional[int] = None
    absolute_offset: Optional[int] = None
    submatches: List[RgSubmatch] = Field(default_factory=list)


class RgFileData(BaseModel):
    """Payload of a ``begin`` or ``end`` record."""

    model_config = ConfigDict(extra='ignore')

    path: Optional[RgText] = None
