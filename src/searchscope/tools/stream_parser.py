"""
Incremental parser for the search tool's JSON lines output.

Output arrives in arbitrary chunks, so the parser buffers partial lines
between calls. Each complete line is decoded on its own; lines that fail to
decode are dropped, since interleaved or truncated output is expected when
searches are cancelled.
"""

import json
from typing import Any, Dict, Iterator, Optional
import logging

from pydantic import ValidationError

from ..exceptions import MalformedOutput
from ..models.rg_output import RgFileData, RgMatchData
from ..models.search_results import EventKind, MatchRecord, ParsedEvent


logger = logging.getLogger(__name__)


def column_from_offset(offset: int) -> int:
    """1-based column for streams that only report an absolute offset."""
    return 1 if offset == 0 else offset + 1


class StreamParser:
    """
    Decode one process's stdout into ParsedEvents.

    A parser instance belongs to a single process. Use ``reset`` (or a new
    instance) before reading another process's output.
    """

    def __init__(self, encoding: str = 'utf-8'):
        self.encoding = encoding
        self._buffer = b''
        self._stats = {
            'lines': 0,
            'matches': 0,
            'files_begun': 0,
            'files_ended': 0,
            'malformed': 0,
            'discarded': 0,
        }

    def feed(self, chunk: bytes) -> Iterator[ParsedEvent]:
        """
        Consume a chunk of output and yield events for every complete line.

        Args:
            chunk: Raw bytes read from the process

        Yields:
            ParsedEvent objects in the order the tool emitted them
        """
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split(b'\n')
        for line in lines:
            event = self._parse_line(line)
            if event is not None:
                yield event

    def flush(self) -> Iterator[ParsedEvent]:
        """Parse whatever is left in the buffer once the stream has ended."""
        remainder, self._buffer = self._buffer, b''
        if remainder.strip():
            event = self._parse_line(remainder)
            if event is not None:
                yield event

    def reset(self) -> None:
        """Discard buffered data and statistics."""
        self._buffer = b''
        for key in self._stats:
            self._stats[key] = 0

    def get_stats(self) -> Dict[str, int]:
        return self._stats.copy()

    def _parse_line(self, line: bytes) -> Optional[ParsedEvent]:
        line = line.strip()
        if not line:
            return None

        self._stats['lines'] += 1
        try:
            message = self._decode(line)
        except MalformedOutput as e:
            self._stats['malformed'] += 1
            logger.debug(f"Dropping malformed output line: {e}")
            return None

        kind = message.get('type')
        data = message.get('data')
        if not isinstance(data, dict):
            data = {}

        if kind == EventKind.MATCH.value:
            return self._parse_match(message, data)
        if kind in (EventKind.BEGIN.value, EventKind.END.value):
            return self._parse_file_event(EventKind(kind), message, data)
        if kind == EventKind.SUMMARY.value:
            return ParsedEvent(kind=EventKind.SUMMARY, raw=message)

        return None

    def _decode(self, line: bytes) -> Dict[str, Any]:
        try:
            message = json.loads(line.decode(self.encoding))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedOutput(str(e)) from e

        if not isinstance(message, dict):
            raise MalformedOutput(f"Expected a JSON object, got {type(message).__name__}")
        return message

    def _parse_file_event(self, kind: EventKind, message: Dict[str, Any],
                          data: Dict[str, Any]) -> ParsedEvent:
        if kind == EventKind.BEGIN:
            self._stats['files_begun'] += 1
        else:
            self._stats['files_ended'] += 1

        path = None
        try:
            file_data = RgFileData.model_validate(data)
            if file_data.path is not None:
                path = file_data.path.text
        except ValidationError:
            pass

        return ParsedEvent(kind=kind, path=path, raw=message)

    def _parse_match(self, message: Dict[str, Any], data: Dict[str, Any]) -> Optional[ParsedEvent]:
        record = self.to_match_record(message, data)
        if record is None:
            self._stats['discarded'] += 1
            return None

        self._stats['matches'] += 1
        return ParsedEvent(kind=EventKind.MATCH, path=record.file_path, record=record, raw=message)

    @staticmethod
    def to_match_record(message: Dict[str, Any], data: Dict[str, Any]) -> Optional[MatchRecord]:
        """
        Build a MatchRecord from a match payload.

        Returns:
            The record, or None if path, line, column or text is missing
        """
        try:
            match_data = RgMatchData.model_validate(data)
        except ValidationError:
            return None

        file_path = match_data.path.text
        text = match_data.lines.text
        line_number = match_data.line_number

        if match_data.submatches:
            column = match_data.submatches[0].start + 1
        elif match_data.absolute_offset is not None:
            column = column_from_offset(match_data.absolute_offset)
        else:
            column = None

        if not file_path or text is None or line_number is None or line_number < 1 or column is None:
            return None

        return MatchRecord(
            file_path=file_path,
            line=line_number,
            column=column,
            text=text,
            raw_event=message,
        )
