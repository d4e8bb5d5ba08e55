"""
File name search support for searchscope.

In file search mode the tool lists candidate files (``rg --files``) instead
of searching contents. Each output line is a path; paths are filtered
against the query with a case-insensitive fuzzy match and turned into
records that open at the line and column given in the query, e.g.
``user.py:10:4``.
"""

import re
from typing import Dict, Iterator, NamedTuple, Optional, Tuple
import logging

from ..models.search_results import EventKind, MatchRecord, ParsedEvent


logger = logging.getLogger(__name__)

FILES_FLAG = '--files'

FILE_SEARCH_FLAGS = (
    '--line-number',
    '--column',
    '--no-heading',
    '--with-filename',
    '--color=never',
    FILES_FLAG,
    '--follow',
    '--no-ignore',
    '--hidden',
)

FILE_SEARCH_TITLE = 'File Search'

_CURSOR_POSITION = re.compile(r':(\d+)')


class FileQuery(NamedTuple):
    """Path fragment to match and the cursor position to open results at."""
    term: str
    line: int
    column: int


def strip_files_flag(raw_query: str) -> Tuple[str, bool]:
    """
    Remove the file search flag from a typed query.

    Returns:
        The cleaned query and whether the flag was present
    """
    if FILES_FLAG not in raw_query:
        return raw_query, False
    return raw_query.replace(FILES_FLAG, '', 1).strip(), True


def parse_file_query(query: str) -> FileQuery:
    """
    Split ``path:line:col`` into its parts.

    Missing or zero positions default to 1.
    """
    term = query.split(':', 1)[0].strip()
    positions = [int(p) for p in _CURSOR_POSITION.findall(query)]
    line = positions[0] if positions and positions[0] > 0 else 1
    column = positions[1] if len(positions) > 1 and positions[1] > 0 else 1
    return FileQuery(term=term, line=line, column=column)


def fuzzy_match(term: str, candidate: str) -> bool:
    """Case-insensitive subsequence match; an empty term matches everything."""
    if not term:
        return True

    remaining = iter(candidate.lower())
    return all(ch in remaining for ch in term.lower() if not ch.isspace())


class FileListParser:
    """
    Decode ``rg --files`` output into file records.

    Has the same feed/flush interface as StreamParser so the session can
    drive either one.
    """

    def __init__(self, file_query: FileQuery, strip_prefix: Optional[str] = None,
                 encoding: str = 'utf-8'):
        """
        Initialize the parser.

        Args:
            file_query: Parsed query (fuzzy term and cursor position)
            strip_prefix: Root directory removed from paths before matching and display
            encoding: Output encoding of the tool
        """
        self.file_query = file_query
        self.strip_prefix = strip_prefix.rstrip('/\\') if strip_prefix else None
        self.encoding = encoding
        self._buffer = b''
        self._stats = {'lines': 0, 'matches': 0, 'filtered': 0, 'malformed': 0}

    def feed(self, chunk: bytes) -> Iterator[ParsedEvent]:
        self._buffer += chunk
        *lines, self._buffer = self._buffer.split(b'\n')
        for line in lines:
            event = self._parse_line(line)
            if event is not None:
                yield event

    def flush(self) -> Iterator[ParsedEvent]:
        remainder, self._buffer = self._buffer, b''
        if remainder.strip():
            event = self._parse_line(remainder)
            if event is not None:
                yield event

    def reset(self) -> None:
        self._buffer = b''
        for key in self._stats:
            self._stats[key] = 0

    def get_stats(self) -> Dict[str, int]:
        return self._stats.copy()

    def display_path(self, path: str) -> str:
        """Path relative to the stripped root, as shown to the user."""
        if self.strip_prefix and path.startswith(self.strip_prefix):
            relative = path[len(self.strip_prefix):]
            if relative[:1] in ('/', '\\') and relative[1:]:
                return relative[1:]
        return path

    def _parse_line(self, line: bytes) -> Optional[ParsedEvent]:
        try:
            path = line.decode(self.encoding).strip()
        except UnicodeDecodeError as e:
            self._stats['malformed'] += 1
            logger.debug(f"Dropping undecodable file path: {e}")
            return None

        if not path:
            return None

        self._stats['lines'] += 1
        shown = self.display_path(path)
        if not fuzzy_match(self.file_query.term, shown):
            self._stats['filtered'] += 1
            return None

        self._stats['matches'] += 1
        record = MatchRecord(
            file_path=path,
            line=self.file_query.line,
            column=self.file_query.column,
            text=shown,
            raw_event={'type': 'file', 'path': path},
        )
        return ParsedEvent(kind=EventKind.MATCH, path=path, record=record, raw=record.raw_event)
