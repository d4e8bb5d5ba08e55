"""
Unit tests for search request and result data models.
"""

import pytest
from pydantic import ValidationError

from searchscope.models.search_request import SearchRequest
from searchscope.models.search_results import (
    EventKind,
    MatchRecord,
    ParsedEvent,
    summarize_results
)


class TestMatchRecord:
    """Test cases for MatchRecord."""

    def test_text_is_trimmed(self):
        record = MatchRecord(file_path="a.py", line=3, column=5, text="    getUserById()\n")

        assert record.text == "getUserById()"
        assert record.location == "a.py:3:5"
        assert str(record) == "a.py:3:5 getUserById()"

    @pytest.mark.parametrize("field,value", [("line", 0), ("column", 0), ("file_path", "")])
    def test_invalid_fields(self, field, value):
        data = {"file_path": "a.py", "line": 1, "column": 1, "text": "x"}
        data[field] = value

        with pytest.raises(ValidationError):
            MatchRecord(**data)

    def test_records_are_immutable(self):
        record = MatchRecord(file_path="a.py", line=1, column=1, text="x")

        with pytest.raises(ValidationError):
            record.line = 2


class TestParsedEvent:
    """Test cases for ParsedEvent."""

    def test_is_match(self):
        record = MatchRecord(file_path="a.py", line=1, column=1, text="x")

        assert ParsedEvent(kind=EventKind.MATCH, record=record).is_match
        assert not ParsedEvent(kind=EventKind.MATCH).is_match
        assert not ParsedEvent(kind=EventKind.BEGIN, path="a.py").is_match


class TestSearchRequest:
    """Test cases for SearchRequest."""

    def test_paths_and_globs_deduplicated(self):
        request = SearchRequest(
            raw_query="foo",
            query="foo",
            additional_paths=["/a", "/b", "/a"],
            exclude_globs=["*.min.js", "*.min.js"],
            generation=1,
        )

        assert request.additional_paths == ["/a", "/b"]
        assert request.exclude_globs == ["*.min.js"]

    def test_generation_must_be_positive(self):
        with pytest.raises(ValidationError):
            SearchRequest(raw_query="foo", query="foo", generation=0)

    def test_str(self):
        request = SearchRequest(raw_query="foo -t js", query="foo", extra_flags=["-t js"],
                                generation=4, current_file="/tmp/x.py")
        text = str(request)

        assert "Query: 'foo'" in text
        assert "Generation: 4" in text
        assert "Extra flags: -t js" in text
        assert "File: /tmp/x.py" in text


def test_summarize_results():
    results = [
        MatchRecord(file_path="a.py", line=1, column=1, text="x"),
        MatchRecord(file_path="a.py", line=2, column=1, text="y"),
        MatchRecord(file_path="b.py", line=1, column=1, text="z"),
    ]

    assert summarize_results(results) == {'total_matches': 3, 'total_files': 2}
    assert summarize_results([]) == {'total_matches': 0, 'total_files': 0}
