"""
Shared fixtures for searchscope tests.

Provides a recording presentation sink and a fake search tool: a small
Python script that prints ripgrep-style JSON lines and exits with the code
ripgrep would use for the given query. With --files it lists three files
under every directory argument instead.
"""

import stat
import sys
from pathlib import Path
from typing import List, Optional

import pytest

from searchscope.models.search_results import AppState


FAKE_TOOL_SOURCE = '''
import json
import os
import sys
import time

if "--files" in sys.argv:
    roots = [arg for arg in sys.argv[1:] if os.path.isdir(arg)]
    for root in roots:
        for name in ("src/app.py", "src/models/user.py", "README.md"):
            sys.stdout.write(os.path.join(root, name) + "\\n")
    sys.exit(0)

query = sys.argv[1] if len(sys.argv) > 1 else ""

if query.startswith("slow"):
    time.sleep(3)

if query == "zzzNoSuchTerm":
    sys.exit(1)

if query == "boom":
    sys.stderr.write("rg: regex parse error\\n")
    sys.exit(2)

if query == "badflag":
    sys.stderr.write("error: unrecognized flag --bogus\\n")
    sys.exit(2)

if query == "crash":
    sys.exit(3)

def emit(record):
    sys.stdout.write(json.dumps(record) + "\\n")
    sys.stdout.flush()

path = {"text": "src/" + query + ".py"}
emit({"type": "begin", "data": {"path": path}})
sys.stdout.write("this line is not json\\n")
for line_number, start in ((3, 4), (10, 8)):
    text = " " * start + query + "()\\n"
    emit({
        "type": "match",
        "data": {
            "path": path,
            "lines": {"text": text},
            "line_number": line_number,
            "absolute_offset": 100 * line_number,
            "submatches": [{"match": {"text": query}, "start": start, "end": start + len(query)}],
        },
    })
emit({"type": "end", "data": {"path": path}})
emit({"type": "summary", "data": {}})
'''


class RecordingSink:
    """Presentation sink that records every call for assertions."""

    def __init__(self):
        self.snapshots: List[tuple] = []
        self.busy_updates: List[bool] = []
        self.states: List[AppState] = []
        self.titles: List[Optional[str]] = []
        self.errors: List[str] = []
        self.origin_shown = 0

    def show_results(self, results):
        self.snapshots.append(tuple(results))

    def set_busy(self, busy):
        self.busy_updates.append(busy)

    def set_state(self, state):
        self.states.append(state)

    def set_title(self, title):
        self.titles.append(title)

    def show_origin_document(self):
        self.origin_shown += 1

    def notify_error(self, message):
        self.errors.append(message)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def fake_tool(tmp_path: Path) -> str:
    """Path to an executable fake search tool."""
    if sys.platform == 'win32':
        pytest.skip("fake search tool relies on a POSIX shebang")

    script = tmp_path / 'fake-rg'
    script.write_text(f"#!{sys.executable}\n{FAKE_TOOL_SOURCE}", encoding='utf-8')
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)

