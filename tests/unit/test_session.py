"""
Scenario tests for SearchSession.

Searches run against a fake search tool (see conftest.py) that prints
ripgrep-style JSON and uses ripgrep's exit codes.
"""

import threading
import time
from unittest.mock import MagicMock

import pytest

from searchscope.engine.session import SearchSession
from searchscope.exceptions import ToolNotFound
from searchscope.models.config import MenuAction, QueryParamRule, SearchConfig
from searchscope.models.search_request import SearchMode
from searchscope.models.search_results import AppState, NoResultsOutcome
from searchscope.tools.file_list import FILE_SEARCH_TITLE


def resolver_for(path: str) -> MagicMock:
    resolver = MagicMock()
    resolver.resolve.return_value = path
    return resolver


class TestSearchSession:
    """Test cases for the SearchSession class."""

    @pytest.fixture(autouse=True)
    def _session_factory(self, sink, fake_tool, tmp_path):
        self.sink = sink
        self.fake_tool = fake_tool
        self.root = str(tmp_path)
        self.sessions = []
        yield
        for session in self.sessions:
            session.close()

    def make_session(self, tool_path=None, **config_overrides) -> SearchSession:
        config_data = {'roots': [self.root], 'kill_grace_seconds': 1.0}
        config_data.update(config_overrides)
        session = SearchSession(
            config=SearchConfig(**config_data),
            sink=self.sink,
            resolver=resolver_for(tool_path or self.fake_tool),
        )
        self.sessions.append(session)
        return session

    def test_two_matches_success(self):
        """Test a plain query that matches twice and exits 0."""
        session = self.make_session()
        request = session.start_search("getUserById")

        assert request is not None
        assert session.wait(10)
        assert len(session.results) == 2
        assert [r.line for r in session.results] == [3, 10]
        assert [r.column for r in session.results] == [5, 9]
        assert all(r.text == "getUserById()" for r in session.results)
        assert session.displayed_results == session.results
        assert session.state == AppState.FINISHED
        assert not session.busy

    def test_no_matches_clears_results(self):
        """Test that exit code 1 falls back to the pre-search view."""
        session = self.make_session()
        session.start_search("getUserById")
        assert session.wait(10)

        session.start_search("zzzNoSuchTerm")
        assert session.wait(10)

        assert session.results == ()
        assert session.displayed_results == ()
        assert session.aggregator.last_outcome == NoResultsOutcome.CLEARED
        assert self.sink.origin_shown == 1
        assert session.state == AppState.FINISHED

    def test_no_matches_retains_previous_results(self):
        session = self.make_session(show_previous_results_when_no_matches=True)
        session.start_search("getUserById")
        assert session.wait(10)
        previous = session.displayed_results

        session.start_search("zzzNoSuchTerm")
        assert session.wait(10)

        assert session.displayed_results == previous
        assert session.aggregator.last_outcome == NoResultsOutcome.RETAINED
        assert self.sink.origin_shown == 0

    def test_superseded_search_never_contributes(self):
        """Test that a slow search fired before a fast one leaves no trace."""
        session = self.make_session()
        session.start_search("slowsearch")
        slow_process = session.supervisor.processes[0]

        session.start_search("fastsearch")
        assert session.wait(10)

        assert slow_process.killed
        assert len(session.results) == 2
        assert all("fastsearch" in r.file_path for r in session.results)

        # Give the slow tool time to (not) emit, then sweep.
        time.sleep(0.2)
        session.cancel_active_searches()
        assert slow_process not in session.supervisor.processes
        assert all("fastsearch" in r.file_path for r in session.displayed_results)

    def test_exit_127_surfaces_tool_missing(self, tmp_path):
        """Test that a missing binary is reported, not silently empty."""
        session = self.make_session(tool_path=str(tmp_path / "no-such-rg"))
        session.start_search("anything")

        assert session.wait(10)
        assert any("rg_path" in error for error in self.sink.errors)
        assert session.displayed_results == ()
        assert session.state == AppState.FINISHED

    def test_search_error_applies_no_results_policy(self):
        session = self.make_session()
        session.start_search("boom")

        assert session.wait(10)
        assert session.aggregator.last_outcome == NoResultsOutcome.CLEARED
        assert self.sink.errors == []

    def test_unrecognized_flag_title(self):
        session = self.make_session()
        session.start_search("badflag")

        assert session.wait(10)
        assert any(title and "unrecognized" in title for title in self.sink.titles)

    def test_unknown_exit_notifies(self):
        session = self.make_session()
        session.start_search("crash")

        assert session.wait(10)
        assert any("3" in error for error in self.sink.errors)

    def test_query_params_and_title(self):
        """Test that extracted flags reach the command and the title hint."""
        session = self.make_session(
            rg_query_params=[QueryParamRule(regex=r"^(.+) -t (\w+)$", param="-t $1")],
        )
        request = session.start_search("hello -t js")

        assert request.query == "hello"
        assert request.extra_flags == ["-t js"]
        assert session.query == "hello"
        assert "rg 'hello' -t js" in self.sink.titles
        assert session.wait(10)
        assert all("hello" in r.file_path for r in session.results)

    def test_menu_actions(self):
        session = self.make_session(rg_menu_actions=[MenuAction(label="Hidden", value="--hidden")])

        assert session.select_menu_actions(["--hidden"]) == ["--hidden"]
        request = session.start_search("needle")
        assert request.menu_flags == ["--hidden"]

        assert session.select_menu_actions([], custom=" -uu ") == ["-uu"]
        assert session.menu_actions[0].display_label == "Hidden"

    def test_generations_increase(self):
        session = self.make_session()
        first = session.start_search("one")
        second = session.start_search("two")

        assert second.generation > first.generation

    def test_empty_query_clears_without_spawning(self):
        session = self.make_session()
        session.start_search("getUserById")
        assert session.wait(10)

        assert session.start_search("") is None
        assert session.displayed_results == ()
        assert session.supervisor.processes == []

    def test_clearing_query_drops_output_of_cancelled_search(self):
        """Test that output already queued by a cancelled search never reappears."""
        session = self.make_session()
        release = threading.Event()
        dispatch = session._dispatch

        def held_dispatch(*args):
            release.wait(10)
            dispatch(*args)

        session._dispatch = held_dispatch
        session.start_search("getUserById")
        session.supervisor.processes[0].join(10)

        session.start_search("")
        release.set()
        session.close(timeout=10)

        assert session.results == ()
        assert session.displayed_results == ()
        assert self.sink.snapshots[-1] == ()
        assert session.aggregator.generation == 2

    def test_cancel_active_searches(self):
        session = self.make_session()
        session.start_search("slowsearch")
        session.cancel_active_searches()

        assert session.state == AppState.FINISHED
        assert not session.busy
        assert session.results == ()

    def test_reset_reinitializes_fields(self):
        session = self.make_session()
        session.select_menu_actions(["--hidden"])
        session.start_search("getUserById")
        assert session.wait(10)

        session.reset(current_file="/tmp/one.py")

        assert session.state == AppState.IDLE
        assert session.menu_flags == []
        assert session.query == ''
        assert session.results == ()
        assert session.current_file == "/tmp/one.py"

    def test_tool_not_found_propagates(self):
        """Test that a missing tool fails session creation and is reported."""
        resolver = MagicMock()
        resolver.resolve.side_effect = ToolNotFound("Search tool (ripgrep) not found.", hint="Install it.")

        with pytest.raises(ToolNotFound):
            SearchSession(config=SearchConfig(), sink=self.sink, resolver=resolver)

        assert self.sink.errors == ["Search tool (ripgrep) not found. Install it."]

    def test_context_manager_closes(self):
        with SearchSession(config=SearchConfig(roots=[self.root]), sink=self.sink,
                           resolver=resolver_for(self.fake_tool)) as session:
            session.start_search("slowsearch")

        assert session.state == AppState.FINISHED
        assert session.supervisor.processes == [] or all(p.killed for p in session.supervisor.processes)


class TestFileSearchMode:
    """Test cases for file name search through SearchSession."""

    @pytest.fixture(autouse=True)
    def _session_factory(self, sink, fake_tool, tmp_path):
        self.sink = sink
        self.fake_tool = fake_tool
        self.root = str(tmp_path)
        self.sessions = []
        yield
        for session in self.sessions:
            session.close()

    def make_session(self, **kwargs) -> SearchSession:
        config = SearchConfig(
            roots=[self.root],
            kill_grace_seconds=1.0,
            rg_query_params=[QueryParamRule(regex=r"^(.+) -t (\w+)$", param="-t $1")],
        )
        session = SearchSession(config=config, sink=self.sink,
                                resolver=resolver_for(self.fake_tool), **kwargs)
        self.sessions.append(session)
        return session

    def test_files_flag_in_query(self):
        """Test that --files lists matching files opened at the typed position."""
        session = self.make_session()
        request = session.start_search("--files user:10:4")

        assert request.mode == SearchMode.FILES
        assert request.query == "user:10:4"
        assert session.search_mode == SearchMode.FILES
        assert FILE_SEARCH_TITLE in self.sink.titles
        assert session.wait(10)

        assert len(session.results) == 1
        record = session.results[0]
        assert record.file_path.endswith("user.py")
        assert record.text == "src/models/user.py"
        assert (record.line, record.column) == (10, 4)

    def test_leaving_file_search_mode(self):
        session = self.make_session()
        session.start_search("--files app")
        assert session.wait(10)

        request = session.start_search("getUserById")

        assert request.mode == SearchMode.ALL
        assert session.search_mode == SearchMode.ALL
        assert session.wait(10)
        assert len(session.results) == 2
        assert all(r.file_path == "src/getUserById.py" for r in session.results)

    def test_injected_files_flag_keeps_mode(self):
        """Test that a session opened with --files stays in file search mode."""
        session = self.make_session(injected_flags=["--files"])

        assert session.search_mode == SearchMode.FILES
        assert self.sink.titles == [FILE_SEARCH_TITLE]

        request = session.start_search("app")
        assert request.mode == SearchMode.FILES
        assert session.wait(10)
        assert [r.text for r in session.results] == ["src/app.py"]

    def test_no_query_flag_title_in_file_mode(self):
        session = self.make_session(injected_flags=["--files"])
        request = session.start_search("user -t py")

        assert request.extra_flags == ["-t py"]
        assert not any(title and title.startswith("rg '") for title in self.sink.titles)

    def test_unmatched_file_query_clears_results(self):
        session = self.make_session(injected_flags=["--files"])
        session.start_search("zzzz")

        assert session.wait(10)
        assert session.results == ()
        assert session.aggregator.last_outcome == NoResultsOutcome.CLEARED

    def test_current_file_session_title(self):
        session = self.make_session(current_file="/tmp/one.py", injected_flags=["--files"])

        assert session.search_mode == SearchMode.CURRENT_FILE
        assert self.sink.titles == ["Search current file only"]


def test_session_from_config_file(tmp_path, sink, fake_tool):
    """Test that a session can be built from a YAML configuration file."""
    config_file = tmp_path / 'searchscope.yaml'
    config_file.write_text(
        f"roots:\n  - {tmp_path}\nshow_previous_results_when_no_matches: true\n",
        encoding='utf-8',
    )

    session = SearchSession.from_config_file(config_file, sink=sink, resolver=resolver_for(fake_tool))
    try:
        assert session.config.roots == [str(tmp_path)]
        assert session.aggregator.retain_on_no_results is True
        assert session.tool_path == fake_tool
    finally:
        session.close()
