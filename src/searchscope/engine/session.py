"""
Search session orchestration for searchscope.

A SearchSession ties the components together for one picker invocation:
each keystroke cancels running searches, builds a new request, and spawns
the search tool. Output from every process flows through a single event
queue into one aggregation thread, tagged with the generation of the
request that produced it, so only the newest search can change the results.
"""

import queue
import threading
from functools import partial
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple, Union
import logging

from ..exceptions import ProcessSpawnFailure, ToolNotFound
from ..config.parser import load_config
from ..models.config import MenuAction, SearchConfig
from ..models.search_request import SearchMode, SearchRequest
from ..models.search_results import AppState, EventKind, MatchRecord
from ..tools.command_builder import CommandBuilder
from ..tools.file_list import (
    FILE_SEARCH_TITLE,
    FILES_FLAG,
    FileListParser,
    parse_file_query,
    strip_files_flag,
)
from ..tools.path_resolver import PathResolver
from ..tools.process_supervisor import ProcessSupervisor
from ..tools.query_flags import describe_query_flags, extract_query_flags
from ..tools.stream_parser import StreamParser
from .aggregator import EXIT_NOT_FOUND, ResultAggregator
from .sink import LoggingSink, PresentationSink


logger = logging.getLogger(__name__)

_STOP = 'stop'

CURRENT_FILE_TITLE = 'Search current file only'


class SearchSession:
    """
    One interactive search session.

    Exposes ``start_search`` for every input change, ``cancel_active_searches``,
    and read accessors for the current results and state.
    """

    def __init__(self,
                 config: Optional[SearchConfig] = None,
                 sink: Optional[PresentationSink] = None,
                 resolver: Optional[PathResolver] = None,
                 supervisor: Optional[ProcessSupervisor] = None,
                 builder: Optional[CommandBuilder] = None,
                 current_file: Optional[str] = None,
                 injected_flags: Optional[Sequence[str]] = None):
        """
        Initialize the session and resolve the search tool.

        Args:
            config: Search configuration (defaults are used if omitted)
            sink: Receiver for results and state changes
            resolver: Search tool locator
            supervisor: Process supervisor
            builder: Command builder
            current_file: Restrict searches to this file
            injected_flags: Flags the session was opened with; ``--files``
                starts it in file search mode

        Raises:
            ToolNotFound: If the search tool cannot be located
        """
        self.config = config or SearchConfig()
        self.sink = sink or LoggingSink()
        self.resolver = resolver or PathResolver()
        self.supervisor = supervisor or ProcessSupervisor(kill_grace_seconds=self.config.kill_grace_seconds)
        self.builder = builder or CommandBuilder()
        self.aggregator = ResultAggregator(
            self.sink,
            retain_on_no_results=self.config.show_previous_results_when_no_matches,
        )

        self._session_lock = threading.RLock()
        self._generation = 0
        self._events: "queue.Queue[Tuple[str, int, Any]]" = queue.Queue()
        self._parsers = {}
        self._worker: Optional[threading.Thread] = None

        self.reset(current_file=current_file, injected_flags=injected_flags)

    @classmethod
    def from_config_file(cls, config_path: Optional[Union[str, Path]] = None,
                         **kwargs) -> 'SearchSession':
        """
        Create a session from a YAML configuration file.

        Args:
            config_path: Configuration file; discovered in the usual places if omitted
            **kwargs: Passed through to the constructor

        Raises:
            ConfigurationError: If the configuration cannot be loaded
            ToolNotFound: If the search tool cannot be located
        """
        result = load_config(config_path)
        for warning in result.warnings:
            logger.warning(f"Configuration: {warning}")
        return cls(config=result.config, **kwargs)

    def reset(self, current_file: Optional[str] = None,
              injected_flags: Optional[Sequence[str]] = None) -> None:
        """
        Reinitialize every per-invocation field at once.

        Running searches are cancelled, the query, menu selection and results
        are cleared, and the search tool path is resolved again.

        Raises:
            ToolNotFound: If the search tool cannot be located
        """
        with self._session_lock:
            self.supervisor.kill_all()
            tool_path = self._resolve_tool_path()

            self.tool_path = tool_path
            self.query = ''
            self.menu_flags: List[str] = []
            self.current_file = current_file
            self.injected_flags = list(injected_flags or [])
            self._files_mode = FILES_FLAG in self.injected_flags and not current_file
            self.last_request: Optional[SearchRequest] = None
            self.aggregator.reset()
            self._ensure_worker()

        if self.search_mode == SearchMode.CURRENT_FILE:
            self.sink.set_title(CURRENT_FILE_TITLE)
        elif self.search_mode == SearchMode.FILES:
            self.sink.set_title(FILE_SEARCH_TITLE)

        logger.info(f"Search session ready (tool: {self.tool_path}, mode: {self.search_mode.value})")

    def _resolve_tool_path(self) -> str:
        try:
            return self.resolver.resolve(self.config.rg_path)
        except ToolNotFound as e:
            self.sink.notify_error(str(e))
            raise

    def _ensure_worker(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._worker = threading.Thread(target=self._run, name="searchscope-aggregator", daemon=True)
        self._worker.start()

    @property
    def state(self) -> AppState:
        return self.aggregator.state

    @property
    def busy(self) -> bool:
        return self.aggregator.busy

    @property
    def results(self) -> Tuple[MatchRecord, ...]:
        return self.aggregator.results

    @property
    def displayed_results(self) -> Tuple[MatchRecord, ...]:
        return self.aggregator.displayed_results

    @property
    def search_mode(self) -> SearchMode:
        if self._files_mode:
            return SearchMode.FILES
        if self.current_file:
            return SearchMode.CURRENT_FILE
        return SearchMode.ALL

    @property
    def menu_actions(self) -> List[MenuAction]:
        return self.config.rg_menu_actions

    def select_menu_actions(self, values: Sequence[str], custom: Optional[str] = None) -> List[str]:
        """
        Set the preset flags used by following searches.

        Args:
            values: Selected menu action values
            custom: Free-text flags used when nothing was selected

        Returns:
            The flags now in effect
        """
        flags = [value for value in values if value]
        if not flags and custom and custom.strip():
            flags = [custom.strip()]

        with self._session_lock:
            self.menu_flags = flags
        return list(flags)

    def start_search(self, raw_query: str) -> Optional[SearchRequest]:
        """
        Cancel running searches and start one for the given input.

        Never raises: failures are logged and reported to the sink.

        Args:
            raw_query: The query exactly as typed

        Returns:
            The request that was started, or None if nothing was spawned
        """
        try:
            with self._session_lock:
                return self._start_search(raw_query)
        except Exception as e:
            logger.error(f"Failed to start search for '{raw_query}': {e}")
            self.sink.notify_error(f"Search failed: {e}")
            return None

    def _start_search(self, raw_query: str) -> Optional[SearchRequest]:
        self.supervisor.kill_all()
        self._generation += 1

        if not raw_query:
            self.query = ''
            self.aggregator.clear(self._generation)
            return None

        query_text = self._update_search_mode(raw_query)
        mode = self.search_mode
        extraction = extract_query_flags(query_text, self.config.rg_query_params)

        file_query = parse_file_query(extraction.query) if mode == SearchMode.FILES else None
        request = SearchRequest(
            raw_query=raw_query,
            query=extraction.query,
            extra_flags=extraction.extra_flags,
            menu_flags=self.menu_flags,
            additional_paths=self.config.add_src_paths,
            exclude_globs=self.config.rg_glob_excludes,
            generation=self._generation,
            current_file=self.current_file,
            mode=mode,
            line_hint=file_query.line if file_query else 1,
            column_hint=file_query.column if file_query else 1,
        )
        self.query = request.query
        self.last_request = request

        if self.config.rg_query_params_show_title and mode != SearchMode.FILES:
            self.sink.set_title(describe_query_flags(request.query, request.extra_flags))

        invocation = self.builder.build(request, self.tool_path, self.config.rg_options, self.config.roots)
        logger.info(f"Search command: {invocation}")

        generation = request.generation
        self._parsers[generation] = self._new_parser(request)
        self.aggregator.start_search(generation)
        try:
            self.supervisor.spawn(
                invocation,
                on_stdout=partial(self._enqueue, 'stdout', generation),
                on_stderr=partial(self._enqueue, 'stderr', generation),
                on_exit=partial(self._enqueue, 'exit', generation),
                generation=generation,
            )
        except ProcessSpawnFailure as e:
            logger.error(str(e))
            self._enqueue('exit', generation, EXIT_NOT_FOUND)

        return request

    def _update_search_mode(self, raw_query: str) -> str:
        """Switch file search mode on or off from the typed query and strip the flag."""
        query_text, has_files_flag = strip_files_flag(raw_query)
        if has_files_flag and not self._files_mode:
            self._files_mode = True
            self.sink.set_title(FILE_SEARCH_TITLE)
            logger.debug("Switched to file search mode")
        elif not has_files_flag and self._files_mode and FILES_FLAG not in self.injected_flags:
            self._files_mode = False
            self.sink.set_title(CURRENT_FILE_TITLE if self.current_file else None)
            logger.debug("Left file search mode")
        return query_text

    def _new_parser(self, request: SearchRequest):
        if request.mode != SearchMode.FILES:
            return StreamParser()

        file_query = parse_file_query(request.query)
        strip_prefix = self.config.roots[0] if self.config.roots else None
        return FileListParser(file_query, strip_prefix=strip_prefix)

    def cancel_active_searches(self) -> None:
        """Kill every running search and leave the SEARCHING state."""
        with self._session_lock:
            self.supervisor.kill_all()
            if self.aggregator.state == AppState.SEARCHING:
                self.aggregator.close()

    def close(self, timeout: float = 1.0) -> None:
        """Tear the session down: kill processes and stop the aggregation thread."""
        with self._session_lock:
            self.supervisor.kill_all()
            self.aggregator.close()
            worker, self._worker = self._worker, None

        if worker is not None:
            self._events.put((_STOP, 0, None))
            worker.join(timeout)
        logger.info("Search session closed")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the current search has settled (for tests and scripts)."""
        return self.aggregator.wait(timeout)

    def __enter__(self) -> 'SearchSession':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _enqueue(self, kind: str, generation: int, payload: Any) -> None:
        self._events.put((kind, generation, payload))

    def _run(self) -> None:
        while True:
            kind, generation, payload = self._events.get()
            if kind == _STOP:
                return
            try:
                self._dispatch(kind, generation, payload)
            except Exception as e:
                logger.error(f"Error handling {kind} event for generation {generation}: {e}")

    def _dispatch(self, kind: str, generation: int, payload: Any) -> None:
        current = generation == self.aggregator.generation

        if kind == 'stdout':
            if not current:
                self._parsers.pop(generation, None)
                return
            parser = self._parsers.get(generation)
            if parser is None:
                return
            self._consume(parser.feed(payload), generation)

        elif kind == 'stderr':
            self.aggregator.on_stderr(payload.decode('utf-8', errors='replace'), generation)

        elif kind == 'exit':
            parser = self._parsers.pop(generation, None)
            if parser is not None and current:
                self._consume(parser.flush(), generation)
                logger.debug(f"Parser stats for generation {generation}: {parser.get_stats()}")
            self.aggregator.on_process_exit(payload, generation)

    def _consume(self, events, generation: int) -> None:
        for event in events:
            if event.is_match:
                self.aggregator.on_match(event.record, generation)
            elif event.kind == EventKind.BEGIN:
                logger.debug(f"Scanning {event.path}")
