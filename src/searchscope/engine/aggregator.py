"""
Result aggregation and search state for searchscope.

The ResultAggregator is the only component that mutates the result set and
the AppState. It applies the exit-code policy when a search process ends and
ignores every event that does not belong to the current generation.
"""

import threading
from typing import List, Optional, Tuple
import logging

from ..exceptions import SearchToolError, UnknownExit
from ..models.search_results import AppState, MatchRecord, NoResultsOutcome, summarize_results
from .sink import LoggingSink, PresentationSink


logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_NO_MATCHES = 1
EXIT_SEARCH_ERROR = 2
EXIT_NOT_FOUND = 127

TOOL_MISSING_MESSAGE = (
    "Search tool could not be executed (exit code 127). Check that ripgrep is installed "
    "and that 'rg_path' points to an executable."
)


class ResultAggregator:
    """
    Own the ResultSet and the AppState machine.

    Mutations happen under an internal lock; calls into the presentation
    sink are made after the lock is released.
    """

    def __init__(self, sink: Optional[PresentationSink] = None, retain_on_no_results: bool = False):
        """
        Initialize the aggregator.

        Args:
            sink: Receiver of snapshots and state changes
            retain_on_no_results: Keep the displayed results when a search finds nothing
        """
        self.sink = sink or LoggingSink()
        self.retain_on_no_results = retain_on_no_results
        self._lock = threading.Lock()
        self._settled = threading.Event()
        self._init_state()

    def _init_state(self) -> None:
        self._state = AppState.IDLE
        self._generation = 0
        self._busy = False
        self._results: List[MatchRecord] = []
        self._displayed: Tuple[MatchRecord, ...] = ()
        self._last_outcome: Optional[NoResultsOutcome] = None
        self._settled.set()

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def results(self) -> Tuple[MatchRecord, ...]:
        """Read-only snapshot of the current search's results."""
        with self._lock:
            return tuple(self._results)

    @property
    def displayed_results(self) -> Tuple[MatchRecord, ...]:
        """The snapshot last published to the sink."""
        return self._displayed

    @property
    def last_outcome(self) -> Optional[NoResultsOutcome]:
        return self._last_outcome

    def reset(self) -> None:
        """Return to IDLE with no results, as at the start of a session."""
        with self._lock:
            self._init_state()

    def start_search(self, generation: int) -> None:
        """
        Begin collecting results for a new generation.

        Args:
            generation: Sequence number of the request being started
        """
        with self._lock:
            self._generation = generation
            self._state = AppState.SEARCHING
            self._busy = True
            self._results = []
            self._last_outcome = None
            self._settled.clear()

        self.sink.set_state(AppState.SEARCHING)
        self.sink.set_busy(True)

    def on_match(self, record: MatchRecord, generation: int) -> bool:
        """
        Append a match produced by the given generation.

        Returns:
            True if the record was accepted
        """
        with self._lock:
            if generation != self._generation or self._state != AppState.SEARCHING:
                return False
            self._results.append(record)
            return True

    def on_stderr(self, text: str, generation: int) -> None:
        """Log tool diagnostics and surface bad-flag messages as a title."""
        if generation != self._generation or not text.strip():
            return

        message = text.strip()
        logger.error(f"Search tool error output: {message}")
        if 'unrecognized' in message:
            self.sink.set_title(message)

    def on_process_exit(self, code: Optional[int], generation: int) -> Optional[NoResultsOutcome]:
        """
        Apply the exit-code policy for a finished process.

        Never raises. Exit notifications from superseded generations are
        ignored.

        Args:
            code: Exit code, or None if the process was cancelled
            generation: Sequence number of the process's request

        Returns:
            The no-results outcome when one was applied, else None
        """
        try:
            return self._handle_exit(code, generation)
        except Exception as e:
            logger.error(f"Failed to handle exit code {code} for generation {generation}: {e}")
            return None

    def _handle_exit(self, code: Optional[int], generation: int) -> Optional[NoResultsOutcome]:
        with self._lock:
            if generation != self._generation:
                logger.debug(f"Ignoring exit of superseded generation {generation}")
                return None
            if self._state != AppState.SEARCHING:
                return None
            results = tuple(self._results)

        if code is None:
            logger.debug(f"Search generation {generation} was cancelled")
            self._finish()
            return None

        if code == EXIT_SUCCESS and results:
            summary = summarize_results(list(results))
            logger.info(f"Search finished: {summary['total_matches']} matches in {summary['total_files']} files")
            self._publish(results)
            self._finish()
            return None

        if code in (EXIT_SUCCESS, EXIT_NO_MATCHES):
            logger.info(f"Search tool exited with code {code} (no results found)")
        elif code == EXIT_SEARCH_ERROR:
            error = SearchToolError(code, "Search tool exited with code 2 (error during search operation)")
            logger.error(str(error))
        elif code == EXIT_NOT_FOUND:
            logger.error(TOOL_MISSING_MESSAGE)
            self.sink.notify_error(TOOL_MISSING_MESSAGE)
        else:
            error = UnknownExit(code)
            logger.error(str(error))
            self.sink.notify_error(str(error))

        outcome = self._apply_no_results_policy()
        self._finish()
        return outcome

    def _apply_no_results_policy(self) -> NoResultsOutcome:
        if self.retain_on_no_results:
            outcome = NoResultsOutcome.RETAINED
            logger.debug("Keeping previous results visible")
        else:
            outcome = NoResultsOutcome.CLEARED
            self._publish(())
            self.sink.show_origin_document()

        self._last_outcome = outcome
        return outcome

    def _publish(self, results: Tuple[MatchRecord, ...]) -> None:
        self._displayed = results
        self.sink.show_results(results)

    def _finish(self) -> None:
        with self._lock:
            self._state = AppState.FINISHED
            self._busy = False

        self.sink.set_busy(False)
        self.sink.set_state(AppState.FINISHED)
        self._settled.set()

    def clear(self, generation: Optional[int] = None) -> None:
        """
        Drop all results, e.g. when the query becomes empty.

        Args:
            generation: Generation to adopt so events from earlier searches
                are ignored from now on
        """
        with self._lock:
            if generation is not None:
                self._generation = generation
            was_searching = self._state == AppState.SEARCHING
            if was_searching:
                self._state = AppState.FINISHED
            self._results = []
            self._busy = False
        self._publish(())
        self.sink.set_busy(False)
        if was_searching:
            self.sink.set_state(AppState.FINISHED)
        self._settled.set()

    def close(self) -> None:
        """Mark the session finished; late events are ignored afterwards."""
        was_searching = self._state == AppState.SEARCHING
        self._finish()
        if was_searching:
            logger.debug(f"Closed while generation {self._generation} was still searching")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the current search has settled.

        Returns:
            True if settled within the timeout
        """
        return self._settled.wait(timeout)
