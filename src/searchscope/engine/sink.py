"""
Presentation sink interface for searchscope.

The engine never talks to a UI directly. Whatever renders results (a picker
widget, a terminal, a test double) implements PresentationSink.
"""

from typing import Optional, Protocol, Sequence, runtime_checkable
import logging

from ..models.search_results import AppState, MatchRecord


logger = logging.getLogger(__name__)


@runtime_checkable
class PresentationSink(Protocol):
    """Receives result snapshots and state changes from the engine."""

    def show_results(self, results: Sequence[MatchRecord]) -> None:
        ...

    def set_busy(self, busy: bool) -> None:
        ...

    def set_state(self, state: AppState) -> None:
        ...

    def set_title(self, title: Optional[str]) -> None:
        ...

    def show_origin_document(self) -> None:
        ...

    def notify_error(self, message: str) -> None:
        ...


class LoggingSink:
    """Default sink that only logs what a UI would display."""

    def show_results(self, results: Sequence[MatchRecord]) -> None:
        logger.info(f"{len(results)} result(s) available")

    def set_busy(self, busy: bool) -> None:
        logger.debug(f"Busy: {busy}")

    def set_state(self, state: AppState) -> None:
        logger.debug(f"State: {state.value}")

    def set_title(self, title: Optional[str]) -> None:
        if title:
            logger.info(title)

    def show_origin_document(self) -> None:
        logger.debug("Showing origin document")

    def notify_error(self, message: str) -> None:
        logger.error(message)
