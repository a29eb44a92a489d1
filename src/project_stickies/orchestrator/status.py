"""Status machine of a single format operation."""

import asyncio
import logging
from collections.abc import Callable
from enum import Enum

from project_stickies.orchestrator.exceptions import StatusTransitionError

logger = logging.getLogger(__name__)

SEARCH_HINT_DELAY = 20.0  # seconds in ANALYZING before reporting SEARCHING


class FormatStatus(str, Enum):
    IDLE = "idle"
    GATHERING = "gathering"
    ANALYZING = "analyzing"
    SEARCHING = "searching"
    FORMATTING = "formatting"
    ERROR = "error"


ALLOWED_TRANSITIONS: dict[FormatStatus, frozenset[FormatStatus]] = {
    # IDLE -> ANALYZING when the caller supplies the context string
    FormatStatus.IDLE: frozenset(
        {FormatStatus.GATHERING, FormatStatus.ANALYZING, FormatStatus.ERROR}
    ),
    FormatStatus.GATHERING: frozenset({FormatStatus.ANALYZING, FormatStatus.ERROR}),
    FormatStatus.ANALYZING: frozenset(
        {FormatStatus.SEARCHING, FormatStatus.FORMATTING, FormatStatus.ERROR}
    ),
    FormatStatus.SEARCHING: frozenset({FormatStatus.FORMATTING, FormatStatus.ERROR}),
    FormatStatus.FORMATTING: frozenset({FormatStatus.IDLE, FormatStatus.ERROR}),
    FormatStatus.ERROR: frozenset({FormatStatus.IDLE}),
}

CANCELLABLE_STATUSES = frozenset(
    {FormatStatus.GATHERING, FormatStatus.ANALYZING, FormatStatus.SEARCHING}
)

StatusListener = Callable[[str, FormatStatus, str | None], None]


class StatusTracker:
    """Tracks and broadcasts the status of one project's format operation.

    ``IDLE -> GATHERING -> ANALYZING -> [SEARCHING] -> FORMATTING -> IDLE``;
    any active stage may fail to ``ERROR``, which always returns to ``IDLE``.
    SEARCHING is a display hint only, entered when the model call has been in
    flight for ``search_delay`` seconds with web search enabled.
    """

    def __init__(
        self,
        project_name: str,
        listeners: list[StatusListener] | None = None,
        search_delay: float = SEARCH_HINT_DELAY,
    ):
        self.project_name = project_name
        self.listeners = listeners if listeners is not None else []
        self.search_delay = search_delay
        self.status = FormatStatus.IDLE
        self.message: str | None = None
        self.history: list[FormatStatus] = [FormatStatus.IDLE]
        self._search_timer: asyncio.TimerHandle | None = None

    @property
    def cancellable(self) -> bool:
        return self.status in CANCELLABLE_STATUSES

    def transition(self, status: FormatStatus, message: str | None = None) -> None:
        """Move to ``status`` and notify listeners.

        Raises:
            StatusTransitionError: If the transition is not allowed
        """
        if status not in ALLOWED_TRANSITIONS[self.status]:
            raise StatusTransitionError(
                f"Cannot move from {self.status.value} to {status.value}"
            )
        logger.debug("%s: %s -> %s", self.project_name, self.status.value, status.value)
        self.status = status
        self.message = message
        self.history.append(status)
        for listener in list(self.listeners):
            try:
                listener(self.project_name, status, message)
            except Exception:
                logger.exception("Status listener failed for %s", self.project_name)

    def fail(self, message: str) -> None:
        """Report ``message`` through ERROR and return to IDLE."""
        self.cancel_search_timer()
        if self.status != FormatStatus.ERROR:
            self.transition(FormatStatus.ERROR, message)
        self.transition(FormatStatus.IDLE)

    def start_search_timer(self) -> None:
        self.cancel_search_timer()
        loop = asyncio.get_running_loop()
        self._search_timer = loop.call_later(self.search_delay, self._enter_searching)

    def cancel_search_timer(self) -> None:
        if self._search_timer is not None:
            self._search_timer.cancel()
            self._search_timer = None

    def _enter_searching(self) -> None:
        self._search_timer = None
        if self.status == FormatStatus.ANALYZING:
            self.transition(FormatStatus.SEARCHING, "Searching the web")
