"""Unit tests for the format status machine."""

import asyncio
from unittest.mock import MagicMock

import pytest

from project_stickies.orchestrator import FormatStatus, StatusTracker, StatusTransitionError


class TestTransitions:
    def test_happy_path(self):
        tracker = StatusTracker("proj")
        for status in (
            FormatStatus.GATHERING,
            FormatStatus.ANALYZING,
            FormatStatus.SEARCHING,
            FormatStatus.FORMATTING,
            FormatStatus.IDLE,
        ):
            tracker.transition(status)
        assert tracker.history[0] == FormatStatus.IDLE
        assert tracker.history[-1] == FormatStatus.IDLE
        assert len(tracker.history) == 6

    def test_rejects_skipping_stages(self):
        tracker = StatusTracker("proj")
        with pytest.raises(StatusTransitionError, match="idle to formatting"):
            tracker.transition(FormatStatus.FORMATTING)

    def test_cannot_go_back_from_formatting(self):
        tracker = StatusTracker("proj")
        tracker.transition(FormatStatus.ANALYZING)
        tracker.transition(FormatStatus.FORMATTING)
        with pytest.raises(StatusTransitionError):
            tracker.transition(FormatStatus.GATHERING)

    def test_fail_passes_through_error_to_idle(self):
        listener = MagicMock()
        tracker = StatusTracker("proj", [listener])
        tracker.transition(FormatStatus.GATHERING)

        tracker.fail("boom")

        assert tracker.status == FormatStatus.IDLE
        listener.assert_any_call("proj", FormatStatus.ERROR, "boom")
        assert tracker.history[-2:] == [FormatStatus.ERROR, FormatStatus.IDLE]

    def test_cancellable_until_formatting(self):
        tracker = StatusTracker("proj")
        assert not tracker.cancellable
        tracker.transition(FormatStatus.GATHERING)
        assert tracker.cancellable
        tracker.transition(FormatStatus.ANALYZING)
        assert tracker.cancellable
        tracker.transition(FormatStatus.FORMATTING)
        assert not tracker.cancellable

    def test_failing_listener_does_not_break_others(self):
        seen = []

        def broken(*args):
            raise RuntimeError("listener bug")

        tracker = StatusTracker("proj", [broken, lambda *args: seen.append(args)])
        tracker.transition(FormatStatus.GATHERING)

        assert seen == [("proj", FormatStatus.GATHERING, None)]
        assert tracker.status == FormatStatus.GATHERING


class TestSearchHint:
    async def test_enters_searching_after_delay(self):
        tracker = StatusTracker("proj", search_delay=0.01)
        tracker.transition(FormatStatus.ANALYZING)
        tracker.start_search_timer()

        await asyncio.sleep(0.05)

        assert tracker.status == FormatStatus.SEARCHING

    async def test_cancelled_timer_does_nothing(self):
        tracker = StatusTracker("proj", search_delay=0.01)
        tracker.transition(FormatStatus.ANALYZING)
        tracker.start_search_timer()
        tracker.cancel_search_timer()

        await asyncio.sleep(0.05)

        assert tracker.status == FormatStatus.ANALYZING

    async def test_timer_is_ignored_after_analysis(self):
        tracker = StatusTracker("proj", search_delay=0.01)
        tracker.transition(FormatStatus.ANALYZING)
        tracker.start_search_timer()
        tracker.transition(FormatStatus.FORMATTING)

        await asyncio.sleep(0.05)

        assert tracker.status == FormatStatus.FORMATTING
