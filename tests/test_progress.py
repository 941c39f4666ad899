"""Tests for progress tracking and its console displays."""

import io

from rich.console import Console

from pys3sync.cli_progress import (
    DotsProgressDisplay,
    NoProgressDisplay,
    ProgressBarDisplay,
    create_progress_display,
)
from pys3sync.models import ActionKind, ItemStatus
from pys3sync.sync.progress import TransferProgressEvent, TransferProgressTracker


def capture_console() -> Console:
    return Console(file=io.StringIO(), highlight=False, width=120)


class TestTransferProgressTracker:
    """Test TransferProgressTracker accounting."""

    def test_events(self):
        events = []
        tracker = TransferProgressTracker(callback=events.append)

        tracker.start_batch(ActionKind.UPLOAD, "www/", 2)
        tracker.item_done("www/a", ItemStatus.TRANSFERRED, size=10)
        tracker.item_done("www/b", ItemStatus.SKIPPED, size=99)
        tracker.finish_batch()

        assert [e.event for e in events] == [
            TransferProgressEvent.BATCH_START,
            TransferProgressEvent.ITEM_COMPLETE,
            TransferProgressEvent.ITEM_COMPLETE,
            TransferProgressEvent.BATCH_COMPLETE,
        ]
        last = events[-1]
        assert last.items_total == 2
        assert last.items_done == 2
        assert last.items_transferred == 1
        assert last.bytes_transferred == 10
        assert events[1].key == "www/a"

    def test_start_batch_resets_counters(self):
        events = []
        tracker = TransferProgressTracker(callback=events.append)
        tracker.start_batch(ActionKind.UPLOAD, "a/", 1)
        tracker.item_done("a/x", ItemStatus.TRANSFERRED, size=5)

        tracker.start_batch(ActionKind.DELETE, "b/", 3)

        assert events[-1].kind == ActionKind.DELETE
        assert events[-1].items_done == 0
        assert events[-1].bytes_transferred == 0

    def test_without_callback(self):
        tracker = TransferProgressTracker()
        tracker.start_batch(ActionKind.COPY, "a/", 1)
        tracker.item_done("a/x", ItemStatus.FAILED)
        tracker.finish_batch()


class TestDisplays:
    """Test the console displays."""

    def test_dots(self):
        console = capture_console()
        display = DotsProgressDisplay(console)
        with display:
            tracker = display.create_tracker()
            tracker.start_batch(ActionKind.UPLOAD, "www/", 4)
            tracker.item_done("a", ItemStatus.TRANSFERRED)
            tracker.item_done("b", ItemStatus.SKIPPED)
            tracker.item_done("c", ItemStatus.EXCLUDED)
            tracker.item_done("d", ItemStatus.FAILED)
            tracker.finish_batch()

        assert console.file.getvalue() == ".--x\n"

    def test_dots_empty_batch_prints_nothing(self):
        console = capture_console()
        tracker = DotsProgressDisplay(console).create_tracker()
        tracker.start_batch(ActionKind.DELETE, "tmp/", 0)
        tracker.finish_batch()
        assert console.file.getvalue() == ""

    def test_progress_bar_ignores_events_outside_context(self):
        display = ProgressBarDisplay(capture_console())
        tracker = display.create_tracker()
        tracker.start_batch(ActionKind.UPLOAD, "www/", 1)
        tracker.item_done("a", ItemStatus.TRANSFERRED, size=3)

    def test_progress_bar_run(self):
        display = ProgressBarDisplay(capture_console())
        with display:
            tracker = display.create_tracker()
            tracker.start_batch(ActionKind.UPLOAD, "www/", 1)
            tracker.item_done("a", ItemStatus.TRANSFERRED, size=3)
            tracker.finish_batch()
        assert display._progress is None

    def test_create_progress_display(self):
        assert isinstance(create_progress_display("dots"), DotsProgressDisplay)
        assert isinstance(create_progress_display("progressBar"), ProgressBarDisplay)
        none = create_progress_display("none")
        assert isinstance(none, NoProgressDisplay)
        assert none.create_tracker() is None
