"""CLI progress displays for transfer runs.

This module provides Rich-based progress displays that work with the
TransferProgressTracker of the transfer engine.
"""

from typing import Optional

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .models import ItemStatus
from .sync.progress import (
    TransferProgressEvent,
    TransferProgressInfo,
    TransferProgressTracker,
)
from .utils import format_size


class ProgressBarDisplay:
    """Rich progress bar, one task per batch.

    The bar counts items of the current batch; the extra column shows how
    many were actually transferred and their size.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console
        self._progress: Optional[Progress] = None
        self._task: Optional[TaskID] = None

    def create_tracker(self) -> TransferProgressTracker:
        """Create a TransferProgressTracker that updates this display."""
        return TransferProgressTracker(callback=self._handle_event)

    def _transfer_info(self, info: TransferProgressInfo) -> str:
        return (
            f"{info.items_transferred} transferred, "
            f"{format_size(info.bytes_transferred)}"
        )

    def _handle_event(self, info: TransferProgressInfo) -> None:
        if self._progress is None:
            return

        if info.event == TransferProgressEvent.BATCH_START:
            self._task = self._progress.add_task(
                f"{info.kind.value.capitalize()}: {info.target}",
                total=info.items_total,
                transfer_info=self._transfer_info(info),
            )
        elif self._task is not None:
            self._progress.update(
                self._task,
                completed=info.items_done,
                transfer_info=self._transfer_info(info),
            )

    def __enter__(self) -> "ProgressBarDisplay":
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("[cyan]{task.fields[transfer_info]}"),
            TimeElapsedColumn(),
            console=self.console,
            refresh_per_second=4,
        )
        self._progress.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._progress is not None:
            self._progress.__exit__(exc_type, exc_val, exc_tb)
            self._progress = None
            self._task = None


class DotsProgressDisplay:
    """Prints one character per finished item.

    ``.`` transferred, ``-`` skipped or excluded, ``x`` failed.
    """

    SYMBOLS = {
        ItemStatus.TRANSFERRED: ".",
        ItemStatus.SKIPPED: "-",
        ItemStatus.EXCLUDED: "-",
        ItemStatus.FAILED: "x",
    }

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console(highlight=False)

    def create_tracker(self) -> TransferProgressTracker:
        return TransferProgressTracker(callback=self._handle_event)

    def _handle_event(self, info: TransferProgressInfo) -> None:
        if info.event == TransferProgressEvent.ITEM_COMPLETE and info.status:
            self.console.print(self.SYMBOLS[info.status], end="", markup=False)
        elif (
            info.event == TransferProgressEvent.BATCH_COMPLETE
            and info.items_total > 0
        ):
            self.console.print()

    def __enter__(self) -> "DotsProgressDisplay":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        pass


class NoProgressDisplay:
    """Display that renders nothing."""

    def create_tracker(self) -> Optional[TransferProgressTracker]:
        return None

    def __enter__(self) -> "NoProgressDisplay":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        pass


def create_progress_display(style: str, console: Optional[Console] = None):
    """Create the display of a progress style.

    Args:
        style: ``progressBar``, ``dots`` or ``none``
        console: Console to render on

    Returns:
        A context manager with a ``create_tracker()`` method
    """
    if style == "progressBar":
        return ProgressBarDisplay(console)
    if style == "dots":
        return DotsProgressDisplay(console)
    return NoProgressDisplay()
