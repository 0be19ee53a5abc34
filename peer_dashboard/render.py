"""Renders the dashboard state onto the terminal grid.

The screen is a fixed single-pane layout:

    row 1   Contents: <filename description>
    row 2       Dest: <destination>
    row 4     Status: <status>
    row 5   Progress: [#########              ] 42.00%
    row 6       Time: elapsed 1:02, remaining 4:10
    row 7   Download: 12.3m at 50k/s     |##################
    row 8     Upload: 1.2m at 3k/s       |###
    row 9      Peers: connected to 4 (1 failed, 20 untried)
    row 10   Tracker: http://tracker.example/announce
    row 11    Errors: 0

Geometry is read from the terminal only when a resize has been requested
(initially, and after every resize event); the screen is cleared at that point
only, so ordinary frames are drawn in place without flicker. Every write is
clipped to the current geometry, so no terminal size makes drawing fail.
"""
from dataclasses import dataclass
from typing import List, Optional

from rich.cells import cell_len, set_cell_size

from .dashboard_state import DashboardState
from .formatting import format_duration, format_size

STALL_SECONDS = 15.0
STALLED_TEXT = "(stalled)"

TEXT_COL = 2
FIRST_ROW = 1
PROGRESS_ROW = 5
DOWNLOAD_ROW = 7
UPLOAD_ROW = 8
BAR_COL = 31

# Columns taken by the "Progress: [" label, the percentage readout and the border.
PROGRESS_RESERVED_COLS = 23
PERCENT_OFFSET = 11
FILL_CHAR = "#"
BAR_UNIT = 1024


def progress_fill_width(cols: int) -> int:
    """Returns how many cells the progress bar may fill on a `cols`-wide screen."""
    return max(cols - PROGRESS_RESERVED_COLS, 0)


def progress_ratio(completed: int, total: int) -> float:
    """Returns `completed / total`, or 0 while the total size is still unknown."""
    if total <= 0:
        return 0.0
    return completed / total


def progress_ticks(completed: int, total: int, width: int) -> int:
    """Returns the number of filled cells in a progress bar `width` cells wide.

    Integer arithmetic keeps a finished transfer at exactly `width` ticks.
    """
    if total <= 0 or width <= 0:
        return 0
    ticks = int(completed) * width // int(total)
    return min(max(ticks, 0), width)


def is_stalled(last_block_at: Optional[float], now: float, threshold: float = STALL_SECONDS) -> bool:
    """Returns True if a block was seen once but not within the last `threshold` seconds."""
    return last_block_at is not None and (now - last_block_at) > threshold


def elapsed_seconds(state: DashboardState, now: float) -> Optional[float]:
    if state.started_at is None:
        return None
    return now - state.started_at


def remaining_seconds(state: DashboardState) -> Optional[float]:
    """Estimates the time left from the active rate (scan rate while scanning)."""
    rate = state.scan_rate if state.use_scan_rate else state.download_rate
    if not rate or rate <= 0:
        return None
    return max(state.total - state.completed, 0) / rate


def fill_bar(rate: float) -> str:
    """Returns a rate bar with one fill character per KiB/s."""
    return "|" + FILL_CHAR * int(max(rate, 0) // BAR_UNIT)


@dataclass
class FrameLayout:
    """Widths derived from the terminal size, recomputed only on resize."""
    rows: int
    cols: int
    text_width: int
    fill_width: int
    percent_col: int
    bar_width: int

    @classmethod
    def for_size(cls, rows: int, cols: int) -> "FrameLayout":
        return cls(
            rows=rows,
            cols=cols,
            text_width=max(cols - 2 * TEXT_COL, 0),
            fill_width=progress_fill_width(cols),
            percent_col=cols - PERCENT_OFFSET,
            bar_width=max(cols - BAR_COL - 2, 0),
        )


class RenderEngine:
    """Draws `DashboardState` frames onto a terminal.

    The terminal only needs the primitives of `terminal.CursesTerminal`:
    `size()`, `clear()`, `put()`, `box()` and `refresh()`.
    """

    def __init__(self, terminal, state: DashboardState, stall_seconds: float = STALL_SECONDS):
        self._terminal = terminal
        self.state = state
        self.stall_seconds = stall_seconds
        self._layout = FrameLayout.for_size(0, 0)

    @property
    def layout(self) -> FrameLayout:
        return self._layout

    def request_resize(self, *_args) -> None:
        """Marks the geometry as stale; the next frame re-reads it and clears the screen.

        Accepts and ignores positional arguments so it can also serve as a
        signal handler.
        """
        self.state.needs_resize = True

    def _update_size(self) -> None:
        rows, cols = self._terminal.size()
        self.state.terminal_rows = rows
        self.state.terminal_cols = cols
        self.state.needs_resize = False
        self._layout = FrameLayout.for_size(rows, cols)

    def frame_lines(self, now: float) -> List[str]:
        """Builds the eleven labelled text lines of the frame, unpadded."""
        s = self.state
        ticks = progress_ticks(s.completed, s.total, self._layout.fill_width)
        download_stalled = is_stalled(s.last_block_received_at, now, self.stall_seconds)
        upload_stalled = is_stalled(s.last_block_sent_at, now, self.stall_seconds)
        download_rate = STALLED_TEXT if download_stalled else format_size(s.download_rate) + "/s"
        upload_rate = STALLED_TEXT if upload_stalled else format_size(s.upload_rate) + "/s"

        return [
            f"Contents: {s.filename}",
            f"    Dest: {s.destination}",
            "",
            f"  Status: {s.status}",
            "Progress: [" + FILL_CHAR * ticks,
            f"    Time: elapsed {format_duration(elapsed_seconds(s, now))}, "
            f"remaining {format_duration(remaining_seconds(s))}",
            f"Download: {format_size(s.download_amount)} at {download_rate}",
            f"  Upload: {format_size(s.upload_amount)} at {upload_rate}",
            f"   Peers: connected to {s.connected_peers} ({s.failed_peers} failed, {s.untried_peers} untried)",
            f" Tracker: {s.tracker_status}",
            f"  Errors: {s.error_count}",
        ]

    def percent_text(self) -> str:
        return f"] {progress_ratio(self.state.completed, self.state.total) * 100.0:.2f}%  "

    def draw(self, now: float) -> None:
        """Draws one complete frame and refreshes the terminal."""
        if self.state.needs_resize:
            self._update_size()
            self._terminal.clear()

        layout = self._layout
        for row, text in enumerate(self.frame_lines(now), start=FIRST_ROW):
            if row >= layout.rows:
                break
            self._print(row, TEXT_COL, set_cell_size(text, layout.text_width))

        self._print(PROGRESS_ROW, layout.percent_col, self.percent_text())
        self._print(DOWNLOAD_ROW, BAR_COL, set_cell_size(fill_bar(self.state.download_rate), layout.bar_width))
        self._print(UPLOAD_ROW, BAR_COL, set_cell_size(fill_bar(self.state.upload_rate), layout.bar_width))

        self._terminal.box()
        self._terminal.refresh()

    def _print(self, row: int, col: int, text: str) -> None:
        """Writes `text` at `(row, col)`, clipped to the screen in terminal cells."""
        layout = self._layout
        if not (0 <= row < layout.rows and 0 <= col < layout.cols):
            return
        if cell_len(text) > layout.cols - col:
            # Wide characters take two cells
            text = set_cell_size(text, layout.cols - col)
        if text:
            self._terminal.put(row, col, text)
