"""Full-screen terminal session backed by `curses`.

`CursesTerminal` owns the terminal mode for the lifetime of the dashboard. It
is acquired with `start()` (or by entering it as a context manager) and must
be released with `restore()`, which is also registered with `atexit` so that
cursor visibility, echo, line buffering and newline translation come back on
every exit path.

While the session is active the console log handler (a `RichHandler` writing
to stderr) is detached from the root logger, since anything it printed would
land in the middle of the curses screen.
"""
import atexit
import curses
import logging
from typing import Optional, Tuple

from rich.cells import cell_len, set_cell_size

from .utils import TerminalError

KEY_RESIZE = curses.KEY_RESIZE


class CursesTerminal:
    """Draw primitives and key input for a single full-screen curses window."""

    def __init__(self, console_handler: Optional[logging.Handler] = None):
        """Initializes the terminal session without touching the terminal yet.

        Args:
            console_handler: A handler attached to the root logger that writes
                to the terminal. It is removed while the session is active and
                re-attached on restore.
        """
        self._console_handler = console_handler
        self._screen = None
        self._active = False
        self._atexit_registered = False

    def __enter__(self) -> "CursesTerminal":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.restore()

    @property
    def active(self) -> bool:
        return self._active

    def start(self) -> None:
        """Switches the terminal into full-screen mode.

        Raises:
            TerminalError: If curses cannot initialise the screen. The terminal
                is restored before the error is raised.
        """
        if self._active:
            return
        if self._console_handler is not None:
            logging.getLogger().removeHandler(self._console_handler)
        try:
            self._screen = curses.initscr()
            self._active = True
            curses.nonl()
            curses.noecho()
            curses.cbreak()
            try:
                curses.curs_set(0)
            except curses.error:
                # Terminals without cursor visibility control
                logging.debug("Terminal does not support hiding the cursor.")
            self._screen.keypad(True)
            self._screen.nodelay(True)
        except curses.error as e:
            self.restore()
            raise TerminalError(f"Could not initialise the terminal: {e}") from e
        if not self._atexit_registered:
            atexit.register(self.restore)
            self._atexit_registered = True
        logging.debug("Terminal switched to full-screen mode.")

    def restore(self) -> None:
        """Returns the terminal to the mode it was in before `start()`.

        Safe to call more than once. Each step is attempted even if an earlier
        one fails; the first failure is re-raised as `TerminalError` once the
        console handler is back in place.
        """
        if not self._active:
            self._reattach_console_handler()
            return
        self._active = False
        failure: Optional[curses.error] = None
        for step in (self._show_cursor, self._leave_keypad, curses.nocbreak, curses.echo, curses.nl, curses.endwin):
            try:
                step()
            except curses.error as e:
                failure = failure or e
        self._screen = None
        self._reattach_console_handler()
        if failure is not None:
            logging.error(f"Failed to fully restore the terminal: {failure}")
            raise TerminalError(f"Could not restore the terminal: {failure}") from failure
        logging.debug("Terminal restored.")

    def _show_cursor(self) -> None:
        curses.curs_set(1)

    def _leave_keypad(self) -> None:
        if self._screen is not None:
            self._screen.keypad(False)

    def _reattach_console_handler(self) -> None:
        root = logging.getLogger()
        if self._console_handler is not None and self._console_handler not in root.handlers:
            root.addHandler(self._console_handler)

    def size(self) -> Tuple[int, int]:
        """Returns the current terminal size as `(rows, cols)`."""
        return self._screen.getmaxyx()

    def read_key(self) -> Optional[int]:
        """Reads one pending key without waiting. Returns `None` if none is pending."""
        key = self._screen.getch()
        if key == curses.ERR:
            return None
        return key

    def put(self, row: int, col: int, text: str, max_len: Optional[int] = None) -> None:
        """Writes `text` at `(row, col)`, clipped to `max_len` terminal cells if given."""
        if max_len is not None and cell_len(text) > max_len:
            text = set_cell_size(text, max_len)
        if not text:
            return
        try:
            self._screen.addstr(row, col, text)
        except curses.error:
            # addstr reports an error after writing the bottom-right cell
            pass

    def box(self) -> None:
        self._screen.box()

    def clear(self) -> None:
        self._screen.clear()

    def refresh(self) -> None:
        self._screen.refresh()
