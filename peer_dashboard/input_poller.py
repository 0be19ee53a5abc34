"""Non-blocking keyboard handling for the dashboard."""
from enum import Enum

from .terminal import KEY_RESIZE

QUIT_KEYS = (ord("q"), ord("Q"))


class KeyAction(Enum):
    NONE = "none"
    QUIT = "quit"
    RESIZE = "resize"
    IGNORE = "ignore"


class InputPoller:
    """Reads at most one pending key per poll and classifies it.

    A resize key is acted on here by asking the render engine to re-read the
    terminal geometry. Quitting is left to the caller, which must restore the
    terminal before exiting.
    """

    def __init__(self, terminal, render_engine):
        self._terminal = terminal
        self._render = render_engine

    def poll(self) -> KeyAction:
        key = self._terminal.read_key()
        if key is None:
            return KeyAction.NONE
        if key in QUIT_KEYS:
            return KeyAction.QUIT
        if key == KEY_RESIZE:
            self._render.request_resize()
            return KeyAction.RESIZE
        return KeyAction.IGNORE
