"""The update loop that keeps the dashboard in step with the transfer engine.

`DashboardMonitor` is a small state machine over `Phase`:

    SCANNING -> CONNECTING <-> TRANSFERRING -> COMPLETE

The scan phase is driven by the engine: `check_pieces` calls
`piece_verified` once per verified piece, and the monitor redraws at most once
per `scan_redraw_interval` seconds of wall time however fast pieces arrive.
Every later phase is driven by the monitor itself: `tick` runs every
`refresh_interval` seconds, polls the keyboard and the engine, copies the
engine's counters into the dashboard state and redraws.

Engine events (blocks, peers, trackers, discarded pieces) are merged into the
state by the `handle_*` methods as they arrive, independently of the tick
cadence. All writes to the state and every drawn frame happen under one lock,
so a frame is always a consistent snapshot even if the engine fires events
from its own threads.
"""
import logging
import os
import sys
import threading
import time
from typing import Callable, Optional

from .config_manager import DashboardSettings
from .dashboard_state import STATUS_STARTING, DashboardState, Phase
from .engine import TransferEngine
from .formatting import format_size
from .input_poller import InputPoller, KeyAction
from .render import RenderEngine

ALLOWED_TRANSITIONS = {
    Phase.SCANNING: {Phase.CONNECTING},
    Phase.CONNECTING: {Phase.TRANSFERRING, Phase.COMPLETE},
    Phase.TRANSFERRING: {Phase.CONNECTING, Phase.COMPLETE},
    Phase.COMPLETE: set(),
}


def describe_contents(engine: TransferEngine) -> str:
    """Builds the "Contents" line, e.g. "ubuntu.iso (4.70g in one file)"."""
    size = format_size(engine.total_bytes)
    if engine.is_single_file:
        return f"{engine.name} ({size} in one file)"
    return f"{engine.name}/ ({size} in {engine.file_count} files)"


def describe_destination(engine: TransferEngine) -> str:
    """Returns the absolute save location, with a trailing slash for directories."""
    destination = os.path.abspath(os.path.expanduser(engine.destination))
    if engine.is_single_file:
        return destination
    return destination.rstrip(os.sep) + os.sep


class DashboardMonitor:
    """Owns the dashboard state and drives it through the transfer's phases."""

    def __init__(
        self,
        engine: TransferEngine,
        terminal,
        settings: Optional[DashboardSettings] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initializes the monitor.

        Args:
            engine: The transfer engine to monitor.
            terminal: An active terminal session (see `terminal.CursesTerminal`).
            settings: Cadence and stall settings. Defaults to `DashboardSettings()`.
            clock: Monotonic time source in seconds.
            sleep: Function used to wait between ticks.
        """
        self.engine = engine
        self.terminal = terminal
        self.settings = settings or DashboardSettings()
        self.state = DashboardState()
        self.render = RenderEngine(terminal, self.state, stall_seconds=self.settings.stall_seconds)
        self.input = InputPoller(terminal, self.render)
        self.phase = Phase.SCANNING
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.RLock()
        self._connecting = True
        self._subscribed = False
        self._pieces_verified = 0
        self._scan_started_at = 0.0
        self._last_scan_draw = 0.0

    @property
    def connecting(self) -> bool:
        """True while no block has moved since the active-peer count last hit zero."""
        return self._connecting

    def run(self, max_ticks: Optional[int] = None) -> None:
        """Runs all phases. Without `max_ticks` this only returns by quitting."""
        self.scan()
        self.start_transfer()
        self.transfer_loop(max_ticks)

    # --- Scanning ---

    def scan(self) -> None:
        """Shows the torrent and verifies the data already on disk."""
        engine = self.engine
        with self._lock:
            self.state.status = self.phase.status_text
            self.state.filename = describe_contents(engine)
            self.state.destination = describe_destination(engine)
            self.state.total = engine.num_pieces * engine.piece_length
            self.state.completed = 0
        self.redraw()

        now = self._clock()
        with self._lock:
            self.state.use_scan_rate = True
            self.state.started_at = now
            self._scan_started_at = now
            self._last_scan_draw = now
            self._pieces_verified = 0

        logging.info(f"STATE: Checking {engine.num_pieces} piece(s) of '{engine.name}' on disk...")
        engine.check_pieces(self.piece_verified)
        logging.info(f"STATE: Disk check finished, {self._pieces_verified} piece(s) verified.")

    def piece_verified(self) -> None:
        """Scan callback, invoked by the engine once per verified piece."""
        self._pieces_verified += 1
        now = self._clock()
        if now - self._last_scan_draw < self.settings.scan_redraw_interval:
            return
        self._last_scan_draw = now
        with self._lock:
            self.state.completed = self._pieces_verified * self.engine.piece_length
            elapsed = now - self._scan_started_at
            if elapsed > 0:
                self.state.scan_rate = self.state.completed / elapsed
        self.handle_input()
        self.redraw()

    # --- Transfer ---

    def start_transfer(self) -> None:
        """Leaves the scan phase: starts the engine and subscribes to its events."""
        with self._lock:
            self.state.status = STATUS_STARTING
            self.state.use_scan_rate = False
        self.redraw()

        self.engine.start()
        self._subscribe()
        total = self.engine.total_bytes
        now = self._clock()
        with self._lock:
            self.state.total = total
            self.state.started_at = now
            self._enter(Phase.CONNECTING)

    def transfer_loop(self, max_ticks: Optional[int] = None) -> None:
        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            self.tick()
            ticks += 1
            self._sleep(self.settings.refresh_interval)

    def tick(self) -> None:
        """One iteration of the main cadence: input, engine refresh, state update, redraw."""
        self.handle_input()
        engine = self.engine
        engine.poll()

        complete = engine.is_complete()
        download_amount, download_rate = engine.download_amount, engine.download_rate
        upload_amount, upload_rate = engine.upload_amount, engine.upload_rate
        completed, total = engine.bytes_completed, engine.total_bytes

        with self._lock:
            self._enter(self._next_phase(complete))
            s = self.state
            s.download_amount = max(s.download_amount, download_amount)
            s.download_rate = download_rate
            s.upload_amount = max(s.upload_amount, upload_amount)
            s.upload_rate = upload_rate
            s.completed = completed
            if not s.total:
                s.total = total
        self.redraw()

    def _next_phase(self, complete: bool) -> Phase:
        if self.phase is Phase.COMPLETE or complete:
            return Phase.COMPLETE
        if self._connecting:
            return Phase.CONNECTING
        return Phase.TRANSFERRING

    def _enter(self, phase: Phase) -> None:
        if phase is self.phase:
            self.state.status = phase.status_text
            return
        if phase not in ALLOWED_TRANSITIONS[self.phase]:
            raise ValueError(f"Illegal phase transition {self.phase.name} -> {phase.name}")
        logging.info(f"STATE: {self.phase.name} -> {phase.name}")
        self.phase = phase
        self.state.status = phase.status_text

    # --- Input and drawing ---

    def handle_input(self) -> KeyAction:
        action = self.input.poll()
        if action is KeyAction.QUIT:
            self.quit()
        return action

    def quit(self) -> None:
        """Restores the terminal and exits the process without drawing again."""
        logging.info("Quit requested from the keyboard.")
        self.terminal.restore()
        sys.exit(0)

    def redraw(self) -> None:
        with self._lock:
            self.render.draw(self._clock())

    # --- Engine events ---

    def _subscribe(self) -> None:
        if self._subscribed:
            return
        engine = self.engine
        engine.on_received_block(self.handle_received_block)
        engine.on_sent_block(self.handle_sent_block)
        engine.on_discarded_piece(self.handle_discarded_piece)
        engine.on_tracker_connected(self.handle_tracker_connected)
        engine.on_tracker_lost(self.handle_tracker_lost)
        engine.on_forgetting_peer(self.handle_forgetting_peer)
        engine.on_added_peer(self.handle_peer_change)
        engine.on_removed_peer(self.handle_peer_change)
        engine.on_trying_peer(self.handle_trying_peer)
        self._subscribed = True

    def handle_received_block(self, peer: Optional[str] = None) -> None:
        now = self._clock()
        with self._lock:
            self.state.last_block_received_at = now
            self._connecting = False

    def handle_sent_block(self, peer: Optional[str] = None) -> None:
        now = self._clock()
        with self._lock:
            self.state.last_block_sent_at = now
            self._connecting = False

    def handle_discarded_piece(self, piece: Optional[int] = None) -> None:
        with self._lock:
            self.state.error_count += 1

    def handle_tracker_connected(self, url: str) -> None:
        possible = self.engine.possible_peer_count
        with self._lock:
            self.state.tracker_status = url
            self.state.untried_peers = max(possible, 0)

    def handle_tracker_lost(self, url: str) -> None:
        with self._lock:
            self.state.tracker_status = f"can't connect to {url}"

    def handle_forgetting_peer(self, peer: Optional[str] = None) -> None:
        with self._lock:
            self.state.failed_peers += 1

    def handle_peer_change(self, peer: Optional[str] = None) -> None:
        active = self.engine.active_peer_count
        with self._lock:
            self.state.connected_peers = active
            if active == 0:
                self._connecting = True

    def handle_trying_peer(self, peer: Optional[str] = None) -> None:
        with self._lock:
            if self.state.untried_peers > 0:
                self.state.untried_peers -= 1
