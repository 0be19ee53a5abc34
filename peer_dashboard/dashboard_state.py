"""The mutable record behind every frame of the dashboard.

`DashboardState` is written by the update loop (`monitor.DashboardMonitor`)
and by the engine event handlers it registers; the render engine only reads
it. `Phase` names the states of the update loop and maps each one to the
status text shown on screen.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

STATUS_SCANNING = "checking file on disk..."
STATUS_STARTING = "starting peer..."
STATUS_CONNECTING = "connecting to peers"
STATUS_DOWNLOADING = "downloading"
STATUS_SEEDING = "seeding (download complete)"

TRACKER_NOT_CONNECTED = "not connected"


class Phase(Enum):
    """States of the update loop, entered in declaration order."""
    SCANNING = "scanning"
    CONNECTING = "connecting"
    TRANSFERRING = "transferring"
    COMPLETE = "complete"

    @property
    def status_text(self) -> str:
        return _STATUS_TEXT[self]


_STATUS_TEXT = {
    Phase.SCANNING: STATUS_SCANNING,
    Phase.CONNECTING: STATUS_CONNECTING,
    Phase.TRANSFERRING: STATUS_DOWNLOADING,
    Phase.COMPLETE: STATUS_SEEDING,
}


@dataclass
class DashboardState:
    """Every value the dashboard displays.

    Byte counts are integers, rates are bytes per second and timestamps are
    seconds from the monitor's monotonic clock. `None` timestamps mean the
    corresponding event has not been observed yet.
    """
    filename: str = ""
    destination: str = ""
    status: str = ""

    completed: int = 0
    total: int = 0

    download_amount: int = 0
    upload_amount: int = 0
    download_rate: float = 0
    upload_rate: float = 0

    scan_rate: float = 0
    use_scan_rate: bool = False

    connected_peers: int = 0
    failed_peers: int = 0
    untried_peers: int = 0
    tracker_status: str = TRACKER_NOT_CONNECTED
    error_count: int = 0

    last_block_received_at: Optional[float] = None
    last_block_sent_at: Optional[float] = None
    started_at: Optional[float] = None

    terminal_rows: int = 0
    terminal_cols: int = 0
    needs_resize: bool = True
