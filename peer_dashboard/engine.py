"""The interface the dashboard expects from a transfer engine.

A transfer engine does the actual BitTorrent work (or drives a client that
does). The dashboard only reads its counters and subscribes to its events.
Each event category has its own registration method taking a plain handler;
engines fire events by calling the matching `EventChannel.fire`.
"""
import abc
import logging
from typing import Any, Callable, List, Optional

Handler = Callable[..., None]


class EventChannel:
    """An ordered list of handlers for one category of engine event."""

    def __init__(self, name: str):
        self.name = name
        self._handlers: List[Handler] = []

    def subscribe(self, handler: Handler) -> None:
        self._handlers.append(handler)

    def fire(self, *args: Any) -> None:
        for handler in list(self._handlers):
            handler(*args)

    def __len__(self) -> int:
        return len(self._handlers)


class TransferEngine(abc.ABC):
    """
    An abstract base class for a transfer engine.

    Handlers receive one argument identifying the subject of the event: the
    peer (an address string, or `None` when the engine cannot tell) for block
    and peer events, the tracker URL for tracker events, and the piece index
    (or `None`) for discarded pieces. Handlers may be called from whatever
    thread the engine fires them on.
    """

    def __init__(self) -> None:
        self.received_block = EventChannel("received_block")
        self.sent_block = EventChannel("sent_block")
        self.discarded_piece = EventChannel("discarded_piece")
        self.tracker_connected = EventChannel("tracker_connected")
        self.tracker_lost = EventChannel("tracker_lost")
        self.added_peer = EventChannel("added_peer")
        self.removed_peer = EventChannel("removed_peer")
        self.forgetting_peer = EventChannel("forgetting_peer")
        self.trying_peer = EventChannel("trying_peer")

    # --- Event registration ---

    def on_received_block(self, handler: Callable[[Optional[str]], None]) -> None:
        """Registers a handler for every block received from a peer."""
        self.received_block.subscribe(handler)

    def on_sent_block(self, handler: Callable[[Optional[str]], None]) -> None:
        """Registers a handler for every block sent to a peer."""
        self.sent_block.subscribe(handler)

    def on_discarded_piece(self, handler: Callable[[Optional[int]], None]) -> None:
        """Registers a handler for pieces that failed their hash check."""
        self.discarded_piece.subscribe(handler)

    def on_tracker_connected(self, handler: Callable[[str], None]) -> None:
        self.tracker_connected.subscribe(handler)

    def on_tracker_lost(self, handler: Callable[[str], None]) -> None:
        self.tracker_lost.subscribe(handler)

    def on_added_peer(self, handler: Callable[[Optional[str]], None]) -> None:
        self.added_peer.subscribe(handler)

    def on_removed_peer(self, handler: Callable[[Optional[str]], None]) -> None:
        self.removed_peer.subscribe(handler)

    def on_forgetting_peer(self, handler: Callable[[Optional[str]], None]) -> None:
        """Registers a handler for peers the engine gives up on."""
        self.forgetting_peer.subscribe(handler)

    def on_trying_peer(self, handler: Callable[[Optional[str]], None]) -> None:
        """Registers a handler for connection attempts to untried peers."""
        self.trying_peer.subscribe(handler)

    # --- Torrent metadata ---

    @property
    @abc.abstractmethod
    def name(self) -> str:
        pass

    @property
    @abc.abstractmethod
    def destination(self) -> str:
        """The absolute path the content is saved to."""
        pass

    @property
    @abc.abstractmethod
    def file_count(self) -> int:
        pass

    @property
    def is_single_file(self) -> bool:
        return self.file_count == 1

    @property
    @abc.abstractmethod
    def piece_length(self) -> int:
        pass

    @property
    @abc.abstractmethod
    def num_pieces(self) -> int:
        pass

    # --- Counters ---

    @property
    @abc.abstractmethod
    def total_bytes(self) -> int:
        pass

    @property
    @abc.abstractmethod
    def bytes_completed(self) -> int:
        pass

    @property
    @abc.abstractmethod
    def download_amount(self) -> int:
        pass

    @property
    @abc.abstractmethod
    def download_rate(self) -> float:
        pass

    @property
    @abc.abstractmethod
    def upload_amount(self) -> int:
        pass

    @property
    @abc.abstractmethod
    def upload_rate(self) -> float:
        pass

    @property
    @abc.abstractmethod
    def active_peer_count(self) -> int:
        pass

    @property
    @abc.abstractmethod
    def possible_peer_count(self) -> int:
        """Peers known from trackers that are not currently connected."""
        pass

    @abc.abstractmethod
    def is_complete(self) -> bool:
        pass

    # --- Lifecycle ---

    @abc.abstractmethod
    def check_pieces(self, on_piece_verified: Callable[[], None]) -> None:
        """Verifies the pieces already on disk, calling `on_piece_verified` once per good piece.

        Blocks until verification is finished.
        """
        pass

    @abc.abstractmethod
    def start(self) -> None:
        """Starts (or resumes) the transfer."""
        pass

    def poll(self) -> None:
        """Refreshes the counters. Engines that learn about events by polling fire them here."""
        pass

    def set_rate_limits(self, download: Optional[int], upload: Optional[int]) -> None:
        """Applies download/upload limits in bytes per second; `None` leaves a limit unchanged."""
        if download is not None or upload is not None:
            logging.warning(f"{type(self).__name__} does not support rate limits; ignoring them.")

    def close(self) -> None:
        pass
