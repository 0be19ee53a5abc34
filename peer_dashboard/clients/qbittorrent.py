import configparser
import logging
import re
import time
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import qbittorrentapi
from qbittorrentapi.exceptions import APIConnectionError, APIError

from ..engine import TransferEngine
from ..utils import EngineError, retry

CHECKING_STATES = ('checkingUP', 'checkingDL', 'checkingResumeData')
# Polls to wait for a requested recheck to show up in the torrent state
RECHECK_START_POLLS = 25
TRACKER_WORKING = 2
TRACKER_NOT_WORKING = 4
HASH_RE = re.compile(r'^(?:[0-9a-fA-F]{40}|[0-9a-fA-F]{64})$')
URL_PREFIXES = ('http://', 'https://', 'magnet:')


def _is_pseudo_tracker(url: str) -> bool:
    """DHT, PeX and LSD are listed as trackers with URLs like '** [DHT] **'."""
    return url.startswith('** [')


class QBittorrentEngine(TransferEngine):
    """
    A transfer engine backed by a torrent in a running qBittorrent client.

    qBittorrent does not push events over its Web API, so `poll()` fetches a
    fresh snapshot and fires events for whatever changed since the previous
    one. Peer connection attempts and dropped candidates are not visible
    through the API; `trying_peer` is fired when a new peer shows up and
    `forgetting_peer` is never fired.
    """

    def __init__(self, config: configparser.SectionProxy, check_poll_interval: float = 0.2,
                 sleep: Callable[[float], None] = time.sleep):
        super().__init__()
        self.config = config
        self.client: Optional[qbittorrentapi.Client] = None
        self.torrent_hash = ""
        self._check_poll_interval = check_poll_interval
        self._recheck = config.getboolean('recheck', fallback=False)
        self._sleep = sleep

        self._info: Any = None
        self._properties: Any = None
        self._file_count = 0
        self._peers: Dict[str, Any] = {}
        self._tracker_status: Dict[str, int] = {}
        self._last_downloaded = 0
        self._last_uploaded = 0
        self._last_wasted = 0

    @retry(tries=2, delay=5)
    def connect(self) -> None:
        """Connects to the qBittorrent client."""
        host = self.config.get('host')
        port = self.config.getint('port')
        logging.info(f"Connecting to qBittorrent at {host}:{port}...")
        self.client = qbittorrentapi.Client(
            host=host,
            port=port,
            username=self.config.get('username', fallback=''),
            password=self.config.get('password', fallback=''),
            VERIFY_WEBUI_CERTIFICATE=self.config.getboolean('verify_cert', fallback=True),
            REQUESTS_ARGS={'timeout': 20}
        )
        self.client.auth_log_in()
        logging.info(f"Successfully connected to qBittorrent. Version: {self.client.app.version}")

    def open(self, torrent_ref: str, target: Optional[str] = None) -> None:
        """Connects and resolves the torrent to monitor, adding it to the client if needed.

        Raises:
            EngineError: If the client is unreachable or the torrent cannot be resolved.
        """
        try:
            self.connect()
            self.torrent_hash = self._resolve_torrent(torrent_ref, target)
            self._info = self._fetch_info()
            self._properties = self.client.torrents_properties(torrent_hash=self.torrent_hash)
            self._file_count = len(self.client.torrents_files(torrent_hash=self.torrent_hash))
        except APIError as e:
            raise EngineError(f"qBittorrent API error: {e}") from e
        logging.info(f"Monitoring torrent '{self._info.name}' ({self.torrent_hash}).")

    def _resolve_torrent(self, torrent_ref: str, target: Optional[str]) -> str:
        if HASH_RE.match(torrent_ref):
            found = self.client.torrents_info(torrent_hashes=torrent_ref)
            if found:
                return found[0].hash

        named = [t for t in self.client.torrents_info() if t.name == torrent_ref]
        if len(named) == 1:
            return named[0].hash
        if len(named) > 1:
            raise EngineError(f"More than one torrent is named '{torrent_ref}'; use its info-hash instead.")

        if Path(torrent_ref).is_file() or torrent_ref.startswith(URL_PREFIXES):
            return self._add_torrent(torrent_ref, target)
        raise EngineError(f"No torrent matching '{torrent_ref}' in qBittorrent, and it is not a .torrent file or URL.")

    def _add_torrent(self, torrent_ref: str, target: Optional[str]) -> str:
        tag = f"peer-dashboard-{uuid.uuid4().hex[:8]}"
        logging.info(f"Adding '{torrent_ref}' to qBittorrent (save path: {target or 'client default'}).")
        if Path(torrent_ref).is_file():
            result = self.client.torrents_add(torrent_files=Path(torrent_ref).read_bytes(), save_path=target, tags=tag)
        else:
            result = self.client.torrents_add(urls=torrent_ref, save_path=target, tags=tag)
        if result != "Ok.":
            raise EngineError(f"qBittorrent refused to add '{torrent_ref}': {result}")
        return self._find_by_tag(tag)

    @retry(tries=10, delay=1)
    def _find_by_tag(self, tag: str) -> str:
        found = self.client.torrents_info(tag=tag)
        if not found:
            raise EngineError(f"Torrent tagged '{tag}' has not appeared in qBittorrent yet.")
        return found[0].hash

    def _fetch_info(self) -> Any:
        found = self.client.torrents_info(torrent_hashes=self.torrent_hash)
        if not found:
            raise EngineError(f"Torrent {self.torrent_hash} is no longer in qBittorrent.")
        return found[0]

    # --- Metadata ---

    @property
    def name(self) -> str:
        return self._info.name

    @property
    def destination(self) -> str:
        return self._info.content_path or self._info.save_path

    @property
    def file_count(self) -> int:
        return self._file_count

    @property
    def piece_length(self) -> int:
        return self._properties.piece_size

    @property
    def num_pieces(self) -> int:
        return self._properties.pieces_num

    # --- Counters ---

    @property
    def total_bytes(self) -> int:
        return self._info.size

    @property
    def bytes_completed(self) -> int:
        return self._info.completed

    @property
    def download_amount(self) -> int:
        return self._info.downloaded

    @property
    def download_rate(self) -> float:
        return self._info.dlspeed

    @property
    def upload_amount(self) -> int:
        return self._info.uploaded

    @property
    def upload_rate(self) -> float:
        return self._info.upspeed

    @property
    def active_peer_count(self) -> int:
        return len(self._peers)

    @property
    def possible_peer_count(self) -> int:
        swarm = self._info.num_complete + self._info.num_incomplete
        return max(swarm - self.active_peer_count, 0)

    def is_complete(self) -> bool:
        return self._info.progress >= 1.0

    # --- Lifecycle ---

    def check_pieces(self, on_piece_verified: Callable[[], None]) -> None:
        """Follows a hash check, reporting each newly verified piece.

        With `recheck = true` in the config section a full recheck is requested
        first, so verification progress is reported as it happens. Otherwise
        only a check the client is already running is followed; when the
        client is not checking, the pieces it already holds are reported in one
        burst and no scan rate can be measured.
        """
        reported = 0
        if self._recheck:
            info = self._request_recheck()
        else:
            info = self._fetch_info()
        while info.state in CHECKING_STATES:
            reported = self._report_pieces(info.progress, reported, on_piece_verified)
            self._sleep(self._check_poll_interval)
            info = self._fetch_info()
        self._info = info
        self._report_pieces(info.progress, reported, on_piece_verified)

    def _request_recheck(self) -> Any:
        logging.info(f"Requesting a full recheck of '{self.name}'.")
        self.client.torrents_recheck(torrent_hashes=self.torrent_hash)
        info = self._fetch_info()
        polls = 0
        while info.state not in CHECKING_STATES and polls < RECHECK_START_POLLS:
            self._sleep(self._check_poll_interval)
            info = self._fetch_info()
            polls += 1
        if info.state not in CHECKING_STATES:
            logging.warning("Recheck did not start in time; using the progress the client reports.")
        return info

    def _report_pieces(self, progress: float, reported: int, on_piece_verified: Callable[[], None]) -> int:
        verified = int(progress * self.num_pieces)
        for _ in range(verified - reported):
            on_piece_verified()
        return max(verified, reported)

    def start(self) -> None:
        logging.info(f"Resuming torrent '{self.name}'.")
        self.client.torrents_resume(torrent_hashes=self.torrent_hash)
        self._info = self._fetch_info()
        self._last_downloaded = self._info.downloaded
        self._last_uploaded = self._info.uploaded
        self._last_wasted = self._properties.total_wasted

    def set_rate_limits(self, download: Optional[int], upload: Optional[int]) -> None:
        if download is not None:
            logging.info(f"Limiting download rate to {download} B/s.")
            self.client.torrents_set_download_limit(limit=download, torrent_hashes=self.torrent_hash)
        if upload is not None:
            logging.info(f"Limiting upload rate to {upload} B/s.")
            self.client.torrents_set_upload_limit(limit=upload, torrent_hashes=self.torrent_hash)

    def poll(self) -> None:
        """Refreshes the snapshot and fires events for the differences."""
        try:
            info = self._fetch_info()
            properties = self.client.torrents_properties(torrent_hash=self.torrent_hash)
            trackers = self.client.torrents_trackers(torrent_hash=self.torrent_hash)
            peers = self.client.sync_torrent_peers(torrent_hash=self.torrent_hash, rid=0).get('peers') or {}
        except APIConnectionError as e:
            logging.warning(f"Lost contact with qBittorrent, keeping the previous snapshot: {e}")
            return

        previous_peers = self._peers
        self._info = info
        self._properties = properties
        self._peers = dict(peers)

        self._fire_block_events(info)
        self._fire_discarded_pieces(properties.total_wasted)
        self._fire_tracker_events(trackers)
        self._fire_peer_events(previous_peers)

    def _fire_block_events(self, info: Any) -> None:
        if info.downloaded > self._last_downloaded:
            self.received_block.fire(None)
        if info.uploaded > self._last_uploaded:
            self.sent_block.fire(None)
        self._last_downloaded = max(self._last_downloaded, info.downloaded)
        self._last_uploaded = max(self._last_uploaded, info.uploaded)

    def _fire_discarded_pieces(self, wasted: int) -> None:
        if wasted <= self._last_wasted:
            return
        pieces = max((wasted - self._last_wasted) // max(self.piece_length, 1), 1)
        self._last_wasted = wasted
        for _ in range(pieces):
            self.discarded_piece.fire(None)

    def _fire_tracker_events(self, trackers: Any) -> None:
        for tracker in trackers:
            url = tracker.url
            if _is_pseudo_tracker(url):
                continue
            status = tracker.status
            previous = self._tracker_status.get(url)
            self._tracker_status[url] = status
            if status == previous:
                continue
            if status == TRACKER_WORKING:
                self.tracker_connected.fire(url)
            elif status == TRACKER_NOT_WORKING:
                self.tracker_lost.fire(url)

    def _fire_peer_events(self, previous_peers: Dict[str, Any]) -> None:
        for address in self._peers.keys() - previous_peers.keys():
            self.trying_peer.fire(address)
            self.added_peer.fire(address)
        for address in previous_peers.keys() - self._peers.keys():
            self.removed_peer.fire(address)

    def close(self) -> None:
        if self.client is None:
            return
        try:
            self.client.auth_log_out()
        except APIError as e:
            logging.warning(f"Could not log out of qBittorrent cleanly: {e}")
