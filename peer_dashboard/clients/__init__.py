import configparser
import logging
from typing import Optional

from ..config_manager import DashboardSettings
from ..engine import TransferEngine

def get_engine(config: configparser.ConfigParser, torrent_ref: str, target: Optional[str] = None,
               settings: Optional[DashboardSettings] = None) -> TransferEngine:
    """
    Factory function to get a connected transfer engine for `torrent_ref` based on the config.
    """
    engine_type = config.get('ENGINE', 'type', fallback='').strip().lower()
    if not engine_type:
        raise ValueError("Engine 'type' not specified in the [ENGINE] section.")
    settings = settings or DashboardSettings()

    logging.info(f"Creating engine of type: {engine_type}")

    if engine_type == 'qbittorrent':
        from .qbittorrent import QBittorrentEngine
        engine = QBittorrentEngine(config['QBITTORRENT'], check_poll_interval=settings.check_poll_interval)
        engine.open(torrent_ref, target)
        return engine
    else:
        raise ValueError(f"Unsupported engine type: {engine_type}")
