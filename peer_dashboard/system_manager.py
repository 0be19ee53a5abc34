"""System-level setup for the dashboard process.

The curses screen owns the terminal while the dashboard runs, so log output
goes to a file. Console logging (a `RichHandler` on stderr) is configured
separately in the main entry point and is only visible before and after the
full-screen session.
"""
import logging
import time
from pathlib import Path
from typing import Optional


def setup_logging(log_dir: Path, debug: bool, log_file: Optional[str] = None) -> Path:
    """Configures the root logger for file-based logging.

    Args:
        log_dir: Directory for timestamped log files; created if missing.
        debug: If `True`, sets the logging level to `DEBUG`, otherwise `INFO`.
        log_file: Explicit log file path. Overrides `log_dir` when given.

    Returns:
        The path of the log file in use.
    """
    if log_file:
        log_file_path = Path(log_file)
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
    else:
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = time.strftime("%Y-%m-%d_%H-%M-%S")
        log_file_path = log_dir / f"peer_dashboard_{timestamp}.log"

    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if debug else logging.INFO)

    if logger.hasHandlers():
        logger.handlers.clear()

    file_handler = logging.FileHandler(log_file_path, mode='w', encoding='utf-8')
    file_handler.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
    logger.addHandler(file_handler)

    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("qbittorrentapi").setLevel(logging.WARNING)
    logging.info("--- peer-dashboard file logging started ---")
    return log_file_path
