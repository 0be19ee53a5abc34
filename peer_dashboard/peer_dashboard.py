#!/usr/bin/env python3
# peer-dashboard
#
# A full-screen terminal dashboard that follows a single BitTorrent transfer:
# progress, rates with stall detection, peers, tracker and errors.

__version__ = "1.0.0"

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

import argcomplete
from rich.console import Console
from rich.logging import RichHandler

from .clients import get_engine
from .config_manager import ConfigValidator, DashboardSettings, load_config, update_config
from .engine import TransferEngine
from .monitor import DashboardMonitor
from .system_manager import setup_logging
from .terminal import CursesTerminal
from .utils import EngineError, TerminalError

DESCRIPTION = """\
A very simple curses-based BitTorrent peer dashboard. Use it to download a
torrent or to seed it, and watch the transfer while it runs. Press 'q' to quit.

<torrent> is the info-hash or name of a torrent in the client, or a .torrent
file, URL or magnet link to add.

<target> is the directory to save an added torrent to. If not specified, the
client's default save path is used.
"""


def _kib_to_bytes(limit: Optional[int]) -> Optional[int]:
    return None if limit is None else limit * 1024


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="peer-dashboard",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('torrent', nargs='?', help='Info-hash, name, .torrent file, URL or magnet link.')
    parser.add_argument('target', nargs='?', help='Save path used when adding a torrent.')
    parser.add_argument('--config', default='config.ini', help='Path to the configuration file (default: %(default)s).')
    parser.add_argument('-l', '--log', metavar='FILENAME', help='Log events to FILENAME (for debugging).')
    parser.add_argument('-d', '--downlimit', type=int, metavar='LIMIT', help='Limit download rate to LIMIT kb/s.')
    parser.add_argument('-u', '--uplimit', type=int, metavar='LIMIT', help='Limit upload rate to LIMIT kb/s.')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging to file.')
    parser.add_argument('--check-config', action='store_true', help='Validate the configuration file and exit.')
    parser.add_argument('--version', action='store_true', help="Show program's version and config file path, then exit.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """The main entry point for the application.

    This function is responsible for:
    -   Parsing command-line arguments.
    -   Setting up file and console logging.
    -   Loading and validating the configuration.
    -   Connecting the transfer engine and applying rate limits.
    -   Running the dashboard inside a full-screen terminal session, which is
        restored on every exit path.

    Returns:
        0 on successful execution, 1 on error.
    """
    script_dir = Path(__file__).resolve().parent
    parser = build_parser()
    argcomplete.autocomplete(parser)
    args = parser.parse_args(argv)

    if args.version:
        print(f"peer-dashboard {__version__}")
        print(f"Configuration file: {args.config}")
        return 0

    config_path = Path(args.config).expanduser().resolve()
    setup_logging(config_path.parent / 'logs', args.debug, args.log)

    log_level = logging.DEBUG if args.debug else logging.INFO
    rich_handler = RichHandler(level=log_level, show_path=False, rich_tracebacks=True, markup=True, console=Console(stderr=True))
    rich_handler.setFormatter(logging.Formatter('%(message)s'))
    logging.getLogger().addHandler(rich_handler)

    logging.info(f"Using configuration file: {config_path}")
    update_config(str(config_path), str(script_dir / 'config.ini.template'))
    config = load_config(str(config_path))
    if not ConfigValidator(config).validate():
        logging.error("[bold red]FAILURE:[/] Configuration file has errors.")
        return 1
    if args.check_config:
        logging.info("[bold green]SUCCESS:[/] Configuration file appears to be valid.")
        return 0

    if not args.torrent:
        parser.print_help()
        return 1

    settings = DashboardSettings.from_config(config)
    engine: Optional[TransferEngine] = None
    try:
        engine = get_engine(config, args.torrent, args.target, settings)
        engine.set_rate_limits(_kib_to_bytes(args.downlimit), _kib_to_bytes(args.uplimit))
        with CursesTerminal(console_handler=rich_handler) as terminal:
            DashboardMonitor(engine, terminal, settings).run()
    except KeyboardInterrupt:
        logging.warning("Interrupted by user. Shutting down.")
    except (EngineError, TerminalError) as e:
        logging.error(f"[bold red]FATAL:[/] {e}")
        return 1
    except Exception as e:
        logging.error(f"An unexpected error occurred in main: {e}", exc_info=True)
        return 1
    finally:
        if engine is not None:
            engine.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
