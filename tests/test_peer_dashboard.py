import logging
from unittest.mock import MagicMock, patch

import pytest

from peer_dashboard.peer_dashboard import __version__, build_parser, main
from peer_dashboard.utils import EngineError
from tests.mocks.mock_engine import MockEngine
from tests.mocks.mock_terminal import MockTerminal


@pytest.fixture(autouse=True)
def restore_root_logger():
    """main() replaces the root logger's handlers; put them back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.ini"


def test_parser_arguments():
    args = build_parser().parse_args(["-d", "50", "-u", "8", "-l", "run.log", "ubuntu.torrent", "/data"])
    assert (args.torrent, args.target) == ("ubuntu.torrent", "/data")
    assert (args.downlimit, args.uplimit) == (50, 8)
    assert args.log == "run.log"


def test_version(capsys, config_path):
    assert main(["--version", "--config", str(config_path)]) == 0
    assert f"peer-dashboard {__version__}" in capsys.readouterr().out
    assert not config_path.exists()


def test_check_config_creates_valid_config(config_path):
    assert main(["--config", str(config_path), "--check-config"]) == 0
    assert config_path.is_file()
    assert any((config_path.parent / "logs").iterdir())


def test_invalid_config(config_path):
    config_path.write_text("[ENGINE]\ntype = rtorrent\n", encoding="utf-8")
    assert main(["--config", str(config_path), "--check-config"]) == 1


def test_negative_refresh_interval_is_rejected_before_the_dashboard_starts(config_path):
    config_path.write_text("[DASHBOARD]\nrefresh_interval = -0.5\n", encoding="utf-8")
    with patch("peer_dashboard.peer_dashboard.get_engine") as get_engine:
        assert main(["--config", str(config_path), "ubuntu.iso"]) == 1
    get_engine.assert_not_called()


def test_missing_torrent_prints_help(capsys, config_path):
    assert main(["--config", str(config_path)]) == 1
    assert "usage: peer-dashboard" in capsys.readouterr().out


def test_engine_error_is_fatal(config_path, tmp_path):
    with patch("peer_dashboard.peer_dashboard.get_engine", side_effect=EngineError("unreachable")):
        assert main(["--config", str(config_path), "-l", str(tmp_path / "run.log"), "ubuntu.iso"]) == 1


def test_quit_key_ends_the_dashboard(config_path):
    engine = MockEngine()
    engine.close = MagicMock()
    terminal = MockTerminal(keys=[ord("q")])
    session = MagicMock()
    session.return_value.__enter__.return_value = terminal

    with patch("peer_dashboard.peer_dashboard.get_engine", return_value=engine), \
            patch("peer_dashboard.peer_dashboard.CursesTerminal", session):
        with pytest.raises(SystemExit) as exc:
            main(["--config", str(config_path), "-d", "10", "ubuntu.iso"])

    assert exc.value.code == 0
    assert terminal.restored is True
    assert engine.started is True
    assert engine.rate_limits == [(10240, None)]
    engine.close.assert_called_once_with()
