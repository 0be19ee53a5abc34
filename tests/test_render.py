import pytest
from rich.cells import cell_len

from peer_dashboard.dashboard_state import DashboardState
from peer_dashboard.render import (
    FrameLayout,
    RenderEngine,
    elapsed_seconds,
    fill_bar,
    is_stalled,
    progress_fill_width,
    progress_ticks,
    remaining_seconds,
)
from tests.mocks.mock_terminal import MockTerminal

NOW = 5000.0


@pytest.fixture
def state():
    return DashboardState(filename="ubuntu.iso (4.70g in one file)", destination="/data/ubuntu.iso")


def make_engine(state, rows=24, cols=100):
    terminal = MockTerminal(rows=rows, cols=cols)
    return RenderEngine(terminal, state), terminal


class TestProgressMath:
    def test_fill_width_reserves_label_and_readout(self):
        assert progress_fill_width(100) == 77
        assert progress_fill_width(23) == 0
        assert progress_fill_width(10) == 0

    @pytest.mark.parametrize("width", [0, 1, 4, 57, 77, 200])
    def test_quarter_complete(self, width):
        assert progress_ticks(250, 1000, width) == (width // 4)

    @pytest.mark.parametrize("width", [1, 3, 77, 1001])
    def test_complete_fills_exactly(self, width):
        assert progress_ticks(1000, 1000, width) == width
        assert progress_ticks(7_340_033, 7_340_033, width) == width

    def test_unknown_total_is_zero(self):
        assert progress_ticks(0, 0, 50) == 0
        assert progress_ticks(500, 0, 50) == 0

    def test_ticks_never_exceed_width(self):
        assert progress_ticks(2000, 1000, 50) == 50


class TestStall:
    def test_boundary(self):
        assert is_stalled(NOW - 14.999, NOW) is False
        assert is_stalled(NOW - 15.0, NOW) is False
        assert is_stalled(NOW - 15.001, NOW) is True

    def test_no_block_yet_is_not_a_stall(self):
        assert is_stalled(None, NOW) is False

    def test_custom_threshold(self):
        assert is_stalled(NOW - 6, NOW, threshold=5) is True


class TestDerivedTimes:
    def test_elapsed_absent_before_timer(self, state):
        assert elapsed_seconds(state, NOW) is None
        state.started_at = NOW - 125
        assert elapsed_seconds(state, NOW) == 125

    def test_remaining_uses_scan_rate_while_scanning(self, state):
        state.total, state.completed = 1000, 500
        state.use_scan_rate, state.scan_rate, state.download_rate = True, 100, 10
        assert remaining_seconds(state) == 5.0
        state.use_scan_rate = False
        assert remaining_seconds(state) == 50.0

    def test_remaining_absent_without_rate(self, state):
        state.total, state.completed = 1000, 500
        assert remaining_seconds(state) is None


def test_fill_bar_has_one_unit_per_kib():
    assert fill_bar(0) == "|"
    assert fill_bar(1023) == "|"
    assert fill_bar(51200) == "|" + "#" * 50


def test_layout_for_size():
    layout = FrameLayout.for_size(24, 100)
    assert layout.text_width == 96
    assert layout.fill_width == 77
    assert layout.percent_col == 89
    assert layout.bar_width == 67


class TestDraw:
    def test_transfer_scenario(self, state):
        state.status = "downloading"
        state.total = 10_000_000
        state.completed = 1_250_000
        state.download_rate = 51200
        state.last_block_received_at = NOW - 1
        render, terminal = make_engine(state)

        render.draw(NOW)

        assert "12.50%" in terminal.line(5)
        assert terminal.line(7).count("#") == 50
        assert "at 50k/s" in terminal.line(7)
        assert "(stalled)" not in terminal.line(7)
        assert terminal.line(5).count("#") == progress_ticks(1_250_000, 10_000_000, 77)

    def test_labels_on_their_rows(self, state):
        state.status = "connecting to peers"
        state.connected_peers, state.failed_peers, state.untried_peers = 3, 1, 7
        state.error_count = 2
        render, terminal = make_engine(state)

        render.draw(NOW)

        assert terminal.line(1)[2:].startswith("Contents: ubuntu.iso (4.70g in one file)")
        assert terminal.line(2)[2:].startswith("    Dest: /data/ubuntu.iso")
        assert terminal.line(3).strip("| ") == ""
        assert terminal.line(4)[2:].startswith("  Status: connecting to peers")
        assert terminal.line(6)[2:].startswith("    Time: elapsed --:--, remaining --:--")
        assert "connected to 3 (1 failed, 7 untried)" in terminal.line(9)
        assert terminal.line(10)[2:].startswith(" Tracker: not connected")
        assert terminal.line(11)[2:].startswith("  Errors: 2")

    def test_unknown_total_renders_zero_percent(self, state):
        render, terminal = make_engine(state)
        render.draw(NOW)
        assert "] 0.00%" in terminal.line(5)
        assert terminal.line(5).count("#") == 0

    def test_stalled_directions(self, state):
        state.download_rate = 4096
        state.upload_rate = 2048
        state.last_block_received_at = NOW - 20
        state.last_block_sent_at = NOW - 3
        render, terminal = make_engine(state)

        render.draw(NOW)

        assert "at (stalled)" in terminal.line(7)
        assert "at 2k/s" in terminal.line(8)

    def test_in_place_redraw_does_not_clear(self, state):
        render, terminal = make_engine(state)
        render.draw(NOW)
        render.draw(NOW + 0.5)
        assert terminal.clear_count == 1
        assert terminal.size_queries == 1
        assert terminal.refresh_count == 2

    def test_shorter_text_overwrites_longer_text(self, state):
        render, terminal = make_engine(state)
        state.status = "checking file on disk..."
        render.draw(NOW)
        state.status = "downloading"
        render.draw(NOW)
        assert "disk" not in terminal.line(4)
        assert terminal.clear_count == 1

    def test_rate_bar_shrinks_in_place(self, state):
        render, terminal = make_engine(state)
        state.download_rate = 40 * 1024
        render.draw(NOW)
        state.download_rate = 10 * 1024
        render.draw(NOW)
        assert terminal.line(7).count("#") == 10

    def test_resize_recomputes_and_clears(self, state):
        state.filename = "a-very-long-name-" * 8
        state.total, state.completed = 1000, 1000
        render, terminal = make_engine(state, cols=120)
        render.draw(NOW)

        terminal.resize(24, 40)
        terminal.writes.clear()
        render.request_resize()
        render.draw(NOW)

        assert terminal.clear_count == 2
        assert (state.terminal_rows, state.terminal_cols) == (24, 40)
        assert render.layout.fill_width == 17
        assert state.needs_resize is False
        for row, col, text in terminal.writes:
            assert col + cell_len(text) <= 40
        assert terminal.line(1)[2:38] == ("Contents: " + state.filename)[:36]
        # the readout overwrites the last tick
        assert terminal.line(5)[13:29] == "#" * 16
        assert terminal.line(5)[29:31] == "] "

    def test_rows_beyond_screen_are_skipped(self, state):
        render, terminal = make_engine(state, rows=5, cols=60)
        render.draw(NOW)
        assert max(row for row, _, _ in terminal.writes) < 5

    @pytest.mark.parametrize("rows, cols", [(1, 1), (3, 5), (12, 20), (30, 33)])
    def test_tiny_terminals_never_write_off_screen(self, state, rows, cols):
        state.total, state.completed = 100, 50
        state.download_rate = state.upload_rate = 10 ** 7
        render, terminal = make_engine(state, rows=rows, cols=cols)
        render.draw(NOW)
        assert terminal.box_count == 1

    def test_wide_characters_are_clipped_in_cells(self, state):
        state.filename = "進撃の巨人 " * 10
        state.destination = "/data/アニメ/🎬🎬🎬🎬🎬🎬🎬🎬🎬🎬🎬🎬🎬🎬🎬🎬🎬🎬🎬🎬"
        render, terminal = make_engine(state, cols=40)

        render.draw(NOW)

        text_writes = [(row, text) for row, col, text in terminal.writes if col == 2]
        assert text_writes
        for row, text in text_writes:
            assert cell_len(text) == 36
        for row, col, text in terminal.writes:
            assert col + cell_len(text) <= 40
        assert terminal.grid[1][39] == "|"
        assert terminal.grid[2][39] == "|"
        assert terminal.line(1)[2:].startswith("Contents: 進撃の巨人")
