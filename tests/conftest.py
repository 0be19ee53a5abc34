import pytest

from peer_dashboard.config_manager import DashboardSettings
from peer_dashboard.monitor import DashboardMonitor
from tests.mocks.mock_engine import MockEngine
from tests.mocks.mock_terminal import MockClock, MockTerminal


@pytest.fixture
def clock():
    return MockClock()


@pytest.fixture
def terminal():
    return MockTerminal(rows=24, cols=100)


@pytest.fixture
def engine():
    return MockEngine()


@pytest.fixture
def monitor(engine, terminal, clock):
    return DashboardMonitor(engine, terminal, DashboardSettings(), clock=clock, sleep=clock.sleep)
