import pytest

from peer_dashboard.formatting import format_duration, format_size


@pytest.mark.parametrize("value, expected", [
    (None, "-"),
    (0, "0b"),
    (500, "500b"),
    (1023, "1023b"),
    (1024, "1k"),
    (2048, "2k"),
    (1572864, "1.5m"),
    (1024 ** 3 - 1, "1024.0m"),
    (1024 ** 3, "1.00g"),
    (3 * 1024 ** 3, "3.00g"),
])
def test_format_size(value, expected):
    assert format_size(value) == expected


def test_format_size_accepts_float_rates():
    assert format_size(51200.0) == "50k"
    assert format_size(12.4) == "12b"


@pytest.mark.parametrize("value, expected", [
    (None, "--:--"),
    (0, "0:00"),
    (45, "0:45"),
    (59.9, "0:59"),
    (60, "1:00"),
    (125, "2:05"),
    (3599, "59:59"),
    (3600, "1:00:00"),
    (3725, "1:02:05"),
    (86399, "23:59:59"),
    (86400, "1d 0:00:00"),
    (90000, "1d 1:00:00"),
    (3 * 86400 + 4 * 3600 + 5 * 60 + 6, "3d 4:05:06"),
])
def test_format_duration(value, expected):
    assert format_duration(value) == expected


def test_format_duration_clamps_negative_values():
    assert format_duration(-5) == "0:00"
