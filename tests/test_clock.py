import pytest

from gatepass.security.clock import ClockGuard


def test_acceptable_windows_around_current():
    guard = ClockGuard(window_seconds=30, tolerance=1, clock=lambda: 3005)
    assert guard.current_window() == 100
    assert sorted(guard.acceptable_windows()) == [99, 100, 101]


def test_current_window_first_in_acceptable_windows():
    guard = ClockGuard(window_seconds=30, tolerance=2)
    assert guard.acceptable_windows(now=3005) == [100, 99, 101, 98, 102]


def test_zero_tolerance_accepts_only_current_window():
    guard = ClockGuard(window_seconds=30, tolerance=0)
    assert guard.acceptable_windows(now=3005) == [100]


@pytest.mark.parametrize("index, acceptable", [(98, False), (99, True), (100, True), (101, True), (102, False)])
def test_is_acceptable(index, acceptable):
    guard = ClockGuard(window_seconds=30, tolerance=1)
    assert guard.is_acceptable(index, now=3005) is acceptable


def test_invalid_configuration():
    with pytest.raises(ValueError):
        ClockGuard(window_seconds=0)
    with pytest.raises(ValueError):
        ClockGuard(tolerance=-1)
