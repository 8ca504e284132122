import pytest

from clusterforge.controller.cancel import CancelToken
from clusterforge.errors import ProvisionCancelledError


class Clock:
    def __init__(self):
        self.t = 100.0

    def __call__(self):
        return self.t


def test_deadline_cancels():
    clock = Clock()
    token = CancelToken(timeout_seconds=30, clock=clock)
    assert token.cancelled is False

    clock.t += 31
    with pytest.raises(ProvisionCancelledError) as ei:
        token.raise_if_cancelled("settle-delay")
    assert "deadline exceeded before settle-delay" in str(ei.value)


def test_wait_returns_early_once_cancelled():
    token = CancelToken()
    token.cancel()
    with pytest.raises(ProvisionCancelledError):
        token.wait(3600)


def test_wait_zero_without_cancel():
    CancelToken().wait(0)
