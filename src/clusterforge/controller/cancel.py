# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/controller/cancel.py
from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from ..errors import ProvisionCancelledError


class CancelToken:
    """
    Cancellation + deadline shared by every stage of one run.

    `wait()` replaces `time.sleep()` in stages and pollers so a cancelled run
    stops at the next wait instead of after the full delay.
    """

    def __init__(
        self,
        *,
        timeout_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._event = threading.Event()
        self._clock = clock
        self._deadline = clock() + timeout_seconds if timeout_seconds is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and self._clock() >= self._deadline

    def raise_if_cancelled(self, where: str = "") -> None:
        if self.cancelled:
            reason = "deadline exceeded" if not self._event.is_set() else "cancelled"
            suffix = f" before {where}" if where else ""
            raise ProvisionCancelledError(f"provisioning {reason}{suffix}")

    def wait(self, seconds: float) -> None:
        self.raise_if_cancelled()
        timeout = seconds
        if self._deadline is not None:
            timeout = max(0.0, min(seconds, self._deadline - self._clock()))
        self._event.wait(timeout)
        self.raise_if_cancelled()
