# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/k8s/portforward.py
from __future__ import annotations

import logging
import socket
import subprocess
import threading
import time
from typing import Callable, List, Optional

from ..errors import ExternalCallError

log = logging.getLogger("clusterforge")


class PortForwardTunnel:
    """
    `kubectl port-forward` running in the background.

    `stop` is set exactly once by `close()`; later calls are no-ops, so the
    tunnel can be closed from a `finally` and from an error path safely.
    """

    def __init__(
        self,
        argv: List[str],
        *,
        local_port: int,
        ready_timeout: float = 15,
        popen: Callable[..., subprocess.Popen] = subprocess.Popen,
        probe: Optional[Callable[[int], bool]] = None,
    ):
        self.argv = argv
        self.local_port = local_port
        self.ready_timeout = ready_timeout
        self._popen = popen
        self._probe = probe or _port_open
        self._proc: Optional[subprocess.Popen] = None
        self._lock = threading.Lock()
        self.stop = threading.Event()

    @property
    def closed(self) -> bool:
        return self.stop.is_set()

    def start(self) -> "PortForwardTunnel":
        log.info("opening port-forward: %s", " ".join(self.argv))
        try:
            self._proc = self._popen(
                self.argv,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
            )
        except OSError as e:
            self.stop.set()
            raise ExternalCallError(f"could not start port-forward: {e}", cause=e) from e

        deadline = time.monotonic() + self.ready_timeout
        while time.monotonic() < deadline:
            if self._proc.poll() is not None:
                err = self._proc.stderr.read() if self._proc.stderr else ""
                self.close()
                raise ExternalCallError(f"port-forward exited early (rc={self._proc.returncode}): {err}")
            if self._probe(self.local_port):
                return self
            time.sleep(0.25)

        self.close()
        raise ExternalCallError(f"port-forward on localhost:{self.local_port} not ready after {self.ready_timeout}s")

    def close(self) -> None:
        with self._lock:
            if self.stop.is_set():
                return
            self.stop.set()

        if self._proc is None or self._proc.poll() is not None:
            return
        self._proc.terminate()
        try:
            self._proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            self._proc.kill()
        log.info("port-forward on localhost:%s closed", self.local_port)

    def __enter__(self) -> "PortForwardTunnel":
        return self

    def __exit__(self, *exc) -> bool:
        self.close()
        return False


def _port_open(port: int) -> bool:
    try:
        with socket.create_connection(("127.0.0.1", port), timeout=0.5):
            return True
    except OSError:
        return False
