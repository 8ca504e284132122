# src/clusterforge/k8s/kubectl.py

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from ..errors import ExternalCallError

log = logging.getLogger("clusterforge")


class KubectlRunner:
    """
    Local kubectl, pinned to one kubeconfig.
    """

    def __init__(self, *, kubeconfig: str | Path, binary: str | Path = "kubectl"):
        self.kubeconfig = str(kubeconfig)
        self.binary = str(binary)

    def base(self) -> List[str]:
        return [self.binary, "--kubeconfig", self.kubeconfig]

    def _run(self, args: List[str]) -> str:
        argv = self.base() + args
        log.debug("[kubectl] $ %s", " ".join(argv))
        try:
            cp = subprocess.run(argv, check=False, text=True, capture_output=True)
        except OSError as e:
            raise ExternalCallError(f"could not execute kubectl: {e}", cause=e) from e
        if cp.returncode != 0:
            raise ExternalCallError(f"kubectl {' '.join(args)} failed: {cp.stderr or cp.stdout}")
        return cp.stdout

    def apply_kustomize(self, target: str) -> None:
        self._run(["apply", "-k", target])

    def apply_file(self, path: str | Path, *, namespace: Optional[str] = None) -> None:
        args = ["apply", "-f", str(path)]
        if namespace:
            args += ["-n", namespace]
        self._run(args)
