# src/clusterforge/vault/client.py

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from ..errors import ExternalCallError

log = logging.getLogger("clusterforge")


class VaultClient:
    """Just enough of the Vault HTTP API to initialise and unseal a fresh server."""

    def __init__(self, addr: str, *, session: Optional[requests.Session] = None, timeout: int = 30):
        self.addr = addr.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _call(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.addr}/v1/{path.lstrip('/')}"
        try:
            resp = self.session.request(method, url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExternalCallError(f"vault {method} {path} failed: {e}", cause=e) from e
        if resp.status_code >= 400:
            raise ExternalCallError(f"vault {method} {path} returned {resp.status_code}: {resp.text}")
        return resp.json() if resp.content else {}

    def initialized(self) -> bool:
        return bool(self._call("GET", "sys/init").get("initialized"))

    def initialize(self, *, shares: int = 1, threshold: int = 1) -> Dict[str, Any]:
        log.info("initializing vault at %s", self.addr)
        return self._call("PUT", "sys/init", {"secret_shares": shares, "secret_threshold": threshold})

    def unseal(self, key: str) -> bool:
        sealed = self._call("PUT", "sys/unseal", {"key": key}).get("sealed", True)
        log.info("vault unseal submitted, sealed=%s", sealed)
        return not sealed
