# src/clusterforge/telemetry/shim.py

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from ..config.settings import Settings
from ..store.models import ClusterRecord

log = logging.getLogger("clusterforge")

METRIC_MGMT_CLUSTER_INSTALL_COMPLETED = "mgmt_cluster_install_completed"


class TelemetryClient:
    """
    Posts usage events to an HTTP collector. Delivery is best effort:
    `track` logs failures and never raises.
    """

    def __init__(
        self,
        endpoint: str,
        write_key: str,
        *,
        properties: Optional[Dict[str, Any]] = None,
        session: Optional[requests.Session] = None,
        timeout: int = 5,
    ):
        self.endpoint = endpoint
        self.write_key = write_key
        self.properties = dict(properties or {})
        self.session = session or requests.Session()
        self.timeout = timeout
        self.closed = False

    def track(self, event: str, error: str = "") -> bool:
        if self.closed:
            log.debug("telemetry client closed, dropping %s", event)
            return False
        payload = {
            "event": event,
            "userId": self.properties.get("cluster_id", ""),
            "properties": {**self.properties, "error": error},
        }
        try:
            resp = self.session.post(self.endpoint, json=payload, auth=(self.write_key, ""), timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            log.debug("telemetry event %s not delivered: %s", event, e)
            return False
        return True

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.session.close()


def setup_telemetry(record: ClusterRecord, settings: Settings) -> TelemetryClient:
    return TelemetryClient(
        settings.telemetry_endpoint,
        settings.telemetry_write_key,
        properties={
            "cluster_id": record.id,
            "cluster_type": "mgmt",
            "cloud_provider": record.cloud_provider,
            "domain": record.domain_name,
            "git_provider": record.git_provider,
        },
    )


def transmit(use_telemetry: bool, client: Optional[TelemetryClient], event: str, error: str = "") -> None:
    if not use_telemetry or client is None:
        return
    try:
        client.track(event, error)
    except Exception as e:
        # telemetry must never fail a run
        log.debug("telemetry transmit of %s failed: %s", event, e)
