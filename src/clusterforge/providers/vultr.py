# src/clusterforge/providers/vultr.py

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import requests

from ..config.models import StateStoreCredentials, StateStoreDetails
from ..errors import ExternalCallError
from ..storage.object_storage import ObjectStorage
from .base import DomainRecord, ProviderAdapter

log = logging.getLogger("clusterforge")


class VultrProvider(ProviderAdapter):
    name = "vultr"
    api_base = "https://api.vultr.com/v2"

    def __init__(
        self,
        *,
        api_key: str,
        region: str,
        session: Optional[requests.Session] = None,
        object_storage: Optional[ObjectStorage] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        super().__init__(session=session)
        self.api_key = api_key
        self.region = region
        self.object_storage = object_storage or ObjectStorage()
        self._sleep = sleep

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _paginate(self, path: str, key: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        cursor = ""
        while True:
            query = {"per_page": 500, **(params or {})}
            if cursor:
                query["cursor"] = cursor
            body = self._json("GET", path, params=query)
            yield from body.get(key, [])
            cursor = body.get("meta", {}).get("links", {}).get("next", "")
            if not cursor:
                return

    def list_dns_records(self, domain_name: str) -> List[DomainRecord]:
        return [
            DomainRecord(id=r.get("id"), name=r.get("name", ""), type=r.get("type", ""), data=r.get("data", ""), ttl=r.get("ttl"))
            for r in self._paginate(f"/domains/{domain_name}/records", "records")
        ]

    def create_txt_record(self, domain_name: str, name: str, value: str, ttl: int) -> DomainRecord:
        body = self._json(
            "POST",
            f"/domains/{domain_name}/records",
            json={"name": name, "type": "TXT", "data": value, "ttl": ttl, "priority": 100},
        )
        r = body.get("record", {})
        return DomainRecord(id=r.get("id"), name=name, type="TXT", data=value, ttl=ttl)

    def get_domain_info(self, domain_name: str) -> str:
        return self._json("GET", f"/domains/{domain_name}")["domain"]["domain"]

    def list_domains(self) -> List[str]:
        return [d["domain"] for d in self._paginate("/domains", "domains")]

    def list_regions(self) -> List[str]:
        return [r["id"] for r in self._paginate("/regions", "regions")]

    def list_instance_types(self, region: str) -> List[str]:
        # plan "locations" lists the regions a plan can be deployed to
        return [
            p["id"]
            for p in self._paginate("/plans", "plans")
            if not p.get("locations") or region in p["locations"]
        ]

    def _object_storage_cluster(self) -> Dict[str, Any]:
        clusters = [c for c in self._paginate("/object-storage/clusters", "clusters") if c.get("deploy", "yes") == "yes"]
        if not clusters:
            raise ExternalCallError("vultr has no deployable object storage clusters")
        for c in clusters:
            if c.get("region") == self.region:
                return c
        return clusters[0]

    def create_state_store(
        self, cluster_name: str, *, attempts: int = 30, interval_seconds: float = 10
    ) -> Tuple[StateStoreCredentials, StateStoreDetails]:
        cluster = self._object_storage_cluster()
        store = self._json(
            "POST",
            "/object-storage",
            json={"cluster_id": cluster["id"], "label": f"{cluster_name}-state-store"},
        )["object_storage"]

        for _ in range(attempts):
            if store.get("status") == "active":
                break
            log.info("waiting for vultr object storage %s to become active", store["id"])
            self._sleep(interval_seconds)
            store = self._json("GET", f"/object-storage/{store['id']}")["object_storage"]
        else:
            raise ExternalCallError(f"vultr object storage {store['id']} never became active")

        credentials = StateStoreCredentials(
            access_key_id=store["s3_access_key"],
            secret_access_key=store["s3_secret_key"],
            id=store["id"],
            name=store.get("label"),
        )
        details = StateStoreDetails(
            name=f"{cluster_name}-state-store",
            hostname=store["s3_hostname"],
            region=cluster.get("region"),
        )
        self.object_storage.create_bucket(credentials, details)
        return credentials, details

    def terraform_env(self) -> Dict[str, str]:
        return {
            "VULTR_API_KEY": self.api_key,
            "TF_VAR_vultr_api_key": self.api_key,
        }
