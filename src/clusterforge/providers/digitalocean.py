# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/providers/digitalocean.py

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

import requests

from ..config.models import StateStoreCredentials, StateStoreDetails
from ..storage.object_storage import ObjectStorage
from .base import DomainRecord, ProviderAdapter

log = logging.getLogger("clusterforge")


class DigitaloceanProvider(ProviderAdapter):
    """Reference adapter: DigitalOcean API v2 + Spaces (S3-compatible)."""

    name = "digitalocean"
    api_base = "https://api.digitalocean.com/v2"
    page_size = 200

    def __init__(
        self,
        *,
        token: str,
        spaces_region: str = "nyc3",
        session: Optional[requests.Session] = None,
        object_storage: Optional[ObjectStorage] = None,
    ):
        super().__init__(session=session)
        self.token = token
        self.spaces_region = spaces_region
        self.object_storage = object_storage or ObjectStorage()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    def _paginate(self, path: str, key: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        page = 1
        while True:
            query = {"page": page, "per_page": self.page_size, **(params or {})}
            body = self._json("GET", path, params=query)
            yield from body.get(key, [])
            if not body.get("links", {}).get("pages", {}).get("next"):
                return
            page += 1

    # ------------------------------------------------------------------
    # DNS
    # ------------------------------------------------------------------

    def list_dns_records(self, domain_name: str) -> List[DomainRecord]:
        return [
            DomainRecord(
                id=str(r.get("id")),
                name=r.get("name", ""),
                type=r.get("type", ""),
                data=r.get("data", ""),
                ttl=r.get("ttl"),
            )
            for r in self._paginate(f"/domains/{domain_name}/records", "domain_records")
        ]

    def create_txt_record(self, domain_name: str, name: str, value: str, ttl: int) -> DomainRecord:
        body = self._json(
            "POST",
            f"/domains/{domain_name}/records",
            json={"type": "TXT", "name": name, "data": value, "ttl": ttl},
        )
        r = body.get("domain_record", {})
        return DomainRecord(id=str(r.get("id")), name=r.get("name", name), type="TXT", data=r.get("data", value), ttl=r.get("ttl", ttl))

    def get_domain_info(self, domain_name: str) -> str:
        return self._json("GET", f"/domains/{domain_name}")["domain"]["name"]

    def list_domains(self) -> List[str]:
        return [d["name"] for d in self._paginate("/domains", "domains")]

    # ------------------------------------------------------------------
    # Compute
    # ------------------------------------------------------------------

    def list_regions(self) -> List[str]:
        return [r["slug"] for r in self._paginate("/regions", "regions") if r.get("available", True)]

    def list_instance_types(self, region: str) -> List[str]:
        return [
            s["slug"]
            for s in self._paginate("/sizes", "sizes")
            if s.get("available", True) and region in s.get("regions", [])
        ]

    # ------------------------------------------------------------------
    # State store (Spaces)
    # ------------------------------------------------------------------

    def create_state_store(self, cluster_name: str) -> Tuple[StateStoreCredentials, StateStoreDetails]:
        key = self._json(
            "POST",
            "/spaces/keys",
            json={
                "name": f"{cluster_name}-state-store",
                "grants": [{"bucket": "", "permission": "fullaccess"}],
            },
        )["key"]

        credentials = StateStoreCredentials(
            access_key_id=key["access_key"],
            secret_access_key=key["secret_key"],
            name=key.get("name"),
        )
        details = StateStoreDetails(
            name=f"{cluster_name}-state-store",
            hostname=f"{self.spaces_region}.digitaloceanspaces.com",
            region=self.spaces_region,
        )
        self.object_storage.create_bucket(credentials, details)
        log.info("state store bucket %s ready on %s", details.name, details.hostname)
        return credentials, details

    def terraform_env(self) -> Dict[str, str]:
        return {
            "DIGITALOCEAN_TOKEN": self.token,
            "TF_VAR_do_token": self.token,
        }
