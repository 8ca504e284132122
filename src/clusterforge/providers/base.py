# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/providers/base.py

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..config.models import StateStoreCredentials, StateStoreDetails
from ..errors import ExternalCallError, NotFoundError, ProvisionError

log = logging.getLogger("clusterforge")


@dataclass(frozen=True)
class DomainRecord:
    name: str
    type: str
    data: str
    id: Optional[str] = None
    ttl: Optional[int] = None


class ProviderAdapter(ABC):
    """
    Cloud provider capabilities the provisioning pipeline needs.

    Subclasses talk to one provider's HTTP API through a shared
    `requests.Session` so tests can swap in a fake session.
    """

    name: str = ""
    api_base: str = ""

    def __init__(self, *, session: Optional[requests.Session] = None, timeout: int = 30):
        self.session = session or requests.Session()
        self.timeout = timeout

    # ------------------------------------------------------------------
    # HTTP helper
    # ------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        return {}

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.api_base}{path}"
        try:
            resp = self.session.request(
                method, url, headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise ExternalCallError(f"{self.name} api {method} {path} failed: {e}", cause=e) from e

        if resp.status_code == 404:
            raise NotFoundError(f"{self.name} api {method} {path}: not found")
        if resp.status_code >= 400:
            raise ExternalCallError(
                f"{self.name} api {method} {path} returned {resp.status_code}: {resp.text}"
            )
        return resp

    def _json(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        resp = self._request(method, path, **kwargs)
        if not resp.content:
            return {}
        return resp.json()

    # ------------------------------------------------------------------
    # Capabilities
    # ------------------------------------------------------------------

    @abstractmethod
    def list_dns_records(self, domain_name: str) -> List[DomainRecord]: ...

    @abstractmethod
    def create_txt_record(self, domain_name: str, name: str, value: str, ttl: int) -> DomainRecord: ...

    @abstractmethod
    def get_domain_info(self, domain_name: str) -> str: ...

    @abstractmethod
    def list_domains(self) -> List[str]: ...

    @abstractmethod
    def list_regions(self) -> List[str]: ...

    @abstractmethod
    def list_instance_types(self, region: str) -> List[str]: ...

    @abstractmethod
    def create_state_store(self, cluster_name: str) -> Tuple[StateStoreCredentials, StateStoreDetails]: ...

    @abstractmethod
    def terraform_env(self) -> Dict[str, str]:
        """Environment variables the provider's terraform modules read."""

    def test_domain_liveness(self, domain_name: str) -> bool:
        from .liveness import DomainLivenessProber

        try:
            DomainLivenessProber(self).probe(domain_name)
        except ProvisionError as e:
            log.error("domain %s is not live: %s", domain_name, e)
            return False
        return True

    def probe_apex_content(self, domain_name: str) -> bool:
        return probe_apex_content(domain_name, session=self.session)


def probe_apex_content(domain_name: str, *, session: Optional[requests.Session] = None) -> bool:
    """
    Whether something answers at the zone apex. Informational only: any
    response counts, errors just mean "no content".
    """
    session = session or requests.Session()
    exists = False
    for proto in ("http", "https"):
        fqdn = f"{proto}://{domain_name}"
        try:
            session.get(fqdn, timeout=5)
        except requests.RequestException:
            log.warning("domain %s has no apex content", fqdn)
        else:
            log.info("domain %s has apex content", fqdn)
            exists = True
    return exists
