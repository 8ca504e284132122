# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/providers/liveness.py

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Callable, List, Optional

import dns.exception
import dns.resolver

from ..errors import DNSRecordCreateError, DomainNotLiveError, ProvisionError

if TYPE_CHECKING:
    from ..controller.cancel import CancelToken
    from .base import ProviderAdapter

log = logging.getLogger("clusterforge")

LIVENESS_RECORD_NAME = "clusterforge-liveness"
LIVENESS_RECORD_VALUE = "domain record propagated"
LIVENESS_RECORD_TTL = 600

DEFAULT_ATTEMPTS = 100
DEFAULT_INTERVAL_SECONDS = 10
DEFAULT_BACKUP_NAMESERVER = "8.8.8.8"

# Resolves a TXT name to its values; raises on lookup failure.
Resolver = Callable[[str], List[str]]

_LOOKUP_ERRORS = (dns.exception.DNSException, OSError)


def _txt_values(answer) -> List[str]:
    return [b"".join(rdata.strings).decode("utf-8", "replace") for rdata in answer]


def system_resolver(name: str) -> List[str]:
    return _txt_values(dns.resolver.resolve(name, "TXT"))


def make_backup_resolver(nameserver: str = DEFAULT_BACKUP_NAMESERVER) -> Resolver:
    resolver = dns.resolver.Resolver(configure=False)
    resolver.nameservers = [nameserver]

    def _resolve(name: str) -> List[str]:
        return _txt_values(resolver.resolve(name, "TXT"))

    return _resolve


class DomainLivenessProber:
    """
    Confirms DNS for a freshly delegated domain has propagated.

    A throwaway TXT record is created at `<marker>.<domain>` (unless one is
    already there) and resolved until it answers or the attempt budget runs
    out. Worst case is roughly attempts x interval (about 17 minutes).
    """

    def __init__(
        self,
        provider: "ProviderAdapter",
        *,
        resolver: Optional[Resolver] = None,
        backup_resolver: Optional[Resolver] = None,
        sleep: Optional[Callable[[float], None]] = None,
        cancel: Optional["CancelToken"] = None,
        attempts: int = DEFAULT_ATTEMPTS,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
    ):
        self.provider = provider
        self.resolver = resolver or system_resolver
        self.backup_resolver = backup_resolver or make_backup_resolver()
        self.cancel = cancel
        self.attempts = attempts
        self.interval_seconds = interval_seconds

        if sleep is not None:
            self._sleep = sleep
        elif cancel is not None:
            self._sleep = cancel.wait
        else:
            self._sleep = time.sleep

    def _marker_exists(self, domain_name: str) -> bool:
        for record in self.provider.list_dns_records(domain_name):
            if record.type == "TXT" and record.name == LIVENESS_RECORD_NAME:
                return True
        return False

    def _resolve(self, fqdn: str) -> Optional[List[str]]:
        try:
            return self.resolver(fqdn)
        except _LOOKUP_ERRORS as e:
            log.debug("system resolver failed for %s: %s, trying backup resolver", fqdn, e)
        try:
            return self.backup_resolver(fqdn)
        except _LOOKUP_ERRORS as e:
            log.warning(
                "could not get record name %s - waiting %s seconds and trying again: %s",
                fqdn, self.interval_seconds, e,
            )
            return None

    def probe(self, domain_name: str) -> None:
        log.info("checking to see if liveness record exists for %s", domain_name)
        if self._marker_exists(domain_name):
            log.info("liveness record already present for %s", domain_name)
            return

        try:
            self.provider.create_txt_record(
                domain_name, LIVENESS_RECORD_NAME, LIVENESS_RECORD_VALUE, LIVENESS_RECORD_TTL
            )
        except ProvisionError as e:
            raise DNSRecordCreateError(
                f"could not create liveness record for {domain_name}: {e}"
            ) from e
        log.info("domain record created")

        fqdn = f"{LIVENESS_RECORD_NAME}.{domain_name}"
        for attempt in range(1, self.attempts + 1):
            if self.cancel is not None:
                self.cancel.raise_if_cancelled("domain liveness attempt")

            values = self._resolve(fqdn)
            if values is not None:
                for value in values:
                    log.info("%s. in TXT record value: %s", fqdn, value)
                log.info("domain %s is live after %d attempt(s)", domain_name, attempt)
                return

            if attempt < self.attempts:
                self._sleep(self.interval_seconds)

        raise DomainNotLiveError(
            f"unable to resolve {fqdn} after {self.attempts} attempts. "
            "please check your domain registrar and NS records"
        )
