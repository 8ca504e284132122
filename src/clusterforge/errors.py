# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/errors.py
from __future__ import annotations

from typing import Optional


class ProvisionError(RuntimeError):
    """Base class for every failure raised by clusterforge."""

    def __init__(self, message: str, *, stage: Optional[str] = None):
        super().__init__(message)
        self.stage = stage


class NotFoundError(ProvisionError):
    """A cluster record, environment or provider domain does not exist."""


class AlreadyExistsError(ProvisionError):
    """A record with the same name is already stored."""


class InvalidFieldError(ProvisionError):
    """The field is not a recognised checkpoint key, or its value is invalid."""


class InvalidInputError(ProvisionError):
    """Malformed identifier or definition input (e.g. a non-hex record id)."""


class ExternalCallError(ProvisionError):
    """A collaborator call failed (store, object storage, DNS, terraform, control plane)."""

    def __init__(self, message: str, *, cause: Optional[BaseException] = None, stage: Optional[str] = None):
        super().__init__(message, stage=stage)
        if cause is not None:
            self.__cause__ = cause


class DomainNotLiveError(ProvisionError):
    """The liveness marker record never resolved within the retry budget."""


class DNSRecordCreateError(ProvisionError):
    """The liveness marker record could not be created."""


class LeaseHeldError(ProvisionError):
    """Another run currently holds the provisioning lease for this cluster."""


class ProvisionCancelledError(ProvisionError):
    """The run was cancelled or its deadline passed."""
