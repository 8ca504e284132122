# src/clusterforge/providers/registry.py

from __future__ import annotations

from typing import Optional

from ..config.models import ClusterDefinition, DigitaloceanConfig, VultrConfig
from ..errors import InvalidInputError
from ..storage.object_storage import ObjectStorage
from .base import ProviderAdapter
from .digitalocean import DigitaloceanProvider
from .vultr import VultrProvider


def build_provider(
    definition: ClusterDefinition,
    *,
    object_storage: Optional[ObjectStorage] = None,
) -> ProviderAdapter:
    match definition.provider:
        case DigitaloceanConfig(token=token, spaces_region=spaces_region):
            return DigitaloceanProvider(
                token=token,
                spaces_region=spaces_region,
                object_storage=object_storage,
            )
        case VultrConfig(api_key=api_key):
            return VultrProvider(
                api_key=api_key,
                region=definition.cloud_region,
                object_storage=object_storage,
            )
        case other:
            raise InvalidInputError(f"unsupported cloud provider {other!r}")
