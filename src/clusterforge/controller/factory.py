# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/controller/factory.py

from __future__ import annotations

from typing import Optional

from ..config.models import ClusterDefinition
from ..config.settings import Settings
from ..gitops.repository import GitopsRepository
from ..k8s.client import ControlPlaneClient
from ..observers.dispatcher import EventBus
from ..providers.liveness import DomainLivenessProber, make_backup_resolver
from ..providers.registry import build_provider
from ..storage.object_storage import ObjectStorage
from ..store.filestore import JsonFileStore
from ..store.interface import ClusterRecordStore
from ..telemetry.shim import setup_telemetry
from ..terraform.runner import TerraformRunner
from ..tools.download import ToolsInstaller
from ..vault.client import VaultClient
from .controller import Collaborators


def build_collaborators(
    definition: ClusterDefinition,
    settings: Settings,
    *,
    store: Optional[ClusterRecordStore] = None,
    bus: Optional[EventBus] = None,
) -> Collaborators:
    """Wire the real implementations for a local provisioning run."""
    provider = build_provider(definition, object_storage=ObjectStorage())
    tools = ToolsInstaller(
        kubectl_version=settings.kubectl_version,
        terraform_version=settings.terraform_version,
    )
    kubectl = tools.kubectl_path(definition.tools_dir)
    backup = make_backup_resolver(settings.backup_resolver)

    return Collaborators(
        store=store or JsonFileStore(settings.state_dir),
        provider=provider,
        tools=tools,
        gitops=GitopsRepository(definition),
        terraform=TerraformRunner(binary=tools.terraform_path(definition.tools_dir)),
        prober_factory=lambda cancel: DomainLivenessProber(provider, backup_resolver=backup, cancel=cancel),
        control_plane_factory=lambda kubeconfig, sleep: ControlPlaneClient(
            kubeconfig, sleep=sleep, kubectl_binary=kubectl
        ),
        vault_factory=VaultClient,
        telemetry_factory=lambda record: setup_telemetry(record, settings),
        bus=bus or EventBus(),
    )
