# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/controller/create.py
from __future__ import annotations

import logging
import os
import socket
from typing import List, Optional

from ..config.models import ClusterDefinition
from ..errors import ProvisionCancelledError
from ..observers.events import RunStarted, RunSummary, new_ctx
from ..store.models import ClusterRecord
from ..telemetry.shim import METRIC_MGMT_CLUSTER_INSTALL_COMPLETED, transmit
from .cancel import CancelToken
from .controller import ClusterController, Collaborators
from .stages import Stage, StageRunner, StageScope, Step, stage_names

log = logging.getLogger("clusterforge")

DEFAULT_LEASE_TTL_SECONDS = 4 * 60 * 60


def build_create_stages(ctrl: ClusterController) -> List[Step]:
    """The management cluster pipeline, in execution order."""
    return [
        Stage("init", ctrl.init),
        Stage("mark-in-progress", ctrl.mark_in_progress),
        Stage("download-tools", ctrl.download_tools, "install_tools_check"),
        Stage("domain-liveness", ctrl.domain_liveness, "domain_liveness_check"),
        Stage("state-store-credentials", ctrl.state_store_credentials, "state_store_creds_check"),
        Stage("git-init", ctrl.git_init, "git_init_check"),
        Stage("bot-init", ctrl.bot_init, "kbot_setup_check"),
        Stage("repository-prep", ctrl.repository_prep, "gitops_ready_check"),
        Stage("run-git-terraform", ctrl.run_git_terraform, "git_terraform_apply_check"),
        Stage("repository-push", ctrl.repository_push, "gitops_pushed_check"),
        Stage("create-cluster", ctrl.create_cluster, "cloud_terraform_apply_check",
              on_failure=ctrl.flag_cluster_apply_failed),
        Stage("settle-delay", ctrl.settle_delay),
        Stage("cluster-secrets-bootstrap", ctrl.cluster_secrets_bootstrap, "cluster_secrets_created_check"),
        Stage("tls-restore", ctrl.tls_restore),
        Stage("install-gitops-controller", ctrl.install_gitops_controller, "argocd_install_check"),
        Stage("initialize-gitops-controller", ctrl.initialize_gitops_controller, "argocd_initialize_check"),
        Stage("deploy-registry-app", ctrl.deploy_registry_app, "argocd_create_registry_check"),
        Stage("wait-for-secrets-vault", ctrl.wait_for_secrets_vault),
        Stage("initialize-secrets-vault", ctrl.initialize_secrets_vault, "vault_initialized_check"),
        StageScope("vault-port-forward", ctrl.vault_port_forward, [
            Stage("run-vault-terraform", ctrl.run_vault_terraform, "vault_terraform_apply_check"),
            Stage("run-users-terraform", ctrl.run_users_terraform, "users_terraform_apply_check"),
        ]),
        Stage("wait-for-console-ready", ctrl.wait_for_console_ready),
        Stage("mark-provisioned", ctrl.mark_provisioned),
    ]


def _default_holder(run_id: str) -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{run_id}"


def create_cluster(
    definition: ClusterDefinition,
    collaborators: Collaborators,
    *,
    cancel: Optional[CancelToken] = None,
    run_id: Optional[str] = None,
    holder: Optional[str] = None,
    lease_ttl_seconds: int = DEFAULT_LEASE_TTL_SECONDS,
    settle_seconds: Optional[float] = None,
) -> ClusterRecord:
    """
    Provision (or resume provisioning) the cluster described by `definition`.

    Returns the final record. Any stage failure propagates unchanged after
    `in_progress` has been reset; the per-cluster lease is always released.
    """
    store = collaborators.store
    bus = collaborators.bus
    name = definition.cluster_name
    ctx = new_ctx(name, definition.cloud_provider, run_id)
    run_id = ctx["run_id"]
    holder = holder or _default_holder(run_id)

    kwargs = {"cancel": cancel}
    if settle_seconds is not None:
        kwargs["settle_seconds"] = settle_seconds
    ctrl = ClusterController(definition, collaborators, **kwargs)
    steps = build_create_stages(ctrl)
    runner = StageRunner(
        store=store,
        cluster_name=name,
        provider=definition.cloud_provider,
        cancel=ctrl.cancel,
        bus=bus,
        run_id=run_id,
    )

    store.acquire_lease(name, holder, lease_ttl_seconds)
    log.info("lease for %s acquired by %s", name, holder)
    try:
        bus.emit(RunStarted(stages=stage_names(steps), **ctx))
        try:
            report = runner.run(steps)
        except BaseException as e:
            cancelled = isinstance(e, (ProvisionCancelledError, KeyboardInterrupt))
            status = "CANCELLED" if cancelled else "FAILED"
            bus.emit(RunSummary(
                status=status,
                completed=runner.report.completed,
                skipped=runner.report.skipped,
                failed_stage=runner.report.failed_stage,
                error=str(e),
                **new_ctx(name, definition.cloud_provider, run_id),
            ))
            raise
    finally:
        store.release_lease(name, holder)
        log.debug("lease for %s released by %s", name, holder)

    record = store.get_record(name)
    client = collaborators.telemetry_factory(record)
    try:
        transmit(record.use_telemetry, client, METRIC_MGMT_CLUSTER_INSTALL_COMPLETED, "")
    finally:
        client.close()

    bus.emit(RunSummary(
        status="PROVISIONED",
        completed=report.completed,
        skipped=report.skipped,
        **new_ctx(name, definition.cloud_provider, run_id),
    ))
    log.info("cluster %s provisioned", name)
    return record
