# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/controller/controller.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional

from ..config.models import ClusterDefinition
from ..errors import NotFoundError
from ..gitops.repository import GitopsRepository
from ..k8s.client import ControlPlaneClient
from ..observers.dispatcher import EventBus
from ..providers.base import ProviderAdapter
from ..providers.liveness import DomainLivenessProber
from ..store.interface import ClusterRecordStore
from ..store.models import ClusterRecord
from ..telemetry.shim import TelemetryClient
from ..terraform.runner import TerraformRunner
from ..tools.download import ToolsInstaller
from ..vault.client import VaultClient
from .cancel import CancelToken

log = logging.getLogger("clusterforge")

ARGOCD_NAMESPACE = "argocd"
ARGOCD_MANIFESTS = "https://github.com/kubefirst/manifests/argocd/cloud?ref=v1.1.0"
ARGOCD_ADMIN_SECRET = "argocd-initial-admin-secret"

VAULT_NAMESPACE = "vault"
VAULT_POD = "pod/vault-0"
VAULT_PORT = 8200
VAULT_LOCAL_ADDR = f"http://127.0.0.1:{VAULT_PORT}"
VAULT_UNSEAL_SECRET = "vault-unseal-secret"

STATE_STORE_SECRET = "clusterforge-state-store"
SETTLE_DELAY_SECONDS = 30


@dataclass
class Collaborators:
    """Every external dependency a provisioning run talks to."""

    store: ClusterRecordStore
    provider: ProviderAdapter
    tools: ToolsInstaller
    gitops: GitopsRepository
    terraform: TerraformRunner
    prober_factory: Callable[[CancelToken], DomainLivenessProber]
    control_plane_factory: Callable[[Path, Callable[[float], None]], ControlPlaneClient]
    vault_factory: Callable[[str], VaultClient]
    telemetry_factory: Callable[[ClusterRecord], TelemetryClient]
    bus: EventBus = field(default_factory=EventBus)


class ClusterController:
    """
    One provisioning run for one cluster definition.

    Each public method is a single stage action. Ordering, markers and
    failure handling live in `stages`; see `create.build_create_stages`.
    """

    def __init__(
        self,
        definition: ClusterDefinition,
        collaborators: Collaborators,
        *,
        cancel: Optional[CancelToken] = None,
        settle_seconds: float = SETTLE_DELAY_SECONDS,
    ):
        self.definition = definition
        self.c = collaborators
        self.cancel = cancel or CancelToken()
        self.settle_seconds = settle_seconds
        self._control_plane: Optional[ControlPlaneClient] = None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @property
    def cluster_name(self) -> str:
        return self.definition.cluster_name

    @property
    def store(self) -> ClusterRecordStore:
        return self.c.store

    def record(self) -> ClusterRecord:
        return self.store.get_record(self.cluster_name)

    def control_plane(self) -> ControlPlaneClient:
        if self._control_plane is None:
            self._control_plane = self.c.control_plane_factory(self.definition.kubeconfig_path, self.cancel.wait)
        return self._control_plane

    def terraform_dir(self, module: str) -> Path:
        return self.definition.gitops_dir / "terraform" / module

    def state_store_env(self) -> Dict[str, str]:
        creds = self.record().state_store_credentials
        if not creds:
            return {}
        return {
            "AWS_ACCESS_KEY_ID": creds.get("access_key_id", ""),
            "AWS_SECRET_ACCESS_KEY": creds.get("secret_access_key", ""),
        }

    def git_env(self) -> Dict[str, str]:
        d = self.definition
        prefix = d.git_provider.upper()
        return {f"{prefix}_TOKEN": d.git_token, f"{prefix}_OWNER": d.git_owner}

    def template_tokens(self) -> Dict[str, Any]:
        d = self.definition
        record = self.record()
        return {
            "cluster_name": d.cluster_name,
            "domain_name": d.domain_name,
            "cloud_provider": d.cloud_provider,
            "cloud_region": d.cloud_region,
            "node_type": d.node_type,
            "node_count": d.node_count,
            "git_provider": d.git_provider,
            "git_owner": d.git_owner,
            "gitops_repo_url": d.destination_gitops_repo_url,
            "state_store_bucket": record.state_store_details.get("name", ""),
            "state_store_hostname": record.state_store_details.get("hostname", ""),
            "cluster_id": record.id,
        }

    def vault_token(self) -> str:
        data = self.control_plane().read_secret(VAULT_NAMESPACE, VAULT_UNSEAL_SECRET)
        if "root-token" not in data:
            raise NotFoundError(f"{VAULT_NAMESPACE}/{VAULT_UNSEAL_SECRET} has no root-token")
        return data["root-token"]

    @contextmanager
    def vault_port_forward(self) -> Iterator[None]:
        tunnel = self.control_plane().open_port_forward(VAULT_POD, VAULT_NAMESPACE, VAULT_PORT, VAULT_PORT)
        try:
            yield
        finally:
            tunnel.close()

    # ------------------------------------------------------------------
    # record lifecycle
    # ------------------------------------------------------------------

    def init(self) -> None:
        try:
            record = self.record()
            log.info("resuming cluster %s (status=%r)", record.cluster_name, record.status)
        except NotFoundError:
            self.store.create_record(self.definition)
            log.info("cluster record %s created", self.cluster_name)

    def mark_in_progress(self) -> None:
        self.store.update_field(self.cluster_name, "in_progress", True)
        self.store.update_field(self.cluster_name, "status", "provisioning")

    def mark_provisioned(self) -> None:
        self.store.update_field(self.cluster_name, "status", "provisioned")
        self.store.update_field(self.cluster_name, "in_progress", False)

    # ------------------------------------------------------------------
    # pre-cluster stages
    # ------------------------------------------------------------------

    def download_tools(self) -> None:
        self.c.tools.install(self.definition.tools_dir)

    def domain_liveness(self) -> None:
        self.c.prober_factory(self.cancel).probe(self.definition.domain_name)

    def state_store_credentials(self) -> None:
        creds, details = self.c.provider.create_state_store(self.cluster_name)
        self.store.update_field(self.cluster_name, "state_store_credentials", creds.model_dump())
        self.store.update_field(self.cluster_name, "state_store_details", details.model_dump())

    def git_init(self) -> None:
        self.c.gitops.verify_owner()

    def bot_init(self) -> None:
        self.store.update_field(self.cluster_name, "git_auth", self.c.gitops.generate_bot_keypair())

    def repository_prep(self) -> None:
        self.c.gitops.prepare(self.template_tokens())

    def run_git_terraform(self) -> None:
        env = {**self.state_store_env(), **self.git_env()}
        env["TF_VAR_kbot_ssh_public_key"] = self.record().git_auth.get("public_key", "")
        self.c.terraform.apply(self.terraform_dir(self.definition.git_provider), env=env)

    def repository_push(self) -> None:
        self.c.gitops.push(self.record().git_auth.get("private_key", ""))

    def create_cluster(self) -> None:
        d = self.definition
        env = {**self.state_store_env(), **self.c.provider.terraform_env()}
        self.c.terraform.apply(
            self.terraform_dir(d.cloud_provider),
            variables={
                "cluster_name": d.cluster_name,
                "cluster_region": d.cloud_region,
                "node_type": d.node_type,
                "node_count": d.node_count,
                "kubeconfig_path": str(d.kubeconfig_path),
            },
            env=env,
        )

    def flag_cluster_apply_failed(self, exc: BaseException) -> None:
        self.store.update_field(self.cluster_name, "cloud_terraform_apply_failed_check", True)

    def settle_delay(self) -> None:
        log.info("waiting %ss for the new control plane to settle", self.settle_seconds)
        self.cancel.wait(self.settle_seconds)

    # ------------------------------------------------------------------
    # in-cluster stages
    # ------------------------------------------------------------------

    def cluster_secrets_bootstrap(self) -> None:
        d = self.definition
        record = self.record()
        cp = self.control_plane()
        for ns in (ARGOCD_NAMESPACE, VAULT_NAMESPACE, d.console_namespace):
            cp.ensure_namespace(ns)

        creds = record.state_store_credentials
        details = record.state_store_details
        cp.apply_secret(d.console_namespace, STATE_STORE_SECRET, {
            "access-key-id": creds.get("access_key_id", ""),
            "secret-access-key": creds.get("secret_access_key", ""),
            "bucket": details.get("name", ""),
            "hostname": details.get("hostname", ""),
        })
        cp.apply_secret(
            ARGOCD_NAMESPACE,
            "repo-credentials-template",
            {
                "type": "git",
                "name": f"{d.git_owner}-gitops",
                "url": d.destination_gitops_repo_url,
                "sshPrivateKey": record.git_auth.get("private_key", ""),
            },
            labels={"argocd.argoproj.io/secret-type": "repo-creds"},
        )

    def tls_restore(self) -> None:
        secrets_dir = self.definition.ssl_backup_dir / "secrets"
        manifests = sorted(p for p in secrets_dir.glob("*.y*ml")) if secrets_dir.is_dir() else []
        if not manifests:
            log.info("no tls backup under %s, skipping restore", secrets_dir)
            return
        cp = self.control_plane()
        for manifest in manifests:
            cp.apply_manifest(manifest)
        log.info("restored %d tls secret(s) from %s", len(manifests), secrets_dir)

    def install_gitops_controller(self) -> None:
        cp = self.control_plane()
        cp.apply_kustomize(ARGOCD_MANIFESTS)
        server = cp.find_deployment("app.kubernetes.io/name", "argocd-server", ARGOCD_NAMESPACE, 600)
        cp.wait_ready(server, 600)

    def initialize_gitops_controller(self) -> None:
        data = self.control_plane().read_secret(ARGOCD_NAMESPACE, ARGOCD_ADMIN_SECRET)
        self.store.update_field(self.cluster_name, "argocd_username", "admin")
        self.store.update_field(self.cluster_name, "argocd_password", data.get("password", ""))

    def deploy_registry_app(self) -> None:
        d = self.definition
        body = {
            "apiVersion": "argoproj.io/v1alpha1",
            "kind": "Application",
            "metadata": {"name": "registry", "namespace": ARGOCD_NAMESPACE},
            "spec": {
                "project": "default",
                "source": {
                    "repoURL": d.destination_gitops_repo_url,
                    "path": f"registry/{d.cluster_name}",
                    "targetRevision": "HEAD",
                },
                "destination": {"server": "https://kubernetes.default.svc", "namespace": ARGOCD_NAMESPACE},
                "syncPolicy": {"automated": {"prune": True, "selfHeal": True}, "syncOptions": ["CreateNamespace=true"]},
            },
        }
        self.control_plane().create_custom_object("argoproj.io", "v1alpha1", ARGOCD_NAMESPACE, "applications", body)

    def wait_for_secrets_vault(self) -> None:
        cp = self.control_plane()
        vault = cp.find_statefulset("app.kubernetes.io/instance", "vault", VAULT_NAMESPACE, 1200)
        cp.wait_ready(vault, 600)

    def initialize_secrets_vault(self) -> None:
        with self.vault_port_forward():
            vault = self.c.vault_factory(VAULT_LOCAL_ADDR)
            if vault.initialized():
                log.info("vault already initialized")
                return
            init = vault.initialize()
            unseal_key = (init.get("keys_base64") or init.get("keys") or [""])[0]
            vault.unseal(unseal_key)
            self.control_plane().apply_secret(VAULT_NAMESPACE, VAULT_UNSEAL_SECRET, {
                "root-token": init.get("root_token", ""),
                "unseal-key": unseal_key,
            })

    def _vault_env(self) -> Dict[str, str]:
        return {**self.state_store_env(), "VAULT_ADDR": VAULT_LOCAL_ADDR, "VAULT_TOKEN": self.vault_token()}

    def run_vault_terraform(self) -> None:
        self.c.terraform.apply(self.terraform_dir("vault"), env=self._vault_env())

    def run_users_terraform(self) -> None:
        env = {**self._vault_env(), **self.git_env()}
        self.c.terraform.apply(self.terraform_dir("users"), env=env)

    def wait_for_console_ready(self) -> None:
        d = self.definition
        cp = self.control_plane()
        console = cp.find_deployment("app.kubernetes.io/instance", d.console_instance, d.console_namespace, 600)
        cp.wait_ready(console, 120)
