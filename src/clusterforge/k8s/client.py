# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/k8s/client.py
from __future__ import annotations

import base64
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from ..errors import ExternalCallError, NotFoundError
from .kubectl import KubectlRunner
from .portforward import PortForwardTunnel

log = logging.getLogger("clusterforge")

POLL_SECONDS = 5


class ControlPlaneClient:
    """
    The control-plane operations the provisioning pipeline needs, against
    one cluster's kubeconfig.
    """

    def __init__(
        self,
        kubeconfig: str | Path,
        *,
        api_client: Optional[client.ApiClient] = None,
        sleep: Callable[[float], None] = time.sleep,
        kubectl_binary: str | Path = "kubectl",
    ):
        self.kubeconfig = str(kubeconfig)
        self.api_client = api_client or config.new_client_from_config(config_file=self.kubeconfig)
        self.core = client.CoreV1Api(self.api_client)
        self.apps = client.AppsV1Api(self.api_client)
        self.custom = client.CustomObjectsApi(self.api_client)
        self.kubectl = KubectlRunner(kubeconfig=self.kubeconfig, binary=kubectl_binary)
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Workloads
    # ------------------------------------------------------------------

    def _find(self, lister, kind: str, selector_key: str, selector_value: str, namespace: str, timeout_seconds: int):
        selector = f"{selector_key}={selector_value}"
        end = time.monotonic() + timeout_seconds
        while True:
            try:
                items = lister(namespace=namespace, label_selector=selector).items
            except ApiException as e:
                log.debug("listing %s %s in %s: %s", kind, selector, namespace, e.reason)
                items = []
            if items:
                return items[0]
            if time.monotonic() >= end:
                raise NotFoundError(f"no {kind} matching {selector} in namespace {namespace} after {timeout_seconds}s")
            self._sleep(POLL_SECONDS)

    def find_deployment(self, selector_key: str, selector_value: str, namespace: str, timeout_seconds: int):
        return self._find(self.apps.list_namespaced_deployment, "deployment", selector_key, selector_value, namespace, timeout_seconds)

    def find_statefulset(self, selector_key: str, selector_value: str, namespace: str, timeout_seconds: int):
        return self._find(self.apps.list_namespaced_stateful_set, "statefulset", selector_key, selector_value, namespace, timeout_seconds)

    def wait_ready(self, workload, timeout_seconds: int) -> None:
        name = workload.metadata.name
        namespace = workload.metadata.namespace
        if isinstance(workload, client.V1StatefulSet):
            reader = self.apps.read_namespaced_stateful_set_status
        else:
            reader = self.apps.read_namespaced_deployment_status

        log.info("waiting for %s/%s to be ready", namespace, name)
        end = time.monotonic() + timeout_seconds
        while True:
            try:
                current = reader(name=name, namespace=namespace)
                desired = current.spec.replicas or 1
                ready = current.status.ready_replicas or 0
                if ready >= desired:
                    log.info("%s/%s ready (%d/%d)", namespace, name, ready, desired)
                    return
            except ApiException as e:
                log.debug("reading %s/%s: %s", namespace, name, e.reason)
            if time.monotonic() >= end:
                raise ExternalCallError(f"timed out after {timeout_seconds}s waiting for {namespace}/{name} to be ready")
            self._sleep(POLL_SECONDS)

    # ------------------------------------------------------------------
    # Namespaces / secrets / custom objects
    # ------------------------------------------------------------------

    def ensure_namespace(self, name: str) -> None:
        try:
            self.core.create_namespace(client.V1Namespace(metadata=client.V1ObjectMeta(name=name)))
            log.info("namespace %s created", name)
        except ApiException as e:
            if e.status != 409:
                raise ExternalCallError(f"error creating namespace {name}: {e.reason}", cause=e) from e

    def apply_secret(
        self, namespace: str, name: str, data: Dict[str, str], *, labels: Optional[Dict[str, str]] = None
    ) -> None:
        body = client.V1Secret(
            metadata=client.V1ObjectMeta(name=name, namespace=namespace, labels=labels),
            string_data=data,
            type="Opaque",
        )
        try:
            self.core.create_namespaced_secret(namespace=namespace, body=body)
        except ApiException as e:
            if e.status != 409:
                raise ExternalCallError(f"error creating secret {namespace}/{name}: {e.reason}", cause=e) from e
            try:
                self.core.replace_namespaced_secret(name=name, namespace=namespace, body=body)
            except ApiException as e2:
                raise ExternalCallError(f"error replacing secret {namespace}/{name}: {e2.reason}", cause=e2) from e2
        log.info("secret %s/%s applied", namespace, name)

    def read_secret(self, namespace: str, name: str) -> Dict[str, str]:
        try:
            secret = self.core.read_namespaced_secret(name=name, namespace=namespace)
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(f"secret {namespace}/{name} not found") from e
            raise ExternalCallError(f"error reading secret {namespace}/{name}: {e.reason}", cause=e) from e
        return {k: base64.b64decode(v).decode("utf-8") for k, v in (secret.data or {}).items()}

    def create_custom_object(self, group: str, version: str, namespace: str, plural: str, body: Dict[str, Any]) -> None:
        name = body.get("metadata", {}).get("name")
        try:
            self.custom.create_namespaced_custom_object(group, version, namespace, plural, body)
        except ApiException as e:
            if e.status == 409:
                log.info("%s %s/%s already exists", plural, namespace, name)
                return
            raise ExternalCallError(f"error creating {plural} {namespace}/{name}: {e.reason}", cause=e) from e
        log.info("%s %s/%s created", plural, namespace, name)

    # ------------------------------------------------------------------
    # kubectl-backed operations
    # ------------------------------------------------------------------

    def apply_kustomize(self, target: str) -> None:
        self.kubectl.apply_kustomize(target)

    def apply_manifest(self, path: str | Path) -> None:
        self.kubectl.apply_file(path)

    def open_port_forward(self, resource: str, namespace: str, local_port: int, remote_port: int) -> PortForwardTunnel:
        argv = self.kubectl.base() + ["-n", namespace, "port-forward", resource, f"{local_port}:{remote_port}"]
        return PortForwardTunnel(argv, local_port=local_port).start()
