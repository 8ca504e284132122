# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/tools/download.py
from __future__ import annotations

import io
import logging
import platform
import stat
import zipfile
from pathlib import Path
from typing import Optional

import requests

from ..errors import ExternalCallError

log = logging.getLogger("clusterforge")

KUBECTL_URL = "https://dl.k8s.io/release/{version}/bin/{os}/{arch}/kubectl"
TERRAFORM_URL = "https://releases.hashicorp.com/terraform/{version}/terraform_{version}_{os}_{arch}.zip"


def _platform() -> tuple[str, str]:
    system = platform.system().lower()
    machine = platform.machine().lower()
    arch = {"x86_64": "amd64", "amd64": "amd64", "aarch64": "arm64", "arm64": "arm64"}.get(machine, machine)
    return system, arch


def _make_executable(path: Path) -> None:
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


class ToolsInstaller:
    """
    Downloads the kubectl and terraform binaries a run shells out to.

    Binaries land in `tools_dir`; an existing binary is left alone.
    """

    def __init__(
        self,
        *,
        kubectl_version: str,
        terraform_version: str,
        session: Optional[requests.Session] = None,
        timeout: int = 120,
    ):
        self.kubectl_version = kubectl_version
        self.terraform_version = terraform_version
        self.session = session or requests.Session()
        self.timeout = timeout

    def _fetch(self, url: str) -> bytes:
        log.debug("downloading %s", url)
        try:
            resp = self.session.get(url, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ExternalCallError(f"error downloading {url}: {e}", cause=e) from e
        return resp.content

    def kubectl_path(self, tools_dir: Path) -> Path:
        return Path(tools_dir) / "kubectl"

    def terraform_path(self, tools_dir: Path) -> Path:
        return Path(tools_dir) / "terraform"

    def install_kubectl(self, tools_dir: Path) -> Path:
        target = self.kubectl_path(tools_dir)
        if target.exists():
            return target
        os_name, arch = _platform()
        target.write_bytes(self._fetch(KUBECTL_URL.format(version=self.kubectl_version, os=os_name, arch=arch)))
        _make_executable(target)
        log.info("kubectl %s installed at %s", self.kubectl_version, target)
        return target

    def install_terraform(self, tools_dir: Path) -> Path:
        target = self.terraform_path(tools_dir)
        if target.exists():
            return target
        os_name, arch = _platform()
        payload = self._fetch(TERRAFORM_URL.format(version=self.terraform_version, os=os_name, arch=arch))
        try:
            with zipfile.ZipFile(io.BytesIO(payload)) as zf:
                target.write_bytes(zf.read("terraform"))
        except (zipfile.BadZipFile, KeyError) as e:
            raise ExternalCallError(f"terraform archive for {self.terraform_version} is unusable: {e}", cause=e) from e
        _make_executable(target)
        log.info("terraform %s installed at %s", self.terraform_version, target)
        return target

    def install(self, tools_dir: Path) -> None:
        tools_dir = Path(tools_dir)
        tools_dir.mkdir(parents=True, exist_ok=True)
        log.info("installing dependencies into %s", tools_dir)
        self.install_kubectl(tools_dir)
        self.install_terraform(tools_dir)
        log.info("download dependencies `%s` complete", tools_dir)
