# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/clusterforge/config/models.py

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class DigitaloceanConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    cloud_provider: Literal["digitalocean"] = "digitalocean"
    token: str
    spaces_region: str = "nyc3"


class VultrConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    cloud_provider: Literal["vultr"] = "vultr"
    api_key: str


# One payload per provider, selected by `cloud_provider`.
ProviderConfig = Annotated[
    Union[DigitaloceanConfig, VultrConfig],
    Field(discriminator="cloud_provider"),
]


class ClusterDefinition(BaseModel):
    """Everything a caller supplies once, at the start of a provisioning run."""

    model_config = ConfigDict(frozen=True)

    cluster_name: str = Field(pattern=r"^[a-z0-9]([a-z0-9-]{0,61}[a-z0-9])?$")
    domain_name: str
    cloud_region: str
    node_type: str
    node_count: int = Field(default=3, ge=1)

    git_provider: Literal["github", "gitlab"] = "github"
    git_owner: str
    git_token: str

    use_telemetry: bool = True
    provider: ProviderConfig

    gitops_template_url: str = "https://github.com/kubefirst/gitops-template.git"
    gitops_template_branch: str = "main"
    gitops_template_dir: Optional[Path] = None

    console_namespace: str = "kubefirst"
    console_instance: str = "kubefirst-console"

    k1_dir: Optional[Path] = None

    @property
    def cloud_provider(self) -> str:
        return self.provider.cloud_provider

    @property
    def base_dir(self) -> Path:
        if self.k1_dir is not None:
            return Path(self.k1_dir)
        return Path.home() / ".clusterforge" / self.cluster_name

    @property
    def tools_dir(self) -> Path:
        return self.base_dir / "tools"

    @property
    def gitops_dir(self) -> Path:
        return self.base_dir / "gitops"

    @property
    def ssl_backup_dir(self) -> Path:
        return self.base_dir / "ssl" / self.domain_name

    @property
    def kubeconfig_path(self) -> Path:
        return self.base_dir / "kubeconfig"

    @property
    def destination_gitops_repo_url(self) -> str:
        host = "github.com" if self.git_provider == "github" else "gitlab.com"
        return f"git@{host}:{self.git_owner}/gitops.git"


class StateStoreCredentials(BaseModel):
    access_key_id: str
    secret_access_key: str
    name: Optional[str] = None
    id: Optional[str] = None


class StateStoreDetails(BaseModel):
    name: str
    hostname: str
    region: Optional[str] = None


class PushBucketObject(BaseModel):
    local_file_path: Path
    remote_file_path: str
    content_type: str = "application/octet-stream"
