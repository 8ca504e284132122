# src/clusterforge/store/models.py

from __future__ import annotations

import re
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

from ..config.models import ClusterDefinition

ClusterStatus = Literal["", "provisioning", "provisioned", "error"]

_HEX_ID = re.compile(r"^[0-9a-f]{24}$")


def new_id() -> str:
    """24 hex chars, the same shape as a document store object id."""
    return secrets.token_hex(12)


def is_valid_id(value: str) -> bool:
    return bool(_HEX_ID.match(value or ""))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ClusterRecord(BaseModel):
    id: str = Field(default_factory=new_id)
    cluster_name: str

    status: ClusterStatus = ""
    in_progress: bool = False

    # Denormalized from the definition (telemetry + listing)
    cloud_provider: str = ""
    cloud_region: str = ""
    domain_name: str = ""
    git_provider: str = ""
    git_owner: str = ""
    use_telemetry: bool = True
    creation_timestamp: datetime = Field(default_factory=utcnow)
    last_updated: datetime = Field(default_factory=utcnow)

    # Stage markers
    install_tools_check: bool = False
    domain_liveness_check: bool = False
    state_store_creds_check: bool = False
    git_init_check: bool = False
    kbot_setup_check: bool = False
    gitops_ready_check: bool = False
    git_terraform_apply_check: bool = False
    gitops_pushed_check: bool = False
    cloud_terraform_apply_check: bool = False
    cloud_terraform_apply_failed_check: bool = False
    cluster_secrets_created_check: bool = False
    argocd_install_check: bool = False
    argocd_initialize_check: bool = False
    argocd_create_registry_check: bool = False
    vault_initialized_check: bool = False
    vault_terraform_apply_check: bool = False
    users_terraform_apply_check: bool = False

    # Stage outputs
    state_store_credentials: Dict[str, Any] = Field(default_factory=dict)
    state_store_details: Dict[str, Any] = Field(default_factory=dict)
    git_auth: Dict[str, str] = Field(default_factory=dict)
    argocd_username: str = ""
    argocd_password: str = ""

    @classmethod
    def from_definition(cls, definition: ClusterDefinition) -> "ClusterRecord":
        return cls(
            cluster_name=definition.cluster_name,
            cloud_provider=definition.cloud_provider,
            cloud_region=definition.cloud_region,
            domain_name=definition.domain_name,
            git_provider=definition.git_provider,
            git_owner=definition.git_owner,
            use_telemetry=definition.use_telemetry,
        )

    @classmethod
    def checkpoint_fields(cls) -> set[str]:
        """Fields `update_field` may touch. Identity fields are fixed at creation."""
        return set(cls.model_fields) - {"id", "cluster_name", "creation_timestamp"}

    @classmethod
    def marker_fields(cls) -> list[str]:
        return [n for n in cls.model_fields if n.endswith("_check")]


class Lease(BaseModel):
    cluster_name: str
    holder: str
    expires_at: datetime

    def expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class Environment(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    color: str = ""
    description: str = ""
    creation_timestamp: datetime = Field(default_factory=utcnow)


class EnvironmentUpdate(BaseModel):
    color: Optional[str] = None
    description: Optional[str] = None
