from pathlib import Path
import textwrap

import pytest

from clusterforge.config.loader import load_definition
from clusterforge.config.models import VultrConfig
from clusterforge.errors import InvalidInputError


DEFINITION = textwrap.dedent("""
    cluster_name: kf-mgmt
    domain_name: example.com
    cloud_region: nyc3
    node_type: s-4vcpu-8gb
    git_owner: acme
    git_token: ${TEST_GIT_TOKEN}
    provider:
      cloud_provider: digitalocean
      token: ""
""")


def test_load_definition_merges_secrets_and_env(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("CLUSTERFORGE_SECRETS_FILE", raising=False)
    monkeypatch.setenv("TEST_GIT_TOKEN", "ghp_from_env")
    (tmp_path / "cluster.yaml").write_text(DEFINITION)
    (tmp_path / "secrets.yaml").write_text("provider:\n  token: do-secret\n")

    d = load_definition(tmp_path / "cluster.yaml")

    assert d.cluster_name == "kf-mgmt"
    assert d.git_token == "ghp_from_env"
    assert d.provider.token == "do-secret"
    assert d.cloud_provider == "digitalocean"
    assert d.node_count == 3


def test_load_definition_selects_vultr_variant(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("CLUSTERFORGE_SECRETS_FILE", raising=False)
    f = tmp_path / "cluster.yaml"
    f.write_text(textwrap.dedent("""
        cluster_name: kf-vultr
        domain_name: example.com
        cloud_region: ewr
        node_type: vc2-4c-8gb
        git_owner: acme
        git_token: t
        provider:
          cloud_provider: vultr
          api_key: vk
    """))

    d = load_definition(f)

    assert isinstance(d.provider, VultrConfig)
    assert d.cloud_provider == "vultr"


def test_invalid_cluster_name_is_rejected(tmp_path: Path, monkeypatch):
    monkeypatch.delenv("CLUSTERFORGE_SECRETS_FILE", raising=False)
    monkeypatch.setenv("TEST_GIT_TOKEN", "t")
    f = tmp_path / "cluster.yaml"
    f.write_text(DEFINITION.replace("kf-mgmt", "Not_A_Label"))

    with pytest.raises(InvalidInputError):
        load_definition(f)


def test_derived_paths(definition):
    base = definition.k1_dir
    assert definition.tools_dir == base / "tools"
    assert definition.gitops_dir == base / "gitops"
    assert definition.ssl_backup_dir == base / "ssl" / "example.com"
    assert definition.destination_gitops_repo_url == "git@github.com:acme/gitops.git"
