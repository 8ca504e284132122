from pathlib import Path

import pytest

from clusterforge.config.models import ClusterDefinition, DigitaloceanConfig


@pytest.fixture
def make_definition(tmp_path: Path):
    def _make(**overrides) -> ClusterDefinition:
        fields = dict(
            cluster_name="kf-mgmt",
            domain_name="example.com",
            cloud_region="nyc3",
            node_type="s-4vcpu-8gb",
            git_owner="acme",
            git_token="ghp_test",
            provider=DigitaloceanConfig(token="do-token"),
            k1_dir=tmp_path / "k1",
        )
        fields.update(overrides)
        return ClusterDefinition(**fields)

    return _make


@pytest.fixture
def definition(make_definition) -> ClusterDefinition:
    return make_definition()
