import pytest

from clusterforge.controller.cancel import CancelToken
from clusterforge.controller.controller import ClusterController
from clusterforge.controller.create import build_create_stages, create_cluster
from clusterforge.controller.stages import stage_names
from clusterforge.errors import (
    ExternalCallError,
    LeaseHeldError,
    NotFoundError,
    ProvisionCancelledError,
)
from clusterforge.observers.events import RunSummary
from clusterforge.store.models import ClusterRecord

EXPECTED_ORDER = [
    "init",
    "mark-in-progress",
    "download-tools",
    "domain-liveness",
    "state-store-credentials",
    "git-init",
    "bot-init",
    "repository-prep",
    "run-git-terraform",
    "repository-push",
    "create-cluster",
    "settle-delay",
    "cluster-secrets-bootstrap",
    "tls-restore",
    "install-gitops-controller",
    "initialize-gitops-controller",
    "deploy-registry-app",
    "wait-for-secrets-vault",
    "initialize-secrets-vault",
    "run-vault-terraform",
    "run-users-terraform",
    "wait-for-console-ready",
    "mark-provisioned",
]


def run(definition, harness, **kwargs):
    kwargs.setdefault("settle_seconds", 0)
    return create_cluster(definition, harness.collaborators(), **kwargs)


def test_stage_order(definition, harness):
    ctrl = ClusterController(definition, harness.collaborators())
    assert stage_names(build_create_stages(ctrl)) == EXPECTED_ORDER


def test_full_run_provisions_cluster(definition, harness):
    record = run(definition, harness)

    assert record.status == "provisioned"
    assert record.in_progress is False
    for marker in ClusterRecord.marker_fields():
        expected = marker != "cloud_terraform_apply_failed_check"
        assert getattr(record, marker) is expected, marker

    assert harness.prober.probed == ["example.com"]
    assert harness.capture.names("StageSucceeded") == EXPECTED_ORDER
    assert [m for m, _, _ in harness.terraform.applied] == ["github", "digitalocean", "vault", "users"]
    assert record.argocd_password == "argo-pw"
    assert harness.gitops.pushed_with.startswith("-----BEGIN RSA")
    assert harness.vault.unsealed_with == "unseal-key"
    assert harness.control_plane.secrets[("vault", "vault-unseal-secret")]["root-token"] == "root-token"
    assert all(t.close_calls == 1 for t in harness.control_plane.tunnels)
    assert len(harness.control_plane.tunnels) == 2
    assert harness.store.get_lease("kf-mgmt") is None

    summary = [e for e in harness.capture.events if isinstance(e, RunSummary)]
    assert summary[-1].status == "PROVISIONED"


def test_create_cluster_failure_propagates_same_error(definition, make_harness, fake_terraform):
    err = ExternalCallError("apply exploded")
    harness = make_harness(terraform=fake_terraform(fail_on="digitalocean", error=err))

    with pytest.raises(ExternalCallError) as ei:
        run(definition, harness)

    assert ei.value is err
    assert err.stage == "create-cluster"
    record = harness.store.get_record("kf-mgmt")
    assert record.in_progress is False
    assert record.status == "provisioning"
    assert record.cloud_terraform_apply_check is False
    assert record.cloud_terraform_apply_failed_check is True
    assert "settle-delay" not in harness.capture.names("StageStarted")
    assert harness.telemetry == []
    assert harness.store.get_lease("kf-mgmt") is None


FAILING_METHODS = [
    "mark_in_progress",
    "download_tools",
    "domain_liveness",
    "state_store_credentials",
    "git_init",
    "bot_init",
    "repository_prep",
    "run_git_terraform",
    "repository_push",
    "create_cluster",
    "settle_delay",
    "cluster_secrets_bootstrap",
    "tls_restore",
    "install_gitops_controller",
    "initialize_gitops_controller",
    "deploy_registry_app",
    "wait_for_secrets_vault",
    "initialize_secrets_vault",
    "run_vault_terraform",
    "run_users_terraform",
    "wait_for_console_ready",
    "mark_provisioned",
]


@pytest.mark.parametrize("method", FAILING_METHODS)
def test_any_stage_failure_resets_in_progress(definition, harness, monkeypatch, method):
    err = ExternalCallError(f"{method} failed")

    def boom(self):
        raise err

    monkeypatch.setattr(ClusterController, method, boom)

    with pytest.raises(ExternalCallError) as ei:
        run(definition, harness)

    assert ei.value is err
    assert ei.value.stage == method.replace("_", "-")
    assert harness.store.get_record("kf-mgmt").in_progress is False
    assert harness.capture.names("StageFailed") == [method.replace("_", "-")]
    assert harness.telemetry == []
    assert all(t.close_calls == 1 for t in harness.control_plane.tunnels)


def test_init_failure_without_record(definition, harness, monkeypatch):
    def boom(self):
        raise ExternalCallError("store unreachable")

    monkeypatch.setattr(ClusterController, "init", boom)

    with pytest.raises(ExternalCallError):
        run(definition, harness)

    with pytest.raises(NotFoundError):
        harness.store.get_record("kf-mgmt")


def test_completed_stages_are_skipped_on_resume(definition, harness):
    harness.store.create_record(definition)
    harness.store.update_field("kf-mgmt", "install_tools_check", True)
    harness.store.update_field("kf-mgmt", "domain_liveness_check", True)

    record = run(definition, harness)

    assert record.status == "provisioned"
    assert harness.tools.calls == []
    assert harness.prober.probed == []
    assert harness.capture.names("StageSkipped") == ["download-tools", "domain-liveness"]


def test_resume_after_vault_stages_opens_no_port_forward(definition, harness):
    harness.store.create_record(definition)
    for marker in ClusterRecord.marker_fields():
        if marker != "cloud_terraform_apply_failed_check":
            harness.store.update_field("kf-mgmt", marker, True)

    record = run(definition, harness)

    assert record.status == "provisioned"
    assert harness.control_plane.tunnels == []
    assert harness.terraform.applied == []


def test_vault_terraform_failure_closes_port_forward_once(definition, make_harness, fake_terraform):
    harness = make_harness(terraform=fake_terraform(fail_on="vault"))

    with pytest.raises(ExternalCallError):
        run(definition, harness)

    # one tunnel for vault init, one for the terraform scope
    assert len(harness.control_plane.tunnels) == 2
    assert [t.close_calls for t in harness.control_plane.tunnels] == [1, 1]
    assert "users" not in [m for m, _, _ in harness.terraform.applied]
    assert harness.store.get_record("kf-mgmt").in_progress is False


def test_port_forward_open_failure_resets_in_progress(definition, harness):
    harness.store.create_record(definition)
    harness.store.update_field("kf-mgmt", "vault_initialized_check", True)
    harness.control_plane.fail_port_forward = True

    with pytest.raises(ExternalCallError) as ei:
        run(definition, harness)

    assert ei.value.stage == "vault-port-forward"
    assert harness.store.get_record("kf-mgmt").in_progress is False


def test_cancellation_stops_before_next_stage(definition, harness):
    token = CancelToken()
    harness.tools.install = lambda tools_dir: token.cancel()

    with pytest.raises(ProvisionCancelledError):
        run(definition, harness, cancel=token)

    record = harness.store.get_record("kf-mgmt")
    assert record.in_progress is False
    assert harness.prober.probed == []
    assert harness.store.get_lease("kf-mgmt") is None
    summary = [e for e in harness.capture.events if isinstance(e, RunSummary)]
    assert summary[-1].status == "CANCELLED"


def test_held_lease_rejects_second_run(definition, harness):
    harness.store.acquire_lease("kf-mgmt", "someone-else", 600)

    with pytest.raises(LeaseHeldError):
        run(definition, harness)

    with pytest.raises(NotFoundError):
        harness.store.get_record("kf-mgmt")
    assert harness.store.get_lease("kf-mgmt").holder == "someone-else"


def test_telemetry_sent_once_on_success(definition, harness):
    run(definition, harness)

    assert len(harness.telemetry) == 1
    client = harness.telemetry[0]
    assert client.tracked == ["mgmt_cluster_install_completed"]
    assert client.closed is True


def test_telemetry_disabled_still_closes_client(make_definition, harness):
    run(make_definition(use_telemetry=False), harness)

    assert harness.telemetry[0].tracked == []
    assert harness.telemetry[0].closed is True


def test_tls_restore_applies_saved_secrets(definition, harness):
    secrets_dir = definition.ssl_backup_dir / "secrets"
    secrets_dir.mkdir(parents=True)
    (secrets_dir / "a-tls.yaml").write_text("kind: Secret\n")
    (secrets_dir / "b-tls.yaml").write_text("kind: Secret\n")

    run(definition, harness)

    assert [p.name for p in harness.control_plane.applied_manifests] == ["a-tls.yaml", "b-tls.yaml"]


def test_interrupt_mid_stage_resets_in_progress(definition, harness, monkeypatch):
    def interrupted(self):
        raise KeyboardInterrupt

    monkeypatch.setattr(ClusterController, "domain_liveness", interrupted)

    with pytest.raises(KeyboardInterrupt):
        run(definition, harness)

    assert harness.store.get_record("kf-mgmt").in_progress is False
    assert harness.store.get_lease("kf-mgmt") is None
    assert harness.capture.names("StageFailed") == ["domain-liveness"]
    summary = [e for e in harness.capture.events if isinstance(e, RunSummary)]
    assert summary[-1].status == "CANCELLED"


def test_interrupt_inside_vault_scope_closes_tunnel(definition, harness, monkeypatch):
    def interrupted(self):
        raise KeyboardInterrupt

    monkeypatch.setattr(ClusterController, "run_users_terraform", interrupted)

    with pytest.raises(KeyboardInterrupt):
        run(definition, harness)

    assert [t.close_calls for t in harness.control_plane.tunnels] == [1, 1]
    assert harness.store.get_record("kf-mgmt").in_progress is False


def test_failing_apply_flag_still_resets_in_progress(definition, make_harness, fake_terraform, monkeypatch):
    err = ExternalCallError("apply exploded")
    harness = make_harness(terraform=fake_terraform(fail_on="digitalocean", error=err))

    def flag_write_fails(self, exc):
        raise ExternalCallError("store write failed")

    monkeypatch.setattr(ClusterController, "flag_cluster_apply_failed", flag_write_fails)

    with pytest.raises(ExternalCallError) as ei:
        run(definition, harness)

    assert ei.value is err
    assert harness.store.get_record("kf-mgmt").in_progress is False
    assert harness.store.get_lease("kf-mgmt") is None
