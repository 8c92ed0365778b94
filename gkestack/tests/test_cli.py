"""
Test suite for the gkestack command line: exit codes and the files each
subcommand leaves behind.
"""

import json

import pytest

from gkestack.cli import main
from gkestack.generation.renderer import CONFIG_FILE, GROUP_FILE, TFVARS_FILE
from gkestack.tests.state_samples import applied_state, find_attributes


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "stack_config.yaml"
    path.write_text(
        "project:\n"
        "  id: acme-prod\n"
        "  region: us-central1\n"
        "settings:\n"
        "  log_level: WARNING\n"
    )
    return path


@pytest.fixture
def build_dir(tmp_path):
    return tmp_path / "build"


def _run(config_file, *args):
    return main(["--config", str(config_file), *args])


class TestListAndRender:
    def test_list(self, config_file, capsys):
        assert _run(config_file, "list") == 0

        out = capsys.readouterr().out
        assert "group network_cluster (enabled)" in out
        assert "template gke_node_pool: gke node pool (requires: cluster, node_identity)" in out

    def test_render_enabled_groups(self, config_file, build_dir):
        assert _run(config_file, "render", "--output", str(build_dir)) == 0

        for group in ("network_cluster", "artifact_registry"):
            assert (build_dir / group / CONFIG_FILE).exists()
            assert (build_dir / group / GROUP_FILE).exists()
        tfvars = json.loads((build_dir / "network_cluster" / TFVARS_FILE).read_text())
        assert tfvars == {"project_id": "acme-prod"}

    def test_render_single_group(self, config_file, build_dir):
        assert _run(config_file, "render", "--group", "artifact_registry", "--output", str(build_dir)) == 0

        assert (build_dir / "artifact_registry").is_dir()
        assert not (build_dir / "network_cluster").exists()

    def test_render_unknown_group(self, config_file, build_dir):
        assert _run(config_file, "render", "--group", "nope", "--output", str(build_dir)) == 2

    def test_invalid_config(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("network:\n  authorized_cidr: 0.0.0.0/0\n")

        assert main(["--config", str(path), "list"]) == 2

    def test_missing_config(self, tmp_path):
        assert main(["--config", str(tmp_path / "absent.yaml"), "list"]) == 2

    @pytest.mark.parametrize(
        "body",
        ["cluster:\n  node_count: two\n", "settings: verbose\n"],
    )
    def test_malformed_config_values(self, tmp_path, body):
        path = tmp_path / "bad.yaml"
        path.write_text(body)

        assert main(["--config", str(path), "list"]) == 2


class TestCheck:
    def test_rendered_group_passes(self, config_file, build_dir, capsys):
        _run(config_file, "render", "--output", str(build_dir))
        capsys.readouterr()

        assert _run(config_file, "check", str(build_dir / "network_cluster")) == 0
        assert capsys.readouterr().out.startswith("PASSED")

    def test_drifted_state_fails(self, config_file, build_dir, tmp_path, capsys):
        _run(config_file, "render", "--output", str(build_dir))
        state = applied_state()
        find_attributes(state, "google_container_cluster")["private_cluster_config"][0]["enable_private_endpoint"] = False
        state_path = tmp_path / "terraform.tfstate"
        state_path.write_text(json.dumps(state))
        capsys.readouterr()

        code = _run(
            config_file, "check", str(state_path),
            "--invariants", str(build_dir / "network_cluster"), "--json",
        )

        assert code == 1
        result = json.loads(capsys.readouterr().out)
        assert result["source_kind"] == "state"
        failed = [p["policy"] for p in result["policies"] if not p["passed"]]
        assert failed == ["private_cluster"]

    def test_single_policy_on_hcl_file(self, config_file, tmp_path):
        path = tmp_path / "main.tf"
        path.write_text(
            'resource "google_container_cluster" "primary" {\n'
            '  name = "secure-gke-cluster"\n'
            "  private_cluster_config {\n"
            "    enable_private_nodes    = true\n"
            "    enable_private_endpoint = false\n"
            "  }\n"
            "}\n"
        )

        assert _run(config_file, "check", str(path), "--policy", "private_cluster") == 1
        # Nothing in the file is a repository, so nothing was checked.
        assert _run(config_file, "check", str(path), "--policy", "registry_stable") == 1

    def test_empty_state_fails(self, config_file, tmp_path, capsys):
        path = tmp_path / "terraform.tfstate"
        path.write_text(json.dumps({"version": 4, "resources": []}))

        assert _run(config_file, "check", str(path)) == 1
        out = capsys.readouterr().out
        assert out.startswith("FAILED")
        assert "Checks: 0/0 passed" in out

    def test_no_checks_fails(self, config_file, tmp_path):
        path = tmp_path / "terraform.tfstate"
        path.write_text(json.dumps(applied_state()))

        assert _run(config_file, "check", str(path), "--no-policies") == 1

    def test_missing_invariants_file(self, config_file, tmp_path):
        path = tmp_path / "terraform.tfstate"
        path.write_text(json.dumps(applied_state()))
        empty = tmp_path / "empty"
        empty.mkdir()

        assert _run(config_file, "check", str(path), "--invariants", str(empty)) == 2


class TestEngineCommands:
    def test_plan_renders_and_plans(self, config_file, build_dir, fake_terraform):
        assert _run(config_file, "plan", "--group", "network_cluster", "--output", str(build_dir)) == 0

        group_dir = build_dir / "network_cluster"
        assert (group_dir / CONFIG_FILE).exists()
        calls = (group_dir / "calls.log").read_text().splitlines()
        assert [call.split()[0] for call in calls] == ["init", "plan"]

    def test_apply_then_verifies_state(self, config_file, build_dir, fake_terraform):
        group_dir = build_dir / "network_cluster"
        group_dir.mkdir(parents=True)
        (group_dir / "state.json").write_text(json.dumps(applied_state()))

        assert _run(config_file, "apply", "--group", "network_cluster", "--output", str(build_dir)) == 0

        calls = (group_dir / "calls.log").read_text().splitlines()
        assert [call.split()[0] for call in calls] == ["init", "plan", "apply", "state"]
        assert calls[2].endswith("tfplan")

    def test_verify_detects_drift(self, config_file, build_dir, fake_terraform):
        _run(config_file, "render", "--group", "network_cluster", "--output", str(build_dir))
        state = applied_state()
        find_attributes(state, "google_container_node_pool")["node_config"][0]["service_account"] = "default"
        (build_dir / "network_cluster" / "state.json").write_text(json.dumps(state))

        assert _run(config_file, "verify", "--group", "network_cluster", "--output", str(build_dir)) == 1

    def test_destroy_requires_render(self, config_file, build_dir, fake_terraform):
        assert _run(config_file, "destroy", "--group", "network_cluster", "--output", str(build_dir)) == 1

    def test_verify_without_group_file(self, config_file, build_dir, fake_terraform):
        (build_dir / "network_cluster").mkdir(parents=True)

        assert _run(config_file, "verify", "--group", "network_cluster", "--output", str(build_dir)) == 2

    def test_engine_failure_returns_one(self, config_file, build_dir, fake_terraform, monkeypatch):
        monkeypatch.setenv("FAKE_FAIL", "1")
        assert _run(config_file, "plan", "--group", "network_cluster", "--output", str(build_dir)) == 1
