"""
Pytest configuration and shared fixtures for all tests.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the repo root is on `sys.path` so top-level imports work without an install.
repo_root = Path(__file__).resolve().parents[1]
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from gkestack.generation.yaml_config import StackConfig, reset_stack_config


def pytest_addoption(parser):
    """Add custom pytest command-line options."""
    parser.addoption(
        "--run-terraform-tests",
        action="store_true",
        default=False,
        help="Run tests that need a terraform (or tofu) binary on PATH",
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-terraform-tests"):
        return
    skip = pytest.mark.skip(reason="needs --run-terraform-tests")
    for item in items:
        if "terraform_binary" in item.keywords:
            item.add_marker(skip)


def pytest_configure(config):
    config.addinivalue_line("markers", "terraform_binary: test shells out to a real terraform binary")


@pytest.fixture(autouse=True)
def cleanup_stack_config(monkeypatch):
    """
    Automatically reset the global configuration after each test so tests
    never see each other's config (or the developer's GKESTACK_CONFIG).
    """
    monkeypatch.delenv("GKESTACK_CONFIG", raising=False)
    yield
    reset_stack_config()


@pytest.fixture
def stack_config() -> StackConfig:
    """Default configuration with a project id filled in."""
    return StackConfig.from_dict({"project": {"id": "acme-prod", "region": "us-central1"}})


@pytest.fixture
def network_group(stack_config):
    from gkestack.generation.terraform.providers.gcp import network_cluster_group

    return network_cluster_group.build_group(stack_config)


@pytest.fixture
def registry_group(stack_config):
    from gkestack.generation.terraform.providers.gcp import artifact_registry_group

    return artifact_registry_group.build_group(stack_config)


FAKE_TERRAFORM = """#!/bin/sh
echo "$@" >> calls.log
case "$1" in
  validate)
    echo '{"valid": true, "error_count": 0, "warning_count": 0}'
    ;;
  state)
    cat state.json 2>/dev/null || true
    ;;
  plan)
    if [ -n "$FAKE_FAIL" ]; then
      echo "Error: Invalid reference" >&2
      exit 1
    fi
    echo "Plan: 10 to add, 0 to change, 0 to destroy."
    ;;
  *)
    echo "ok"
    ;;
esac
"""


@pytest.fixture
def fake_terraform(tmp_path, monkeypatch):
    """
    Shell script named `terraform` placed first on PATH. It appends its
    arguments to calls.log in the working directory and serves state.json
    from there for `state pull`.
    """
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "terraform"
    script.write_text(FAKE_TERRAFORM)
    script.chmod(0o755)
    monkeypatch.setenv("PATH", f"{bin_dir}:/usr/bin:/bin")
    return script
