"""
Test suite for YAML stack configuration loading and validation.
"""

import pytest

from gkestack.generation.yaml_config import (
    ConfigError,
    StackConfig,
    default_config_path,
    get_stack_config,
    is_unrestricted,
    reset_stack_config,
    set_stack_config,
)


class TestLoading:
    def test_packaged_default_loads(self):
        config = StackConfig.from_yaml(default_config_path())

        assert config.network.pods_cidr == "10.20.0.0/16"
        assert config.network.services_cidr == "10.30.0.0/20"
        assert config.network.master_cidr == "172.16.0.0/28"
        assert config.cluster.release_channel == "STABLE"
        assert config.cluster.node_count == 2
        assert config.registry.repository_id == "wiz-images"
        assert config.registry.format == "DOCKER"
        assert config.is_group_enabled("network_cluster")
        assert config.is_group_enabled("artifact_registry")

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "stack_config.yaml"
        path.write_text("")

        config = StackConfig.from_yaml(path)

        assert config.project.region == "us-central1"
        assert config.settings.output.path == "build"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            StackConfig.from_yaml(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("project: [unclosed")

        with pytest.raises(ConfigError, match="Invalid YAML"):
            StackConfig.from_yaml(path)

    def test_unknown_key_is_config_error(self):
        with pytest.raises(ConfigError, match="cluster"):
            StackConfig.from_dict({"cluster": {"node_cuont": 3}})

    def test_group_flags_accept_bool_shorthand(self):
        config = StackConfig.from_dict({"groups": {"artifact_registry": False}})

        assert not config.is_group_enabled("artifact_registry")
        assert config.is_group_enabled("network_cluster")
        assert config.get_enabled_groups(["network_cluster", "artifact_registry"]) == ["network_cluster"]


class TestValidation:
    @pytest.mark.parametrize("cidr", ["0.0.0.0/0", "::/0"])
    def test_unrestricted_authorized_cidr_rejected(self, cidr):
        with pytest.raises(ConfigError, match="unrestricted"):
            StackConfig.from_dict({"network": {"authorized_cidr": cidr}})

    def test_overlapping_secondary_ranges_rejected(self):
        with pytest.raises(ConfigError, match="overlaps"):
            StackConfig.from_dict({"network": {"services_cidr": "10.20.128.0/20"}})

    def test_secondary_range_overlapping_primary_rejected(self):
        with pytest.raises(ConfigError, match="subnet_cidr overlaps"):
            StackConfig.from_dict({"network": {"subnet_cidr": "10.0.0.0/8"}})

    def test_malformed_cidr_rejected(self):
        with pytest.raises(ConfigError, match="invalid CIDR"):
            StackConfig.from_dict({"network": {"master_cidr": "172.16.0.0/33"}})

    def test_host_bits_rejected(self):
        with pytest.raises(ConfigError, match="invalid CIDR"):
            StackConfig.from_dict({"network": {"pods_cidr": "10.20.0.1/16"}})

    def test_node_count_must_be_positive(self):
        with pytest.raises(ConfigError, match="node_count"):
            StackConfig.from_dict({"cluster": {"node_count": 0}})

    def test_non_numeric_sizing_rejected(self):
        with pytest.raises(ConfigError, match="cluster.node_count: expected an integer"):
            StackConfig.from_dict({"cluster": {"node_count": "two"}})
        with pytest.raises(ConfigError, match="cluster.disk_size_gb"):
            StackConfig.from_dict({"cluster": {"disk_size_gb": None}})

    def test_numeric_strings_coerced(self):
        config = StackConfig.from_dict({"cluster": {"node_count": "3"}})
        assert config.cluster.node_count == 3

    @pytest.mark.parametrize(
        "data",
        [
            {"settings": "verbose"},
            {"settings": {"terraform": "terraform"}},
            {"settings": {"output": ["build"]}},
            {"groups": ["network_cluster"]},
        ],
    )
    def test_non_mapping_sections_rejected(self, data):
        with pytest.raises(ConfigError, match="expected a mapping"):
            StackConfig.from_dict(data)

    def test_is_unrestricted(self):
        assert is_unrestricted("0.0.0.0/0")
        assert not is_unrestricted("10.0.0.0/8")
        assert not is_unrestricted("not-a-cidr")


class TestGlobalConfig:
    def test_env_var_wins(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("project:\n  id: from-env\n")
        monkeypatch.setenv("GKESTACK_CONFIG", str(path))

        assert get_stack_config().project.id == "from-env"

    def test_cached_until_reset(self, tmp_path, monkeypatch):
        config = StackConfig.from_dict({"project": {"id": "pinned"}})
        set_stack_config(config)
        assert get_stack_config() is config

        reset_stack_config()
        monkeypatch.chdir(tmp_path)
        assert get_stack_config() is not config
