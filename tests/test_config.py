"""Tests for configuration loading."""

import json

import pytest

from djournal.config import (
    JournalConfig,
    dict_to_config,
    find_config_file,
    load_config,
    load_json_config,
    load_toml_config,
)


class TestFindConfigFile:
    """Tests for find_config_file."""

    def test_finds_toml_first(self, temp_root):
        """TOML config wins over JSON."""
        (temp_root / "djournal.toml").write_text("")
        (temp_root / "djournal.json").write_text("{}")

        assert find_config_file(temp_root).name == "djournal.toml"

    def test_finds_json_config(self, temp_root):
        (temp_root / "djournal.json").write_text("{}")
        assert find_config_file(temp_root).name == "djournal.json"

    def test_finds_dotfile_config(self, temp_root):
        (temp_root / ".djournal.toml").write_text("")
        assert find_config_file(temp_root).name == ".djournal.toml"

    def test_returns_none_if_no_config(self, temp_root):
        assert find_config_file(temp_root) is None


class TestLoaders:
    def test_loads_toml(self, temp_root):
        path = temp_root / "djournal.toml"
        path.write_text('[storage]\nbackend = "memory"\n')
        assert load_toml_config(path) == {"storage": {"backend": "memory"}}

    def test_loads_json(self, temp_root):
        path = temp_root / "djournal.json"
        path.write_text(json.dumps({"limits": {"max_image_mb": 5}}))
        assert load_json_config(path)["limits"]["max_image_mb"] == 5


class TestDictToConfig:
    """Tests for dict_to_config."""

    def test_defaults(self, temp_root):
        config = dict_to_config({}, temp_root)
        assert config.storage_backend == "sqlite"
        assert config.max_image_bytes == 20 * 1024 * 1024
        assert config.strict_counter_values is False
        assert config.default_retention.to_dict() == {"maxDays": 30, "maxCount": 100}
        assert config.get_database_path() == temp_root / "data" / "djournal.db"
        assert config.get_exports_path() == temp_root / "exports"

    def test_all_sections(self, temp_root):
        config = dict_to_config(
            {
                "storage": {"backend": "memory", "data_dir": "state", "database": "j.db"},
                "exports": {"directory": "out"},
                "limits": {"max_image_mb": 2},
                "counters": {"strict": True},
                "retention": {"max_age_days": 0, "max_count": 7},
                "logging": {"level": "debug"},
            },
            temp_root,
        )
        assert config.storage_backend == "memory"
        assert config.get_database_path() == temp_root / "state" / "j.db"
        assert config.get_exports_path() == temp_root / "out"
        assert config.max_image_bytes == 2 * 1024 * 1024
        assert config.strict_counter_values is True
        assert (config.default_retention.max_age_days, config.default_retention.max_count) == (0, 7)
        assert config.log_level == "DEBUG"

    def test_unknown_backend(self, temp_root):
        with pytest.raises(ValueError, match="backend"):
            dict_to_config({"storage": {"backend": "postgres"}}, temp_root)

    @pytest.mark.parametrize("bad", [-1, "ten", True])
    def test_invalid_retention(self, temp_root, bad):
        with pytest.raises(ValueError):
            dict_to_config({"retention": {"max_count": bad}}, temp_root)


class TestLoadConfig:
    def test_no_file_gives_defaults(self, temp_root):
        config = load_config(temp_root)
        assert isinstance(config, JournalConfig)
        assert config.data_root == temp_root

    def test_auto_detects_toml(self, temp_root):
        (temp_root / "djournal.toml").write_text("[limits]\nmax_image_mb = 1\n")
        assert load_config(temp_root).max_image_mb == 1

    def test_explicit_path(self, temp_root):
        path = temp_root / "custom.json"
        path.write_text(json.dumps({"counters": {"strict": True}}))
        assert load_config(temp_root, path).strict_counter_values is True

    def test_unsupported_extension(self, temp_root):
        path = temp_root / "djournal.yaml"
        path.write_text("")
        with pytest.raises(ValueError, match="Unsupported"):
            load_config(temp_root, path)
