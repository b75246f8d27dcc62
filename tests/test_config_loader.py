"""Tests for modsync.config_loader."""

from pathlib import Path

import pytest

from modsync._errors import ConfigError
from modsync.config_loader import load_config


class TestLoadConfig:
    """load_config — file config merged under CLI overrides."""

    def test_no_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert config.root == tmp_path
        assert config.port == 3123

    def test_yaml_values(self, tmp_path: Path) -> None:
        (tmp_path / "modsync.yaml").write_text("port: 4000\nquiet: true\n")
        config = load_config(tmp_path)
        assert config.port == 4000
        assert config.quiet is True

    def test_yaml_modsync_section(self, tmp_path: Path) -> None:
        (tmp_path / "modsync.yml").write_text("modsync:\n  hostname: 0.0.0.0\n")
        assert load_config(tmp_path).hostname == "0.0.0.0"

    def test_toml_values(self, tmp_path: Path) -> None:
        (tmp_path / "modsync.toml").write_text("[modsync]\ncontrol_fd = 5\n")
        assert load_config(tmp_path).control_fd == 5

    def test_yaml_preferred_over_toml(self, tmp_path: Path) -> None:
        (tmp_path / "modsync.yaml").write_text("port: 4000\n")
        (tmp_path / "modsync.toml").write_text("port = 5000\n")
        assert load_config(tmp_path).port == 4000

    def test_overrides_win(self, tmp_path: Path) -> None:
        (tmp_path / "modsync.yaml").write_text("port: 4000\n")
        assert load_config(tmp_path, port=5000).port == 5000

    def test_none_overrides_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "modsync.yaml").write_text("port: 4000\n")
        assert load_config(tmp_path, port=None).port == 4000

    def test_unknown_key_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "modsync.yaml").write_text("colour: blue\n")
        with pytest.raises(ConfigError, match="colour"):
            load_config(tmp_path)

    def test_invalid_yaml_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "modsync.yaml").write_text("port: [4000\n")
        with pytest.raises(ConfigError):
            load_config(tmp_path)

    def test_non_mapping_yaml_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "modsync.yaml").write_text("- 1\n- 2\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(tmp_path)

    def test_invalid_toml_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "modsync.toml").write_text("port = \n")
        with pytest.raises(ConfigError):
            load_config(tmp_path)
