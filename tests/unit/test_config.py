"""Unit tests for configuration loading and validation."""

from __future__ import annotations

import logging
import socket
from pathlib import Path

import pytest
from pydantic import ValidationError

from switchpipe.config import AdvancedConfig, SwitchPipeConfig

pytestmark = pytest.mark.unit


class TestDefaults:
    def test_advanced_defaults(self) -> None:
        advanced = AdvancedConfig()
        assert advanced.connection_timeout == pytest.approx(0.1)
        assert advanced.separator == "\x14"
        assert advanced.auto_restart is False
        assert advanced.drain_grace == pytest.approx(0.25)
        assert advanced.remote_port == 0
        assert advanced.throw_if_running is True
        assert advanced.address_family == socket.AF_UNSPEC
        assert advanced.progress_level == logging.DEBUG

    def test_root_defaults(self) -> None:
        config = SwitchPipeConfig()
        assert config.pipe_name is None
        assert config.log_to_console is False

    def test_blank_pipe_name_is_unset(self) -> None:
        assert SwitchPipeConfig(pipe_name="  ").pipe_name is None


class TestValidation:
    @pytest.mark.parametrize("separator", ["", "ab"])
    def test_separator_must_be_one_character(self, separator: str) -> None:
        with pytest.raises(ValidationError):
            AdvancedConfig(separator=separator)

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            AdvancedConfig(connection_timeout_ms=0)

    def test_remote_port_range(self) -> None:
        with pytest.raises(ValidationError):
            AdvancedConfig(remote_port=65536)

    def test_unknown_address_family_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AdvancedConfig(dns_address_family="ipx")  # type: ignore[arg-type]

    def test_config_is_frozen(self) -> None:
        config = SwitchPipeConfig()
        with pytest.raises(ValidationError):
            config.pipe_name = "other"  # type: ignore[misc]

    def test_with_overrides_validates(self) -> None:
        with pytest.raises(ValidationError):
            SwitchPipeConfig().with_overrides(separator="ab")

    def test_with_overrides_keeps_other_settings(self) -> None:
        config = SwitchPipeConfig(pipe_name="app1").with_overrides(auto_restart=True)
        assert config.pipe_name == "app1"
        assert config.advanced.auto_restart is True
        assert config.advanced.connection_timeout_ms == 100


class TestLoad:
    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        assert SwitchPipeConfig.load(tmp_path / "absent.toml") == SwitchPipeConfig()

    def test_loads_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text(
            'pipe_name = "app1"\n'
            "log_to_console = true\n"
            "\n"
            "[advanced]\n"
            "remote_port = 50001\n"
            'dns_address_family = "ipv4"\n'
            'message_log_level = "info"\n',
            encoding="utf-8",
        )
        config = SwitchPipeConfig.load(path)
        assert config.pipe_name == "app1"
        assert config.log_to_console is True
        assert config.advanced.remote_port == 50001
        assert config.advanced.address_family == socket.AF_INET
        assert config.advanced.progress_level == logging.INFO

    def test_default_path_comes_from_config_dir(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setenv("SWITCHPIPE_CONFIG_DIR", str(tmp_path))
        (tmp_path / "config.toml").write_text("[advanced]\nauto_restart = true\n", encoding="utf-8")
        assert SwitchPipeConfig.load().advanced.auto_restart is True

    def test_invalid_toml_values_raise(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text("[advanced]\nconnection_timeout_ms = -5\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            SwitchPipeConfig.load(path)
