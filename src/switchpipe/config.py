"""Configuration loader for switchpipe."""

from __future__ import annotations

import logging
import socket
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from switchpipe.constants import DEFAULT_SEPARATOR, MAX_PORT
from switchpipe.paths import get_config_path

type AddressFamilyLiteral = Literal["any", "ipv4", "ipv6"]
type MessageLogLevelLiteral = Literal["debug", "info"]

_ADDRESS_FAMILIES: dict[str, socket.AddressFamily] = {
    "any": socket.AF_UNSPEC,
    "ipv4": socket.AF_INET,
    "ipv6": socket.AF_INET6,
}
_LOG_LEVELS = {"debug": logging.DEBUG, "info": logging.INFO}


class AdvancedConfig(BaseModel):
    """Settings for which the defaults are normally adequate."""

    model_config = ConfigDict(frozen=True)

    connection_timeout_ms: int = Field(
        default=100,
        gt=0,
        description="Milliseconds to wait when probing the local channel for a running instance",
    )
    separator: str = Field(
        default=DEFAULT_SEPARATOR,
        description="Single control character placed after each forwarded argument",
    )
    auto_restart: bool = Field(
        default=False,
        description="Relaunch the listener loops after a fatal fault instead of reporting it",
    )
    drain_grace_ms: int = Field(
        default=250,
        ge=0,
        description=(
            "Upper bound on the post-write wait for the peer to read a local message; "
            "slept in full where no drain primitive exists"
        ),
    )
    remote_port: int = Field(
        default=0,
        ge=0,
        le=MAX_PORT,
        description="Unsecured TCP port to also listen on (0 disables)",
    )
    remote_bind_host: str = Field(
        default="0.0.0.0",  # noqa: S104
        description="Interface the TCP listener binds to",
    )
    dns_address_family: AddressFamilyLiteral = Field(
        default="any",
        description="Address family used to resolve remote hosts (any|ipv4|ipv6)",
    )
    throw_if_running: bool = Field(
        default=True,
        description=(
            "Raise when an instance is running and there are no arguments to forward; "
            "otherwise report it and let the caller exit"
        ),
    )
    message_log_level: MessageLogLevelLiteral = Field(
        default="debug",
        description="Level used for routine progress messages (debug|info)",
    )

    @field_validator("separator")
    @classmethod
    def _single_character(cls, value: str) -> str:
        if len(value) != 1:
            msg = "separator must be exactly one character"
            raise ValueError(msg)
        return value

    @property
    def connection_timeout(self) -> float:
        """Local connect timeout in seconds."""
        return self.connection_timeout_ms / 1000

    @property
    def drain_grace(self) -> float:
        """Post-write grace period in seconds."""
        return self.drain_grace_ms / 1000

    @property
    def address_family(self) -> socket.AddressFamily:
        """``socket`` address family for remote name resolution."""
        return _ADDRESS_FAMILIES[self.dns_address_family]

    @property
    def progress_level(self) -> int:
        """``logging`` level for routine progress messages."""
        return _LOG_LEVELS[self.message_log_level]


class SwitchPipeConfig(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(frozen=True)

    pipe_name: str | None = Field(
        default=None,
        description="Local channel name; the program identity is used when unset",
    )
    log_to_console: bool = Field(default=False, description="Echo all messages to the console")
    advanced: AdvancedConfig = Field(default_factory=AdvancedConfig)

    @field_validator("pipe_name")
    @classmethod
    def _blank_name_is_unset(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value

    @classmethod
    def load(cls, config_path: Path | None = None) -> SwitchPipeConfig:
        """Load configuration from TOML file or use defaults."""
        if config_path is None:
            config_path = get_config_path()

        if config_path.exists():
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
            return cls.model_validate(data)

        return cls()

    def with_overrides(self, **advanced: Any) -> SwitchPipeConfig:
        """Return a validated copy with some advanced settings replaced."""
        merged = self.advanced.model_dump() | advanced
        return self.model_copy(update={"advanced": AdvancedConfig.model_validate(merged)})


__all__ = ["AdvancedConfig", "SwitchPipeConfig"]
