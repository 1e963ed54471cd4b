"""cmdrunner configuration loader - reads from cmdrunner.toml with ENV overrides."""  # noqa: I001

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
import tomllib
from typing import Any, cast

LOG_LEVELS = ("debug", "info", "warning", "error")


def _truthy(value: str) -> bool:
    return value.lower() in ("1", "true", "yes")


@dataclass
class McpServerConfig:
    """Server transport settings."""

    transport: str = "stdio"
    log_level: str = "info"

    def validate(self) -> None:
        if self.transport != "stdio":
            raise ValueError(f"Invalid transport: {self.transport}")
        if self.log_level.lower() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")


@dataclass
class McpSecurityConfig:
    """Administratively blocked paths."""

    blocked_paths: list[str] = field(default_factory=list)

    def validate(self) -> None:
        for path in self.blocked_paths:
            if not os.path.isabs(path):
                raise ValueError(f"Blocked path must be absolute: {path}")


@dataclass
class McpToolsConfig:
    """Tool execution settings."""

    default_timeout_ms: int = 180_000
    max_timeout_ms: int = 0  # 0 = no cap
    ls_executable: str = "ls"
    git_executable: str = "git"

    def validate(self) -> None:
        if self.default_timeout_ms <= 0:
            raise ValueError("default_timeout_ms must be positive")
        if self.max_timeout_ms < 0:
            raise ValueError("max_timeout_ms must not be negative")
        if not self.ls_executable or not self.git_executable:
            raise ValueError("tool executables must not be empty")


@dataclass
class McpObservabilityConfig:
    """Logging settings."""

    log_format: str = "text"  # "json" | "text"
    log_level: str = "info"
    include_correlation_id: bool = True

    def validate(self) -> None:
        if self.log_format not in ("json", "text"):
            raise ValueError(f"Invalid log_format: {self.log_format}")
        if self.log_level.lower() not in LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")


@dataclass
class McpConfig:
    """Root cmdrunner configuration."""

    enabled: bool = True
    config_version: str = "v0"
    server: McpServerConfig = field(default_factory=McpServerConfig)
    security: McpSecurityConfig = field(default_factory=McpSecurityConfig)
    tools: McpToolsConfig = field(default_factory=McpToolsConfig)
    observability: McpObservabilityConfig = field(default_factory=McpObservabilityConfig)

    def validate(self) -> None:
        self.server.validate()
        self.security.validate()
        self.tools.validate()
        self.observability.validate()


def _int_env(name: str, current: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return current
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _apply_env_overrides(cfg: McpConfig) -> McpConfig:
    """Apply environment variable overrides. ENV beats TOML."""
    # CMDRUNNER_ENABLED
    if os.getenv("CMDRUNNER_ENABLED"):
        cfg.enabled = _truthy(os.getenv("CMDRUNNER_ENABLED", ""))

    # CMDRUNNER_LOG_LEVEL
    if os.getenv("CMDRUNNER_LOG_LEVEL"):
        cfg.server.log_level = os.getenv("CMDRUNNER_LOG_LEVEL", cfg.server.log_level)
        cfg.observability.log_level = cfg.server.log_level

    # CMDRUNNER_LOG_FORMAT
    if os.getenv("CMDRUNNER_LOG_FORMAT"):
        cfg.observability.log_format = os.getenv(
            "CMDRUNNER_LOG_FORMAT", cfg.observability.log_format
        )

    # CMDRUNNER_BLOCKED_PATHS (semicolon-separated)
    if os.getenv("CMDRUNNER_BLOCKED_PATHS"):
        cfg.security.blocked_paths = [
            p.strip() for p in os.getenv("CMDRUNNER_BLOCKED_PATHS", "").split(";") if p.strip()
        ]

    cfg.tools.default_timeout_ms = _int_env(
        "CMDRUNNER_DEFAULT_TIMEOUT_MS", cfg.tools.default_timeout_ms
    )
    cfg.tools.max_timeout_ms = _int_env("CMDRUNNER_MAX_TIMEOUT_MS", cfg.tools.max_timeout_ms)

    return cfg


def _find_config_path(config_path: str | Path | None) -> Path:
    if config_path is not None:
        return Path(config_path)
    if os.getenv("CMDRUNNER_CONFIG"):
        return Path(cast(str, os.getenv("CMDRUNNER_CONFIG")))
    if os.getenv("CMDRUNNER_ROOT"):
        return Path(cast(str, os.getenv("CMDRUNNER_ROOT"))) / "cmdrunner.toml"
    return Path("cmdrunner.toml")


def _apply_toml(cfg: McpConfig, data: dict[str, Any]) -> None:
    root = data.get("cmdrunner", {})

    # Top-level
    cfg.enabled = root.get("enabled", cfg.enabled)
    cfg.config_version = root.get("config_version", cfg.config_version)

    # Server
    srv = root.get("server", {})
    cfg.server.transport = srv.get("transport", cfg.server.transport)
    cfg.server.log_level = srv.get("log_level", cfg.server.log_level)

    # Security
    sec = root.get("security", {})
    cfg.security.blocked_paths = list(sec.get("blocked_paths", cfg.security.blocked_paths))

    # Tools
    tools = root.get("tools", {})
    cfg.tools.default_timeout_ms = tools.get("default_timeout_ms", cfg.tools.default_timeout_ms)
    cfg.tools.max_timeout_ms = tools.get("max_timeout_ms", cfg.tools.max_timeout_ms)
    cfg.tools.ls_executable = tools.get("ls_executable", cfg.tools.ls_executable)
    cfg.tools.git_executable = tools.get("git_executable", cfg.tools.git_executable)

    # Observability
    obs = root.get("observability", {})
    cfg.observability.log_format = obs.get("log_format", cfg.observability.log_format)
    cfg.observability.log_level = obs.get("log_level", cfg.server.log_level)
    cfg.observability.include_correlation_id = obs.get(
        "include_correlation_id", cfg.observability.include_correlation_id
    )


def load_config(config_path: str | Path | None = None) -> McpConfig:
    """
    Load cmdrunner config from cmdrunner.toml with ENV overrides.

    Precedence: ENV → TOML → defaults

    Args:
        config_path: Path to cmdrunner.toml. If None, searches:
            1. CMDRUNNER_CONFIG env var
            2. CMDRUNNER_ROOT/cmdrunner.toml
            3. ./cmdrunner.toml

    Returns:
        McpConfig dataclass with merged settings.

    Raises:
        ValueError: If the merged settings are invalid
    """
    path = _find_config_path(config_path)

    # Start with defaults
    cfg = McpConfig()

    # Load TOML if exists
    if path.exists():
        with open(path, "rb") as f:
            _apply_toml(cfg, tomllib.load(f))

    # Apply ENV overrides (highest precedence)
    cfg = _apply_env_overrides(cfg)

    # Validate final config
    cfg.validate()

    return cfg
