"""Configuration loading for LocalShare."""

import getpass
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


def _default_username() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "localshare"


@dataclass
class NodeConfig:
    username: str = field(default_factory=_default_username)
    port: int = 8000
    suffix: str | None = None  # Defaults to the local host name


@dataclass
class DiscoveryConfig:
    """Configuration for mDNS/Zeroconf service discovery."""

    enabled: bool = True
    service_type: str = "_localshare._tcp"
    domain: str = "local"
    announce: bool = True  # Announce this instance
    browse: bool = True  # Browse for other instances
    resolve_timeout_ms: int = 3000


@dataclass
class Config:
    node: NodeConfig = field(default_factory=NodeConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with LOCALSHARE_ prefix."""
    return os.environ.get(f"LOCALSHARE_{key}", default)


def _is_true(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    # Node overrides
    if username := _get_env("USERNAME"):
        config.node.username = username
    if port := _get_env("PORT"):
        config.node.port = int(port)
    if suffix := _get_env("SUFFIX"):
        config.node.suffix = suffix

    # Discovery overrides
    if service_type := _get_env("SERVICE_TYPE"):
        config.discovery.service_type = service_type
    if enabled := _get_env("DISCOVERY_ENABLED"):
        config.discovery.enabled = _is_true(enabled)
    if announce := _get_env("DISCOVERY_ANNOUNCE"):
        config.discovery.announce = _is_true(announce)
    if browse := _get_env("DISCOVERY_BROWSE"):
        config.discovery.browse = _is_true(browse)

    return config


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None or missing, defaults
            are used.

    Returns:
        Loaded and validated Config object.

    Raises:
        ValueError: If the configured port is out of range.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            # Parse node config
            if "node" in data:
                node_data = data["node"]
                config.node = NodeConfig(
                    username=node_data.get("username", config.node.username),
                    port=node_data.get("port", config.node.port),
                    suffix=node_data.get("suffix", config.node.suffix),
                )

            # Parse discovery config
            if "discovery" in data:
                disc_data = data["discovery"]
                config.discovery = DiscoveryConfig(
                    enabled=disc_data.get("enabled", config.discovery.enabled),
                    service_type=disc_data.get("service_type", config.discovery.service_type),
                    domain=disc_data.get("domain", config.discovery.domain),
                    announce=disc_data.get("announce", config.discovery.announce),
                    browse=disc_data.get("browse", config.discovery.browse),
                    resolve_timeout_ms=disc_data.get(
                        "resolve_timeout_ms", config.discovery.resolve_timeout_ms
                    ),
                )

    # Apply environment variable overrides
    config = _apply_env_overrides(config)

    if not 0 < config.node.port < 65536:
        raise ValueError(f"Invalid port: {config.node.port}")

    return config
