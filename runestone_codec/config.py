"""Shared configuration loader for the Runestone tooling.

Protocol constants (magic marker and field limits) and node RPC settings are
read from an optional YAML file, environment variables, and explicit
overrides, in increasing order of precedence.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml

from .model import MAX_DIVISIBILITY, MAX_LIMIT, MAX_SPACERS


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".runestone.yaml"


@dataclass(frozen=True)
class ProtocolConfig:
    """Constants that parameterise Runestone encoding and decoding."""

    magic: bytes = b"RUNE_TEST"
    max_divisibility: int = MAX_DIVISIBILITY
    max_limit: int = MAX_LIMIT
    max_script_element_size: int = 520
    max_spacers: int = MAX_SPACERS


DEFAULT_PROTOCOL_CONFIG = ProtocolConfig()


@dataclass
class RPCConfig:
    """Configuration container for node RPC connection details."""

    user: str
    password: str
    host: str = "127.0.0.1"
    port: int = 8332
    use_https: bool = False
    wallet: str | None = None

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{self.host}:{self.port}"


def _resolve_config_path(config_path: str | Path | None) -> tuple[Path, bool]:
    if config_path is not None:
        return Path(config_path).expanduser(), True
    return DEFAULT_CONFIG_PATH, False


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML mapping")
    return loaded


def _section(file_config: dict[str, Any], name: str, path: Path) -> dict[str, Any]:
    section = file_config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected '{name}' to be a mapping in {path}")
    return section


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return None


def _coerce_int(raw: Any, *, name: str, source: str) -> int | None:
    if raw is None:
        return None
    try:
        value = int(raw, 0) if isinstance(raw, str) else int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid {name} in {source}: {raw}") from exc
    if value < 0:
        raise ConfigurationError(f"{name} in {source} must be non-negative: {raw}")
    return value


def _coerce_magic(raw: Any, *, source: str) -> bytes | None:
    if raw is None:
        return None
    if isinstance(raw, bytes):
        magic = raw
    elif isinstance(raw, str):
        if raw.startswith("0x"):
            try:
                magic = bytes.fromhex(raw[2:])
            except ValueError as exc:
                raise ConfigurationError(f"Invalid hex magic in {source}: {raw}") from exc
        else:
            magic = raw.encode("ascii", errors="strict") if raw.isascii() else b""
    else:
        raise ConfigurationError(f"Magic in {source} must be a string")
    if not magic:
        raise ConfigurationError(f"Magic in {source} must be non-empty ASCII or 0x-prefixed hex")
    return magic


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _parse_endpoint(raw: str | None) -> tuple[str | None, int | None, bool | None]:
    if not raw:
        return None, None, None
    parsed = urlparse(raw)
    if not parsed.scheme and not parsed.hostname:
        raise ConfigurationError(f"Invalid RPC endpoint URL: {raw}")
    host = parsed.hostname or None
    port = parsed.port
    use_https = parsed.scheme.lower() == "https" if parsed.scheme else None
    return host, port, use_https


def load_protocol_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ProtocolConfig:
    """Load protocol constants from overrides, environment, and optional YAML."""

    env_map = os.environ if env is None else env
    path, explicit = _resolve_config_path(config_path)
    section = _section(_load_config_file(path, required=explicit), "protocol", path)
    override_map = dict(overrides or {})
    defaults = DEFAULT_PROTOCOL_CONFIG

    magic = _first_value(
        _coerce_magic(override_map.get("magic"), source="overrides"),
        _coerce_magic(env_map.get("RUNESTONE_MAGIC"), source="environment"),
        _coerce_magic(section.get("magic"), source=f"{path} protocol.magic"),
        defaults.magic,
    )

    resolved: dict[str, int] = {}
    for name, env_key in (
        ("max_divisibility", "RUNESTONE_MAX_DIVISIBILITY"),
        ("max_limit", "RUNESTONE_MAX_LIMIT"),
        ("max_script_element_size", "RUNESTONE_MAX_SCRIPT_ELEMENT_SIZE"),
    ):
        resolved[name] = _first_value(
            _coerce_int(override_map.get(name), name=name, source="overrides"),
            _coerce_int(env_map.get(env_key), name=name, source="environment"),
            _coerce_int(section.get(name), name=name, source=f"{path} protocol.{name}"),
            getattr(defaults, name),
        )

    if resolved["max_script_element_size"] == 0:
        raise ConfigurationError("max_script_element_size must be positive")

    return ProtocolConfig(magic=magic, **resolved)


def load_rpc_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> RPCConfig:
    """Load RPC configuration from environment variables and optional YAML."""

    env_map = os.environ if env is None else env
    path, explicit = _resolve_config_path(config_path)
    rpc_section = _section(_load_config_file(path, required=explicit), "rpc", path)
    override_map = {key: value for key, value in (overrides or {}).items() if value is not None}

    endpoint_host, endpoint_port, endpoint_use_https = _parse_endpoint(
        _first_value(
            override_map.get("endpoint"),
            env_map.get("RUNESTONE_RPC_ENDPOINT") or env_map.get("RUNESTONE_RPC_URL"),
            rpc_section.get("endpoint"),
        )
    )

    resolved_user = _first_value(
        override_map.get("user"), env_map.get("RUNESTONE_RPC_USER"), rpc_section.get("user")
    )
    resolved_password = _first_value(
        override_map.get("password"),
        env_map.get("RUNESTONE_RPC_PASSWORD"),
        rpc_section.get("password"),
    )
    if not resolved_user or not resolved_password:
        raise ConfigurationError(
            "RPC credentials must be provided via RUNESTONE_RPC_* environment variables or a config file"
        )

    resolved_host = _first_value(
        override_map.get("host"),
        endpoint_host,
        env_map.get("RUNESTONE_RPC_HOST"),
        rpc_section.get("host"),
        "127.0.0.1",
    )
    resolved_port = _first_value(
        _coerce_int(override_map.get("port"), name="port", source="overrides"),
        endpoint_port,
        _coerce_int(env_map.get("RUNESTONE_RPC_PORT"), name="port", source="environment"),
        _coerce_int(rpc_section.get("port"), name="port", source=f"{path} rpc.port"),
        8332,
    )
    resolved_use_https = _first_value(
        _coerce_bool(override_map.get("use_https")),
        endpoint_use_https,
        _coerce_bool(env_map.get("RUNESTONE_RPC_USE_HTTPS")),
        _coerce_bool(rpc_section.get("use_https")),
        False,
    )
    resolved_wallet = _first_value(
        override_map.get("wallet"), env_map.get("RUNESTONE_RPC_WALLET"), rpc_section.get("wallet")
    )

    return RPCConfig(
        user=str(resolved_user),
        password=str(resolved_password),
        host=str(resolved_host),
        port=resolved_port,
        use_https=bool(resolved_use_https),
        wallet=resolved_wallet,
    )
