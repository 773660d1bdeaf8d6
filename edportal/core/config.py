"""
Typed configuration for the course portal.

The YAML file names the document snapshot to serve, the fallback policy for
untrustworthy enrollment data, and server/logging knobs. Relative paths are
resolved against the directory holding the config file.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from edportal.academics.enrollment import FallbackPolicy
from edportal.utils import split_setting

from .errors import ConfigError

ENV_CONFIG_PATH = "PORTAL_CONFIG"
ENV_SNAPSHOT_PATH = "PORTAL_SNAPSHOT"
ENV_FALLBACK = "PORTAL_FALLBACK"


class DataConfig(BaseModel):
    """Where the document-database snapshot lives."""

    model_config = ConfigDict()

    snapshot_path: Path = Field(..., description="JSON or YAML export of the portal collections.")

    @field_validator("snapshot_path", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Path:
        return Path(value).expanduser().resolve()


class PolicyConfig(BaseModel):
    """How to treat enrollment data the resolver cannot interpret."""

    fallback: FallbackPolicy = Field(
        default=FallbackPolicy.SHOW_ALL,
        description="show_all keeps content visible on bad enrollment data; show_nothing hides it.",
    )

    @field_validator("fallback", mode="before")
    @classmethod
    def normalize_fallback(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower().replace("-", "_")
        return value


class ServerConfig(BaseModel):
    title: str = "Course Portal API"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(cls, value: Any) -> Any:
        if value is None:
            return ["*"]
        return split_setting(value)


class LoggingConfig(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    audit_log: Optional[Path] = Field(default=None, description="JSONL file receiving access decisions.")

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("audit_log", mode="before")
    @classmethod
    def coerce_path(cls, value: Any) -> Path | None:
        if value in (None, ""):
            return None
        return Path(value).expanduser().resolve()


class PortalConfig(BaseModel):
    """Top-level configuration for the portal API and CLI."""

    data: DataConfig
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="before")
    @classmethod
    def coerce_flat_format(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        payload = dict(data)
        # Older configs put the snapshot and policy at the root.
        if "data" not in payload and "snapshot_path" in payload:
            payload["data"] = {"snapshot_path": payload.pop("snapshot_path")}
        if "policy" not in payload and "fallback" in payload:
            payload["policy"] = {"fallback": payload.pop("fallback")}
        if "data" not in payload:
            raise ValueError("Missing config section: data")
        return payload

    def configure_logging(self) -> None:
        logging.getLogger("edportal").setLevel(getattr(logging, self.logging.level))


def read_yaml_file(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return a dictionary."""
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected mapping at root of {path}, received {type(data)}")
    return data


def _resolve_config_path(value: Any, base_dir: Path) -> str:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = (base_dir / path).resolve()
    else:
        path = path.resolve()
    return str(path)


def _absolutize_portal_paths(data: Dict[str, Any], base_dir: Path) -> None:
    section = data.get("data")
    if isinstance(section, dict) and section.get("snapshot_path"):
        section["snapshot_path"] = _resolve_config_path(section["snapshot_path"], base_dir)
    elif data.get("snapshot_path"):
        data["snapshot_path"] = _resolve_config_path(data["snapshot_path"], base_dir)

    logging_section = data.get("logging")
    if isinstance(logging_section, dict) and logging_section.get("audit_log"):
        logging_section["audit_log"] = _resolve_config_path(logging_section["audit_log"], base_dir)


def load_portal_config(path: Path, *, base_dir: Path | None = None) -> PortalConfig:
    """Load the portal YAML used by the API and CLI."""
    path = path.expanduser().resolve()
    data = read_yaml_file(path)
    _absolutize_portal_paths(data, base_dir=(base_dir or path.parent).resolve())
    try:
        return PortalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid portal config in {path}") from exc


def apply_env_overrides(config: PortalConfig, env: Mapping[str, str] | None = None) -> PortalConfig:
    """Return a copy of ``config`` with ``PORTAL_SNAPSHOT`` / ``PORTAL_FALLBACK`` applied."""
    env = os.environ if env is None else env
    payload = config.model_dump()
    snapshot = env.get(ENV_SNAPSHOT_PATH)
    if snapshot:
        payload["data"]["snapshot_path"] = snapshot
    fallback = env.get(ENV_FALLBACK)
    if fallback:
        payload["policy"]["fallback"] = fallback
    try:
        return PortalConfig.model_validate(payload)
    except ValidationError as exc:
        raise ConfigError("Invalid portal environment overrides") from exc


def config_from_env(env: Mapping[str, str] | None = None) -> PortalConfig:
    """Build the config from ``PORTAL_CONFIG`` or, failing that, ``PORTAL_SNAPSHOT`` alone."""
    env = os.environ if env is None else env
    config_path = env.get(ENV_CONFIG_PATH)
    if config_path:
        return apply_env_overrides(load_portal_config(Path(config_path)), env)
    snapshot = env.get(ENV_SNAPSHOT_PATH)
    if not snapshot:
        raise ConfigError(f"Set {ENV_CONFIG_PATH} or {ENV_SNAPSHOT_PATH} to point the portal at its data")
    return apply_env_overrides(PortalConfig.model_validate({"data": {"snapshot_path": snapshot}}), env)


__all__ = [
    "DataConfig",
    "LoggingConfig",
    "PolicyConfig",
    "PortalConfig",
    "ServerConfig",
    "apply_env_overrides",
    "config_from_env",
    "load_portal_config",
    "read_yaml_file",
]
