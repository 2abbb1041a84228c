"""Runtime configuration of the packager, loaded from YAML or JSON."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError

from .base import CATALOG_PLATFORM, CATALOG_PREFIX
from .graph import Platform

CONFIG_ENV = "PUN_CONFIG"
DEFAULT_CONFIG_PATH = Path("~/.pun/config.yaml")


class PunConfig(BaseModel):
    """Settings shared by standalone and service mode."""

    context_name: str = Field("context", min_length=1, description="Handle of the caller's build context")
    metadata_path: str = Field("/urunc.json", description="Path of the metadata file written in the image")
    metadata_mode: int = Field(0o644, ge=0, le=0o7777)
    output_platform: Platform = Field(default_factory=lambda: Platform(os="linux", architecture="amd64"))
    catalog_prefix: str = CATALOG_PREFIX
    catalog_platform: Platform = Field(default_factory=lambda: CATALOG_PLATFORM.model_copy())
    working_dir: str = "/"
    engine_url: str = Field("http://127.0.0.1:8000", description="Build engine used when a request names none")
    log_level: str = "INFO"
    logfile: str | None = None


def load_config(path: str | Path | None = None) -> PunConfig:
    """Load the configuration.

    Lookup order: ``path``, then $PUN_CONFIG, then ~/.pun/config.yaml.
    Missing default file means default settings; a missing explicit file is an error.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV)
    if path is None:
        default = DEFAULT_CONFIG_PATH.expanduser()
        if not default.exists():
            return PunConfig()
        path = default
    return coerce_config(Path(path))


def coerce_config(value: Any) -> PunConfig:
    """Normalize supported inputs into a PunConfig instance."""
    if isinstance(value, PunConfig):
        return value
    payload: Mapping[str, Any]
    if value is None:
        payload = {}
    elif isinstance(value, Mapping):
        payload = value
    elif isinstance(value, (str, bytes)):
        payload = _load_text_payload(value)
    elif isinstance(value, Path):
        payload = _load_text_payload(value.read_text())
    else:
        raise TypeError("Unsupported value for configuration")
    try:
        return PunConfig.model_validate(payload)
    except ValidationError as exc:
        raise ValueError(f"Invalid configuration: {exc}") from exc


def _load_text_payload(raw: str | bytes) -> dict[str, Any]:
    """Interpret raw text as YAML first, falling back to JSON."""
    text = raw.decode() if isinstance(raw, bytes) else raw
    try:
        return yaml.safe_load(text) or {}
    except yaml.YAMLError:
        return json.loads(text)


__all__ = ["PunConfig", "coerce_config", "load_config"]
