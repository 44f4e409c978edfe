# mlprovision/settings.py
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import WalkthroughHalt
from .registry import DEFAULT_PACK

# Load .env file if it exists (from project root or current directory)
load_dotenv()

ENV_PREFIX = "MLPROVISION_"


class WalkthroughSettings(BaseModel):
    """
    Effective inputs for one walkthrough run.

    Precedence (lowest to highest): field defaults, MLPROVISION_* environment
    variables, the --config file, command-line flags.
    """
    resource_group: Optional[str] = None
    location: str = Field(default="eastus")
    workspace: Optional[str] = None
    compute: Optional[str] = None
    vm_size: str = Field(default="STANDARD_D2_V2")
    min_nodes: int = Field(default=0, ge=0)
    max_nodes: int = Field(default=4, ge=1)
    experiment: str = Field(default="mlprovision", min_length=1)

    dataset_name: Optional[str] = None
    dataset_file: Optional[Path] = None
    dataset_id: Optional[str] = None

    environment: Optional[str] = None
    environment_match: Optional[str] = None

    script: Optional[Path] = None
    submit: bool = False
    assume_yes: bool = False
    regenerate_runconfig: bool = False
    runconfig_template: Optional[Path] = None

    workdir: Path = Field(default=Path(".azureml"))
    az_path: Optional[str] = None
    command_pack: str = Field(default=DEFAULT_PACK)

    @model_validator(mode="after")
    def _exclusive_choices(self) -> "WalkthroughSettings":
        chosen = [n for n in ("dataset_name", "dataset_file", "dataset_id") if getattr(self, n)]
        if len(chosen) > 1:
            raise ValueError(f"dataset must be selected one way only, got {', '.join(chosen)}")
        if self.environment and self.environment_match:
            raise ValueError("use either environment or environment_match, not both")
        if self.min_nodes > self.max_nodes:
            raise ValueError("min_nodes cannot exceed max_nodes")
        return self


_ENV_FIELDS = {
    "resource_group": "RESOURCE_GROUP",
    "location": "LOCATION",
    "workspace": "WORKSPACE",
    "compute": "COMPUTE",
    "vm_size": "VM_SIZE",
    "min_nodes": "MIN_NODES",
    "max_nodes": "MAX_NODES",
    "experiment": "EXPERIMENT",
    "workdir": "WORKDIR",
    "az_path": "AZ_PATH",
    "command_pack": "COMMAND_PACK",
}


def _env_default_settings(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    env = os.environ if environ is None else environ
    out: Dict[str, Any] = {}
    for field, suffix in _ENV_FIELDS.items():
        value = (env.get(ENV_PREFIX + suffix) or "").strip()
        if value:
            out[field] = value
    return out


def _load_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise WalkthroughHalt(f"Settings file '{path}' not found.")
    text = path.read_text("utf-8")
    try:
        data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise WalkthroughHalt(f"Settings file '{path}' could not be parsed: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise WalkthroughHalt(f"Settings file '{path}' must contain a mapping.")
    return data


def load_settings(
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> WalkthroughSettings:
    merged: Dict[str, Any] = _env_default_settings(environ)
    if config_path is not None:
        merged.update(_load_file(config_path))
    for k, v in (overrides or {}).items():
        # unset CLI flags arrive as None/False and must not mask file values
        if v is None or v is False:
            continue
        merged[k] = v
    try:
        return WalkthroughSettings.model_validate(merged)
    except ValidationError as e:
        raise WalkthroughHalt(f"Invalid settings: {e}") from e
