from __future__ import annotations

import json
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional

import jsonschema
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .diagnostics import Diagnostic, Diagnostics, SettingsError


SETTINGS_ENV_VAR = "RESTQL_CLI_SETTINGS"
DEFAULT_CORE_MODULE_PATH = "github.com/b2wdigital/restQL-golang"


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    go_command: List[str] = Field(default_factory=lambda: ["go"], min_length=1)
    core_module_path: str = DEFAULT_CORE_MODULE_PATH
    manifest_module_name: str = "restql"
    temp_prefix: str = "restql-compiling-"
    dev_dir_name: str = ".restql-env"
    grace_period_s: float = Field(default=15.0, gt=0)
    target_os: str = "linux"
    dev_port: int = 9000
    dev_health_port: int = 9001
    dev_debug_port: int = 9002
    dev_env_name: str = "development"


def default_schema_path() -> Path:
    return Path(__file__).resolve().parent.parent / "schemas" / "settings.schema.json"


def load_settings(path: Optional[Path] = None, schema_path: Optional[Path] = None) -> Settings:
    if path is None:
        env_path = os.environ.get(SETTINGS_ENV_VAR)
        if not env_path:
            return Settings()
        path = Path(env_path)
    if not path.exists():
        raise SettingsError(
            Diagnostic(
                code="E-SETTINGS-MISSING",
                message=f"Settings file not found: {path}",
                location=str(path),
            )
        )
    try:
        data = _load_data(path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise SettingsError(
            Diagnostic(code="E-SETTINGS-PARSE", message=str(exc), location=str(path))
        ) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise SettingsError(
            Diagnostic(
                code="E-SETTINGS-TYPE",
                message="Settings must be a mapping",
                location=str(path),
            )
        )
    validate_settings(data, schema_path or default_schema_path()).raise_for_errors()
    try:
        return Settings(**data)
    except ValidationError as exc:
        raise SettingsError(
            Diagnostic(code="E-SETTINGS-MODEL", message=str(exc), location=str(path))
        ) from exc


def validate_settings(data: Dict[str, Any], schema_path: Path) -> Diagnostics:
    diagnostics = Diagnostics()
    with schema_path.open("r", encoding="utf-8") as handle:
        schema = json.load(handle)
    validator = jsonschema.Draft202012Validator(schema)
    for error in sorted(validator.iter_errors(data), key=str):
        diagnostics.add(
            Diagnostic(
                code="E-SETTINGS-SCHEMA",
                message=error.message,
                location="/".join(str(x) for x in error.path),
            )
        )
    return diagnostics


def _load_data(path: Path) -> Any:
    if path.suffix in {".yaml", ".yml"}:
        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle)
    if path.suffix == ".toml":
        with path.open("rb") as handle:
            return tomllib.load(handle)
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)
