"""Run settings assembled from defaults, a YAML config file, environment variables and flags."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .errors import ConfigurationError

CONFIG_FILENAME = "cft-orchestrator.yaml"
DEPENDENCY_MODES = ("include", "skip")

ENVIRONMENT_VARIABLES = {
  "environment": "CFT_ORCHESTRATOR_ENVIRONMENT",
  "profile": "CFT_ORCHESTRATOR_PROFILE",
  "dependency_mode": "CFT_ORCHESTRATOR_DEPENDENCIES",
}

# keys a config file may set; the rest only make sense per invocation
FILE_KEYS = ("glob", "environment", "region", "profile", "aws_cli", "folders", "jobs", "dependency_mode")


@dataclass
class Settings:
  root: Path = Path(".")
  glob: str = "**/*.manifest.yaml"
  environment: Optional[str] = None
  region: Optional[str] = None
  profile: Optional[str] = None
  aws_cli: str = "aws"
  folders: List[str] = field(default_factory=list)
  jobs: int = 1
  stacks: List[str] = field(default_factory=list)
  dependency_mode: str = "include"
  noop: bool = False
  check: bool = False
  verbose: bool = False
  echo: bool = False
  stop_on_error: bool = False

  def validate(self) -> "Settings":
    if self.jobs < 1:
      raise ConfigurationError(f"jobs must be at least 1, got {self.jobs}.")
    if self.dependency_mode not in DEPENDENCY_MODES:
      raise ConfigurationError(
        f"dependency_mode must be one of {', '.join(DEPENDENCY_MODES)}, got '{self.dependency_mode}'."
      )
    return self


def load_config_file(path: Path) -> Dict[str, Any]:
  try:
    with path.open("r", encoding="utf-8") as handle:
      loaded = yaml.safe_load(handle) or {}
  except yaml.YAMLError as exc:
    raise ConfigurationError(f"Config file {path} could not be parsed: {exc}") from exc
  if not isinstance(loaded, dict):
    raise ConfigurationError(f"Config file {path} must parse to a mapping.")

  data = {str(key).replace("-", "_"): value for key, value in loaded.items()}
  unknown = sorted(set(data) - set(FILE_KEYS))
  if unknown:
    raise ConfigurationError(f"Config file {path} has unknown keys: {', '.join(unknown)}")
  if "folders" in data and (
    not isinstance(data["folders"], list) or any(not isinstance(item, str) for item in data["folders"])
  ):
    raise ConfigurationError(f"Config file {path}: folders must be a list of strings.")
  if "jobs" in data:
    try:
      data["jobs"] = int(data["jobs"])
    except (TypeError, ValueError) as exc:
      raise ConfigurationError(f"Config file {path}: jobs must be an integer.") from exc
  return data


def build_settings(
  overrides: Mapping[str, Any],
  *,
  config_path: Optional[Path] = None,
  environ: Optional[Mapping[str, str]] = None,
) -> Settings:
  """Merge the settings sources; ``overrides`` values of None mean "not given"."""
  environ = os.environ if environ is None else environ
  values: Dict[str, Any] = {}

  root = Path(overrides.get("root") or ".")
  if config_path is None:
    candidate = root / CONFIG_FILENAME
    config_path = candidate if candidate.is_file() else None
  elif not config_path.is_file():
    raise ConfigurationError(f"Config file '{config_path}' does not exist.")
  if config_path is not None:
    values.update(load_config_file(config_path))

  for name, variable in ENVIRONMENT_VARIABLES.items():
    value = environ.get(variable)
    if value:
      values[name] = value.lower() if name == "dependency_mode" else value

  known = {item.name for item in fields(Settings)}
  for name, value in overrides.items():
    if name in known and value is not None:
      values[name] = value
  values["root"] = root
  return Settings(**values).validate()
