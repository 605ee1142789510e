"""Discovery and parsing of stack manifests into Artifacts."""
from __future__ import annotations

import copy
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Set

import yaml

from .artifacts import Artifact
from .errors import ManifestError

PLACEHOLDER = re.compile(r"\$\{([^}]*)\}")
MANIFEST_SUFFIXES = (".manifest.yaml", ".manifest.yml", ".yaml", ".yml")


def _merge_sequences(base: List[Any], override: List[Any]) -> List[Any]:
  if not base:
    return copy.deepcopy(override)
  if not override:
    return copy.deepcopy(base)
  if all(isinstance(item, str) for item in base + override):
    merged = list(base)
    merged.extend(item for item in override if item not in merged)
    return merged
  return copy.deepcopy(override)


def deep_merge(base: Any, override: Any) -> Any:
  if isinstance(base, dict) and isinstance(override, dict):
    result = copy.deepcopy(base)
    for key, value in override.items():
      if key in result:
        result[key] = deep_merge(result[key], value)
      else:
        result[key] = copy.deepcopy(value)
    return result
  if isinstance(base, list) and isinstance(override, list):
    return _merge_sequences(base, override)
  return copy.deepcopy(override)


def substitute(value: Any, mapping: Mapping[str, Any]) -> Any:
  """Expand ``${Name}`` placeholders found in ``mapping``; unknown ones are left as written."""
  if isinstance(value, str):
    return PLACEHOLDER.sub(
      lambda match: str(mapping[match.group(1)]) if match.group(1) in mapping else match.group(0),
      value,
    )
  if isinstance(value, list):
    return [substitute(item, mapping) for item in value]
  if isinstance(value, dict):
    return {key: substitute(item, mapping) for key, item in value.items()}
  return value


def default_stack_name(filename: str, environment: Optional[str]) -> str:
  stem = filename
  for suffix in MANIFEST_SUFFIXES:
    if stem.endswith(suffix):
      stem = stem[: -len(suffix)]
      break
  stem = re.sub(r"[^A-Za-z0-9-]+", "-", stem).strip("-")
  return f"{environment}-{stem}" if environment else stem


def _artifact_key(entry: str) -> str:
  while entry.startswith("./"):
    entry = entry[2:]
  return entry.lstrip("/")


def _string_list(value: Any, manifest_path: Path, key: str) -> List[str]:
  if value is None:
    return []
  if isinstance(value, str):
    return [value]
  if not isinstance(value, list) or any(not isinstance(item, str) for item in value):
    raise ManifestError(f"Manifest {manifest_path}: '{key}' must be a string or list of strings.")
  return list(value)


class ManifestRepository:
  def __init__(
    self,
    root: Path,
    glob_pattern: str,
    *,
    environment: Optional[str] = None,
    region: Optional[str] = None,
  ) -> None:
    self._root = root.resolve()
    self._glob = glob_pattern
    self.environment = environment
    self.region = region

  def load(self) -> List[Artifact]:
    artifacts: List[Artifact] = []
    names: Dict[str, Artifact] = {}
    for manifest_path in sorted(self._root.glob(self._glob)):
      if not manifest_path.is_file():
        continue
      artifact = self.parse_manifest(manifest_path)
      existing = names.get(artifact.name)
      if existing is not None:
        raise ManifestError(
          f"Duplicate stack name '{artifact.name}' found in {artifact.filename} and {existing.filename}"
        )
      names[artifact.name] = artifact
      artifacts.append(artifact)
    if not artifacts:
      raise ManifestError(f"No manifest files found under '{self._root}' using pattern '{self._glob}'.")
    return artifacts

  def filename_for(self, manifest_path: Path) -> str:
    try:
      return manifest_path.resolve().relative_to(self._root).as_posix()
    except ValueError:
      return manifest_path.resolve().as_posix()

  def parse_manifest(self, manifest_path: Path) -> Artifact:
    data = self._load_manifest_data(manifest_path)

    stack_section = data.get("stack")
    if not isinstance(stack_section, dict):
      raise ManifestError(f"Manifest {manifest_path} must contain a 'stack' mapping.")

    template_section = stack_section.get("template") or {}
    template_file = template_section.get("file") if isinstance(template_section, dict) else None
    if not template_file:
      raise ManifestError(f"Manifest {manifest_path}: stack.template.file is required.")
    template_path = (manifest_path.parent / template_file).resolve()
    if not template_path.exists():
      raise FileNotFoundError(
        f"Template file '{template_file}' referenced by {manifest_path} does not exist."
      )

    raw_parameters = data.get("parameters", {}) or {}
    if not isinstance(raw_parameters, dict):
      raise ManifestError(f"Manifest {manifest_path}: 'parameters' must be a mapping if provided.")
    raw_tags = data.get("tags", {}) or {}
    if not isinstance(raw_tags, dict):
      raise ManifestError(f"Manifest {manifest_path}: 'tags' must be a mapping if provided.")

    builtins: Dict[str, Any] = {}
    if self.environment:
      builtins["Environment"] = self.environment
    if self.region:
      builtins["Region"] = self.region
    parameters = substitute(raw_parameters, builtins)
    mapping = dict(builtins)
    mapping.update({key: value for key, value in parameters.items() if not isinstance(value, (dict, list))})

    filename = self.filename_for(manifest_path)
    name = stack_section.get("name")
    name = substitute(name, mapping) if name else default_stack_name(filename, self.environment)

    tags: Dict[str, str] = {}
    if self.environment:
      tags["Environment"] = self.environment
    tags["Source"] = "/" + filename
    tags.update({str(key): str(value) for key, value in substitute(raw_tags, mapping).items()})

    dependencies = [
      _artifact_key(entry)
      for entry in _string_list(data.get("dependsOn"), manifest_path, "dependsOn")
    ]

    return Artifact(
      filename=filename,
      name=name,
      outputs=substitute(_string_list(data.get("exports"), manifest_path, "exports"), mapping),
      inputs=substitute(_string_list(data.get("imports"), manifest_path, "imports"), mapping),
      dependencies=dependencies,
      template_file=template_path,
      parameters=parameters,
      tags=tags,
      environments=_string_list(stack_section.get("environments"), manifest_path, "stack.environments"),
      regions=_string_list(stack_section.get("regions"), manifest_path, "stack.regions"),
      description=stack_section.get("description"),
    )

  def _load_manifest_data(self, manifest_path: Path, seen: Optional[Set[Path]] = None) -> Dict[str, Any]:
    if seen is None:
      seen = set()

    resolved_manifest_path = manifest_path.resolve()
    if resolved_manifest_path in seen:
      raise ManifestError(f"Cyclic 'extends' reference detected at {manifest_path}.")
    seen.add(resolved_manifest_path)

    try:
      with manifest_path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle) or {}
    except yaml.YAMLError as exc:
      raise ManifestError(f"Manifest {manifest_path} could not be parsed: {exc}") from exc

    if not isinstance(loaded, dict):
      raise ManifestError(f"Manifest {manifest_path} must parse to a mapping.")

    extends_value = loaded.pop("extends", None)
    merged: Dict[str, Any] = {}

    if extends_value:
      if isinstance(extends_value, str):
        extends_list = [extends_value]
      elif isinstance(extends_value, list) and all(isinstance(item, str) for item in extends_value):
        extends_list = extends_value
      else:
        raise ManifestError(
          f"Manifest {manifest_path}: 'extends' must be a string or list of strings when specified."
        )

      for entry in extends_list:
        base_path = (manifest_path.parent / entry).resolve()
        if not base_path.exists():
          raise FileNotFoundError(f"Manifest {manifest_path}: extended file '{entry}' was not found.")
        base_data = self._load_manifest_data(base_path, seen)
        merged = deep_merge(merged, base_data)

    self._ensure_absolute_template_path(loaded, manifest_path)
    merged = deep_merge(merged, loaded)
    seen.remove(resolved_manifest_path)
    return merged

  def _ensure_absolute_template_path(self, data: Dict[str, Any], manifest_path: Path) -> None:
    stack_section = data.get("stack")
    if not isinstance(stack_section, dict):
      return
    template_section = stack_section.get("template")
    if not isinstance(template_section, dict):
      return
    value = template_section.get("file")
    if isinstance(value, str) and value and not Path(value).is_absolute():
      template_section["file"] = str((manifest_path.parent / value).resolve())
