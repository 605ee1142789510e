"""Tests for settings assembly."""
from pathlib import Path

import pytest

from cft_orchestrator.config import CONFIG_FILENAME, Settings, build_settings, load_config_file
from cft_orchestrator.errors import ConfigurationError


def test_defaults(tmp_path):
  settings = build_settings({"root": str(tmp_path)}, environ={})
  assert settings.root == tmp_path
  assert settings.glob == "**/*.manifest.yaml"
  assert settings.jobs == 1
  assert settings.dependency_mode == "include"
  assert settings.folders == []


def test_precedence(tmp_path):
  """Flags beat environment variables, which beat the config file."""
  (tmp_path / CONFIG_FILENAME).write_text(
    "environment: qa\nregion: eu-west-1\njobs: 3\nfolders: [network, apps]\naws-cli: aws2\n",
    encoding="utf-8",
  )
  settings = build_settings(
    {"root": str(tmp_path), "region": "us-east-1", "environment": None},
    environ={"CFT_ORCHESTRATOR_ENVIRONMENT": "stage", "CFT_ORCHESTRATOR_DEPENDENCIES": "SKIP"},
  )
  assert settings.environment == "stage"
  assert settings.region == "us-east-1"
  assert settings.jobs == 3
  assert settings.folders == ["network", "apps"]
  assert settings.aws_cli == "aws2"
  assert settings.dependency_mode == "skip"


def test_explicit_config_path(tmp_path):
  config = tmp_path / "elsewhere.yaml"
  config.write_text("profile: ops\n", encoding="utf-8")
  settings = build_settings({"root": str(tmp_path)}, config_path=config, environ={})
  assert settings.profile == "ops"


def test_missing_explicit_config(tmp_path):
  with pytest.raises(ConfigurationError, match="does not exist"):
    build_settings({}, config_path=tmp_path / "missing.yaml", environ={})


@pytest.mark.parametrize(
  "text, message",
  [
    ("noop: true\n", "unknown keys: noop"),
    ("jobs: many\n", "jobs must be an integer"),
    ("folders: apps\n", "folders must be a list"),
    ("- a\n- b\n", "must parse to a mapping"),
    ("environment: [\n", "could not be parsed"),
  ],
)
def test_invalid_config_files(tmp_path, text, message):
  path = tmp_path / CONFIG_FILENAME
  path.write_text(text, encoding="utf-8")
  with pytest.raises(ConfigurationError, match=message):
    load_config_file(path)


def test_validation():
  with pytest.raises(ConfigurationError):
    Settings(jobs=0).validate()
  with pytest.raises(ConfigurationError):
    Settings(dependency_mode="sometimes").validate()
  assert Settings(root=Path("x")).validate().root == Path("x")
