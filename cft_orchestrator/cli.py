"""Command-line entry point.

Loads stack manifests, resolves their dependencies and deploys or retracts
CloudFormation stacks through the AWS CLI.
"""
from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path
from typing import Dict, List, Optional, Type

from .aws_cli import AwsCliClient
from .config import Settings, build_settings
from .deploy import Deploy
from .errors import ToolingError
from .retract import Retract
from .runbook import Runbook

RUNBOOKS: Dict[str, Type[Runbook]] = {
  "deploy": Deploy,
  "retract": Retract,
}


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
  parser.add_argument(
    "--root",
    default=None,
    help="Root directory to search for manifest files (default: current directory).",
  )
  parser.add_argument(
    "--glob",
    default=None,
    help="Glob pattern for manifest discovery relative to the root directory (default: **/*.manifest.yaml).",
  )
  parser.add_argument(
    "--config",
    default=None,
    help="YAML config file (default: cft-orchestrator.yaml under the root, when present).",
  )
  parser.add_argument("--environment", "-e", default=None, help="Operational environment to act in.")
  parser.add_argument("--region", "-r", default=None, help="AWS region to act in.")
  parser.add_argument("--profile", "-p", default=None, help="AWS credential profile to use.")
  parser.add_argument(
    "--aws-cli",
    default=None,
    help="AWS CLI executable name (default: aws).",
  )
  parser.add_argument(
    "--stacks",
    nargs="*",
    default=None,
    help="Manifest paths or stack names to act on (default: every manifest).",
  )
  parser.add_argument(
    "--folders",
    nargs="*",
    default=None,
    help="Folder priorities; stacks in earlier folders, with their dependencies, go first.",
  )
  parser.add_argument(
    "--noop",
    "-n",
    action="store_true",
    help="Narrate what would happen without calling any mutating API.",
  )
  parser.add_argument(
    "--check",
    "-c",
    action="store_true",
    help="Preview the changes of each stack through changesets instead of applying them.",
  )
  parser.add_argument("--verbose", "-v", action="store_true", help="Print dependency maps and ordering.")
  parser.add_argument("--echo", action="store_true", help="Echo each AWS CLI command before execution.")
  parser.add_argument(
    "--stop-on-error",
    action="store_true",
    help="Stop executing further stacks after the first failure.",
  )


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
  parser = argparse.ArgumentParser(
    prog="cft-orchestrator",
    description="CloudFormation stack orchestrator",
  )
  subparsers = parser.add_subparsers(dest="command", required=True)

  deploy_parser = subparsers.add_parser("deploy", help="Create or update stacks in dependency order.")
  _add_common_arguments(deploy_parser)
  deploy_parser.add_argument(
    "--jobs",
    "-j",
    type=int,
    default=None,
    help="Maximum number of stacks to deploy in parallel (default: 1).",
  )
  dependency_group = deploy_parser.add_mutually_exclusive_group()
  dependency_group.add_argument(
    "--include-dependencies",
    action="store_true",
    help=(
      "Deploy dependency stacks alongside the selected stacks. "
      "This is the default behaviour unless overridden via environment variable."
    ),
  )
  dependency_group.add_argument(
    "--skip-dependencies",
    action="store_true",
    help=(
      "Skip deploying dependency stacks and reuse their existing exports. "
      "Supports fast, targeted updates but should be used with caution."
    ),
  )

  retract_parser = subparsers.add_parser("retract", help="Delete stacks nothing else depends on.")
  _add_common_arguments(retract_parser)

  args = parser.parse_args(argv)
  dependency_mode = None
  if getattr(args, "include_dependencies", False):
    dependency_mode = "include"
  elif getattr(args, "skip_dependencies", False):
    dependency_mode = "skip"
  args.dependency_mode = dependency_mode
  return args


def settings_from_arguments(args: argparse.Namespace) -> Settings:
  overrides = {key: value for key, value in vars(args).items() if key not in ("command", "config")}
  config_path = Path(args.config) if args.config else None
  return build_settings(overrides, config_path=config_path)


def orchestrate(command: str, settings: Settings) -> int:
  aws_cli_path = shutil.which(settings.aws_cli)
  if aws_cli_path is None:
    print(
      f"AWS CLI executable '{settings.aws_cli}' was not found on PATH. "
      "Install the AWS CLI or supply --aws-cli with the full path to the executable.",
      file=sys.stderr,
    )
    return 1

  client = AwsCliClient(
    aws_cli_path,
    region=settings.region,
    profile=settings.profile,
    echo=settings.echo,
  )
  return RUNBOOKS[command](settings, client).run()


def main(argv: Optional[List[str]] = None) -> int:
  args = parse_arguments(argv)
  try:
    return orchestrate(args.command, settings_from_arguments(args))
  except (ToolingError, FileNotFoundError) as exc:
    print(str(exc), file=sys.stderr)
    return 1
  except Exception as exc:  # pylint: disable=broad-except
    print(f"Unhandled error: {exc}", file=sys.stderr)
    return 1
