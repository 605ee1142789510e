"""Stack-management client backed by the AWS CLI.

Commands are built as argument lists and run with ``subprocess``; JSON
output is parsed on success and CLI error text is turned into CallResults.
"""
from __future__ import annotations

import json
import re
import subprocess
import sys
from typing import Any, Dict, Iterable, List, Optional, TextIO

from .errors import RemoteOperationError
from .remote import VALIDATION_ERROR, WAITER_FAILURE, WAITER_TIMEOUT, CallResult

ERROR_PATTERN = re.compile(
  r"An error occurred \((?P<code>[^)]+)\) when calling the (?P<operation>\w+) operation: (?P<message>.*)",
  re.DOTALL,
)
WAITER_PATTERN = re.compile(r"Waiter (?P<waiter>\w+) failed: (?P<message>.*)", re.DOTALL)

WAITERS = {
  "stack_create_complete": "stack-create-complete",
  "stack_update_complete": "stack-update-complete",
  "stack_delete_complete": "stack-delete-complete",
  "change_set_create_complete": "change-set-create-complete",
}


def format_command(command: Iterable[str]) -> str:
  return " ".join(json.dumps(arg) for arg in command)


def parse_error(stderr: str) -> CallResult:
  text = (stderr or "").strip()
  waiter = WAITER_PATTERN.search(text)
  if waiter:
    message = waiter.group("message").strip()
    code = WAITER_TIMEOUT if "Max attempts exceeded" in message else WAITER_FAILURE
    return CallResult(False, code, message)
  error = ERROR_PATTERN.search(text)
  if error:
    return CallResult(False, error.group("code"), error.group("message").strip())
  return CallResult(False, "", text)


class AwsCliClient:
  def __init__(
    self,
    aws_cli: str = "aws",
    *,
    region: Optional[str] = None,
    profile: Optional[str] = None,
    echo: bool = False,
    out: Optional[TextIO] = None,
  ) -> None:
    self.aws_cli = aws_cli
    self.region = region
    self.profile = profile
    self.echo = echo
    self.out = out or sys.stdout

  def build_command(self, *args: str) -> List[str]:
    command = [self.aws_cli, "cloudformation", *args]
    if self.region:
      command.extend(["--region", self.region])
    if self.profile:
      command.extend(["--profile", self.profile])
    command.extend(["--output", "json"])
    return command

  def run(self, *args: str) -> CallResult:
    command = self.build_command(*args)
    if self.echo:
      print(format_command(command), file=self.out)
    try:
      completed = subprocess.run(command, check=False, capture_output=True, text=True)
    except FileNotFoundError as exc:
      return CallResult(
        False,
        "CommandNotFound",
        f"Command '{command[0]}' could not be executed ({exc.strerror or 'file not found'}). "
        "Ensure it is installed and available on PATH.",
      )
    if completed.returncode != 0:
      return parse_error(completed.stderr)
    payload: Any = None
    if completed.stdout and completed.stdout.strip():
      try:
        payload = json.loads(completed.stdout)
      except json.JSONDecodeError:
        payload = None
    return CallResult(True, payload=payload)

  def _require(self, result: CallResult, what: str) -> Any:
    if not result.ok:
      raise RemoteOperationError("", f"Unable to {what}: {result.message}")
    return result.payload or {}

  # -- queries --------------------------------------------------------------

  def list_exports(self) -> List[str]:
    payload = self._require(self.run("list-exports"), "list exports")
    return [export["Name"] for export in payload.get("Exports", []) if export.get("Name")]

  def list_stacks(self) -> List[Dict[str, Any]]:
    payload = self._require(self.run("describe-stacks"), "describe stacks")
    return list(payload.get("Stacks", []))

  def describe_stack(self, stack_name: str) -> Optional[Dict[str, Any]]:
    result = self.run("describe-stacks", "--stack-name", stack_name)
    if not result.ok:
      if result.error_code == VALIDATION_ERROR:
        return None
      raise RemoteOperationError(stack_name, f"Unable to describe stack {stack_name}: {result.message}")
    stacks = (result.payload or {}).get("Stacks", [])
    return stacks[0] if stacks else None

  def list_stack_resources(self, stack_name: str) -> CallResult:
    result = self.run("list-stack-resources", "--stack-name", stack_name)
    if result.ok:
      result.payload = (result.payload or {}).get("StackResourceSummaries", [])
    return result

  # -- stacks ---------------------------------------------------------------

  def create_stack(self, params: Dict[str, Any]) -> CallResult:
    return self.run("create-stack", "--cli-input-json", json.dumps(params))

  def update_stack(self, params: Dict[str, Any]) -> CallResult:
    return self.run("update-stack", "--cli-input-json", json.dumps(params))

  def delete_stack(self, stack_name: str) -> CallResult:
    return self.run("delete-stack", "--stack-name", stack_name)

  def wait_until(self, condition: str, stack_name: str, change_set_name: Optional[str] = None) -> CallResult:
    waiter = WAITERS.get(condition)
    if waiter is None:
      raise ValueError(f"Unknown waiter condition '{condition}'.")
    args = ["wait", waiter, "--stack-name", stack_name]
    if change_set_name:
      args.extend(["--change-set-name", change_set_name])
    return self.run(*args)

  # -- changesets -----------------------------------------------------------

  def create_change_set(self, params: Dict[str, Any]) -> CallResult:
    return self.run("create-change-set", "--cli-input-json", json.dumps(params))

  def describe_change_set(self, change_set_name: str, stack_name: str) -> CallResult:
    return self.run(
      "describe-change-set", "--change-set-name", change_set_name, "--stack-name", stack_name
    )

  def delete_change_set(self, change_set_name: str, stack_name: str) -> CallResult:
    return self.run(
      "delete-change-set", "--change-set-name", change_set_name, "--stack-name", stack_name
    )
