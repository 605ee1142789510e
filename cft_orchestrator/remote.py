"""Applying a single artifact against the stack-management API.

Every mutating call is followed by a blocking wait. Waits and changeset
polls report an Outcome; retryable outcomes are retried with exponential
backoff a bounded number of times before becoming fatal.
"""
from __future__ import annotations

import re
import secrets
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol

from .artifacts import Artifact
from .changes import Change, DeletionChange
from .errors import RemoteOperationError

VALIDATION_ERROR = "ValidationError"
WAITER_TIMEOUT = "WaiterTimeout"
WAITER_FAILURE = "WaiterFailure"

NO_UPDATES = re.compile(r"No updates are to be performed")
NO_CHANGESET_CHANGES = re.compile(r"didn't contain changes|No updates are to be performed")

MAX_RETRIES = 5


@dataclass
class CallResult:
  ok: bool
  error_code: str = ""
  message: str = ""
  payload: Any = None


class Status(str, Enum):
  SUCCESS = "success"
  RETRYABLE_FAILURE = "retryable_failure"
  FATAL_FAILURE = "fatal_failure"
  NO_CHANGES = "no_changes"


@dataclass(frozen=True)
class Outcome:
  status: Status
  reason: str = ""

  @property
  def ok(self) -> bool:
    return self.status in (Status.SUCCESS, Status.NO_CHANGES)

  @classmethod
  def success(cls) -> "Outcome":
    return cls(Status.SUCCESS)

  @classmethod
  def retryable(cls, reason: str) -> "Outcome":
    return cls(Status.RETRYABLE_FAILURE, reason)

  @classmethod
  def fatal(cls, reason: str) -> "Outcome":
    return cls(Status.FATAL_FAILURE, reason)

  @classmethod
  def no_changes(cls, reason: str = "") -> "Outcome":
    return cls(Status.NO_CHANGES, reason)


class ControlPlaneClient(Protocol):
  def list_exports(self) -> List[str]:
    ...

  def list_stacks(self) -> List[Dict[str, Any]]:
    ...

  def describe_stack(self, stack_name: str) -> Optional[Dict[str, Any]]:
    ...

  def create_stack(self, params: Dict[str, Any]) -> CallResult:
    ...

  def update_stack(self, params: Dict[str, Any]) -> CallResult:
    ...

  def delete_stack(self, stack_name: str) -> CallResult:
    ...

  def wait_until(self, condition: str, stack_name: str, change_set_name: Optional[str] = None) -> CallResult:
    ...

  def create_change_set(self, params: Dict[str, Any]) -> CallResult:
    ...

  def describe_change_set(self, change_set_name: str, stack_name: str) -> CallResult:
    ...

  def delete_change_set(self, change_set_name: str, stack_name: str) -> CallResult:
    ...

  def list_stack_resources(self, stack_name: str) -> CallResult:
    ...


def new_changeset_set() -> str:
  """Token tying together the changesets created during one run."""
  return secrets.token_hex(8)


class StackOperations:
  def __init__(
    self,
    client: ControlPlaneClient,
    *,
    sleep: Callable[[float], None] = time.sleep,
    max_retries: int = MAX_RETRIES,
  ) -> None:
    self.client = client
    self.max_retries = max_retries
    self._sleep = sleep

  # -- stacks ---------------------------------------------------------------

  def create_stack(self, artifact: Artifact) -> Outcome:
    params = artifact.stack_parameters()
    params["OnFailure"] = "DELETE"
    result = self.client.create_stack(params)
    if not result.ok:
      raise RemoteOperationError(artifact.name, f"Error creating stack {artifact.name}: {result.message}")
    return self._wait_for_stack("stack_create_complete", artifact.name)

  def update_stack(self, artifact: Artifact) -> Outcome:
    """Update the stack; an update with nothing to change counts as success."""
    result = self.client.update_stack(artifact.stack_parameters())
    if not result.ok:
      if NO_UPDATES.search(result.message):
        return Outcome.no_changes(result.message)
      raise RemoteOperationError(artifact.name, f"Error updating stack {artifact.name}: {result.message}")
    return self._wait_for_stack("stack_update_complete", artifact.name)

  def delete_stack(self, artifact: Artifact) -> Outcome:
    result = self.client.delete_stack(artifact.name)
    if not result.ok:
      raise RemoteOperationError(artifact.name, f"Error deleting stack {artifact.name}: {result.message}")
    return self._wait_for_stack("stack_delete_complete", artifact.name)

  # -- changesets -----------------------------------------------------------

  def changes_on_stack_create(self, artifact: Artifact, changeset_set: str) -> List[Change]:
    return self._do_changeset(artifact, "CREATE", changeset_set)

  def changes_on_stack_update(self, artifact: Artifact, changeset_set: str) -> List[Change]:
    return self._do_changeset(artifact, "UPDATE", changeset_set)

  def changes_on_stack_delete(self, artifact: Artifact, _changeset_set: str = "") -> List[Change]:
    """Narrate the resources a deletion would remove; a stack not yet deployed removes nothing."""
    result = self.client.list_stack_resources(artifact.name)
    if not result.ok:
      if result.error_code == VALIDATION_ERROR:
        return []
      raise RemoteOperationError(
        artifact.name, f"Error listing resources for {artifact.name}: {result.message}"
      )
    return [DeletionChange(resource) for resource in result.payload or []]

  def _do_changeset(self, artifact: Artifact, change_set_type: str, changeset_set: str) -> List[Change]:
    stack_name = artifact.name
    change_set_name = f"{stack_name}-{changeset_set}"
    params = artifact.stack_parameters()
    params.update(ChangeSetName=change_set_name, ChangeSetType=change_set_type)

    try:
      created = self.client.create_change_set(params)
      if not created.ok:
        raise RemoteOperationError(
          stack_name, f"Error creating changeset for {stack_name}: {created.message}"
        )
      outcome = self._poll(
        stack_name,
        "changeset",
        lambda: self._changeset_status(change_set_name, stack_name),
      )
      if outcome.status is Status.NO_CHANGES:
        return []
      described = self.client.describe_change_set(change_set_name, stack_name)
      if not described.ok:
        raise RemoteOperationError(
          stack_name, f"Error describing changeset for {stack_name}: {described.message}"
        )
      return [Change(record) for record in (described.payload or {}).get("Changes", [])]
    finally:
      self.client.delete_change_set(change_set_name, stack_name)

  def _changeset_status(self, change_set_name: str, stack_name: str) -> Outcome:
    waited = self.client.wait_until("change_set_create_complete", stack_name, change_set_name)
    if waited.ok:
      return Outcome.success()
    described = self.client.describe_change_set(change_set_name, stack_name)
    if not described.ok:
      return Outcome.retryable(described.message or waited.message)
    status = described.payload or {}
    reason = status.get("StatusReason") or waited.message
    if status.get("Status") != "FAILED":
      return Outcome.retryable(reason)
    if NO_CHANGESET_CHANGES.search(reason or ""):
      return Outcome.no_changes(reason)
    return Outcome.fatal(reason)

  # -- waiting --------------------------------------------------------------

  def _wait_for_stack(self, condition: str, stack_name: str) -> Outcome:
    return self._poll(stack_name, condition, lambda: self._stack_status(condition, stack_name))

  def _stack_status(self, condition: str, stack_name: str) -> Outcome:
    waited = self.client.wait_until(condition, stack_name)
    if waited.ok:
      return Outcome.success()
    if waited.error_code == WAITER_TIMEOUT:
      return Outcome.retryable(waited.message)
    return Outcome.fatal(waited.message)

  def _poll(self, stack_name: str, description: str, check: Callable[[], Outcome]) -> Outcome:
    attempt = 0
    while True:
      outcome = check()
      if outcome.status is Status.FATAL_FAILURE:
        raise RemoteOperationError(
          stack_name, f"Error waiting on {description} for {stack_name}: {outcome.reason}"
        )
      if outcome.status is not Status.RETRYABLE_FAILURE:
        return outcome
      attempt += 1
      if attempt > self.max_retries:
        raise RemoteOperationError(
          stack_name,
          f"Error waiting on {description} for {stack_name} after {self.max_retries} retries: {outcome.reason}",
        )
      self._sleep(2 ** attempt + 1)
