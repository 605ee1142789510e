"""Shared fixtures: artifact factory and an in-memory control-plane client."""
import threading
from collections import defaultdict
from pathlib import Path

import pytest

from cft_orchestrator.artifacts import Artifact
from cft_orchestrator.remote import CallResult

OK = CallResult(True)


def make_artifact(filename, outputs=(), inputs=(), dependencies=(), name=None, template_file=None):
  return Artifact(
    filename=filename,
    name=name or filename.replace("/", "-").replace(".", "-"),
    outputs=list(outputs),
    inputs=list(inputs),
    dependencies=list(dependencies),
    template_file=template_file,
  )


class FakeClient:
  """Records calls and answers from scripted results.

  ``waits`` maps a waiter condition to a list of CallResults consumed in
  order; once exhausted every wait succeeds.
  """

  def __init__(self, exports=(), stacks=()):
    self.exports = list(exports)
    self.stacks = [
      stack if isinstance(stack, dict) else {"StackName": stack, "Tags": []}
      for stack in stacks
    ]
    self.calls = []
    self.results = {}
    self.waits = defaultdict(list)
    self.change_sets = {}
    self.resources = {}
    self._lock = threading.Lock()

  def _record(self, *call):
    with self._lock:
      self.calls.append(call)

  def calls_named(self, operation):
    return [call for call in self.calls if call[0] == operation]

  def list_exports(self):
    return list(self.exports)

  def list_stacks(self):
    return list(self.stacks)

  def describe_stack(self, stack_name):
    for stack in self.stacks:
      if stack["StackName"] == stack_name:
        return stack
    return None

  def create_stack(self, params):
    self._record("create_stack", params["StackName"])
    return self.results.get(("create_stack", params["StackName"]), OK)

  def update_stack(self, params):
    self._record("update_stack", params["StackName"])
    return self.results.get(("update_stack", params["StackName"]), OK)

  def delete_stack(self, stack_name):
    self._record("delete_stack", stack_name)
    return self.results.get(("delete_stack", stack_name), OK)

  def wait_until(self, condition, stack_name, change_set_name=None):
    self._record("wait_until", condition, stack_name)
    with self._lock:
      queue = self.waits[condition]
      return queue.pop(0) if queue else OK

  def create_change_set(self, params):
    self._record("create_change_set", params["StackName"], params["ChangeSetName"], params["ChangeSetType"])
    return self.results.get(("create_change_set", params["StackName"]), OK)

  def describe_change_set(self, change_set_name, stack_name):
    self._record("describe_change_set", change_set_name)
    status = self.change_sets.get(stack_name, {"Status": "CREATE_COMPLETE", "Changes": []})
    if isinstance(status, list):
      status = status.pop(0) if len(status) > 1 else status[0]
    return CallResult(True, payload=status)

  def delete_change_set(self, change_set_name, stack_name):
    self._record("delete_change_set", change_set_name)
    return OK

  def list_stack_resources(self, stack_name):
    self._record("list_stack_resources", stack_name)
    if stack_name not in self.resources:
      return CallResult(False, "ValidationError", f"Stack with id {stack_name} does not exist")
    return CallResult(True, payload=self.resources[stack_name])


@pytest.fixture
def template_file(tmp_path):
  path = Path(tmp_path) / "template.yaml"
  path.write_text("Resources: {}\n", encoding="utf-8")
  return path


@pytest.fixture
def client():
  return FakeClient()


@pytest.fixture
def sleeps():
  return []


def write_manifest(root, filename, text):
  path = Path(root) / filename
  path.parent.mkdir(parents=True, exist_ok=True)
  path.write_text(text, encoding="utf-8")
  return path


def deployed(*names, environment="dev"):
  return [{"StackName": name, "Tags": [{"Key": "Environment", "Value": environment}]} for name in names]


@pytest.fixture
def stack_repo(tmp_path):
  """A VPC, two applications importing its id and an unrelated database."""
  write_manifest(tmp_path, "templates/stack.yaml", "Resources: {}\n")
  write_manifest(
    tmp_path,
    "network/vpc.manifest.yaml",
    "stack:\n  template:\n    file: ../templates/stack.yaml\nexports:\n  - ${Environment}-vpc-id\n",
  )
  for app in ("web", "api"):
    write_manifest(
      tmp_path,
      f"apps/{app}.manifest.yaml",
      "stack:\n  template:\n    file: ../templates/stack.yaml\nimports:\n  - ${Environment}-vpc-id\n",
    )
  write_manifest(
    tmp_path,
    "data/db.manifest.yaml",
    "stack:\n  template:\n    file: ../templates/stack.yaml\n",
  )
  return tmp_path
