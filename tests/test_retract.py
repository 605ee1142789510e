"""End-to-end tests of the retract runbook against the in-memory client."""
import io

import pytest

from cft_orchestrator.config import Settings
from cft_orchestrator.errors import RetractionBlockedError
from cft_orchestrator.remote import CallResult
from cft_orchestrator.retract import Retract

from conftest import FakeClient, deployed

ALL = ("dev-network-vpc", "dev-apps-api", "dev-apps-web", "dev-data-db")


def run_retract(root, client, **options):
  settings = Settings(root=root, environment="dev", **options)
  out, err = io.StringIO(), io.StringIO()
  code = Retract(settings, client, out=out, err=err, sleep=lambda seconds: None).run()
  return code, out.getvalue(), err.getvalue()


def deleted(client):
  return [call[1] for call in client.calls_named("delete_stack")]


def test_removes_everything_dependents_first(stack_repo):
  client = FakeClient(stacks=deployed(*ALL))
  code, out, _ = run_retract(stack_repo, client)

  assert code == 0
  assert deleted(client) == ["dev-data-db", "dev-apps-web", "dev-apps-api", "dev-network-vpc"]
  assert "Stack dev-network-vpc removed." in out


def test_removes_a_leaf(stack_repo):
  client = FakeClient(stacks=deployed(*ALL))
  code, _, _ = run_retract(stack_repo, client, stacks=["apps/web.manifest.yaml"])
  assert code == 0
  assert deleted(client) == ["dev-apps-web"]


def test_dependency_of_a_kept_stack_is_blocked(stack_repo):
  client = FakeClient(stacks=deployed(*ALL))
  with pytest.raises(RetractionBlockedError) as excinfo:
    run_retract(stack_repo, client, stacks=["dev-network-vpc", "dev-apps-web"])
  assert excinfo.value.filenames == ["network/vpc.manifest.yaml"]
  assert deleted(client) == []


def test_dependents_that_are_not_deployed_do_not_block(stack_repo):
  client = FakeClient(stacks=deployed("dev-network-vpc", "dev-data-db"))
  code, _, _ = run_retract(stack_repo, client, stacks=["network/vpc.manifest.yaml"])
  assert code == 0
  assert deleted(client) == ["dev-network-vpc"]


def test_stacks_of_other_environments_are_ignored(stack_repo):
  client = FakeClient(stacks=deployed("dev-network-vpc") + deployed("dev-apps-web", environment="prod"))
  code, _, _ = run_retract(stack_repo, client)
  assert code == 0
  assert deleted(client) == ["dev-network-vpc"]


def test_not_deployed_selection_is_a_noop(stack_repo):
  client = FakeClient(stacks=deployed("dev-network-vpc"))
  code, out, _ = run_retract(stack_repo, client, stacks=["apps/web.manifest.yaml"], verbose=True)
  assert code == 0
  assert deleted(client) == []
  assert "Not deployed, nothing to remove:\n  1. apps/web.manifest.yaml" in out


def test_failed_removal_keeps_dependencies(stack_repo):
  client = FakeClient(stacks=deployed(*ALL))
  client.results[("delete_stack", "dev-apps-web")] = CallResult(False, "ValidationError", "in use")
  code, out, err = run_retract(stack_repo, client)

  assert code == 1
  assert deleted(client) == ["dev-data-db", "dev-apps-web", "dev-apps-api"]
  assert "Error removing apps/web.manifest.yaml" in out
  assert "Kept stacks whose dependents could not be removed: dev-network-vpc" in err
  assert "Completed with failures in: dev-apps-web, dev-network-vpc" in err


def test_noop(stack_repo):
  client = FakeClient(stacks=deployed(*ALL))
  code, out, _ = run_retract(stack_repo, client, noop=True)
  assert code == 0
  assert client.calls == []
  assert "Removing: dev-network-vpc (noop)" in out


def test_check_previews_deleted_resources(stack_repo):
  client = FakeClient(stacks=deployed("dev-data-db"))
  client.resources["dev-data-db"] = [
    {"LogicalResourceId": "Table", "PhysicalResourceId": "orders", "ResourceType": "AWS::DynamoDB::Table"}
  ]
  code, out, _ = run_retract(stack_repo, client, check=True)

  assert code == 0
  assert deleted(client) == []
  assert "dynamo db table" in out
