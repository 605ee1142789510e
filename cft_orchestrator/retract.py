"""Retract: delete deployed stacks that nothing left behind depends on."""
from __future__ import annotations

from typing import List, Set, TextIO

from .artifacts import Artifact, ArtifactSet
from .changes import narrate_changes
from .errors import RemoteOperationError, RetractionBlockedError
from .runbook import Runbook


class Retract(Runbook):
  def run(self) -> int:
    candidates = self.load_artifacts()
    targets = self.filtered(candidates)
    deployed = self.deployed_stack_names(environment_only=True)

    # a fresh set, so stacks that are not deployed cannot block removal
    universe = ArtifactSet(artifact for artifact in candidates if artifact.name in deployed)
    deployed_targets = targets.select(lambda artifact: artifact.name in deployed)
    not_deployed = (targets - deployed_targets).filenames
    if not_deployed and self.detail():
      self.print_artifacts("Not deployed, nothing to remove", not_deployed)

    free = self.free_artifacts(universe, deployed_targets)
    free_filenames = set(free.filenames)
    blocked = [filename for filename in deployed_targets.filenames if filename not in free_filenames]
    if blocked:
      raise RetractionBlockedError(blocked)

    removal_order = list(reversed(free))
    if self.detail():
      self.print_artifacts("Removal order", [artifact.filename for artifact in removal_order])

    failures: Set[str] = set()
    skipped: List[str] = []
    for artifact in removal_order:
      dependents = universe.dependency_tree.dependents_of(artifact.filename)
      if any(filename in failures for filename in dependents):
        failures.add(artifact.filename)
        skipped.append(artifact.name)
        continue
      if not self.remove_artifact(artifact, self.out):
        failures.add(artifact.filename)
        if self.settings.stop_on_error:
          break

    if skipped:
      print(f"Kept stacks whose dependents could not be removed: {', '.join(skipped)}", file=self.err)
    if failures:
      failed = [artifact.name for artifact in removal_order if artifact.filename in failures]
      print(f"Completed with failures in: {', '.join(failed)}", file=self.err)
      return 1
    print("All stacks processed successfully.", file=self.out)
    return 0

  def free_artifacts(self, universe: ArtifactSet, targets: ArtifactSet) -> ArtifactSet:
    """Targets that no deployed stack outside the targets depends on."""
    return universe.closed_subset(targets)

  def remove_artifact(self, artifact: Artifact, out: TextIO) -> bool:
    if not self.operation(f"Removing: {artifact.name}", out):
      return True
    try:
      if self.checking:
        narrate_changes(self.operations.changes_on_stack_delete(artifact, self.changeset_set), out)
      if self.doing:
        self.operations.delete_stack(artifact)
        print(f"Stack {artifact.name} removed.", file=out)
    except RemoteOperationError as exc:
      print(f"Error removing {artifact.filename}: {exc}", file=out)
      return False
    return True
