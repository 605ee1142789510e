"""Deploy: create or update stacks in dependency order, wave by wave."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Dict, List, Optional, Set, TextIO

from .artifacts import Artifact, ArtifactSet
from .changes import narrate_changes
from .errors import ConfigurationError, RemoteOperationError, UndefinedVariablesError
from .output import ThreadedOutput
from .remote import Status
from .runbook import Runbook


def print_dependency_summary(ordered: ArtifactSet, waves: List[List[Artifact]], out: TextIO) -> None:
  if not len(ordered):
    print("No stacks selected for deployment.", file=out)
    return

  tree = ordered.dependency_tree
  members = set(ordered.filenames)
  dependency_map: Dict[str, List[str]] = {
    artifact.filename: [name for name in tree.dependencies_of(artifact.filename) if name in members]
    for artifact in ordered
  }
  roots = [filename for filename, dependencies in dependency_map.items() if not dependencies]
  dependents = [filename for filename, dependencies in dependency_map.items() if dependencies]

  print("Dependency map (selected scope):", file=out)
  print("  Root stacks:", file=out)
  if roots:
    for filename in roots:
      print(f"    - {filename}", file=out)
  else:
    print("    (none)", file=out)

  print("  Dependent stacks:", file=out)
  if dependents:
    for filename in dependents:
      print(f"    {filename}", file=out)
      for dependency_name in dependency_map[filename]:
        print(f"      -> {dependency_name}", file=out)
  else:
    print("    (none)", file=out)
  print(file=out)

  print("Execution waves:", file=out)
  for position, wave in enumerate(waves, 1):
    print(f"  {position}. {', '.join(artifact.name for artifact in wave)}", file=out)
  print(file=out)


class Deploy(Runbook):
  def __init__(self, *args, **kwargs) -> None:
    super().__init__(*args, **kwargs)
    self.ordered = ArtifactSet()
    self.deployed: Set[str] = set()
    self.failures: Set[str] = set()
    self.skipped: List[str] = []
    self.stopped = False

  def run(self) -> int:
    universe = self.load_artifacts()
    universe.add_known_exports(self.client.list_exports())

    ordered = self.select_artifacts(universe).in_folder_order(self.settings.folders)
    undefined = ordered.undefined_variables()
    if undefined:
      raise UndefinedVariablesError(undefined)

    if self.detail():
      print_dependency_summary(ordered, ordered.waves(self.settings.jobs), self.out)

    self.ordered = ordered
    self.deployed = self.deployed_stack_names()
    self.failures = set()
    self.skipped = []
    self.stopped = False

    executor: Optional[ThreadPoolExecutor] = None
    try:
      if self.settings.jobs > 1:
        executor = ThreadPoolExecutor(max_workers=self.settings.jobs)
      ordered.each_slice(self.settings.jobs, lambda wave: self.process_wave(wave, executor))
    finally:
      if executor is not None:
        executor.shutdown(wait=True)

    if self.skipped:
      print(
        f"Skipped stacks due to unmet dependencies or earlier failures: {', '.join(self.skipped)}",
        file=self.err,
      )
    if self.failures:
      failed = [artifact.name for artifact in ordered if artifact.filename in self.failures]
      print(f"Completed with failures in: {', '.join(failed)}", file=self.err)
      return 1
    print("All stacks processed successfully.", file=self.out)
    return 0

  def select_artifacts(self, universe: ArtifactSet) -> ArtifactSet:
    targets = self.filtered(universe)
    if self.settings.dependency_mode != "skip":
      return universe.closure(targets)

    if not self.settings.stacks:
      raise ConfigurationError(
        "--skip-dependencies requires --stacks to target specific stacks; "
        "refusing to skip dependencies for a full run."
      )
    skipped_dependencies = (universe.closure(targets) - targets).names
    if skipped_dependencies:
      print(
        "Skipping dependency deployments for: "
        + ", ".join(skipped_dependencies)
        + ". Existing exports will be reused.",
        file=self.out,
      )
    return targets

  def process_wave(self, wave: List[Artifact], executor: Optional[ThreadPoolExecutor]) -> None:
    runnable: List[Artifact] = []
    for artifact in wave:
      blocked = [
        filename
        for filename in self.ordered.dependency_tree.dependencies_of(artifact.filename)
        if filename in self.failures
      ]
      if self.stopped or blocked:
        self.failures.add(artifact.filename)
        self.skipped.append(artifact.name)
      else:
        runnable.append(artifact)

    results: Dict[str, bool] = {}
    if executor is not None and len(runnable) > 1:
      output = ThreadedOutput(self.out)
      future_map = {
        executor.submit(self.apply_in_channel, artifact, output): artifact
        for artifact in runnable
      }
      for future in as_completed(future_map):
        artifact = future_map[future]
        try:
          results[artifact.filename] = future.result()
        except Exception as exc:  # pylint: disable=broad-except
          self.report_unexpected(artifact, exc)
          results[artifact.filename] = False
    else:
      for artifact in runnable:
        try:
          results[artifact.filename] = self.apply_artifact(artifact, self.out)
        except Exception as exc:  # pylint: disable=broad-except
          self.report_unexpected(artifact, exc)
          results[artifact.filename] = False

    for filename, success in results.items():
      if not success:
        self.failures.add(filename)
        if self.settings.stop_on_error:
          self.stopped = True

  def report_unexpected(self, artifact: Artifact, exc: Exception) -> None:
    print(f"Stack '{artifact.name}' raised an unexpected error: {exc}", file=self.err)

  def apply_in_channel(self, artifact: Artifact, output: ThreadedOutput) -> bool:
    channel = output.channel(artifact.name)
    try:
      return self.apply_artifact(artifact, channel)
    finally:
      channel.flush()

  def apply_artifact(self, artifact: Artifact, out: TextIO) -> bool:
    is_update = artifact.name in self.deployed
    if not self.operation(f"{'Updating' if is_update else 'Creating'}: {artifact.name}", out):
      return True

    try:
      if self.checking:
        if is_update:
          changes = self.operations.changes_on_stack_update(artifact, self.changeset_set)
        else:
          changes = self.operations.changes_on_stack_create(artifact, self.changeset_set)
        narrate_changes(changes, out)
      if self.doing:
        outcome = (
          self.operations.update_stack(artifact) if is_update else self.operations.create_stack(artifact)
        )
        if outcome.status is Status.NO_CHANGES:
          print(f"No updates are to be performed on {artifact.name}.", file=out)
        else:
          print(f"Stack {artifact.name} {'updated' if is_update else 'created'}.", file=out)
    except RemoteOperationError as exc:
      print(f"Error processing {artifact.filename}: {exc}", file=out)
      return False
    return True
