"""Shared behaviour of the deploy and retract commands."""
from __future__ import annotations

import sys
import time
from typing import Any, Callable, Dict, List, Optional, Set, TextIO

from .artifacts import ArtifactSet
from .config import Settings
from .errors import ConfigurationError
from .manifests import ManifestRepository
from .remote import ControlPlaneClient, StackOperations, new_changeset_set


def _tag_map(stack: Dict[str, Any]) -> Dict[str, str]:
  return {tag.get("Key", ""): tag.get("Value", "") for tag in stack.get("Tags", []) or []}


class Runbook:
  """Base class for commands.

  Modes come from the settings: ``noop`` touches nothing, ``check`` only
  previews changesets, otherwise changes are applied. ``verbose`` enables
  the extra narrative written through ``detail``.
  """

  def __init__(
    self,
    settings: Settings,
    client: ControlPlaneClient,
    *,
    out: Optional[TextIO] = None,
    err: Optional[TextIO] = None,
    sleep: Callable[[float], None] = time.sleep,
  ) -> None:
    self.settings = settings
    self.client = client
    self.out = out or sys.stdout
    self.err = err or sys.stderr
    self.operations = StackOperations(client, sleep=sleep)
    self.changeset_set = new_changeset_set()

  def run(self) -> int:
    raise NotImplementedError

  # -- narrative helpers ----------------------------------------------------

  def operation(self, description: str, out: Optional[TextIO] = None) -> bool:
    """Narrate the operation; True when it should go ahead (not in noop mode)."""
    out = out or self.out
    if self.settings.noop:
      print(f"{description} (noop)", file=out)
      return False
    print(description, file=out)
    return True

  @property
  def checking(self) -> bool:
    return not self.settings.noop and self.settings.check

  @property
  def doing(self) -> bool:
    return not self.settings.noop and not self.settings.check

  def detail(self, description: Optional[str] = None) -> bool:
    if not self.settings.verbose:
      return False
    if description:
      print(description, file=self.out)
    return True

  # -- artifacts ------------------------------------------------------------

  def load_artifacts(self) -> ArtifactSet:
    settings = self.settings
    repository = ManifestRepository(
      settings.root,
      settings.glob,
      environment=settings.environment,
      region=settings.region,
    )
    return ArtifactSet(
      artifact
      for artifact in repository.load()
      if artifact.allows_environment(settings.environment) and artifact.allows_region(settings.region)
    )

  def filtered(self, candidates: ArtifactSet) -> ArtifactSet:
    """Narrow ``candidates`` to the requested stacks, matched by manifest path or stack name."""
    requested = list(self.settings.stacks or [])
    if not requested:
      return candidates
    wanted = set(requested)
    selected = candidates.select(lambda artifact: artifact.filename in wanted or artifact.name in wanted)
    found = set(selected.filenames) | set(selected.names)
    missing = [name for name in requested if name not in found]
    if missing:
      raise ConfigurationError(
        f"Requested stacks were not found in the manifest set: {', '.join(sorted(missing))}"
      )
    return selected

  def deployed_stack_names(self, environment_only: bool = False) -> Set[str]:
    names: Set[str] = set()
    for stack in self.client.list_stacks():
      if environment_only and self.settings.environment:
        if _tag_map(stack).get("Environment") != self.settings.environment:
          continue
      name = stack.get("StackName")
      if name:
        names.add(name)
    return names

  def print_artifacts(self, heading: str, artifacts: List[str]) -> None:
    print(f"{heading}:", file=self.out)
    if not artifacts:
      print("  (none)", file=self.out)
    for position, filename in enumerate(artifacts, 1):
      print(f"  {position}. {filename}", file=self.out)
    print(file=self.out)
