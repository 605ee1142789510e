"""Deployable artifacts and the dependency-ordered sets that hold them."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Union

from .dependency_tree import DependencyTree
from .scheduler import BatchScheduler

CAPABILITIES = ["CAPABILITY_IAM", "CAPABILITY_NAMED_IAM"]


@dataclass
class Artifact:
  filename: str
  name: str
  outputs: List[str] = field(default_factory=list)
  inputs: List[str] = field(default_factory=list)
  dependencies: List[str] = field(default_factory=list)
  template_file: Optional[Path] = None
  parameters: Dict[str, Any] = field(default_factory=dict)
  tags: Dict[str, str] = field(default_factory=dict)
  environments: List[str] = field(default_factory=list)
  regions: List[str] = field(default_factory=list)
  description: Optional[str] = None

  def allows_environment(self, environment: Optional[str]) -> bool:
    return not environment or not self.environments or environment in self.environments

  def allows_region(self, region: Optional[str]) -> bool:
    return not region or not self.regions or region in self.regions

  def in_folder(self, folder: str) -> bool:
    return self.filename.startswith(folder.rstrip("/") + "/")

  def template_body(self) -> str:
    if self.template_file is None:
      raise ValueError(f"Artifact {self.filename} does not reference a template file.")
    return self.template_file.read_text(encoding="utf-8")

  def stack_parameters(self) -> Dict[str, Any]:
    """Request body shared by stack and changeset calls."""
    return {
      "StackName": self.name,
      "TemplateBody": self.template_body(),
      "Parameters": [
        {"ParameterKey": key, "ParameterValue": _parameter_value(value)}
        for key, value in self.parameters.items()
      ],
      "Tags": [{"Key": key, "Value": value} for key, value in self.tags.items()],
      "Capabilities": list(CAPABILITIES),
    }


def _parameter_value(value: Any) -> str:
  if isinstance(value, bool):
    return "true" if value else "false"
  if isinstance(value, (list, tuple)):
    return ",".join(str(item) for item in value)
  return str(value)


class ArtifactSet:
  """An ordered collection of artifacts kept in dependency order.

  Every artifact added feeds the set's DependencyTree. Filtering and
  difference return new ArtifactSet values holding a copy of this set's tree,
  so a variable defined here stays defined even when its provider is left
  out; a union starts a fresh tree seeded with both operands' definitions.
  Queries that answer artifacts only ever return members of the set.
  """

  def __init__(
    self,
    artifacts: Iterable[Artifact] = (),
    known_exports: Iterable[str] = (),
    tree: Optional[DependencyTree] = None,
  ) -> None:
    self.dependency_tree = tree if tree is not None else DependencyTree()
    self._artifacts: List[Artifact] = []
    self._index: Dict[str, Artifact] = {}
    self._known_exports: List[str] = []
    self.add_known_exports(known_exports)
    for artifact in artifacts:
      self._register(artifact)
    self._resort()

  # -- sequence behaviour ---------------------------------------------------

  def __len__(self) -> int:
    return len(self._artifacts)

  def __iter__(self) -> Iterator[Artifact]:
    return iter(list(self._artifacts))

  def __reversed__(self) -> Iterator[Artifact]:
    return reversed(list(self._artifacts))

  def __getitem__(self, index: Union[int, slice]) -> Any:
    return self._artifacts[index]

  def __contains__(self, item: object) -> bool:
    if isinstance(item, Artifact):
      return self._index.get(item.filename) is item
    return item in self._index

  def __eq__(self, other: object) -> bool:
    if isinstance(other, ArtifactSet):
      return self._artifacts == other._artifacts
    if isinstance(other, list):
      return self._artifacts == other
    return NotImplemented

  def __repr__(self) -> str:
    return f"ArtifactSet({self.filenames!r})"

  def __add__(self, other: Iterable[Artifact]) -> "ArtifactSet":
    return self.union(other)

  def __or__(self, other: Iterable[Artifact]) -> "ArtifactSet":
    return self.union(other)

  def __sub__(self, other: Iterable[Artifact]) -> "ArtifactSet":
    return self.difference(other)

  # -- membership -----------------------------------------------------------

  @property
  def filenames(self) -> List[str]:
    return [artifact.filename for artifact in self._artifacts]

  @property
  def names(self) -> List[str]:
    return [artifact.name for artifact in self._artifacts]

  @property
  def known_exports(self) -> List[str]:
    return list(self._known_exports)

  def add_known_exports(self, names: Iterable[str]) -> None:
    for name in names:
      if name not in self._known_exports:
        self._known_exports.append(name)
      self.dependency_tree.exported(name)

  def add(self, artifact: Artifact) -> "ArtifactSet":
    if self._register(artifact):
      self._resort()
    return self

  def undefined_variables(self) -> List[str]:
    return self.dependency_tree.undefined_variables()

  def defined_variables(self) -> List[str]:
    return self.dependency_tree.defined_variables()

  # -- set algebra ----------------------------------------------------------

  def union(self, other: Iterable[Artifact]) -> "ArtifactSet":
    merged: List[Artifact] = []
    names = set()
    for artifact in list(self._artifacts) + list(other):
      if artifact.name in names:
        continue
      names.add(artifact.name)
      merged.append(artifact)
    exports = list(self._known_exports)
    tree = DependencyTree()
    for variable in self.defined_variables():
      tree.exported(variable)
    if isinstance(other, ArtifactSet):
      exports.extend(other.known_exports)
      for variable in other.defined_variables():
        tree.exported(variable)
    return ArtifactSet(merged, known_exports=exports, tree=tree)

  def difference(self, other: Iterable[Artifact]) -> "ArtifactSet":
    forbidden = {artifact.name for artifact in other}
    return self._derive(artifact for artifact in self._artifacts if artifact.name not in forbidden)

  def select(self, predicate: Callable[[Artifact], bool]) -> "ArtifactSet":
    return self._derive(artifact for artifact in self._artifacts if predicate(artifact))

  def artifacts_for(self, filenames: Iterable[str]) -> "ArtifactSet":
    wanted = set(filenames)
    return self.select(lambda artifact: artifact.filename in wanted)

  def dependencies_for(self, artifact: Artifact) -> "ArtifactSet":
    return self.artifacts_for(self.dependency_tree.dependencies_of(artifact.filename))

  def dependents_for(self, artifact: Artifact) -> "ArtifactSet":
    return self.artifacts_for(self.dependency_tree.dependents_of(artifact.filename))

  # -- closures and ordering ------------------------------------------------

  def closure(self, subset: Iterable[Artifact]) -> "ArtifactSet":
    """The artifacts of ``subset`` plus everything in this set they depend on, transitively."""
    keys: Dict[str, None] = {artifact.filename: None for artifact in subset}
    pending = list(keys)
    while pending:
      filename = pending.pop(0)
      for dependency in self.dependency_tree.dependencies_of(filename):
        if dependency not in keys:
          keys[dependency] = None
          pending.append(dependency)
    return self.artifacts_for(keys)

  def closed_subset(self, subset: Iterable[Artifact]) -> "ArtifactSet":
    """The part of ``subset`` with no dependents outside ``subset``."""
    filenames = [artifact.filename for artifact in subset]
    return self.artifacts_for(self.dependency_tree.closed_subset(filenames))

  def in_folder_order(self, folders: Iterable[str]) -> "ArtifactSet":
    """Place each folder's artifacts, with whatever they need, ahead of later folders.

    Closures are taken against the whole set; an artifact already placed by an
    earlier folder is not repeated. Artifacts outside every folder come last.
    """
    placed = self._derive([])
    remaining = self
    for folder in folders:
      in_folder = remaining.select(lambda artifact, prefix=folder: artifact.in_folder(prefix))
      selected = self.closure(in_folder) - placed
      remaining = remaining - selected
      placed = placed | selected
    return placed | remaining

  def each_slice(self, max_size: int, callback: Callable[[List[Artifact]], None]) -> int:
    """Hand ``callback`` waves of at most ``max_size`` artifacts in dependency order.

    Dependencies on artifacts outside this set are taken as already satisfied.
    Returns the number of waves processed.
    """
    scheduler = BatchScheduler(max_size, callback)
    members = set(self._index)
    for artifact in self._artifacts:
      dependencies = [
        filename
        for filename in self.dependency_tree.dependencies_of(artifact.filename)
        if filename in members
      ]
      scheduler.add(artifact, dependencies)
    scheduler.finish()
    return scheduler.waves_processed

  def waves(self, max_size: int) -> List[List[Artifact]]:
    collected: List[List[Artifact]] = []
    self.each_slice(max_size, collected.append)
    return collected

  # -- internals ------------------------------------------------------------

  def _derive(self, artifacts: Iterable[Artifact]) -> "ArtifactSet":
    return ArtifactSet(artifacts, known_exports=self._known_exports, tree=self.dependency_tree.copy())

  def _register(self, artifact: Artifact) -> bool:
    filename = artifact.filename
    if filename in self._index:
      return False
    self._artifacts.append(artifact)
    self._index[filename] = artifact

    tree = self.dependency_tree
    tree.add(filename)
    for variable in artifact.inputs:
      tree.required(filename, variable)
    for variable in artifact.outputs:
      tree.provided(filename, variable)
    for dependency in artifact.dependencies:
      if dependency in self._index and dependency != filename:
        tree.linked(dependency, filename)
    for other in self._artifacts:
      if other is not artifact and filename in other.dependencies:
        tree.linked(filename, other.filename)
    return True

  def _resort(self) -> None:
    position = {filename: index for index, filename in enumerate(self.dependency_tree.sort())}
    fallback = len(position)
    self._artifacts.sort(key=lambda artifact: position.get(artifact.filename, fallback))
