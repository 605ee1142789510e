"""Dependencies between artifacts derived from exported and imported variables."""
from __future__ import annotations

import copy
from typing import Dict, Iterable, List, Optional

from .errors import CyclicDependencyError
from .graph import BipartiteGraph, DependencyGraph
from .variables import VariableRegistry


class DependencyTree:
  def __init__(self, graph: Optional[DependencyGraph] = None) -> None:
    self.graph: DependencyGraph = graph if graph is not None else BipartiteGraph()
    self.variables = VariableRegistry()
    self._filenames: Dict[str, None] = {}

  @property
  def filenames(self) -> List[str]:
    return list(self._filenames)

  def copy(self) -> "DependencyTree":
    return copy.deepcopy(self)

  def undefined_variables(self) -> List[str]:
    return self.variables.undefined

  def defined_variables(self) -> List[str]:
    return self.variables.defined

  def exported(self, variable: str) -> None:
    """Note a variable defined outside the tree, e.g. by an already deployed stack."""
    self.variables.define(variable)

  def add(self, filename: str) -> None:
    self.graph.add_node(filename)
    self._filenames.setdefault(filename, None)

  def provided(self, filename: str, variable: str) -> None:
    self.graph.link(variable, filename)
    self._filenames.setdefault(filename, None)
    self.variables.define(variable)

  def required(self, filename: str, variable: str) -> None:
    self.graph.link(filename, variable)
    self._filenames.setdefault(filename, None)
    self.variables.reference(variable)

  def linked(self, source: str, target: str) -> None:
    """Record that ``source`` must be applied before ``target``."""
    linker = f"{source}$${target}"
    self.provided(source, linker)
    self.required(target, linker)

  def dependencies_of(self, filename: str) -> List[str]:
    return self.graph.dependencies_of(filename)

  def dependents_of(self, filename: str) -> List[str]:
    return self.graph.dependents_of(filename)

  def sort(self) -> List[str]:
    try:
      order = self.graph.topological_sort()
    except CyclicDependencyError as exc:
      members = [node for node in exc.members if node in self._filenames]
      raise CyclicDependencyError(members or exc.members) from exc
    return [node for node in order if node in self._filenames]

  def closed_subset(self, keys: Iterable[str]) -> List[str]:
    """Largest part of ``keys`` in which no member has a dependent outside the result.

    Dropping one member can expose another, so passes repeat until stable.
    """
    members = list(keys)
    while True:
      allowed = set(members)
      kept = [
        key
        for key in members
        if all(dependent in allowed for dependent in self.dependents_of(key))
      ]
      if len(kept) == len(members):
        return kept
      members = kept
