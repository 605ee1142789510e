"""Directed graph between artifact nodes and variable nodes.

Edges always cross between the two kinds of node: an artifact links to the
variables it requires and a variable links to the artifacts providing it.
Hopping twice along the edges therefore lands on a node of the same kind as
the one queried.
"""
from __future__ import annotations

from typing import Dict, Iterator, List, Protocol, Set, Tuple

from .errors import CyclicDependencyError


class DependencyGraph(Protocol):
  def add_node(self, key: str) -> None:
    ...

  def link(self, source: str, target: str) -> None:
    ...

  def dependencies_of(self, key: str) -> List[str]:
    ...

  def dependents_of(self, key: str) -> List[str]:
    ...

  def topological_sort(self) -> List[str]:
    ...


def _double_hop(edges: Dict[str, List[str]], key: str) -> List[str]:
  found: Dict[str, None] = {}
  for neighbor in edges.get(key, []):
    for candidate in edges.get(neighbor, []):
      found.setdefault(candidate, None)
  return list(found)


class BipartiteGraph:
  def __init__(self) -> None:
    self._edges: Dict[str, List[str]] = {}
    self._inverse: Dict[str, List[str]] = {}

  @property
  def nodes(self) -> List[str]:
    return list(self._edges)

  def add_node(self, key: str) -> None:
    self._edges.setdefault(key, [])
    self._inverse.setdefault(key, [])

  def link(self, source: str, target: str) -> None:
    self.add_node(source)
    self.add_node(target)
    if target not in self._edges[source]:
      self._edges[source].append(target)
      self._inverse[target].append(source)

  def dependencies_of(self, key: str) -> List[str]:
    return _double_hop(self._edges, key)

  def dependents_of(self, key: str) -> List[str]:
    return _double_hop(self._inverse, key)

  def topological_sort(self) -> List[str]:
    """Return every node after all of the nodes it links to.

    Nodes are visited in insertion order, so an already consistent insertion
    order is kept as-is. Raises CyclicDependencyError naming the cycle.
    """
    visited: Set[str] = set()
    # insertion-ordered, so the keys are the current path from the root
    on_path: Dict[str, None] = {}
    order: List[str] = []

    for root in list(self._edges):
      if root in visited:
        continue
      on_path[root] = None
      stack: List[Tuple[str, Iterator[str]]] = [(root, iter(self._edges[root]))]
      while stack:
        key, children = stack[-1]
        for child in children:
          if child in visited:
            continue
          if child in on_path:
            path = list(on_path)
            raise CyclicDependencyError(path[path.index(child):] + [child])
          on_path[child] = None
          stack.append((child, iter(self._edges.get(child, []))))
          break
        else:
          stack.pop()
          del on_path[key]
          visited.add(key)
          order.append(key)
    return order
