"""Bookkeeping of exported (defined) and imported (referenced) variable names."""
from __future__ import annotations

from typing import Dict, List


class VariableRegistry:
  """Tracks which variables are defined and which are referenced before any definition.

  Definitions are never withdrawn: once a name is defined it stays defined.
  """

  def __init__(self) -> None:
    # dicts double as insertion-ordered sets
    self._defined: Dict[str, None] = {}
    self._undefined: Dict[str, None] = {}

  def define(self, name: str) -> None:
    self._undefined.pop(name, None)
    self._defined.setdefault(name, None)

  def reference(self, name: str) -> None:
    if not self.is_defined(name):
      self._undefined.setdefault(name, None)

  def is_defined(self, name: str) -> bool:
    return name in self._defined

  @property
  def defined(self) -> List[str]:
    return list(self._defined)

  @property
  def undefined(self) -> List[str]:
    return list(self._undefined)
