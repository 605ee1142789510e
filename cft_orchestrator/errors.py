"""Exception hierarchy shared by the orchestrator modules."""
from __future__ import annotations

from typing import Iterable, List


def _itemize(names: Iterable[str]) -> str:
  return "\n".join(f"  - {name}" for name in names)


class ToolingError(Exception):
  """Root for every error raised on purpose by the orchestrator."""


class ConfigurationError(ToolingError, ValueError):
  pass


class ManifestError(ToolingError, ValueError):
  pass


class CyclicDependencyError(ToolingError, ValueError):
  def __init__(self, members: Iterable[str]) -> None:
    self.members: List[str] = list(members)
    super().__init__(f"Cyclic dependency detected: {' -> '.join(self.members)}")


class UnsatisfiedDependencyError(ToolingError):
  def __init__(self, filename: str, missing: Iterable[str]) -> None:
    self.filename = filename
    self.missing: List[str] = list(missing)
    super().__init__(
      f"Unable to process {filename}; unsatisfied dependencies:\n{_itemize(self.missing)}"
    )


class UndefinedVariablesError(ToolingError):
  def __init__(self, names: Iterable[str]) -> None:
    self.names: List[str] = list(names)
    super().__init__(
      "Unable to update or create stacks. "
      f"The following variables are referenced but not defined:\n{_itemize(self.names)}"
    )


class RetractionBlockedError(ToolingError):
  def __init__(self, filenames: Iterable[str]) -> None:
    self.filenames: List[str] = list(filenames)
    super().__init__(
      "Unable to remove stacks. "
      f"The following are dependencies for stacks not marked for removal:\n{_itemize(self.filenames)}"
    )


class RemoteOperationError(ToolingError):
  def __init__(self, stack_name: str, message: str) -> None:
    self.stack_name = stack_name
    super().__init__(message)
