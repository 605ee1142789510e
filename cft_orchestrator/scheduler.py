"""Slicing of a dependency-ordered artifact list into concurrent waves."""
from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Callable, Iterable, List, Set

from .errors import UnsatisfiedDependencyError

if TYPE_CHECKING:
  from .artifacts import Artifact


class WaveState(str, Enum):
  ACCUMULATING = "accumulating"
  FULL = "full"
  FLUSHED = "flushed"
  DONE = "done"


class BatchScheduler:
  """Groups artifacts into waves whose dependencies were all handed out in earlier waves.

  ``process`` receives each wave as soon as it is complete; it must finish
  with the wave before returning because the next wave assumes it ran.
  """

  def __init__(self, max_size: int, process: Callable[[List["Artifact"]], None]) -> None:
    if max_size < 1:
      raise ValueError(f"Wave size must be at least 1, got {max_size}.")
    self.max_size = max_size
    self.state = WaveState.ACCUMULATING
    self.seen: Set[str] = set()
    self.wave: List["Artifact"] = []
    self.waves_processed = 0
    self._process = process

  def missing(self, dependencies: Iterable[str]) -> List[str]:
    return [name for name in dependencies if name not in self.seen]

  def add(self, artifact: "Artifact", dependencies: Iterable[str] = ()) -> None:
    if self.state is WaveState.DONE:
      raise RuntimeError("Cannot add artifacts after the scheduler has finished.")
    dependencies = list(dependencies)
    if self.missing(dependencies):
      self.flush()
    missing = self.missing(dependencies)
    if missing:
      raise UnsatisfiedDependencyError(artifact.filename, missing)

    self.wave.append(artifact)
    self.state = WaveState.ACCUMULATING
    if len(self.wave) >= self.max_size:
      self.state = WaveState.FULL
      self.flush()

  def flush(self) -> int:
    processed = len(self.wave)
    if self.wave:
      self._process(list(self.wave))
      self.waves_processed += 1
    self.seen.update(artifact.filename for artifact in self.wave)
    self.wave = []
    self.state = WaveState.FLUSHED
    return processed

  def finish(self) -> int:
    processed = self.flush()
    self.state = WaveState.DONE
    return processed
