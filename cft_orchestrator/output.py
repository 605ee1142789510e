"""Line-buffered output shared by concurrent workers.

Each worker writes through its own OutputChannel. Text is buffered per
prefix and only complete lines reach the shared sink, each one prefixed with
the worker's label, so lines from different workers never interleave.
"""
from __future__ import annotations

import threading
from typing import Dict, TextIO


class ThreadedOutput:
  def __init__(self, sink: TextIO) -> None:
    self._sink = sink
    self._buffers: Dict[str, str] = {}
    self._lock = threading.Lock()

  def channel(self, label: str) -> "OutputChannel":
    return OutputChannel(self, f"{label}: " if label else "")

  def write(self, prefix: str, text: str) -> int:
    buffered = self._buffers.get(prefix, "") + text
    *lines, remainder = buffered.split("\n")
    self._buffers[prefix] = remainder
    if lines:
      self._emit(prefix, lines)
    return len(text)

  def flush(self, prefix: str) -> None:
    """Emit whatever is left in the prefix's buffer, terminated with a newline."""
    remainder = self._buffers.pop(prefix, "")
    if remainder:
      self._emit(prefix, [remainder])

  def pending(self, prefix: str) -> str:
    return self._buffers.get(prefix, "")

  def _emit(self, prefix: str, lines) -> None:
    text = "".join(f"{prefix}{line}\n" for line in lines)
    with self._lock:
      self._sink.write(text)
      self._sink.flush()


class OutputChannel:
  """File-like view of a ThreadedOutput bound to one worker's prefix.

  Usable anywhere a text stream is expected, e.g. ``print(..., file=channel)``.
  """

  def __init__(self, output: ThreadedOutput, prefix: str) -> None:
    self._output = output
    self.prefix = prefix

  def write(self, text: str) -> int:
    return self._output.write(self.prefix, text)

  def flush(self) -> None:
    self._output.flush(self.prefix)

  def isatty(self) -> bool:
    return False
