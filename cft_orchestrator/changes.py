"""Changes reported by changeset previews, and their console narrative."""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional, TextIO

NARRATIVE_COLUMNS = ("action", "logical_id", "physical_id", "type", "replacement", "scopes")


def humanize_resource_type(resource_type: str) -> str:
  """``AWS::EC2::NetworkAcl`` -> ``ec2 network acl``."""
  text = re.sub(r"^AWS::", "", resource_type or "")
  text = re.sub(r":+", " ", text)
  text = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", text)
  text = re.sub(r"([a-z\d])([A-Z])", r"\1 \2", text)
  return text.lower()


class Change:
  def __init__(self, record: Dict[str, Any]) -> None:
    self.resource: Dict[str, Any] = record.get("ResourceChange", record) or {}

  @property
  def action(self) -> str:
    return self.resource.get("Action", "")

  @property
  def replacement(self) -> Optional[str]:
    return self.resource.get("Replacement")

  @property
  def logical_id(self) -> str:
    return self.resource.get("LogicalResourceId", "")

  @property
  def physical_id(self) -> str:
    return self.resource.get("PhysicalResourceId", "") or ""

  @property
  def type(self) -> str:
    return humanize_resource_type(self.resource.get("ResourceType", ""))

  @property
  def scopes(self) -> str:
    return ", ".join(sorted(self.resource.get("Scope", []) or []))

  def to_narrative(self) -> Dict[str, Any]:
    return {column: getattr(self, column) for column in NARRATIVE_COLUMNS}

  def __repr__(self) -> str:
    return f"{type(self).__name__}({self.action} {self.logical_id})"


class DeletionChange(Change):
  """A resource that disappears when its stack is deleted."""

  def __init__(self, resource: Dict[str, Any]) -> None:
    self.resource = resource

  @property
  def action(self) -> str:
    return "DELETE"

  @property
  def replacement(self) -> Optional[str]:
    return None

  @property
  def scopes(self) -> str:
    return "Resource"


def narrate_changes(changes: Iterable[Change], out: TextIO) -> None:
  rows: List[Dict[str, str]] = [
    {key: "" if value is None else str(value) for key, value in change.to_narrative().items()}
    for change in changes
  ]
  if not rows:
    print("No changes.", file=out)
    return
  widths = {
    column: max([len(column)] + [len(row[column]) for row in rows])
    for column in NARRATIVE_COLUMNS
  }
  print(" | ".join(column.upper().ljust(widths[column]) for column in NARRATIVE_COLUMNS).rstrip(), file=out)
  print("-+-".join("-" * widths[column] for column in NARRATIVE_COLUMNS), file=out)
  for row in rows:
    print(" | ".join(row[column].ljust(widths[column]) for column in NARRATIVE_COLUMNS).rstrip(), file=out)
