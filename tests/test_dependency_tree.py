"""Tests for cft_orchestrator.dependency_tree."""
import pytest

from cft_orchestrator.dependency_tree import DependencyTree
from cft_orchestrator.errors import CyclicDependencyError

LINKS = {
  "A": ["B", "C", "D", "E", "F", "G", "H", "J", "L"],
  "B": ["L", "I", "J", "K", "M"],
  "C": ["D", "F", "L", "M"],
  "D": ["G", "H", "L", "F"],
  "E": ["L", "M"],
  "F": ["M"],
  "G": ["I"],
}


@pytest.fixture
def linked_tree():
  tree = DependencyTree()
  for source, targets in LINKS.items():
    for target in targets:
      tree.linked(source, target)
  return tree


def test_provided_and_required_connect_artifacts():
  """An artifact requiring a variable depends on the artifact providing it."""
  tree = DependencyTree()
  tree.provided("vpc/base", "vpc-id")
  tree.required("network/vpc", "vpc-id")

  assert tree.dependencies_of("network/vpc") == ["vpc/base"]
  assert tree.dependents_of("vpc/base") == ["network/vpc"]
  assert tree.sort() == ["vpc/base", "network/vpc"]


def test_sort_is_independent_of_registration_order():
  tree = DependencyTree()
  tree.required("network/vpc", "vpc-id")
  tree.provided("vpc/base", "vpc-id")
  assert tree.sort() == ["vpc/base", "network/vpc"]


def test_sort_excludes_variable_nodes():
  tree = DependencyTree()
  tree.provided("a", "x")
  tree.required("b", "x")
  tree.linked("a", "c")
  assert set(tree.sort()) == {"a", "b", "c"}


def test_linked_orders_source_before_target():
  tree = DependencyTree()
  tree.linked("A", "B")
  assert tree.dependencies_of("B") == ["A"]
  assert tree.dependents_of("A") == ["B"]
  assert tree.sort() == ["A", "B"]
  # linker variables are always satisfied
  assert tree.undefined_variables() == []


def test_undefined_variables_round_trip():
  tree = DependencyTree()
  tree.required("b", "x")
  assert tree.undefined_variables() == ["x"]

  tree.provided("a", "x")
  assert tree.undefined_variables() == []
  assert tree.defined_variables() == ["x"]


def test_exported_variables_are_defined():
  """Variables exported by stacks outside the tree satisfy requirements."""
  tree = DependencyTree()
  tree.exported("shared-vpc-id")
  tree.required("app", "shared-vpc-id")
  assert tree.undefined_variables() == []
  assert tree.dependencies_of("app") == []


def test_closed_subset_keeps_members_without_outside_dependents(linked_tree):
  keys = ["D", "E", "F", "G", "H", "I", "J", "K", "L", "M"]
  assert set(linked_tree.closed_subset(keys)) == set(keys)


def test_closed_subset_drops_members_with_outside_dependents(linked_tree):
  """G is dropped because its dependent I is outside the subset."""
  assert set(linked_tree.closed_subset(["F", "G", "L", "M"])) == {"F", "L", "M"}


def test_closed_subset_is_idempotent(linked_tree):
  for keys in (["F", "G", "L", "M"], ["A", "B"], ["C", "D", "F", "M", "L"]):
    once = linked_tree.closed_subset(keys)
    assert linked_tree.closed_subset(once) == once


def test_sort_is_a_linear_extension(linked_tree):
  order = linked_tree.sort()
  for source, targets in LINKS.items():
    for target in targets:
      assert order.index(source) < order.index(target)


def test_cycle_reports_artifact_members_only():
  tree = DependencyTree()
  tree.linked("a", "b")
  tree.linked("b", "c")
  tree.linked("c", "a")

  with pytest.raises(CyclicDependencyError) as excinfo:
    tree.sort()

  assert set(excinfo.value.members) == {"a", "b", "c"}
  assert "$$" not in str(excinfo.value)


def test_copy_is_independent():
  tree = DependencyTree()
  tree.provided("a", "x")
  duplicate = tree.copy()
  duplicate.required("b", "y")

  assert tree.filenames == ["a"]
  assert duplicate.filenames == ["a", "b"]
  assert tree.undefined_variables() == []
  assert duplicate.undefined_variables() == ["y"]


def test_closed_subset_cascades(linked_tree):
  """Dropping D (dependent G outside) leaves C with a dependent outside too."""
  assert set(linked_tree.closed_subset(["C", "D", "F", "L", "M"])) == {"F", "L", "M"}
