"""Dependency-ordered deployment of CloudFormation stacks."""
from .artifacts import Artifact, ArtifactSet
from .dependency_tree import DependencyTree
from .errors import (
  ConfigurationError,
  CyclicDependencyError,
  ManifestError,
  RemoteOperationError,
  RetractionBlockedError,
  ToolingError,
  UndefinedVariablesError,
  UnsatisfiedDependencyError,
)
from .graph import BipartiteGraph, DependencyGraph
from .output import OutputChannel, ThreadedOutput
from .remote import CallResult, ControlPlaneClient, Outcome, StackOperations, Status
from .scheduler import BatchScheduler
from .variables import VariableRegistry

__version__ = "0.1.0"

__all__ = [
  "Artifact",
  "ArtifactSet",
  "BatchScheduler",
  "BipartiteGraph",
  "CallResult",
  "ConfigurationError",
  "ControlPlaneClient",
  "CyclicDependencyError",
  "DependencyGraph",
  "DependencyTree",
  "ManifestError",
  "Outcome",
  "OutputChannel",
  "RemoteOperationError",
  "RetractionBlockedError",
  "StackOperations",
  "Status",
  "ThreadedOutput",
  "ToolingError",
  "UndefinedVariablesError",
  "UnsatisfiedDependencyError",
  "VariableRegistry",
]
