"""Data models used across the evaluation pipeline."""

from .artifact import GeneratedArtifact
from .diagnostics import CompilationResult, Diagnostic, Severity
from .source import SourceUnit
from .utils import BaseModelWithDocstrings, FrozenModel, NonEmptyString, UnitName

__all__ = [
    "BaseModelWithDocstrings",
    "CompilationResult",
    "Diagnostic",
    "FrozenModel",
    "GeneratedArtifact",
    "NonEmptyString",
    "Severity",
    "SourceUnit",
    "UnitName",
]
