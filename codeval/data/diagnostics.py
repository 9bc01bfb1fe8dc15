"""Compiler diagnostics and compilation results."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import Field

from .utils import BaseModelWithDocstrings, FrozenModel


class Severity(str, Enum):
    """Severity of a compiler diagnostic."""

    ERROR = "error"
    """The unit cannot be compiled."""
    WARNING = "warning"
    """Informational; never blocks evaluation."""


class Diagnostic(FrozenModel):
    """A single message reported while compiling a unit."""

    severity: Severity
    """Whether the diagnostic is an error or a warning."""
    message: str
    """Human-readable message."""
    category: str
    """Kind of diagnostic, e.g. 'SyntaxError', 'ImportError', 'SyntaxWarning'."""
    lineno: Optional[int] = Field(default=None)
    """1-based line in the caller's source, or None if it does not map to a caller line."""
    offset: Optional[int] = Field(default=None)
    """1-based column in the caller's source, when known."""

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def __str__(self) -> str:
        location = ""
        if self.lineno is not None:
            location = f"line {self.lineno}"
            if self.offset is not None:
                location += f", col {self.offset}"
            location += ": "
        return f"{self.severity.value}: {location}{self.category}: {self.message}"


class CompilationResult(BaseModelWithDocstrings):
    """Tagged outcome of one compiler run: success with warnings, or failure with errors."""

    unit_name: str
    """The unit that was compiled."""
    success: bool
    """True if no error was reported and the compiled output was written."""
    diagnostics: List[Diagnostic] = Field(default_factory=list)
    """All diagnostics in the order they were reported."""
    output_path: Optional[Path] = Field(default=None)
    """The compiled bytecode file, set only on success."""
    elapsed: float = Field(default=0.0, ge=0)
    """Wall time of the compile step in seconds."""

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    @property
    def has_errors(self) -> bool:
        return any(d.severity == Severity.ERROR for d in self.diagnostics)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)
