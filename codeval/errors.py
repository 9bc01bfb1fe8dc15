"""Error kinds raised by the evaluation engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional, Sequence

if TYPE_CHECKING:
    from codeval.data import Diagnostic


class EvalError(RuntimeError):
    """Base class for all failures surfaced by the evaluation engine."""


class WrapError(EvalError):
    """Raised when source text cannot be read, embedded, or written to its artifact file."""


class ClasspathResolutionError(EvalError):
    """Raised when a search-path archive or its manifest cannot be read."""

    def __init__(self, entry: str, reason: str) -> None:
        super().__init__(f"Cannot resolve search path entry '{entry}': {reason}")
        self.entry = entry
        """The offending search path entry."""


class CompilationError(EvalError):
    """Raised when the compiler reports one or more errors for a unit.

    The full diagnostic list, warnings included, is kept on ``diagnostics``.
    """

    def __init__(
        self, unit_name: str, diagnostics: Sequence["Diagnostic"], message: Optional[str] = None
    ) -> None:
        self.unit_name = unit_name
        self.diagnostics = list(diagnostics)
        if message is None:
            lines = [f"Compilation of '{unit_name}' failed:"]
            lines.extend(f"  {d}" for d in self.diagnostics)
            message = "\n".join(lines)
        super().__init__(message)

    @property
    def errors(self) -> List["Diagnostic"]:
        return [d for d in self.diagnostics if d.is_error]


class CompilationTimeoutError(CompilationError):
    """Raised when compilation does not finish within the configured timeout."""

    def __init__(self, unit_name: str, timeout: float) -> None:
        super().__init__(
            unit_name, [], message=f"Compilation of '{unit_name}' timed out after {timeout:g}s"
        )
        self.timeout = timeout


class LoadError(EvalError):
    """Raised when the compiled unit cannot be found, executed, or instantiated."""

    def __init__(self, unit_name: str, reason: str) -> None:
        super().__init__(f"Cannot load unit '{unit_name}': {reason}")
        self.unit_name = unit_name


class EvaluationError(EvalError):
    """Marker kind for failures originating in evaluated code.

    The engine never wraps exceptions raised by evaluated code: they reach the caller
    unchanged. Hosting applications may subclass this for their own configuration errors.
    """


class CastError(EvalError, TypeError):
    """Raised when the evaluated value does not match the requested type."""

    def __init__(self, expected: Any, actual: type, reason: Optional[str] = None) -> None:
        expected_name = getattr(expected, "__qualname__", None) or repr(expected)
        message = f"Expected a value of type {expected_name}, got {actual.__qualname__}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.expected = expected
        self.actual = actual
