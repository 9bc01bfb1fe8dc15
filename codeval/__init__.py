from codeval.cast import cast_result
from codeval.config import EvalConfig
from codeval.data import (
    CompilationResult,
    Diagnostic,
    GeneratedArtifact,
    Severity,
    SourceUnit,
)
from codeval.errors import (
    CastError,
    ClasspathResolutionError,
    CompilationError,
    CompilationTimeoutError,
    EvalError,
    EvaluationError,
    LoadError,
    WrapError,
)
from codeval.evaluator import (
    Evaluator,
    evaluate,
    evaluate_file,
    get_default_evaluator,
    set_default_evaluator,
)
from codeval.logging import configure_logging, get_logger

__all__ = [
    # Main API
    "Evaluator",
    "evaluate",
    "evaluate_file",
    "get_default_evaluator",
    "set_default_evaluator",
    "cast_result",
    "EvalConfig",
    # Data types
    "SourceUnit",
    "GeneratedArtifact",
    "CompilationResult",
    "Diagnostic",
    "Severity",
    # Errors
    "EvalError",
    "WrapError",
    "ClasspathResolutionError",
    "CompilationError",
    "CompilationTimeoutError",
    "LoadError",
    "EvaluationError",
    "CastError",
    "configure_logging",
    "get_logger",
]
