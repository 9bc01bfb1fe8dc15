"""Evaluation of source text as configuration.

Instead of a static configuration format, an application can describe its configuration as
code and evaluate it at startup::

    # config/development.py
    from myapp.config import Config

    Config(
        port=8080,
        timeout_seconds=2.5,
        workers=[f"worker-{i}" for i in range(4)],
    )

    # main.py
    config = evaluate_file("config/development.py", Config)

Each call wraps the source into a fresh, uniquely named unit, compiles it, loads it from its
own output directory, calls it, and checks the result against the requested type. Nothing is
cached between calls.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Any, Optional, Type, TypeVar, Union, overload

from codeval.cast import cast_result
from codeval.compile import (
    ArtifactStore,
    ClasspathResolver,
    CompilerInvoker,
    ScopedLoader,
    SourceWrapper,
)
from codeval.config import EvalConfig
from codeval.data import CompilationResult, GeneratedArtifact, SourceUnit
from codeval.errors import CompilationError, LoadError
from codeval.logging import get_logger

logger = get_logger("Evaluator")

T = TypeVar("T")

SourceLike = Union[str, Path, SourceUnit]


class Evaluator:
    """Composes the pipeline: wrap, compile, load, instantiate, invoke, cast.

    Parameters
    ----------
    config : Optional[EvalConfig]
        Evaluation settings. None builds one from CODEVAL_* environment variables.
    classpath_resolver : Optional[ClasspathResolver]
        Resolver for the compilation search path. None resolves from ``sys.path``.
    """

    def __init__(
        self,
        config: Optional[EvalConfig] = None,
        classpath_resolver: Optional[ClasspathResolver] = None,
    ) -> None:
        self._config = config if config is not None else EvalConfig.from_env()
        self._store = ArtifactStore(
            self._config.resolved_artifact_root(), retention=self._config.retention
        )
        self._wrapper = SourceWrapper()
        self._resolver = (
            classpath_resolver if classpath_resolver is not None else ClasspathResolver()
        )

    @property
    def config(self) -> EvalConfig:
        return self._config

    @property
    def store(self) -> ArtifactStore:
        return self._store

    @overload
    def __call__(self, source: SourceLike, expected_type: Type[T]) -> T: ...

    @overload
    def __call__(self, source: SourceLike) -> Any: ...

    def __call__(self, source: SourceLike, expected_type: Any = object) -> Any:
        """Evaluate a string of source text, a source file path, or a SourceUnit."""
        if isinstance(source, SourceUnit):
            return self.evaluate_unit(source, expected_type)
        if isinstance(source, Path):
            return self.evaluate_file(source, expected_type)
        return self.evaluate(source, expected_type)

    def evaluate(self, source: str, expected_type: Any = object) -> Any:
        """Evaluate source text.

        >>> Evaluator().evaluate("1 + 1", int)
        2
        """
        return self.evaluate_unit(SourceUnit.from_text(source), expected_type)

    def evaluate_file(self, path: Union[str, Path], expected_type: Any = object) -> Any:
        """Evaluate the contents of a source file.

        Raises
        ------
        WrapError
            If the file cannot be read.
        """
        return self.evaluate_unit(SourceUnit.from_file(path), expected_type)

    def evaluate_unit(self, unit: SourceUnit, expected_type: Any = object) -> Any:
        """Evaluate a source unit and return its value as the requested type.

        Parameters
        ----------
        unit : SourceUnit
            The source to evaluate.
        expected_type : Any
            The requested result type. Default: ``object`` (no check).

        Returns
        -------
        Any
            The value produced by the source.

        Raises
        ------
        WrapError
            If the generated source cannot be written.
        ClasspathResolutionError
            If an archive on the search path cannot be read.
        CompilationError
            If the compiler reports errors. Carries the full diagnostic list.
        LoadError
            If the compiled unit cannot be loaded or instantiated.
        CastError
            If the value does not match ``expected_type``.
        Exception
            Anything raised by the evaluated code itself, unchanged.
        """
        artifact = self._store.create()
        logger.debug("Evaluating %s as %s", unit.display_name, artifact.unit_name)
        try:
            self._wrapper.write(unit.text, artifact)
            result = self.compile(artifact)
            if not result.success:
                raise CompilationError(artifact.unit_name, result.diagnostics)
            with ScopedLoader(artifact.output_dir) as loader:
                unit_class = loader.load(artifact.unit_name)
                evaluator = self._instantiate(artifact, unit_class)
                value = evaluator()
            return cast_result(value, expected_type)
        finally:
            self._store.release(artifact)

    def compile(self, artifact: GeneratedArtifact) -> CompilationResult:
        """Resolve the search path and compile the artifact's source into its output dir."""
        invoker = CompilerInvoker(
            self._resolver.resolve(),
            timeout=self._config.compile_timeout,
            check_imports=self._config.check_imports,
        )
        return invoker.compile(artifact.source_path, artifact.output_dir, artifact.unit_name)

    @staticmethod
    def _instantiate(artifact: GeneratedArtifact, unit_class: type) -> Any:
        try:
            instance = unit_class()
        except Exception as e:
            raise LoadError(artifact.unit_name, f"cannot instantiate unit class: {e}") from e
        if not callable(instance):
            raise LoadError(artifact.unit_name, "unit instance is not callable")
        return instance


_default_evaluator: Optional[Evaluator] = None
_default_lock = threading.Lock()


def get_default_evaluator() -> Evaluator:
    """Get the shared Evaluator configured from the environment, creating it on first use.

    Concurrent first use creates exactly one Evaluator.
    """
    global _default_evaluator
    evaluator = _default_evaluator
    if evaluator is None:
        with _default_lock:
            if _default_evaluator is None:
                _default_evaluator = Evaluator()
            evaluator = _default_evaluator
    return evaluator


def set_default_evaluator(evaluator: Optional[Evaluator]) -> None:
    """Replace the shared Evaluator. None resets it so the next use rebuilds from the env."""
    global _default_evaluator
    with _default_lock:
        _default_evaluator = evaluator


@overload
def evaluate(source: str, expected_type: Type[T]) -> T: ...


@overload
def evaluate(source: str) -> Any: ...


def evaluate(source: str, expected_type: Any = object) -> Any:
    """Evaluate source text with the default Evaluator.

    >>> evaluate("1 + 1", int)
    2
    """
    return get_default_evaluator().evaluate(source, expected_type)


@overload
def evaluate_file(path: Union[str, Path], expected_type: Type[T]) -> T: ...


@overload
def evaluate_file(path: Union[str, Path]) -> Any: ...


def evaluate_file(path: Union[str, Path], expected_type: Any = object) -> Any:
    """Evaluate a source file with the default Evaluator."""
    return get_default_evaluator().evaluate_file(path, expected_type)
