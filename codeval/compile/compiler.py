"""Compiler front end for generated units."""

from __future__ import annotations

import ast
import importlib.machinery
import importlib.util
import marshal
import multiprocessing
import sys
import threading
import time
import warnings
from pathlib import Path
from typing import Any, Collection, Dict, List, Optional, Sequence, Union

from codeval.data import CompilationResult, Diagnostic, Severity
from codeval.errors import CompilationTimeoutError
from codeval.logging import get_logger

from .wrapper import SourceWrapper

logger = get_logger("CompilerInvoker")

_warnings_lock = threading.Lock()
"""Serializes compilations: the warnings filter state is process-global."""


def _to_caller_line(lineno: Optional[int]) -> Optional[int]:
    if lineno is None or lineno <= SourceWrapper.BODY_LINE_OFFSET:
        return None
    return lineno - SourceWrapper.BODY_LINE_OFFSET


def _to_caller_offset(offset: Optional[int]) -> Optional[int]:
    if offset is None:
        return None
    indent = len(SourceWrapper.BODY_INDENT)
    return offset - indent if offset > indent else offset


def _find_body_function(tree: ast.Module, unit_name: str) -> Optional[ast.FunctionDef]:
    """The function holding the caller's source, if the unit class is defined too."""
    body = None
    has_unit = False
    for node in tree.body:
        if isinstance(node, ast.FunctionDef) and node.name == SourceWrapper.BODY_FUNCTION:
            body = node
        elif isinstance(node, ast.ClassDef) and node.name == unit_name:
            has_unit = True
    return body if has_unit else None


def _is_future_import(node: ast.stmt) -> bool:
    return isinstance(node, ast.ImportFrom) and node.module == "__future__" and not node.level


def _hoist_future_imports(tree: ast.Module, function: ast.FunctionDef) -> None:
    """Move ``__future__`` imports leading the caller's source to the top of the module.

    A leading docstring may precede them, as at module level. Imports further down stay
    where they are and are reported by the compiler.
    """
    start = 0
    body = function.body
    if body and isinstance(body[0], ast.Expr) and isinstance(body[0].value, ast.Constant):
        if isinstance(body[0].value.value, str):
            start = 1
    end = start
    while end < len(body) and _is_future_import(body[end]):
        end += 1
    if end == start:
        return
    tree.body[:0] = body[start:end]
    del body[start:end]
    if not body:
        body.append(ast.copy_location(ast.Pass(), function))


def _return_last_expression(function: ast.FunctionDef) -> None:
    """Make a trailing expression statement the function's return value."""
    last = function.body[-1]
    if isinstance(last, ast.Expr):
        function.body[-1] = ast.copy_location(ast.Return(value=last.value), last)


def _is_importable(
    name: str, search_path: List[str], loaded_modules: Collection[str] = ()
) -> bool:
    """Whether a top-level module can be imported given the search path.

    Built-in, frozen and already-imported modules (in this process or in ``loaded_modules``)
    are always visible, as are modules served
    by the process's own meta path finders (e.g. editable installs). Everything else must be
    found on the search path.
    """
    if name in sys.builtin_module_names or name in sys.modules or name in loaded_modules:
        return True
    if importlib.machinery.FrozenImporter.find_spec(name) is not None:
        return True
    if importlib.machinery.PathFinder.find_spec(name, search_path) is not None:
        return True
    for finder in sys.meta_path:
        if finder is importlib.machinery.PathFinder or not hasattr(finder, "find_spec"):
            continue
        try:
            if finder.find_spec(name, None) is not None:
                return True
        except (ImportError, ValueError):
            continue
    return False


def _check_imports(
    tree: ast.Module, search_path: List[str], loaded_modules: Collection[str] = ()
) -> List[Diagnostic]:
    diagnostics = []
    seen = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            names = [alias.name for alias in node.names]
        elif isinstance(node, ast.ImportFrom):
            if node.level:
                diagnostics.append(
                    Diagnostic(
                        severity=Severity.ERROR,
                        category="ImportError",
                        message="relative import in a generated unit",
                        lineno=_to_caller_line(node.lineno),
                        offset=_to_caller_offset(node.col_offset + 1),
                    )
                )
                continue
            names = [node.module or ""]
        else:
            continue
        for name in names:
            top = name.partition(".")[0]
            if not top or top in seen:
                continue
            seen.add(top)
            if not _is_importable(top, search_path, loaded_modules):
                diagnostics.append(
                    Diagnostic(
                        severity=Severity.ERROR,
                        category="ImportError",
                        message=f"No module named '{top}' on the search path",
                        lineno=_to_caller_line(node.lineno),
                        offset=_to_caller_offset(node.col_offset + 1),
                    )
                )
    return diagnostics


def _warning_to_diagnostic(record: warnings.WarningMessage, filename: str) -> Diagnostic:
    lineno = _to_caller_line(record.lineno) if record.filename == filename else None
    return Diagnostic(
        severity=Severity.WARNING,
        category=record.category.__name__,
        message=str(record.message),
        lineno=lineno,
    )


def _write_pyc(code: Any, source: bytes, output_path: Path) -> None:
    """Write a timestamp-based bytecode file for ``code``."""
    data = bytearray(importlib.util.MAGIC_NUMBER)
    data.extend((0).to_bytes(4, "little"))
    data.extend((int(time.time()) & 0xFFFFFFFF).to_bytes(4, "little"))
    data.extend((len(source) & 0xFFFFFFFF).to_bytes(4, "little"))
    data.extend(marshal.dumps(code))
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(bytes(data))


def compile_unit(
    source_path: Union[str, Path],
    output_dir: Union[str, Path],
    unit_name: str,
    search_path: Sequence[str],
    check_imports: bool = True,
    loaded_modules: Collection[str] = (),
) -> CompilationResult:
    """Compile one generated unit file into ``output_dir``.

    Parameters
    ----------
    source_path : Union[str, Path]
        The wrapped source file.
    output_dir : Union[str, Path]
        Where ``<unit_name>.pyc`` is written.
    unit_name : str
        Name of the unit class in the source file.
    search_path : Sequence[str]
        Search path used to resolve the unit's imports.
    check_imports : bool
        Report unresolvable imports as errors. Default: True.
    loaded_modules : Collection[str]
        Extra module names treated as already imported. Compilation in a spawned process
        receives the calling process's loaded modules here.

    Returns
    -------
    CompilationResult
        Success with warnings, or failure with diagnostics. Compile errors never raise.
    """
    source_path = Path(source_path)
    filename = str(source_path)
    started = time.perf_counter()
    diagnostics: List[Diagnostic] = []

    def _result(success: bool, output_path: Optional[Path] = None) -> CompilationResult:
        return CompilationResult(
            unit_name=unit_name,
            success=success,
            diagnostics=diagnostics,
            output_path=output_path,
            elapsed=time.perf_counter() - started,
        )

    try:
        source = source_path.read_bytes()
    except OSError as e:
        diagnostics.append(
            Diagnostic(severity=Severity.ERROR, category="OSError", message=str(e))
        )
        return _result(False)

    code = None
    with _warnings_lock, warnings.catch_warnings(record=True) as records:
        warnings.simplefilter("always")
        try:
            tree = ast.parse(source, filename=filename)
            function = _find_body_function(tree, unit_name)
            if function is None:
                diagnostics.append(
                    Diagnostic(
                        severity=Severity.ERROR,
                        category="SyntaxError",
                        message=f"unit class '{unit_name}' not found in generated source",
                    )
                )
            else:
                _hoist_future_imports(tree, function)
                _return_last_expression(function)
                if check_imports:
                    diagnostics.extend(
                        _check_imports(tree, list(search_path), set(loaded_modules))
                    )
                if not diagnostics:
                    code = compile(tree, filename, "exec", dont_inherit=True)
        except SyntaxError as e:
            diagnostics.append(
                Diagnostic(
                    severity=Severity.ERROR,
                    category=type(e).__name__,
                    message=e.msg or str(e),
                    lineno=_to_caller_line(e.lineno),
                    offset=_to_caller_offset(e.offset),
                )
            )
        except ValueError as e:
            # e.g. source containing null bytes
            diagnostics.append(
                Diagnostic(severity=Severity.ERROR, category="ValueError", message=str(e))
            )
    warning_diagnostics = [_warning_to_diagnostic(r, filename) for r in records]
    diagnostics[:0] = warning_diagnostics

    if code is None:
        return _result(False)

    output_path = Path(output_dir) / f"{unit_name}.pyc"
    try:
        _write_pyc(code, source, output_path)
    except OSError as e:
        diagnostics.append(
            Diagnostic(
                severity=Severity.ERROR,
                category="OSError",
                message=f"cannot write compiled output: {e}",
            )
        )
        return _result(False)
    return _result(True, output_path)


def _compile_worker(conn: Any, kwargs: Dict[str, Any]) -> None:
    """Entry point of the spawned compile process."""
    try:
        result = compile_unit(**kwargs)
        conn.send(result.model_dump(mode="json"))
    finally:
        conn.close()


class CompilerInvoker:
    """Configures and runs the compiler against a single wrapped unit.

    Parameters
    ----------
    search_path : Sequence[str]
        The resolved search path, used to resolve the unit's imports.
    timeout : Optional[float]
        Seconds to wait for compilation. When set, compilation runs in a spawned process that
        is terminated on expiry. None compiles in the calling thread with no bound.
    check_imports : bool
        Report unresolvable imports as errors. Default: True.
    """

    def __init__(
        self,
        search_path: Sequence[str],
        timeout: Optional[float] = None,
        check_imports: bool = True,
    ) -> None:
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be > 0")
        self._search_path = list(search_path)
        self._timeout = timeout
        self._check_imports = check_imports

    @property
    def search_path(self) -> List[str]:
        return list(self._search_path)

    def compile(
        self, source_path: Union[str, Path], output_dir: Union[str, Path], unit_name: str
    ) -> CompilationResult:
        """Run a single compilation pass over exactly one generated file.

        Parameters
        ----------
        source_path : Union[str, Path]
            The wrapped source file.
        output_dir : Union[str, Path]
            The target output directory.
        unit_name : str
            Name of the unit class.

        Returns
        -------
        CompilationResult
            The tagged result. Warnings are logged; errors are left to the caller to raise.

        Raises
        ------
        CompilationTimeoutError
            If a timeout is configured and compilation does not finish in time.
        """
        kwargs = dict(
            source_path=str(source_path),
            output_dir=str(output_dir),
            unit_name=unit_name,
            search_path=self._search_path,
            check_imports=self._check_imports,
        )
        if self._timeout is None:
            result = compile_unit(**kwargs)
        else:
            result = self._compile_with_timeout(unit_name, kwargs)

        for diagnostic in result.warnings:
            logger.warning("%s: %s", unit_name, diagnostic)
        logger.debug(
            "Compiled %s in %.3fs: success=%s, %d error(s), %d warning(s)",
            unit_name,
            result.elapsed,
            result.success,
            len(result.errors),
            result.warning_count,
        )
        return result

    def _compile_with_timeout(self, unit_name: str, kwargs: Dict[str, Any]) -> CompilationResult:
        # The spawned process starts with a fresh sys.modules.
        loaded = sorted({name.partition(".")[0] for name in list(sys.modules)})
        kwargs = dict(kwargs, loaded_modules=loaded)
        ctx = multiprocessing.get_context("spawn")
        parent_conn, child_conn = ctx.Pipe(duplex=False)
        process = ctx.Process(target=_compile_worker, args=(child_conn, kwargs), daemon=True)
        process.start()
        child_conn.close()
        try:
            if not parent_conn.poll(self._timeout):
                process.terminate()
                raise CompilationTimeoutError(unit_name, self._timeout)
            try:
                payload = parent_conn.recv()
            except EOFError:
                process.join()
                return CompilationResult(
                    unit_name=unit_name,
                    success=False,
                    diagnostics=[
                        Diagnostic(
                            severity=Severity.ERROR,
                            category="RuntimeError",
                            message=f"compile process exited with code {process.exitcode}",
                        )
                    ],
                )
        finally:
            parent_conn.close()
            process.join()
        return CompilationResult.model_validate(payload)
