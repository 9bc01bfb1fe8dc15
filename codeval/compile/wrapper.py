"""Wrapping of raw source text into an invocable unit."""

from __future__ import annotations

import io
import tokenize
from typing import ClassVar, Set

from codeval.data import GeneratedArtifact
from codeval.errors import WrapError
from codeval.logging import get_logger

from .artifacts import delete_on_exit

logger = get_logger("SourceWrapper")


def _continuation_lines(source: str) -> Set[int]:
    """1-based numbers of lines that continue a token started on an earlier line.

    These are the inner lines of multi-line string literals; indenting them would change the
    string's value. Source that cannot be tokenized yields an empty set and is left for the
    compiler to report.
    """
    lines: Set[int] = set()
    try:
        for tok in tokenize.generate_tokens(io.StringIO(source).readline):
            start_row, end_row = tok.start[0], tok.end[0]
            if end_row > start_row:
                lines.update(range(start_row + 1, end_row + 1))
    except (tokenize.TokenError, SyntaxError):
        return set()
    return lines


def _has_code(source: str) -> bool:
    for line in source.splitlines():
        stripped = line.strip()
        if stripped and not stripped.startswith("#"):
            return True
    return False


class SourceWrapper:
    """Turns source text into a named class whose instances take no arguments and, when
    called, run the source and produce its value.

    For a unit named ``Evaluator_1a2b`` the wrapped text is::

        def _evaluate():
            <source, indented one level>
        class Evaluator_1a2b:
            def __call__(self):
                return _evaluate()

    The source runs in a module-level function rather than in the class body, so private
    ``__names`` are not mangled with the unit name. The caller's lines keep their order and
    relative indentation, so caller line ``n`` is wrapped line ``n + BODY_LINE_OFFSET``.
    Turning a trailing expression into the returned value, and hoisting ``__future__``
    imports to the top of the module, is left to the compiler.
    """

    BODY_LINE_OFFSET: ClassVar[int] = 1
    """Number of wrapper lines preceding the caller's first line."""

    BODY_INDENT: ClassVar[str] = " " * 4
    """Indentation prefixed to each caller line."""

    BODY_FUNCTION: ClassVar[str] = "_evaluate"
    """Name of the module-level function that runs the caller's source."""

    CALL_METHOD: ClassVar[str] = "__call__"
    """Name of the unit method that produces the value."""

    def wrap(self, source: str, unit_name: str) -> str:
        """Wrap source text into the unit's module text.

        Parameters
        ----------
        source : str
            The caller's statements and expressions.
        unit_name : str
            Name of the generated class.

        Returns
        -------
        str
            The wrapped source, ending with a newline.
        """
        lines = [f"def {self.BODY_FUNCTION}():"]
        if not _has_code(source):
            lines.append(self.BODY_INDENT + "pass")
        else:
            skip = _continuation_lines(source)
            for lineno, line in enumerate(source.splitlines(), start=1):
                if lineno in skip or not line.strip():
                    lines.append(line)
                else:
                    lines.append(self.BODY_INDENT + line)
        lines.extend(
            [
                f"class {unit_name}:",
                f"    def {self.CALL_METHOD}(self):",
                f"        return {self.BODY_FUNCTION}()",
            ]
        )
        return "\n".join(lines) + "\n"

    def write(self, source: str, artifact: GeneratedArtifact) -> str:
        """Wrap source text and write it to the artifact's source file.

        The file is registered for deletion at process exit.

        Parameters
        ----------
        source : str
            The caller's source text.
        artifact : GeneratedArtifact
            The call's artifact.

        Returns
        -------
        str
            The wrapped text that was written.

        Raises
        ------
        WrapError
            If the file cannot be written.
        """
        wrapped = self.wrap(source, artifact.unit_name)
        try:
            artifact.source_path.write_text(wrapped, encoding="utf-8")
        except OSError as e:
            raise WrapError(f"Cannot write generated source '{artifact.source_path}': {e}") from e
        delete_on_exit(artifact.source_path)
        logger.debug("Wrote %s (%d lines)", artifact.source_path, wrapped.count("\n"))
        return wrapped
