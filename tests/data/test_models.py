"""Tests for the data models."""

import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

from codeval.data import CompilationResult, Diagnostic, GeneratedArtifact, Severity, SourceUnit
from codeval.errors import CompilationError, WrapError


def test_source_unit_from_text():
    unit = SourceUnit.from_text("1 + 1")
    assert unit.text == "1 + 1"
    assert unit.origin is None
    assert unit.display_name == "<string>"


def test_source_unit_from_file(tmp_path: Path):
    path = tmp_path / "config.py"
    path.write_text("x = 1\nx", encoding="utf-8")
    unit = SourceUnit.from_file(path)
    assert unit.text == "x = 1\nx"
    assert unit.origin == path
    assert unit.display_name == str(path)


def test_source_unit_from_file_drops_byte_order_mark(tmp_path: Path):
    path = tmp_path / "config.py"
    path.write_bytes(b"\xef\xbb\xbfx = 1\nx + 1\n")
    assert SourceUnit.from_file(path).text == "x = 1\nx + 1\n"


def test_source_unit_is_immutable():
    unit = SourceUnit.from_text("1")
    with pytest.raises(ValidationError):
        unit.text = "2"


def test_source_unit_missing_file(tmp_path: Path):
    with pytest.raises(WrapError):
        SourceUnit.from_file(tmp_path / "missing.py")


def test_generated_artifact_validates_unit_name(tmp_path: Path):
    kwargs = dict(
        artifact_dir=tmp_path, source_path=tmp_path / "x.py", output_dir=tmp_path / "out"
    )
    GeneratedArtifact(unit_name="Evaluator_abc", **kwargs)
    with pytest.raises(ValidationError):
        GeneratedArtifact(unit_name="1abc", **kwargs)
    with pytest.raises(ValidationError):
        GeneratedArtifact(unit_name="has-dash", **kwargs)


def test_diagnostic_str():
    d = Diagnostic(
        severity=Severity.ERROR,
        category="SyntaxError",
        message="invalid syntax",
        lineno=2,
        offset=5,
    )
    assert str(d) == "error: line 2, col 5: SyntaxError: invalid syntax"
    w = Diagnostic(severity=Severity.WARNING, category="DeprecationWarning", message="old")
    assert str(w) == "warning: DeprecationWarning: old"
    assert d.is_error and not w.is_error


def test_compilation_result_helpers():
    error = Diagnostic(severity=Severity.ERROR, category="SyntaxError", message="bad")
    warning = Diagnostic(severity=Severity.WARNING, category="SyntaxWarning", message="hmm")
    result = CompilationResult(unit_name="U", success=False, diagnostics=[warning, error])

    assert result.has_errors
    assert result.errors == [error]
    assert result.warnings == [warning]
    assert result.warning_count == 1

    ok = CompilationResult(unit_name="U", success=True, diagnostics=[warning])
    assert not ok.has_errors


def test_compilation_result_json_round_trip(tmp_path: Path):
    error = Diagnostic(severity=Severity.ERROR, category="ImportError", message="x", lineno=1)
    result = CompilationResult(
        unit_name="U", success=True, diagnostics=[error], output_path=tmp_path / "U.pyc"
    )
    restored = CompilationResult.model_validate(result.model_dump(mode="json"))
    assert restored == result


def test_compilation_error_message():
    error = Diagnostic(severity=Severity.ERROR, category="SyntaxError", message="bad", lineno=3)
    exc = CompilationError("Evaluator_x", [error])
    assert exc.unit_name == "Evaluator_x"
    assert exc.diagnostics == [error]
    assert exc.errors == [error]
    assert "Evaluator_x" in str(exc)
    assert "line 3" in str(exc)


if __name__ == "__main__":
    pytest.main(sys.argv)
