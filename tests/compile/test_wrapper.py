"""Tests for compile/wrapper.py."""

import sys
from pathlib import Path

import pytest

from codeval.compile.artifacts import ArtifactStore, pending_deletions
from codeval.compile.wrapper import SourceWrapper
from codeval.errors import WrapError


def _unit_footer(unit_name: str) -> str:
    return f"class {unit_name}:\n    def __call__(self):\n        return _evaluate()\n"


def test_wrap_single_expression():
    wrapped = SourceWrapper().wrap("1 + 1", "Unit")
    assert wrapped == "def _evaluate():\n    1 + 1\n" + _unit_footer("Unit")


def test_wrap_preserves_line_structure():
    source = "x = 1\n\nif x:\n    y = 2\nelse:\n    y = 3\ny"
    wrapped = SourceWrapper().wrap(source, "Unit").splitlines()
    offset = SourceWrapper.BODY_LINE_OFFSET

    for lineno, line in enumerate(source.splitlines(), start=1):
        wrapped_line = wrapped[lineno - 1 + offset]
        if line.strip():
            assert wrapped_line == SourceWrapper.BODY_INDENT + line
        else:
            assert wrapped_line == line


def test_wrap_does_not_indent_multiline_string_contents():
    source = 'text = """first\n  second\nthird"""\ntext'
    wrapped = SourceWrapper().wrap(source, "Unit").splitlines()

    assert wrapped[1] == '    text = """first'
    assert wrapped[2] == "  second"
    assert wrapped[3] == 'third"""'
    assert wrapped[4] == "    text"


def test_wrap_empty_source():
    for source in ("", "   \n\n", "# just a comment\n"):
        wrapped = SourceWrapper().wrap(source, "Unit")
        assert wrapped == "def _evaluate():\n    pass\n" + _unit_footer("Unit")


def test_wrap_untokenizable_source_is_indented():
    wrapped = SourceWrapper().wrap('x = "unterminated\ny = 1', "Unit").splitlines()
    assert wrapped[1] == '    x = "unterminated'
    assert wrapped[2] == "    y = 1"


def test_unit_class_follows_the_source():
    source = "def helper():\n    return 1\nhelper()"
    wrapped = SourceWrapper().wrap(source, "Unit").splitlines()
    assert wrapped[0] == "def _evaluate():"
    assert wrapped[-3:] == _unit_footer("Unit").splitlines()
    assert wrapped[1 : 1 + len(source.splitlines())] == [
        "    def helper():",
        "        return 1",
        "    helper()",
    ]


def test_write(tmp_path: Path):
    artifact = ArtifactStore(tmp_path).create()
    wrapped = SourceWrapper().write("40 + 2", artifact)

    assert artifact.source_path.read_text(encoding="utf-8") == wrapped
    assert wrapped.endswith(_unit_footer(artifact.unit_name))
    assert artifact.source_path in pending_deletions()


def test_write_failure_raises_wrap_error(tmp_path: Path):
    store = ArtifactStore(tmp_path)
    artifact = store.create()
    store.get_cleaner(artifact)()

    with pytest.raises(WrapError):
        SourceWrapper().write("1", artifact)


if __name__ == "__main__":
    pytest.main(sys.argv)
