"""Tests for compile/classpath.py."""

import ast
import importlib
import os
import sys
import threading
import time
import zipfile
from pathlib import Path
from typing import Optional

import pytest

import codeval
from codeval.compile import classpath as classpath_module
from codeval.compile.classpath import (
    MANIFEST_NAME,
    ClasspathResolver,
    boot_path,
    containing_location,
    get_install_locations,
    is_archive,
    parse_manifest,
    read_manifest_class_path,
    strip_url_scheme,
)
from codeval.errors import ClasspathResolutionError


def _make_archive(path: Path, manifest: Optional[str] = None, files: Optional[dict] = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        if manifest is not None:
            zf.writestr(MANIFEST_NAME, manifest)
        for name, content in (files or {}).items():
            zf.writestr(name, content)
    return path


def _resolver(*entries) -> ClasspathResolver:
    return ClasspathResolver(
        process_path=[str(e) for e in entries],
        include_boot_path=False,
        include_install_locations=False,
    )


def test_parse_manifest():
    text = (
        "Manifest-Version: 1.0\r\n"
        "Class-Path: a.zip b\r\n"
        " .zip c.zip\r\n"
        "Created-By: tests\r\n"
        "\r\n"
        "Name: pkg/\r\n"
        "Class-Path: ignored.zip\r\n"
    )
    attributes = parse_manifest(text)
    assert attributes == {
        "Manifest-Version": "1.0",
        "Class-Path": "a.zip b.zip c.zip",
        "Created-By": "tests",
    }


def test_parse_manifest_malformed():
    with pytest.raises(ValueError):
        parse_manifest("Manifest-Version: 1.0\nNoColonHere\n")
    with pytest.raises(ValueError):
        parse_manifest(" leading continuation\n")


def test_nested_class_path_one_level(tmp_path: Path):
    lib = tmp_path / "lib"
    _make_archive(lib / "dep1.zip", "Manifest-Version: 1.0\nClass-Path: deep.zip\n")
    _make_archive(lib / "deep.zip", "Manifest-Version: 1.0\n")
    app = _make_archive(
        lib / "app.zip", "Manifest-Version: 1.0\nClass-Path: dep1.zip sub/dep2.zip\n"
    )

    resolved = _resolver(app).resolve()

    assert resolved == [str(app), str(lib / "dep1.zip"), str(lib / "sub" / "dep2.zip")]
    assert str(lib / "deep.zip") not in resolved
    for entry in resolved:
        assert resolved.count(entry) == 1


def test_archive_without_manifest_contributes_itself(tmp_path: Path):
    archive = _make_archive(tmp_path / "plain.zip", files={"mod.py": "x = 1\n"})
    assert _resolver(archive).resolve() == [str(archive)]


def test_manifest_without_class_path(tmp_path: Path):
    archive = _make_archive(tmp_path / "m.zip", "Manifest-Version: 1.0\nMain-Class: App\n")
    assert _resolver(archive).resolve() == [str(archive)]
    assert read_manifest_class_path(str(archive)) == []


def test_class_path_attribute_is_case_insensitive(tmp_path: Path):
    archive = _make_archive(tmp_path / "m.zip", "class-path: other.zip\n")
    assert read_manifest_class_path(str(archive)) == [str(tmp_path / "other.zip")]


def test_absolute_and_url_class_path_entries(tmp_path: Path):
    absolute = tmp_path / "elsewhere" / "abs.zip"
    archive = _make_archive(
        tmp_path / "m.zip", f"Class-Path: {absolute} {absolute.as_uri()}\n"
    )
    assert read_manifest_class_path(str(archive)) == [str(absolute), str(absolute)]


def test_directory_entry_passes_through(tmp_path: Path):
    directory = tmp_path / "classes.zip"
    directory.mkdir()
    assert not is_archive(str(directory))
    assert _resolver(directory).resolve() == [str(directory)]


def test_missing_and_non_archive_entries_pass_through(tmp_path: Path):
    text_file = tmp_path / "notes.txt"
    text_file.write_text("not an archive")
    missing = tmp_path / "missing.zip"
    assert _resolver(text_file, missing).resolve() == [str(text_file), str(missing)]


def test_unreadable_manifest_names_entry(tmp_path: Path):
    archive = _make_archive(tmp_path / "bad.zip")
    with zipfile.ZipFile(archive, "w") as zf:
        zf.writestr(MANIFEST_NAME, b"\xff\xfe\x00Class-Path")

    with pytest.raises(ClasspathResolutionError) as exc_info:
        _resolver(archive).resolve()
    assert exc_info.value.entry == str(archive)
    assert str(archive) in str(exc_info.value)


@pytest.mark.parametrize("name", ["broken.zip", "broken.jar", "broken_archive"])
def test_corrupt_archive_names_entry(tmp_path: Path, name: str):
    archive = tmp_path / name
    archive.write_bytes(b"PK\x03\x04 truncated garbage")
    assert is_archive(str(archive))

    with pytest.raises(ClasspathResolutionError) as exc_info:
        _resolver(archive).resolve()
    assert exc_info.value.entry == str(archive)


def test_empty_file_with_archive_suffix_names_entry(tmp_path: Path):
    archive = tmp_path / "empty.whl"
    archive.write_bytes(b"")
    with pytest.raises(ClasspathResolutionError):
        _resolver(archive).resolve()


def test_malformed_manifest_names_entry(tmp_path: Path):
    archive = _make_archive(tmp_path / "bad.zip", "Manifest-Version: 1.0\ngarbage line\n")
    with pytest.raises(ClasspathResolutionError) as exc_info:
        read_manifest_class_path(str(archive))
    assert exc_info.value.entry == str(archive)


@pytest.mark.skipif(os.name == "nt", reason="POSIX paths")
def test_strip_url_scheme():
    assert strip_url_scheme("file:/opt/app/lib.zip") == "/opt/app/lib.zip"
    assert strip_url_scheme("file:///opt/app/my%20lib.zip") == "/opt/app/my lib.zip"
    assert strip_url_scheme("/opt/app/lib.zip") == "/opt/app/lib.zip"


def test_process_entries(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.chdir(tmp_path)
    resolver = ClasspathResolver(process_path=["", tmp_path.as_uri()])
    assert resolver.process_entries() == [os.getcwd(), str(tmp_path)]


def test_process_entries_default_to_sys_path(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(sys, "path", ["/first", "/second"])
    assert ClasspathResolver().process_entries() == ["/first", "/second"]


def test_resolve_order(tmp_path: Path):
    resolver = ClasspathResolver(process_path=[str(tmp_path / "missing")])
    resolved = resolver.resolve()
    boot = boot_path()
    locations = get_install_locations()

    assert resolved[: len(boot)] == boot
    assert resolved[len(boot)] == str(tmp_path / "missing")
    assert resolved[-2:] == [locations.compiler, locations.runtime]
    assert resolver.as_string() == os.pathsep.join(resolved)


def test_containing_location():
    assert containing_location("ast") == str(Path(ast.__file__).parent)
    assert containing_location("codeval") == str(Path(codeval.__file__).parent.parent)
    assert containing_location("codeval.compile.classpath") == str(
        Path(codeval.__file__).parent.parent
    )


def test_containing_location_of_zipped_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    archive = _make_archive(tmp_path / "zipped.zip", files={"codeval_zipped_module.py": "x = 1\n"})
    monkeypatch.syspath_prepend(str(archive))
    importlib.invalidate_caches()
    assert containing_location("codeval_zipped_module") == str(archive)


def test_containing_location_unknown_module():
    with pytest.raises(ClasspathResolutionError):
        containing_location("codeval_no_such_module_anywhere")


def test_install_locations_computed_once(monkeypatch: pytest.MonkeyPatch):
    calls = []
    original = classpath_module.containing_location

    def slow_containing_location(name: str) -> str:
        calls.append(name)
        time.sleep(0.01)
        return original(name)

    monkeypatch.setattr(classpath_module, "_install_locations", None)
    monkeypatch.setattr(classpath_module, "containing_location", slow_containing_location)

    results = []
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        results.append(get_install_locations())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(calls) == ["ast", "codeval"]
    assert len(results) == 8
    assert all(r is results[0] for r in results)
    assert get_install_locations() is results[0]


if __name__ == "__main__":
    pytest.main(sys.argv)
