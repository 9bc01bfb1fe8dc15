"""Resolution of the compilation search path.

The search path handed to the compiler is the concatenation, in order, of:

1. the interpreter's boot path (its standard library locations),
2. every entry of the process search path, where each archive entry is followed by the
   entries its ``META-INF/MANIFEST.MF`` declares in the ``Class-Path`` attribute,
3. the install locations of the compiler front end and of this runtime library.

Manifest expansion is one level deep: entries pulled in from a manifest are never opened
to look for further ``Class-Path`` attributes. Duplicates are kept and order is preserved.
"""

from __future__ import annotations

import importlib.util
import os
import sys
import sysconfig
import threading
import zipfile
import zipimport
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence
from urllib.parse import urlparse
from urllib.request import url2pathname

from codeval.data import FrozenModel
from codeval.errors import ClasspathResolutionError
from codeval.logging import get_logger

logger = get_logger("ClasspathResolver")

MANIFEST_NAME = "META-INF/MANIFEST.MF"
CLASS_PATH_ATTRIBUTE = "Class-Path"
ARCHIVE_SUFFIXES = (".zip", ".jar", ".egg", ".whl", ".pyz")
"""File suffixes that mark a search path entry as an archive."""
_ZIP_SIGNATURE = b"PK"

COMPILER_MODULE = "ast"
"""Module whose containing location is reported as the compiler install path."""
RUNTIME_MODULE = "codeval"
"""Module whose containing location is reported as the runtime support library path."""


class InstallLocations(FrozenModel):
    """Where the compiler front end and the runtime support library are installed."""

    compiler: str
    """Containing location of the compiler front end."""
    runtime: str
    """Containing location of the runtime support library."""


_install_locations: Optional[InstallLocations] = None
_install_lock = threading.Lock()


def containing_location(module_name: str) -> str:
    """Find the search path location a module is imported from.

    For a module imported from a zip archive this is the archive itself. Otherwise it is the
    directory that, placed on the search path, makes the module importable: the parent of the
    top-level package directory, or the directory holding a top-level module file.

    Parameters
    ----------
    module_name : str
        Fully qualified module name, e.g. ``"ast"`` or ``"codeval.compile"``.

    Returns
    -------
    str
        The containing archive or directory.

    Raises
    ------
    ClasspathResolutionError
        If the module cannot be found or has no file location.
    """
    try:
        spec = importlib.util.find_spec(module_name)
    except (ImportError, ValueError) as e:
        raise ClasspathResolutionError(module_name, f"module lookup failed: {e}") from e
    if spec is None or not spec.has_location or spec.origin is None:
        raise ClasspathResolutionError(module_name, "module has no file location")

    if isinstance(spec.loader, zipimport.zipimporter):
        return spec.loader.archive

    root = Path(spec.origin).parent
    depth = module_name.count(".") + (1 if spec.submodule_search_locations is not None else 0)
    for _ in range(depth):
        root = root.parent
    return str(root)


def get_install_locations() -> InstallLocations:
    """Get the install locations of the compiler and the runtime support library.

    Discovery runs at most once per process, even under concurrent first use. The result is
    immutable and shared by all callers.
    """
    global _install_locations
    if _install_locations is None:
        with _install_lock:
            if _install_locations is None:
                _install_locations = InstallLocations(
                    compiler=containing_location(COMPILER_MODULE),
                    runtime=containing_location(RUNTIME_MODULE),
                )
                logger.debug(
                    "Discovered compiler at %s, runtime at %s",
                    _install_locations.compiler,
                    _install_locations.runtime,
                )
    return _install_locations


def boot_path() -> List[str]:
    """The interpreter's default boot path: its standard library locations."""
    paths = sysconfig.get_paths()
    entries = [paths["stdlib"], paths["platstdlib"]]
    dynload = Path(paths["platstdlib"]) / "lib-dynload"
    if dynload.is_dir():
        entries.append(str(dynload))
    return entries


def strip_url_scheme(entry: str) -> str:
    """Turn a ``file:`` URL into a plain path; other entries are returned unchanged."""
    if not entry.startswith("file:"):
        return entry
    return url2pathname(urlparse(entry).path)


def is_archive(entry: str) -> bool:
    """Whether a search path entry is an archive. Directories are never archives.

    A file counts as an archive when it has an archive suffix or starts with the zip
    signature, whether or not it can actually be opened. Reading a broken archive then fails
    loudly instead of being skipped.
    """
    if not os.path.isfile(entry):
        return False
    if entry.lower().endswith(ARCHIVE_SUFFIXES):
        return True
    try:
        with open(entry, "rb") as f:
            return f.read(len(_ZIP_SIGNATURE)) == _ZIP_SIGNATURE
    except OSError:
        return False


def parse_manifest(text: str) -> Dict[str, str]:
    """Parse the main section of a jar-style manifest.

    Headers have the form ``Name: value``. A line starting with a single space continues the
    previous header's value. The main section ends at the first blank line after a header.

    Parameters
    ----------
    text : str
        Manifest text.

    Returns
    -------
    Dict[str, str]
        Main-section attributes, keyed by header name as written.

    Raises
    ------
    ValueError
        If a line is neither a header nor a continuation.
    """
    attributes: Dict[str, str] = {}
    current: Optional[str] = None
    for line in text.splitlines():
        if not line.strip():
            if current is not None:
                break
            continue
        if line.startswith(" "):
            if current is None:
                raise ValueError(f"Continuation line without a header: {line!r}")
            attributes[current] += line[1:]
            continue
        name, sep, value = line.partition(":")
        if not sep or not name.strip():
            raise ValueError(f"Malformed manifest line: {line!r}")
        current = name.strip()
        attributes[current] = value[1:] if value.startswith(" ") else value
    return attributes


def _get_attribute(attributes: Dict[str, str], name: str) -> Optional[str]:
    lowered = name.lower()
    for key, value in attributes.items():
        if key.lower() == lowered:
            return value
    return None


def read_manifest_class_path(archive: str) -> List[str]:
    """Read the ``Class-Path`` entries declared by an archive's manifest.

    Relative entries are resolved against the directory containing the archive; ``file:``
    URLs and absolute paths are used as given.

    Parameters
    ----------
    archive : str
        Path of the archive.

    Returns
    -------
    List[str]
        Declared entries in manifest order. Empty if the archive has no manifest or the
        manifest has no ``Class-Path`` attribute.

    Raises
    ------
    ClasspathResolutionError
        If the archive cannot be opened or its manifest cannot be read.
    """
    try:
        with zipfile.ZipFile(archive) as zf:
            try:
                raw = zf.read(MANIFEST_NAME)
            except KeyError:
                return []
        attributes = parse_manifest(raw.decode("utf-8"))
    except (OSError, zipfile.BadZipFile, UnicodeDecodeError, ValueError) as e:
        raise ClasspathResolutionError(archive, f"cannot read manifest: {e}") from e

    value = _get_attribute(attributes, CLASS_PATH_ATTRIBUTE)
    if not value:
        return []

    base = os.path.dirname(os.path.abspath(archive))
    entries = []
    for item in value.split():
        path = strip_url_scheme(item)
        if not os.path.isabs(path):
            path = os.path.normpath(os.path.join(base, path))
        entries.append(path)
    return entries


class ClasspathResolver:
    """Computes the full search path used to compile a generated unit.

    Parameters
    ----------
    process_path : Optional[Sequence[str]]
        The process search path to expand. None reads ``sys.path`` at resolve time.
    include_boot_path : bool
        Prepend the interpreter's boot path. Default: True.
    include_install_locations : bool
        Append the compiler and runtime install locations. Default: True.
    """

    def __init__(
        self,
        process_path: Optional[Sequence[str]] = None,
        include_boot_path: bool = True,
        include_install_locations: bool = True,
    ) -> None:
        self._process_path = list(process_path) if process_path is not None else None
        self._include_boot_path = include_boot_path
        self._include_install_locations = include_install_locations

    def process_entries(self) -> List[str]:
        """Entries of the process search path with URL schemes stripped."""
        source: Iterable[str] = self._process_path if self._process_path is not None else sys.path
        entries = []
        for entry in source:
            entry = strip_url_scheme(str(entry))
            entries.append(entry if entry else os.getcwd())
        return entries

    def expand(self, entries: Iterable[str]) -> List[str]:
        """Follow each archive entry with the entries declared in its manifest (one level)."""
        expanded: List[str] = []
        for entry in entries:
            expanded.append(entry)
            if is_archive(entry):
                nested = read_manifest_class_path(entry)
                if nested:
                    logger.debug("Archive %s declares %d nested entries", entry, len(nested))
                expanded.extend(nested)
        return expanded

    def resolve(self) -> List[str]:
        """Resolve the ordered search path.

        Returns
        -------
        List[str]
            Boot path, then the expanded process path, then the install locations.

        Raises
        ------
        ClasspathResolutionError
            If an archive on the process path cannot be read.
        """
        path_list: List[str] = []
        if self._include_boot_path:
            path_list.extend(boot_path())
        path_list.extend(self.expand(self.process_entries()))
        if self._include_install_locations:
            locations = get_install_locations()
            path_list.extend([locations.compiler, locations.runtime])
        logger.debug("Resolved search path with %d entries", len(path_list))
        return path_list

    def as_string(self) -> str:
        """The resolved search path joined with the platform path separator."""
        return os.pathsep.join(self.resolve())
