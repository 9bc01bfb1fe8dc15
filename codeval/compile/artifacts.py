"""Creation, tracking and cleanup of per-call generated artifacts."""

from __future__ import annotations

import atexit
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Callable, ClassVar, Dict, List, Optional, Set, Union

from codeval.config import RetentionPolicy
from codeval.data import GeneratedArtifact
from codeval.env import get_codeval_artifact_path
from codeval.errors import WrapError
from codeval.logging import get_logger

from .utils import create_unit_name, normalize_unit_name

logger = get_logger("ArtifactStore")

_pending_lock = threading.Lock()
_pending_deletion: Set[Path] = set()
_atexit_registered = False


def delete_on_exit(path: Union[str, Path]) -> None:
    """Register a file for best-effort deletion when the interpreter exits."""
    global _atexit_registered
    with _pending_lock:
        _pending_deletion.add(Path(path))
        if not _atexit_registered:
            atexit.register(_delete_pending)
            _atexit_registered = True


def cancel_delete_on_exit(path: Union[str, Path]) -> None:
    with _pending_lock:
        _pending_deletion.discard(Path(path))


def pending_deletions() -> List[Path]:
    with _pending_lock:
        return sorted(_pending_deletion)


def _delete_pending() -> None:
    with _pending_lock:
        paths = list(_pending_deletion)
        _pending_deletion.clear()
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to delete generated source %s: %s", path, e)


class ArtifactStore:
    """Creates and tracks the temporary files and directories of evaluation calls.

    Every call gets a fresh artifact directory ``<root>/<unit_name>_XXXX`` containing the
    generated source file ``<unit_name>.py`` and the compiler output directory ``out/``.
    Generated sources are always scheduled for deletion at process exit. Compiled output
    follows the retention policy: ``retain`` leaves it in place, ``delete`` removes the whole
    artifact directory when the call is released.
    """

    _OUTPUT_DIR_NAME: ClassVar[str] = "out"
    """Name of the compiler output directory inside an artifact directory."""

    _SOURCE_SUFFIX: ClassVar[str] = ".py"
    """Suffix of generated source files."""

    def __init__(
        self,
        root: Optional[Union[str, Path]] = None,
        retention: RetentionPolicy = "retain",
        unit_prefix: str = "Evaluator_",
    ) -> None:
        """Initialize the store.

        Parameters
        ----------
        root : Optional[Union[str, Path]]
            Directory under which artifact directories are created. None means
            CODEVAL_ARTIFACT_PATH or the platform temporary directory.
        retention : RetentionPolicy
            ``"retain"`` or ``"delete"``.
        unit_prefix : str
            Prefix of generated unit names.
        """
        if retention not in ("retain", "delete"):
            raise ValueError(f"Invalid retention policy: {retention!r}")
        self._root = Path(root) if root is not None else get_codeval_artifact_path()
        self._retention = retention
        self._unit_prefix = unit_prefix
        self._lock = threading.Lock()
        self._in_flight: Dict[Path, GeneratedArtifact] = {}

    @property
    def root(self) -> Path:
        return self._root

    @property
    def retention(self) -> RetentionPolicy:
        return self._retention

    def create(
        self,
        unit_name: Optional[str] = None,
        artifact_dir: Optional[Union[str, Path]] = None,
    ) -> GeneratedArtifact:
        """Create the artifact for a new call.

        Parameters
        ----------
        unit_name : Optional[str]
            Explicit unit name. None (the default) generates a unique one. Reusing a fixed
            name across calls that share ``artifact_dir`` makes them overwrite each other.
        artifact_dir : Optional[Union[str, Path]]
            Explicit artifact directory. None creates a fresh unique directory under the root.

        Returns
        -------
        GeneratedArtifact
            The artifact. Its source file is not written yet.

        Raises
        ------
        WrapError
            If the directories cannot be created.
        """
        name = normalize_unit_name(unit_name) if unit_name else create_unit_name(self._unit_prefix)
        try:
            if artifact_dir is None:
                self._root.mkdir(parents=True, exist_ok=True)
                directory = Path(tempfile.mkdtemp(prefix=name + "_", dir=self._root))
            else:
                directory = Path(artifact_dir)
                directory.mkdir(parents=True, exist_ok=True)
            output_dir = directory / self._OUTPUT_DIR_NAME
            output_dir.mkdir(exist_ok=True)
        except OSError as e:
            raise WrapError(f"Cannot create artifact directory for '{name}': {e}") from e

        artifact = GeneratedArtifact(
            unit_name=name,
            artifact_dir=directory,
            source_path=directory / f"{name}{self._SOURCE_SUFFIX}",
            output_dir=output_dir,
        )
        with self._lock:
            self._in_flight[artifact.source_path] = artifact
        logger.debug("Created artifact %s in %s", name, directory)
        return artifact

    def register_source(self, artifact: GeneratedArtifact) -> None:
        """Schedule the artifact's generated source for deletion at process exit."""
        delete_on_exit(artifact.source_path)

    def in_flight(self) -> List[GeneratedArtifact]:
        """Artifacts created by this store that have not been released yet."""
        with self._lock:
            return list(self._in_flight.values())

    def get_cleaner(self, artifact: GeneratedArtifact) -> Callable[[], None]:
        """Create a cleaner function that removes the artifact directory.

        Parameters
        ----------
        artifact : GeneratedArtifact
            The artifact to delete.

        Returns
        -------
        Callable[[], None]
            A function that performs the cleanup.
        """

        def cleaner() -> None:
            cancel_delete_on_exit(artifact.source_path)
            shutil.rmtree(artifact.artifact_dir, ignore_errors=True)

        return cleaner

    def release(self, artifact: GeneratedArtifact) -> None:
        """Mark a call as complete and apply the retention policy to its artifact."""
        with self._lock:
            self._in_flight.pop(artifact.source_path, None)
        if self._retention == "delete":
            self.get_cleaner(artifact)()
            logger.debug("Deleted artifact directory %s", artifact.artifact_dir)
