"""Per-call generated artifacts."""

from __future__ import annotations

from pathlib import Path

from .utils import FrozenModel, UnitName


class GeneratedArtifact(FrozenModel):
    """The files and names generated for a single evaluation call.

    Both the source file and the output directory live inside ``artifact_dir``, which is
    unique to the call unless a caller explicitly asks for a shared one.
    """

    unit_name: UnitName
    """The synthesized identifier of the wrapped unit; also its module and class name."""
    artifact_dir: Path
    """The directory holding this call's generated source and compiled output."""
    source_path: Path
    """The generated (wrapped) source file."""
    output_dir: Path
    """The directory the compiler writes the unit's bytecode into."""

    @property
    def compiled_path(self) -> Path:
        """Path of the compiled unit inside ``output_dir``."""
        return self.output_dir / f"{self.unit_name}.pyc"
