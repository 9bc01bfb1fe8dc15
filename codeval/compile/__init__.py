"""Compiler subsystem package.

This package provides the pipeline stages that turn source text into an invocable unit:
- ArtifactStore: creates and tracks per-call artifact directories and generated files
- ClasspathResolver: computes the search path used to compile a unit
- SourceWrapper: wraps raw source into a named zero-argument unit
- CompilerInvoker: compiles one wrapped unit and reports diagnostics
- ScopedLoader: loads the compiled unit from its output directory only

The typical workflow is:
1. Create an artifact: artifact = ArtifactStore().create()
2. Wrap: SourceWrapper().write("1 + 1", artifact)
3. Compile: result = CompilerInvoker(ClasspathResolver().resolve()).compile(
       artifact.source_path, artifact.output_dir, artifact.unit_name)
4. Load and call: ScopedLoader(artifact.output_dir).load(artifact.unit_name)()()
"""

from .artifacts import ArtifactStore, delete_on_exit
from .classpath import ClasspathResolver, InstallLocations, get_install_locations
from .compiler import CompilerInvoker, compile_unit
from .loader import ScopedLoader
from .utils import create_unit_name, normalize_unit_name
from .wrapper import SourceWrapper

__all__ = [
    "ArtifactStore",
    "ClasspathResolver",
    "CompilerInvoker",
    "InstallLocations",
    "ScopedLoader",
    "SourceWrapper",
    "compile_unit",
    "create_unit_name",
    "delete_on_exit",
    "get_install_locations",
    "normalize_unit_name",
]
