"""Scoped loading of compiled units."""

from __future__ import annotations

import importlib.machinery
import importlib.util
import sys
from pathlib import Path
from types import ModuleType
from typing import Dict, Optional, Union

from codeval.errors import LoadError
from codeval.logging import get_logger

logger = get_logger("ScopedLoader")


class ScopedLoader:
    """A loader whose search root is a single output directory.

    Units are looked up in the output directory only, so a module of the same name anywhere
    on ``sys.path`` is never picked up. Imports made by a unit go through the process's own
    import system, which plays the role of the parent loader: the unit sees every module the
    running process can import.

    A loaded unit module is registered in ``sys.modules`` under its unit name while the loader
    is open (code run by the unit, e.g. dataclasses or pydantic models it defines, looks its
    module up there) and unregistered on close. Use it as a context manager::

        with ScopedLoader(artifact.output_dir) as loader:
            unit_class = loader.load(artifact.unit_name)
            value = unit_class()()
    """

    def __init__(self, output_dir: Union[str, Path]) -> None:
        self._output_dir = Path(output_dir)
        self._finder = importlib.machinery.FileFinder(
            str(self._output_dir),
            (importlib.machinery.SourcelessFileLoader, importlib.machinery.BYTECODE_SUFFIXES),
        )
        self._modules: Dict[str, ModuleType] = {}

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    def load_module(self, unit_name: str) -> ModuleType:
        """Find and execute the unit's compiled module.

        Parameters
        ----------
        unit_name : str
            The unit's module name.

        Returns
        -------
        ModuleType
            The executed module.

        Raises
        ------
        LoadError
            If no compiled unit of that name exists in the output directory, or executing the
            module fails.
        """
        if unit_name in self._modules:
            return self._modules[unit_name]

        spec = self._finder.find_spec(unit_name)
        if spec is None or spec.loader is None:
            raise LoadError(unit_name, f"no compiled unit in {self._output_dir}")

        module = importlib.util.module_from_spec(spec)
        previous: Optional[ModuleType] = sys.modules.get(unit_name)
        sys.modules[unit_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            self._restore(unit_name, module, previous)
            raise LoadError(unit_name, f"executing compiled unit failed: {e}") from e
        self._modules[unit_name] = module
        logger.debug("Loaded %s from %s", unit_name, spec.origin)
        return module

    def load(self, unit_name: str) -> type:
        """Resolve the unit's class through this loader.

        Raises
        ------
        LoadError
            If the module cannot be loaded or does not define a class of that name.
        """
        module = self.load_module(unit_name)
        unit_class = getattr(module, unit_name, None)
        if not isinstance(unit_class, type):
            raise LoadError(unit_name, f"module does not define class '{unit_name}'")
        return unit_class

    def close(self) -> None:
        """Unregister every module this loader placed in ``sys.modules``."""
        for name, module in self._modules.items():
            self._restore(name, module, None)
        self._modules.clear()

    @staticmethod
    def _restore(name: str, module: ModuleType, previous: Optional[ModuleType]) -> None:
        if sys.modules.get(name) is module:
            if previous is None:
                del sys.modules[name]
            else:
                sys.modules[name] = previous

    def __enter__(self) -> "ScopedLoader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
