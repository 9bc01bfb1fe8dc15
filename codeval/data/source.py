"""Source units handed to the evaluator."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from pydantic import Field

from codeval.errors import WrapError

from .utils import FrozenModel


class SourceUnit(FrozenModel):
    """Source text to evaluate, either given directly or read from a file.

    A SourceUnit is immutable: a file is read exactly once, when the unit is created.
    """

    text: str
    """The complete source text."""
    origin: Optional[Path] = Field(default=None)
    """The file the text was read from, or None for text given directly."""

    @classmethod
    def from_text(cls, text: str) -> "SourceUnit":
        return cls(text=text)

    @classmethod
    def from_file(cls, path: Union[str, Path], encoding: str = "utf-8-sig") -> "SourceUnit":
        """Read a source file into a unit.

        Parameters
        ----------
        path : Union[str, Path]
            The file to read.
        encoding : str
            Text encoding of the file. Default: ``"utf-8-sig"``, which also drops a leading
            byte order mark.

        Returns
        -------
        SourceUnit
            The unit holding the file's text.

        Raises
        ------
        WrapError
            If the file cannot be read or decoded.
        """
        path = Path(path)
        try:
            text = path.read_text(encoding=encoding)
        except (OSError, UnicodeDecodeError) as e:
            raise WrapError(f"Cannot read source file '{path}': {e}") from e
        return cls(text=text, origin=path)

    @property
    def display_name(self) -> str:
        return str(self.origin) if self.origin is not None else "<string>"
