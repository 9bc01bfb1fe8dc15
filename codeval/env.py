"""Environment variable accessors for codeval."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional


def get_codeval_artifact_path() -> Path:
    """Get the root directory for generated artifacts.

    Reads ``CODEVAL_ARTIFACT_PATH``; defaults to the platform temporary directory.

    Returns
    -------
    Path
        The artifact root directory. It may not exist yet.
    """
    value = os.environ.get("CODEVAL_ARTIFACT_PATH")
    if not value:
        return Path(tempfile.gettempdir())
    return Path(value).expanduser()


def get_codeval_retention() -> str:
    """Get the retention policy for compiled output (``retain`` or ``delete``)."""
    return os.environ.get("CODEVAL_RETENTION", "retain").strip().lower()


def get_codeval_compile_timeout() -> Optional[float]:
    """Get the compile timeout in seconds from ``CODEVAL_COMPILE_TIMEOUT``.

    Returns
    -------
    Optional[float]
        The timeout, or None when unset or empty.

    Raises
    ------
    ValueError
        If the variable is set but is not a number.
    """
    value = os.environ.get("CODEVAL_COMPILE_TIMEOUT")
    if value is None or not value.strip():
        return None
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"CODEVAL_COMPILE_TIMEOUT must be a number, got {value!r}") from e
