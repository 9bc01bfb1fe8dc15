"""Naming helpers for generated units."""

from __future__ import annotations

import re
import uuid


def normalize_unit_name(name: str) -> str:
    """Turn an arbitrary string into a valid unit name.

    Non-identifier characters are replaced by underscores and a leading digit (or an empty
    result) gets an underscore prefix.

    Examples
    --------
    >>> normalize_unit_name("my-config.v2")
    'my_config_v2'
    >>> normalize_unit_name("2nd")
    '_2nd'
    """
    s = re.sub(r"[^0-9a-zA-Z_]", "_", name)
    if not s or s[0].isdigit():
        s = "_" + s
    return s


def create_unit_name(prefix: str = "Evaluator_") -> str:
    """Generate a process-unique unit name.

    The name is the normalized prefix followed by 32 hex characters of a random UUID, so two
    calls never share a name, whether they run sequentially or concurrently.

    Parameters
    ----------
    prefix : str
        Human-readable prefix. Default: ``"Evaluator_"``.

    Returns
    -------
    str
        A unique unit name, e.g. ``'Evaluator_3f2b...'``.
    """
    return normalize_unit_name(prefix) + uuid.uuid4().hex
