"""Configuration for the evaluator."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from codeval.env import (
    get_codeval_artifact_path,
    get_codeval_compile_timeout,
    get_codeval_retention,
)

RetentionPolicy = Literal["retain", "delete"]


class EvalConfig(BaseModel):
    """Configuration for evaluation runs.

    Controls where artifacts are written, what happens to compiled output once a call
    completes, and how long a compilation may take.
    """

    model_config = ConfigDict(use_attribute_docstrings=True)

    artifact_root: Optional[Path] = None
    """Directory under which per-call artifact directories are created. None means the
    value of CODEVAL_ARTIFACT_PATH, falling back to the platform temporary directory."""
    retention: RetentionPolicy = "retain"
    """'retain' keeps compiled output after a call; 'delete' removes the call's artifact
    directory as soon as the call completes."""
    compile_timeout: Optional[float] = Field(default=None, gt=0)
    """Seconds to wait for a compilation before cancelling it. None waits indefinitely."""
    check_imports: bool = True
    """Report imports that cannot be resolved on the search path as compile errors."""

    @classmethod
    def from_env(cls) -> "EvalConfig":
        """Build a config from CODEVAL_* environment variables.

        Returns
        -------
        EvalConfig
            The config. Invalid environment values raise ``pydantic.ValidationError``
            (or ``ValueError`` for a non-numeric timeout).
        """
        return cls(
            artifact_root=get_codeval_artifact_path(),
            retention=get_codeval_retention(),
            compile_timeout=get_codeval_compile_timeout(),
        )

    def resolved_artifact_root(self) -> Path:
        if self.artifact_root is not None:
            return self.artifact_root
        return get_codeval_artifact_path()
