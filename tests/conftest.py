from pathlib import Path
from typing import Iterator

import pytest

from codeval.evaluator import set_default_evaluator


@pytest.fixture
def tmp_artifact_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Use an isolated temporary directory for generated artifacts.

    This fixture sets CODEVAL_ARTIFACT_PATH to a unique temporary directory for each test
    and resets the default evaluator, so no test writes into the shared temp directory.
    """
    artifact_dir = tmp_path / "artifacts"
    monkeypatch.setenv("CODEVAL_ARTIFACT_PATH", str(artifact_dir))
    monkeypatch.delenv("CODEVAL_RETENTION", raising=False)
    monkeypatch.delenv("CODEVAL_COMPILE_TIMEOUT", raising=False)
    set_default_evaluator(None)
    yield artifact_dir
    set_default_evaluator(None)
