from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest
from loguru import logger

import sidekick.logging_utils as logging_utils


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "SIDEKICK_API_KEY",
        "SIDEKICK_MODEL",
        "SIDEKICK_API_BASE",
        "SIDEKICK_WORKSPACE_PATH",
        "SIDEKICK_LOG_LEVEL",
        "OPENAI_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    logging_utils._CONFIGURED = None
    yield
    logging_utils._CONFIGURED = None
    logger.remove()
    logger.add(sys.__stderr__, level="INFO")
