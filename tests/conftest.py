"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import random
from pathlib import Path
import pytest

from dtree.ids import IdGenerator
from dtree.workspace.registry import WorkspaceRegistry
from dtree.workspace.workbench import Workbench


@pytest.fixture(autouse=True)
def isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep user config files and DTREE_* variables out of test runs."""
    monkeypatch.setenv("DTREE_CONFIG_DIR", str(tmp_path / "dtree-config"))
    for name in ("DTREE_ID_SEED", "DTREE_SEED_DEMO", "DTREE_DEFAULT_WORKSPACE_TITLE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def ids() -> IdGenerator:
    """Isolated id generator starting at 1000."""
    return IdGenerator(1000)


@pytest.fixture
def rng() -> random.Random:
    """Deterministic random source for node placement."""
    return random.Random(7)


@pytest.fixture
def registry(ids: IdGenerator, rng: random.Random) -> WorkspaceRegistry:
    """Registry holding the demo workspace."""
    return WorkspaceRegistry(ids=ids, rng=rng)


@pytest.fixture
def bench(registry: WorkspaceRegistry) -> Workbench:
    """Workbench over the demo registry."""
    return Workbench(registry)
