"""Shared fixtures for sspkit tests."""

from __future__ import annotations

import itertools
import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from sspkit.compliance.baseline import BaselineResolver
from sspkit.core.config import get_effective_config
from sspkit.core.content import seed_content
from sspkit.core.documents import DocumentStore
from sspkit.core.service import ComplianceService
from sspkit.core.storage import FileContentStore

FIXED_NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def write_profile(root: Path, key: str, with_ids: list[str], title: str = "Test Profile") -> Path:
    """Write a minimal OSCAL profile under ``root``."""
    path = root / key
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps({
            "profile": {
                "metadata": {"title": title},
                "imports": [{"href": "catalog.json", "include-controls": [{"with-ids": with_ids}]}],
            }
        }),
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep deployment environment variables out of config resolution."""
    for name in ("OSCAL_CONTENT_PATH", "DATA_DIR", "SSPKIT_STORAGE_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def content_root(tmp_path: Path) -> Path:
    """Content directory whose MODERATE baseline is {AC-1, AC-2, SI-4}."""
    root = tmp_path / "oscal-content"
    write_profile(root, "profiles/baselines/moderate_baseline.json", ["ac-1", "ac-2", "si-4"], "Moderate")
    write_profile(root, "profiles/baselines/low_baseline.json", ["ac-1", "ac-2"], "Low")
    write_profile(root, "profiles/fedramp/fedramp_moderate_profile.json", ["ac-1", "ac-2", "ac-2.1", "si-4"], "FedRAMP")
    return root


@pytest.fixture
def content_store(content_root: Path) -> FileContentStore:
    return FileContentStore(content_root)


@pytest.fixture
def data_store(tmp_path: Path) -> FileContentStore:
    return FileContentStore(tmp_path / "data")


@pytest.fixture
def resolver(content_store: FileContentStore) -> BaselineResolver:
    return BaselineResolver(content_store)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"ssp-{next(counter):03d}"


@pytest.fixture
def documents(data_store: FileContentStore, resolver: BaselineResolver, clock, id_factory) -> DocumentStore:
    return DocumentStore(data_store, resolver, clock=clock, id_factory=id_factory)


@pytest.fixture
def tmp_project(tmp_path: Path, content_root: Path) -> Path:
    """Project root with .sspkit/config.yaml pointing at the test content."""
    project = tmp_path / "test-project"
    config_dir = project / ".sspkit"
    config_dir.mkdir(parents=True)
    (config_dir / "config.yaml").write_text(
        f"content:\n  path: {content_root.as_posix()}\n\ndata:\n  path: data\n",
        encoding="utf-8",
    )
    return project


@pytest.fixture
def profile_writer():
    """``write_profile`` for tests that need extra or broken profiles."""
    return write_profile


@pytest.fixture
def service(tmp_project: Path, clock, id_factory):
    """Service over the test project, with bundled extension guidance seeded."""
    svc = ComplianceService(get_effective_config(tmp_project, environ={}), clock=clock, id_factory=id_factory)
    seed_content(svc.content_store)
    yield svc
    svc.close()
