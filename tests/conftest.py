"""Shared pytest fixtures for aisync tests."""

from __future__ import annotations

import pytest
from dotenv import load_dotenv

from aisync.config_schema import FileMapping, SyncConfig, TargetConfig

load_dotenv()


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Keep the developer's own config and log level out of the tests."""
    monkeypatch.delenv("AISYNC_CONFIG", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Run the test from an empty temporary directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def make_target():
    """Factory fixture for TargetConfig instances.

    ``mappings`` is a list of ``(source, destination)`` tuples or
    ``FileMapping`` objects.
    """

    def _create(
        mappings=None,
        name: str = "t",
        type: str = "custom",
        path: str | None = None,
        enabled: bool = True,
    ) -> TargetConfig:
        built = []
        for item in mappings if mappings is not None else [("a.md", "out/a.md")]:
            if isinstance(item, FileMapping):
                built.append(item)
            else:
                built.append(FileMapping(source=item[0], destination=item[1]))
        return TargetConfig(
            name=name, type=type, path=path, mapping=built, enabled=enabled
        )

    return _create


@pytest.fixture
def make_config():
    """Factory fixture for SyncConfig instances."""

    def _create(sources, targets, mode: str = "incremental", **kwargs):
        return SyncConfig(
            sources=list(sources), targets=list(targets), mode=mode, **kwargs
        )

    return _create
