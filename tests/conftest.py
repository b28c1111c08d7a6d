# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Shared fixtures: a small front-end repository."""

import json
from pathlib import Path

import pytest

from buildorch.dependency_graph import AliasTable, DependencyGraph
from buildorch.registry import BundleRegistry

from .helpers import SAMPLE_ALIASES, SAMPLE_COMPONENTS, SAMPLE_FILES, write_files


@pytest.fixture
def sample_repo(tmp_path: Path) -> Path:
    """Create a representative front-end repository.

    Layout:
    - tsconfig.base.json with #core/* and #testing/* aliases
    - components foo, bar (with CSS) and baz under src/components/<name>/0.1
    - component tests under src/components/<name>/0.1/test
    - test/unit/foo-test.js importing foo.js by relative path

    Returns:
        Path to the repository root
    """
    repo = tmp_path / "repo"
    repo.mkdir()
    (repo / "tsconfig.base.json").write_text(
        json.dumps({"compilerOptions": {"baseUrl": ".", "paths": SAMPLE_ALIASES}}),
        encoding="utf-8",
    )
    write_files(repo, SAMPLE_FILES)
    return repo


@pytest.fixture
def sample_graph(sample_repo: Path) -> DependencyGraph:
    """Dependency graph over sample_repo using its tsconfig aliases."""
    aliases = AliasTable.from_tsconfig(sample_repo / "tsconfig.base.json")
    return DependencyGraph(sample_repo, aliases)


@pytest.fixture
def sample_registry() -> BundleRegistry:
    return BundleRegistry.from_manifest(SAMPLE_COMPONENTS)
