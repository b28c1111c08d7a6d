# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""On-demand bundle builds and change-driven test selection."""

from .builder import BundleBuilder
from .config import Config
from .dependency_graph import AliasTable, DependencyGraph
from .errors import (
    BuildError,
    BuildOrchestratorError,
    ConfigurationError,
    NotFoundError,
    ParseError,
)
from .git_changes import ChangeSet, GitRepository
from .models import Bundle, BuildState, CompileOptions, SelectionOutcome, TestSelection
from .registry import BundleRegistry
from .router import LazyBuildMiddleware, LazyBuildRouter
from .run_config import RunConfig, build_run_config
from .selector import TestSelector
from .service import BuildOrchestratorService

__version__ = "0.1.0"

__all__ = [
    "AliasTable",
    "Bundle",
    "BuildError",
    "BuildOrchestratorError",
    "BuildOrchestratorService",
    "BuildState",
    "BundleBuilder",
    "BundleRegistry",
    "ChangeSet",
    "CompileOptions",
    "Config",
    "ConfigurationError",
    "DependencyGraph",
    "GitRepository",
    "LazyBuildMiddleware",
    "LazyBuildRouter",
    "NotFoundError",
    "ParseError",
    "RunConfig",
    "SelectionOutcome",
    "TestSelection",
    "TestSelector",
    "build_run_config",
]
