# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""BuildOrchestratorService - Business logic layer for the outer surfaces.

Owns the bundle registries, builders, request routers, dependency graph and
file watcher, wired from one Config. The CLI and the MCP server only
translate their inputs into calls on this service.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .builder import BundleBuilder, CompileFunction
from .compiler import SubprocessCompiler
from .config import Config
from .dependency_graph import AliasTable, DependencyGraph
from .file_watcher import BuildScheduler, FileWatcher
from .git_changes import ChangeSet, GitRepository
from .models import TestSelection
from .registry import BundleRegistry
from .router import LazyBuildRouter, extension_matcher, js_matcher
from .run_config import RunConfig, resolve_test_files
from .selector import TestSelector
from .style_map import StyleMap

logger = logging.getLogger(__name__)


class BuildOrchestratorService:
    """Coordinates lazy builds and change-driven test selection.

    Lifecycle: created once at process start, shutdown() at exit.
    """

    def __init__(
        self,
        config: Config,
        repo_root: Union[str, Path],
        minified: bool = False,
        esm: bool = False,
        compile_fn: Optional[CompileFunction] = None,
        git_repository: Optional[GitRepository] = None,
    ):
        """Initialize service.

        Args:
            config: Orchestrator configuration.
            repo_root: Repository root directory.
            minified: Serve and build minified bundles.
            esm: Serve ES module bundles.
            compile_fn: External compile operation. If None, runs
                config.compile_command in a subprocess.
            git_repository: Git adapter. If None, opened on first use.

        Raises:
            ConfigurationError: If the bundle manifest or the alias table
                is missing or invalid.
        """
        self.config = config
        self.repo_root = Path(repo_root).resolve()
        self.minified = minified
        self.esm = esm

        self.components = BundleRegistry.from_manifest(config.components, kind="component")
        self.js_bundles = BundleRegistry.from_manifest(config.js_bundles, kind="js")

        if compile_fn is None:
            compile_fn = SubprocessCompiler(config.compile_command, self.repo_root).compile
        self.component_builder = BundleBuilder(self.components, compile_fn, minify=minified)
        self.js_builder = BundleBuilder(self.js_bundles, compile_fn, minify=minified)

        self.routers = [
            LazyBuildRouter(
                self.components,
                self.component_builder,
                extension_matcher(minified=minified, esm=esm),
                minified=minified,
            ),
            LazyBuildRouter(
                self.js_bundles,
                self.js_builder,
                js_matcher(esm=esm),
                minified=minified,
            ),
        ]

        aliases = AliasTable.from_tsconfig(self.repo_root / config.tsconfig_path)
        self.graph = DependencyGraph(self.repo_root, aliases)
        self.style_outputs = self.components.style_outputs(config.css_build_dir)

        self._git = git_repository
        self._watcher: Optional[FileWatcher] = None

        logger.info(
            f"BuildOrchestratorService initialized: {len(self.components)} components, "
            f"{len(self.js_bundles)} js bundles, {len(aliases)} import aliases"
        )

    @property
    def git(self) -> GitRepository:
        if self._git is None:
            self._git = GitRepository(self.repo_root, main_branch=self.config.main_branch)
        return self._git

    async def build_path(self, path: str) -> Optional[str]:
        """Lazily build the bundle named by a request path.

        Returns:
            Canonical name of the built bundle, or None if no bundle matched.

        Raises:
            BuildError: If the build failed.
        """
        for router in self.routers:
            name = await router.maybe_build(path)
            if name is not None:
                return name
        return None

    def bundle_status(self) -> Dict[str, List[Dict[str, Any]]]:
        """Build state of every known bundle."""
        status: Dict[str, List[Dict[str, Any]]] = {}
        builders = (("components", self.component_builder), ("js_bundles", self.js_builder))
        for key, builder in builders:
            entries = []
            for bundle in builder.registry:
                entry = bundle.to_dict()
                entry["compile_count"] = builder.compile_count(bundle.name)
                entries.append(entry)
            status[key] = entries
        return status

    def selector_for(
        self, run_config: RunConfig, change_set: Optional[ChangeSet] = None
    ) -> TestSelector:
        """Create the test selector for one invocation.

        Import edges are scanned afresh for every selector.

        Args:
            run_config: Run settings (CI mode decides the escape hatches).
            change_set: Changed files. If None, diffed against the main branch.

        Raises:
            GitError: If the change set has to be read from git and that fails.
        """
        if change_set is None:
            change_set = ChangeSet.from_git(self.git, ci=run_config.ci)
        return TestSelector(
            self.repo_root,
            change_set,
            self.graph,
            self.config.unit_test_paths,
            style_map=StyleMap(self.graph, self.style_outputs),
            large_refactor_threshold=self.config.large_refactor_threshold,
            test_file_count_threshold=self.config.test_file_count_threshold,
            local_dev=run_config.local_dev,
        )

    def select_tests(
        self, run_config: Optional[RunConfig] = None, change_set: Optional[ChangeSet] = None
    ) -> TestSelection:
        """Select the unit tests affected by local changes."""
        return self.selector_for(run_config or RunConfig(), change_set).select()

    def test_files(self, run_config: RunConfig) -> List[str]:
        """Test files to execute for a run (see run_config.resolve_test_files)."""
        return resolve_test_files(run_config, self.config, self.repo_root, self.selector_for)

    def start_watching(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> FileWatcher:
        """Start rebuilding watched bundles on file changes.

        Args:
            loop: Event loop running the builders. Defaults to the running loop.
        """
        if self._watcher is not None and self._watcher.is_running():
            return self._watcher

        loop = loop or asyncio.get_running_loop()
        scheduler = BuildScheduler(loop, [self.component_builder, self.js_builder])
        watcher = FileWatcher(
            str(self.repo_root),
            user_ignore_patterns=set(self.config.watch_ignore_patterns),
        )
        watcher.register_change_callback(scheduler.on_change)
        watcher.start()
        self._watcher = watcher
        return watcher

    def shutdown(self) -> None:
        """Stop the file watcher, if any."""
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None
        logger.info("BuildOrchestratorService shut down")
