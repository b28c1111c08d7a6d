# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Test run configuration.

build_run_config() turns raw flags and environment into an immutable
RunConfig. The test variant is a closed set ("unit", "integration") and the
set of test files for a run is chosen by one strategy per variant.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from .config import Config
from .errors import ConfigurationError, NoMatchingFilesError
from .models import SelectionOutcome
from .selector import TestSelector, expand_patterns

logger = logging.getLogger(__name__)

UNIT = "unit"
INTEGRATION = "integration"
VARIANTS = (UNIT, INTEGRATION)

_TRUTHY = ("1", "true", "yes")


@dataclass(frozen=True)
class RunConfig:
    """Immutable settings of one test run."""

    variant: str = UNIT
    local_changes: bool = False
    files: Tuple[str, ...] = ()
    filelist: Optional[str] = None
    minified: bool = False
    esm: bool = False
    watch: bool = False
    ci: bool = False

    @property
    def single_run(self) -> bool:
        return not self.watch

    @property
    def local_dev(self) -> bool:
        return not self.ci


def is_ci_build(env: Mapping[str, str]) -> bool:
    """Whether the environment describes a continuous integration build."""
    return env.get("CI", "").strip().lower() in _TRUTHY


def build_run_config(
    flags: Mapping[str, Any],
    env: Mapping[str, str],
    variant: str = UNIT,
) -> RunConfig:
    """Build the run configuration from flags and environment.

    Args:
        flags: Parsed command line flags (local_changes, files, filelist,
            minified, esm, watch). Missing flags default to off.
        env: Environment variables.
        variant: "unit" or "integration".

    Returns:
        New RunConfig.

    Raises:
        ValueError: If the variant is unknown.
    """
    if variant not in VARIANTS:
        raise ValueError(f"Test type {variant} was not recognized")

    raw_files = flags.get("files") or ()
    if isinstance(raw_files, str):
        raw_files = raw_files.split(",")
    files = tuple(_to_posix(f.strip()) for f in raw_files if f and f.strip())

    return RunConfig(
        variant=variant,
        local_changes=bool(flags.get("local_changes")),
        files=files,
        filelist=flags.get("filelist") or None,
        minified=bool(flags.get("minified")),
        esm=bool(flags.get("esm")),
        watch=bool(flags.get("watch")),
        ci=is_ci_build(env),
    )


def files_from_globs(patterns: Tuple[str, ...], repo_root: Path) -> List[str]:
    """Expand --files globs.

    Raises:
        NoMatchingFilesError: If any glob matches zero files.
    """
    all_files: List[str] = []
    for pattern in patterns:
        files = expand_patterns(repo_root, [pattern])
        if not files:
            logger.error(f"ERROR: Argument {pattern} matched zero files.")
            raise NoMatchingFilesError(pattern)
        all_files.extend(files)
    return all_files


def files_from_file_list(filelist: Optional[str]) -> List[str]:
    """Entries of the comma-separated file named by --filelist.

    Raises:
        ConfigurationError: If the file cannot be read.
    """
    if not filelist:
        return []
    try:
        with open(filelist, encoding="utf-8") as f:
            content = f.read().strip()
    except OSError as e:
        raise ConfigurationError(f"Cannot read --filelist {filelist}: {e}") from e
    return [entry.strip() for entry in content.split(",") if entry.strip()]


SelectorFactory = Callable[[RunConfig], TestSelector]
_Strategy = Callable[[RunConfig, Config, Path, SelectorFactory], List[str]]


def resolve_test_files(
    run_config: RunConfig,
    config: Config,
    repo_root: Path,
    selector_factory: SelectorFactory,
) -> List[str]:
    """Test files to execute for a run.

    Args:
        run_config: Run settings.
        config: Orchestrator configuration (test patterns, thresholds).
        repo_root: Repository root.
        selector_factory: Creates the change-driven selector on demand.

    Returns:
        Repository-relative test file paths. Empty when no test is affected
        by local changes.
    """
    strategy = _STRATEGIES[run_config.variant]
    return strategy(run_config, config, repo_root, selector_factory)


def _explicit_files(run_config: RunConfig, repo_root: Path) -> Optional[List[str]]:
    if not run_config.files and not run_config.filelist:
        return None
    return files_from_globs(run_config.files, repo_root) + files_from_file_list(
        run_config.filelist
    )


def _unit_files(
    run_config: RunConfig,
    config: Config,
    repo_root: Path,
    selector_factory: SelectorFactory,
) -> List[str]:
    explicit = _explicit_files(run_config, repo_root)
    if explicit is not None:
        return explicit

    if run_config.local_changes:
        selection = selector_factory(run_config).select()
        if selection.outcome == SelectionOutcome.SELECTED:
            return list(selection.tests)
        if selection.outcome == SelectionOutcome.NONE_AFFECTED:
            return []

    return expand_patterns(repo_root, config.unit_test_paths)


def _integration_files(
    run_config: RunConfig,
    config: Config,
    repo_root: Path,
    selector_factory: SelectorFactory,
) -> List[str]:
    explicit = _explicit_files(run_config, repo_root)
    if explicit is not None:
        return explicit
    if run_config.local_changes:
        logger.info("--local_changes only applies to unit tests, running all integration tests")
    return expand_patterns(repo_root, config.integration_test_paths)


_STRATEGIES: Dict[str, _Strategy] = {
    UNIT: _unit_files,
    INTEGRATION: _integration_files,
}


def _to_posix(path: str) -> str:
    return path.replace("\\", "/")
