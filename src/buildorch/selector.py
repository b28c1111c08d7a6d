# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Change-driven test selection.

Given the files changed since the main branch baseline, TestSelector computes
the test files that must run again:

1. Changed files that no longer exist are skipped
2. Changed test files are selected directly
3. Changed scripts become "changed sources"
4. Changed stylesheets contribute the sibling scripts that import their
   generated module (see StyleMap)
5. Every known test whose direct imports path-match a changed source is
   selected

Only direct imports are checked, and a match is substring containment of
the imported path in the changed source path (imports usually omit the file
extension). This is deliberately not a transitive closure.

Escape hatches fall back to the full suite: a large refactor (too many
changed files) and, outside local development, too many affected tests.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Set, Union

from .dependency_graph import SCRIPT_EXTENSIONS, DependencyGraph
from .errors import ParseError
from .git_changes import ChangeSet
from .models import SelectionOutcome, TestSelection
from .style_map import StyleMap

logger = logging.getLogger(__name__)

STYLE_EXTENSIONS = frozenset({".css"})

LARGE_REFACTOR_THRESHOLD = 50
TEST_FILE_COUNT_THRESHOLD = 20


def expand_patterns(repo_root: Path, patterns: Iterable[str]) -> List[str]:
    """Expand glob patterns to repository-relative POSIX file paths.

    Order follows the patterns, then sorted paths within each pattern;
    duplicates are dropped.
    """
    found: List[str] = []
    seen: Set[str] = set()
    for pattern in patterns:
        for path in sorted(repo_root.glob(pattern)):
            if not path.is_file():
                continue
            rel_path = path.relative_to(repo_root).as_posix()
            if rel_path not in seen:
                seen.add(rel_path)
                found.append(rel_path)
    return found


class TestSelector:
    """Computes the test files affected by a change set.

    The result is memoized: repeated calls on one selector return the same
    list without recomputation.

    Usage:
        selector = TestSelector(repo_root, change_set, graph, unit_test_paths, style_map)
        selection = selector.select()
        if selection.run_all:
            ...
    """

    __test__ = False

    def __init__(
        self,
        repo_root: Union[str, Path],
        change_set: ChangeSet,
        graph: DependencyGraph,
        test_patterns: Iterable[str],
        style_map: Optional[StyleMap] = None,
        large_refactor_threshold: int = LARGE_REFACTOR_THRESHOLD,
        test_file_count_threshold: int = TEST_FILE_COUNT_THRESHOLD,
        local_dev: bool = True,
    ):
        """Initialize selector.

        Args:
            repo_root: Repository root directory.
            change_set: Files changed since the baseline.
            graph: Dependency graph used to read direct imports.
            test_patterns: Glob patterns of known test files.
            style_map: Stylesheet to script mapping. If None, stylesheet
                changes affect no scripts.
            large_refactor_threshold: Changed-file count at which selection
                is abandoned.
            test_file_count_threshold: Maximum selected tests outside local
                development before the full suite runs instead.
            local_dev: False in continuous integration.
        """
        self.repo_root = Path(repo_root).resolve()
        self.change_set = change_set
        self.graph = graph
        self.test_patterns = list(test_patterns)
        self.style_map = style_map
        self.large_refactor_threshold = large_refactor_threshold
        self.test_file_count_threshold = test_file_count_threshold
        self.local_dev = local_dev

        self._known_tests: Optional[List[str]] = None
        self._tests: Optional[List[str]] = None
        self._selection: Optional[TestSelection] = None

    def known_tests(self) -> List[str]:
        """All test files matching the test patterns."""
        if self._known_tests is None:
            self._known_tests = expand_patterns(self.repo_root, self.test_patterns)
        return list(self._known_tests)

    def is_test_file(self, file_path: str) -> bool:
        return file_path in set(self.known_tests())

    def is_large_refactor(self) -> bool:
        return len(self.change_set) >= self.large_refactor_threshold

    def tests_to_run(self) -> List[str]:
        """Test files directly affected by the change set.

        Returns:
            Deduplicated test paths: changed tests first, then tests
            importing a changed source.
        """
        if self._tests is not None:
            return list(self._tests)

        tests: List[str] = []
        sources: List[str] = []

        for file_path in self.change_set:
            suffix = Path(file_path).suffix
            if not (self.repo_root / file_path).exists():
                logger.info(f"Skipping {file_path} because it was deleted")
            elif self.is_test_file(file_path):
                tests.append(file_path)
            elif suffix in SCRIPT_EXTENSIONS:
                sources.append(file_path)
            elif suffix in STYLE_EXTENSIONS:
                sources.extend(self._scripts_for_style(file_path))

        if sources:
            for test in self._tests_for(sources):
                if test not in tests:
                    tests.append(test)

        self._tests = tests
        return list(tests)

    def select(self) -> TestSelection:
        """Apply the escape hatches and return the selection to execute."""
        if self._selection is not None:
            return self._selection

        logger.info("Determining which unit tests to run...")
        if self.is_large_refactor():
            logger.info("Skipping tests on local changes because this is a large refactor.")
            selection = TestSelection(
                outcome=SelectionOutcome.RUN_ALL,
                reason=f"{len(self.change_set)} files changed",
            )
        else:
            tests = self.tests_to_run()
            if not tests:
                logger.info("No unit tests were directly affected by local changes.")
                selection = TestSelection(
                    outcome=SelectionOutcome.NONE_AFFECTED,
                    reason="no affected tests",
                )
            elif not self.local_dev and len(tests) > self.test_file_count_threshold:
                logger.info("Several tests were affected by local changes. Running all tests.")
                selection = TestSelection(
                    outcome=SelectionOutcome.RUN_ALL,
                    reason=f"{len(tests)} tests affected",
                )
            else:
                logger.info("Running the following unit tests:")
                for test in tests:
                    logger.info(f"  {test}")
                selection = TestSelection(
                    outcome=SelectionOutcome.SELECTED,
                    tests=tuple(tests),
                    reason=f"{len(tests)} tests affected",
                )

        self._selection = selection
        return selection

    def _scripts_for_style(self, css_file: str) -> List[str]:
        if self.style_map is None:
            return []
        return self.style_map.scripts_for(css_file)

    def _tests_for(self, sources: List[str]) -> List[str]:
        """Known tests with a direct import contained in a changed source path."""
        selected = []
        for test in self.known_tests():
            try:
                imports = self.graph.imports_of(test)
            except ParseError as e:
                logger.warning(f"Skipping {test}: {e}")
                continue
            if any(imported in source for imported in imports for source in sources):
                selected.append(test)
        return selected
