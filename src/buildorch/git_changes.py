# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Version control queries producing change sets.

GitRepository wraps the few git commands the selector needs. The baseline
is the merge base of HEAD with the main branch: the local main branch during
development, origin/<main> during CI builds, where HEAD is a merge commit.
"""

import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Union

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from .errors import GitError

logger = logging.getLogger(__name__)


class ChangeSet:
    """Ordered, deduplicated repository-relative paths changed since a baseline."""

    def __init__(self, files: Iterable[str]):
        seen = set()
        self._files: List[str] = []
        for file in files:
            file = file.strip()
            if not file or file in seen:
                continue
            seen.add(file)
            self._files.append(file)

    @classmethod
    def from_git(cls, repository: "GitRepository", ci: bool = False) -> "ChangeSet":
        """Files changed relative to the main branch baseline.

        Raises:
            GitError: If a git command fails.
        """
        baseline = repository.main_baseline(ci=ci)
        files = repository.diff_name_only(baseline)
        logger.debug(f"{len(files)} files changed since {baseline[:7]}")
        return cls(files)

    @property
    def files(self) -> List[str]:
        return list(self._files)

    def __iter__(self) -> Iterator[str]:
        return iter(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, file: object) -> bool:
        return file in self._files

    def __repr__(self) -> str:
        return f"ChangeSet({self._files!r})"


class GitRepository:
    """Thin adapter over GitPython for the diff queries of the selector."""

    def __init__(self, repo_root: Union[str, Path], main_branch: str = "main"):
        """Open the repository at repo_root.

        Raises:
            GitError: If repo_root is not a git repository.
        """
        try:
            self.repo = Repo(str(repo_root))
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise GitError(f"Not a git repository: {repo_root}") from e
        self.main_branch = main_branch

    def _run(self, *args: str) -> str:
        try:
            return str(self.repo.git.execute(["git", *args])).strip()
        except GitCommandError as e:
            raise GitError(f"git {' '.join(args)} failed: {e}") from e

    def merge_base_local_main(self) -> str:
        """Merge base of HEAD with the local main branch."""
        return self._run("merge-base", self.main_branch, "HEAD")

    def ci_main_baseline(self) -> str:
        """Main branch parent of the CI merge commit (not a moving origin/main)."""
        return self._run("merge-base", f"origin/{self.main_branch}", "HEAD")

    def main_baseline(self, ci: bool = False) -> str:
        """Baseline commit on the main branch for the running environment."""
        if ci:
            return self.ci_main_baseline()
        return self.merge_base_local_main()

    def diff_name_only(self, baseline: str) -> List[str]:
        """Files changed relative to baseline, one path per entry."""
        return _split_lines(self._run("diff", "--name-only", baseline))


def _split_lines(output: str) -> List[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]
