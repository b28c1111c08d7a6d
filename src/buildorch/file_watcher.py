# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""File system watcher driving rebuilds of watched bundles.

- Watchdog library for cross-platform file watching
- .gitignore and hardcoded ignore patterns (build outputs are never watched,
  so a compile cannot retrigger itself)
- Change callbacks receive repository-relative POSIX paths
- Callbacks run on the watchdog thread; BuildScheduler hops onto the event
  loop before touching builder state
"""

import asyncio
import fnmatch
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Iterable, List, Optional, Set

from watchdog.events import FileMovedEvent, FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .builder import BundleBuilder
from .dependency_graph import SCRIPT_EXTENSIONS

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

logger = logging.getLogger(__name__)

# Callback signature: (repository-relative path) -> None
ChangeCallback = Callable[[str], None]


class FileWatcher:
    """Watches a repository and reports changes to source files.

    Usage:
        watcher = FileWatcher(project_root="/path/to/repo")
        watcher.register_change_callback(scheduler.on_change)
        watcher.start()
        ...
        watcher.stop()
    """

    ALWAYS_IGNORED = {
        ".git",
        "node_modules",
        ".cache",
        "dist",
        "build",
        "coverage",
        "__pycache__",
        ".venv",
    }

    WATCHED_EXTENSIONS = frozenset(SCRIPT_EXTENSIONS | {".css"})

    def __init__(
        self,
        project_root: str,
        gitignore_path: Optional[str] = None,
        user_ignore_patterns: Optional[Set[str]] = None,
    ):
        """Initialize FileWatcher.

        Args:
            project_root: Root directory to watch.
            gitignore_path: Path to .gitignore file (defaults to {project_root}/.gitignore)
            user_ignore_patterns: Additional user-configured ignore patterns
        """
        self.project_root = Path(project_root).resolve()
        self.gitignore_path = (
            Path(gitignore_path) if gitignore_path else self.project_root / ".gitignore"
        )
        self.user_ignore_patterns = user_ignore_patterns or set()

        self._gitignore_patterns: Set[str] = self._load_gitignore()
        self._change_callbacks: List[ChangeCallback] = []

        self._observer: Optional["BaseObserver"] = None
        self._event_handler = _FileEventHandler(self)

        logger.info(f"FileWatcher initialized for {self.project_root}")

    def _load_gitignore(self) -> Set[str]:
        """Load .gitignore patterns, skipping blanks, comments and negations."""
        patterns: Set[str] = set()

        if not self.gitignore_path.exists():
            logger.debug(f"No .gitignore found at {self.gitignore_path}")
            return patterns

        try:
            with open(self.gitignore_path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line or line.startswith("#") or line.startswith("!"):
                        continue
                    patterns.add(line.rstrip("/"))
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to load .gitignore: {e}")

        logger.debug(f"Loaded {len(patterns)} patterns from .gitignore")
        return patterns

    def relative_path(self, file_path: str) -> Optional[str]:
        """Repository-relative POSIX path, or None outside the project root."""
        try:
            return Path(file_path).resolve().relative_to(self.project_root).as_posix()
        except ValueError:
            return None

    def should_ignore(self, file_path: str) -> bool:
        """Check if a file should be ignored.

        Args:
            file_path: Absolute file path

        Returns:
            True if the file is outside the project or matches an ignore pattern
        """
        rel_path = self.relative_path(file_path)
        if rel_path is None:
            return True
        parts = rel_path.split("/")

        if any(part in self.ALWAYS_IGNORED for part in parts):
            return True

        for pattern in self._gitignore_patterns | self.user_ignore_patterns:
            if fnmatch.fnmatch(rel_path, pattern.lstrip("/")):
                return True
            if any(fnmatch.fnmatch(part, pattern) for part in parts):
                return True

        return False

    def is_watched_file(self, file_path: str) -> bool:
        return Path(file_path).suffix in self.WATCHED_EXTENSIONS

    def register_change_callback(self, callback: ChangeCallback) -> None:
        """Register a callback invoked with the relative path of each changed file."""
        if callback not in self._change_callbacks:
            self._change_callbacks.append(callback)
            logger.debug(f"Registered change callback: {callback}")

    def unregister_change_callback(self, callback: ChangeCallback) -> None:
        if callback in self._change_callbacks:
            self._change_callbacks.remove(callback)

    def notify_change(self, file_path: str) -> None:
        """Filter a raw event path and notify callbacks.

        Args:
            file_path: Absolute path reported by watchdog.
        """
        if self.should_ignore(file_path) or not self.is_watched_file(file_path):
            return
        rel_path = self.relative_path(file_path)
        if rel_path is None:
            return

        for callback in self._change_callbacks:
            try:
                callback(rel_path)
            except Exception as e:
                # Remaining callbacks still run
                logger.error(f"Change callback failed for {rel_path}: {e}")

    def start(self) -> None:
        """Start watching file system.

        Raises:
            RuntimeError: If watcher is already running
        """
        if self._observer is not None and self._observer.is_alive():
            raise RuntimeError("FileWatcher is already running")

        self._observer = Observer()
        self._observer.schedule(  # type: ignore  # watchdog types vary by version
            self._event_handler, str(self.project_root), recursive=True
        )
        self._observer.start()  # type: ignore  # watchdog types vary by version

        logger.info(f"FileWatcher started, monitoring {self.project_root}")

    def stop(self) -> None:
        """Stop watching file system.

        Blocks until observer thread terminates (with timeout).
        """
        if self._observer is not None and self._observer.is_alive():
            self._observer.stop()  # type: ignore  # watchdog types vary by version
            self._observer.join(timeout=5.0)
            logger.info("FileWatcher stopped")

    def is_running(self) -> bool:
        return self._observer is not None and self._observer.is_alive()


class BuildScheduler:
    """Routes file changes to the builders owning the changed files.

    Change notifications may arrive on any thread; rebuilds are scheduled on
    the event loop with call_soon_threadsafe.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, builders: Iterable[BundleBuilder]):
        self.loop = loop
        self.builders = list(builders)

    def on_change(self, rel_path: str) -> None:
        for builder in self.builders:
            for name in builder.registry.owners_of(rel_path):
                logger.debug(f"{rel_path} changed, invalidating {name}")
                self.loop.call_soon_threadsafe(builder.on_file_change, name)


class _FileEventHandler(FileSystemEventHandler):
    """Internal event handler for watchdog.

    Delegates to FileWatcher for filtering and notification.
    """

    def __init__(self, watcher: FileWatcher):
        super().__init__()
        self.watcher = watcher

    def _handle_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self.watcher.notify_change(str(event.src_path))

    def on_created(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_modified(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_deleted(self, event: FileSystemEvent) -> None:
        self._handle_event(event)

    def on_moved(self, event: FileSystemEvent) -> None:
        """Handle file move/rename events.

        Treated as Delete (old path) + Create (new path).
        """
        if event.is_directory or not isinstance(event, FileMovedEvent):
            return
        self.watcher.notify_change(str(event.src_path))
        self.watcher.notify_change(str(event.dest_path))
