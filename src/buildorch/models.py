# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Core data models for the build orchestrator.

- BuildState: Lifecycle states of a bundle build
- Bundle: One buildable artifact and its mutable build state
- CompileOptions: Options handed to the external compile operation
- SelectionOutcome: Result kinds of a test selection
- TestSelection: The set of test files chosen for one invocation
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class BuildState:
    """Build states of a bundle.

    Design: Using class constants (not Enum) for JSON-compatible strings.
    """

    UNBUILT = "unbuilt"
    BUILDING = "building"
    BUILT = "built"


class SelectionOutcome:
    """Outcomes of a change-driven test selection."""

    SELECTED = "selected"  # run exactly the selected tests
    NONE_AFFECTED = "none_affected"  # no test is affected by the changes
    RUN_ALL = "run_all"  # fall back to the full suite


@dataclass
class Bundle:
    """A named, independently buildable output artifact.

    Static fields come from the bundle manifest. The build fields
    (state, watched, pending, stale) are owned by BundleBuilder and only
    mutated between suspension points of the event loop.
    """

    name: str
    src_dir: str
    version: Optional[str] = None
    minified_name: Optional[str] = None
    has_css: bool = False

    state: str = BuildState.UNBUILT
    watched: bool = False
    pending: Optional["asyncio.Future[None]"] = field(default=None, repr=False, compare=False)
    stale: bool = False  # a file change arrived while building

    @classmethod
    def from_dict(cls, data: Dict[str, Any], kind: str = "component") -> "Bundle":
        """Build a bundle from one manifest entry.

        Components need a version and default their source directory to
        src/components/<name>/<version>; plain JS bundles must name theirs.

        Args:
            data: Manifest entry with at least a "name" key.
            kind: "component" or "js".

        Returns:
            New Bundle in the UNBUILT state.

        Raises:
            KeyError: If a required key is missing.
        """
        name = data["name"]
        version = data.get("version")
        if kind == "component" and version is None:
            raise KeyError("version")
        src_dir = data.get("src_dir")
        if src_dir is None:
            if kind != "component":
                raise KeyError("src_dir")
            src_dir = f"src/components/{name}/{version}"
        return cls(
            name=name,
            src_dir=str(src_dir).rstrip("/"),
            version=str(version) if version is not None else None,
            minified_name=data.get("minified_name"),
            has_css=bool(data.get("has_css", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize static fields and the current state."""
        return {
            "name": self.name,
            "src_dir": self.src_dir,
            "version": self.version,
            "minified_name": self.minified_name,
            "has_css": self.has_css,
            "state": self.state,
            "watched": self.watched,
        }


@dataclass(frozen=True)
class CompileOptions:
    """Options passed to the external compile operation."""

    watch: bool = True
    minify: bool = False
    local_dev: bool = True


@dataclass(frozen=True)
class TestSelection:
    """Test files to execute for one invocation of the selector."""

    __test__ = False

    outcome: str
    tests: Tuple[str, ...] = ()
    reason: str = ""

    @property
    def run_all(self) -> bool:
        return self.outcome == SelectionOutcome.RUN_ALL
