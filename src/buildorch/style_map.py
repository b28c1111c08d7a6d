# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Mapping from stylesheets to the scripts that import their compiled form.

A component stylesheet is compiled to a generated script module (for
example src/components/bar/0.1/bar.css -> build/bar-0.1.css.js). The scripts
affected by a stylesheet change are the sibling scripts in the stylesheet's
directory that import that generated module.
"""

import logging
import posixpath
from typing import Dict, List, Mapping

from .dependency_graph import SCRIPT_EXTENSIONS, DependencyGraph
from .errors import ParseError

logger = logging.getLogger(__name__)


class StyleMap:
    """Resolves stylesheets to the scripts that import their generated output."""

    def __init__(self, graph: DependencyGraph, style_outputs: Mapping[str, str]):
        """Initialize style map.

        Args:
            graph: Dependency graph used to scan sibling scripts.
            style_outputs: Repository-relative css path -> generated js path.
        """
        self.graph = graph
        self.style_outputs = dict(style_outputs)
        self._scripts: Dict[str, List[str]] = {}

    def build(self) -> Dict[str, List[str]]:
        """Scan every known stylesheet and return the full mapping."""
        return {css_file: self.scripts_for(css_file) for css_file in self.style_outputs}

    def scripts_for(self, css_file: str) -> List[str]:
        """Sibling scripts importing the generated output of css_file.

        Unknown stylesheets map to no scripts. Siblings that cannot be parsed
        are logged and skipped.
        """
        css_file = posixpath.normpath(css_file)
        if css_file in self._scripts:
            return list(self._scripts[css_file])

        generated = self.style_outputs.get(css_file)
        scripts: List[str] = []
        if generated is not None:
            # imports may omit the trailing .js of the generated module
            stem = generated[: -len(".js")] if generated.endswith(".js") else generated
            css_dir = posixpath.dirname(css_file)
            directory = self.graph.repo_root / css_dir
            siblings = sorted(directory.iterdir()) if directory.is_dir() else []
            for sibling in siblings:
                if not sibling.is_file():
                    continue
                if sibling.suffix not in SCRIPT_EXTENSIONS:
                    continue
                script = posixpath.join(css_dir, sibling.name)
                try:
                    imports = self.graph.imports_of(script)
                except ParseError as e:
                    logger.warning(f"Skipping {script}: {e}")
                    continue
                if any(stem in imported for imported in imports):
                    scripts.append(script)

        self._scripts[css_file] = scripts
        return list(scripts)
