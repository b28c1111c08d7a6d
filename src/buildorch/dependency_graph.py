# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Static import analysis for JavaScript and TypeScript sources.

This module computes, for one file at a time, the repository-relative paths
of everything it imports:
- Only language-level import declarations are considered; dynamic import()
  and require() calls are ignored
- Import specifiers are rewritten through the path alias table first, and
  otherwise resolved against the importing file's directory
- Edges are recomputed on every query; there is no persisted graph

Parsing uses the tree-sitter JavaScript and TypeScript grammars.
"""

import json
import logging
import posixpath
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

import tree_sitter_javascript
import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from .errors import ConfigurationError, ParseError

logger = logging.getLogger(__name__)

SCRIPT_EXTENSIONS = frozenset({".js", ".mjs", ".cjs", ".jsx", ".ts", ".tsx"})

_GRAMMARS = {
    "javascript": tree_sitter_javascript.language,
    "typescript": tree_sitter_typescript.language_typescript,
    "tsx": tree_sitter_typescript.language_tsx,
}

_GRAMMAR_BY_EXTENSION = {
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
}


class AliasTable:
    """Ordered path alias rules (alias prefix -> real prefix).

    Wildcards are dropped during prefix matching, so "#core/*" -> "src/core/*"
    rewrites "#core/foo" to "src/core/foo". The longest matching alias prefix
    wins; ties go to the rule declared first.
    """

    def __init__(self, entries: Iterable[Tuple[str, str]]):
        self.entries: List[Tuple[str, str]] = [
            (alias.replace("*", ""), target.replace("*", "")) for alias, target in entries
        ]

    @classmethod
    def from_mapping(cls, paths: Mapping[str, Union[str, List[str]]]) -> "AliasTable":
        """Create a table from a tsconfig-style "paths" mapping.

        Only the first target of each alias is used.
        """
        entries = []
        for alias, targets in paths.items():
            if isinstance(targets, str):
                entries.append((alias, targets))
            elif targets:
                entries.append((alias, targets[0]))
        return cls(entries)

    @classmethod
    def from_tsconfig(cls, tsconfig_path: Path) -> "AliasTable":
        """Load compilerOptions.paths from a tsconfig file.

        Raises:
            ConfigurationError: If the file is missing, unreadable, or has no
                compilerOptions.paths mapping.
        """
        try:
            with open(tsconfig_path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Alias configuration not found: {tsconfig_path}") from None
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Could not read {tsconfig_path}: {e}") from e

        paths = data.get("compilerOptions", {}).get("paths") if isinstance(data, dict) else None
        if not isinstance(paths, dict):
            raise ConfigurationError(f"{tsconfig_path} has no compilerOptions.paths mapping")
        return cls.from_mapping(paths)

    def resolve(self, specifier: str) -> Optional[str]:
        """Rewrite an import specifier through the alias table.

        Returns:
            Rewritten path, or None if no alias applies.
        """
        best: Optional[Tuple[str, str]] = None
        for alias, target in self.entries:
            if not specifier.startswith(alias):
                continue
            if best is None or len(alias) > len(best[0]):
                best = (alias, target)
        if best is None:
            return None
        alias, target = best
        rewritten = target + specifier[len(alias) :]
        if rewritten.startswith("./"):
            rewritten = rewritten[2:]
        return rewritten

    def __len__(self) -> int:
        return len(self.entries)


class DependencyGraph:
    """Computes the direct imports of individual files.

    Usage:
        graph = DependencyGraph(repo_root, AliasTable.from_tsconfig(tsconfig))
        imports = graph.imports_of("src/components/foo/0.1/foo.js")
    """

    def __init__(self, repo_root: Union[str, Path], aliases: AliasTable):
        self.repo_root = Path(repo_root).resolve()
        self.aliases = aliases
        self._parsers: Dict[str, Parser] = {}

    def imports_of(self, file_path: str) -> Set[str]:
        """Resolved, repository-relative paths statically imported by a file.

        Args:
            file_path: Repository-relative or absolute path of the file.

        Returns:
            Set of POSIX paths relative to the repository root. Empty if the
            file has no imports.

        Raises:
            ParseError: If the file cannot be read or parsed.
        """
        rel_path = self.relative_path(file_path)
        return {self.resolve_specifier(rel_path, spec) for spec in self.specifiers_of(rel_path)}

    def specifiers_of(self, file_path: str) -> List[str]:
        """Raw import specifiers of a file, in source order.

        Raises:
            ParseError: If the file cannot be read or parsed.
        """
        rel_path = self.relative_path(file_path)
        parser = self._parser_for(rel_path)
        try:
            source = (self.repo_root / rel_path).read_bytes()
        except OSError as e:
            raise ParseError(rel_path, str(e)) from e

        tree = parser.parse(source)
        if tree.root_node.has_error:
            raise ParseError(rel_path, "syntax error")

        specifiers: List[str] = []
        for node in tree.root_node.children:
            if node.type != "import_statement":
                continue
            source_node = node.child_by_field_name("source")
            if source_node is None:
                continue
            specifiers.append(_string_value(source_node))
        return specifiers

    def resolve_specifier(self, importer: str, specifier: str) -> str:
        """Resolve one import specifier of importer to a repository-relative path."""
        aliased = self.aliases.resolve(specifier)
        if aliased is not None:
            return posixpath.normpath(aliased)
        return posixpath.normpath(posixpath.join(posixpath.dirname(importer), specifier))

    def relative_path(self, file_path: str) -> str:
        """Normalize a path to POSIX form relative to the repository root."""
        path = Path(file_path)
        if path.is_absolute():
            try:
                path = path.resolve().relative_to(self.repo_root)
            except ValueError:
                return path.as_posix()
        return posixpath.normpath(path.as_posix())

    def _parser_for(self, rel_path: str) -> Parser:
        grammar = _GRAMMAR_BY_EXTENSION.get(posixpath.splitext(rel_path)[1])
        if grammar is None:
            raise ParseError(rel_path, "not a script file")
        parser = self._parsers.get(grammar)
        if parser is None:
            parser = Parser(Language(_GRAMMARS[grammar]()))
            self._parsers[grammar] = parser
        return parser


def _string_value(node: Node) -> str:
    """Text of a string literal node without its quotes."""
    text = (node.text or b"").decode("utf-8", errors="replace")
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"`":
        return text[1:-1]
    return text
