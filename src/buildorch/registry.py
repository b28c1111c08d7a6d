# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""In-memory table of known build targets.

The registry is created once from the static bundle manifest and passed by
reference to the builder and the request routers. Lookups are pure; only
BundleBuilder mutates the build fields of the bundles it holds.
"""

import logging
import posixpath
from typing import Any, Dict, Iterable, Iterator, List

from .errors import ConfigurationError, NotFoundError
from .models import Bundle

logger = logging.getLogger(__name__)


class BundleRegistry:
    """Canonical bundle names and their minified aliases.

    Usage:
        registry = BundleRegistry.from_manifest(config.components)
        name = registry.resolve("amp-foo-0.1", minified=True)
        bundle = registry.get(name)
    """

    def __init__(self, bundles: Iterable[Bundle]):
        """Initialize registry.

        Args:
            bundles: Bundles to register.

        Raises:
            ConfigurationError: If two bundles share a name, or a minified
                alias is reused or collides with a canonical name.
        """
        self._bundles: Dict[str, Bundle] = {}
        self._minified: Dict[str, str] = {}

        for bundle in bundles:
            if bundle.name in self._bundles:
                raise ConfigurationError(f"Duplicate bundle name: {bundle.name}")
            self._bundles[bundle.name] = bundle

        for bundle in self._bundles.values():
            alias = bundle.minified_name
            if not alias or alias == bundle.name:
                continue
            if alias in self._bundles:
                raise ConfigurationError(
                    f"Minified name {alias} of {bundle.name} collides with a bundle name"
                )
            if alias in self._minified:
                raise ConfigurationError(
                    f"Minified name {alias} is shared by {self._minified[alias]} "
                    f"and {bundle.name}"
                )
            self._minified[alias] = bundle.name

        logger.debug(f"BundleRegistry initialized with {len(self._bundles)} bundles")

    @classmethod
    def from_manifest(
        cls, entries: Iterable[Dict[str, Any]], kind: str = "component"
    ) -> "BundleRegistry":
        """Create a registry from manifest entries.

        Args:
            entries: Mappings as loaded from the YAML manifest.
            kind: "component" or "js" (see Bundle.from_dict).

        Returns:
            New registry.

        Raises:
            ConfigurationError: If an entry is malformed or names collide.
        """
        bundles: List[Bundle] = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ConfigurationError(f"Manifest entry {index} must be a mapping")
            try:
                bundles.append(Bundle.from_dict(entry, kind=kind))
            except KeyError as e:
                raise ConfigurationError(
                    f"Manifest entry {index} is missing required key {e}"
                ) from e
        return cls(bundles)

    def resolve(self, requested_name: str, minified: bool) -> str:
        """Resolve a requested name to its canonical bundle name.

        Args:
            requested_name: Name captured from a request path.
            minified: Whether minified mode is enabled.

        Returns:
            Canonical bundle name.

        Raises:
            NotFoundError: If no bundle matches.
        """
        if requested_name in self._bundles:
            return requested_name
        if minified:
            canonical = self._minified.get(requested_name)
            if canonical is not None:
                return canonical
        raise NotFoundError(requested_name)

    def get(self, name: str) -> Bundle:
        """Get a bundle by canonical name.

        Raises:
            NotFoundError: If the name is not registered.
        """
        try:
            return self._bundles[name]
        except KeyError:
            raise NotFoundError(name) from None

    def names(self) -> List[str]:
        return list(self._bundles)

    def owners_of(self, path: str) -> List[str]:
        """Canonical names of the bundles whose source directory contains path.

        Args:
            path: Repository-relative POSIX path.
        """
        normalized = posixpath.normpath(path)
        return [
            bundle.name
            for bundle in self._bundles.values()
            if normalized == bundle.src_dir or normalized.startswith(bundle.src_dir + "/")
        ]

    def style_outputs(self, css_build_dir: str = "build") -> Dict[str, str]:
        """Map each component stylesheet to its generated script module.

        A component with CSS ships <src_dir>/<name>.css, compiled to
        <css_build_dir>/<name>-<version>.css.js.

        Returns:
            Dictionary of repository-relative css path -> generated js path.
        """
        outputs: Dict[str, str] = {}
        for bundle in self._bundles.values():
            if not bundle.has_css:
                continue
            css_path = f"{bundle.src_dir}/{bundle.name}.css"
            outputs[css_path] = f"{css_build_dir}/{bundle.name}-{bundle.version}.css.js"
        return outputs

    def __contains__(self, name: object) -> bool:
        return name in self._bundles

    def __iter__(self) -> Iterator[Bundle]:
        return iter(self._bundles.values())

    def __len__(self) -> int:
        return len(self._bundles)
