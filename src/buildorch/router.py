# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Lazy-build request routing.

A LazyBuildRouter sits in front of the static file layer: for a request path
that names a known bundle it waits for the bundle to be built, then lets the
request continue. Paths that do not match, or match an unknown bundle, pass
through untouched.

LazyBuildMiddleware adapts a list of routers to a plain ASGI application.
"""

import asyncio
import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Pattern, TypeVar, Union

from .builder import BundleBuilder
from .errors import BuildError, NotFoundError
from .registry import BundleRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

# '/dist/v0/<name>.mjs', also accepting the unminified '<name>.max.mjs'
ESM_EXTENSION_PATTERN = re.compile(r"/dist/v0/([^/]*?)(?:\.max)?\.mjs")
# '/dist/v0/<name>.js'
MINIFIED_EXTENSION_PATTERN = re.compile(r"/dist/v0/([^/]*)\.js")
# '/dist/v0/<name>.max.js'
UNMINIFIED_EXTENSION_PATTERN = re.compile(r"/dist/v0/([^/]*)\.max\.js")

ESM_JS_PATTERN = re.compile(r"/.*/([^/]*\.mjs)")
JS_PATTERN = re.compile(r"/.*/([^/]*\.js)")


def extension_matcher(minified: bool, esm: bool) -> Pattern[str]:
    """Pick the extension path matcher for the serving mode."""
    if esm:
        return ESM_EXTENSION_PATTERN
    if minified:
        return MINIFIED_EXTENSION_PATTERN
    return UNMINIFIED_EXTENSION_PATTERN


def js_matcher(esm: bool) -> Pattern[str]:
    """Matcher for non-extension JS bundles; the captured name keeps its extension."""
    return ESM_JS_PATTERN if esm else JS_PATTERN


class LazyBuildRouter:
    """Builds the bundle named by a request path before the request continues."""

    def __init__(
        self,
        registry: BundleRegistry,
        builder: BundleBuilder,
        matcher: Union[str, Pattern[str]],
        minified: bool = False,
    ):
        """Initialize router.

        Args:
            registry: Registry used to resolve requested names.
            builder: Builder that owns the registry's bundles.
            matcher: Regular expression with exactly one capturing group.
            minified: Whether minified names may be requested.

        Raises:
            ValueError: If the matcher does not have exactly one group.
        """
        pattern = re.compile(matcher) if isinstance(matcher, str) else matcher
        if pattern.groups != 1:
            raise ValueError(
                f"Matcher must have exactly one capturing group, got {pattern.groups}"
            )
        self.registry = registry
        self.builder = builder
        self.matcher = pattern
        self.minified = minified

    def match(self, path: str) -> Optional[str]:
        """Extract the requested bundle name from a path, if any."""
        match = self.matcher.search(path)
        if match is None:
            return None
        return match.group(1)

    async def maybe_build(self, path: str) -> Optional[str]:
        """Build the bundle named by path, if there is one.

        Returns:
            Canonical name of the bundle that was built, or None when the path
            is passed through.

        Raises:
            BuildError: If the build failed.
        """
        requested = self.match(path)
        if requested is None:
            return None
        try:
            name = self.registry.resolve(requested, self.minified)
        except NotFoundError:
            logger.debug(f"No bundle named {requested}, passing {path} through")
            return None
        # A cancelled requester leaves the shared build running for the others
        await asyncio.shield(self.builder.ensure_built(name))
        return name

    async def dispatch(self, path: str, call_next: Callable[[str], Awaitable[T]]) -> T:
        """Build if needed, then continue dispatching the request."""
        await self.maybe_build(path)
        return await call_next(path)


ASGIApp = Callable[[Dict[str, Any], Callable[..., Any], Callable[..., Any]], Awaitable[None]]


class LazyBuildMiddleware:
    """ASGI middleware running lazy-build routers ahead of the wrapped app."""

    def __init__(self, app: ASGIApp, routers: List[LazyBuildRouter]):
        self.app = app
        self.routers = routers

    async def __call__(
        self,
        scope: Dict[str, Any],
        receive: Callable[..., Any],
        send: Callable[..., Any],
    ) -> None:
        if scope.get("type") == "http":
            path = scope.get("path", "")
            try:
                for router in self.routers:
                    await router.maybe_build(path)
            except BuildError as e:
                await self._send_error(send, e)
                return
        await self.app(scope, receive, send)

    @staticmethod
    async def _send_error(send: Callable[..., Any], error: BuildError) -> None:
        body = str(error).encode("utf-8")
        await send(
            {
                "type": "http.response.start",
                "status": 500,
                "headers": [
                    (b"content-type", b"text/plain; charset=utf-8"),
                    (b"content-length", str(len(body)).encode("ascii")),
                ],
            }
        )
        await send({"type": "http.response.body", "body": body})
