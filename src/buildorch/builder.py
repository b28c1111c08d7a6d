# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Single-flight bundle builder.

BundleBuilder makes sure a bundle's artifact exists and is current, with at
most one build in flight per bundle:

- Requests arriving while a bundle is BUILDING join the in-flight future
- Once a bundle is watched and BUILT, requests return immediately; file
  change events own invalidation from then on
- A failed compile rejects the shared future with BuildError and resets the
  bundle to UNBUILT, so the next trigger starts a fresh build

Concurrency:
- All state transitions happen synchronously on the event loop thread, before
  the first suspension point of the build task. No locking is needed.
- A file change accepted while a build is in flight marks the build stale;
  the build compiles again before resolving its future.
"""

import asyncio
import functools
import logging
from typing import Awaitable, Callable, Dict, Optional

from .errors import BuildError
from .models import Bundle, BuildState, CompileOptions
from .registry import BundleRegistry

logger = logging.getLogger(__name__)

# External compile operation: (bundle, options) -> awaitable, raises on failure
CompileFunction = Callable[[Bundle, CompileOptions], Awaitable[None]]


class BundleBuilder:
    """Dispatches builds for the bundles of one registry.

    Usage:
        builder = BundleBuilder(registry, compiler.compile, minify=False)
        await asyncio.shield(builder.ensure_built("amp-foo"))
    """

    def __init__(
        self,
        registry: BundleRegistry,
        compile_fn: CompileFunction,
        minify: bool = False,
    ):
        """Initialize builder.

        Args:
            registry: Registry owning the bundles this builder mutates.
            compile_fn: External compile operation.
            minify: Whether bundles are compiled in minified mode.
        """
        self.registry = registry
        self._compile = compile_fn
        self._options = CompileOptions(watch=True, minify=minify, local_dev=True)
        self._compile_counts: Dict[str, int] = {}

    @property
    def options(self) -> CompileOptions:
        return self._options

    def ensure_built(self, name: str) -> "asyncio.Future[None]":
        """Ensure the named bundle is built, starting a build if required.

        Must be called from a running event loop. The returned future is
        shared by every joined caller, so callers that may be cancelled await
        it through asyncio.shield.

        Args:
            name: Canonical bundle name.

        Returns:
            Future resolved when the bundle is built. Rejects with BuildError
            if the compile operation fails.

        Raises:
            NotFoundError: If the bundle is not registered.
        """
        bundle = self.registry.get(name)

        if bundle.state == BuildState.BUILDING and bundle.pending is not None:
            logger.debug(f"Joining in-flight build of {name}")
            return bundle.pending

        if bundle.watched and bundle.state == BuildState.BUILT:
            done: "asyncio.Future[None]" = asyncio.get_running_loop().create_future()
            done.set_result(None)
            return done

        return self._start_build(bundle)

    def on_file_change(self, name: str) -> Optional["asyncio.Future[None]"]:
        """Rebuild a watched bundle after one of its source files changed.

        Must be called from the event loop thread.

        Args:
            name: Canonical bundle name.

        Returns:
            The build future, or None if the bundle is not watched yet.
        """
        bundle = self.registry.get(name)
        if not bundle.watched:
            return None

        if bundle.state == BuildState.BUILDING and bundle.pending is not None:
            bundle.stale = True
            logger.debug(f"Change to {name} during build, rebuild queued")
            return bundle.pending

        logger.info(f"Rebuilding {name} after file change")
        return self._start_build(bundle)

    def compile_count(self, name: str) -> int:
        """Number of compile invocations made for a bundle."""
        return self._compile_counts.get(name, 0)

    def _start_build(self, bundle: Bundle) -> "asyncio.Future[None]":
        loop = asyncio.get_running_loop()
        bundle.state = BuildState.BUILDING
        bundle.watched = True
        bundle.stale = False
        task = loop.create_task(self._build(bundle))
        bundle.pending = task
        task.add_done_callback(functools.partial(self._report, bundle.name))
        return task

    async def _build(self, bundle: Bundle) -> None:
        try:
            while True:
                bundle.stale = False
                self._compile_counts[bundle.name] = self._compile_counts.get(bundle.name, 0) + 1
                await self._compile(bundle, self._options)
                if not bundle.stale:
                    break
                logger.debug(f"Sources of {bundle.name} changed during build, compiling again")
        except asyncio.CancelledError:
            self._reset(bundle)
            raise
        except Exception as e:
            self._reset(bundle)
            raise BuildError(bundle.name, e) from e

        bundle.state = BuildState.BUILT
        bundle.pending = None

    @staticmethod
    def _reset(bundle: Bundle) -> None:
        bundle.state = BuildState.UNBUILT
        bundle.pending = None
        bundle.stale = False

    @staticmethod
    def _report(name: str, task: "asyncio.Future[None]") -> None:
        """Log the outcome of a finished build task."""
        if task.cancelled():
            logger.warning(f"Build of {name} was cancelled")
            return
        error = task.exception()
        if error is not None:
            logger.error(f"ERROR: {error}")
        else:
            logger.info(f"Built {name}")
