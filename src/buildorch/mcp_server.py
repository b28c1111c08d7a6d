# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""MCP Protocol Layer for the build orchestrator.

This module contains ZERO business logic. All builds and test selection are
delegated to BuildOrchestratorService.
"""

import asyncio
import logging
from typing import Any, Dict

from mcp.server.fastmcp import Context, FastMCP
from mcp.server.session import ServerSession

from .errors import BuildError, GitError
from .run_config import RunConfig
from .service import BuildOrchestratorService

logger = logging.getLogger(__name__)

SERVER_NAME = "buildorch"


class BuildOrchestratorMCPServer:
    """MCP Protocol Layer exposing lazy builds and test selection as tools.

    Responsibilities:
    - Initialize the MCP server and register tools
    - Translate tool invocations to service calls
    - Format service responses as tool results
    """

    def __init__(self, service: BuildOrchestratorService, watch: bool = False):
        """Initialize MCP server.

        Args:
            service: Service layer instance.
            watch: Rebuild watched bundles on file changes once the first
                build was requested.
        """
        self.service = service
        self.watch = watch
        self.mcp = FastMCP(name=SERVER_NAME)
        # Selections share the dependency graph parsers; run one at a time
        self._selection_lock = asyncio.Lock()
        self._register_tools()
        logger.info("BuildOrchestratorMCPServer initialized")

    def _register_tools(self) -> None:
        """Register MCP tools with the server.

        Registers:
        - build_bundle: Lazily build the bundle named by a request path
        - bundle_status: Build state of every bundle
        - select_tests: Unit tests affected by local changes
        """

        @self.mcp.tool()
        async def build_bundle(
            path: str,
            ctx: Context[ServerSession, None],
        ) -> Dict[str, Any]:
            """Build the bundle served at a path such as /dist/v0/amp-foo.max.js.

            Args:
                path: Request path of the artifact
                ctx: MCP context for logging and progress

            Returns:
                Dictionary with:
                - path: The requested path
                - bundle: Canonical name of the built bundle, or None on pass-through
                - built: Whether a bundle was built
            """
            await ctx.info(f"Building {path}")
            if self.watch:
                self.service.start_watching()
            try:
                name = await self.service.build_path(path)
            except BuildError as e:
                await ctx.error(str(e))
                raise
            return {"path": path, "bundle": name, "built": name is not None}

        @self.mcp.tool()
        async def bundle_status(ctx: Context[ServerSession, None]) -> Dict[str, Any]:
            """Report the build state of every known bundle."""
            await ctx.info("Reporting bundle status")
            return self.service.bundle_status()

        @self.mcp.tool()
        async def select_tests(
            ctx: Context[ServerSession, None],
            ci: bool = False,
        ) -> Dict[str, Any]:
            """Select the unit tests affected by the changes on the local branch.

            Args:
                ci: Apply the continuous integration escape hatches
                ctx: MCP context for logging and progress

            Returns:
                Dictionary with outcome ("selected", "none_affected", "run_all"),
                tests and reason.
            """
            await ctx.info("Selecting tests for local changes")
            try:
                async with self._selection_lock:
                    selection = await asyncio.to_thread(
                        self.service.select_tests, RunConfig(local_changes=True, ci=ci)
                    )
            except GitError as e:
                await ctx.error(str(e))
                raise
            return {
                "outcome": selection.outcome,
                "tests": list(selection.tests),
                "reason": selection.reason,
            }

        logger.info("MCP tools registered: build_bundle, bundle_status, select_tests")

    def run(self, transport: str = "stdio") -> None:
        """Run the MCP server.

        Args:
            transport: "stdio", "streamable-http" or "sse".
        """
        logger.info(f"Starting MCP server with {transport} transport")
        try:
            self.mcp.run(transport=transport)  # type: ignore[arg-type]
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        logger.info("Shutting down MCP server")
        self.service.shutdown()
