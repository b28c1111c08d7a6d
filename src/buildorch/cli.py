# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Command line entry point.

Commands:
    unit / integration   Print the test files to run
    build PATH...        Lazily build the bundles served at the given paths
    serve                Run the MCP server
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from .config import Config
from .errors import BuildError, BuildOrchestratorError, ConfigurationError
from .logging_setup import set_logger_levels, setup_logging
from .mcp_server import BuildOrchestratorMCPServer
from .run_config import INTEGRATION, UNIT, build_run_config
from .service import BuildOrchestratorService

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="buildorch",
        description="On-demand bundle builds and change-driven test selection",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to .buildorch.yml")
    parser.add_argument(
        "--repo-root", type=Path, default=Path.cwd(), help="Repository root (default: cwd)"
    )
    parser.add_argument("--log-dir", type=Path, default=None, help="Directory for JSON logs")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    mode = argparse.ArgumentParser(add_help=False)
    mode.add_argument("--minified", action="store_true", help="Use minified bundles")
    mode.add_argument("--esm", action="store_true", help="Use ES module bundles")
    mode.add_argument("--watch", action="store_true", help="Rebuild or rerun on file changes")

    subparsers = parser.add_subparsers(dest="command", required=True)

    for variant in (UNIT, INTEGRATION):
        tests = subparsers.add_parser(
            variant, parents=[mode], help=f"Print the {variant} test files to run"
        )
        tests.add_argument(
            "--local_changes",
            action="store_true",
            help="Run tests directly affected by the files changed in the local branch",
        )
        tests.add_argument("--files", default=None, help="Comma-separated test file globs")
        tests.add_argument(
            "--filelist", default=None, help="File holding a comma-separated list of test files"
        )

    build = subparsers.add_parser("build", parents=[mode], help="Build bundles for request paths")
    build.add_argument("paths", nargs="+", help="Request paths, e.g. /dist/v0/amp-foo.max.js")

    serve = subparsers.add_parser("serve", parents=[mode], help="Run the MCP server")
    serve.add_argument(
        "--transport",
        choices=["stdio", "streamable-http", "sse"],
        default="stdio",
        help="Transport type for MCP server. Default: stdio",
    )

    return parser.parse_args(argv)


def _run_tests_command(args: argparse.Namespace, service: BuildOrchestratorService) -> int:
    run_config = build_run_config(vars(args), os.environ, variant=args.command)
    for test_file in service.test_files(run_config):
        print(test_file)
    return 0


async def _build_paths(service: BuildOrchestratorService, paths: List[str]) -> int:
    exit_code = 0
    for path in paths:
        try:
            name = await service.build_path(path)
        except BuildError as e:
            logger.error(f"ERROR: {e}")
            exit_code = 1
            continue
        if name is None:
            logger.info(f"No bundle is served at {path}")
    return exit_code


def _serve(args: argparse.Namespace, service: BuildOrchestratorService) -> int:
    server = BuildOrchestratorMCPServer(service, watch=args.watch)
    server.run(transport=args.transport)
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    args = parse_args(argv)
    setup_logging(
        log_dir=args.log_dir,
        log_level=logging.DEBUG if args.verbose else logging.INFO,
    )

    try:
        config = Config(config_path=args.config or args.repo_root / ".buildorch.yml")
        set_logger_levels(config.log_levels)
        service = BuildOrchestratorService(
            config,
            args.repo_root,
            minified=args.minified,
            esm=args.esm,
        )
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    try:
        if args.command in (UNIT, INTEGRATION):
            return _run_tests_command(args, service)
        if args.command == "build":
            return asyncio.run(_build_paths(service, args.paths))
        return _serve(args, service)
    except BuildOrchestratorError as e:
        logger.error(f"ERROR: {e}")
        return 1
    finally:
        service.shutdown()


if __name__ == "__main__":
    sys.exit(main())
