# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Subprocess adapter for the external compile operation.

The toolchain itself is opaque: a command template is formatted with the
bundle's fields and run to completion. File watching is done by FileWatcher,
so the toolchain is never started in its own watch mode.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Sequence

from .errors import CompileError
from .models import Bundle, CompileOptions

logger = logging.getLogger(__name__)


class SubprocessCompiler:
    """Runs one toolchain process per build.

    The command template may reference {name}, {version} and {src_dir}.

    Usage:
        compiler = SubprocessCompiler(["amp", "build", "--extensions={name}"], repo_root)
        builder = BundleBuilder(registry, compiler.compile)
    """

    MINIFY_FLAG = "--minified"

    def __init__(self, command: Sequence[str], cwd: Path):
        if not command:
            raise ValueError("compile command must not be empty")
        self.command = list(command)
        self.cwd = Path(cwd)

    def build_command(self, bundle: Bundle, options: CompileOptions) -> List[str]:
        """Format the command line for one bundle."""
        fields = {
            "name": bundle.name,
            "version": bundle.version or "",
            "src_dir": bundle.src_dir,
        }
        args = [part.format(**fields) for part in self.command]
        if options.minify:
            args.append(self.MINIFY_FLAG)
        return args

    async def compile(self, bundle: Bundle, options: CompileOptions) -> None:
        """Compile a bundle.

        Raises:
            CompileError: If the process exits with a non-zero code.
            OSError: If the process cannot be started.
        """
        args = self.build_command(bundle, options)
        logger.info(f"Compiling {bundle.name}: {' '.join(args)}")
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=str(self.cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        try:
            stdout, _ = await process.communicate()
        except asyncio.CancelledError:
            logger.warning(f"Compile of {bundle.name} cancelled, killing pid {process.pid}")
            if process.returncode is None:
                process.kill()
            await process.wait()
            raise
        output = stdout.decode("utf-8", errors="replace") if stdout else ""
        if process.returncode != 0:
            raise CompileError(bundle.name, process.returncode or 1, output)
        logger.debug(f"Compiler output for {bundle.name}: {output.strip()}")
