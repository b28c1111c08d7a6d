# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Error taxonomy for the build orchestrator.

Recoverable errors (NotFoundError, BuildError, ParseError) are handled at the
registry/selector boundary. ConfigurationError is the only error expected to
terminate the process.
"""

from typing import Optional


class BuildOrchestratorError(Exception):
    """Base class for all build orchestrator errors."""


class ConfigurationError(BuildOrchestratorError):
    """Raised when configuration is missing or invalid at startup."""


class NotFoundError(BuildOrchestratorError):
    """Raised when a requested bundle name cannot be resolved."""

    def __init__(self, name: str):
        super().__init__(f"Unknown bundle: {name}")
        self.name = name


class BuildError(BuildOrchestratorError):
    """Raised to every caller awaiting a build whose compile step failed."""

    def __init__(self, name: str, cause: BaseException):
        super().__init__(f"Could not compile {name}: {cause}")
        self.name = name
        self.cause = cause


class CompileError(BuildOrchestratorError):
    """Raised by the subprocess compiler when the toolchain exits non-zero."""

    def __init__(self, name: str, returncode: int, output: str = ""):
        message = f"Compiler exited with code {returncode} for {name}"
        if output:
            message = f"{message}: {output.strip()}"
        super().__init__(message)
        self.name = name
        self.returncode = returncode
        self.output = output


class ParseError(BuildOrchestratorError):
    """Raised when a file cannot be scanned for import statements."""

    def __init__(self, path: str, reason: Optional[str] = None):
        message = f"Could not parse imports of {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.path = path
        self.reason = reason


class GitError(BuildOrchestratorError):
    """Raised when a git query fails."""


class NoMatchingFilesError(BuildOrchestratorError):
    """Raised when a --files glob matches zero files."""

    def __init__(self, pattern: str):
        super().__init__(f"Argument {pattern} matched zero files.")
        self.pattern = pattern
