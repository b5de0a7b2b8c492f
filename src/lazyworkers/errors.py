"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error types raised by the dispatcher and its container collaborators.
"""

from __future__ import annotations

from collections.abc import Sequence


class LazyWorkersError(Exception):
    """Base exception for lazyworkers failures."""


class InvalidKeyError(LazyWorkersError, ValueError):
    """Raised when a request key is empty or not a string."""


class LaunchTimeoutError(LazyWorkersError, TimeoutError):
    """Raised when a worker launch exceeds the configured launch timeout."""

    def __init__(self, key: str, timeout_s: float) -> None:
        super().__init__(f"Launch for key '{key}' timed out after {timeout_s:.1f}s")
        self.key = key
        self.timeout_s = timeout_s


class ContainerCommandError(LazyWorkersError):
    """Raised when a container CLI command exits with a non-zero status."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str) -> None:
        detail = stderr.strip() or "no stderr output"
        super().__init__(
            f"Command {' '.join(argv)!r} failed with exit code {returncode}: {detail}"
        )
        self.argv = tuple(argv)
        self.returncode = returncode
        self.stderr = stderr
