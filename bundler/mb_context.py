"""
Bundle context for cross-cutting bundler options.

This module defines the BundleContext dataclass which holds options that
affect multiple stages of a build (resolution, graph construction, emission,
diagnostics).
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional, Tuple


DEFAULT_EXTENSIONS: Tuple[str, ...] = (".js", ".mjs", ".cjs")


class LogLevel(IntEnum):
    """Hierarchical logging levels for the bundler."""
    SILENT = 0      # No logging
    ERROR = 3       # Error messages only
    WARNING = 6     # Warning messages (default)
    INFO = 10       # General progress messages (-v)
    DEBUG = 30      # Detailed diagnostic information (-vvv)


@dataclass
class BundleContext:
    """
    Holds cross-cutting bundler options that affect multiple build stages.

    Attributes:
        resolve_extensions:     Suffixes probed, in order, when a specifier does not
                                name an existing file as written.
        index_name:             Stem of the file probed inside a directory specifier.
        jobs:                   Number of worker threads used to read and transform
                                modules (1 = sequential).
        emit_path_comments:     If True, precede each module entry in the artifact
                                with a `// <id>: <path>` comment.
        banner:                 Optional text emitted as a comment at the top of the artifact.
        log_rich_format:        If True, emit logs in rich format: may include log level, timestamps, etc.
        log_level:              Current logging level.
    """
    resolve_extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    index_name: str = "index"
    jobs: int = 1
    emit_path_comments: bool = True
    banner: Optional[str] = None
    log_rich_format: bool = False
    log_level: LogLevel = LogLevel.WARNING

    @staticmethod
    def default() -> 'BundleContext':
        """Create a BundleContext with default settings."""
        return BundleContext(log_level=LogLevel.WARNING)
