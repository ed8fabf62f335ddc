#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

"""
Build error taxonomy.

Every error here is fatal to the build that raised it: there is no retry and
no partial artifact. Bundler bugs are InternalBundlerError, not these.
"""

from pathlib import Path
from typing import List, Optional


class BundleError(Exception):
    """Base class for user-facing build failures."""

    def __init__(
            self,
            message: str,
            filename: Optional[str] = None,
            line: Optional[int] = None,
            column: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.filename = filename
        self.line = line
        self.column = column


class SourceReadError(BundleError):
    """A module file is missing or unreadable."""


class TransformError(BundleError):
    """Source text could not be tokenized or compiled."""


class ModuleResolutionError(BundleError):
    """A specifier could not be mapped to an existing file."""

    def __init__(
            self,
            message: str,
            specifier: str,
            importer_dir: Path,
            candidates: Optional[List[Path]] = None,
            filename: Optional[str] = None,
    ):
        super().__init__(message, filename=filename)
        self.specifier = specifier
        self.importer_dir = importer_dir
        self.candidates = list(candidates or [])
