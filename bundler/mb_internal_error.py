#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

# mb_internal_error.py
from __future__ import annotations

from typing import Optional


class InternalBundlerError(RuntimeError):
    """
    ICE = bundler bug / violated build invariant.
    Not for user mistakes (those are BundleErrors reported as Diagnostics).
    """

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.filename = filename

    def format(self) -> str:
        message = self.message
        if not "[ICE-" in message:
            message = f"[ICE-9999] {message}"
        if self.filename:
            return f"{self.filename}: internal bundler error: {message}"
        return f"internal bundler error: {message}"
