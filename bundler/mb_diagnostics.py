#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import os
from dataclasses import dataclass
from typing import Optional

from mb_errors import BundleError


DIAGNOSTIC_CODE_FAMILIES = {
    "LEX": [
        "LEX-0010",
        "LEX-0020",
        "LEX-0030",
        "LEX-0040",
        "LEX-0050",
        "LEX-0070",
    ],
    "TRN": [
        "TRN-0010",
        "TRN-0020",
        "TRN-0030",
        "TRN-0040",
        "TRN-0050",
        "TRN-0051",
        "TRN-0052",
    ],
    "RES": [
        "RES-0010",
        "RES-0020",
        "RES-0030",
    ],
    "DRV": [
        "DRV-0010",
        "DRV-0020",
    ],
    # ICE codes are internal bundler errors raised as exceptions,
    # not user-facing diagnostics; they are excluded from this registry.
}


@dataclass
class Diagnostic:
    kind: str  # "error" or "warning"
    message: str
    filename: Optional[str] = None  # file path

    # Primary location
    line: Optional[int] = None
    column: Optional[int] = None

    # Return the one-line header; snippets will be printed at the call site
    def format(self) -> str:
        loc = ""
        if self.filename is not None:
            loc += f"{os.path.abspath(str(self.filename))}"
        if self.line is not None:
            loc += f":{self.line}"
            if self.column is not None:
                loc += f":{self.column}"
        if loc:
            loc += ": "
        return f"{loc}{self.kind}: {self.message}"


def diag_from_error(error: BundleError, kind: str = "error") -> Diagnostic:
    return Diagnostic(
        kind=kind,
        message=error.message,
        filename=error.filename,
        line=error.line,
        column=error.column,
    )
