#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from dataclasses import dataclass, field
from typing import List, Optional

from mb_context import BundleContext
from mb_diagnostics import Diagnostic
from mb_graph import DependencyGraph


@dataclass
class BundleResult:
    """
    Outcome of one build for an entry module.

    Contains:
      - the dependency graph (None if graph construction failed)
      - the artifact text (None unless emission ran and succeeded)
      - the bundle context used for the build
      - diagnostics accumulated by the build
    """
    graph: Optional[DependencyGraph] = None
    artifact: Optional[str] = None
    context: BundleContext = field(default_factory=BundleContext.default)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    def has_errors(self) -> bool:
        return any(d.kind == "error" for d in self.diagnostics)

    def has_warnings(self) -> bool:
        return any(d.kind == "warning" for d in self.diagnostics)
