"""
Bundle Backend

Orchestrates artifact generation from a completed dependency graph.

The backend handles the "WHAT" and "WHEN" of emission (which records, in
which order, with which annotations), while delegating the "HOW" to the
JavaScript emitter. It performs no resolution: the graph it receives is
already closed.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import os
from dataclasses import dataclass, field
from pathlib import Path

from mb_context import BundleContext
from mb_graph import DependencyGraph
from mb_js_emitter import JSEmitter
from mb_logger import log_debug, log_stage
from mb_module import ModuleRecord


@dataclass
class Backend:
    """
    Serializes a DependencyGraph into artifact text.

    Records are emitted in ascending id order so that an unchanged file set
    always yields byte-identical output.
    """

    graph: DependencyGraph
    context: BundleContext = field(default_factory=BundleContext.default)

    # Target-specific emitter (handles all code emission)
    emitter: JSEmitter = field(default_factory=JSEmitter)

    def generate(self) -> str:
        """
        Main entry point: generate the complete artifact for the graph.

        Raises InternalBundlerError if the graph is not closed.
        """
        log_stage(self.context, "Generating bundle")
        self.graph.check_closed()

        if self.context.banner:
            self.emitter.emit_banner(self.context.banner)

        log_debug(self.context, f"Emitting runtime loader (entry module {self.graph.entry_id})")
        self.emitter.emit_runtime(self.graph.entry_id)

        records = list(self.graph.records())
        for index, record in enumerate(records):
            log_debug(self.context, f"Emitting module {record.id} ({record.canonical_path})")
            self.emitter.emit_module_entry(
                record.id,
                record.compiled_code,
                record.specifier_to_id,
                comment=self._path_comment(record) if self.context.emit_path_comments else None,
                last=index == len(records) - 1,
            )

        self.emitter.emit_epilogue()
        return self.emitter.get_output()

    def _path_comment(self, record: ModuleRecord) -> str:
        """`<id>: <path>` with the path relative to the entry's directory when possible."""
        base = self.graph.entry.directory
        try:
            rel = Path(os.path.relpath(record.canonical_path, base)).as_posix()
        except ValueError:
            # different drive on Windows
            rel = record.canonical_path.as_posix()
        rel = rel.replace("\n", " ")
        return f"{record.id}: {rel}"
