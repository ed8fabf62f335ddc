#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import os
from pathlib import Path
from typing import List

from mb_graph import DependencyGraph
from mb_module import ModuleRecord


def _display_path(path: Path, base: Path) -> str:
    try:
        return Path(os.path.relpath(path, base)).as_posix()
    except ValueError:
        return path.as_posix()


def format_record(record: ModuleRecord, base: Path, indent: int = 0, is_entry: bool = False) -> List[str]:
    """
    Lines describing one record:

        module 1: lib/math.js
          path: /abs/project/lib/math.js
          './util' -> 2

    Table rows follow specifier order; a module with no dependencies prints
    `<no dependencies>`.
    """
    ind = "  " * indent
    header = f"module {record.id}: {_display_path(record.canonical_path, base)}"
    if is_entry:
        header += " (entry)"

    lines: List[str] = [ind + header, ind + f"  path: {record.canonical_path}"]
    if record.specifier_to_id:
        for spec, dep_id in record.specifier_to_id.items():
            lines.append(ind + f"  {spec!r} -> {dep_id}")
    else:
        lines.append(ind + "  <no dependencies>")
    return lines


def format_graph(graph: DependencyGraph) -> str:
    """
    Pretty-print every record of the graph in ascending id order, with
    paths shown relative to the entry's directory.
    """
    base = graph.entry.directory
    lines: List[str] = []
    for record in graph.records():
        lines.extend(format_record(record, base, is_entry=record.id == graph.entry_id))
    return "\n".join(lines)
