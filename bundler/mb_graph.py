#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List

from mb_internal_error import InternalBundlerError
from mb_module import ModuleRecord


@dataclass
class DependencyGraph:
    """
    A closed set of module records starting from an entry module.

    - entry_id: id of the root module (always 0 for graphs built by the driver)
    - modules: mapping id -> ModuleRecord for every module reachable from the entry
    - next_id: the id the build's counter would have handed out next
    """
    entry_id: int
    modules: Dict[int, ModuleRecord]
    next_id: int = 0

    @property
    def entry(self) -> ModuleRecord:
        return self.modules[self.entry_id]

    def __contains__(self, module_id: int) -> bool:
        return module_id in self.modules

    def __len__(self) -> int:
        return len(self.modules)

    def records(self) -> Iterator[ModuleRecord]:
        """Records in ascending id order."""
        for module_id in sorted(self.modules):
            yield self.modules[module_id]

    def find(self, path: str | Path) -> ModuleRecord | None:
        """Look up a record by path (canonicalized before comparison)."""
        target = Path(path).resolve()
        for record in self.modules.values():
            if record.canonical_path == target:
                return record
        return None

    def check_closed(self) -> None:
        """
        Verify the graph invariants:

          - the entry id is present
          - every id in every specifier table is a module of this graph
          - no two records share a canonical path
        """
        if self.entry_id not in self.modules:
            raise InternalBundlerError(f"[ICE-0020] entry module {self.entry_id} missing from graph")

        seen: Dict[Path, int] = {}
        for record in self.records():
            if record.canonical_path in seen:
                raise InternalBundlerError(
                    f"[ICE-0030] modules {seen[record.canonical_path]} and {record.id} share a path",
                    filename=str(record.canonical_path),
                )
            seen[record.canonical_path] = record.id

            dangling: List[str] = [
                spec for spec, dep_id in record.specifier_to_id.items() if dep_id not in self.modules
            ]
            if dangling:
                raise InternalBundlerError(
                    f"[ICE-0040] module {record.id} refers to unknown module(s) for {', '.join(dangling)}",
                    filename=str(record.canonical_path),
                )
