#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Deque, Dict

from mb_backend import Backend
from mb_context import BundleContext
from mb_diagnostics import diag_from_error
from mb_errors import BundleError, ModuleResolutionError
from mb_graph import DependencyGraph
from mb_logger import log_debug, log_info, log_stage
from mb_module import IdCounter, ModuleRecord, ModuleRecordFactory, Transformer, read_source
from mb_paths import ModuleSearchPaths
from mb_result import BundleResult


class MBDriver:
    """
    Bundler driver:
      - resolve the entry file
      - read and transform every reachable module
      - link specifiers to module ids
      - hand the closed graph to the backend

    Entry points:
      - load_single_file(path): read and transform one file (no resolution).
      - build_dependency_graph(entry): build the closed graph for an entry.
      - build(entry) / bundle(entry): same, reporting failures as diagnostics.
    """

    def __init__(
        self,
        search_paths: ModuleSearchPaths | None = None,
        context: BundleContext | None = None,
        transformer: Transformer | None = None,
        reader: Callable[[Path], str] = read_source,
    ):
        self.context = context or BundleContext.default()
        self.search_paths = search_paths or ModuleSearchPaths(
            extensions=self.context.resolve_extensions,
            index_name=self.context.index_name,
        )
        self.transformer = transformer
        self.reader = reader

    # --- Public API ---

    def bundle(self, entry: str | Path, importer_dir: str | Path | None = None) -> BundleResult:
        """
        Full pipeline:

          1. Build the dependency graph for entry.
          2. Serialize it with the Backend.

        On a build failure, graph and artifact are None and diagnostics hold
        exactly one error.
        """
        result = self.build(entry, importer_dir)
        if result.graph is None:
            return result

        result.artifact = Backend(result.graph, self.context).generate()
        log_info(self.context, f"Bundle complete: {len(result.graph)} module(s), {len(result.artifact)} character(s)")
        return result

    def build(self, entry: str | Path, importer_dir: str | Path | None = None) -> BundleResult:
        """Build the graph only (no artifact)."""
        log_info(self.context, f"Starting build for entry '{entry}'")
        result = BundleResult(context=self.context)
        try:
            result.graph = self.build_dependency_graph(entry, importer_dir)
        except BundleError as e:
            if isinstance(e, ModuleResolutionError):
                for candidate in e.candidates:
                    log_debug(self.context, f"Tried {candidate}")
            result.diagnostics.append(diag_from_error(e))
        return result

    def resolve_entry(self, entry: str | Path, importer_dir: str | Path | None = None) -> Path:
        """
        Resolve the entry as a plain path (relative to importer_dir or the
        current directory), probing the same extension and index candidates
        as any other specifier. Module roots are not consulted.
        """
        base_dir = Path(importer_dir) if importer_dir is not None else Path.cwd()
        base = base_dir / entry
        candidates = self.search_paths.candidates(base)
        for candidate in candidates:
            if candidate.is_file():
                path = candidate.resolve()
                log_debug(self.context, f"Resolved entry '{entry}' to {path}")
                return path
        raise ModuleResolutionError(
            f"[RES-0030] entry module not found: {entry}",
            specifier=str(entry),
            importer_dir=base_dir,
            candidates=candidates,
        )

    def load_single_file(self, path: str | Path) -> ModuleRecord:
        """
        Read and transform one file without resolving its dependencies.
        The record gets id 0 and stays unlinked.
        """
        path = Path(path)
        return self._new_factory().materialize(0, path.resolve() if path.exists() else path)

    def build_dependency_graph(self, entry: str | Path, importer_dir: str | Path | None = None) -> DependencyGraph:
        """
        Breadth-first traversal from the entry. Ids follow discovery order;
        a path is registered in the visited set before its dependencies are
        explored, so diamonds share a record and cycles terminate.
        """
        log_stage(self.context, "Resolving entry", str(entry))
        entry_path = self.resolve_entry(entry, importer_dir)

        log_stage(self.context, "Building dependency graph", str(entry_path))
        factory = self._new_factory()
        visited: Dict[Path, int] = {}
        modules: Dict[int, ModuleRecord] = {}
        queue: Deque[int] = deque()
        pending: Dict[int, Future] = {}
        executor = ThreadPoolExecutor(max_workers=self.context.jobs) if self.context.jobs > 1 else None

        def discover(path: Path) -> int:
            module_id = factory.allocate_id()
            if executor is None:
                modules[module_id] = factory.materialize(module_id, path)
            else:
                pending[module_id] = executor.submit(factory.materialize, module_id, path)
            visited[path] = module_id
            queue.append(module_id)
            return module_id

        try:
            discover(entry_path)
            while queue:
                module_id = queue.popleft()
                if module_id in pending:
                    modules[module_id] = pending.pop(module_id).result()
                record = modules[module_id]
                record.link(self._link_dependencies(record, visited, discover))
        finally:
            if executor is not None:
                executor.shutdown(wait=True, cancel_futures=True)

        graph = DependencyGraph(entry_id=0, modules=modules, next_id=factory.counter.peek)
        graph.check_closed()
        log_info(self.context, f"Dependency graph contains {len(graph)} module(s)")
        return graph

    # --- Internal helpers ---

    def _new_factory(self) -> ModuleRecordFactory:
        # One counter per build: ids always start at 0.
        return ModuleRecordFactory(
            context=self.context,
            transformer=self.transformer,
            reader=self.reader,
            counter=IdCounter(),
        )

    def _link_dependencies(
            self,
            record: ModuleRecord,
            visited: Dict[Path, int],
            discover: Callable[[Path], int],
    ) -> Dict[str, int]:
        mapping: Dict[str, int] = {}
        for specifier in record.dependency_specifiers:
            if specifier in mapping:
                continue
            try:
                dep_path = self.search_paths.resolve(specifier, record.directory)
            except ModuleResolutionError as e:
                e.filename = str(record.canonical_path)
                raise

            dep_id = visited.get(dep_path)
            if dep_id is None:
                dep_id = discover(dep_path)
                log_debug(self.context, f"Module {record.id}: '{specifier}' -> {dep_path} (new module {dep_id})")
            else:
                log_debug(self.context, f"Module {record.id}: '{specifier}' -> module {dep_id} (already visited)")
            mapping[specifier] = dep_id
        return mapping

