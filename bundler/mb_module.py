#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Protocol, Tuple

from mb_context import BundleContext
from mb_errors import SourceReadError
from mb_internal_error import InternalBundlerError
from mb_logger import log_debug
from mb_transform import SourceTransformer, TransformResult


class Transformer(Protocol):
    def transform(self, source_text: str, filename: str = ...) -> TransformResult: ...


@dataclass(frozen=True)
class ModuleRecord:
    """
    One source file after transformation.

    - id: assigned at first discovery; the entry module is always 0
    - canonical_path: resolved absolute path, the deduplication key
    - compiled_code: CommonJS body executed by the runtime loader
    - dependency_specifiers: specifiers in source order
    - specifier_to_id: filled once by the graph builder, empty until then
    - linked: set by link(); a second link() is an internal error
    """
    id: int
    canonical_path: Path
    compiled_code: str
    dependency_specifiers: Tuple[str, ...]
    specifier_to_id: Dict[str, int] = field(default_factory=dict)
    linked: bool = field(default=False, init=False, compare=False)

    @property
    def directory(self) -> Path:
        return self.canonical_path.parent

    def link(self, mapping: Dict[str, int]) -> None:
        """Install the resolved dependency table; a record is linked exactly once."""
        if self.linked:
            raise InternalBundlerError(
                f"[ICE-0010] module {self.id} is already linked", filename=str(self.canonical_path)
            )
        self.specifier_to_id.update(mapping)
        object.__setattr__(self, "linked", True)


class IdCounter:
    """Monotonically increasing module id source, owned by one build."""

    def __init__(self, start: int = 0):
        self._next = start
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value

    @property
    def peek(self) -> int:
        with self._lock:
            return self._next


def read_source(path: str | Path) -> str:
    """
    File I/O collaborator: read a module's source text as UTF-8.

    Raises SourceReadError if the file is missing, not a regular file,
    unreadable, or not valid UTF-8.
    """
    path = Path(path)
    if not path.is_file():
        raise SourceReadError(f"[DRV-0010] source file not found: {path}", filename=str(path))
    try:
        data = path.read_bytes()
    except OSError as e:
        raise SourceReadError(f"[DRV-0010] cannot read {path}: {e.strerror or e}", filename=str(path))
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise SourceReadError(
            f"[DRV-0020] source file is not valid UTF-8 (byte offset {e.start})", filename=str(path)
        )
    if text.startswith("\ufeff"):
        text = text[1:]
    return text


class ModuleRecordFactory:
    """
    Turns one canonical path into a ModuleRecord using the File I/O and
    Source Transformer collaborators.

    Errors from either collaborator propagate unchanged.
    """

    def __init__(
            self,
            context: BundleContext | None = None,
            transformer: Transformer | None = None,
            reader: Callable[[Path], str] = read_source,
            counter: IdCounter | None = None,
    ):
        self.context = context or BundleContext.default()
        self.transformer = transformer or SourceTransformer(self.context)
        self.reader = reader
        self.counter = counter or IdCounter()

    def allocate_id(self) -> int:
        return self.counter.next()

    def create(self, path: Path) -> ModuleRecord:
        """Allocate the next id and materialize the module at path."""
        return self.materialize(self.allocate_id(), path)

    def materialize(self, module_id: int, path: Path) -> ModuleRecord:
        log_debug(self.context, f"Loading module {module_id} from {path}")
        text = self.reader(path)
        result = self.transformer.transform(text, filename=str(path))
        return ModuleRecord(
            id=module_id,
            canonical_path=Path(path),
            compiled_code=result.compiled_code,
            dependency_specifiers=tuple(result.dependency_specifiers),
        )
