#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Tuple

from mb_context import DEFAULT_EXTENSIONS
from mb_errors import ModuleResolutionError


def is_bare_specifier(specifier: str) -> bool:
    """True for package-style specifiers such as 'lodash' or 'lib/util'."""
    return not (
        specifier.startswith("./")
        or specifier.startswith("../")
        or specifier in (".", "..")
        or specifier.startswith("/")
        or Path(specifier).is_absolute()
    )


@dataclass
class ModuleSearchPaths:
    """
    Resolution configuration for module specifiers.

    - extensions: suffixes probed after the specifier as written
    - index_name: stem of the file probed inside a directory
    - module_roots: directories searched for bare specifiers

    Resolution rule: the importing module's directory is tried first, then
    (for bare specifiers only) each module root in order.
    """
    extensions: Tuple[str, ...] = DEFAULT_EXTENSIONS
    index_name: str = "index"
    module_roots: List[Path] = field(default_factory=list)

    def add_module_root(self, root: str | Path) -> None:
        self.module_roots.append(Path(root))

    def candidates(self, base: Path) -> List[Path]:
        """
        Paths probed, in order, for a joined specifier path:

          1. the path itself
          2. the path plus each extension
          3. <path>/<index_name> plus each extension
        """
        result = [base]
        result.extend(Path(f"{base}{ext}") for ext in self.extensions)
        result.extend(base / f"{self.index_name}{ext}" for ext in self.extensions)
        return result

    def resolve(self, specifier: str, importer_dir: str | Path) -> Path:
        """
        Map a specifier, as written in a module in importer_dir, to the
        canonical absolute path of an existing file.

        Raises ModuleResolutionError if no candidate exists.
        """
        importer_dir = Path(importer_dir)
        tried: List[Path] = []

        found = self._probe(importer_dir / specifier, tried)
        if found is not None:
            return found

        bare = is_bare_specifier(specifier)
        if bare:
            for root in self.module_roots:
                found = self._probe(root / specifier, tried)
                if found is not None:
                    return found

        if bare and self.module_roots:
            roots = ",".join(f"'{r}'" for r in self.module_roots)
            raise ModuleResolutionError(
                f"[RES-0020] cannot resolve module '{specifier}' from '{importer_dir}' or module root(s) {roots}",
                specifier=specifier,
                importer_dir=importer_dir,
                candidates=tried,
            )
        raise ModuleResolutionError(
            f"[RES-0010] cannot resolve module '{specifier}' from '{importer_dir}'",
            specifier=specifier,
            importer_dir=importer_dir,
            candidates=tried,
        )

    def _probe(self, base: Path, tried: List[Path]) -> Path | None:
        for candidate in self.candidates(base):
            tried.append(candidate)
            if candidate.is_file():
                return candidate.resolve()
        return None
