"""
JavaScript Code Emitter

Handles JavaScript-specific code emission. Knows how to emit the artifact
syntax and the runtime loader, but not which modules go into it or in which
order. Those decisions live in the Backend.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from mb_string_escape import encode_js_string_literal


# Body of the generated loader. `cache` maps id -> {module, loaded}; an entry
# with loaded === false belongs to a module whose factory is still running.
RUNTIME_LOADER: List[str] = [
    "var cache = {};",
    "",
    "function require(id) {",
    "    var cached = cache[id];",
    "    if (cached) {",
    "        // complete, or still in progress while a cycle unwinds",
    "        return cached.module.exports;",
    "    }",
    "    var entry = modules[id];",
    "    if (!entry) {",
    "        throw new Error(\"Module \" + id + \" is not part of this bundle\");",
    "    }",
    "    var factory = entry[0];",
    "    var mapping = entry[1];",
    "    var module = { exports: {} };",
    "    cached = cache[id] = { module: module, loaded: false };",
    "",
    "    function requireModule(name) {",
    "        if (!Object.prototype.hasOwnProperty.call(mapping, name)) {",
    "            throw new Error(\"Cannot find module '\" + name + \"'\");",
    "        }",
    "        return require(mapping[name]);",
    "    }",
    "",
    "    factory.call(module.exports, requireModule, module, module.exports);",
    "    cached.loaded = true;",
    "    return module.exports;",
    "}",
]

MODULE_FACTORY_PARAMS = "require, module, exports"


@dataclass
class JSCodeBuilder:
    """
    Helper for building JavaScript code with indentation tracking.
    """
    lines: List[str] = field(default_factory=list)
    indent_level: int = 0
    indent_str: str = "    "  # 4 spaces

    def indent(self) -> None:
        self.indent_level += 1

    def dedent(self) -> None:
        assert self.indent_level > 0, "dedent below zero"
        self.indent_level -= 1

    def emit(self, line: str = "") -> None:
        """Emit a line with current indentation."""
        if line:
            self.lines.append(self.indent_str * self.indent_level + line)
        else:
            self.lines.append("")

    def emit_raw(self, line: str) -> None:
        """Emit a line (or a block of lines) without indentation."""
        self.lines.append(line)

    def to_string(self) -> str:
        return "\n".join(self.lines) + "\n"


@dataclass
class JSEmitter:
    """
    JavaScript-specific artifact emitter.

    Responsibilities:
    - Emit the runtime loader and the IIFE around it
    - Wrap compiled module code in factory functions
    - Serialize specifier tables as object literals

    Does NOT:
    - Decide which modules to emit or in which order
    - Resolve specifiers (tables arrive fully resolved)
    """

    out: JSCodeBuilder = field(default_factory=JSCodeBuilder)

    def get_output(self) -> str:
        """Returns the complete artifact text."""
        return self.out.to_string()

    def emit_comment(self, text: str) -> None:
        for line in text.splitlines() or [""]:
            self.out.emit(f"// {line}".rstrip())

    def emit_banner(self, text: str) -> None:
        self.emit_comment(text)

    def emit_runtime(self, entry_id: int) -> None:
        """Emit the loader IIFE up to the opening brace of the module table."""
        self.out.emit("(function (modules) {")
        self.out.indent()
        for line in RUNTIME_LOADER:
            self.out.emit(line)
        self.out.emit()
        self.out.emit(f"return require({entry_id});")
        self.out.dedent()
        self.out.emit("})({")
        self.out.indent()

    def format_table(self, specifier_to_id: Dict[str, int]) -> str:
        """Serialize a specifier table as a JavaScript object literal."""
        if not specifier_to_id:
            return "{}"
        items = ", ".join(
            f"{self.format_table_key(spec)}: {dep_id}" for spec, dep_id in specifier_to_id.items()
        )
        return "{ " + items + " }"

    def format_table_key(self, specifier: str) -> str:
        key = encode_js_string_literal(specifier)
        if specifier == "__proto__":
            # a literal __proto__ key sets the prototype; the computed form is an own property
            return f"[{key}]"
        return key

    def emit_module_entry(
            self,
            module_id: int,
            compiled_code: str,
            specifier_to_id: Dict[str, int],
            comment: Optional[str] = None,
            last: bool = False,
    ) -> None:
        """
        Emit `<id>: [function (require, module, exports) { <code> }, <table>]`.

        Module code is emitted verbatim (no re-indentation) so template
        literals and other whitespace-sensitive text survive unchanged.
        """
        if comment:
            self.emit_comment(comment)
        self.out.emit(f"{module_id}: [function ({MODULE_FACTORY_PARAMS}) {{")
        body = compiled_code.rstrip("\n")
        if body:
            self.out.emit_raw(body)
        separator = "" if last else ","
        self.out.emit(f"}}, {self.format_table(specifier_to_id)}]{separator}")

    def emit_epilogue(self) -> None:
        self.out.dedent()
        self.out.emit("});")
