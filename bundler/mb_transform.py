"""
Source Transformer

Turns one JavaScript source file into CommonJS code that the runtime loader
can execute, and reports the module specifiers the file depends on.

ES module syntax is rewritten at the token level: import declarations become
`require()` bindings hoisted to the top of the module, export declarations
become assignments to `exports`. Everything else is copied through verbatim,
so plain CommonJS modules come out unchanged.
"""

#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from mb_context import BundleContext
from mb_errors import TransformError
from mb_lexer import Lexer, Token, TokenKind
from mb_logger import log_debug, log_warning
from mb_string_escape import EscapeDecodeError, decode_js_string_token, encode_js_string_literal


INTEROP_HELPER = "_mb_interopDefault"
INTEROP_HELPER_DECL = (
    f"function {INTEROP_HELPER}(m) {{ return m && m.__esModule ? m.default : m; }}"
)

_IDENT_RE = re.compile(r"^[A-Za-z_$][\w$]*$")

_OPENERS = ("(", "[", "{")
_CLOSERS = (")", "]", "}")


@dataclass
class TransformResult:
    """Outputs consumed by the module record factory."""
    compiled_code: str
    dependency_specifiers: List[str] = field(default_factory=list)


@dataclass
class _Edit:
    start: int
    end: int
    text: str


@dataclass
class _StarReexport:
    binding: str


class SourceTransformer:
    """
    Default Source Transformer collaborator.

    Any object with a compatible `transform(source_text, filename=...)` method
    can stand in for it (the driver only relies on the two outputs).
    """

    def __init__(self, context: Optional[BundleContext] = None):
        self.context = context or BundleContext.default()

    def transform(self, source_text: str, filename: str = "<input>") -> TransformResult:
        rewriter = _ModuleRewriter(source_text, filename, self.context)
        result = rewriter.run()
        log_debug(
            self.context,
            f"Transformed {filename}: {len(result.dependency_specifiers)} specifier(s), "
            f"{'ES module' if rewriter.is_esm else 'CommonJS'}",
        )
        return result


def member_access(obj: str, name: str) -> str:
    """`obj.name` when name is a plain identifier, `obj["name"]` otherwise."""
    if _IDENT_RE.match(name):
        return f"{obj}.{name}"
    return f"{obj}[{encode_js_string_literal(name)}]"


class _ModuleRewriter:
    """One-shot rewriter for a single source file."""

    def __init__(self, source: str, filename: str, context: BundleContext):
        self.source = source
        self.filename = filename
        self.context = context
        self.tokens: List[Token] = []

        self.specifiers: List[str] = []
        self.edits: List[_Edit] = []
        self.is_esm = False
        self.needs_interop = False
        self._tmp_counter = 0

        # Prologue sections, emitted in this order
        self.hoisted_exports: List[str] = []
        self.imports: List[object] = []  # str statements or _StarReexport
        # Assignments appended after the module body
        self.tail_exports: List[str] = []
        # Every name this module exports explicitly (star re-exports skip them)
        self.exported_names: List[str] = []

    # --- helpers ---

    def _error(self, tok: Token, message: str) -> TransformError:
        return TransformError(message, filename=self.filename, line=tok.line, column=tok.column)

    def _fresh(self, kind: str) -> str:
        name = f"_mb_{kind}_{self._tmp_counter}"
        self._tmp_counter += 1
        return name

    def _blank(self, start: int, end: int) -> str:
        """Replacement for removed text that keeps line numbers stable."""
        return "\n" * self.source.count("\n", start, end)

    def _is_member(self, i: int) -> bool:
        return i > 0 and (self.tokens[i - 1].is_punct(".") or self.tokens[i - 1].is_punct("?."))

    def _is_method_name(self, i: int) -> bool:
        """
        True for `import(...) {` used as an object or class method name,
        e.g. `{ import(x) { ... } }` or `static async import() {}`.
        """
        tokens = self.tokens
        prev = tokens[i - 1] if i > 0 else None
        if prev is None or not (
                prev.kind is TokenKind.PUNCT and prev.text in ("{", ",", "}", ";", "*")
                or prev.kind is TokenKind.IDENT and prev.text in ("static", "get", "set", "async")
        ):
            return False
        if not tokens[i + 1].is_punct("("):
            return False
        depth = 0
        j = i + 1
        while tokens[j].kind is not TokenKind.EOF:
            if tokens[j].is_punct("("):
                depth += 1
            elif tokens[j].is_punct(")"):
                depth -= 1
                if depth == 0:
                    return tokens[j + 1].is_punct("{")
            j += 1
        return False

    def _string_value(self, tok: Token) -> str:
        try:
            return decode_js_string_token(tok.text)
        except EscapeDecodeError as e:
            raise self._error(tok, f"[{e.code}] invalid escape sequence in string literal: {e.details}")

    def _expect_ident(self, j: int, text: Optional[str], code: str, what: str) -> Token:
        tok = self.tokens[j]
        if not tok.is_ident(text):
            raise self._error(tok, f"[{code}] expected {what}, found {tok!r}")
        return tok

    def _expect_string(self, j: int, code: str) -> Token:
        tok = self.tokens[j]
        if tok.kind is not TokenKind.STRING:
            raise self._error(tok, f"[{code}] expected module specifier string, found {tok!r}")
        return tok

    def _add_specifier(self, tok: Token) -> str:
        value = self._string_value(tok)
        self.specifiers.append(value)
        return value

    def _export(self, name: str) -> None:
        if name not in self.exported_names:
            self.exported_names.append(name)

    # --- main API ---

    def run(self) -> TransformResult:
        self.tokens = Lexer(self.source, filename=self.filename).tokenize()
        tokens = self.tokens

        if self.source.startswith("#!"):
            eol = self.source.find("\n")
            self.edits.append(_Edit(0, len(self.source) if eol == -1 else eol, ""))

        depth = 0
        i = 0
        while tokens[i].kind is not TokenKind.EOF:
            tok = tokens[i]

            if tok.is_ident("import") and not self._is_member(i) and not (depth > 0 and self._is_method_name(i)):
                nxt = tokens[i + 1]
                if nxt.is_punct("(") or nxt.is_punct("."):
                    raise self._error(
                        tok, "[TRN-0030] dynamic import() and import.meta are not supported in bundles"
                    )
                if depth == 0:
                    i = self._rewrite_import(i)
                    continue

            if tok.is_ident("export") and depth == 0 and not self._is_member(i):
                i = self._rewrite_export(i)
                continue

            if tok.is_ident("require") and not self._is_member(i) and tokens[i + 1].is_punct("("):
                self._record_require(i)

            if tok.kind is TokenKind.PUNCT:
                if tok.text in _OPENERS:
                    depth += 1
                elif tok.text in _CLOSERS:
                    depth = max(0, depth - 1)
            i += 1

        return TransformResult(compiled_code=self._render(), dependency_specifiers=self.specifiers)

    def _record_require(self, i: int) -> None:
        tokens = self.tokens
        if i > 0 and tokens[i - 1].is_ident("function"):
            return
        arg = tokens[i + 2]
        if arg.kind is TokenKind.STRING and tokens[i + 3].is_punct(")"):
            self._add_specifier(arg)
            return
        log_warning(
            self.context,
            f"{self.filename}:{tokens[i].line}:{tokens[i].column}: warning: "
            f"require() with a non-literal argument is left unresolved",
        )

    # --- import declarations ---

    def _rewrite_import(self, i: int) -> int:
        tokens = self.tokens
        self.is_esm = True
        j = i + 1
        default_name: Optional[str] = None
        namespace_name: Optional[str] = None
        named: List[Tuple[str, str]] = []

        if tokens[j].kind is TokenKind.STRING:
            spec_tok = tokens[j]
            j += 1
        else:
            if tokens[j].kind is TokenKind.IDENT and not (tokens[j].is_ident("from") and tokens[j + 1].kind is TokenKind.STRING):
                default_name = tokens[j].text
                j += 1
                if tokens[j].is_punct(","):
                    j += 1
                    if not (tokens[j].is_punct("*") or tokens[j].is_punct("{")):
                        raise self._error(tokens[j], f"[TRN-0010] expected '*' or '{{' after ',', found {tokens[j]!r}")
            if tokens[j].is_punct("*"):
                self._expect_ident(j + 1, "as", "TRN-0010", "'as'")
                namespace_name = self._expect_ident(j + 2, None, "TRN-0010", "namespace binding").text
                j += 3
            elif tokens[j].is_punct("{"):
                named, j = self._parse_specifier_list(j, "TRN-0010", allow_string_local=False)
            elif default_name is None:
                raise self._error(tokens[j], f"[TRN-0010] malformed import declaration near {tokens[j]!r}")
            self._expect_ident(j, "from", "TRN-0010", "'from'")
            spec_tok = self._expect_string(j + 1, "TRN-0010")
            j += 2

        j = self._skip_import_attributes(j)
        if tokens[j].is_punct(";"):
            j += 1

        spec = encode_js_string_literal(self._add_specifier(spec_tok))
        self.imports.append(self._import_statement(spec, default_name, namespace_name, named))

        start, end = tokens[i].start, tokens[j - 1].end
        self.edits.append(_Edit(start, end, self._blank(start, end)))
        return j

    def _import_statement(
            self,
            spec: str,
            default_name: Optional[str],
            namespace_name: Optional[str],
            named: List[Tuple[str, str]],
    ) -> str:
        call = f"require({spec})"
        if default_name is None and namespace_name is None and not named:
            return f"{call};"

        declarators: List[str] = []
        if namespace_name is not None:
            source_obj = namespace_name
            declarators.append(f"{namespace_name} = {call}")
        elif named:
            source_obj = self._fresh("import")
            declarators.append(f"{source_obj} = {call}")
        else:
            source_obj = call

        if default_name is not None:
            self.needs_interop = True
            declarators.append(f"{default_name} = {INTEROP_HELPER}({source_obj})")
        for imported, local in named:
            if imported == "default":
                self.needs_interop = True
                declarators.append(f"{local} = {INTEROP_HELPER}({source_obj})")
            else:
                declarators.append(f"{local} = {member_access(source_obj, imported)}")
        return "var " + ", ".join(declarators) + ";"

    def _parse_specifier_list(self, j: int, code: str, allow_string_local: bool) -> Tuple[List[Tuple[str, str]], int]:
        """
        Parse `{ a, b as c, "x" as d }` starting at the `{` token.

        Returns ([(name, alias), ...], index after the closing brace).
        """
        tokens = self.tokens
        pairs: List[Tuple[str, str]] = []
        j += 1
        while not tokens[j].is_punct("}"):
            tok = tokens[j]
            if tok.kind is TokenKind.IDENT:
                name = tok.text
                name_is_string = False
            elif tok.kind is TokenKind.STRING:
                name = self._string_value(tok)
                name_is_string = True
            else:
                raise self._error(tok, f"[{code}] expected a binding name, found {tok!r}")
            j += 1
            if tokens[j].is_ident("as"):
                alias_tok = tokens[j + 1]
                if alias_tok.kind is TokenKind.IDENT:
                    alias = alias_tok.text
                elif alias_tok.kind is TokenKind.STRING and allow_string_local:
                    alias = self._string_value(alias_tok)
                else:
                    raise self._error(alias_tok, f"[{code}] expected a binding name after 'as', found {alias_tok!r}")
                j += 2
            else:
                if name_is_string and not allow_string_local:
                    raise self._error(tok, f"[{code}] string import name requires an 'as' binding")
                alias = name
            pairs.append((name, alias))
            if tokens[j].is_punct(","):
                j += 1
            elif not tokens[j].is_punct("}"):
                raise self._error(tokens[j], f"[{code}] expected ',' or '}}', found {tokens[j]!r}")
        return pairs, j + 1

    def _skip_import_attributes(self, j: int) -> int:
        """Skip `with { type: "json" }` / `assert { ... }` after a specifier."""
        tokens = self.tokens
        if (tokens[j].is_ident("with") or tokens[j].is_ident("assert")) \
                and not tokens[j].newline_before and tokens[j + 1].is_punct("{"):
            j += 2
            while not tokens[j].is_punct("}"):
                if tokens[j].kind is TokenKind.EOF:
                    raise self._error(tokens[j], "[TRN-0010] unterminated import attributes")
                j += 1
            j += 1
        return j

    # --- export declarations ---

    def _rewrite_export(self, i: int) -> int:
        tokens = self.tokens
        self.is_esm = True
        t1 = tokens[i + 1]

        if t1.is_ident("default"):
            return self._rewrite_export_default(i)

        if t1.is_punct("{"):
            pairs, j = self._parse_specifier_list(i + 1, "TRN-0020", allow_string_local=True)
            if tokens[j].is_ident("from"):
                spec_tok = self._expect_string(j + 1, "TRN-0020")
                j = self._skip_import_attributes(j + 2)
                spec = encode_js_string_literal(self._add_specifier(spec_tok))
                binding = self._fresh("reexport")
                self.imports.append(f"var {binding} = require({spec});")
                for name, alias in pairs:
                    self._export(alias)
                    self.imports.append(self._export_getter(alias, member_access(binding, name)))
            else:
                for name, alias in pairs:
                    self._export(alias)
                    self.hoisted_exports.append(self._export_getter(alias, name))
            if tokens[j].is_punct(";"):
                j += 1
            self._remove(i, j)
            return j

        if t1.is_punct("*"):
            j = i + 2
            alias: Optional[str] = None
            if tokens[j].is_ident("as"):
                alias_tok = tokens[j + 1]
                if alias_tok.kind is TokenKind.IDENT:
                    alias = alias_tok.text
                elif alias_tok.kind is TokenKind.STRING:
                    alias = self._string_value(alias_tok)
                else:
                    raise self._error(alias_tok, f"[TRN-0020] expected a name after 'as', found {alias_tok!r}")
                j += 2
            self._expect_ident(j, "from", "TRN-0020", "'from'")
            spec_tok = self._expect_string(j + 1, "TRN-0020")
            j = self._skip_import_attributes(j + 2)
            if tokens[j].is_punct(";"):
                j += 1
            spec = encode_js_string_literal(self._add_specifier(spec_tok))
            if alias is not None:
                self._export(alias)
                self.imports.append(f"{member_access('exports', alias)} = require({spec});")
            else:
                binding = self._fresh("reexport")
                self.imports.append(f"var {binding} = require({spec});")
                self.imports.append(_StarReexport(binding))
            self._remove(i, j)
            return j

        if t1.is_ident("function") or (t1.is_ident("async") and tokens[i + 2].is_ident("function")
                                       and not tokens[i + 2].newline_before):
            name_tok = self._function_name(i + 1)
            if name_tok is None:
                raise self._error(t1, "[TRN-0020] exported function declaration requires a name")
            self._export(name_tok.text)
            self.hoisted_exports.append(f"{member_access('exports', name_tok.text)} = {name_tok.text};")
            self._remove(i, i + 1)
            return i + 1

        if t1.is_ident("class"):
            name_tok = tokens[i + 2]
            if name_tok.kind is not TokenKind.IDENT or name_tok.text == "extends":
                raise self._error(t1, "[TRN-0020] exported class declaration requires a name")
            self._export(name_tok.text)
            self.tail_exports.append(f"{member_access('exports', name_tok.text)} = {name_tok.text};")
            self._remove(i, i + 1)
            return i + 1

        if t1.is_ident("const"):
            for name in self._declared_names(i + 2):
                self._export(name)
                self.tail_exports.append(f"{member_access('exports', name)} = {name};")
            self._remove(i, i + 1)
            return i + 1

        if t1.is_ident("var") or t1.is_ident("let"):
            # reassignable bindings stay live through a getter
            for name in self._declared_names(i + 2):
                self._export(name)
                self.hoisted_exports.append(self._export_getter(name, name))
            self._remove(i, i + 1)
            return i + 1

        raise self._error(t1, f"[TRN-0020] malformed export declaration near {t1!r}")

    def _rewrite_export_default(self, i: int) -> int:
        tokens = self.tokens
        t2 = tokens[i + 2]
        self._export("default")

        if t2.is_ident("function") or (t2.is_ident("async") and tokens[i + 3].is_ident("function")
                                       and not tokens[i + 3].newline_before):
            name_tok = self._function_name(i + 2)
            if name_tok is not None:
                self.hoisted_exports.append(f"exports.default = {name_tok.text};")
                self._remove(i, i + 2)
                return i + 2

        if t2.is_ident("class"):
            name_tok = tokens[i + 3]
            if name_tok.kind is TokenKind.IDENT and name_tok.text != "extends":
                self.tail_exports.append(f"exports.default = {name_tok.text};")
                self._remove(i, i + 2)
                return i + 2

        start, end = tokens[i].start, tokens[i + 1].end
        self.edits.append(_Edit(start, end, "exports.default ="))
        return i + 2

    def _export_getter(self, alias: str, expr: str) -> str:
        return (
            f"Object.defineProperty(exports, {encode_js_string_literal(alias)}, "
            f"{{ enumerable: true, get: function () {{ return {expr}; }} }});"
        )

    def _function_name(self, j: int) -> Optional[Token]:
        """Name token of `[async] function [*] name`, or None for anonymous functions."""
        tokens = self.tokens
        if tokens[j].is_ident("async"):
            j += 1
        j += 1  # 'function'
        if tokens[j].is_punct("*"):
            j += 1
        if tokens[j].kind is TokenKind.IDENT:
            return tokens[j]
        return None

    def _remove(self, i: int, j: int) -> None:
        """Remove tokens[i:j] (and the whitespace that follows them up to tokens[j])."""
        start = self.tokens[i].start
        end = self.tokens[j].start if j < len(self.tokens) else len(self.source)
        self.edits.append(_Edit(start, end, self._blank(start, end)))

    def _declared_names(self, j: int) -> List[str]:
        """Binding names of a `var`/`let`/`const` declaration whose first name is tokens[j]."""
        tokens = self.tokens
        names: List[str] = []
        expect_name = True
        depth = 0
        while tokens[j].kind is not TokenKind.EOF:
            tok = tokens[j]
            if expect_name:
                if tok.is_punct("{") or tok.is_punct("["):
                    raise self._error(tok, "[TRN-0040] exporting destructuring patterns is not supported")
                if tok.kind is not TokenKind.IDENT:
                    raise self._error(tok, f"[TRN-0020] expected a binding name, found {tok!r}")
                names.append(tok.text)
                expect_name = False
                j += 1
                continue
            if depth == 0:
                if tok.is_punct(";"):
                    break
                if tok.is_punct(","):
                    expect_name = True
                    j += 1
                    continue
                if tok.newline_before and _ends_expression(tokens[j - 1]) and not _continues_expression(tok):
                    break
            if tok.kind is TokenKind.PUNCT:
                if tok.text in _OPENERS:
                    depth += 1
                elif tok.text in _CLOSERS:
                    depth -= 1
                    if depth < 0:
                        break
            j += 1
        return names

    # --- output ---

    def _render(self) -> str:
        prologue: List[str] = []
        if self.is_esm:
            prologue.append('"use strict";')
            prologue.append('Object.defineProperty(exports, "__esModule", { value: true });')
        prologue.extend(self.hoisted_exports)
        if self.needs_interop:
            prologue.append(INTEROP_HELPER_DECL)
        for stmt in self.imports:
            if isinstance(stmt, _StarReexport):
                prologue.append(self._render_star_reexport(stmt.binding))
            else:
                prologue.append(stmt)

        edits = sorted(self.edits, key=lambda e: (e.start, e.end))
        parts: List[str] = []
        if prologue:
            parts.append("\n".join(prologue) + "\n")
        cursor = 0
        for edit in edits:
            parts.append(self.source[cursor:edit.start])
            parts.append(edit.text)
            cursor = edit.end
        parts.append(self.source[cursor:])
        if self.tail_exports:
            if not self.source.endswith("\n"):
                parts.append("\n")
            parts.append("\n".join(self.tail_exports) + "\n")
        return "".join(parts)

    def _render_star_reexport(self, binding: str) -> str:
        skip = ", ".join(encode_js_string_literal(n) for n in ["default", "__esModule"] + self.exported_names)
        return (
            f"Object.keys({binding}).forEach(function (key) {{ "
            f"if ([{skip}].indexOf(key) !== -1 || Object.prototype.hasOwnProperty.call(exports, key)) return; "
            f"Object.defineProperty(exports, key, {{ enumerable: true, get: function () {{ return {binding}[key]; }} }}); "
            f"}});"
        )


def _ends_expression(tok: Token) -> bool:
    if tok.kind in (TokenKind.NUMBER, TokenKind.STRING, TokenKind.REGEX, TokenKind.PRIVATE_NAME):
        return True
    if tok.kind is TokenKind.IDENT:
        return True
    if tok.kind is TokenKind.TEMPLATE:
        return tok.text.endswith("`")
    return tok.kind is TokenKind.PUNCT and tok.text in (")", "]", "}", "++", "--")


def _continues_expression(tok: Token) -> bool:
    if tok.kind is TokenKind.TEMPLATE:
        return True
    if tok.kind is TokenKind.IDENT:
        return tok.text in ("in", "instanceof")
    return tok.kind is TokenKind.PUNCT and tok.text not in ("{", "++", "--", "!", "~")
