#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import pytest

from mb_errors import TransformError
from mb_transform import SourceTransformer, member_access


def _compile(src: str) -> str:
    return SourceTransformer().transform(src, filename="input.js").compiled_code


def test_member_access():
    assert member_access("exports", "add") == "exports.add"
    assert member_access("exports", "$el_1") == "exports.$el_1"
    assert member_access("exports", "a-b") == 'exports["a-b"]'


def test_export_function_is_hoisted():
    code = _compile("export function add(a, b) { return a + b; }\n")
    assert "exports.add = add;" in code
    assert "function add(a, b) { return a + b; }" in code
    assert "export function" not in code
    assert code.index("exports.add = add;") < code.index("function add")


def test_export_async_and_generator_functions():
    code = _compile("export async function load() {}\nexport function* gen() {}\n")
    assert "exports.load = load;" in code
    assert "exports.gen = gen;" in code
    assert "async function load() {}" in code


def test_export_const_declarations_are_assigned_after_body():
    code = _compile("export const x = 1, y = 2;\n")
    assert code.endswith("const x = 1, y = 2;\nexports.x = x;\nexports.y = y;\n")


def test_export_let_with_nested_commas():
    code = _compile("export let f = g(1, 2), h = [3, 4];\n")
    assert 'Object.defineProperty(exports, "f", { enumerable: true, get: function () { return f; } });' in code
    assert 'Object.defineProperty(exports, "h", { enumerable: true, get: function () { return h; } });' in code
    assert '"g"' not in code


def test_export_let_and_var_stay_live():
    code = _compile("export let count = 0;\nexport var total = 0;\nexport function inc() { count++; }\n")
    assert code.index('get: function () { return count; }') < code.index("let count = 0;")
    assert 'get: function () { return total; }' in code
    assert "exports.count" not in code
    assert "exports.total" not in code


def test_export_declaration_ends_at_line_break():
    code = _compile("export const a = 1\nconst b = 2\n")
    assert "exports.a = a;" in code
    assert "exports.b" not in code


def test_export_class():
    code = _compile("export class Foo {}\n")
    assert code.endswith("class Foo {}\nexports.Foo = Foo;\n")


def test_export_default_expression():
    code = _compile("export default 42;\n")
    assert "exports.default = 42;" in code


def test_export_default_named_function_is_hoisted():
    code = _compile("export default function main() {}\n")
    assert "exports.default = main;" in code
    assert "function main() {}" in code


def test_export_default_anonymous_function():
    code = _compile("export default function () {}\n")
    assert "exports.default = function () {}" in code


def test_export_default_named_class():
    code = _compile("export default class Widget {}\n")
    assert code.endswith("class Widget {}\nexports.default = Widget;\n")


def test_export_list_uses_getters():
    code = _compile("let a = 1;\nexport { a, a as b };\na = 2;\n")
    assert 'Object.defineProperty(exports, "a", { enumerable: true, get: function () { return a; } });' in code
    assert 'Object.defineProperty(exports, "b", { enumerable: true, get: function () { return a; } });' in code
    assert code.endswith("a = 2;\n")


def test_export_list_string_alias():
    code = _compile('const a = 1;\nexport { a as "a-b" };\n')
    assert 'Object.defineProperty(exports, "a-b", { enumerable: true, get: function () { return a; } });' in code


def test_reexport_named_uses_getter():
    result = SourceTransformer().transform('export { x as y } from "./m";\n')
    code = result.compiled_code
    assert result.dependency_specifiers == ["./m"]
    assert 'var _mb_reexport_0 = require("./m");' in code
    assert (
        'Object.defineProperty(exports, "y", { enumerable: true, get: function () { return _mb_reexport_0.x; } });'
        in code
    )


def test_reexport_namespace():
    code = _compile('export * as ns from "./m";\n')
    assert 'exports.ns = require("./m");' in code


def test_reexport_star_skips_own_exports():
    code = _compile('export * from "./m";\nexport const own = 1;\n')
    assert 'var _mb_reexport_0 = require("./m");' in code
    assert 'Object.keys(_mb_reexport_0).forEach(function (key) {' in code
    assert '["default", "__esModule", "own"]' in code


def test_esm_marker_is_emitted_for_export_only_modules():
    code = _compile("export const x = 1;\n")
    assert code.startswith('"use strict";\nObject.defineProperty(exports, "__esModule", { value: true });\n')


@pytest.mark.parametrize(
    "src, code",
    [
        ("export { a, b", "TRN-0020"),
        ("export function () {}", "TRN-0020"),
        ("export class extends Base {}", "TRN-0020"),
        ("export 42;", "TRN-0020"),
        ('export * from;', "TRN-0020"),
        ("export const { a } = obj;", "TRN-0040"),
        ("export let [a, b] = pair;", "TRN-0040"),
    ],
)
def test_malformed_export_is_rejected(src, code):
    with pytest.raises(TransformError) as exc:
        _compile(src)
    assert f"[{code}]" in exc.value.message
