#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import pytest

import mbundle


def _run_main(argv):
    with pytest.raises(SystemExit) as exc:
        mbundle.main(argv)
    return exc.value.code


@pytest.fixture
def small_project(write_js_file, temp_project, monkeypatch):
    monkeypatch.chdir(temp_project)
    monkeypatch.delenv("MB_MODULE_PATH", raising=False)
    write_js_file("main.js", 'const math = require("./math");\nconsole.log(math.add(2, 3));\n')
    write_js_file("math.js", "exports.add = function (a, b) { return a + b; };\n")
    return temp_project


def test_build_writes_output_file(small_project, capsys):
    rc = _run_main(["build", "-o", "out.js", "main.js"])

    assert rc == 0
    artifact = (small_project / "out.js").read_text(encoding="utf-8")
    assert artifact.startswith("(function (modules) {")
    assert '{ "./math": 1 }' in artifact
    assert capsys.readouterr().out == ""


def test_build_to_stdout_with_banner(small_project, capsys):
    rc = _run_main(["build", "--banner", "demo", "--no-path-comments", "main.js"])

    assert rc == 0
    out = capsys.readouterr().out
    assert out.startswith("// demo\n(function (modules) {")
    assert "// 0:" not in out


def test_build_failure_prints_snippet(small_project, write_js_file, capsys):
    write_js_file("broken.js", 'const a = 1;\nrequire("./nowhere");\n')

    rc = _run_main(["build", "broken.js"])

    assert rc == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "[RES-0010]" in captured.err


def test_syntax_error_snippet_has_caret(small_project, write_js_file, capsys):
    write_js_file("bad.js", "let x = 1;\nlet y = #;\n")

    rc = _run_main(["check", "bad.js"])

    assert rc == 1
    err = capsys.readouterr().err
    assert "[LEX-0040]" in err
    assert "    2 | let y = #;" in err
    assert "      |         ^" in err


def test_check_succeeds(small_project, capsys):
    assert _run_main(["-v", "check", "main.js"]) == 0
    assert "OK: 2 module(s)" in capsys.readouterr().err


def test_graph_lists_records(small_project, capsys):
    rc = _run_main(["graph", "main.js"])

    assert rc == 0
    out = capsys.readouterr().out
    assert "module 0: main.js (entry)" in out
    assert "  './math' -> 1" in out
    assert "module 1: math.js" in out
    assert "  <no dependencies>" in out


def test_tok_dumps_tokens(small_project, capsys):
    rc = _run_main(["tok", "math.js"])

    assert rc == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "math.js:1:1:\tIDENT        'exports'"
    assert not any("EOF" in line for line in lines)


def test_tok_include_eof(small_project, capsys):
    _run_main(["tok", "--include-eof", "math.js"])
    assert "EOF" in capsys.readouterr().out.splitlines()[-1]


def test_tok_reports_lexer_errors(small_project, write_js_file, capsys):
    write_js_file("bad.js", '"open\n')
    assert _run_main(["tok", "bad.js"]) == 1
    assert "[LEX-0010]" in capsys.readouterr().err


def test_transform_prints_commonjs(small_project, write_js_file, capsys):
    write_js_file("esm.js", 'import add from "./math";\nexport const x = add(1, 2);\n')

    rc = _run_main(["transform", "esm.js"])

    assert rc == 0
    out = capsys.readouterr().out
    assert 'var add = _mb_interopDefault(require("./math"));' in out
    assert out.endswith("exports.x = x;\n")


def test_transform_missing_file(small_project, capsys):
    assert _run_main(["transform", "absent.js"]) == 1
    assert "[DRV-0010]" in capsys.readouterr().err


def test_module_root_option(small_project, write_js_file, capsys):
    write_js_file("app/main.js", 'require("lib");\n')
    write_js_file("vendor/lib/index.js", "module.exports = 1;\n")

    assert _run_main(["check", "app/main.js"]) == 1
    assert "[RES-0010]" in capsys.readouterr().err

    assert _run_main(["-M", "vendor", "check", "app/main.js"]) == 0


def test_extension_option(small_project, write_js_file):
    write_js_file("ts_main.js", 'require("./helper");\n')
    write_js_file("helper.es", "module.exports = 1;\n")

    assert _run_main(["check", "ts_main.js"]) == 1
    assert _run_main(["-e", "es", "-e", "js", "check", "ts_main.js"]) == 0


def test_run_reports_missing_node(small_project, capsys):
    rc = _run_main(["run", "--node", str(small_project / "no-such-node"), "main.js"])

    assert rc == 1
    assert "[MBC-0010]" in capsys.readouterr().err


def test_run_executes_with_node(small_project, run_artifact, capfd):
    rc = _run_main(["run", "main.js"])

    assert rc == 0
    assert capfd.readouterr().out.strip() == "5"
