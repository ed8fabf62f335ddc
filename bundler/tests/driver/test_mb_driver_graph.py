#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

from mb_context import BundleContext
from mb_driver import MBDriver
from mb_paths import ModuleSearchPaths


def _paths_by_id(graph):
    return {record.id: record.canonical_path for record in graph.records()}


def test_single_module_graph(write_js_file, temp_project):
    write_js_file("main.js", "module.exports = 42;\n")

    graph = MBDriver().build_dependency_graph("main.js", importer_dir=temp_project)

    assert len(graph) == 1
    assert graph.entry_id == 0
    assert graph.entry.canonical_path == (temp_project / "main.js").resolve()
    assert graph.entry.specifier_to_id == {}


def test_entry_and_dependency(write_js_file, temp_project):
    write_js_file("main.js", 'const math = require("./math.js");\nconsole.log(math.add(2, 3));\n')
    write_js_file("math.js", "exports.add = function (a, b) { return a + b; };\n")

    graph = MBDriver().build_dependency_graph("main.js", importer_dir=temp_project)

    assert len(graph) == 2
    assert graph.entry.specifier_to_id == {"./math.js": 1}
    assert graph.modules[1].canonical_path == (temp_project / "math.js").resolve()
    assert graph.modules[1].specifier_to_id == {}
    assert graph.next_id == 2


def test_diamond_shares_one_record(write_js_file, temp_project):
    write_js_file("main.js", 'require("./a");\nrequire("./b");\n')
    write_js_file("a.js", 'require("./d");\n')
    write_js_file("b.js", 'require("./d.js");\n')
    write_js_file("d.js", "module.exports = {};\n")

    graph = MBDriver().build_dependency_graph("main.js", importer_dir=temp_project)

    assert len(graph) == 4
    assert graph.modules[1].specifier_to_id == {"./d": 3}
    assert graph.modules[2].specifier_to_id == {"./d.js": 3}
    assert graph.modules[3].canonical_path == (temp_project / "d.js").resolve()


def test_ids_follow_breadth_first_discovery(write_js_file, temp_project):
    write_js_file("main.js", 'require("./a");\nrequire("./b");\n')
    write_js_file("a.js", 'require("./c");\n')
    write_js_file("b.js", "")
    write_js_file("c.js", "")

    graph = MBDriver().build_dependency_graph("main.js", importer_dir=temp_project)

    names = {module_id: path.name for module_id, path in _paths_by_id(graph).items()}
    assert names == {0: "main.js", 1: "a.js", 2: "b.js", 3: "c.js"}


def test_cycle_terminates(write_js_file, temp_project):
    write_js_file("main.js", 'require("./a");\n')
    write_js_file("a.js", 'require("./b");\n')
    write_js_file("b.js", 'require("./a");\n')

    graph = MBDriver().build_dependency_graph("main.js", importer_dir=temp_project)

    assert len(graph) == 3
    assert graph.modules[1].specifier_to_id == {"./b": 2}
    assert graph.modules[2].specifier_to_id == {"./a": 1}


def test_self_import(write_js_file, temp_project):
    write_js_file("main.js", 'require("./main.js");\n')

    graph = MBDriver().build_dependency_graph("main.js", importer_dir=temp_project)

    assert len(graph) == 1
    assert graph.entry.specifier_to_id == {"./main.js": 0}


def test_duplicate_specifiers_collapse_to_one_key(write_js_file, temp_project):
    write_js_file("main.js", 'require("./a");\nrequire("./b");\nrequire("./a");\n')
    write_js_file("a.js", "")
    write_js_file("b.js", "")

    graph = MBDriver().build_dependency_graph("main.js", importer_dir=temp_project)

    assert list(graph.entry.specifier_to_id.items()) == [("./a", 1), ("./b", 2)]


def test_specifiers_resolve_relative_to_importer(write_js_file, temp_project):
    write_js_file("main.js", 'require("./lib/a");\n')
    write_js_file("lib/a.js", 'require("../shared");\nrequire("./b");\n')
    write_js_file("lib/b.js", "")
    write_js_file("shared.js", "")

    graph = MBDriver().build_dependency_graph("main.js", importer_dir=temp_project)

    paths = _paths_by_id(graph)
    assert paths[2] == (temp_project / "shared.js").resolve()
    assert paths[3] == (temp_project / "lib" / "b.js").resolve()


def test_extension_fallback_in_graph(write_js_file, temp_project):
    write_js_file("main.js", 'import x from "./x";\n')
    write_js_file("x.js", "export default 1;\n")

    graph = MBDriver().build_dependency_graph("main.js", importer_dir=temp_project)

    assert graph.entry.specifier_to_id == {"./x": 1}
    assert graph.modules[1].canonical_path == (temp_project / "x.js").resolve()


def test_entry_resolution_probes_extensions(write_js_file, temp_project):
    write_js_file("app/index.js", "")

    graph = MBDriver().build_dependency_graph("app", importer_dir=temp_project)

    assert graph.entry.canonical_path == (temp_project / "app" / "index.js").resolve()


def test_unreachable_files_are_not_included(write_js_file, temp_project):
    write_js_file("main.js", "")
    write_js_file("unused.js", 'require("./main");\n')

    graph = MBDriver().build_dependency_graph("main.js", importer_dir=temp_project)

    assert len(graph) == 1


def test_bare_specifier_through_module_root(write_js_file, temp_project):
    write_js_file("src/main.js", 'require("pkg");\n')
    write_js_file("vendor/pkg/index.js", "")

    sp = ModuleSearchPaths(module_roots=[temp_project / "vendor"])
    graph = MBDriver(search_paths=sp).build_dependency_graph("src/main.js", importer_dir=temp_project)

    assert graph.modules[1].canonical_path == (temp_project / "vendor" / "pkg" / "index.js").resolve()


def test_graph_find_by_path(write_js_file, temp_project):
    write_js_file("main.js", 'require("./a");\n')
    write_js_file("a.js", "")

    graph = MBDriver().build_dependency_graph("main.js", importer_dir=temp_project)

    assert graph.find(temp_project / "a.js").id == 1
    assert graph.find(temp_project / "zzz.js") is None
    assert 1 in graph
    assert 2 not in graph


def test_builds_are_deterministic(write_js_file, temp_project):
    write_js_file("main.js", 'require("./b");\nrequire("./a");\n')
    write_js_file("a.js", 'require("./c");\n')
    write_js_file("b.js", 'require("./c");\n')
    write_js_file("c.js", "")

    first = MBDriver().bundle("main.js", importer_dir=temp_project)
    second = MBDriver().bundle("main.js", importer_dir=temp_project)

    assert _paths_by_id(first.graph) == _paths_by_id(second.graph)
    assert first.artifact == second.artifact


def test_parallel_build_matches_sequential(write_js_file, temp_project):
    write_js_file("main.js", "".join(f'require("./m{n}");\n' for n in range(8)))
    for n in range(8):
        write_js_file(f"m{n}.js", f'require("./shared");\nrequire("./leaf{n}");\n')
        write_js_file(f"leaf{n}.js", 'require("./shared");\n')
    write_js_file("shared.js", "module.exports = {};\n")

    sequential = MBDriver().bundle("main.js", importer_dir=temp_project)
    parallel = MBDriver(context=BundleContext(jobs=4)).bundle("main.js", importer_dir=temp_project)

    assert not parallel.has_errors()
    assert _paths_by_id(parallel.graph) == _paths_by_id(sequential.graph)
    assert parallel.artifact == sequential.artifact


def test_load_single_file_does_not_resolve(write_js_file, temp_project):
    path = write_js_file("main.js", 'require("./does-not-exist");\n')

    record = MBDriver().load_single_file(path)

    assert record.id == 0
    assert record.dependency_specifiers == ("./does-not-exist",)
    assert record.specifier_to_id == {}
