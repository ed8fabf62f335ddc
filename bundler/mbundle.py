#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import argparse
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Dict, List

from mb_context import BundleContext, DEFAULT_EXTENSIONS, LogLevel
from mb_diagnostics import Diagnostic, diag_from_error
from mb_driver import MBDriver
from mb_errors import BundleError
from mb_graph_printer import format_graph
from mb_internal_error import InternalBundlerError
from mb_lexer import Lexer, TokenKind
from mb_logger import log_debug, log_error, log_info
from mb_module import read_source
from mb_paths import ModuleSearchPaths
from mb_result import BundleResult


def _load_file_lines(path: str, cache: Dict[str, List[str]]) -> List[str]:
    if path not in cache:
        text = Path(path).read_text(encoding="utf-8")
        cache[path] = text.splitlines()
    return cache[path]


def print_diagnostics(result: BundleResult, context: BundleContext) -> None:
    file_cache: Dict[str, List[str]] = {}

    for diag in result.diagnostics:
        print_diagnostic_with_snippet(diag, file_cache, context)


def print_diagnostic_with_snippet(diag: Diagnostic, file_cache: Dict[str, List[str]], context: BundleContext | None = None) -> None:
    # First line: header
    log_error(context, diag.format())

    if not diag.filename or diag.line is None:
        return

    try:
        lines = _load_file_lines(diag.filename, file_cache)
    except (OSError, UnicodeDecodeError):
        # Can't read file; fall back to header only
        return

    line_idx = diag.line - 1
    if not (0 <= line_idx < len(lines)):
        return

    src_line = lines[line_idx]

    # "N | ..." with a gutter wide enough for multi-digit line numbers
    width = max(5, len(str(diag.line)))
    log_error(context, f"{diag.line:>{width}} | " + src_line)

    if diag.column is None:
        return

    caret_prefix = " " * width + " | " + " " * (max(1, diag.column) - 1)
    log_error(context, caret_prefix + "^")


def _normalize_extension(ext: str) -> str:
    return ext if ext.startswith(".") else f".{ext}"


def build_search_paths(context: BundleContext, args: argparse.Namespace) -> ModuleSearchPaths:
    module_roots = list(getattr(args, "module_root", None) or [])
    if not module_roots:
        # Default module roots from MB_MODULE_PATH, separated by : (Unix) or ; (Windows)
        env_roots = os.getenv("MB_MODULE_PATH")
        if env_roots:
            module_roots = [p for p in env_roots.split(os.pathsep) if p]

    sp = ModuleSearchPaths(extensions=context.resolve_extensions, index_name=context.index_name)
    for root in module_roots:
        sp.add_module_root(root)
    root_list = ",".join(f"'{p}'" for p in sp.module_roots)
    log_info(context, f"Module root(s): {root_list or '<none>'}")
    log_info(context, f"Extensions: {' '.join(sp.extensions)}")
    return sp


def build_bundle_context(args: argparse.Namespace) -> BundleContext:
    """Build a BundleContext from command-line arguments."""
    # Convert verbosity count to LogLevel
    verbosity = getattr(args, 'verbosity', 0)
    if verbosity >= 3:
        log_level = LogLevel.DEBUG
    elif verbosity >= 1:
        log_level = LogLevel.INFO
    else:
        log_level = LogLevel.WARNING

    extensions = getattr(args, 'ext', None)
    if extensions:
        resolve_extensions = tuple(_normalize_extension(e) for e in extensions)
    else:
        resolve_extensions = DEFAULT_EXTENSIONS

    return BundleContext(
        resolve_extensions=resolve_extensions,
        jobs=max(1, getattr(args, 'jobs', 1) or 1),
        emit_path_comments=not getattr(args, 'no_path_comments', False),
        banner=getattr(args, 'banner', None),
        log_rich_format=getattr(args, 'log', False),
        log_level=log_level,
    )


def _make_driver(args: argparse.Namespace) -> MBDriver:
    context = build_bundle_context(args)
    search_paths = build_search_paths(context, args)
    return MBDriver(search_paths=search_paths, context=context)


def _report(result: BundleResult, context: BundleContext) -> int:
    print_diagnostics(result, context=context)
    return 1 if (result.graph is None or result.has_errors()) else 0


def _bundle(args: argparse.Namespace):
    """Run the full pipeline, returning (result, context, exit_code)."""
    driver = _make_driver(args)
    try:
        result = driver.bundle(args.entry)
    except InternalBundlerError as e:
        log_error(driver.context, e.format())
        return None, driver.context, 1
    exit_code = _report(result, driver.context)
    if exit_code == 0 and result.artifact is None:
        exit_code = 1
    return result, driver.context, exit_code


def cmd_build(args: argparse.Namespace) -> int:
    """Bundle an entry module into a single JavaScript file."""
    result, context, exit_code = _bundle(args)
    if exit_code != 0:
        return exit_code

    if args.output:
        out_path = Path(args.output)
        out_path.write_text(result.artifact, encoding="utf-8")
        log_info(context, f"Wrote bundle: {out_path}")
    else:
        sys.stdout.write(result.artifact)

    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Bundle an entry module and run it with Node.js."""
    with tempfile.NamedTemporaryFile(mode='w', suffix='.js', delete=False) as f:
        temp_bundle = f.name

    try:
        build_args = argparse.Namespace(**vars(args))
        build_args.output = temp_bundle
        rc = cmd_build(build_args)
        if rc != 0:
            return rc

        context = build_bundle_context(args)
        node = args.node or os.getenv("MB_NODE") or "node"
        program_args = list(args.args)
        if program_args and program_args[0] == "--":
            program_args = program_args[1:]

        cmd = [node, temp_bundle] + program_args
        log_info(context, f"Running: {' '.join(cmd)}")
        try:
            run_result = subprocess.run(cmd)
        except OSError as e:
            log_error(context, f"error: [MBC-0010] cannot execute '{node}': {e.strerror or e}")
            return 1
        return run_result.returncode

    # Handle Ctrl-C gracefully
    except KeyboardInterrupt:
        return 130
    finally:
        if Path(temp_bundle).exists():
            Path(temp_bundle).unlink()


def cmd_check(args: argparse.Namespace) -> int:
    """Resolve and transform every reachable module without emitting."""
    driver = _make_driver(args)
    try:
        result = driver.build(args.entry)
    except InternalBundlerError as e:
        log_error(driver.context, e.format())
        return 1
    exit_code = _report(result, driver.context)
    if exit_code == 0:
        log_info(driver.context, f"OK: {len(result.graph)} module(s)")
    return exit_code


def cmd_graph(args: argparse.Namespace) -> int:
    """Print the dependency graph of an entry module."""
    driver = _make_driver(args)
    try:
        result = driver.build(args.entry)
    except InternalBundlerError as e:
        log_error(driver.context, e.format())
        return 1
    exit_code = _report(result, driver.context)
    if exit_code != 0:
        return exit_code

    print(format_graph(result.graph))
    return 0


def _dump_tokens_for_file(path: Path, include_eof: bool, context: BundleContext | None = None) -> int:
    try:
        text = read_source(path)
        tokens = Lexer(text, filename=str(path)).tokenize()
    except BundleError as e:
        print_diagnostic_with_snippet(diag_from_error(e), {}, context)
        return 1

    for tok in tokens:
        if not include_eof and tok.kind is TokenKind.EOF:
            continue
        # Format: file:line:col: KIND  'text'
        print(
            f"{path}:{tok.line}:{tok.column}:\t"
            f"{tok.kind.name:<12} {tok.text!r}"
        )
    return 0


def cmd_tok(args: argparse.Namespace) -> int:
    """Dump lexer tokens for a single file."""
    context = build_bundle_context(args)
    return _dump_tokens_for_file(Path(args.file), include_eof=args.include_eof, context=context)


def cmd_transform(args: argparse.Namespace) -> int:
    """Print the CommonJS code generated for a single file."""
    driver = _make_driver(args)
    try:
        record = driver.load_single_file(args.file)
    except BundleError as e:
        print_diagnostic_with_snippet(diag_from_error(e), {}, driver.context)
        return 1

    for spec in record.dependency_specifiers:
        log_debug(driver.context, f"Dependency: {spec!r}")
    sys.stdout.write(record.compiled_code)
    if not record.compiled_code.endswith("\n"):
        sys.stdout.write("\n")
    return 0


def _add_entry_arg(parser: argparse.ArgumentParser) -> None:
    """Add the entry module argument."""
    parser.add_argument("entry", help="Entry module path (e.g. 'src/main.js')")


def _add_file_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("file", help="JavaScript source file")


def _add_emit_args(parser: argparse.ArgumentParser) -> None:
    """Add artifact-related arguments."""
    parser.add_argument(
        "--banner",
        help="Emit TEXT as a comment at the top of the bundle",
    )
    parser.add_argument(
        "--no-path-comments",
        action="store_true",
        help="Do not precede each module with a '// <id>: <path>' comment",
    )


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(prog="mbundle", description="Minimal JavaScript module bundler")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    parser.add_argument("-v", "--verbose",
                        action='count',
                        default=0,
                        dest='verbosity',
                        help="Increase verbosity: -v=INFO, -vvv=DEBUG")
    parser.add_argument("-l", "--log",
                        action='store_true',
                        default=False,
                        help="Enable rich log formatting (timestamps, levels)")
    parser.add_argument(
        "-M", "--module-root",
        action="append",
        default=[],
        help="Add a directory searched for bare specifiers (can be passed multiple times; default: $MB_MODULE_PATH)",
    )
    parser.add_argument(
        "-e", "--ext",
        action="append",
        default=[],
        help="Extension probed during resolution (can be passed multiple times; replaces the default .js .mjs .cjs)",
    )
    parser.add_argument(
        "-j", "--jobs",
        type=int,
        default=1,
        help="Number of threads used to read and transform modules (default: 1)",
    )

    ###########################
    # run command
    ###########################
    p_run = subparsers.add_parser("run", help="Bundle and run with Node.js")
    _add_emit_args(p_run)
    p_run.add_argument("--node", help="Node.js executable (default: $MB_NODE or node)")
    _add_entry_arg(p_run)
    p_run.add_argument("args", nargs="*", help="Arguments to pass to the program")
    p_run.set_defaults(func=cmd_run)

    ###########################
    # build command
    ###########################
    p_build = subparsers.add_parser("build", help="Bundle an entry module")
    p_build.add_argument("--output", "-o", help="Output bundle path (default: stdout)")
    _add_emit_args(p_build)
    _add_entry_arg(p_build)
    p_build.set_defaults(func=cmd_build)

    ###########################
    # graph command
    ###########################
    p_graph = subparsers.add_parser("graph", help="Print the dependency graph", aliases=["deps"])
    _add_entry_arg(p_graph)
    p_graph.set_defaults(func=cmd_graph)

    ###########################
    # check command
    ###########################
    p_check = subparsers.add_parser("check", help="Resolve and transform all modules")
    _add_entry_arg(p_check)
    p_check.set_defaults(func=cmd_check)

    ###########################
    # tok command
    ###########################
    p_tok = subparsers.add_parser("tok", help="Dump lexer tokens", aliases=["tokens"])
    p_tok.add_argument("--include-eof", "-I", action="store_true",
                       help="Include the EOF token in the output")
    _add_file_arg(p_tok)
    p_tok.set_defaults(func=cmd_tok)

    ###########################
    # transform command
    ###########################
    p_transform = subparsers.add_parser("transform", help="Print the CommonJS code for one file")
    _add_file_arg(p_transform)
    p_transform.set_defaults(func=cmd_transform)

    args = parser.parse_args(argv)

    rc = args.func(args)
    raise SystemExit(rc)


if __name__ == "__main__":
    main()
