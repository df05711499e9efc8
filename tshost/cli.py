import argparse
import json
import logging
import os
import sys
import time
from typing import List, Optional

from .build import CompileRequest, IncrementalCompilerHost
from .exceptions import TsHostError
from .session_registry import SessionRegistry
from .utils import TerminalColors, output_path

logger = logging.getLogger(__name__)


class ConsoleCallbacks:
    """Build callbacks that report straight to the terminal."""

    def __init__(self):
        self.dependencies: List[str] = []
        self.errors: List[str] = []

    def add_dependency(self, file_name: str) -> None:
        if file_name not in self.dependencies:
            logger.debug("Watching %s", file_name)
            self.dependencies.append(file_name)

    def emit_warning(self, message: str) -> None:
        print(f"{TerminalColors.YELLOW}WARNING: {message}{TerminalColors.RESET}", file=sys.stderr)

    def emit_error(self, message: str) -> None:
        self.errors.append(message)
        print(f"{TerminalColors.RED}ERROR: {message}{TerminalColors.RESET}", file=sys.stderr)


def build_query(config_file: Optional[str], declaration: bool) -> str:
    """Encodes the command line settings the same way a build tool passes loader options."""
    query = {}
    if config_file:
        query["configFile"] = os.path.abspath(config_file)
    if declaration:
        query["compilerOptions"] = {"declaration": True}
    return "?" + json.dumps(query, sort_keys=True) if query else ""


def describe(diagnostic) -> str:
    """Prefixes the file for positioned diagnostics; bare ones are their message alone."""
    if diagnostic.file:
        return f"{diagnostic.file}{diagnostic.message}"
    return diagnostic.message


def _write(path: str, text: str):
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


def main(argv: Optional[List[str]] = None):
    start_time = time.perf_counter()

    parser = argparse.ArgumentParser(description="Compile TypeScript files through an incremental compilation session.")
    parser.add_argument("files", nargs="+", help="The TypeScript files to compile.")
    parser.add_argument("-p", "--project", dest="config_file", help="Path to the tsconfig.json to use.")
    parser.add_argument("-o", "--outdir", dest="out_dir", help="Directory for the emitted files. Defaults to beside each source.")
    parser.add_argument("--source-map", action="store_true", help="Also write a .js.map for every emitted file.")
    parser.add_argument("--declaration", action="store_true", help="Also write a .d.ts for every emitted file.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log cache and session activity.")

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

    context = os.path.dirname(os.path.abspath(args.config_file)) if args.config_file else os.getcwd()
    query = build_query(args.config_file, args.declaration)
    host = IncrementalCompilerHost(SessionRegistry())
    callbacks = ConsoleCallbacks()
    failed = False
    errors = []

    try:
        for file_name in args.files:
            source_path = os.path.abspath(file_name)
            print(f"--- Compiling {file_name} ---")

            try:
                with open(source_path, "r", encoding="utf-8") as f:
                    content = f.read()
            except FileNotFoundError:
                print(f"{TerminalColors.RED}ERROR: Source file '{file_name}' not found.{TerminalColors.RESET}", file=sys.stderr)
                failed = True
                continue

            result = host.compile(CompileRequest(source_path, content, args.source_map, context, query), callbacks)
            if not result.ok:
                print(f"{TerminalColors.RED}ERROR: {result.error}{TerminalColors.RESET}", file=sys.stderr)
                failed = True
                continue

            javascript_path = output_path(source_path, ".js", args.out_dir)
            _write(javascript_path, result.code)
            if result.source_map is not None:
                _write(javascript_path + ".map", json.dumps(result.source_map))
            if result.declaration is not None:
                _write(output_path(source_path, ".d.ts", args.out_dir), result.declaration)
            print(f"Output written to {javascript_path}")

        warnings, errors = host.collect_diagnostics()
        for warning in warnings:
            callbacks.emit_warning(describe(warning))
        for error in errors:
            callbacks.emit_error(describe(error))

    except TsHostError as e:
        print(f"\n{TerminalColors.RED}--- COMPILATION ERROR ---\n{e}{TerminalColors.RESET}", file=sys.stderr)
        failed = True

    finally:
        duration = time.perf_counter() - start_time
        print(f"\n{TerminalColors.CYAN}--- Total Execution Time: {duration:.4f} seconds ---{TerminalColors.RESET}")

    if failed or errors:
        print(f"\n{TerminalColors.RED}--- Compilation Failed ---{TerminalColors.RESET}", file=sys.stderr)
        sys.exit(1)

    print(f"\n{TerminalColors.GREEN}--- Compilation Successful ---{TerminalColors.RESET}")


if __name__ == "__main__":
    main()
