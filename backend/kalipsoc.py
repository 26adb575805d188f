#!/usr/bin/env python3
"""
kalipsoc.py
Command line driver: reads a .kpso file, writes the generated C next to it
and builds a native executable with an external C compiler.

    kalipsoc program.kpso        -> program.c, program (program.exe on Windows)
"""

import argparse
import logging
import os
import platform
import subprocess
import sys

import kalipso

log = logging.getLogger("kalipso")

SOURCE_EXT = ".kpso"
C_EXT = ".c"
DEFAULT_CC = "gcc"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_BUILD_FAILED = 2


class BuildError(Exception):
    """The backend compiler could not produce an executable."""

    def __init__(self, message, stderr=""):
        super().__init__(message)
        self.stderr = stderr


def output_paths(source_path, platform_name=None):
    base, ext = os.path.splitext(source_path)
    if ext != SOURCE_EXT:
        # unknown extension stays, .c is appended
        base = source_path
    platform_name = platform_name or platform.system()
    exe = base + ".exe" if platform_name == "Windows" else base
    return base + C_EXT, exe


def write_program(path, text):
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(text)


def build_executable(c_path, exe_path, cc=DEFAULT_CC):
    cmd = [cc, c_path, "-o", exe_path]
    log.debug("running: %s", " ".join(cmd))
    try:
        proc = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise BuildError(f"could not run {cc}: {exc}") from exc
    if proc.returncode != 0:
        raise BuildError(f"{cc} exited with status {proc.returncode}", proc.stderr or "")


_handlers = []

def configure_logging(verbose=False):
    # progress goes to stdout, warnings and errors to stderr;
    # rebinding on every call picks up the current sys.stdout/sys.stderr
    for h in _handlers:
        log.removeHandler(h)
    _handlers.clear()
    fmt = logging.Formatter("[%(levelname)s] %(message)s")
    out = logging.StreamHandler(sys.stdout)
    out.addFilter(lambda record: record.levelno < logging.WARNING)
    err = logging.StreamHandler(sys.stderr)
    err.setLevel(logging.WARNING)
    for h in (out, err):
        h.setFormatter(fmt)
        log.addHandler(h)
        _handlers.append(h)
    log.setLevel(logging.DEBUG if verbose else logging.INFO)
    log.propagate = False


def make_parser():
    parser = argparse.ArgumentParser(prog="kalipsoc", description="Kalipso to C compiler")
    parser.add_argument("source", help=f"path to a Kalipso source file ({SOURCE_EXT})")
    parser.add_argument("--cc", default=os.environ.get("KALIPSO_CC", DEFAULT_CC),
                        help="C compiler used to build the executable (default: $KALIPSO_CC or gcc)")
    parser.add_argument("-S", "--emit-only", action="store_true",
                        help="only write the generated C file, do not build it")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every translated line")
    return parser


def main(argv=None):
    parser = make_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        # argparse exits with 2 on usage errors; usage problems are plain errors here
        return EXIT_OK if exc.code == 0 else EXIT_ERROR
    configure_logging(args.verbose)

    try:
        with open(args.source, "r", encoding="utf-8", newline="") as fh:
            code = fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Failed to open input file: {exc}", file=sys.stderr)
        return EXIT_ERROR

    try:
        program = kalipso.translate(code, verbose=args.verbose)
    except kalipso.CompileError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    c_path, exe_path = output_paths(args.source)
    try:
        write_program(c_path, program)
    except OSError as exc:
        print(f"Failed to create output file: {exc}", file=sys.stderr)
        return EXIT_ERROR
    log.info("Generated C code: %s", c_path)
    if args.emit_only:
        return EXIT_OK

    log.info("Compiling...")
    try:
        build_executable(c_path, exe_path, args.cc)
    except BuildError as e:
        log.error("Compilation failed! %s", e)
        if e.stderr:
            log.error("%s", e.stderr.rstrip())
        return EXIT_BUILD_FAILED

    log.info("Success! Created executable: %s", exe_path)
    display = exe_path if os.path.isabs(exe_path) else os.path.join(".", exe_path)
    log.info("Run with: %s", display)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
