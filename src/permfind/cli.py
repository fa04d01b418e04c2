from __future__ import annotations

import argparse
import contextlib
import logging
import sys
from collections.abc import Sequence

from .core import Options, Walker, resolve_root
from .errors import ArgumentError, PermfindError, TraversalError
from .perms import parse_permissions

PROG = "pfind"


def usage(prog: str = PROG) -> str:
    return f"Usage: {prog} -d <directory> -p <permissions string> [-h]"


class _Parser(argparse.ArgumentParser):
    def error(self, message: str):  # type: ignore[override]
        raise ArgumentError(f"Arguments could not be parsed. {message[:1].upper()}{message[1:]}.")


def build_parser() -> argparse.ArgumentParser:
    p = _Parser(
        prog=PROG,
        description="Find files whose permission bits match a pattern like rwxr-xr--.",
        add_help=False,
    )
    p.add_argument("-d", "--directory", dest="directory", help="Directory to search")
    p.add_argument(
        "-p",
        "--permissions",
        dest="permissions",
        help="9-character permission pattern, e.g. rw-r--r--",
    )
    p.add_argument("-h", "--help", action="store_true", help="Show usage and exit")
    p.add_argument(
        "-k",
        "--keep-going",
        action="store_true",
        help="Report unreadable entries and continue instead of stopping",
    )
    p.add_argument("-q", "--quiet", action="store_true", help="Suppress error messages")
    p.add_argument("--debug", action="store_true", help="Log every visited entry to stderr")
    return p


_VALUE_OPTIONS = {
    "-d": "--directory",
    "--directory": "--directory",
    "-p": "--permissions",
    "--permissions": "--permissions",
}


def attach_option_values(argv: Sequence[str]) -> list[str]:
    """Glue ``-p VALUE`` into ``--permissions=VALUE`` so values may start with '-'.

    Patterns such as ``---------`` would otherwise be read as options. Like
    getopt, the token after ``-d``/``-p`` is always taken as the value.
    """
    out: list[str] = []
    i = 0
    while i < len(argv):
        arg = argv[i]
        long_opt = _VALUE_OPTIONS.get(arg)
        if long_opt is not None and i + 1 < len(argv):
            out.append(f"{long_opt}={argv[i + 1]}")
            i += 2
            continue
        out.append(arg)
        i += 1
    return out


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    ns, extra = build_parser().parse_known_args(attach_option_values(argv))
    if extra and not ns.help:
        arg = extra[0]
        if arg.startswith("-"):
            raise ArgumentError(f"Unknown option '{arg}' received.")
        raise ArgumentError(f"Unexpected argument '{arg}' received.")
    return ns


def main(argv: Sequence[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        print(usage())
        return 1

    try:
        ns = parse_args(argv)
    except ArgumentError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if ns.help:
        print(usage())
        return 0

    if ns.debug:
        logging.basicConfig(level=logging.DEBUG, format="[DEBUG:%(name)s] %(message)s")

    try:
        if ns.directory is None:
            raise ArgumentError("Required argument -d <directory> not found.")
        if ns.permissions is None:
            raise ArgumentError("Required argument -p <permissions string> not found.")
        root = resolve_root(ns.directory)
        spec = parse_permissions(ns.permissions)
    except PermfindError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    walker = Walker(spec, Options(keep_going=ns.keep_going, quiet=ns.quiet))
    try:
        for path in walker.walk(root):
            sys.stdout.write(path)
            sys.stdout.write("\n")
        sys.stdout.flush()
    except TraversalError:
        # Already reported by the walker; matches printed so far stay printed.
        sys.stdout.flush()
        return 1
    except BrokenPipeError:
        with contextlib.suppress(Exception):
            sys.stdout.close()
        return 0

    return 1 if walker.failures else 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
