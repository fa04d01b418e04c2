"""spfind: run pfind, sort its output, then report how many paths matched.

The finder, ``sort`` and this process run concurrently, connected by two pipes:
pfind -> sort -> spfind. A first sorted line starting with ``Usage:`` means
pfind printed its banner instead of results, so no total is printed.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import BinaryIO

from .cli import usage

logger = logging.getLogger(__name__)

PROG = "spfind"
USAGE_PREFIX = b"Usage:"


def finder_command() -> list[str]:
    return [sys.executable, "-m", "permfind.cli"]


def sort_command() -> list[str]:
    return [shutil.which("sort") or "/usr/bin/sort"]


def _finder_env() -> dict[str, str] | None:
    # Installed copies import normally; a src/ checkout needs src/ on the path.
    src = Path(__file__).resolve().parent.parent
    if src.name != "src" or not (src.parent / "pyproject.toml").is_file():
        return None
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(p for p in (str(src), env.get("PYTHONPATH")) if p)
    return env


def run_pipeline(
    argv: Sequence[str],
    out: BinaryIO,
    finder_cmd: Sequence[str] | None = None,
    sort_cmd: Sequence[str] | None = None,
) -> int:
    finder_cmd = list(finder_cmd or finder_command())
    sort_cmd = list(sort_cmd or sort_command())

    try:
        finder = subprocess.Popen([*finder_cmd, *argv], stdout=subprocess.PIPE, env=_finder_env())
    except OSError as e:
        print(f"Error: Failed to start pfind. {e.strerror or e}.", file=sys.stderr)
        return 1
    assert finder.stdout is not None

    try:
        sorter = subprocess.Popen(sort_cmd, stdin=finder.stdout, stdout=subprocess.PIPE)
    except OSError as e:
        finder.kill()
        finder.wait()
        finder.stdout.close()
        print(f"Error: Failed to start sort. {e.strerror or e}.", file=sys.stderr)
        return 1
    assert sorter.stdout is not None

    # sort holds the read end now; dropping ours lets pfind see EPIPE if sort dies.
    finder.stdout.close()

    line_count = 0
    is_usage = False
    try:
        with sorter.stdout:
            for line in sorter.stdout:
                if line_count == 0 and line.startswith(USAGE_PREFIX):
                    is_usage = True
                line_count += 1
                out.write(line)
        out.flush()
    finally:
        finder_rc = finder.wait()
        sort_rc = sorter.wait()
    logger.debug("pfind exited %d, sort exited %d, %d lines", finder_rc, sort_rc, line_count)
    if finder_rc != 0 or sort_rc != 0:
        return 1

    if not is_usage:
        out.write(f"Total matches: {line_count}\n".encode())
        out.flush()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        print(usage(PROG))
        return 0
    if "--debug" in argv:
        logging.basicConfig(level=logging.DEBUG, format="[DEBUG:%(name)s] %(message)s")

    try:
        return run_pipeline(argv, sys.stdout.buffer)
    except BrokenPipeError:
        with contextlib.suppress(Exception):
            sys.stdout.close()
        return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
