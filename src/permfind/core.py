from __future__ import annotations

import logging
import os
import stat
import sys
from collections.abc import Iterator
from dataclasses import dataclass

from .errors import (
    PathResolutionError,
    TraversalError,
    cannot_open_message,
    cannot_stat_message,
)
from .perms import PermissionSpec, format_permissions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Options:
    keep_going: bool = False  # report and skip failing entries instead of aborting
    quiet: bool = False


def resolve_root(directory: str) -> str:
    """Canonicalize ``directory`` and check that it can be listed."""
    try:
        path = os.path.realpath(directory, strict=True)
    except OSError as e:
        raise PathResolutionError(cannot_stat_message(directory, e)) from e

    try:
        with os.scandir(path):
            pass
    except OSError as e:
        raise PathResolutionError(cannot_open_message(path, e)) from e
    return path


def join_path(parent: str, name: str) -> str:
    if parent.endswith(os.sep):
        return parent + name
    return parent + os.sep + name


class Walker:
    """Depth-first, pre-order permission walk from a single root.

    The root is stat'ed following symlinks; every other entry is lstat'ed, so
    symlinks below the root are judged by their own mode and never descended.
    Failures either abort the walk (default) or, with ``keep_going``, are
    reported, collected in ``failures`` and skipped.
    """

    def __init__(self, spec: PermissionSpec, options: Options | None = None) -> None:
        self.spec = spec
        self.options = options or Options()
        self.failures: list[TraversalError] = []

    def walk(self, root: str) -> Iterator[str]:
        self.failures = []
        stack: list[tuple[str, Iterator[os.DirEntry[str]]]] = []

        try:
            mode = self._mode(root, follow_symlinks=True)
            if mode is None:
                return
            if self._check(root, mode):
                yield root
            if stat.S_ISDIR(mode):
                self._push_dir(stack, root)

            while stack:
                cur_path, it = stack[-1]
                try:
                    entry = next(it, None)
                except OSError as e:
                    stack.pop()
                    it.close()  # type: ignore[attr-defined]
                    self._fail(TraversalError.cannot_open(cur_path, e))
                    continue
                if entry is None:
                    stack.pop()
                    it.close()  # type: ignore[attr-defined]
                    continue

                path = join_path(cur_path, entry.name)
                mode = self._mode(path, follow_symlinks=False)
                if mode is None:
                    continue
                if self._check(path, mode):
                    yield path
                if stat.S_ISDIR(mode):
                    self._push_dir(stack, path)
        finally:
            for _, it in stack:
                it.close()  # type: ignore[attr-defined]

    def _check(self, path: str, mode: int) -> bool:
        matched = self.spec.matches(mode)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s %s %s", format_permissions(mode), "+" if matched else "-", path)
        return matched

    def _mode(self, path: str, follow_symlinks: bool) -> int | None:
        # Read fresh every time; DirEntry.stat() caches.
        try:
            return os.stat(path, follow_symlinks=follow_symlinks).st_mode
        except OSError as e:
            self._fail(TraversalError.cannot_stat(path, e))
            return None

    def _push_dir(self, stack: list[tuple[str, Iterator[os.DirEntry[str]]]], path: str) -> None:
        try:
            it = os.scandir(path)
        except OSError as e:
            self._fail(TraversalError.cannot_open(path, e))
            return
        stack.append((path, it))

    def _fail(self, err: TraversalError) -> None:
        self.failures.append(err)
        if not self.options.quiet:
            print(f"Error: {err}", file=sys.stderr)
        if not self.options.keep_going:
            raise err
        logger.debug("skipping %s after error", err.path)


def walk(root: str, spec: PermissionSpec, options: Options | None = None) -> Iterator[str]:
    return Walker(spec, options).walk(root)
