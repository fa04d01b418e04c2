from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture
def tree(tmp_path: Path) -> Path:
    """t/ (rwx------) holding a (rw-r--r--) and b/ (rwxr-xr-x) holding c (rw-------)."""
    root = tmp_path / "t"
    (root / "b").mkdir(parents=True)
    (root / "a").write_bytes(b"")
    (root / "b" / "c").write_bytes(b"")
    os.chmod(root / "a", 0o644)
    os.chmod(root / "b" / "c", 0o600)
    os.chmod(root / "b", 0o755)
    os.chmod(root, 0o700)
    return Path(os.path.realpath(root))


@pytest.fixture
def fail_path(monkeypatch):
    """Make ``os.<func>`` raise EACCES for one path; returns the installer."""

    def install(func_name: str, target: Path) -> None:
        real = getattr(os, func_name)
        target_str = str(target)

        def fake(path, *args, **kwargs):
            if os.fspath(path) == target_str:
                raise PermissionError(13, "Permission denied", target_str)
            return real(path, *args, **kwargs)

        monkeypatch.setattr(os, func_name, fake)

    return install
