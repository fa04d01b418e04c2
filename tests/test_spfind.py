from __future__ import annotations

import io
import os
import shutil
import subprocess
from pathlib import Path

import pytest

from permfind import spfind
from permfind.spfind import main, run_pipeline

pytestmark = pytest.mark.skipif(shutil.which("sort") is None, reason="needs sort(1)")


def run(argv: list[str], **kwargs) -> tuple[int, list[str]]:
    out = io.BytesIO()
    rc = run_pipeline(argv, out, **kwargs)
    return rc, out.getvalue().decode().splitlines()


def test_sorted_output_with_total(tree: Path):
    for name in ("x3", "x1", "x2"):
        (tree / name).write_bytes(b"")
        os.chmod(tree / name, 0o640)

    rc, out = run(["-d", str(tree), "-p", "rw-r-----"])
    assert rc == 0
    assert out == [str(tree / n) for n in ("x1", "x2", "x3")] + ["Total matches: 3"]


def test_single_match(tree: Path):
    rc, out = run(["-d", str(tree), "-p", "rw-------"])
    assert rc == 0
    assert out == [str(tree / "b" / "c"), "Total matches: 1"]


def test_no_matches(tree: Path):
    rc, out = run(["-d", str(tree), "-p", "rwxrwxrwx"])
    assert rc == 0
    assert out == ["Total matches: 0"]


def test_usage_suppresses_total():
    rc, out = run(["-h"])
    assert rc == 0
    assert len(out) == 1
    assert out[0].startswith("Usage:")


def test_finder_failure_omits_total(tree: Path):
    rc, out = run(["-d", str(tree), "-p", "rwxrwxrwz"])
    assert rc == 1
    assert out == []


def test_missing_sort(tree: Path, tmp_path: Path, capsys):
    rc, out = run(["-d", str(tree), "-p", "rw-------"], sort_cmd=[str(tmp_path / "no-sort")])
    assert rc == 1
    assert out == []
    assert capsys.readouterr().err.startswith("Error: Failed to start sort.")


def test_main_without_arguments(capsys):
    assert main([]) == 0
    assert capsys.readouterr().out == "Usage: spfind -d <directory> -p <permissions string> [-h]\n"


def test_pattern_starting_with_dash(tree: Path):
    (tree / "wo").write_bytes(b"")
    os.chmod(tree / "wo", 0o200)

    rc, out = run(["-d", str(tree), "-p", "-w-------"])
    assert rc == 0
    assert out == [str(tree / "wo"), "Total matches: 1"]


@pytest.mark.skipif(os.geteuid() == 0, reason="root can read any directory")
@pytest.mark.parametrize("keep_going", [False, True])
def test_walk_failure_keeps_sorted_output(tree: Path, keep_going):
    for name in ("m2", "m1"):
        (tree / name).write_bytes(b"")
        os.chmod(tree / name, 0o640)
    (tree / "locked").mkdir()
    os.chmod(tree / "locked", 0o000)

    argv = ["-d", str(tree), "-p", "rw-r-----"] + (["-k"] if keep_going else [])
    try:
        rc, out = run(argv)
    finally:
        os.chmod(tree / "locked", 0o755)

    expected = [str(tree / "m1"), str(tree / "m2")]
    assert rc == 1
    assert not any(line.startswith("Total matches:") for line in out)
    if keep_going:
        assert out == expected
    else:
        assert out == sorted(out)
        assert set(out) <= set(expected)


def test_children_reaped_when_output_breaks(tree: Path, monkeypatch):
    started: list[subprocess.Popen] = []
    real_popen = subprocess.Popen

    class RecordingPopen(real_popen):  # type: ignore[misc, valid-type]
        def __init__(self, *args, **kwargs) -> None:
            super().__init__(*args, **kwargs)
            started.append(self)

    class BrokenOut(io.BytesIO):
        def write(self, data) -> int:
            raise BrokenPipeError(32, "Broken pipe")

    monkeypatch.setattr(subprocess, "Popen", RecordingPopen)
    with pytest.raises(BrokenPipeError):
        run_pipeline(["-d", str(tree), "-p", "rw-------"], BrokenOut())

    assert len(started) == 2
    assert all(p.returncode is not None for p in started)


def test_finder_env_only_for_source_checkout(tmp_path: Path, monkeypatch):
    installed = tmp_path / "site-packages" / "permfind" / "spfind.py"
    monkeypatch.setattr(spfind, "__file__", str(installed))
    assert spfind._finder_env() is None

    repo = tmp_path / "repo"
    (repo / "src").mkdir(parents=True)
    (repo / "pyproject.toml").write_text("")
    monkeypatch.setattr(spfind, "__file__", str(repo / "src" / "permfind" / "spfind.py"))
    monkeypatch.setenv("PYTHONPATH", "/elsewhere")
    env = spfind._finder_env()
    assert env is not None
    assert env["PYTHONPATH"] == os.pathsep.join([str((repo / "src").resolve()), "/elsewhere"])
