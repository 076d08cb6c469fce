import json
import os
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[2]


def _run_cli(args, cwd=None, timeout=60):
    """
    Run the CLI as a subprocess: python -m flatfield.cli <args>
    Returns CompletedProcess with stdout/stderr text captured.
    """
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(REPO_ROOT), env.get("PYTHONPATH")]))
    cmd = [sys.executable, "-m", "flatfield.cli"] + list(map(str, args))
    return subprocess.run(cmd, cwd=cwd, env=env, capture_output=True, text=True, timeout=timeout)


@pytest.fixture()
def run_cli():
    return _run_cli


@pytest.fixture()
def dataset_dir(tmp_path: Path) -> Path:
    """
    Copy the embedded dataset into a temporary directory and return its path.
    """
    src = Path(__file__).parent / "assets" / "dataset"
    dst = tmp_path / "dataset"
    shutil.copytree(src, dst)
    return dst


@pytest.fixture()
def out_dir(tmp_path: Path) -> Path:
    d = tmp_path / "out"
    d.mkdir(parents=True, exist_ok=True)
    return d


@pytest.fixture()
def load_json():
    def _load(p: Path):
        assert p.exists(), f"Expected file missing: {p}"
        with p.open("r") as f:
            return json.load(f)
    return _load


@pytest.fixture()
def load_jsonl():
    def _load(p: Path):
        assert p.exists(), f"Expected file missing: {p}"
        return [json.loads(line) for line in p.read_text().splitlines() if line.strip()]
    return _load


def assert_exit_ok(proc):
    assert proc.returncode == 0, f"Non-zero exit:\nSTDOUT:\n{proc.stdout}\nSTDERR:\n{proc.stderr}"


@pytest.fixture()
def exit_ok():
    return assert_exit_ok
