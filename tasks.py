"""Developer tasks powered by Invoke."""

from __future__ import annotations

import pathlib
import subprocess
from typing import Iterable

from invoke import task

ROOT = pathlib.Path(__file__).parent.resolve()
RESULTS_DIR = ROOT / "results"


def _run(command: Iterable[str] | str) -> None:
    if isinstance(command, str):
        cmd = command
    else:
        cmd = " ".join(command)
    subprocess.run(cmd, shell=True, check=True, cwd=ROOT)


def _ensure_results_dir() -> None:
    RESULTS_DIR.mkdir(exist_ok=True)


@task
def tests(_context):
    """Run test suite without coverage (quick feedback)."""
    _run(["pytest", "tests/"])


@task
def coverage(_context):
    """Run tests under coverage and generate reports."""
    _ensure_results_dir()
    _run(["coverage", "erase"])
    _run(["coverage", "run", "-m", "pytest", "tests/", "--junitxml=results/pytest.xml"])
    _run(["coverage", "combine"])
    _run(["coverage", "report"])
    _run(["coverage", "html", "-d", "results/htmlcov"])


@task
def lint(_context):
    """Run formatting and type checks."""
    _run(["black", "--check", "src", "tests"])
    _run(["mypy", "src/modeleyes"])


@task
def serve(_context, transport="stdio", port=None):
    """Start the MCP server."""
    command = ["modeleyes", "--transport", transport]
    if port:
        command += ["--port", str(port)]
    _run(command)
