"""Developer tasks powered by Invoke."""

from __future__ import annotations

import pathlib
import subprocess
from typing import Iterable

from invoke import task

ROOT = pathlib.Path(__file__).parent.resolve()
RESULTS_DIR = ROOT / "results"


def _run(command: Iterable[str] | str) -> None:
    cmd = command if isinstance(command, str) else " ".join(command)
    subprocess.run(cmd, shell=True, check=True, cwd=ROOT)


@task
def tests(_context, slow=False):
    """Run the test suite (pass --slow to include slow tests)."""
    marker = [] if slow else ["-m", "'not slow'"]
    _run(["uv", "run", "pytest", "tests/", *marker])


@task
def coverage(_context):
    """Run tests under coverage and write reports to results/."""
    RESULTS_DIR.mkdir(exist_ok=True)
    _run(["uv", "run", "coverage", "erase"])
    _run(
        [
            "uv",
            "run",
            "coverage",
            "run",
            "--source=src/clientmcp",
            "-m",
            "pytest",
            "tests/",
            "--junitxml=results/pytest.xml",
        ]
    )
    _run(["uv", "run", "coverage", "report"])
    _run(["uv", "run", "coverage", "html", "-d", "results/htmlcov"])


@task
def serve(_context, transport="stdio", port=8000, config=""):
    """Start the client-aware MCP server."""
    cmd = ["uv", "run", "clientmcp", "--transport", transport]
    if transport != "stdio":
        cmd += ["--port", str(port)]
    if config:
        cmd += ["--config", config]
    _run(cmd)


@task
def build(_context):
    """Build distribution artifacts."""
    _run(["uv", "build"])
