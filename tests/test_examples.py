# SPDX-License-Identifier: MIT
"""Test runner for example projects.

Every directory in examples/ is a source tree. Each is generated into a
temporary build directory; when ninja and a C compiler are installed, its
``All`` target is built and ``Hello#run`` (if present) is run.
"""

from __future__ import annotations

import shutil
import subprocess
import sys
from pathlib import Path

import pytest

from buildgraph.main import run_generator
from buildgraph.protocol import GeneratorInput, Mode

EXAMPLES_DIR = Path(__file__).parent.parent / "examples"


def discover_examples() -> list[Path]:
    if not EXAMPLES_DIR.exists():
        return []
    return sorted(d for d in EXAMPLES_DIR.iterdir() if (d / "BUILD.py").exists())


EXAMPLES = discover_examples()


def generate(example_dir: Path, tmp_path: Path, *flags: str) -> Path:
    """Generate the example's build file via the CLI and return its path."""
    ninja_file = tmp_path / "out" / "build.ninja"
    result = subprocess.run(
        [
            sys.executable,
            "-m",
            "buildgraph.cli",
            "--ninja-file",
            str(ninja_file),
            "-o",
            str(tmp_path / "out" / "output.json"),
            "build",
            str(example_dir),
            str(tmp_path / "out" / "build"),
            str(tmp_path),
            *flags,
        ],
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0, f"generation failed:\n{result.stderr}"
    return ninja_file


@pytest.mark.parametrize("example_dir", EXAMPLES, ids=[d.name for d in EXAMPLES])
def test_example_generates(example_dir: Path, tmp_path: Path) -> None:
    inp = GeneratorInput(
        mode=Mode.BUILD,
        source_dir=str(example_dir),
        build_dir_prefix=str(tmp_path / "out" / "build"),
        working_dir=str(tmp_path),
        positive_patterns=[".*"],
    )
    output = run_generator(inp)
    assert output.selected_targets
    assert output.ninja_file.startswith("build __phony__: phony\n")


@pytest.mark.parametrize("example_dir", EXAMPLES, ids=[d.name for d in EXAMPLES])
def test_example_builds(example_dir: Path, tmp_path: Path) -> None:
    if shutil.which("ninja") is None:
        pytest.skip("ninja not available")
    if shutil.which("gcc") is None or shutil.which("g++") is None:
        pytest.skip("gcc not available")

    ninja_file = generate(example_dir, tmp_path, "greeting=Hi")
    build = subprocess.run(
        ["ninja", "-f", str(ninja_file), "All"],
        capture_output=True,
        text=True,
        cwd=tmp_path,
    )
    assert build.returncode == 0, f"ninja failed:\n{build.stdout}\n{build.stderr}"

    if "build Hello#run:" in ninja_file.read_text():
        run = subprocess.run(
            ["ninja", "-f", str(ninja_file), "Hello#run"],
            capture_output=True,
            text=True,
            cwd=tmp_path,
        )
        assert run.returncode == 0
        assert "Hi" in run.stdout


@pytest.mark.parametrize("example_dir", EXAMPLES, ids=[d.name for d in EXAMPLES])
def test_example_is_stable(example_dir: Path, tmp_path: Path) -> None:
    first = generate(example_dir, tmp_path).read_text()
    second = generate(example_dir, tmp_path).read_text()
    assert first == second
