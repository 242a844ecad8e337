"""Tests for the command-line entry point."""

import subprocess
import sys
from pathlib import Path

import pytest

INDEXER_DIR = Path(__file__).resolve().parent.parent


@pytest.mark.parametrize("module", ["main", "btc", "btc.monitor", "stats.projector"])
def test_module_imports_in_fresh_interpreter(module):
    """Each package must import cleanly no matter which one is loaded first."""
    result = subprocess.run(
        [sys.executable, "-c", f"import {module}"],
        cwd=INDEXER_DIR,
        capture_output=True,
        text=True,
    )

    assert result.returncode == 0, result.stderr


def test_no_command_prints_help_and_exits(monkeypatch, capsys):
    import main

    monkeypatch.setattr(sys, "argv", ["campaign-indexer"])

    with pytest.raises(SystemExit) as exc:
        main.main()

    assert exc.value.code == 1
    assert "campaign-stats" in capsys.readouterr().out
