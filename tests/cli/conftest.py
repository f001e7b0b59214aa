"""Shared fixtures for CLI tests."""

from __future__ import annotations

from pathlib import Path

import pytest

CONFIG_YAML = """\
watch:
  path: export.xlsx
destination:
  credentials_path: key.json
  spreadsheet_id: 1AbC
tables:
  first: Runs
  second: Splits
"""


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    """A valid config file; runtime files go to tmp_path/.sheetsync."""
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    return path


@pytest.fixture
def runtime_dir(tmp_path: Path) -> Path:
    return tmp_path / ".sheetsync"
