"""Tests for the starter config template."""

from __future__ import annotations

from pathlib import Path

import yaml

from sheetsync.config.loader import load_config
from sheetsync.config.template import (
    PLACEHOLDER_SPREADSHEET_ID,
    render_config_template,
    write_config_template,
)


class TestRenderConfigTemplate:
    def test_given_defaults_when_rendered_then_valid_yaml(self) -> None:
        """The template parses and carries every required field."""
        data = yaml.safe_load(render_config_template())

        assert data["watch"]["path"] == "export.xlsx"
        assert data["destination"]["spreadsheet_id"] == PLACEHOLDER_SPREADSHEET_ID
        assert data["tables"] == {"first": "Sheet1", "second": "Sheet2"}
        assert data["logging"]["level"] == "INFO"

    def test_given_values_when_rendered_then_substituted(self) -> None:
        text = render_config_template(
            watch_path="/data/results.xlsx",
            spreadsheet_id="1AbC",
            first_table="Runs",
            second_table="Splits",
        )
        data = yaml.safe_load(text)

        assert data["watch"]["path"] == "/data/results.xlsx"
        assert data["tables"] == {"first": "Runs", "second": "Splits"}
        assert text.startswith("# SheetSync configuration")


class TestWriteConfigTemplate:
    def test_given_written_template_when_loaded_then_valid_config(self, tmp_path: Path) -> None:
        """A freshly written template loads without errors."""
        # Given
        path = tmp_path / "nested" / "config.yaml"

        # When
        write_config_template(path, spreadsheet_id="1AbC")
        config = load_config(path)

        # Then
        assert config.destination.spreadsheet_id == "1AbC"
        assert config.watch.path == str((tmp_path / "nested" / "export.xlsx").resolve())
