"""Tests for the Google Sheets sink with a mocked API client."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from googleapiclient.errors import HttpError

from sheetsync.core.errors import ErrorCode, SinkError
from sheetsync.tables.base import SyncSession
from sheetsync.tables.sheets import GoogleSheetsSink, quote_title


def _http_error(status: int, message: str) -> HttpError:
    resp = MagicMock(status=status, reason="error")
    content = json.dumps({"error": {"message": message}}).encode()
    return HttpError(resp, content)


def _service(titles: list[str]) -> MagicMock:
    service = MagicMock()
    service.spreadsheets.return_value.get.return_value.execute.return_value = {
        "sheets": [{"properties": {"title": t}} for t in titles]
    }
    return service


def _session(service: MagicMock) -> SyncSession:
    return SyncSession(service=service, credentials_path="/k.json")


class TestQuoteTitle:
    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("Sheet1", "'Sheet1'"),
            ("Run1", "'Run1'"),
            ("Lap times", "'Lap times'"),
            ("Bob's", "'Bob''s'"),
        ],
    )
    def test_quote(self, title: str, expected: str) -> None:
        assert quote_title(title) == expected


class TestConnect:
    """Credential loading and client construction."""

    def test_given_missing_key_when_connect_then_credentials_invalid(
        self, tmp_path: Path
    ) -> None:
        with pytest.raises(SinkError) as exc_info:
            GoogleSheetsSink().connect(str(tmp_path / "missing.json"))

        assert exc_info.value.code == ErrorCode.SINK_CREDENTIALS_INVALID

    def test_given_bad_json_when_connect_then_credentials_invalid(self, tmp_path: Path) -> None:
        key = tmp_path / "key.json"
        key.write_text("{oops")

        with pytest.raises(SinkError) as exc_info:
            GoogleSheetsSink().connect(str(key))

        assert "invalid JSON" in exc_info.value.message

    @patch("sheetsync.tables.sheets.build")
    @patch("sheetsync.tables.sheets.service_account.Credentials.from_service_account_info")
    def test_given_valid_key_when_connect_then_session(
        self, mock_creds: MagicMock, mock_build: MagicMock, tmp_path: Path
    ) -> None:
        """A valid key yields a session bound to the built client."""
        # Given
        key = tmp_path / "key.json"
        key.write_text(json.dumps({"type": "service_account"}))
        mock_creds.return_value.service_account_email = "bot@project.iam.gserviceaccount.com"

        # When
        session = GoogleSheetsSink().connect(str(key))

        # Then
        assert session.service is mock_build.return_value
        assert session.account == "bot@project.iam.gserviceaccount.com"
        mock_build.assert_called_once_with(
            "sheets", "v4", credentials=mock_creds.return_value, cache_discovery=False
        )

    @patch("sheetsync.tables.sheets.service_account.Credentials.from_service_account_info")
    def test_given_malformed_key_when_connect_then_credentials_invalid(
        self, mock_creds: MagicMock, tmp_path: Path
    ) -> None:
        key = tmp_path / "key.json"
        key.write_text("{}")
        mock_creds.side_effect = ValueError("missing fields")

        with pytest.raises(SinkError) as exc_info:
            GoogleSheetsSink().connect(str(key))

        assert exc_info.value.code == ErrorCode.SINK_CREDENTIALS_INVALID


class TestReplaceTable:
    """Clear-then-write replacement."""

    def test_given_rows_when_replaced_then_clear_then_update(self) -> None:
        # Given
        service = _service(["Runs", "Splits"])
        values = service.spreadsheets.return_value.values.return_value

        # When
        GoogleSheetsSink().replace_table(_session(service), "sid", "Runs", [["a", "1"], ["b"]])

        # Then
        values.clear.assert_called_once_with(spreadsheetId="sid", range="'Runs'", body={})
        values.update.assert_called_once_with(
            spreadsheetId="sid",
            range="'Runs'",
            valueInputOption="USER_ENTERED",
            body={"majorDimension": "ROWS", "values": [["a", "1"], ["b"]]},
        )

    def test_given_empty_rows_when_replaced_then_only_cleared(self) -> None:
        """An empty table leaves the remote sheet empty."""
        service = _service(["Runs"])
        values = service.spreadsheets.return_value.values.return_value

        GoogleSheetsSink().replace_table(_session(service), "sid", "Runs", [])

        values.clear.assert_called_once()
        values.update.assert_not_called()

    def test_given_missing_sheet_when_replaced_then_not_found_and_untouched(self) -> None:
        service = _service(["Other"])
        values = service.spreadsheets.return_value.values.return_value

        with pytest.raises(SinkError) as exc_info:
            GoogleSheetsSink().replace_table(_session(service), "sid", "Runs", [["a"]])

        assert exc_info.value.code == ErrorCode.SINK_TABLE_NOT_FOUND
        values.clear.assert_not_called()

    def test_given_clear_rejected_when_replaced_then_clear_failed(self) -> None:
        """A failed clear stops before any write."""
        # Given
        service = _service(["Runs"])
        values = service.spreadsheets.return_value.values.return_value
        values.clear.return_value.execute.side_effect = _http_error(429, "Quota exceeded")

        # When
        with pytest.raises(SinkError) as exc_info:
            GoogleSheetsSink().replace_table(_session(service), "sid", "Runs", [["a"]])

        # Then
        assert exc_info.value.code == ErrorCode.SINK_CLEAR_FAILED
        assert exc_info.value.details["status"] == 429
        assert "Quota exceeded" in exc_info.value.message
        values.update.assert_not_called()

    def test_given_update_rejected_when_replaced_then_write_failed(self) -> None:
        service = _service(["Runs"])
        values = service.spreadsheets.return_value.values.return_value
        values.update.return_value.execute.side_effect = _http_error(403, "Forbidden")

        with pytest.raises(SinkError) as exc_info:
            GoogleSheetsSink().replace_table(_session(service), "sid", "Runs", [["a"]])

        assert exc_info.value.code == ErrorCode.SINK_WRITE_FAILED
        assert exc_info.value.details["status"] == 403

    def test_given_title_with_spaces_when_replaced_then_range_quoted(self) -> None:
        service = _service(["Lap times"])
        values = service.spreadsheets.return_value.values.return_value

        GoogleSheetsSink().replace_table(_session(service), "sid", "Lap times", [])

        assert values.clear.call_args.kwargs["range"] == "'Lap times'"

    def test_given_cell_like_title_when_replaced_then_sheet_range_not_cell(self) -> None:
        """A title such as Run1 addresses the sheet, never cell RUN1 of the first sheet."""
        # Given
        service = _service(["Sheet0", "Run1"])
        values = service.spreadsheets.return_value.values.return_value

        # When
        GoogleSheetsSink().replace_table(_session(service), "sid", "Run1", [["a"]])

        # Then
        assert values.clear.call_args.kwargs["range"] == "'Run1'"
        assert values.update.call_args.kwargs["range"] == "'Run1'"

    def test_given_no_session_when_replaced_then_not_connected(self) -> None:
        with pytest.raises(SinkError) as exc_info:
            GoogleSheetsSink().replace_table(None, "sid", "Runs", [])  # type: ignore[arg-type]

        assert exc_info.value.code == ErrorCode.SINK_NOT_CONNECTED
