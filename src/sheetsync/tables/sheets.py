"""Google Sheets table sink.

Authenticates with a service-account key and replaces a sheet's contents in
two requests: clear the sheet, then write every row with USER_ENTERED input,
so formulas, numbers and dates are parsed as if typed into the sheet.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from sheetsync.core.errors import SinkError
from sheetsync.tables.base import SyncSession

SCOPES: tuple[str, ...] = ("https://www.googleapis.com/auth/spreadsheets",)
VALUE_INPUT_OPTION = "USER_ENTERED"


def quote_title(title: str) -> str:
    """Return a sheet title quoted for use as an A1 range.

    Always quoted: a bare title like ``Run1`` or ``Q1`` is also a cell
    reference and would resolve against the first sheet.
    """
    escaped = title.replace("'", "''")
    return f"'{escaped}'"


def _http_status(exc: HttpError) -> int:
    status = getattr(exc, "status_code", None)
    if status is None:
        status = getattr(getattr(exc, "resp", None), "status", 0)
    try:
        return int(status)
    except (TypeError, ValueError):
        return 0


def _http_reason(exc: HttpError) -> str:
    reason = getattr(exc, "reason", None)
    if reason:
        return str(reason)
    return str(exc)


@dataclass
class GoogleSheetsSink:
    """TableSink for the Google Sheets v4 API."""

    logger: structlog.stdlib.BoundLogger = field(
        default_factory=lambda: structlog.get_logger().bind(logger="sheets")
    )

    def connect(self, credentials_path: str) -> SyncSession:
        self.logger.info("sheets_connecting", credentials_path=credentials_path)

        path = Path(credentials_path).expanduser()
        try:
            info = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise SinkError.credentials_invalid(credentials_path, e.strerror or str(e)) from e
        except json.JSONDecodeError as e:
            raise SinkError.credentials_invalid(credentials_path, f"invalid JSON: {e}") from e

        try:
            credentials = service_account.Credentials.from_service_account_info(
                info, scopes=list(SCOPES)
            )
        except (ValueError, KeyError) as e:
            raise SinkError.credentials_invalid(credentials_path, str(e)) from e

        try:
            service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        except (GoogleAuthError, HttpError) as e:
            raise SinkError.auth_failed(str(e)) from e

        account = getattr(credentials, "service_account_email", None)
        self.logger.info("sheets_connected", account=account)
        return SyncSession(service=service, credentials_path=credentials_path, account=account)

    def _sheet_titles(self, service: Any, spreadsheet_id: str) -> list[str]:
        request = service.spreadsheets().get(
            spreadsheetId=spreadsheet_id,
            includeGridData=False,
            fields="sheets.properties.title",
        )
        result = request.execute()
        return [sheet["properties"]["title"] for sheet in result.get("sheets", [])]

    def replace_table(
        self,
        session: SyncSession,
        spreadsheet_id: str,
        table: str,
        rows: Sequence[Sequence[str]],
    ) -> None:
        if session is None or session.service is None:
            raise SinkError.not_connected()
        service = session.service

        self.logger.info("sheet_update_started", spreadsheet_id=spreadsheet_id, table=table)

        try:
            titles = self._sheet_titles(service, spreadsheet_id)
        except HttpError as e:
            raise SinkError.clear_failed(table, _http_reason(e), _http_status(e)) from e
        except GoogleAuthError as e:
            raise SinkError.clear_failed(table, str(e)) from e
        if table not in titles:
            raise SinkError.table_not_found(spreadsheet_id, table)

        sheet_range = quote_title(table)
        values = [[str(cell) for cell in row] for row in rows]

        try:
            service.spreadsheets().values().clear(
                spreadsheetId=spreadsheet_id,
                range=sheet_range,
                body={},
            ).execute()
        except HttpError as e:
            raise SinkError.clear_failed(table, _http_reason(e), _http_status(e)) from e
        except GoogleAuthError as e:
            raise SinkError.clear_failed(table, str(e)) from e

        if values:
            try:
                service.spreadsheets().values().update(
                    spreadsheetId=spreadsheet_id,
                    range=sheet_range,
                    valueInputOption=VALUE_INPUT_OPTION,
                    body={"majorDimension": "ROWS", "values": values},
                ).execute()
            except HttpError as e:
                raise SinkError.write_failed(table, _http_reason(e), _http_status(e)) from e
            except GoogleAuthError as e:
                raise SinkError.write_failed(table, str(e)) from e

        self.logger.info("sheet_updated", table=table, rows=len(values))
