"""Thin synchronous wrapper around the Google Sheets v4 API."""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from google.auth import default as google_auth_default
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from ..config import Settings, settings as default_settings
from ..errors import ConfigError

logger = logging.getLogger(__name__)

SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"


def build_sheets_service(config: Settings) -> Any:
    """Create a Sheets API resource from a service account file or ADC."""

    if config.google_service_account_file:
        credentials = Credentials.from_service_account_file(
            config.google_service_account_file, scopes=[SHEETS_SCOPE]
        )
    else:
        credentials, _project = google_auth_default(scopes=[SHEETS_SCOPE])
    return build("sheets", "v4", credentials=credentials, cache_discovery=False)


class SheetsGateway:
    """Spreadsheet operations used by the transcript log and the PIN directory.

    Every method blocks on network I/O; async callers wrap them in
    ``asyncio.to_thread``.
    """

    def __init__(
        self,
        *,
        spreadsheet_id: Optional[str] = None,
        config: Optional[Settings] = None,
        service_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self._config = config or default_settings
        self._spreadsheet_id = spreadsheet_id or self._config.google_spreadsheet_id
        self._service_factory = service_factory or (lambda: build_sheets_service(self._config))
        self._service: Any = None
        self._known_sheets: set[str] = set()

    @property
    def enabled(self) -> bool:
        return bool(self._spreadsheet_id)

    def _ensure_service(self) -> Any:
        if not self._spreadsheet_id:
            raise ConfigError("GOOGLE_SPREADSHEET_ID is not set")
        if self._service is None:
            self._service = self._service_factory()
        return self._service

    def ensure_sheet(self, title: str) -> None:
        if title in self._known_sheets:
            return
        service = self._ensure_service()
        meta = (
            service.spreadsheets()
            .get(spreadsheetId=self._spreadsheet_id, fields="sheets.properties.title")
            .execute()
        )
        titles = {sheet["properties"]["title"] for sheet in meta.get("sheets", [])}
        if title not in titles:
            logger.info("Creating sheet %r in spreadsheet %s", title, self._spreadsheet_id)
            service.spreadsheets().batchUpdate(
                spreadsheetId=self._spreadsheet_id,
                body={"requests": [{"addSheet": {"properties": {"title": title}}}]},
            ).execute()
        self._known_sheets.add(title)

    def append_rows(self, title: str, rows: list[list[Any]]) -> dict[str, Any]:
        service = self._ensure_service()
        # Appending to the bare sheet title avoids column-range parsing issues.
        return (
            service.spreadsheets()
            .values()
            .append(
                spreadsheetId=self._spreadsheet_id,
                range=title,
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": rows},
            )
            .execute()
        )

    def read_rows(self, range_: str) -> list[list[Any]]:
        service = self._ensure_service()
        result = (
            service.spreadsheets()
            .values()
            .get(spreadsheetId=self._spreadsheet_id, range=range_)
            .execute()
        )
        return result.get("values", [])
