"""Google Sheets sink for extracted order records.

The client is built once from service account credentials and shared by
every pipeline run. Google API errors are mapped to :class:`SinkError`
with a ``reason`` the API can report to the user.
"""

from datetime import datetime
from pathlib import Path
from typing import Any

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from order_ocr.errors import SinkError
from order_ocr.extraction.field_extractor import ExtractedRecord
from order_ocr.utils.config import SheetsConfig
from order_ocr.utils.logger import get_logger

from .base import record_to_row

logger = get_logger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

# Raised below the HTTP layer: DNS, socket and token refresh failures.
_TRANSPORT_ERRORS = (httplib2.HttpLib2Error, GoogleAuthError, OSError)


def _http_status(exc: HttpError) -> int | None:
    status = getattr(exc, "status_code", None)
    if status is None and exc.resp is not None:
        status = int(exc.resp.status)
    return status


def map_http_error(exc: HttpError, spreadsheet_id: str) -> SinkError:
    """Translate a Sheets API error into a :class:`SinkError`."""
    status = _http_status(exc)
    if status == 403:
        return SinkError(
            "Permission denied: the service account has no edit access "
            f"to spreadsheet {spreadsheet_id}",
            reason="permission",
        )
    if status == 404:
        return SinkError(
            f"Spreadsheet {spreadsheet_id} was not found, check SPREADSHEET_ID",
            reason="not_found",
        )
    return SinkError(f"Google Sheets request failed: {exc}", reason="other")


class GoogleSheetsSink:
    """Appends extracted records as rows to a Google spreadsheet.

    Args:
        service: A Sheets v4 service resource.
        config: Sheets settings with the target spreadsheet id.
    """

    def __init__(self, service: Any, config: SheetsConfig) -> None:
        if not config.spreadsheet_id:
            raise SinkError("SPREADSHEET_ID is not configured", reason="not_configured")
        self.service = service
        self.config = config
        self.spreadsheet_id = config.spreadsheet_id

    @classmethod
    def from_config(cls, config: SheetsConfig) -> "GoogleSheetsSink":
        """Authenticate with the service account and build the sink.

        Raises:
            SinkError: If the spreadsheet id is unset or the credentials
                cannot be loaded.
        """
        if not config.spreadsheet_id:
            raise SinkError("SPREADSHEET_ID is not configured", reason="not_configured")

        key_file = Path(config.credentials_file)
        try:
            credentials = service_account.Credentials.from_service_account_file(
                str(key_file), scopes=SCOPES
            )
        except (OSError, ValueError, GoogleAuthError) as exc:
            raise SinkError(
                f"Could not load Google credentials from {key_file}: {exc}",
                reason="not_configured",
            ) from exc

        service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        logger.info("Google Sheets client ready for spreadsheet %s", config.spreadsheet_id)
        return cls(service, config)

    def verify(self) -> None:
        """Check that the spreadsheet is reachable and editable metadata loads.

        Raises:
            SinkError: If access is denied, the spreadsheet is missing or
                the API cannot be reached.
        """
        try:
            self.service.spreadsheets().get(spreadsheetId=self.spreadsheet_id).execute()
        except HttpError as exc:
            raise map_http_error(exc, self.spreadsheet_id) from exc
        except _TRANSPORT_ERRORS as exc:
            raise SinkError(f"Google Sheets request failed: {exc}", reason="other") from exc
        logger.info("Verified access to spreadsheet %s", self.spreadsheet_id)

    def append(self, record: ExtractedRecord, processed_at: datetime) -> None:
        """Append one row for ``record``.

        Raises:
            SinkError: If the Sheets API rejects the append or cannot be
                reached.
        """
        body = {"values": [record_to_row(record, processed_at)]}
        try:
            response = (
                self.service.spreadsheets()
                .values()
                .append(
                    spreadsheetId=self.spreadsheet_id,
                    range=self.config.range,
                    valueInputOption=self.config.value_input_option,
                    body=body,
                )
                .execute()
            )
        except HttpError as exc:
            raise map_http_error(exc, self.spreadsheet_id) from exc
        except _TRANSPORT_ERRORS as exc:
            raise SinkError(f"Google Sheets request failed: {exc}", reason="other") from exc

        updated = response.get("updates", {}).get("updatedRange", "?")
        logger.info("Appended record to Google Sheets range %s", updated)
