# spa_ledger/infrastructure/sheets/client.py
"""
Google Sheets v4 REST client.

The spreadsheet is the application's only database. This client exposes
the handful of primitives the ledger needs:

  - values.get      GET  /spreadsheets/{id}/values/{range}
  - values.update   PUT  /spreadsheets/{id}/values/{range}
  - values.append   POST /spreadsheets/{id}/values/{range}:append
                    (response carries updates.updatedRange, from which the
                    new row number is derived)
  - values.clear    POST /spreadsheets/{id}/values/{range}:clear
  - metadata        GET  /spreadsheets/{id}?fields=sheets.properties
  - batchUpdate     POST /spreadsheets/{id}:batchUpdate
                    (addSheet, deleteDimension on ROWS)

Every call is awaited on its own; nothing is retried here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from spa_ledger.core.config import settings
from spa_ledger.domain.errors import RemoteUnavailableError
from spa_ledger.infrastructure.sheets.auth import ServiceAccountTokenProvider

logger = logging.getLogger("sheets_client")


class SheetsAPIError(RemoteUnavailableError):
    """Raised when the Sheets API returns an error or cannot be reached."""

    def __init__(self, message: str, status_code: int = 0, response: dict | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response or {}


class SheetsClient:
    """Thin async wrapper over the Sheets v4 REST API for one spreadsheet."""

    def __init__(
        self,
        spreadsheet_id: str | None = None,
        token_provider=None,
        base_url: str | None = None,
        timeout: float | None = None,
        value_input_option: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.spreadsheet_id = spreadsheet_id or settings.GOOGLE_SHEETS_ID
        if not self.spreadsheet_id:
            raise SheetsAPIError("GOOGLE_SHEETS_ID is not configured")
        self.base = (base_url or settings.SHEETS_API_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.SHEETS_TIMEOUT_SECONDS
        self.value_input_option = value_input_option or settings.SHEETS_VALUE_INPUT_OPTION
        self.token_provider = token_provider or ServiceAccountTokenProvider(transport=transport)
        self._transport = transport
        self._sheet_ids: Optional[Dict[str, int]] = None

    def _values_url(self, a1: str, action: str = "") -> str:
        return f"{self.base}/spreadsheets/{self.spreadsheet_id}/values/{quote(a1, safe='')}{action}"

    async def _request(
        self,
        method: str,
        url: str,
        params: Dict[str, str] | None = None,
        json_body: dict | None = None,
    ) -> Dict[str, Any]:
        token = await self.token_provider.get_token()
        headers = {"Authorization": f"Bearer {token}"}

        logger.debug("Sheets %s %s", method, url)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                r = await client.request(method, url, headers=headers, params=params, json=json_body)
                r.raise_for_status()
            except httpx.HTTPStatusError as exc:
                body = {}
                try:
                    body = exc.response.json()
                except ValueError:
                    pass
                logger.error(
                    "Sheets HTTP error: %s %s -> %d %s",
                    method, url, exc.response.status_code, body,
                )
                raise SheetsAPIError(
                    f"Sheets API error: {exc.response.status_code}",
                    status_code=exc.response.status_code,
                    response=body,
                ) from exc
            except httpx.TimeoutException as exc:
                logger.error("Sheets timeout: %s %s", method, url)
                raise SheetsAPIError("Sheets API timeout") from exc
            except httpx.HTTPError as exc:
                logger.error("Sheets transport error: %s %s: %s", method, url, exc)
                raise SheetsAPIError(f"Sheets API unreachable: {exc}") from exc

        raw = r.text.strip()
        if not raw:
            return {}
        try:
            return r.json()
        except ValueError as exc:
            raise SheetsAPIError(f"Sheets API returned non-JSON body: {raw[:200]}") from exc

    # ----------------------------------------------------------------
    # Values
    # ----------------------------------------------------------------

    async def get_values(self, a1: str) -> List[List[Any]]:
        """Rows in the range; trailing empty rows/cells are omitted by the API."""
        data = await self._request(
            "GET",
            self._values_url(a1),
            params={"valueRenderOption": "UNFORMATTED_VALUE"},
        )
        return data.get("values") or []

    async def update_values(self, a1: str, values: List[List[Any]]) -> Dict[str, Any]:
        return await self._request(
            "PUT",
            self._values_url(a1),
            params={"valueInputOption": self.value_input_option},
            json_body={"range": a1, "majorDimension": "ROWS", "values": values},
        )

    async def append_values(self, a1: str, values: List[List[Any]]) -> str:
        """Append rows after the table found in ``a1``; returns the range actually written."""
        data = await self._request(
            "POST",
            self._values_url(a1, ":append"),
            params={
                "valueInputOption": self.value_input_option,
                "insertDataOption": "INSERT_ROWS",
            },
            json_body={"majorDimension": "ROWS", "values": values},
        )
        updated = (data.get("updates") or {}).get("updatedRange")
        if not updated:
            raise SheetsAPIError("Append response did not report an updatedRange", response=data)
        return updated

    async def clear_values(self, a1: str) -> None:
        await self._request("POST", self._values_url(a1, ":clear"), json_body={})

    # ----------------------------------------------------------------
    # Structure
    # ----------------------------------------------------------------

    async def get_sheet_ids(self, refresh: bool = False) -> Dict[str, int]:
        """Map of sheet title -> numeric sheetId (needed for row deletes)."""
        if self._sheet_ids is None or refresh:
            data = await self._request(
                "GET",
                f"{self.base}/spreadsheets/{self.spreadsheet_id}",
                params={"fields": "sheets.properties(sheetId,title)"},
            )
            self._sheet_ids = {
                s["properties"]["title"]: s["properties"]["sheetId"]
                for s in data.get("sheets", [])
            }
        return dict(self._sheet_ids)

    async def batch_update(self, requests: List[Dict[str, Any]]) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"{self.base}/spreadsheets/{self.spreadsheet_id}:batchUpdate",
            json_body={"requests": requests},
        )

    async def add_sheets(self, titles: List[str]) -> None:
        if not titles:
            return
        logger.info("Creating sheets: %s", ", ".join(titles))
        await self.batch_update([{"addSheet": {"properties": {"title": t}}} for t in titles])
        self._sheet_ids = None

    async def delete_rows(self, sheet: str, row_number: int, count: int = 1) -> None:
        """Physically delete rows; every row below moves up by ``count``."""
        sheet_ids = await self.get_sheet_ids()
        if sheet not in sheet_ids:
            sheet_ids = await self.get_sheet_ids(refresh=True)
        if sheet not in sheet_ids:
            raise SheetsAPIError(f"Sheet {sheet!r} does not exist")
        await self.batch_update([
            {
                "deleteDimension": {
                    "range": {
                        "sheetId": sheet_ids[sheet],
                        "dimension": "ROWS",
                        "startIndex": row_number - 1,
                        "endIndex": row_number - 1 + count,
                    }
                }
            }
        ])
