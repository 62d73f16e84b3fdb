"""Google Sheets REST API client adapter."""

from __future__ import annotations

import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from app.adapters.sheets.base import AbstractSheetsClient
from app.core.errors import SheetsAppError
from app.schemas.annotations import AnnotationRow

logger = logging.getLogger(__name__)

ANNOTATIONS_RANGE = "Annotations_Log!A:R"
ANNOTATOR_IDS_RANGE = "Annotations_Log!B2:B"
PAYMENTS_SHEET = "Payments"

# Payment per logged row and per translation, in Naira.
PAYMENT_PER_ROW = 100
PAYMENT_PER_TRANSLATION = 150


def build_payment_rows(annotator_ids: list[str]) -> list[list[str]]:
    """Build the Payments!A2:H formula rows, one per annotator.

    Columns: annotator id, total rows, translations, rows per hour, total
    hours, row payment, translation payment, total payment.
    """
    rows = []
    for index, annotator_id in enumerate(annotator_ids):
        row_num = index + 2  # header is row 1
        rows.append(
            [
                annotator_id,
                f'=COUNTIF(Annotations_Log!B:B,"{annotator_id}")',
                f'=COUNTIFS(Annotations_Log!B:B,"{annotator_id}",Annotations_Log!E:E,"<>")',
                f"=IF(E{row_num}=0,0,B{row_num}/E{row_num})",
                f'=SUMIFS(Annotations_Log!H:H,Annotations_Log!B:B,"{annotator_id}")/60',
                f"=B{row_num}*{PAYMENT_PER_ROW}",
                f"=C{row_num}*{PAYMENT_PER_TRANSLATION}",
                f"=F{row_num}+G{row_num}",
            ]
        )
    return rows


def _unique_ids(values: list[list[Any]]) -> list[str]:
    seen: dict[str, None] = {}
    for row in values:
        if row and str(row[0]).strip():
            seen.setdefault(str(row[0]).strip(), None)
    return list(seen)


def _values_path(spreadsheet_id: str, a1_range: str, suffix: str = "") -> str:
    return f"spreadsheets/{quote(spreadsheet_id, safe='')}/values/{quote(a1_range, safe='')}{suffix}"


class GoogleSheetsClient(AbstractSheetsClient):
    """Client for the Sheets v4 ``values`` endpoints using the caller's token.

    Uses ``httpx.AsyncClient``; a custom transport can be injected for tests.
    """

    def __init__(
        self,
        base_url: str = "https://sheets.googleapis.com/v4",
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            transport=transport,
        )

    async def append_annotation(
        self,
        access_token: str,
        spreadsheet_id: str,
        row: AnnotationRow,
    ) -> None:
        await self._request(
            "POST",
            _values_path(spreadsheet_id, ANNOTATIONS_RANGE, ":append"),
            access_token=access_token,
            spreadsheet_id=spreadsheet_id,
            params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
            json={"values": [row.to_values()]},
        )

    async def update_payment_formulas(self, access_token: str, spreadsheet_id: str) -> None:
        response = await self._request(
            "GET",
            _values_path(spreadsheet_id, ANNOTATOR_IDS_RANGE),
            access_token=access_token,
            spreadsheet_id=spreadsheet_id,
        )
        annotator_ids = _unique_ids(response.json().get("values", []))
        if not annotator_ids:
            return

        rows = build_payment_rows(annotator_ids)
        await self._request(
            "PUT",
            _values_path(spreadsheet_id, f"{PAYMENTS_SHEET}!A2:H{len(rows) + 1}"),
            access_token=access_token,
            spreadsheet_id=spreadsheet_id,
            params={"valueInputOption": "USER_ENTERED"},
            json={"values": rows},
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        access_token: str,
        spreadsheet_id: str,
        **kwargs: Any,
    ) -> httpx.Response:
        start = time.perf_counter()
        try:
            response = await self.client.request(
                method,
                path,
                headers={"Authorization": f"Bearer {access_token}"},
                **kwargs,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SheetsAppError(
                code="sheets_request_failed",
                message=f"Sheets API returned HTTP {exc.response.status_code}",
                details={
                    "http_status": exc.response.status_code,
                    "spreadsheet_id": spreadsheet_id,
                },
            ) from exc
        except httpx.HTTPError as exc:
            raise SheetsAppError(
                code="sheets_request_failed",
                message=f"Sheets API error: {type(exc).__name__}",
                details={"spreadsheet_id": spreadsheet_id},
            ) from exc

        logger.debug(
            "sheets.request",
            extra={
                "method": method,
                "spreadsheet_id": spreadsheet_id,
                "status_code": response.status_code,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return response
