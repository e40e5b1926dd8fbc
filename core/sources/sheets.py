"""Google Sheets record source.

Rows come from the export range (header excluded) with the column layout
``company, product_name, shipping_fee, supply_price_vat, group_price,
online_price``. The trimmed product name is the record key.
"""

from __future__ import annotations

import asyncio
import csv
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from core.config import Settings, load_service_account
from core.sync.models import Diagnostic, Record
from core.sync.reconciler import build_record_map
from core.utils.errors import UpstreamFetchError

logger = logging.getLogger("figsync.sources")

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]
_TOKEN_URI = "https://oauth2.googleapis.com/token"

_COLUMNS = (
    "company",
    "productName",
    "shippingFee",
    "supplyPriceVat",
    "groupPrice",
    "onlinePrice",
)


def rows_to_records(
    rows: Iterable[Sequence[Any]],
    *,
    diagnostics: list[Diagnostic] | None = None,
) -> dict[str, Record]:
    """Convert raw sheet rows into an ordered record mapping.

    Rows that are empty, shorter than two cells or have a blank product name
    are skipped. Missing trailing cells become empty strings.
    """

    records: list[Record] = []
    for row in rows:
        if not row or len(row) < 2:
            continue

        cells = [_cell_text(value) for value in row[: len(_COLUMNS)]]
        cells.extend([""] * (len(_COLUMNS) - len(cells)))

        product_name = cells[1].strip()
        if not product_name:
            continue

        fields = dict(zip(_COLUMNS, cells, strict=True))
        fields["productName"] = product_name
        records.append(Record(name=product_name, fields=fields))

    return build_record_map(records, diagnostics=diagnostics)


def load_records_csv(
    path: Path,
    *,
    diagnostics: list[Diagnostic] | None = None,
) -> dict[str, Record]:
    """Load records from a CSV export of the sheet. The first line is a header."""

    with path.open(encoding="utf-8-sig", newline="") as handle:
        rows = list(csv.reader(handle))
    return rows_to_records(rows[1:], diagnostics=diagnostics)


class SheetsRecordSource:
    """Read the product rows from a spreadsheet with a service account."""

    def __init__(self, settings: Settings, *, service: Any | None = None) -> None:
        self._settings = settings
        self._service = service

    async def fetch(self, *, diagnostics: list[Diagnostic] | None = None) -> dict[str, Record]:
        rows = await asyncio.to_thread(self._fetch_rows)
        records = rows_to_records(rows, diagnostics=diagnostics)
        logger.info("loaded %d records from sheet", len(records))
        return records

    def _fetch_rows(self) -> list[list[Any]]:
        spreadsheet_id = self._settings.require("google_sheets_id")
        service = self._service if self._service is not None else self._build_service()

        try:
            response = (
                service.spreadsheets()
                .values()
                .get(spreadsheetId=spreadsheet_id, range=self._settings.google_sheets_range)
                .execute()
            )
        except HttpError as exc:
            status = getattr(exc.resp, "status", None)
            logger.error("sheets api error [%s]: %s", status, exc)
            raise UpstreamFetchError(
                f"Failed to read sheet data: {exc}",
                source="sheets",
                status_code=int(status) if status is not None else None,
            ) from exc

        values = response.get("values") or []
        return [list(row) for row in values]

    def _build_service(self) -> Any:
        account = load_service_account(self._settings)
        try:
            credentials = service_account.Credentials.from_service_account_info(
                {
                    "client_email": account.email,
                    "private_key": account.private_key,
                    "token_uri": _TOKEN_URI,
                },
                scopes=SHEETS_SCOPES,
            )
        except ValueError as exc:
            raise UpstreamFetchError(
                f"Google Sheets authentication setup failed: {exc}", source="sheets"
            ) from exc

        return build("sheets", "v4", credentials=credentials, cache_discovery=False)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)
