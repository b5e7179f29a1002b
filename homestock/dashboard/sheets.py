"""Google Sheets access: the read/write contract and row parsing."""

from __future__ import annotations

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date

from .errors import DataFormatError, NetworkError, SessionExpiredError
from .expiry import format_date, parse_date
from .models import Item

logger = logging.getLogger(__name__)

# Data rows start on sheet row 2, below the header
FIRST_DATA_ROW = 2

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class SheetsGateway(ABC):
    """Reads inventory rows and writes quantity ranges.

    Implementations raise SessionExpiredError on an unauthorized response
    and NetworkError on any other failure.
    """

    @abstractmethod
    async def fetch_rows(self, credential: str) -> list[list[str]]:
        """Return every row of the sheet, header first."""
        ...

    @abstractmethod
    async def write_range(
        self, credential: str, row_index: int, values: list[str]
    ) -> None:
        """Write ``values`` into columns D..G of ``row_index``."""
        ...


class GoogleSheetsGateway(SheetsGateway):
    """Sheets API v4 client.

    Each request builds its own service, so worker threads never share an
    httplib2 transport.
    """

    def __init__(self, spreadsheet_id: str, sheet_name: str = "Master") -> None:
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name

    def _build_service(self, credential: str):
        try:
            from google.oauth2.credentials import Credentials
            from googleapiclient.discovery import build
        except ImportError:
            raise ImportError(
                "Google Sheets access requires google-api-python-client:\n"
                "  pip install google-api-python-client google-auth"
            )
        return build(
            "sheets", "v4", credentials=Credentials(token=credential), cache_discovery=False
        )

    def write_range_name(self, row_index: int) -> str:
        return f"{self.sheet_name}!D{row_index}:G{row_index}"

    async def fetch_rows(self, credential: str) -> list[list[str]]:
        def call():
            service = self._build_service(credential)
            return (
                service.spreadsheets()
                .values()
                .get(spreadsheetId=self.spreadsheet_id, range=self.sheet_name)
                .execute()
            )

        result = await self._run(call)
        return result.get("values") or []

    async def write_range(
        self, credential: str, row_index: int, values: list[str]
    ) -> None:
        target = self.write_range_name(row_index)

        def call():
            service = self._build_service(credential)
            return (
                service.spreadsheets()
                .values()
                .update(
                    spreadsheetId=self.spreadsheet_id,
                    range=target,
                    valueInputOption="RAW",
                    body={"values": [values]},
                )
                .execute()
            )

        logger.info("Writing %s: %s", target, values)
        await self._run(call)

    async def _run(self, call):
        from google.auth.exceptions import TransportError
        from googleapiclient.errors import HttpError
        from httplib2 import HttpLib2Error

        try:
            return await asyncio.to_thread(call)
        except HttpError as e:
            if e.resp.status == 401:
                raise SessionExpiredError() from e
            raise NetworkError(f"Failed to fetch data: {e.resp.reason}") from e
        except (OSError, TransportError, HttpLib2Error) as e:
            raise NetworkError(f"Failed to fetch data: {e}") from e


def _quantity(text: str | None) -> int:
    match = _LEADING_INT.match(text or "")
    if match is None:
        return 0
    return max(0, int(match.group(1)))


def _cell(row: Sequence[str], index: int) -> str:
    if index < len(row) and row[index] is not None:
        return str(row[index])
    return ""


def parse_rows(rows: Sequence[Sequence[str]] | None) -> list[Item]:
    """Convert sheet rows into items.

    Row 0 is the header. Rows with an empty name are skipped but still
    occupy their sheet row number.

    Raises:
        DataFormatError: If the sheet returned nothing at all.
    """
    if not rows:
        raise DataFormatError("No data found in spreadsheet")

    items: list[Item] = []
    for offset, row in enumerate(rows[1:]):
        name = _cell(row, 1).strip()
        if not name:
            continue
        items.append(
            Item(
                category=_cell(row, 0),
                name=name,
                size=_cell(row, 2),
                quantity_storage=_quantity(_cell(row, 3)),
                quantity_kitchen=_quantity(_cell(row, 4)),
                expiry_date=parse_date(_cell(row, 5)),
                last_update=parse_date(_cell(row, 6)),
                row_index=offset + FIRST_DATA_ROW,
            )
        )
    return items


def write_values(item: Item, today: date) -> list[str]:
    """The four cells D..G written back for a quantity change."""
    return [
        str(item.quantity_storage),
        str(item.quantity_kitchen),
        format_date(item.expiry_date),
        format_date(today),
    ]
