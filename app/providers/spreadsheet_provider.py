import csv
import io
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from app.utils.errors import BusinessLogicError
from app.utils.logging import get_logger

logger = get_logger()

Row = Dict[str, str]


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


class SpreadsheetProvider:
    """Turns an uploaded CSV or XLSX file into header -> text records.

    The first row holds the headers, columns with a blank header are
    dropped and rows whose cells are all blank are skipped. Every value is
    returned as text so rows can be stored as JSON unchanged.
    """

    SUPPORTED_EXTENSIONS = {".csv", ".xlsx"}

    @staticmethod
    def parse_rows(filename: Optional[str], content: bytes) -> List[Row]:
        extension = Path(filename or "").suffix.lower()
        if extension not in SpreadsheetProvider.SUPPORTED_EXTENSIONS:
            raise BusinessLogicError(
                "Unsupported file type, upload a .csv or .xlsx file",
                "UNSUPPORTED_FILE_TYPE",
            )

        try:
            if extension == ".csv":
                rows = SpreadsheetProvider._parse_csv(content)
            else:
                rows = SpreadsheetProvider._parse_xlsx(content)
        except (
            csv.Error,
            UnicodeDecodeError,
            InvalidFileException,
            zipfile.BadZipFile,
            KeyError,
            ValueError,
        ) as e:
            logger.warning(f"Failed to parse spreadsheet {filename}: {str(e)}")
            raise BusinessLogicError("Failed to parse file", "FILE_PARSE_FAILED")

        logger.info(f"Parsed {len(rows)} rows from {filename}")
        return rows

    @staticmethod
    def _parse_csv(content: bytes) -> List[Row]:
        text = content.decode("utf-8-sig")
        if not text.strip():
            return []

        sample = text[:4096]
        try:
            dialect = csv.Sniffer().sniff(sample, delimiters=",;")
        except csv.Error:
            dialect = csv.excel

        reader = csv.reader(io.StringIO(text), dialect=dialect)
        return SpreadsheetProvider._records(list(reader))

    @staticmethod
    def _parse_xlsx(content: bytes) -> List[Row]:
        workbook = openpyxl.load_workbook(
            io.BytesIO(content), read_only=True, data_only=True
        )
        try:
            if not workbook.worksheets:
                return []
            worksheet = workbook.worksheets[0]
            return SpreadsheetProvider._records(
                list(worksheet.iter_rows(values_only=True))
            )
        finally:
            workbook.close()

    @staticmethod
    def _records(table: List[Any]) -> List[Row]:
        if not table:
            return []

        headers = [_cell_text(value) for value in table[0]]
        records: List[Row] = []
        for raw_row in table[1:]:
            cells = [_cell_text(value) for value in raw_row]
            if not any(cells):
                continue

            record: Row = {}
            for index, header in enumerate(headers):
                if not header:
                    continue
                record[header] = cells[index] if index < len(cells) else ""
            records.append(record)
        return records
