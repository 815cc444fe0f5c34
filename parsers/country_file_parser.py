"""
Row parser for country import files.

Turns an uploaded CSV or Excel file into ParsedCountryRow objects, one per
data row, each tagged with its original row number. Export headers such as
"Country Name" are mapped to canonical field names via HEADER_ALIASES.
"""

from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, Iterator, Optional
import structlog

import pandas as pd

from exceptions import ImportParseError
from models.country_import import FileFormat, ParsedCountryRow

logger = structlog.get_logger(__name__)


# Export headers -> canonical field names
HEADER_ALIASES = {
    "Country Name": "name",
    "Country Code": "code",
    "Continent": "continent",
    "Region": "region",
    "Currency": "currency",
    "Currency Symbol": "currency_symbol",
    "Status": "status",
    "Flag URL": "flag_url",
    "Is Popular": "is_popular",
    "Visa Required": "visa_required",
    "Pricing Currency Override": "pricing_currency_override",
    "Pricing Currency": "pricing_currency",
    "Pricing Currency Symbol": "pricing_currency_symbol",
}

# Alias headers whose Yes/No values become booleans
BOOLEAN_ALIAS_HEADERS = frozenset({
    "Is Popular",
    "Visa Required",
    "Pricing Currency Override",
})

CANONICAL_FIELDS = frozenset(HEADER_ALIASES.values())

FILE_EXTENSIONS = {
    ".csv": FileFormat.DELIMITED,
    ".txt": FileFormat.DELIMITED,
    ".xlsx": FileFormat.SPREADSHEET,
    ".xlsm": FileFormat.SPREADSHEET,
    ".xls": FileFormat.SPREADSHEET,
}

_ALIASES_LOWER = {k.lower(): k for k in HEADER_ALIASES}

_TRUE_TOKENS = {"yes", "y", "true", "1"}
_FALSE_TOKENS = {"no", "n", "false", "0"}

# Rows per read_csv chunk
CSV_CHUNK_ROWS = 500


def detect_file_format(file_name: str) -> FileFormat:
    """
    Detect the declared format from a file name.

    Raises:
        ImportParseError: If the extension is not supported
    """
    suffix = Path(file_name).suffix.lower()
    try:
        return FILE_EXTENSIONS[suffix]
    except KeyError:
        raise ImportParseError(
            message=f"Unsupported file type: {suffix or file_name}",
            details={"supported": sorted(FILE_EXTENSIONS)}
        )


def iter_country_rows(
    content: bytes,
    file_format: FileFormat,
    delimiter: str = ",",
) -> Iterator[ParsedCountryRow]:
    """
    Lazily parse file content into rows.

    The returned generator can be consumed once. Decoding problems and empty
    files surface as ImportParseError while iterating.

    Args:
        content: Raw file bytes
        file_format: DELIMITED or SPREADSHEET
        delimiter: Field separator for delimited text

    Yields:
        ParsedCountryRow per data row, in file order
    """
    if file_format == FileFormat.DELIMITED:
        return _iter_delimited(content, delimiter)
    return _iter_spreadsheet(content)


def parse_country_file(
    content: bytes,
    file_name: str,
    file_format: Optional[FileFormat] = None,
    delimiter: str = ",",
) -> list[ParsedCountryRow]:
    """
    Parse a whole file into a list of rows.

    Args:
        content: Raw file bytes
        file_name: Original name, used to detect the format if not given
        file_format: Explicit format (overrides detection)
        delimiter: Field separator for delimited text

    Returns:
        List of ParsedCountryRow

    Raises:
        ImportParseError: If the file cannot be read or has no data rows
    """
    file_format = file_format or detect_file_format(file_name)
    logger.info(
        "parsing_country_file",
        file_name=file_name,
        file_format=file_format.value,
        size_bytes=len(content)
    )

    rows = list(iter_country_rows(content, file_format, delimiter))

    logger.info("country_file_parsed", file_name=file_name, row_count=len(rows))
    return rows


# ===================
# DELIMITED TEXT
# ===================

def _iter_delimited(content: bytes, delimiter: str) -> Iterator[ParsedCountryRow]:
    text = _decode_text(content)

    # Leading blank lines sit above the header
    header_offset = _count_leading_blank_lines(text)
    if header_offset is None:
        raise ImportParseError(
            message="File must contain a header row and at least one data row"
        )

    headers: Optional[list[tuple[str, bool]]] = None
    data_rows = 0

    try:
        with pd.read_csv(
            StringIO(text),
            sep=delimiter,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
            skiprows=header_offset,
            index_col=False,
            chunksize=CSV_CHUNK_ROWS,
        ) as reader:
            for chunk in reader:
                if headers is None:
                    headers = [_normalize_header(col) for col in chunk.columns]

                for idx, row in chunk.iterrows():
                    # Blank lines stay in the frame, so idx tracks physical lines
                    line_number = idx + header_offset + 2

                    cells = ["" if _is_missing(value) else _clean_cell(value) for value in row.tolist()]
                    if not any(cells):
                        continue

                    data_rows += 1
                    yield _build_row(line_number, headers, cells)
    except pd.errors.ParserError as e:
        logger.error("delimited_parse_failed", error=str(e))
        raise ImportParseError(
            message="Malformed delimited file",
            details={"original_error": str(e)}
        )

    if data_rows == 0:
        raise ImportParseError(
            message="File must contain a header row and at least one data row"
        )


def _decode_text(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        logger.error("delimited_decode_failed", error=str(e))
        raise ImportParseError(
            message="Failed to decode file as UTF-8 text",
            details={"original_error": str(e)}
        )


def _count_leading_blank_lines(text: str) -> Optional[int]:
    """Number of blank lines before the header, or None if every line is blank."""
    for position, line in enumerate(text.splitlines()):
        if line.strip():
            return position
    return None


def _clean_cell(value: Any) -> str:
    """Trim whitespace and stray quotes."""
    return str(value).strip().strip('"').strip()


# ===================
# SPREADSHEET
# ===================

def _iter_spreadsheet(content: bytes) -> Iterator[ParsedCountryRow]:
    df = _read_first_sheet(content)

    headers = [_normalize_header(col) for col in df.columns]
    data_rows = 0

    for idx, row in df.iterrows():
        row_num = idx + 2  # Excel row (1-indexed + header)

        cells = [None if _is_missing(value) else value for value in row.tolist()]
        if all(cell is None or str(cell).strip() == "" for cell in cells):
            continue

        data_rows += 1
        yield _build_row(row_num, headers, cells)

    if data_rows == 0:
        raise ImportParseError(
            message="File must contain a header row and at least one data row"
        )


def _read_first_sheet(content: bytes) -> pd.DataFrame:
    """Read the first sheet, trying openpyxl then xlrd (legacy .xls)."""
    last_error: Optional[Exception] = None

    for engine in ["openpyxl", "xlrd"]:
        try:
            df = pd.read_excel(
                BytesIO(content),
                sheet_name=0,
                dtype=object,
                keep_default_na=False,
                na_values=[""],
                engine=engine,
            )
            logger.debug("spreadsheet_loaded", engine=engine, columns=len(df.columns))
            return df
        except Exception as e:
            last_error = e
            continue

    logger.error("spreadsheet_read_failed", error=str(last_error))
    raise ImportParseError(
        message="Failed to read spreadsheet",
        details={"original_error": str(last_error)}
    )


def _is_missing(value: Any) -> bool:
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


# ===================
# HELPER FUNCTIONS
# ===================

def _normalize_header(header: Any) -> tuple[str, bool]:
    """
    Map a raw header to (field name, is boolean alias).

    "Country Name" -> ("name", False)
    "is popular"   -> ("is_popular", True)
    "code"         -> ("code", False)
    "Languages"    -> ("Languages", False)
    """
    raw = str(header).strip()

    alias = raw if raw in HEADER_ALIASES else _ALIASES_LOWER.get(raw.lower())
    if alias is not None:
        return HEADER_ALIASES[alias], alias in BOOLEAN_ALIAS_HEADERS

    if raw.lower() in CANONICAL_FIELDS:
        return raw.lower(), False

    return raw, False


def _convert_boolean_token(value: Any) -> Any:
    """Yes/No style token -> bool. Unrecognized values are returned unchanged."""
    if isinstance(value, bool) or value is None:
        return value
    token = str(value).strip().lower()
    if token.endswith(".0"):
        token = token[:-2]  # Excel numeric 1.0 / 0.0
    if token in _TRUE_TOKENS:
        return True
    if token in _FALSE_TOKENS:
        return False
    return value


def _build_row(
    row_index: int,
    headers: list[tuple[str, bool]],
    cells: list[Any],
) -> ParsedCountryRow:
    row = ParsedCountryRow(row_index=row_index)

    for position, (name, is_boolean) in enumerate(headers):
        value = cells[position] if position < len(cells) else ""
        if is_boolean:
            value = _convert_boolean_token(value)

        if name in CANONICAL_FIELDS:
            setattr(row, name, value)
        elif name:
            row.extra[name] = value

    return row
