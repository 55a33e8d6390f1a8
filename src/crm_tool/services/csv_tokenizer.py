"""CSV tokenizer: raw text to rows of trimmed string fields"""
import csv
import io
import logging

from src.crm_tool.services.import_types import MalformedFileError, RawTable

logger = logging.getLogger(__name__)

ENCODINGS = ["utf-8-sig", "cp1252"]


def decode_csv_content(content: bytes) -> str:
    for encoding in ENCODINGS:
        try:
            return content.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            continue
    raise ValueError("Unable to decode CSV file. Supported encodings: UTF-8, Windows-1252")


def tokenize(text: str) -> RawTable:
    """Split CSV text into rows of fields.

    Quoting follows RFC 4180: a field that starts with a quote runs until the
    next unescaped quote, commas and line breaks inside it are literal, and a
    doubled quote stands for one quote character. Every field is trimmed.
    Blank lines come back as empty rows so row numbers keep matching the file.
    """
    if not text or not text.strip():
        return []

    reader = csv.reader(io.StringIO(text, newline=""), skipinitialspace=True)
    try:
        rows = [[field.strip() for field in row] for row in reader]
    except csv.Error as e:
        raise MalformedFileError(f"Malformed CSV near line {reader.line_num}: {e}") from e

    logger.debug(f"Tokenized {len(rows)} rows")
    return rows
