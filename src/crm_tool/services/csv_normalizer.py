"""Header resolution and row normalization for client CSV imports"""
import re
import unicodedata
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Mapping, Optional, Tuple

from email_validator import validate_email, EmailNotValidError

from src.crm_tool.models.client import ClientStatus
from src.crm_tool.services.import_types import (
    CANONICAL_FIELDS,
    OPTIONAL_TEXT_FIELDS,
    Defaulted,
    EmptyFileError,
    FieldMapping,
    MissingRequiredColumnError,
    Normalized,
    Ok,
    ParsedRecord,
    RawTable,
    RowDiagnostic,
)


COLUMN_ALIASES: Dict[str, List[str]] = {
    "name": ["name", "client name", "client"],
    "company": ["company", "company name"],
    "email": ["email", "email address"],
    "phone": ["phone", "phone number", "telephone"],
    "status": ["status"],
    "value": ["value", "deal value", "amount"],
    "source": ["source", "lead source"],
    "website": ["website", "url", "web"],
    "notes": ["notes", "note", "comments"],
}

REQUIRED_FIELD = "name"

DEFAULT_STATUS = ClientStatus.LEAD

VALID_STATUSES = {status.value: status for status in ClientStatus}


def normalize_column_name(name: str) -> str:
    normalized = unicodedata.normalize("NFKC", name)
    normalized = normalized.lower()
    normalized = re.sub(r'[\s\-_\.]+', '', normalized)
    normalized = re.sub(r'[^\w]', '', normalized)
    return normalized


_ALIAS_LOOKUP: Dict[str, str] = {
    normalize_column_name(alias): canonical
    for canonical, aliases in COLUMN_ALIASES.items()
    for alias in aliases
}


def map_column_name(raw_name: str) -> Optional[str]:
    return _ALIAS_LOOKUP.get(normalize_column_name(raw_name))


def is_blank_row(row: List[str]) -> bool:
    """Zero fields or a single empty field. A row like `,,` is not blank."""
    return len(row) == 0 or (len(row) == 1 and not row[0])


def _has_no_content(row: List[str]) -> bool:
    return all(not field for field in row)


def resolve_headers(
    table: RawTable,
    overrides: Optional[Mapping[str, Optional[str]]] = None
) -> FieldMapping:
    """Map the header row's labels onto canonical client fields.

    The header is the first row with a non-empty field. For each canonical
    field the first column whose label matches one of its aliases wins.
    ``overrides`` maps a header label to a canonical field (or None to ignore
    that column) and takes precedence over alias matching.

    Raises EmptyFileError when the table has no rows and
    MissingRequiredColumnError when no column resolves to ``name``.
    """
    header_index = next((i for i, row in enumerate(table) if not _has_no_content(row)), None)
    if header_index is None:
        raise EmptyFileError()

    headers = tuple(table[header_index])
    indexes: Dict[str, Optional[int]] = {field: None for field in CANONICAL_FIELDS}

    for col, header in enumerate(headers):
        canonical = map_column_name(header)
        if canonical and indexes[canonical] is None:
            indexes[canonical] = col

    if overrides:
        _apply_overrides(headers, indexes, overrides)

    if indexes[REQUIRED_FIELD] is None:
        raise MissingRequiredColumnError(REQUIRED_FIELD)

    mapped_columns = {idx for idx in indexes.values() if idx is not None}
    unmapped = tuple(h for col, h in enumerate(headers) if col not in mapped_columns and h)

    return FieldMapping(
        headers=headers,
        header_index=header_index,
        indexes=indexes,
        unmapped_columns=unmapped,
    )


def _apply_overrides(
    headers: Tuple[str, ...],
    indexes: Dict[str, Optional[int]],
    overrides: Mapping[str, Optional[str]]
) -> None:
    normalized_headers = [normalize_column_name(h) for h in headers]
    for label, canonical in overrides.items():
        if canonical is not None and canonical not in indexes:
            raise ValueError(f"Unknown field '{canonical}' in column mapping for '{label}'")
        wanted = normalize_column_name(label)
        if wanted not in normalized_headers:
            continue
        col = normalized_headers.index(wanted)
        for field, idx in indexes.items():
            if idx == col:
                indexes[field] = None
        if canonical is not None:
            indexes[canonical] = col


def normalize_status(raw: str) -> Normalized[ClientStatus]:
    value = raw.strip().lower()
    if not value:
        return Ok(DEFAULT_STATUS)
    if value in VALID_STATUSES:
        return Ok(VALID_STATUSES[value])
    return Defaulted(
        DEFAULT_STATUS,
        f'Invalid status "{raw.strip()}" - defaulting to "{DEFAULT_STATUS.value}"'
    )


def parse_value(raw: str) -> Optional[Decimal]:
    cleaned = raw.replace("$", "").replace(",", "").strip()
    if not cleaned:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if not value.is_finite():
        return None
    return value


def check_email(email: str) -> Optional[str]:
    """Return a warning message when the address is not syntactically valid."""
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as e:
        return f'Email "{email}" does not look valid ({e}) - imported as given'
    return None


def _cell(row: List[str], mapping: FieldMapping, field: str) -> str:
    idx = mapping.index_of(field)
    if idx is None or idx >= len(row):
        return ""
    return row[idx].strip()


def normalize_row(
    row: List[str],
    row_number: int,
    mapping: FieldMapping,
    check_email_format: bool = True
) -> Tuple[Optional[ParsedRecord], List[RowDiagnostic]]:
    diagnostics: List[RowDiagnostic] = []

    if is_blank_row(row):
        return None, diagnostics

    name = _cell(row, mapping, "name")
    if not name:
        diagnostics.append(RowDiagnostic(row_number, "Missing name"))
        return None, diagnostics

    status = normalize_status(_cell(row, mapping, "status"))
    if isinstance(status, Defaulted):
        diagnostics.append(RowDiagnostic(row_number, status.reason))

    optional = {field: _cell(row, mapping, field) or None for field in OPTIONAL_TEXT_FIELDS}

    email = optional["email"]
    if email and check_email_format:
        warning = check_email(email)
        if warning:
            diagnostics.append(RowDiagnostic(row_number, warning))

    record = ParsedRecord(
        name=name,
        row_number=row_number,
        status=status.value,
        value=parse_value(_cell(row, mapping, "value")),
        **optional,
    )
    return record, diagnostics
