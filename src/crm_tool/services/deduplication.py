"""Duplicate detection by email, within a file and against stored clients"""
import logging
from typing import Iterable, List, Set, Tuple

from src.crm_tool.services.client_store import RecordStore
from src.crm_tool.services.import_types import (
    DuplicateCheckError,
    ParsedRecord,
    RowDiagnostic,
    StoreError,
)

logger = logging.getLogger(__name__)

DedupResult = Tuple[List[ParsedRecord], List[ParsedRecord], List[RowDiagnostic]]


def dedupe_within_batch(records: Iterable[ParsedRecord]) -> DedupResult:
    """Keep the first record per email; later repeats become duplicates.

    Records without an email are never duplicates of each other.
    """
    valid: List[ParsedRecord] = []
    duplicates: List[ParsedRecord] = []
    diagnostics: List[RowDiagnostic] = []
    seen: Set[str] = set()

    for record in records:
        key = record.identity_key
        if key is not None:
            if key in seen:
                duplicates.append(record)
                diagnostics.append(RowDiagnostic(
                    record.row_number,
                    f'Duplicate email "{record.email}" in file - will be skipped'
                ))
                continue
            seen.add(key)
        valid.append(record)

    return valid, duplicates, diagnostics


async def check_against_corpus(
    valid: List[ParsedRecord],
    tenant_id: str,
    store: RecordStore
) -> DedupResult:
    """Move records whose email already exists for the tenant into duplicates.

    Issues a single lookup; skips the store entirely when no record has an email.
    Raises DuplicateCheckError when the store cannot answer.
    """
    emails = sorted({r.identity_key for r in valid if r.identity_key is not None})
    if not emails:
        return list(valid), [], []

    try:
        existing = await store.find_existing_emails(tenant_id, emails)
    except StoreError as e:
        logger.error(f"Duplicate check failed for workspace {tenant_id}: {e}")
        raise DuplicateCheckError(str(e)) from e

    existing = {email.strip().lower() for email in existing if email}

    kept: List[ParsedRecord] = []
    duplicates: List[ParsedRecord] = []
    diagnostics: List[RowDiagnostic] = []
    for record in valid:
        if record.identity_key in existing:
            duplicates.append(record)
            diagnostics.append(RowDiagnostic(
                record.row_number,
                f'Email "{record.email}" already exists in this workspace - will be skipped'
            ))
        else:
            kept.append(record)

    if duplicates:
        logger.info(f"{len(duplicates)} of {len(valid)} clients already exist in workspace {tenant_id}")
    return kept, duplicates, diagnostics
