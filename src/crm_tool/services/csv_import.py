"""Client CSV import: preview generation, commit, and import sessions"""
import csv
import enum
import io
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from src.crm_tool.services.client_store import RecordStore
from src.crm_tool.services.csv_normalizer import normalize_row, resolve_headers
from src.crm_tool.services.csv_tokenizer import tokenize
from src.crm_tool.services.deduplication import check_against_corpus, dedupe_within_batch
from src.crm_tool.services.import_types import (
    OPTIONAL_TEXT_FIELDS,
    CommitError,
    CommitResult,
    ImportAbortedError,
    ImportContext,
    ImportPreview,
    InvalidSessionStateError,
    ParsedRecord,
    RowDiagnostic,
    StoreError,
)

logger = logging.getLogger(__name__)

ColumnOverrides = Mapping[str, Optional[str]]


def _in_row_order(diagnostics: Iterable[RowDiagnostic]) -> Tuple[RowDiagnostic, ...]:
    return tuple(sorted(diagnostics, key=lambda d: d.row_number))


def build_preview(
    text: str,
    overrides: Optional[ColumnOverrides] = None,
    check_email_format: bool = True
) -> ImportPreview:
    """Tokenize, resolve headers, normalize rows and dedupe within the file.

    Fatal problems (empty file, no name column, unreadable CSV) give an
    aborted preview holding one diagnostic at row 1 and no records.
    """
    try:
        table = tokenize(text)
        mapping = resolve_headers(table, overrides)
    except ImportAbortedError as e:
        logger.warning(f"Import aborted: {e}")
        return ImportPreview.from_fatal(e)

    records: List[ParsedRecord] = []
    diagnostics: List[RowDiagnostic] = []
    data_rows = table[mapping.header_index + 1:]

    for offset, row in enumerate(data_rows):
        row_number = mapping.header_index + offset + 2
        record, row_diagnostics = normalize_row(row, row_number, mapping, check_email_format)
        diagnostics.extend(row_diagnostics)
        if record is not None:
            records.append(record)

    valid, duplicates, duplicate_diagnostics = dedupe_within_batch(records)
    diagnostics.extend(duplicate_diagnostics)

    logger.info(
        f"Parsed {len(data_rows)} rows: {len(valid)} valid, "
        f"{len(duplicates)} duplicate, {len(diagnostics)} warnings"
    )
    return ImportPreview(
        valid=tuple(valid),
        duplicates=tuple(duplicates),
        errors=_in_row_order(diagnostics),
        mapping=mapping,
        total_rows=len(data_rows),
    )


async def preview_import(
    text: str,
    tenant_id: str,
    store: RecordStore,
    overrides: Optional[ColumnOverrides] = None,
    check_email_format: bool = True
) -> ImportPreview:
    """Build a preview and move clients that already exist in the workspace to duplicates.

    Raises DuplicateCheckError when the store cannot be queried.
    """
    preview = build_preview(text, overrides, check_email_format)
    if preview.aborted or not preview.valid:
        return preview

    kept, existing, diagnostics = await check_against_corpus(list(preview.valid), tenant_id, store)
    if not existing:
        return preview

    return replace(
        preview,
        valid=tuple(kept),
        duplicates=preview.duplicates + tuple(existing),
        errors=_in_row_order(preview.errors + tuple(diagnostics)),
    )


def to_insert_row(record: ParsedRecord, actor_id: str, tenant_id: str) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "workspace_id": tenant_id,
        "created_by": actor_id,
        "name": record.name,
        "status": record.status,
        "value": record.value,
    }
    for field in OPTIONAL_TEXT_FIELDS:
        row[field] = getattr(record, field) or None
    return row


async def commit_import(
    preview: ImportPreview,
    actor_id: str,
    tenant_id: str,
    store: RecordStore
) -> CommitResult:
    skipped = len(preview.duplicates)
    if not preview.valid:
        return CommitResult(inserted_count=0, skipped_count=skipped)

    rows = [to_insert_row(record, actor_id, tenant_id) for record in preview.valid]
    try:
        inserted = await store.bulk_insert(rows)
    except StoreError as e:
        raise CommitError(str(e) or "Failed to import clients") from e

    logger.info(f"Imported {inserted} clients into workspace {tenant_id} ({skipped} duplicates skipped)")
    return CommitResult(inserted_count=inserted, skipped_count=skipped)


class ImportState(str, enum.Enum):
    IDLE = "idle"
    PREVIEWING = "previewing"
    PREVIEW_READY = "preview_ready"
    COMMITTING = "committing"
    COMMITTED = "committed"
    FAILED = "failed"


class ImportSession:
    """One user's import: a preview that may later be committed.

    Commit is only allowed from PREVIEW_READY; previewing again discards the
    previous preview. Nothing is written to the store before commit.
    """

    def __init__(self, context: ImportContext, session_id: Optional[str] = None):
        self.session_id = session_id or str(uuid.uuid4())
        self.context = context
        self.state = ImportState.IDLE
        self.file_name: Optional[str] = None
        self.source_text: Optional[str] = None
        self.preview_result: Optional[ImportPreview] = None
        self.result: Optional[CommitResult] = None
        self.error: Optional[str] = None
        self.created_at = datetime.now(timezone.utc)
        self.updated_at = self.created_at

    def _transition(self, state: ImportState) -> None:
        logger.debug(f"Import session {self.session_id}: {self.state.value} -> {state.value}")
        self.state = state
        self.updated_at = datetime.now(timezone.utc)

    async def preview(
        self,
        text: str,
        store: RecordStore,
        overrides: Optional[ColumnOverrides] = None,
        check_email_format: bool = True,
        file_name: Optional[str] = None
    ) -> ImportPreview:
        if self.state == ImportState.COMMITTING:
            raise InvalidSessionStateError("Import is being committed")

        self.preview_result = None
        self.result = None
        self.error = None
        self.file_name = file_name
        self.source_text = text
        self._transition(ImportState.PREVIEWING)

        try:
            preview = await preview_import(
                text,
                self.context.workspace_id,
                store,
                overrides=overrides,
                check_email_format=check_email_format,
            )
        except (ImportAbortedError, ValueError) as e:
            self.error = str(e)
            self._transition(ImportState.IDLE)
            raise

        self.preview_result = preview
        self._transition(ImportState.PREVIEW_READY)
        return preview

    async def commit(self, store: RecordStore) -> CommitResult:
        if self.state != ImportState.PREVIEW_READY or self.preview_result is None:
            raise InvalidSessionStateError(
                f"Cannot commit an import in state '{self.state.value}'. Please run preview again."
            )

        self._transition(ImportState.COMMITTING)
        try:
            result = await commit_import(
                self.preview_result,
                self.context.user_id,
                self.context.workspace_id,
                store,
            )
        except CommitError as e:
            self.error = str(e)
            self._transition(ImportState.FAILED)
            raise

        self.result = result
        self._transition(ImportState.COMMITTED)
        return result

    def discard(self) -> None:
        if self.state == ImportState.COMMITTING:
            raise InvalidSessionStateError("Import is being committed")
        self.preview_result = None
        self._transition(ImportState.IDLE)

    def is_expired(self, ttl: timedelta, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now - self.updated_at > ttl


IMPORT_SESSIONS: Dict[str, ImportSession] = {}


def create_session(context: ImportContext) -> ImportSession:
    session = ImportSession(context)
    IMPORT_SESSIONS[session.session_id] = session
    return session


def get_session(session_id: str, context: Optional[ImportContext] = None) -> Optional[ImportSession]:
    """Look up a session; sessions of another workspace or user are not visible."""
    session = IMPORT_SESSIONS.get(session_id)
    if session is None:
        return None
    if context is not None and session.context != context:
        return None
    return session


def discard_session(session_id: str) -> bool:
    session = IMPORT_SESSIONS.get(session_id)
    if session is None:
        return False
    session.discard()
    del IMPORT_SESSIONS[session_id]
    return True


def purge_expired_sessions(ttl_minutes: int, now: Optional[datetime] = None) -> int:
    ttl = timedelta(minutes=ttl_minutes)
    expired = [
        sid for sid, session in IMPORT_SESSIONS.items()
        if session.state != ImportState.COMMITTING and session.is_expired(ttl, now)
    ]
    for sid in expired:
        del IMPORT_SESSIONS[sid]
    if expired:
        logger.info(f"Purged {len(expired)} expired import sessions")
    return len(expired)


def generate_error_csv(errors: Iterable[RowDiagnostic]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["row_number", "message"])
    for error in errors:
        writer.writerow([error.row_number, error.message])
    return buffer.getvalue()
