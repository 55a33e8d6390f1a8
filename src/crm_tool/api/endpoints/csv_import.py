"""Client CSV import endpoints with preview and confirmation workflow"""
import logging
from fastapi import APIRouter, UploadFile, File, HTTPException
from fastapi.responses import Response

from src.crm_tool.api.deps import ClientStore, RequestContext
from src.crm_tool.config import settings
from src.crm_tool.services.csv_import import (
    ImportSession,
    create_session,
    discard_session,
    generate_error_csv,
    get_session,
    purge_expired_sessions,
    IMPORT_SESSIONS,
)
from src.crm_tool.services.csv_tokenizer import decode_csv_content
from src.crm_tool.services.import_types import (
    CommitError,
    DuplicateCheckError,
    ImportContext,
    InvalidSessionStateError,
)
from src.crm_tool.schemas.client_import import (
    ImportCommitResponse,
    ImportConfirmRequest,
    ImportPreviewResponse,
    ImportRemapRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/import/clients")


def _require_session(session_id: str, context: ImportContext) -> ImportSession:
    session = get_session(session_id, context)
    if session is None:
        raise HTTPException(
            status_code=404,
            detail="Invalid or expired session. Please run preview again."
        )
    return session


@router.post("/preview", response_model=ImportPreviewResponse)
async def preview_client_import(
    context: RequestContext,
    store: ClientStore,
    file: UploadFile = File(...)
):
    """
    Parse an uploaded CSV and return what would be imported.
    Nothing is written until the returned session is confirmed.
    """
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail="Please select a CSV file")

    content = await file.read()
    if len(content) > settings.IMPORT_MAX_FILE_BYTES:
        raise HTTPException(status_code=413, detail="CSV file is too large")

    try:
        csv_content = decode_csv_content(content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    purge_expired_sessions(settings.IMPORT_SESSION_TTL_MINUTES)
    session = create_session(context)

    try:
        preview = await session.preview(
            csv_content,
            store,
            check_email_format=settings.IMPORT_VALIDATE_EMAILS,
            file_name=file.filename,
        )
    except DuplicateCheckError as e:
        discard_session(session.session_id)
        logger.warning(f"Preview for {file.filename} failed: {e}")
        raise HTTPException(status_code=503, detail="Unable to verify duplicates. Please try again.")

    return ImportPreviewResponse.from_preview(session.session_id, preview, file.filename)


@router.post("/remap", response_model=ImportPreviewResponse)
async def remap_client_import(
    context: RequestContext,
    store: ClientStore,
    request: ImportRemapRequest
):
    """
    Re-run the preview of an uploaded file with user-corrected column mappings.
    """
    session = _require_session(request.session_id, context)
    if session.source_text is None:
        raise HTTPException(status_code=409, detail="No file has been previewed in this session")

    overrides = {cm.original: cm.mapped_to for cm in request.column_mappings}
    try:
        preview = await session.preview(
            session.source_text,
            store,
            overrides=overrides,
            check_email_format=settings.IMPORT_VALIDATE_EMAILS,
            file_name=session.file_name,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InvalidSessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except DuplicateCheckError:
        raise HTTPException(status_code=503, detail="Unable to verify duplicates. Please try again.")

    return ImportPreviewResponse.from_preview(session.session_id, preview, session.file_name)


@router.post("/confirm", response_model=ImportCommitResponse)
async def confirm_client_import(
    context: RequestContext,
    store: ClientStore,
    request: ImportConfirmRequest
):
    """
    Insert the previewed clients. Duplicates found during preview are skipped.
    """
    session = _require_session(request.session_id, context)

    try:
        result = await session.commit(store)
    except InvalidSessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except CommitError as e:
        raise HTTPException(status_code=502, detail=str(e))

    IMPORT_SESSIONS.pop(session.session_id, None)

    return ImportCommitResponse(
        session_id=session.session_id,
        inserted_count=result.inserted_count,
        skipped_count=result.skipped_count,
    )


@router.get("/{session_id}/errors.csv")
async def download_error_csv(session_id: str, context: RequestContext):
    """
    Download the preview's row warnings as CSV.
    """
    session = _require_session(session_id, context)
    if session.preview_result is None:
        raise HTTPException(status_code=404, detail="No preview available for this session")

    filename = f"errors_{session_id[:8]}.csv"
    return Response(
        content=generate_error_csv(session.preview_result.errors),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/{session_id}", status_code=204)
async def cancel_client_import(session_id: str, context: RequestContext):
    _require_session(session_id, context)
    try:
        discard_session(session_id)
    except InvalidSessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return Response(status_code=204)
