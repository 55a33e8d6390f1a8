"""Client CSV import schemas for preview and confirmation"""
from decimal import Decimal
from typing import Optional, List, Dict

from pydantic import BaseModel

from src.crm_tool.models.client import ClientStatus
from src.crm_tool.services.import_types import ImportPreview, ParsedRecord, RowDiagnostic


class ParsedClient(BaseModel):
    row_number: int
    name: str
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    status: ClientStatus
    value: Optional[Decimal] = None
    source: Optional[str] = None
    website: Optional[str] = None
    notes: Optional[str] = None
    
    class Config:
        from_attributes = True


class RowDiagnosticOut(BaseModel):
    row_number: int
    message: str
    
    class Config:
        from_attributes = True


class ColumnMappingOut(BaseModel):
    fields: Dict[str, Optional[str]]
    unmapped_columns: List[str]


class ImportPreviewResponse(BaseModel):
    session_id: str
    file_name: Optional[str] = None
    total_rows: int
    valid: List[ParsedClient]
    duplicates: List[ParsedClient]
    errors: List[RowDiagnosticOut]
    mapping: Optional[ColumnMappingOut] = None
    aborted: bool = False
    
    @classmethod
    def from_preview(
        cls,
        session_id: str,
        preview: ImportPreview,
        file_name: Optional[str] = None
    ) -> "ImportPreviewResponse":
        mapping = None
        if preview.mapping is not None:
            headers = preview.mapping.headers
            mapping = ColumnMappingOut(
                fields={
                    field: headers[idx] if idx is not None else None
                    for field, idx in preview.mapping.indexes.items()
                },
                unmapped_columns=list(preview.mapping.unmapped_columns),
            )
        return cls(
            session_id=session_id,
            file_name=file_name,
            total_rows=preview.total_rows,
            valid=[_client(r) for r in preview.valid],
            duplicates=[_client(r) for r in preview.duplicates],
            errors=[_diagnostic(d) for d in preview.errors],
            mapping=mapping,
            aborted=preview.aborted,
        )


def _client(record: ParsedRecord) -> ParsedClient:
    return ParsedClient.model_validate(record)


def _diagnostic(diagnostic: RowDiagnostic) -> RowDiagnosticOut:
    return RowDiagnosticOut.model_validate(diagnostic)


class ImportConfirmRequest(BaseModel):
    session_id: str


class ImportCommitResponse(BaseModel):
    session_id: str
    inserted_count: int
    skipped_count: int


class ColumnMappingUpdate(BaseModel):
    original: str
    mapped_to: Optional[str] = None


class ImportRemapRequest(BaseModel):
    session_id: str
    column_mappings: List[ColumnMappingUpdate]
