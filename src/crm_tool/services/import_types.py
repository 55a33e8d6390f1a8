"""Value types and errors shared by the client CSV import pipeline"""
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Generic, List, Mapping, Optional, Tuple, TypeVar, Union

from src.crm_tool.models.client import ClientStatus


RawTable = List[List[str]]

CANONICAL_FIELDS: Tuple[str, ...] = (
    "name",
    "company",
    "email",
    "phone",
    "status",
    "value",
    "source",
    "website",
    "notes",
)

OPTIONAL_TEXT_FIELDS: Tuple[str, ...] = ("company", "email", "phone", "website", "source", "notes")


class ImportAbortedError(Exception):
    """Fatal condition: no preview can be produced for the file."""


class EmptyFileError(ImportAbortedError):
    def __init__(self) -> None:
        super().__init__("Empty file")


class MissingRequiredColumnError(ImportAbortedError):
    def __init__(self, column: str) -> None:
        self.column = column
        super().__init__(f'Missing required "{column.capitalize()}" column')


class MalformedFileError(ImportAbortedError):
    pass


class DuplicateCheckError(ImportAbortedError):
    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(f"Unable to verify duplicates: {detail}")


class StoreError(Exception):
    """Raised by record stores when the backing database rejects an operation."""


class CommitError(Exception):
    pass


class InvalidSessionStateError(Exception):
    pass


T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Defaulted(Generic[T]):
    value: T
    reason: str


Normalized = Union[Ok[T], Defaulted[T]]


@dataclass(frozen=True)
class FieldMapping:
    headers: Tuple[str, ...]
    header_index: int
    indexes: Mapping[str, Optional[int]]
    unmapped_columns: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "indexes", MappingProxyType(dict(self.indexes)))

    def index_of(self, field_name: str) -> Optional[int]:
        return self.indexes.get(field_name)

    def is_collected(self, field_name: str) -> bool:
        return self.indexes.get(field_name) is not None

    def __hash__(self) -> int:
        return hash((self.headers, self.header_index, tuple(sorted(self.indexes.items())), self.unmapped_columns))


@dataclass(frozen=True)
class ParsedRecord:
    name: str
    row_number: int
    status: ClientStatus = ClientStatus.LEAD
    company: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    source: Optional[str] = None
    notes: Optional[str] = None
    value: Optional[Decimal] = None

    @property
    def identity_key(self) -> Optional[str]:
        """Lower-cased, trimmed email; None when the record has no email."""
        if not self.email:
            return None
        key = self.email.strip().lower()
        return key or None


@dataclass(frozen=True)
class RowDiagnostic:
    row_number: int
    message: str


@dataclass(frozen=True)
class ImportPreview:
    valid: Tuple[ParsedRecord, ...] = ()
    duplicates: Tuple[ParsedRecord, ...] = ()
    errors: Tuple[RowDiagnostic, ...] = ()
    mapping: Optional[FieldMapping] = None
    total_rows: int = 0
    aborted: bool = False

    @classmethod
    def from_fatal(cls, error: ImportAbortedError) -> "ImportPreview":
        return cls(errors=(RowDiagnostic(row_number=1, message=str(error)),), aborted=True)


@dataclass(frozen=True)
class CommitResult:
    inserted_count: int
    skipped_count: int


@dataclass(frozen=True)
class ImportContext:
    """Actor and tenant attached to every inserted record."""
    user_id: str
    workspace_id: str
