from __future__ import annotations

from decimal import Decimal

import pytest
from sqlalchemy import Text, select

from src.crm_tool.models.client import Client, ClientStatus
from src.crm_tool.services.csv_import import (
    build_preview,
    commit_import,
    generate_error_csv,
    preview_import,
    to_insert_row,
)
from src.crm_tool.services.import_types import (
    CommitError,
    DuplicateCheckError,
    ImportPreview,
    ParsedRecord,
    RowDiagnostic,
)


def test_end_to_end_preview(sample_csv):
    preview = build_preview(sample_csv)

    assert [(r.name, r.status) for r in preview.valid] == [
        ("Alice", ClientStatus.ACTIVE),
        ("Bob", ClientStatus.LEAD),
    ]
    assert [(r.name, r.status) for r in preview.duplicates] == [("Alice2", ClientStatus.LEAD)]
    assert len(preview.errors) == 1
    assert preview.errors[0].row_number == 4
    assert "alice@x.com" in preview.errors[0].message
    assert preview.total_rows == 3
    assert not preview.aborted


def test_empty_file_aborts_preview():
    preview = build_preview("")
    assert preview.aborted
    assert preview.valid == ()
    assert preview.duplicates == ()
    assert preview.errors == (RowDiagnostic(1, "Empty file"),)


def test_missing_name_column_aborts_preview():
    preview = build_preview("Email,Company\na@x.com,Acme\n")
    assert preview.aborted
    assert preview.valid == ()
    assert len(preview.errors) == 1
    assert preview.errors[0].row_number == 1
    assert "Name" in preview.errors[0].message


def test_partitions_account_for_every_data_row():
    text = (
        "Client Name,Email,Status,Amount\n"
        "Alice,alice@x.com,active,\"$1,000\"\n"
        "\n"
        ",nobody@x.com,lead,\n"
        "Bob,BOB@x.com,prospect,oops\n"
        "Bobby,bob@x.com,churned,5\n"
        "Carol,,,\n"
        ",,,\n"
    )
    preview = build_preview(text)

    skipped_blank = 1
    skipped_nameless = 2
    assert preview.total_rows == 7
    assert len(preview.valid) + len(preview.duplicates) + skipped_blank + skipped_nameless == preview.total_rows
    assert [r.name for r in preview.valid] == ["Alice", "Bob", "Carol"]
    assert [r.name for r in preview.duplicates] == ["Bobby"]
    assert preview.valid[0].value == Decimal("1000")
    assert [e.row_number for e in preview.errors] == [4, 5, 6, 8]
    assert preview.errors[-1].message == "Missing name"


def test_row_of_only_commas_is_reported_not_skipped():
    preview = build_preview("Name,Email,Status\nAlice,a@x.com,active\n,,\n")
    assert [(e.row_number, e.message) for e in preview.errors] == [(3, "Missing name")]
    assert [r.name for r in preview.valid] == ["Alice"]


def test_preview_is_idempotent(sample_csv):
    assert build_preview(sample_csv) == build_preview(sample_csv)


def test_valid_emails_are_unique_after_preview():
    text = "Name,Email\nA,a@x.com\nB,A@X.COM\nC,c@x.com\nD,\nE,\n"
    preview = build_preview(text)
    keys = [r.identity_key for r in preview.valid if r.identity_key]
    assert len(keys) == len(set(keys))


@pytest.mark.asyncio
async def test_preview_import_moves_existing_clients(sample_csv, fake_store_factory):
    store = fake_store_factory(existing={"alice@x.com"})

    preview = await preview_import(sample_csv, "ws-1", store)

    assert [r.name for r in preview.valid] == ["Bob"]
    assert [r.name for r in preview.duplicates] == ["Alice2", "Alice"]
    assert [e.row_number for e in preview.errors] == [2, 4]


@pytest.mark.asyncio
async def test_preview_import_is_idempotent_without_store_changes(sample_csv, store):
    first = await preview_import(sample_csv, "ws-1", store)
    second = await preview_import(sample_csv, "ws-1", store)
    assert first == second


@pytest.mark.asyncio
async def test_preview_import_surfaces_store_failure(sample_csv, fake_store_factory):
    with pytest.raises(DuplicateCheckError):
        await preview_import(sample_csv, "ws-1", fake_store_factory(fail_lookup=True))


@pytest.mark.asyncio
async def test_aborted_preview_never_queries_store(fake_store_factory):
    store = fake_store_factory()
    preview = await preview_import("", "ws-1", store)
    assert preview.aborted
    assert store.lookups == []


@pytest.mark.asyncio
async def test_commit_inserts_valid_records(sample_csv, store, db):
    preview = await preview_import(sample_csv, "ws-1", store)

    result = await commit_import(preview, "user-1", "ws-1", store)

    assert result.inserted_count == 2
    assert result.skipped_count == 1
    clients = db.execute(select(Client).order_by(Client.id)).scalars().all()
    assert [(c.name, c.status, c.workspace_id, c.created_by) for c in clients] == [
        ("Alice", ClientStatus.ACTIVE, "ws-1", "user-1"),
        ("Bob", ClientStatus.LEAD, "ws-1", "user-1"),
    ]
    assert clients[1].email is None


def test_client_columns_accept_any_normalized_value():
    columns = Client.__table__.c
    for name in ("name", "company", "email", "phone", "website", "source", "notes"):
        assert isinstance(columns[name].type, Text), name
    assert columns["value"].type.precision is None
    assert columns["value"].type.scale is None


@pytest.mark.asyncio
async def test_commit_accepts_long_text_and_large_values(store, db):
    long_name = "N" * 300
    preview = await preview_import(f"Name,Email,Value\n{long_name},big@x.com,1e20\n", "ws-1", store)
    assert preview.valid[0].value == Decimal("1e20")

    result = await commit_import(preview, "user-1", "ws-1", store)

    assert result.inserted_count == 1
    client = db.execute(select(Client)).scalars().one()
    assert client.name == long_name
    assert client.value == Decimal("1e20")


@pytest.mark.asyncio
async def test_commit_then_preview_again_finds_corpus_duplicates(sample_csv, store):
    preview = await preview_import(sample_csv, "ws-1", store)
    await commit_import(preview, "user-1", "ws-1", store)

    again = await preview_import(sample_csv, "ws-1", store)

    assert [r.name for r in again.valid] == ["Bob"]
    assert {r.name for r in again.duplicates} == {"Alice", "Alice2"}

    elsewhere = await preview_import(sample_csv, "ws-2", store)
    assert [r.name for r in elsewhere.valid] == ["Alice", "Bob"]


@pytest.mark.asyncio
async def test_commit_with_nothing_valid_is_a_no_op(fake_store_factory):
    store = fake_store_factory()
    preview = ImportPreview(duplicates=(ParsedRecord(name="A", row_number=2, email="a@x.com"),))

    result = await commit_import(preview, "user-1", "ws-1", store)

    assert (result.inserted_count, result.skipped_count) == (0, 1)
    assert store.inserts == []


@pytest.mark.asyncio
async def test_commit_sends_explicit_nulls_in_one_batch(sample_csv, fake_store_factory):
    store = fake_store_factory()
    preview = build_preview(sample_csv)

    await commit_import(preview, "user-1", "ws-1", store)

    assert len(store.inserts) == 1
    rows = store.inserts[0]
    assert len(rows) == 2
    for row in rows:
        assert set(row) == {
            "workspace_id", "created_by", "name", "company", "email", "phone",
            "status", "value", "source", "website", "notes",
        }
    assert rows[1]["email"] is None
    assert rows[1]["company"] is None


@pytest.mark.asyncio
async def test_commit_reports_store_count(sample_csv, fake_store_factory):
    store = fake_store_factory(report_inserted=1)
    result = await commit_import(build_preview(sample_csv), "user-1", "ws-1", store)
    assert result.inserted_count == 1
    assert result.skipped_count == 1


@pytest.mark.asyncio
async def test_commit_failure_raises_commit_error(sample_csv, fake_store_factory):
    store = fake_store_factory(fail_insert=True)
    with pytest.raises(CommitError) as exc:
        await commit_import(build_preview(sample_csv), "user-1", "ws-1", store)
    assert "not-null" in str(exc.value)


def test_to_insert_row_stamps_actor_and_tenant():
    record = ParsedRecord(name="Zed", row_number=9, value=Decimal("10"), website="zed.io")
    row = to_insert_row(record, "user-7", "ws-9")
    assert row["workspace_id"] == "ws-9"
    assert row["created_by"] == "user-7"
    assert row["website"] == "zed.io"
    assert row["notes"] is None
    assert row["status"] is ClientStatus.LEAD


def test_generate_error_csv():
    content = generate_error_csv([RowDiagnostic(3, 'Invalid status "x" - defaulting to "lead"')])
    lines = content.splitlines()
    assert lines[0] == "row_number,message"
    assert lines[1] == '3,"Invalid status ""x"" - defaulting to ""lead"""'
