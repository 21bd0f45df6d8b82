"""Unit tests for the contact upsert engine."""

import re
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects.postgresql import asyncpg

from app.core.config import ASYNCPG_MAX_BIND_PARAMS, MAX_CHUNK_SIZE
from app.core.exceptions import DatabaseError
from app.features.contacts.schemas import ImportRecord
from app.features.contacts.service import (
    ContactStore,
    ContactStoreProtocol,
    UpsertResult,
    collapse_duplicate_emails,
    iter_chunks,
    upsert_contacts_batch,
)


class TestCollapseDuplicateEmails:
    """Tests for in-batch duplicate handling."""

    def test_last_occurrence_wins(self, alice, bob):
        """Test that a later record replaces an earlier one with the same email."""
        renamed = ImportRecord(name="Alice Smith", email="alice@x.com")

        result = collapse_duplicate_emails([alice, bob, renamed])

        assert [r.name for r in result] == ["Bob", "Alice Smith"]

    def test_distinct_records_unchanged(self, alice, bob):
        """Test that distinct emails keep their order."""
        assert collapse_duplicate_emails([alice, bob]) == [alice, bob]

    def test_email_match_is_exact(self, alice):
        """Test that emails differing only by case are separate contacts."""
        upper = ImportRecord(name="ALICE", email="Alice@x.com")

        assert len(collapse_duplicate_emails([alice, upper])) == 2


class TestIterChunks:
    """Tests for chunk slicing."""

    def test_even_split(self, make_records):
        """Test chunks of exactly the chunk size."""
        chunks = list(iter_chunks(make_records(4), 2))
        assert [len(c) for c in chunks] == [2, 2]

    def test_remainder_chunk(self, make_records):
        """Test that the last chunk carries the remainder."""
        chunks = list(iter_chunks(make_records(5), 2))
        assert [len(c) for c in chunks] == [2, 2, 1]

    def test_empty_input(self):
        """Test that no records yields no chunks."""
        assert list(iter_chunks([], 10)) == []

    def test_non_positive_size_rejected(self, make_records):
        """Test that a zero chunk size raises ValueError."""
        with pytest.raises(ValueError, match="positive"):
            list(iter_chunks(make_records(1), 0))


class TestUpsertResult:
    """Tests for UpsertResult dataclass."""

    def test_default_values(self):
        """Test default values are zero."""
        result = UpsertResult()
        assert result.inserted_count == 0
        assert result.updated_count == 0
        assert result.chunk_count == 0
        assert result.total == 0

    def test_total_sums_counts(self):
        """Test total is inserted plus updated."""
        assert UpsertResult(inserted_count=3, updated_count=2).total == 5


class TestUpsertContactsBatch:
    """Tests for upsert_contacts_batch function."""

    @pytest.mark.asyncio
    async def test_all_new_records_inserted(self, fake_store, alice, bob):
        """Test that unseen emails are counted as inserts."""
        result = await upsert_contacts_batch(AsyncMock(), [alice, bob], fake_store, 500)

        assert result.inserted_count == 2
        assert result.updated_count == 0
        assert set(fake_store.contacts) == {"alice@x.com", "bob@x.com"}

    @pytest.mark.asyncio
    async def test_existing_records_updated(self, fake_store, alice, bob):
        """Test that stored emails are counted as updates and overwritten."""
        fake_store.contacts = {"alice@x.com": alice, "bob@x.com": bob}
        renamed = ImportRecord(name="Alice Smith", email="alice@x.com")

        result = await upsert_contacts_batch(AsyncMock(), [renamed, bob], fake_store, 500)

        assert result.inserted_count == 0
        assert result.updated_count == 2
        assert fake_store.contacts["alice@x.com"].name == "Alice Smith"

    @pytest.mark.asyncio
    async def test_mixed_batch(self, fake_store, alice, bob):
        """Test one existing and one new email."""
        fake_store.contacts = {"alice@x.com": alice}

        result = await upsert_contacts_batch(AsyncMock(), [alice, bob], fake_store, 500)

        assert result.inserted_count == 1
        assert result.updated_count == 1
        assert result.total == 2

    @pytest.mark.asyncio
    async def test_in_batch_duplicates_counted_once(self, fake_store, alice):
        """Test that a repeated email is written once with the last values."""
        renamed = ImportRecord(name="Alice Smith", email="alice@x.com")

        result = await upsert_contacts_batch(AsyncMock(), [alice, renamed], fake_store, 500)

        assert result.inserted_count == 1
        assert result.updated_count == 0
        assert fake_store.contacts["alice@x.com"].name == "Alice Smith"
        assert fake_store.writes == [["alice@x.com"]]

    @pytest.mark.asyncio
    async def test_chunks_processed_in_order(self, fake_store, make_records):
        """Test that a batch larger than the chunk size spans several chunks."""
        records = make_records(5)
        fake_store.contacts = {records[4].email: records[4]}

        result = await upsert_contacts_batch(AsyncMock(), records, fake_store, 2)

        assert result.chunk_count == 3
        assert result.inserted_count == 4
        assert result.updated_count == 1
        assert [len(w) for w in fake_store.writes] == [2, 2, 1]

    @pytest.mark.asyncio
    async def test_duplicate_across_chunks_collapsed_first(self, fake_store, make_records):
        """Test that duplicates are removed before chunking."""
        records = make_records(3)
        again = ImportRecord(name="again", email=records[0].email)

        result = await upsert_contacts_batch(AsyncMock(), [*records, again], fake_store, 2)

        assert result.total == 3
        assert fake_store.contacts[records[0].email].name == "again"

    @pytest.mark.asyncio
    async def test_records_written_in_email_order(self, fake_store, make_records):
        """Test that every import writes emails in the same ascending order."""
        records = make_records(5)

        await upsert_contacts_batch(AsyncMock(), list(reversed(records)), fake_store, 2)

        written = [email for chunk in fake_store.writes for email in chunk]
        assert written == sorted(r.email for r in records)

    @pytest.mark.asyncio
    async def test_concurrent_insert_fails_batch(self, racing_store, alice, bob):
        """Test that an email missing from the write result raises DatabaseError."""
        with pytest.raises(DatabaseError) as exc_info:
            await upsert_contacts_batch(AsyncMock(), [alice, bob], racing_store, 500)

        assert exc_info.value.details["missing_emails"] == ["bob@x.com"]
        assert exc_info.value.details["chunk_index"] == 0

    @pytest.mark.asyncio
    async def test_store_error_propagates(self, alice):
        """Test that store failures are not swallowed."""
        store = MagicMock(spec=ContactStoreProtocol)
        store.find_existing_emails = AsyncMock(return_value=set())
        store.write_chunk = AsyncMock(side_effect=RuntimeError("constraint violated"))

        with pytest.raises(RuntimeError, match="constraint violated"):
            await upsert_contacts_batch(AsyncMock(), [alice], store, 500)


class TestContactStore:
    """Tests for ContactStore with a mocked session."""

    @pytest.mark.asyncio
    async def test_find_existing_emails_returns_set(self):
        """Test that rows are mapped to a set of emails."""
        mock_session = AsyncMock()
        mock_result = MagicMock()
        mock_result.__iter__ = lambda self: iter([MagicMock(email="alice@x.com")])
        mock_session.execute.return_value = mock_result

        store = ContactStore()
        result = await store.find_existing_emails(mock_session, {"alice@x.com", "bob@x.com"})

        assert result == {"alice@x.com"}
        mock_session.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_find_existing_emails_empty_set(self):
        """Test that an empty lookup does not query."""
        mock_session = AsyncMock()

        result = await ContactStore().find_existing_emails(mock_session, set())

        assert result == set()
        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_write_chunk_returns_written_emails(self, alice, bob):
        """Test that RETURNING rows become the written set."""
        mock_session = AsyncMock()
        mock_result = MagicMock()
        mock_result.__iter__ = lambda self: iter(
            [MagicMock(email="alice@x.com"), MagicMock(email="bob@x.com")]
        )
        mock_session.execute.return_value = mock_result

        written = await ContactStore().write_chunk(mock_session, [alice, bob], {"alice@x.com"})

        assert written == {"alice@x.com", "bob@x.com"}
        mock_session.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_write_chunk_empty(self):
        """Test that an empty chunk does not query."""
        mock_session = AsyncMock()

        assert await ContactStore().write_chunk(mock_session, [], set()) == set()
        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_largest_chunk_fits_asyncpg_bind_limit(self, make_records):
        """Test that a maximal all-existing chunk stays under asyncpg's parameter cap."""
        records = make_records(MAX_CHUNK_SIZE)
        mock_session = AsyncMock()
        mock_session.execute.return_value = MagicMock()

        await ContactStore().write_chunk(mock_session, records, {r.email for r in records})

        stmt = mock_session.execute.call_args.args[0]
        compiled = stmt.compile(
            dialect=asyncpg.dialect(),
            compile_kwargs={"render_postcompile": True},
        )
        placeholders = set(re.findall(r"\$\d+", compiled.string))
        assert len(placeholders) > 3 * MAX_CHUNK_SIZE
        assert len(placeholders) <= ASYNCPG_MAX_BIND_PARAMS
