"""Behavioral contract shared by every ``storage-backend`` variant.

The same tests run against the built-in in-memory store and the SQL store
(on ``sqlite+aiosqlite`` in memory).
"""

import asyncio

import pytest
import pytest_asyncio

from forkline.fork.storage import SqlMailStore, create_engine
from forkline.upstream.storage import INBOX_ID, TRASH_ID, InMemoryMailStore

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(params=["builtin", "sql"])
async def store(request):
    if request.param == "builtin":
        yield InMemoryMailStore()
        return
    sql_store = SqlMailStore.from_url(TEST_DATABASE_URL)
    await sql_store.initialize()
    yield sql_store
    await sql_store.aclose()


class TestMailboxes:
    @pytest.mark.asyncio
    async def test_account_gets_default_mailboxes(self, store):
        boxes = await store.ensure_account("alice")
        assert [(b.id, b.name, b.role) for b in boxes] == [(INBOX_ID, "Inbox", "inbox"), (TRASH_ID, "Trash", "trash")]

    @pytest.mark.asyncio
    async def test_ensure_account_is_idempotent(self, store):
        await store.ensure_account("alice")
        assert len(await store.ensure_account("alice")) == 2

    @pytest.mark.asyncio
    async def test_lookups(self, store):
        assert (await store.mailbox_by_id("alice", TRASH_ID)).name == "Trash"
        assert (await store.mailbox_by_role("alice", "INBOX")).id == INBOX_ID
        assert (await store.mailbox_by_name("alice", " inbox ")).id == INBOX_ID
        assert await store.mailbox_by_id("alice", 42) is None
        assert await store.mailbox_by_role("alice", "junk") is None
        assert await store.mailbox_by_name("alice", "Receipts") is None

    @pytest.mark.asyncio
    async def test_create_mailbox(self, store):
        created = await store.create_mailbox("alice", "Receipts")
        assert created.id == 2
        assert created.role is None
        again = await store.create_mailbox("alice", "receipts")
        assert again.id == created.id
        junk = await store.create_mailbox("alice", "Junk", role="Junk")
        assert junk.id == 3
        assert (await store.mailbox_by_role("alice", "junk")).id == 3

    @pytest.mark.asyncio
    async def test_accounts_are_isolated(self, store):
        await store.create_mailbox("alice", "Receipts")
        assert await store.mailbox_by_name("bob", "Receipts") is None


class TestMessages:
    @pytest.mark.asyncio
    async def test_ingest_and_list(self, store):
        raw = b"Subject: hi\r\n\r\nbody"
        stored = await store.ingest("alice", raw, mailbox_ids=[INBOX_ID], keywords=["$seen"])
        assert stored.size == len(raw)
        assert stored.raw == raw

        messages = await store.list_messages("alice")
        assert [m.id for m in messages] == [stored.id]
        assert messages[0].keywords == ["$seen"]

    @pytest.mark.asyncio
    async def test_list_by_mailbox(self, store):
        await store.ingest("alice", b"a", mailbox_ids=[INBOX_ID], keywords=[])
        await store.ingest("alice", b"b", mailbox_ids=[TRASH_ID], keywords=[])
        await store.ingest("alice", b"c", mailbox_ids=[], keywords=[])
        assert [m.raw for m in await store.list_messages("alice", TRASH_ID)] == [b"b"]
        assert len(await store.list_messages("alice")) == 3
        assert await store.list_messages("bob") == []


class TestConcurrentProvisioning:
    @pytest.mark.asyncio
    async def test_first_deliveries_to_new_account(self, store):
        stored = await asyncio.gather(
            *(store.ingest("alice", f"m{i}".encode(), mailbox_ids=[INBOX_ID], keywords=[]) for i in range(5))
        )
        assert len({m.id for m in stored}) == 5
        assert len(await store.list_messages("alice")) == 5
        boxes = await store.ensure_account("alice")
        assert [(b.id, b.name) for b in boxes] == [(INBOX_ID, "Inbox"), (TRASH_ID, "Trash")]

    @pytest.mark.asyncio
    async def test_concurrent_create_mailbox(self, store):
        created = await asyncio.gather(*(store.create_mailbox("alice", name) for name in ("A", "B", "a", "C")))
        assert created[0].id == created[2].id
        assert sorted({m.id for m in created}) == [2, 3, 4]
        assert len(await store.ensure_account("alice")) == 5


@pytest_asyncio.fixture
async def sql_store():
    sql_store = SqlMailStore.from_url(TEST_DATABASE_URL)
    await sql_store.initialize()
    yield sql_store
    await sql_store.aclose()


class TestProvisionedElsewhere:
    @pytest.mark.asyncio
    async def test_default_mailboxes_reread_after_conflict(self, sql_store, monkeypatch):
        # A second store on the same database commits the rows first.
        await SqlMailStore(sql_store.engine).ensure_account("alice")

        real_mailboxes = sql_store._mailboxes
        calls = []

        async def stale_then_real(s, account_id):
            calls.append(account_id)
            if len(calls) <= 2:
                return []
            return await real_mailboxes(s, account_id)

        monkeypatch.setattr(sql_store, "_mailboxes", stale_then_real)
        boxes = await sql_store.ensure_account("alice")
        assert [(b.id, b.name) for b in boxes] == [(INBOX_ID, "Inbox"), (TRASH_ID, "Trash")]
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_same_name_created_elsewhere(self, sql_store, monkeypatch):
        other = SqlMailStore(sql_store.engine)
        await sql_store.ensure_account("alice")
        created_elsewhere = await other.create_mailbox("alice", "Receipts")

        real_mailboxes = sql_store._mailboxes
        calls = []

        async def hide_receipts_once(s, account_id):
            rows = await real_mailboxes(s, account_id)
            calls.append(account_id)
            if len(calls) == 2:
                return [row for row in rows if row.name_key != "receipts"]
            return rows

        monkeypatch.setattr(sql_store, "_mailboxes", hide_receipts_once)
        mailbox = await sql_store.create_mailbox("alice", "receipts")
        assert mailbox.id == created_elsewhere.id


class TestCreateEngine:
    def test_postgres_urls_use_asyncpg(self, monkeypatch):
        seen = {}

        def fake_create_async_engine(url, **kwargs):
            seen["url"] = url
            seen["kwargs"] = kwargs
            return object()

        monkeypatch.setattr("forkline.fork.storage.postgres.create_async_engine", fake_create_async_engine)
        for url in ("postgres://u:p@h/db", "postgresql://u:p@h/db", "postgresql+psycopg://u:p@h/db"):
            create_engine(url)
            assert seen["url"] == "postgresql+asyncpg://u:p@h/db"
            assert seen["kwargs"] == {"pool_pre_ping": True}

    @pytest.mark.asyncio
    async def test_sqlite_engine_shares_one_connection(self):
        engine = create_engine(TEST_DATABASE_URL)
        try:
            assert engine.url.drivername == "sqlite+aiosqlite"
        finally:
            await engine.dispose()
