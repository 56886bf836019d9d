from __future__ import annotations

"""SQLAlchemy async mail store.

This module provides the ``storage-backend=postgres`` variant: a
Postgres-backed implementation of ``forkline.upstream.storage.MailStore``.
Any async SQLAlchemy URL works; tests use ``sqlite+aiosqlite``.

Usage
-----

- Build a store with ``SqlMailStore.from_url``.
- ``initialize()`` creates the tables (the registry calls it during startup).
- ``aclose()`` disposes of the engine.

Transaction model
-----------------

Each method opens an ``AsyncSession``, performs its operation, and commits, so
every delivered message is durable when ``ingest`` returns.

Mailbox provisioning (default mailboxes on first use, ``create_mailbox``) is
serialized per store with an ``asyncio.Lock``. A unique-constraint conflict
raised by another process is rolled back and the winning rows are re-read.
"""

import asyncio
import re
from typing import List, Optional
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from forkline.core.logging_config import get_logger
from forkline.upstream.storage.base import DEFAULT_MAILBOXES, Mailbox, StoredMessage, utc_now

from .models import Base, MailboxRow, MessageRow

logger = get_logger(__name__)


def create_engine(db_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Postgres URLs are normalized to the asyncpg driver, e.g. ``postgresql://``
    becomes ``postgresql+asyncpg://``. In-memory SQLite URLs share a single
    connection so every session sees the same database.
    """
    url = re.sub(r"^postgres(?:ql)?(?:\+[a-z0-9_]+)?://", "postgresql+asyncpg://", db_url, count=1)
    if url.startswith("sqlite"):
        return create_async_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_async_engine(url, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an ``async_sessionmaker`` with safe defaults for this project."""
    return async_sessionmaker(engine, expire_on_commit=False)


def _mailbox(row: MailboxRow) -> Mailbox:
    return Mailbox(id=row.mailbox_id, account_id=row.account_id, name=row.name, role=row.role)


def _message(row: MessageRow) -> StoredMessage:
    return StoredMessage(
        id=row.id,
        account_id=row.account_id,
        mailbox_ids=list(row.mailbox_ids or []),
        keywords=list(row.keywords or []),
        raw=row.raw,
        size=row.size,
        received_at=row.received_at,
    )


class SqlMailStore:
    """SQL implementation of ``MailStore``."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = create_sessionmaker(engine)
        self._provision_lock = asyncio.Lock()

    @classmethod
    def from_url(cls, db_url: str) -> "SqlMailStore":
        return cls(create_engine(db_url))

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def initialize(self) -> None:
        """Create all tables for the current ORM metadata."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"SQL mail store ready on {self._engine.url.render_as_string(hide_password=True)}")

    async def aclose(self) -> None:
        await self._engine.dispose()

    async def _mailboxes(self, s: AsyncSession, account_id: str) -> List[MailboxRow]:
        result = await s.execute(
            select(MailboxRow).where(MailboxRow.account_id == account_id).order_by(MailboxRow.mailbox_id)
        )
        return list(result.scalars())

    async def _ensure(self, s: AsyncSession, account_id: str) -> List[MailboxRow]:
        rows = await self._mailboxes(s, account_id)
        if rows:
            return rows
        async with self._provision_lock:
            rows = await self._mailboxes(s, account_id)
            if rows:
                return rows
            rows = [
                MailboxRow(
                    account_id=account_id,
                    mailbox_id=mailbox_id,
                    name=name,
                    name_key=name.lower(),
                    role=role,
                )
                for mailbox_id, name, role in DEFAULT_MAILBOXES
            ]
            s.add_all(rows)
            try:
                await s.commit()
            except IntegrityError:
                # Another process provisioned the account first.
                await s.rollback()
                logger.debug(f"Default mailboxes for {account_id} already provisioned elsewhere")
                return await self._mailboxes(s, account_id)
            return rows

    async def ensure_account(self, account_id: str) -> List[Mailbox]:
        async with self._session_factory() as s:
            return [_mailbox(row) for row in await self._ensure(s, account_id)]

    async def mailbox_by_id(self, account_id: str, mailbox_id: int) -> Optional[Mailbox]:
        async with self._session_factory() as s:
            for row in await self._ensure(s, account_id):
                if row.mailbox_id == mailbox_id:
                    return _mailbox(row)
        return None

    async def mailbox_by_role(self, account_id: str, role: str) -> Optional[Mailbox]:
        role = role.lower()
        async with self._session_factory() as s:
            for row in await self._ensure(s, account_id):
                if row.role == role:
                    return _mailbox(row)
        return None

    async def mailbox_by_name(self, account_id: str, name: str) -> Optional[Mailbox]:
        key = name.strip().lower()
        async with self._session_factory() as s:
            for row in await self._ensure(s, account_id):
                if row.name_key == key:
                    return _mailbox(row)
        return None

    async def create_mailbox(self, account_id: str, name: str, role: Optional[str] = None) -> Mailbox:
        key = name.strip().lower()
        async with self._session_factory() as s:
            await self._ensure(s, account_id)
            async with self._provision_lock:
                for row in await self._mailboxes(s, account_id):
                    if row.name_key == key:
                        return _mailbox(row)
                next_id = (
                    await s.execute(
                        select(func.max(MailboxRow.mailbox_id)).where(MailboxRow.account_id == account_id)
                    )
                ).scalar_one()
                row = MailboxRow(
                    account_id=account_id,
                    mailbox_id=int(next_id) + 1,
                    name=name.strip(),
                    name_key=key,
                    role=role.lower() if role else None,
                )
                s.add(row)
                try:
                    await s.commit()
                except IntegrityError:
                    await s.rollback()
                    for existing in await self._mailboxes(s, account_id):
                        if existing.name_key == key:
                            return _mailbox(existing)
                    raise
                return _mailbox(row)

    async def ingest(
        self,
        account_id: str,
        raw: bytes,
        *,
        mailbox_ids: List[int],
        keywords: List[str],
    ) -> StoredMessage:
        async with self._session_factory() as s:
            await self._ensure(s, account_id)
            row = MessageRow(
                id=str(uuid4()),
                account_id=account_id,
                mailbox_ids=list(mailbox_ids),
                keywords=list(keywords),
                raw=raw,
                size=len(raw),
                received_at=utc_now(),
            )
            s.add(row)
            await s.commit()
            return _message(row)

    async def list_messages(self, account_id: str, mailbox_id: Optional[int] = None) -> List[StoredMessage]:
        async with self._session_factory() as s:
            await self._ensure(s, account_id)
            rows = (
                await s.execute(
                    select(MessageRow).where(MessageRow.account_id == account_id).order_by(MessageRow.received_at)
                )
            ).scalars()
            messages = [_message(row) for row in rows]
        if mailbox_id is None:
            return messages
        return [m for m in messages if mailbox_id in m.mailbox_ids]
