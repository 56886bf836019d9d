from __future__ import annotations

"""SQLAlchemy ORM models for the SQL mail store.

These ORM models define the schema used by
``forkline.fork.storage.postgres.SqlMailStore``.

Design
------

- Mailboxes are numbered per account so ids line up with the built-in store
  (``0`` is the Inbox, ``1`` the Trash).
- Messages keep their raw bytes and store the target mailbox ids and keywords
  as JSON arrays.

Table names are prefixed with ``fl_`` to avoid collisions in shared databases.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, DateTime, Integer, LargeBinary, String, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class MailboxRow(Base):
    """Row model for ``fl_mailboxes``."""

    __tablename__ = "fl_mailboxes"
    __table_args__ = (
        UniqueConstraint("account_id", "mailbox_id", name="uq_fl_mailboxes_account_mailbox"),
        UniqueConstraint("account_id", "name_key", name="uq_fl_mailboxes_account_name"),
    )

    pk: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[str] = mapped_column(String(128), index=True)
    mailbox_id: Mapped[int] = mapped_column(Integer)
    name: Mapped[str] = mapped_column(String(255))
    name_key: Mapped[str] = mapped_column(String(255), index=True)
    role: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)


class MessageRow(Base):
    """Row model for ``fl_messages``.

    ``mailbox_ids`` and ``keywords`` are JSON arrays.
    """

    __tablename__ = "fl_messages"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    account_id: Mapped[str] = mapped_column(String(128), index=True)
    mailbox_ids: Mapped[List[int]] = mapped_column(JSON)
    keywords: Mapped[List[str]] = mapped_column(JSON)
    raw: Mapped[bytes] = mapped_column(LargeBinary)
    size: Mapped[int] = mapped_column(Integer)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
