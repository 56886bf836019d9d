from __future__ import annotations

"""Mail store contract.

The delivery pipeline depends on this Protocol instead of a concrete store.
Every ``storage-backend`` variant provides an implementation.

Contract guidelines
-------------------

- All methods are async.
- Accounts are created lazily: the first call that touches an account creates
  its Inbox (``INBOX_ID``) and Trash (``TRASH_ID``) mailboxes.
- Mailbox lookups return ``None`` instead of raising when nothing matches.
- Mailbox names are matched case-insensitively; roles are lower-case.
"""

from datetime import datetime, timezone
from typing import List, Optional, Protocol
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

INBOX_ID = 0
TRASH_ID = 1

DEFAULT_MAILBOXES = (
    (INBOX_ID, "Inbox", "inbox"),
    (TRASH_ID, "Trash", "trash"),
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BaseSchema(BaseModel):
    """
    Base Pydantic model for storage and delivery schemas.

    - ``populate_by_name=True``: Allow initialization by alias or field name.
    - ``extra="forbid"``: Prevent unknown fields from slipping into the model.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        extra="forbid",
    )


class Mailbox(BaseSchema):
    id: int
    account_id: str
    name: str
    role: Optional[str] = None


class StoredMessage(BaseSchema):
    id: str = Field(default_factory=lambda: str(uuid4()))
    account_id: str
    mailbox_ids: List[int]
    keywords: List[str] = Field(default_factory=list)
    raw: bytes
    size: int
    received_at: datetime = Field(default_factory=utc_now)


class MailStore(Protocol):
    """Persist and query mailboxes and delivered messages."""

    async def ensure_account(self, account_id: str) -> List[Mailbox]:
        """
        Create the default mailboxes of an account if needed.

        Returns:
            All mailboxes of the account ordered by id.
        """
        ...

    async def mailbox_by_id(self, account_id: str, mailbox_id: int) -> Optional[Mailbox]: ...

    async def mailbox_by_role(self, account_id: str, role: str) -> Optional[Mailbox]: ...

    async def mailbox_by_name(self, account_id: str, name: str) -> Optional[Mailbox]: ...

    async def create_mailbox(self, account_id: str, name: str, role: Optional[str] = None) -> Mailbox:
        """
        Create a mailbox, or return the existing one with the same name.
        """
        ...

    async def ingest(
        self,
        account_id: str,
        raw: bytes,
        *,
        mailbox_ids: List[int],
        keywords: List[str],
    ) -> StoredMessage:
        """
        Store a delivered message.

        Args:
            account_id: Recipient account.
            raw: RFC 5322 message bytes as they should be stored.
            mailbox_ids: Target mailboxes; may be empty.
            keywords: Flags/keywords to set on the message.
        """
        ...

    async def list_messages(self, account_id: str, mailbox_id: Optional[int] = None) -> List[StoredMessage]: ...
