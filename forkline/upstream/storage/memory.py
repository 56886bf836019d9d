"""Built-in in-memory mail store.

This is the default ``storage-backend`` variant. It keeps everything in
process memory, which makes it suitable for development, tests and single
process deployments that do not need durability.
"""

import asyncio
from typing import Dict, List, Optional

from .base import DEFAULT_MAILBOXES, Mailbox, StoredMessage


class InMemoryMailStore:
    """``MailStore`` implementation backed by dictionaries.

    All mutations are serialized with an ``asyncio.Lock``.
    """

    def __init__(self) -> None:
        self._mailboxes: Dict[str, Dict[int, Mailbox]] = {}
        self._messages: Dict[str, List[StoredMessage]] = {}
        self._lock = asyncio.Lock()

    def _ensure(self, account_id: str) -> Dict[int, Mailbox]:
        boxes = self._mailboxes.get(account_id)
        if boxes is None:
            boxes = {
                mailbox_id: Mailbox(id=mailbox_id, account_id=account_id, name=name, role=role)
                for mailbox_id, name, role in DEFAULT_MAILBOXES
            }
            self._mailboxes[account_id] = boxes
            self._messages[account_id] = []
        return boxes

    async def ensure_account(self, account_id: str) -> List[Mailbox]:
        async with self._lock:
            boxes = self._ensure(account_id)
            return [boxes[key] for key in sorted(boxes)]

    async def mailbox_by_id(self, account_id: str, mailbox_id: int) -> Optional[Mailbox]:
        async with self._lock:
            return self._ensure(account_id).get(mailbox_id)

    async def mailbox_by_role(self, account_id: str, role: str) -> Optional[Mailbox]:
        role = role.lower()
        async with self._lock:
            for mailbox in self._ensure(account_id).values():
                if mailbox.role == role:
                    return mailbox
        return None

    async def mailbox_by_name(self, account_id: str, name: str) -> Optional[Mailbox]:
        async with self._lock:
            return self._by_name(account_id, name)

    def _by_name(self, account_id: str, name: str) -> Optional[Mailbox]:
        wanted = name.strip().lower()
        for mailbox in self._ensure(account_id).values():
            if mailbox.name.lower() == wanted:
                return mailbox
        return None

    async def create_mailbox(self, account_id: str, name: str, role: Optional[str] = None) -> Mailbox:
        async with self._lock:
            existing = self._by_name(account_id, name)
            if existing is not None:
                return existing
            boxes = self._ensure(account_id)
            mailbox = Mailbox(
                id=max(boxes) + 1,
                account_id=account_id,
                name=name.strip(),
                role=role.lower() if role else None,
            )
            boxes[mailbox.id] = mailbox
            return mailbox

    async def ingest(
        self,
        account_id: str,
        raw: bytes,
        *,
        mailbox_ids: List[int],
        keywords: List[str],
    ) -> StoredMessage:
        async with self._lock:
            self._ensure(account_id)
            message = StoredMessage(
                account_id=account_id,
                mailbox_ids=list(mailbox_ids),
                keywords=list(keywords),
                raw=raw,
                size=len(raw),
            )
            self._messages[account_id].append(message)
            return message

    async def list_messages(self, account_id: str, mailbox_id: Optional[int] = None) -> List[StoredMessage]:
        async with self._lock:
            self._ensure(account_id)
            messages = self._messages[account_id]
            if mailbox_id is None:
                return list(messages)
            return [m for m in messages if mailbox_id in m.mailbox_ids]
