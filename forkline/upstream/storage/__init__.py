"""Mail storage contract and the built-in store."""

from .base import DEFAULT_MAILBOXES, INBOX_ID, TRASH_ID, Mailbox, MailStore, StoredMessage
from .memory import InMemoryMailStore

__all__ = [
    "DEFAULT_MAILBOXES",
    "INBOX_ID",
    "TRASH_ID",
    "InMemoryMailStore",
    "MailStore",
    "Mailbox",
    "StoredMessage",
]
