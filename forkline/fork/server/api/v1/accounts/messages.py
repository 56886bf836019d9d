"""
Account Message Endpoints.

Read back what the bound storage backend holds for an account.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from forkline.fork.server.deps import RuntimeDep

router = APIRouter()


class MessageRead(BaseModel):
    id: str
    mailbox_ids: List[int]
    keywords: List[str]
    size: int
    received_at: datetime
    contents: str


@router.get(
    "/{account_id}/messages",
    response_model=List[MessageRead],
    summary="List Messages",
    description="List messages stored for an account, optionally limited to one mailbox.",
)
async def list_messages(
    account_id: str,
    runtime: RuntimeDep,
    mailbox_id: Optional[int] = Query(None, description="Only messages filed in this mailbox."),
):
    messages = await runtime.pipeline.store.list_messages(account_id, mailbox_id)
    return [
        MessageRead(
            id=m.id,
            mailbox_ids=m.mailbox_ids,
            keywords=m.keywords,
            size=m.size,
            received_at=m.received_at,
            contents=m.raw.decode("utf-8", errors="replace"),
        )
        for m in messages
    ]


@router.get(
    "/{account_id}/mailboxes",
    summary="List Mailboxes",
    description="List the mailboxes of an account.",
)
async def list_mailboxes(account_id: str, runtime: RuntimeDep):
    mailboxes = await runtime.pipeline.store.ensure_account(account_id)
    return [m.model_dump() for m in mailboxes]
