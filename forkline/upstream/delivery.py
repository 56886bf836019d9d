from __future__ import annotations

"""Default message delivery pipeline.

``DeliveryPipeline.deliver`` files an incoming message into the recipient's
Inbox through whichever ``storage-backend`` variant is bound. Before the
message is stored, the pipeline dispatches the ``delivery.inspect`` hook
point. Handlers attached there (by fork code) return ``DeliveryVerdict``
objects that can:

- add target mailboxes and keywords,
- remove the Inbox from the targets (``skip_inbox``),
- prepend headers to the stored message,
- temporarily or permanently reject the message.

Verdicts are merged as follows: a ``tempfail`` verdict from any handler wins
and raises ``DeliveryRejected`` with code 451; otherwise a ``reject`` verdict
raises ``DeliveryRejected`` with code 550. Handler failures are recorded on
the receipt and do not stop delivery (the hook point's failure mode is
``continue``).
"""

from dataclasses import dataclass
from email.parser import BytesHeaderParser
from enum import Enum
from typing import Any, List, Optional, Tuple

from pydantic import Field

from forkline.core.errors import ForklineError
from forkline.core.logging_config import get_logger
from forkline.hooks.dispatch import HookDispatcher
from forkline.hooks.models import Composition, FailureMode, HookPoint
from forkline.registry.backend_registry import BackendRegistry

from .catalog import STORAGE_BACKEND
from .storage.base import INBOX_ID, BaseSchema, MailStore

logger = get_logger(__name__)

DELIVERY_INSPECT = HookPoint(
    name="delivery.inspect",
    composition=Composition.concatenate,
    failure_mode=FailureMode.continue_,
    description="Receives a DeliveryContext before storage; returns a DeliveryVerdict or None",
)

HOOK_POINTS: Tuple[HookPoint, ...] = (DELIVERY_INSPECT,)

TEMPFAIL_CODE = 451
REJECT_CODE = 550


class VerdictAction(str, Enum):
    accept = "accept"
    tempfail = "tempfail"
    reject = "reject"


class Envelope(BaseSchema):
    sender: str
    recipient: str


class DeliveryRequest(BaseSchema):
    account_id: str
    account_num: Optional[int] = None
    envelope: Envelope
    raw: bytes

    def headers(self) -> List[Tuple[str, str]]:
        """Top-level headers of the message, in order."""
        parsed = BytesHeaderParser().parsebytes(self.raw)
        return [(name, str(value)) for name, value in parsed.items()]


class DeliveryVerdict(BaseSchema):
    action: VerdictAction = VerdictAction.accept
    mailbox_ids: List[int] = Field(default_factory=list)
    keywords: List[str] = Field(default_factory=list)
    skip_inbox: bool = False
    add_headers: List[Tuple[str, str]] = Field(default_factory=list)
    source: Optional[str] = None
    reason: Optional[str] = None


class DeliveryReceipt(BaseSchema):
    message_id: str
    account_id: str
    mailbox_ids: List[int]
    keywords: List[str]
    size: int
    handled_by: List[str] = Field(default_factory=list)
    hook_failures: List[str] = Field(default_factory=list)


@dataclass(frozen=True)
class DeliveryContext:
    """Payload handed to ``delivery.inspect`` handlers."""

    request: DeliveryRequest
    store: MailStore


class DeliveryRejected(ForklineError):
    """A delivery hook refused the message."""

    def __init__(self, code: int, reason: str, source: Optional[str] = None) -> None:
        self.code = code
        self.reason = reason
        self.source = source
        super().__init__(f"{code} {reason}")

    @property
    def temporary(self) -> bool:
        return self.code == TEMPFAIL_CODE


def apply_add_headers(headers: List[Tuple[str, str]], raw: bytes) -> bytes:
    """Prepend headers to a raw RFC 5322 message.

    CR and LF inside values are percent-encoded so a value cannot start a new
    header line.
    """
    prefix = bytearray()
    for name, value in headers:
        encoded = value.replace("\r", "%0D").replace("\n", "%0A")
        prefix += f"{name}: {encoded}\r\n".encode("utf-8")
    return bytes(prefix) + raw


def _as_verdict(value: Any) -> DeliveryVerdict:
    if isinstance(value, DeliveryVerdict):
        return value
    return DeliveryVerdict.model_validate(value)


class DeliveryPipeline:
    """Deliver messages through the bound storage backend and delivery hooks."""

    def __init__(self, registry: BackendRegistry, dispatcher: HookDispatcher) -> None:
        self._registry = registry
        self._dispatcher = dispatcher

    @property
    def store(self) -> MailStore:
        return self._registry.get(STORAGE_BACKEND)

    async def deliver(self, request: DeliveryRequest) -> DeliveryReceipt:
        """
        Run delivery hooks and store the message.

        Args:
            request: The message and its envelope.

        Returns:
            DeliveryReceipt describing where the message was filed.

        Raises:
            DeliveryRejected: When a hook temporarily or permanently rejects it.
        """
        store = self.store
        await store.ensure_account(request.account_id)

        outcome = await self._dispatcher.dispatch(
            DELIVERY_INSPECT.name,
            DeliveryContext(request=request, store=store),
        )
        verdicts = [_as_verdict(value) for value in outcome.value]

        for action, code, text in (
            (VerdictAction.tempfail, TEMPFAIL_CODE, "Message temporarily rejected by delivery hook"),
            (VerdictAction.reject, REJECT_CODE, "Message rejected by delivery hook"),
        ):
            rejecting = [v for v in verdicts if v.action is action]
            if rejecting:
                source = rejecting[0].source
                logger.info(
                    f"Delivery to account {request.account_id} refused with {code} by {source or 'delivery hook'}"
                )
                raise DeliveryRejected(code, rejecting[0].reason or text, source=source)

        mailbox_ids: List[int] = [INBOX_ID]
        keywords: List[str] = []
        add_headers: List[Tuple[str, str]] = []
        skip_inbox = False
        for verdict in verdicts:
            for mailbox_id in verdict.mailbox_ids:
                if mailbox_id not in mailbox_ids:
                    mailbox_ids.append(mailbox_id)
            for keyword in verdict.keywords:
                if keyword not in keywords:
                    keywords.append(keyword)
            add_headers.extend(verdict.add_headers)
            skip_inbox = skip_inbox or verdict.skip_inbox

        if skip_inbox:
            mailbox_ids = [mailbox_id for mailbox_id in mailbox_ids if mailbox_id != INBOX_ID]

        raw = apply_add_headers(add_headers, request.raw) if add_headers else request.raw

        stored = await store.ingest(
            request.account_id,
            raw,
            mailbox_ids=mailbox_ids,
            keywords=keywords,
        )
        logger.info(
            f"Delivered message {stored.id} to account {request.account_id}: "
            f"mailboxes={mailbox_ids}, keywords={keywords}"
        )
        return DeliveryReceipt(
            message_id=stored.id,
            account_id=request.account_id,
            mailbox_ids=stored.mailbox_ids,
            keywords=stored.keywords,
            size=stored.size,
            handled_by=list(outcome.handled_by),
            hook_failures=[str(failure) for failure in outcome.failures],
        )
