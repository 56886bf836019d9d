"""Webhook handlers for the ``delivery.inspect`` hook point.

One ``DeliveryWebhookHandler`` exists per enabled hook. On each delivery it
sends the message to the hook and turns the answer into a
``DeliveryVerdict``:

- ``accept``: the ``fileInto`` and ``addHeader`` modifications, plus
  ``skip_inbox`` and ``flags``, become verdict fields.
- ``reject``: becomes ``tempfail`` when ``tempfail_on_error`` is set and a
  permanent ``reject`` otherwise.
- transport or protocol errors: become ``tempfail`` when
  ``tempfail_on_error`` is set; otherwise the hook is ignored for that message.
"""

from __future__ import annotations

from typing import List, Optional

import httpx

from forkline.core.logging_config import get_logger
from forkline.hooks.dispatch import HookDispatcher
from forkline.registry.backend_registry import BackendContext, BackendHandle
from forkline.upstream.delivery import DELIVERY_INSPECT, DeliveryContext, DeliveryVerdict, VerdictAction
from forkline.upstream.storage.base import INBOX_ID, TRASH_ID, MailStore

from .client import DeliveryHookClient, DeliveryHookError
from .config import DeliveryHookConfig, DeliveryHookSettings
from .wire import Address, FileInto, HookRequest, HookResponse, WireEnvelope, WireMessage

logger = get_logger(__name__)

ROLE_IDS = {"inbox": INBOX_ID, "trash": TRASH_ID}


def build_hook_request(ctx: DeliveryContext) -> HookRequest:
    request = ctx.request
    return HookRequest(
        user_id=request.account_id,
        user_id_num=request.account_num,
        envelope=WireEnvelope(
            sender=Address(address=request.envelope.sender),
            recipient=Address(address=request.envelope.recipient),
        ),
        message=WireMessage(
            headers=request.headers(),
            contents=request.raw.decode("utf-8", errors="replace"),
            size=len(request.raw),
        ),
    )


async def resolve_file_into(store: MailStore, account_id: str, mod: FileInto) -> Optional[int]:
    """Find the mailbox a ``fileInto`` modification points at.

    Lookup order: explicit ``mailbox_id``, then ``special_use`` role, then
    ``folder`` name. With ``create`` set, a missing named folder is created.
    """
    if mod.mailbox_id:
        try:
            mailbox = await store.mailbox_by_id(account_id, int(mod.mailbox_id))
        except ValueError:
            mailbox = None
        if mailbox is not None:
            return mailbox.id
    if mod.special_use:
        role = mod.special_use.lower()
        if role in ROLE_IDS:
            return ROLE_IDS[role]
        mailbox = await store.mailbox_by_role(account_id, role)
        if mailbox is not None:
            return mailbox.id
    if mod.folder:
        mailbox = await store.mailbox_by_name(account_id, mod.folder)
        if mailbox is not None:
            return mailbox.id
        if mod.create:
            mailbox = await store.create_mailbox(account_id, mod.folder, role=mod.special_use)
            logger.info(f"Created mailbox '{mailbox.name}' ({mailbox.id}) for account {account_id}")
            return mailbox.id
    return None


class DeliveryWebhookHandler:
    """``delivery.inspect`` handler backed by one webhook endpoint."""

    def __init__(self, client: DeliveryHookClient) -> None:
        self._client = client

    @property
    def hook_id(self) -> str:
        return self._client.config.id

    @property
    def config(self) -> DeliveryHookConfig:
        return self._client.config

    async def __call__(self, ctx: DeliveryContext) -> Optional[DeliveryVerdict]:
        source = f"delivery-hook:{self.hook_id}"
        try:
            response = await self._client.send(build_hook_request(ctx))
        except DeliveryHookError as exc:
            if self.config.tempfail_on_error:
                logger.warning(f"{exc}; temporarily rejecting message")
                return DeliveryVerdict(action=VerdictAction.tempfail, source=source, reason=str(exc))
            logger.warning(f"{exc}; ignoring hook for this message")
            return None

        if response.action == "reject":
            action = VerdictAction.tempfail if self.config.tempfail_on_error else VerdictAction.reject
            return DeliveryVerdict(action=action, source=source, reason=f"Message rejected by delivery hook '{self.hook_id}'")

        return await self._accept(ctx, response, source)

    async def _accept(self, ctx: DeliveryContext, response: HookResponse, source: str) -> DeliveryVerdict:
        account_id = ctx.request.account_id
        mailbox_ids: List[int] = []
        keywords: List[str] = list(response.flags)
        add_headers = []
        for mod in response.modifications:
            if isinstance(mod, FileInto):
                mailbox_id = await resolve_file_into(ctx.store, account_id, mod)
                if mailbox_id is None:
                    logger.warning(f"Delivery hook {self.hook_id}: no mailbox matches {mod.model_dump(exclude_none=True)}")
                    continue
                if mailbox_id not in mailbox_ids:
                    mailbox_ids.append(mailbox_id)
                keywords.extend(flag for flag in mod.flags if flag not in keywords)
            else:
                add_headers.append((mod.name, mod.value))
        return DeliveryVerdict(
            action=VerdictAction.accept,
            mailbox_ids=mailbox_ids,
            keywords=keywords,
            skip_inbox=response.skip_inbox,
            add_headers=add_headers,
            source=source,
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class DeliveryHooks:
    """Implementation bound for ``delivery-hooks=webhook``: one handler per enabled hook."""

    def __init__(
        self,
        hooks: List[DeliveryHookConfig],
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.handlers = [
            DeliveryWebhookHandler(DeliveryHookClient(hook, transport=transport)) for hook in hooks if hook.enable
        ]

    @classmethod
    def from_context(cls, ctx: BackendContext) -> "DeliveryHooks":
        hook_settings = DeliveryHookSettings()
        logger.info(
            f"Loaded {len(hook_settings.hooks)} delivery hook(s), {len(hook_settings.enabled_hooks)} enabled"
        )
        return cls(hook_settings.hooks)

    async def aclose(self) -> None:
        for handler in self.handlers:
            await handler.aclose()


def install_delivery_hooks(dispatcher: HookDispatcher, handle: BackendHandle) -> None:
    """Register every enabled hook on ``delivery.inspect``.

    Hooks without an explicit ``order`` run in configuration order, spaced by 10.
    """
    hooks: DeliveryHooks = handle.implementation
    for position, handler in enumerate(hooks.handlers):
        order = handler.config.order if handler.config.order is not None else (position + 1) * 10
        dispatcher.register(DELIVERY_INSPECT.name, handler, order=order, name=f"delivery-hook:{handler.hook_id}")
