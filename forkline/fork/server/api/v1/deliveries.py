"""
Delivery Endpoints.

Submit a message for local delivery. The message runs through the delivery
pipeline (and therefore through any delivery hooks) and is stored in the bound
storage backend.
"""

from typing import Optional

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from forkline.fork.server.deps import RuntimeDep
from forkline.upstream.delivery import DeliveryReceipt, DeliveryRequest, Envelope

router = APIRouter()


class DeliveryCreate(BaseModel):
    account_id: str = Field(description="Recipient account")
    account_num: Optional[int] = Field(default=None, ge=0, description="Numeric account id forwarded to delivery hooks")
    sender: str = Field(description="Envelope sender address")
    recipient: str = Field(description="Envelope recipient address")
    message: str = Field(description="RFC 5322 message text")


@router.post(
    "",
    response_model=DeliveryReceipt,
    status_code=status.HTTP_201_CREATED,
    summary="Deliver Message",
    description="Deliver a message to an account through the delivery pipeline.",
    response_description="Where the message was filed.",
)
async def create_delivery(payload: DeliveryCreate, runtime: RuntimeDep):
    """
    Deliver a message.

    Delivery hooks may reject the message; that surfaces as 503 (temporary,
    SMTP 451) or 422 (permanent, SMTP 550).
    """
    request = DeliveryRequest(
        account_id=payload.account_id,
        account_num=payload.account_num,
        envelope=Envelope(sender=payload.sender, recipient=payload.recipient),
        raw=payload.message.encode("utf-8"),
    )
    return await runtime.pipeline.deliver(request)
