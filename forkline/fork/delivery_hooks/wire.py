"""JSON wire format exchanged with delivery hook endpoints.

Request::

    {"user_id": "alice", "user_id_num": 7,
     "envelope": {"from": {"address": ...}, "to": {...}},
     "message": {"headers": [["Subject", "Hi"]], "contents": "...", "size": 42}}

``user_id_num`` is only sent for accounts that carry a numeric id.

Response::

    {"action": "accept", "skip_inbox": false, "flags": ["$label"],
     "modifications": [{"type": "fileInto", "folder": "Receipts", "create": true},
                       {"type": "addHeader", "name": "X-Routed", "value": "yes"}]}
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class Address(WireModel):
    address: str


class WireEnvelope(WireModel):
    sender: Address = Field(alias="from")
    recipient: Address = Field(alias="to")


class WireMessage(WireModel):
    headers: List[Tuple[str, str]] = Field(default_factory=list)
    server_headers: List[Tuple[str, str]] = Field(default_factory=list, alias="serverHeaders")
    contents: str
    size: int


class HookRequest(WireModel):
    user_id: str
    user_id_num: Optional[int] = None
    envelope: Optional[WireEnvelope] = None
    message: Optional[WireMessage] = None

    def to_payload(self) -> Dict[str, Any]:
        """JSON body for the hook endpoint; an empty ``serverHeaders`` list is omitted."""
        payload = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        message = payload.get("message")
        if message is not None and not message.get("serverHeaders"):
            message.pop("serverHeaders", None)
        return payload


class FileInto(WireModel):
    type: Literal["fileInto"] = "fileInto"
    folder: str = ""
    mailbox_id: str = ""
    flags: List[str] = Field(default_factory=list)
    special_use: Optional[str] = None
    create: bool = False


class AddHeader(WireModel):
    type: Literal["addHeader"] = "addHeader"
    name: str
    value: str


Modification = Annotated[Union[FileInto, AddHeader], Field(discriminator="type")]


class HookResponse(WireModel):
    action: Literal["accept", "reject"]
    modifications: List[Modification] = Field(default_factory=list)
    skip_inbox: bool = False
    flags: List[str] = Field(default_factory=list)
