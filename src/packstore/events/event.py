"""
Broadcast message models for the proxy relay.

Wire shape:
    {"handlerName": "store" | "delete",
     "type": "request" | "resolve",
     "args": {..., "requestId": "<id>"}}
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProxyHandler(str, Enum):
    """Operations that can be relayed to a privileged actor."""

    STORE = "store"
    DELETE = "delete"


class ProxyMessageType(str, Enum):
    REQUEST = "request"
    RESOLVE = "resolve"


class ProxyMessage(BaseModel):
    """
    A proxied write request or its resolution.

    All messages for one request share ``args["requestId"]``.
    """

    model_config = ConfigDict(populate_by_name=True)

    handler_name: ProxyHandler = Field(alias="handlerName")
    type: ProxyMessageType
    args: Dict[str, Any] = Field(default_factory=dict)
    sender_id: Optional[str] = Field(default=None, alias="senderId")

    @property
    def request_id(self) -> Optional[str]:
        return self.args.get("requestId")

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with wire (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)
