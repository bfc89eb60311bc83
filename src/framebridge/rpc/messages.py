from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..serialization import SerializationSettings


class RpcMessage(BaseModel):
    """Request or response as it travels on the wire.

    A request carries ``instance_id`` (``method_name`` may be empty); a
    response carries the request's ``id`` and one of ``result``/``error``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[int] = None
    method_name: Optional[str] = Field(default=None, alias="methodName")
    instance_id: Optional[str] = Field(default=None, alias="instanceId")
    instance_context: Any = Field(default=None, alias="instanceContext")
    params: Any = None
    serialization_settings: Optional[SerializationSettings] = Field(
        default=None, alias="serializationSettings"
    )
    handshake_token: Optional[str] = Field(default=None, alias="handshakeToken")
    result: Any = None
    error: Any = None

    @property
    def is_request(self) -> bool:
        return bool(self.instance_id)

    def to_wire(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_defaults=True)


def parse_message(data: Any) -> Optional[RpcMessage]:
    if not isinstance(data, str):
        return None
    try:
        return RpcMessage.model_validate_json(data)
    except ValidationError:
        return None
