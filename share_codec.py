"""
Share record model and its serialized form in the key-value store.

The stored value is a JSON object with camelCase field names. The share id
is the store key and is not repeated inside the value.
"""

import json
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from errors import ShareParseError


class ShareRecord(BaseModel):
    """One shareable snapshot of clipboard content plus its access policy"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(exclude=True)
    content: str
    max_views: Optional[int] = Field(default=None, alias="maxViews")
    views: int = Field(default=0, ge=0)
    expire_at: Optional[int] = Field(default=None, alias="expireAt")
    password: Optional[str] = None
    created_at: Optional[int] = Field(default=None, alias="createdAt")

    @field_validator("max_views")
    @classmethod
    def _zero_means_unlimited(cls, value):
        if value is not None and value <= 0:
            return None
        return value

    @field_validator("password")
    @classmethod
    def _empty_password_means_none(cls, value):
        return value or None

    def to_public_dict(self, url: str) -> dict:
        """Administrator view: every stored field plus id and url"""
        data = {"id": self.id, "url": url}
        data.update(self.model_dump(by_alias=True))
        return data


def encode(record: ShareRecord) -> str:
    """Serialize a record, omitting absent optional fields"""
    return record.model_dump_json(by_alias=True, exclude_none=True)


def decode(share_id: str, raw: str) -> ShareRecord:
    """Parse a stored value; raises ShareParseError on malformed payloads"""
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ShareParseError() from e
    if not isinstance(payload, dict):
        raise ShareParseError()

    payload["id"] = share_id
    try:
        return ShareRecord.model_validate(payload)
    except ValidationError as e:
        raise ShareParseError() from e
