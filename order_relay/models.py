"""
Message shapes that cross the relay.

OrderRequest      - what a caller POSTs: {"id": ..., "name": ...}
QueueOrderMessage - what goes onto the queue, with a fresh messageId and a
                    UTC createdAt stamped at mapping time

Both accept keys in any case on the way in ("Id", "ID", "id"), and the queue
message always leaves in camelCase.
"""

import json
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, StrictStr, model_validator
from pydantic.alias_generators import to_camel

from order_relay.ids import generate_message_id


def _fold_keys(data, known):
    # known maps lowercased key -> canonical key
    if not isinstance(data, dict):
        return data
    return {known.get(str(k).lower(), k): v for k, v in data.items()}


class OrderRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: StrictStr = Field(min_length=1)
    name: StrictStr = Field(min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _case_insensitive(cls, data):
        return _fold_keys(data, {"id": "id", "name": "name"})


class QueueOrderMessage(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    message_id: StrictStr = Field(min_length=1)
    transaction_id: StrictStr
    product_name: StrictStr
    created_at: datetime

    @model_validator(mode="before")
    @classmethod
    def _case_insensitive(cls, data):
        known = {}
        for name, field in cls.model_fields.items():
            alias = field.alias or to_camel(name)
            known[alias.lower()] = alias
        return _fold_keys(data, known)

    @classmethod
    def from_order(cls, order):
        """Map an inbound order; every call gets its own messageId and timestamp."""
        return cls(
            message_id=generate_message_id(),
            transaction_id=order.id,
            product_name=order.name,
            created_at=datetime.now(timezone.utc),
        )

    @classmethod
    def from_json(cls, raw):
        """Parse a queue body. Raises ValueError (or ValidationError) if it is malformed."""
        if isinstance(raw, (bytes, bytearray)):
            raw = raw.decode("utf-8")
        return cls.model_validate(json.loads(raw))

    def to_dict(self):
        return self.model_dump(mode="json", by_alias=True)

    def to_json(self):
        return self.model_dump_json(by_alias=True)
