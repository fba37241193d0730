from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class TrackerModel(BaseModel):
    """
    Base for every persisted/returned entity.

    Attributes are snake_case in Python; JSON (storage and HTTP) uses the
    camelCase names of the persisted snapshot format. Both are accepted on
    input.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @field_validator("*", mode="after")
    @classmethod
    def assume_utc(cls, value: Any) -> Any:
        # Naive timestamps in old snapshots are UTC
        if isinstance(value, datetime) and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_json(self) -> dict:
        """Snapshot/HTTP representation (camelCase, ISO timestamps)."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def field_name(cls, key: str) -> str:
        """Resolve a camelCase alias or attribute name to the attribute name."""
        if key in cls.model_fields:
            return key
        for name, info in cls.model_fields.items():
            if info.alias == key:
                return name
        return key
