from datetime import datetime, timezone
from typing import Any, Dict

from bson import ObjectId
from pydantic import BaseModel, Field, ConfigDict, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(ObjectId())


def ensure_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC so they compare with stored ones."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class MongoModel(BaseModel):
    """Base for stored documents. Ids are string ObjectIds kept under ``_id``."""
    id: str = Field(default_factory=new_id, alias="_id")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True
    )

    @field_validator("created_at", "updated_at")
    @classmethod
    def utc_timestamps(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def to_document(self) -> Dict[str, Any]:
        """Serialise for the document store (ISO strings, enum values)."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_document(cls, doc: Dict[str, Any]):
        doc = dict(doc)
        doc["_id"] = str(doc["_id"])
        return cls(**doc)

    def touch(self) -> None:
        self.updated_at = _utcnow()
