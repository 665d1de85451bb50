# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and MongoDB document conversion.
"""

from datetime import datetime, timezone
from typing import Any, Dict
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class DocumentModel(BaseModel):
    """Pydantic model persisted with camelCase keys."""

    model_config = ConfigDict(
        # Documents are stored with camelCase keys
        alias_generator=to_camel,
        # Allow population by field name or alias
        populate_by_name=True,
        # Use enum values instead of enum objects
        use_enum_values=True,
        # Validate assignment
        validate_assignment=True,
    )


class BaseEntity(DocumentModel):
    """Base entity with common fields for all top-level documents."""

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update timestamp")
    version: int = Field(default=0, ge=0, description="Optimistic concurrency counter")
    schema_version: int = Field(default=1, description="Schema version for migrations")

    def touch(self, now: datetime = None) -> None:
        """Update the modification timestamp."""
        self.updated_at = now or utc_now()

    def to_document(self) -> Dict[str, Any]:
        """Serialize to a MongoDB document with an ObjectId ``_id``."""
        document = self.model_dump(by_alias=True, exclude={"id"})
        document["_id"] = ObjectId(self.id)
        return document

    @classmethod
    def from_document(cls, document: Dict[str, Any]):
        """Build an entity from a MongoDB document (``_id`` or ``id`` keyed)."""
        data = dict(document)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)
