"""
Pydantic schemas for the Model resource.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from bson import ObjectId
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Model(BaseModel):
    """
    Persisted entity.

    Reads accept storage names (`_id`, `created_at`) and JSON names
    (`id`, `createdAt`); dumps with `by_alias=True` use the JSON names.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default="", validation_alias=AliasChoices("_id", "id"), serialization_alias="id")
    name: str = ""
    email: str = ""
    created_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("created_at", "createdAt"),
        serialization_alias="createdAt",
    )
    updated_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("updated_at", "updatedAt"),
        serialization_alias="updatedAt",
    )

    @field_validator("id", mode="before")
    @classmethod
    def _object_id_to_str(cls, value: Any) -> Any:
        if isinstance(value, ObjectId):
            return str(value)
        return value


class ModelInput(BaseModel):
    # Timestamps and ids are owned by the service; anything else is ignored.
    model_config = ConfigDict(extra="ignore")

    name: str = ""
    email: str = ""

    def to_model(self) -> Model:
        return Model(name=self.name, email=self.email)


class CreateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    inserted_id: str = Field(..., alias="insertedId")


class ValidationError(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    failed_field: str = Field(..., alias="failedField")
    tag: str
    value: str = ""


class ServiceResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: int
    message: str
    data: Any = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
