"""Shared / generic schemas."""

import uuid

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error body returned for every ``ProgressError``."""

    detail: str


class NamedRef(BaseModel):
    """``{id, name}`` reference to a related topic or lesson."""

    id: uuid.UUID
    name: str

    model_config = {"from_attributes": True}
