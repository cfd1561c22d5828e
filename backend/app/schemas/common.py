"""
Shared schema base classes.

Request bodies use camelCase keys on the wire. Field names stay snake_case in
Python; ``populate_by_name`` also accepts the snake_case spelling.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StatusUpdate(CamelModel):
    """Body of the history PATCH endpoints."""

    status: Optional[str] = Field(None, description="DRAFT, SENT, DONE or GHOST")
