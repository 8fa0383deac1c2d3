"""Shared schema base: snake_case in Python, camelCase on the wire."""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Reads ORM objects; accepts and emits camelCase keys."""

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True
