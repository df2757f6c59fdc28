"""
Shared request schema bases.
"""

from typing import ClassVar

from pydantic import BaseModel, model_validator


class PartialUpdate(BaseModel):
    """
    Body for PUT-style partial updates.

    Omitted fields are left alone. Fields listed in `not_null` map to
    NOT NULL columns, so sending them as an explicit null is a 422.
    """

    not_null: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_explicit_nulls(self):
        nulled = [name for name in self.not_null if name in self.model_fields_set and getattr(self, name) is None]
        if nulled:
            raise ValueError(f"Fields may not be null: {', '.join(nulled)}")
        return self
