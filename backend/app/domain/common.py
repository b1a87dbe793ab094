"""
Request schemas and validators shared across resources
"""
from pydantic import BaseModel, Field, field_validator
from typing import List


def reject_null(value):
    """Partial updates may omit a required column but never send it as null"""
    if value is None:
        raise ValueError("Field cannot be null")
    return value


class BulkIds(BaseModel):
    """Body for bulk operations on up to 100 records"""
    ids: List[int] = Field(..., min_length=1, max_length=100)

    @field_validator("ids")
    @classmethod
    def check_ids(cls, v):
        if any(i < 1 for i in v):
            raise ValueError("IDs must be positive integers")
        # Preserve request order, drop duplicates
        return list(dict.fromkeys(v))
