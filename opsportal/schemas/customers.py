from typing import Optional

from pydantic import BaseModel, field_validator


class CustomerPrefixCreate(BaseModel):
    # Format is enforced by the service (InvalidArgument -> 400)
    prefix: str


class CustomerIdRequest(BaseModel):
    prefix: Optional[str] = None

    @field_validator('prefix', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None
