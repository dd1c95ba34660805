from pydantic import BaseModel, Field, validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from typing import List, Optional

from bookmarket.models.user import PublicUserResponse


class Message(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    listing_id: Optional[int] = None
    content: str
    created_at: datetime

    class Config:
        from_attributes = True


class MessageCreate(BaseModel):
    receiver_id: int = Field(..., gt=0)
    listing_id: Optional[int] = Field(None, gt=0)
    content: str = Field(..., max_length=5000)

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    @validator("content")
    def validate_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content must not be empty")
        return v


class MessageResponse(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    listing_id: Optional[int] = None
    content: str
    created_at: datetime

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class ConversationsResponse(BaseModel):
    items: List[PublicUserResponse]
    total: int
