from datetime import datetime
from pydantic import BaseModel, Field


class ContactIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=100)
    subject: str = Field(min_length=1, max_length=150)
    message: str = Field(min_length=1, max_length=1000)


class ContactOut(BaseModel):
    id: int
    name: str
    email: str
    subject: str
    message: str
    slug: str
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True
