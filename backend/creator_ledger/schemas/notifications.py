"""Schemas for admin notification endpoints."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class NotificationResponse(BaseModel):
    uuid: str
    type: str
    title: str
    message: str
    related_id: Optional[str]
    is_read: bool
    read_by: Optional[str]
    read_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True
