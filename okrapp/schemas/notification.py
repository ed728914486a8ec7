from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import List, Optional


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    message: str
    type: Optional[str] = None
    action_url: Optional[str] = None
    is_read: bool
    created_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    sender_id: Optional[int] = None
    related_entity_id: Optional[int] = None
    related_entity_type: Optional[str] = None


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int
