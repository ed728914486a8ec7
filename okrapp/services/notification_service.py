from datetime import datetime
from typing import List, Optional, Protocol

from pydantic import BaseModel

from okrapp.core.exceptions import NotFoundError
from okrapp.models.notification import Notification
from okrapp.services.base import BaseService


class NotificationEvent(BaseModel):
    """Outbound event emitted by the review workflow."""
    recipient_user_id: int
    sender_user_id: Optional[int] = None
    title: str
    message: str
    type: str
    action_url: Optional[str] = None
    related_entity_id: Optional[int] = None
    related_entity_type: Optional[str] = None


class NotificationSink(Protocol):
    def notify(self, event: NotificationEvent) -> None:
        ...


class NotificationService(BaseService):
    """
    Database-backed sink. Rows are added to the caller's unit of work and
    persisted with it; there is no delivery channel.
    """

    def notify(self, event: NotificationEvent) -> Notification:
        notification = Notification(
            user_id=event.recipient_user_id,
            sender_id=event.sender_user_id,
            title=event.title,
            message=event.message,
            type=event.type,
            action_url=event.action_url,
            related_entity_id=event.related_entity_id,
            related_entity_type=event.related_entity_type,
        )
        self.db.add(notification)
        return notification

    def list_for_user(self, user_id: int, unread_only: bool = False, limit: int = 10) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read == False)
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()

    def unread_count(self, user_id: int) -> int:
        return self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).count()

    def mark_as_read(self, notification_id: int, user_id: int) -> Notification:
        notification = self.db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id
        ).first()
        if not notification:
            raise NotFoundError("Notification not found")

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now()
            self.commit()
            self.db.refresh(notification)
        return notification

    def mark_all_as_read(self, user_id: int) -> int:
        updated = self.db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read == False
        ).update(
            {Notification.is_read: True, Notification.read_at: datetime.now()},
            synchronize_session=False,
        )
        self.commit()
        return updated
