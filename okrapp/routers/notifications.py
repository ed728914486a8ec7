from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from okrapp.core.config import settings
from okrapp.core.context import ActingUser
from okrapp.database import get_db
from okrapp.routers.auth_deps import get_acting_user
from okrapp.schemas.notification import NotificationListResponse, NotificationResponse
from okrapp.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
def get_notifications(
    unread_only: bool = False,
    limit: int = settings.notification_page_size,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(get_acting_user),
):
    service = NotificationService(db)
    return NotificationListResponse(
        notifications=service.list_for_user(actor.user_id, unread_only=unread_only, limit=limit),
        unread_count=service.unread_count(actor.user_id),
    )


@router.get("/unread-count")
def get_unread_count(db: Session = Depends(get_db), actor: ActingUser = Depends(get_acting_user)):
    return {"count": NotificationService(db).unread_count(actor.user_id)}


@router.patch("/{notification_id}/read", response_model=NotificationResponse)
def mark_notification_as_read(
    notification_id: int,
    db: Session = Depends(get_db),
    actor: ActingUser = Depends(get_acting_user),
):
    return NotificationService(db).mark_as_read(notification_id, actor.user_id)


@router.post("/mark-all-read")
def mark_all_notifications_as_read(db: Session = Depends(get_db), actor: ActingUser = Depends(get_acting_user)):
    updated = NotificationService(db).mark_all_as_read(actor.user_id)
    return {"message": "All notifications marked as read", "updated": updated}
