"""
Notification Endpoints

In-app notifications of the authenticated user. Every query filters on
the caller's user id, so no tenant context is needed.
"""
from datetime import datetime
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from zaltyko.database import get_db
from zaltyko.api.deps import get_current_profile
from zaltyko.core.exceptions import NotFoundError
from zaltyko.models.notification import Notification
from zaltyko.models.user import User
from zaltyko.schemas.notification import (
    NotificationResponse, NotificationListResponse, MarkAllReadResponse
)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _get_own(db: Session, user: User, notification_id: str) -> Notification:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.user_id == user.id,
    ).first()
    if not notification:
        raise NotFoundError("Notification not found", code="NOTIFICATION_NOT_FOUND")
    return notification


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    unread_only: bool = Query(False, alias="unreadOnly"),
    limit: int = Query(50, ge=1, le=200),
    user: User = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    query = db.query(Notification).filter(Notification.user_id == user.id)
    unread_count = query.filter(Notification.read.is_(False)).count()
    if unread_only:
        query = query.filter(Notification.read.is_(False))
    items = query.order_by(Notification.created_at.desc()).limit(limit).all()
    return {"items": items, "unread_count": unread_count}


@router.post("/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    user: User = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    updated = db.query(Notification).filter(
        Notification.user_id == user.id,
        Notification.read.is_(False),
    ).update({"read": True, "read_at": datetime.utcnow()}, synchronize_session=False)
    db.commit()
    return {"updated": updated}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: str,
    user: User = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    notification = _get_own(db, user, notification_id)
    if not notification.read:
        notification.read = True
        notification.read_at = datetime.utcnow()
        db.commit()
        db.refresh(notification)
    return notification


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_notification(
    notification_id: str,
    user: User = Depends(get_current_profile),
    db: Session = Depends(get_db)
):
    db.delete(_get_own(db, user, notification_id))
    db.commit()
    return None
