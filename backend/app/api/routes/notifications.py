from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_current_teacher, get_db
from app.core.security import decode_token
from app.models.notification import Notification
from app.models.teacher import Teacher
from app.schemas.notification import NotificationOut
from app.services.audit import log_activity
from app.services.notification_hub import notification_hub
from app.services.notifications import publish_realtime_notification

router = APIRouter()


@router.get("/notifications", response_model=list[NotificationOut])
def list_notifications(
    event_type: str | None = Query(default=None, max_length=100),
    is_read: bool | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    current_teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
) -> list[Notification]:
    query = (
        select(Notification)
        .where(Notification.teacher_id == current_teacher.id)
        .order_by(Notification.created_at.desc(), Notification.id)
    )
    if event_type:
        query = query.where(Notification.event_type == event_type)
    if is_read is not None:
        query = query.where(Notification.is_read == is_read)
    return list(db.execute(query.offset(offset).limit(limit)).scalars())


@router.post("/notifications/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(
    notification_id: str,
    current_teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
) -> Notification:
    notification = db.get(Notification, notification_id)
    if notification is None or notification.teacher_id != current_teacher.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    if not notification.is_read:
        notification.is_read = True
        db.commit()
        db.refresh(notification)
        publish_realtime_notification(notification, event="notification.read")
    return notification


@router.post("/notifications/read-all")
def mark_all_notifications_read(
    current_teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
) -> dict[str, int]:
    unread = list(
        db.execute(
            select(Notification).where(
                Notification.teacher_id == current_teacher.id,
                Notification.is_read.is_(False),
            )
        ).scalars()
    )
    for notification in unread:
        notification.is_read = True

    if unread:
        log_activity(
            db,
            actor_id=current_teacher.id,
            action="notification.read_all",
            entity_type="notification",
            details={"count": len(unread)},
        )
    db.commit()
    return {"updated": len(unread)}


def _bearer_token(websocket: WebSocket) -> str | None:
    token = websocket.query_params.get("token")
    if token:
        return token
    scheme, _, value = (websocket.headers.get("authorization") or "").partition(" ")
    if scheme.lower() != "bearer":
        return None
    return value.strip() or None


@router.websocket("/notifications/ws")
async def notifications_websocket(
    websocket: WebSocket,
    db: Session = Depends(get_db),
) -> None:
    token = _bearer_token(websocket)
    teacher_id = None
    if token:
        try:
            teacher_id = decode_token(token).get("sub")
        except JWTError:
            teacher_id = None

    teacher = db.get(Teacher, teacher_id) if teacher_id else None
    if teacher is None or not teacher.is_active:
        await websocket.close(code=1008)
        return

    await notification_hub.register(teacher.id, websocket)
    try:
        await websocket.send_json({"event": "connected", "teacher_id": teacher.id})
        while True:
            message = await websocket.receive_text()
            if message.strip().lower() == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await notification_hub.unregister(teacher.id, websocket)
