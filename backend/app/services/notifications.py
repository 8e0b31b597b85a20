from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Protocol

from anyio import from_thread
from sqlalchemy.orm import Session

from app.models.notification import Notification
from app.services.notification_hub import notification_hub

logger = logging.getLogger(__name__)

SUBSTITUTION_REQUESTED = "substitution.requested"
SUBSTITUTION_ACCEPTED = "substitution.accepted"
SUBSTITUTION_AUTO_DECLINED = "substitution.auto_declined"
SUBSTITUTION_REJECTED = "substitution.rejected"
SUBSTITUTION_CANCELLED = "substitution.cancelled"
SUBSTITUTION_COMPLETED = "substitution.completed"
SUBSTITUTION_EXPIRED = "substitution.expired"
LEAVE_STATUS_CHANGED = "leave.status_changed"
LEAVE_UNRESOURCED = "leave.unresourced"

EVENT_TITLES = {
    SUBSTITUTION_REQUESTED: "Substitute Request Pending",
    SUBSTITUTION_ACCEPTED: "Substitute Confirmed",
    SUBSTITUTION_AUTO_DECLINED: "Substitute Request Closed",
    SUBSTITUTION_REJECTED: "Substitute Request Declined",
    SUBSTITUTION_CANCELLED: "Substitute Request Cancelled",
    SUBSTITUTION_COMPLETED: "Substitution Completed",
    SUBSTITUTION_EXPIRED: "Substitute Request Expired",
    LEAVE_STATUS_CHANGED: "Leave Request Status Updated",
    LEAVE_UNRESOURCED: "Substitute Resolution Needed",
}


class NotificationSink(Protocol):
    def notify(self, teacher_id: str, event_type: str, payload: dict[str, Any]) -> None: ...


def _slot_label(payload: dict[str, Any]) -> str:
    parts = [str(payload[key]) for key in ("subject", "class_name") if payload.get(key)]
    when = " ".join(
        str(payload[key]) for key in ("date", "day") if payload.get(key)
    )
    period = payload.get("period_number")
    label = " / ".join(parts) or "class"
    if period:
        label += f", period {period}"
    if when:
        label += f" on {when}"
    return label


def describe_event(event_type: str, payload: dict[str, Any]) -> tuple[str, str]:
    title = EVENT_TITLES.get(event_type, "Notification")
    slot = _slot_label(payload)
    if event_type == SUBSTITUTION_REQUESTED:
        message = f"You have been asked to cover {slot}. Please accept or reject the request."
    elif event_type == SUBSTITUTION_ACCEPTED:
        message = f"{payload.get('substitute_name') or 'A teacher'} accepted substitute coverage for {slot}."
    elif event_type == SUBSTITUTION_AUTO_DECLINED:
        message = f"Your request to cover {slot} was closed because another teacher accepted first."
    elif event_type == SUBSTITUTION_REJECTED:
        message = (
            f"{payload.get('substitute_name') or 'A teacher'} declined to cover {slot}: "
            f"{payload.get('rejection_reason') or 'no reason given'}."
        )
    elif event_type == SUBSTITUTION_CANCELLED:
        message = f"The substitute request for {slot} was cancelled by an administrator."
    elif event_type == SUBSTITUTION_COMPLETED:
        message = f"Substitute coverage for {slot} was marked as completed."
    elif event_type == SUBSTITUTION_EXPIRED:
        message = f"The substitute request for {slot} expired without a response."
    elif event_type == LEAVE_STATUS_CHANGED:
        message = f"Your leave request for {payload.get('leave_date')} is now {payload.get('status')}."
        if payload.get("offers_created"):
            message += f" Substitute requests were sent for {payload.get('vacancies_with_offers')} class period(s)."
    elif event_type == LEAVE_UNRESOURCED:
        message = (
            f"{payload.get('unresourced_count')} class period(s) for the leave on "
            f"{payload.get('leave_date')} have no substitute candidates and need manual action."
        )
    else:
        message = title
    return title, message


def _safe_iso(value: datetime | None) -> str:
    if value is None:
        return datetime.now(timezone.utc).isoformat()
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc).isoformat()
    return value.isoformat()


def notification_to_event_payload(notification: Notification, *, event: str = "notification.created") -> dict:
    return {
        "event": event,
        "notification": {
            "id": notification.id,
            "teacher_id": notification.teacher_id,
            "event_type": notification.event_type,
            "title": notification.title,
            "message": notification.message,
            "payload": notification.payload,
            "is_read": notification.is_read,
            "created_at": _safe_iso(notification.created_at),
        },
    }


def publish_realtime_notification(notification: Notification, *, event: str = "notification.created") -> None:
    message = notification_to_event_payload(notification, event=event)
    try:
        from_thread.run(notification_hub.push, notification.teacher_id, message)
    except Exception:  # pragma: no cover - only works from an anyio worker thread
        logger.debug("Unable to push realtime notification for teacher %s", notification.teacher_id, exc_info=True)


def create_notification(
    db: Session,
    *,
    teacher_id: str,
    event_type: str,
    payload: dict[str, Any] | None = None,
    deliver_realtime: bool = True,
) -> Notification:
    payload = payload or {}
    title, message = describe_event(event_type, payload)
    record = Notification(
        teacher_id=teacher_id,
        event_type=event_type,
        title=title,
        message=message,
        payload=payload,
    )
    db.add(record)
    db.flush()
    if deliver_realtime:
        publish_realtime_notification(record)
    return record


class SessionNotificationSink:
    """Stores each event as a notification row and pushes it over the hub.

    Runs after the state transition has committed, in its own commit, so a
    failure here can only lose the notification.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def notify(self, teacher_id: str, event_type: str, payload: dict[str, Any]) -> None:
        try:
            create_notification(self._db, teacher_id=teacher_id, event_type=event_type, payload=payload)
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise
