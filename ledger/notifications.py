import logging
from typing import List

from extensions import db
from models import Notification, User
from ledger.errors import LedgerError, NotFound
from ledger.store import Caller, atomic, get_or_404, require_admin, require_caller

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_MESSAGE_LENGTH = 1000


class InvalidNotification(LedgerError):
    code = "invalid_notification"
    default_message = "Invalid notification"


def _validate(title, message):
    if not title or not message:
        raise InvalidNotification("Missing required fields: title, message")
    if not isinstance(title, str) or not isinstance(message, str):
        raise InvalidNotification("title and message must be strings")
    if len(title) > MAX_TITLE_LENGTH:
        raise InvalidNotification(f"Title must be less than {MAX_TITLE_LENGTH} characters")
    if len(message) > MAX_MESSAGE_LENGTH:
        raise InvalidNotification(f"Message must be less than {MAX_MESSAGE_LENGTH} characters")


def _clean(value):
    return value.strip() if isinstance(value, str) else value


def notify(account_id: int, title: str, message: str) -> Notification:
    """Queue a notification inside the caller's unit of work."""
    _validate(title, message)
    notification = Notification(user_id=account_id, title=title, message=message)
    db.session.add(notification)
    db.session.flush()
    return notification


def create_notification(caller: Caller, account_id: int, title: str, message: str) -> Notification:
    """Admin-authored notification for a single account."""
    require_admin(caller)
    with atomic():
        get_or_404(User, account_id, "Account")
        notification = notify(account_id, _clean(title), _clean(message))
    logger.info(f"Admin {caller.account_id} notified account {account_id}: {notification.title}")
    return notification


def mark_read(caller: Caller, notification_id: int) -> Notification:
    require_caller(caller)
    with atomic():
        notification = db.session.get(Notification, notification_id)
        if notification is None or notification.user_id != caller.account_id:
            raise NotFound(f"Notification {notification_id} not found")
        notification.read = True
    return notification


def list_notifications(caller: Caller, limit: int = 10) -> List[Notification]:
    require_caller(caller)
    return (
        Notification.query
        .filter_by(user_id=caller.account_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def unread_count(account_id: int) -> int:
    return Notification.query.filter_by(user_id=account_id, read=False).count()
