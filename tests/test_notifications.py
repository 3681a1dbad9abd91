import pytest

from ledger import Caller, Forbidden, NotFound, approve_investment, create_investment
from ledger.notifications import (
    InvalidNotification, create_notification, list_notifications, mark_read, unread_count,
)
from models import Notification
from conftest import T0


def test_approval_notifies_owner(account, caller, admin_caller):
    investment = create_investment(caller, 2500, now=T0)
    approve_investment(admin_caller, investment.id, now=T0)

    notes = list_notifications(caller)
    assert [n.title for n in notes] == ["Investment approved"]
    assert unread_count(account.id) == 1


def test_admin_creates_and_owner_marks_read(account, caller, admin_caller):
    note = create_notification(admin_caller, account.id, "  Maintenance  ", "Back at noon")
    assert note.title == "Maintenance"

    mark_read(caller, note.id)
    mark_read(caller, note.id)

    assert unread_count(account.id) == 0


def test_mark_read_of_someone_elses_notification(account, admin_caller, make_account):
    note = create_notification(admin_caller, account.id, "Hi", "Hello")
    stranger = Caller.from_user(make_account())
    with pytest.raises(NotFound):
        mark_read(stranger, note.id)


def test_only_admins_create_notifications(account, caller):
    with pytest.raises(Forbidden):
        create_notification(caller, account.id, "Hi", "Hello")
    assert Notification.query.count() == 0


@pytest.mark.parametrize("title, message", [
    ("", "Hello"),
    ("Hi", ""),
    ("T" * 201, "Hello"),
    ("Hi", "M" * 1001),
    (None, "Hello"),
    (42, "Hello"),
    ("Hi", ["Hello"]),
])
def test_notification_field_validation(account, admin_caller, title, message):
    with pytest.raises(InvalidNotification):
        create_notification(admin_caller, account.id, title, message)


def test_list_is_newest_first_and_limited(account, caller, admin_caller):
    for i in range(12):
        create_notification(admin_caller, account.id, f"Note {i}", "body")

    notes = list_notifications(caller)
    assert len(notes) == 10
    assert notes[0].title == "Note 11"
