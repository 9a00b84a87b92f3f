import pytest

from campus_scheduler.errors import TemplateDataMissing
from campus_scheduler.models.db.enums import NotificationKind
from campus_scheduler.models.schemas.notifications import Recipient
from campus_scheduler.services.messages import GENERAL_SUBJECT, render

from conftest import NOW


def _fee_recipient(**details):
    return Recipient(identity=1, display_name="Asha Rao", email="asha@example.com", details=details)


def test_overdue_message():
    msg = render(NotificationKind.OVERDUE, _fee_recipient(amount="1500", due_at="2026-03-05T09:00:00+00:00"), now=NOW)
    assert msg.subject == "Fee Payment Overdue"
    assert msg.body == (
        "Dear Asha Rao, your fee of 1500.00 is overdue by 10 days. "
        "Please pay immediately to avoid further penalties."
    )
    assert msg.sms_text == msg.body


def test_overdue_on_due_date_is_zero_days():
    msg = render(NotificationKind.OVERDUE, _fee_recipient(amount="10", due_at=NOW.isoformat()), now=NOW)
    assert "overdue by 0 days" in msg.body


def test_upcoming_message():
    msg = render(NotificationKind.UPCOMING, _fee_recipient(amount="450.5", due_at="2026-03-20T00:00:00"), now=NOW)
    assert msg.subject == "Fee Payment Reminder"
    assert "your fee of 450.50 is due on 20 Mar 2026." in msg.body


def test_general_message_uses_recipient_text():
    recipient = Recipient(identity="T-1", display_name="Ravi", details={"message": "Staff meeting at 3pm"})
    msg = render(NotificationKind.GENERAL, recipient)
    assert msg.subject == GENERAL_SUBJECT
    assert msg.body == "Dear Ravi,\n\nStaff meeting at 3pm"
    assert msg.sms_text == "Staff meeting at 3pm"


@pytest.mark.parametrize("details, missing", [
    ({"due_at": "2026-03-01"}, ["amount"]),
    ({"amount": "10"}, ["due_at"]),
    ({"amount": "10", "due_at": "next tuesday"}, ["due_at"]),
])
def test_fee_message_requires_amount_and_due_date(details, missing):
    with pytest.raises(TemplateDataMissing) as exc:
        render(NotificationKind.OVERDUE, _fee_recipient(**details), now=NOW)
    assert exc.value.missing == missing
