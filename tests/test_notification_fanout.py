import pydantic
import pytest

from campus_scheduler.models.db.enums import NotificationKind
from campus_scheduler.models.schemas.notifications import Recipient
from campus_scheduler.services.notification_fanout import dispatch, notify_recipient

from conftest import NOW, RecordingChannel


def _general(i: int, **overrides) -> Recipient:
    data = {
        "identity": i,
        "display_name": f"Member {i}",
        "email": f"m{i}@example.com",
        "phone": None,
        "details": {"message": "Campus closed Friday"},
    }
    data.update(overrides)
    return Recipient(**data)


def test_one_failing_recipient_does_not_stop_the_batch():
    n, k = 5, 2
    batch = [_general(i) for i in range(n)]
    batch[k] = _general(k, email=None, phone="+15550000002")
    channel = RecordingChannel(fail_sms={"+15550000002"})

    summary = dispatch(batch, NotificationKind.GENERAL, channel)

    assert (summary.total, summary.sent, summary.skipped, summary.failed) == (n, n - 1, 0, 1)
    assert summary.skipped_or_failed == 1
    assert channel.calls == [
        ("email", "m0@example.com"),
        ("email", "m1@example.com"),
        ("sms", "+15550000002"),
        ("email", "m3@example.com"),
        ("email", "m4@example.com"),
    ]


def test_each_available_channel_is_attempted():
    channel = RecordingChannel()
    recipient = _general(1, phone="+15551234567")

    assert notify_recipient(channel, recipient, NotificationKind.GENERAL) == "sent"
    assert channel.calls == [("email", "m1@example.com"), ("sms", "+15551234567")]
    assert channel.messages[0][1] == "College Management System Notification"
    assert channel.sms == [("+15551234567", "Campus closed Friday")]


def test_one_channel_delivering_counts_as_sent():
    channel = RecordingChannel(fail_email={"m1@example.com"})
    summary = dispatch([_general(1, phone="+15551234567")], NotificationKind.GENERAL, channel)
    assert summary.sent == 1 and summary.failed == 0


def test_recipient_without_channels_is_skipped():
    channel = RecordingChannel()
    summary = dispatch([_general(1, email="  ", phone=None), _general(2)], "general", channel)
    assert (summary.sent, summary.skipped, summary.failed) == (1, 1, 0)
    assert channel.calls == [("email", "m2@example.com")]


def test_missing_template_data_is_isolated_per_recipient():
    complete = _general(1, details={"amount": "500.00", "due_at": "2026-03-01T00:00:00+00:00"})
    missing = _general(2, details={"amount": "500.00"})
    channel = RecordingChannel()

    summary = dispatch([missing, complete], NotificationKind.OVERDUE, channel, now=NOW)

    assert (summary.sent, summary.failed) == (1, 1)
    assert channel.calls == [("email", "m1@example.com")]
    assert "overdue by 14 days" in channel.messages[0][2]


def test_dict_payloads_are_validated_into_recipients():
    channel = RecordingChannel()
    summary = dispatch(
        [{"identity": "S-1", "display_name": "Asha", "email": "asha@example.com"}],
        NotificationKind.GENERAL,
        channel,
    )
    assert summary.sent == 1


def test_malformed_batch_propagates():
    channel = RecordingChannel()
    with pytest.raises(TypeError):
        dispatch("asha@example.com", NotificationKind.GENERAL, channel)
    with pytest.raises(pydantic.ValidationError):
        dispatch([{"display_name": "No identity"}], NotificationKind.GENERAL, channel)
    with pytest.raises(ValueError):
        dispatch([_general(1)], "birthday", channel)
    assert channel.calls == []
