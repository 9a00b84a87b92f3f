from campus_scheduler.errors import ApplyFailure, QueryFailure
from campus_scheduler.models.db import Content, Notice
from campus_scheduler.models.db.enums import PublishStatus
from campus_scheduler.services import triggers
from campus_scheduler.services.triggers import TriggerReport, content_publish, notice_publish, run_scheduled

from conftest import NOW, days


def _statuses(db_session, model):
    db_session.expire_all()
    return {row.title: row.status for row in db_session.query(model).all()}


def test_notice_publish_yesterday_today_tomorrow(notice_factory, db_session):
    notice_factory("Yesterday", NOW - days(1))
    notice_factory("Today", NOW)
    notice_factory("Tomorrow", NOW + days(1))
    report = TriggerReport()

    result = notice_publish(db_session, now=NOW, report=report)

    assert result.ok and result.count == 2
    assert report.lines[-1] == "Notice publish process completed. Published: 2 notices"
    assert _statuses(db_session, Notice) == {
        "Yesterday": PublishStatus.PUBLISHED,
        "Today": PublishStatus.PUBLISHED,
        "Tomorrow": PublishStatus.DRAFT,
    }


def test_content_publish_covers_content_and_notices(content_factory, notice_factory, db_session):
    lecture = content_factory("Lecture 1", NOW - days(1))
    notice = notice_factory("Fee deadline", NOW - days(2))
    report = TriggerReport()

    result = content_publish(db_session, now=NOW, report=report)

    assert result.ok and result.count == 2
    assert report.lines == [
        "Starting content publish process...",
        "Processing content...",
        f"Published content: Lecture 1 (ID: {lecture.id})",
        "Content processed: 1 items",
        "Processing notices...",
        f"Published notice: Fee deadline (ID: {notice.id})",
        "Notices processed: 1 items",
        "Content publish process completed. Published: 2 items",
    ]


def test_dry_run_reports_without_mutating(notice_factory, db_session):
    notice = notice_factory("Sports day", NOW - days(1))
    report = TriggerReport()

    result = notice_publish(db_session, now=NOW, dry_run=True, report=report)

    assert result.ok and result.count == 1
    assert "DRY RUN MODE - No notice will be actually published" in report.lines
    assert f"Would publish notice: Sports day (ID: {notice.id})" in report.lines
    assert _statuses(db_session, Notice) == {"Sports day": PublishStatus.DRAFT}


def test_second_run_publishes_nothing(notice_factory, db_session):
    notice_factory("Once", NOW - days(1))
    notice_publish(db_session, now=NOW)

    again = notice_publish(db_session, now=NOW)

    assert again.ok and again.count == 0


def test_mid_loop_failure_keeps_earlier_transitions(notice_factory, db_session, monkeypatch):
    notice_factory("First", NOW - days(3))
    notice_factory("Second", NOW - days(2))
    notice_factory("Third", NOW - days(1))
    real_apply = triggers.apply_transition
    calls = []

    def flaky_apply(session, entity, *, now=None):
        calls.append(entity.title)
        if entity.title == "Second":
            raise ApplyFailure("disk full", entity_kind="notice", entity_id=entity.id)
        return real_apply(session, entity, now=now)

    monkeypatch.setattr(triggers, "apply_transition", flaky_apply)
    report = TriggerReport()

    result = notice_publish(db_session, now=NOW, report=report)

    assert result.ok is False
    assert result.count == 1
    assert calls == ["First", "Second"]
    assert report.lines[-2:] == ["Notice publish process failed: disk full", "Published before failure: 1 notices"]
    assert _statuses(db_session, Notice) == {
        "First": PublishStatus.PUBLISHED,
        "Second": PublishStatus.DRAFT,
        "Third": PublishStatus.DRAFT,
    }


def test_echo_receives_progress_lines(notice_factory, db_session):
    notice_factory("Echoed", NOW)
    seen = []

    notice_publish(db_session, now=NOW, report=TriggerReport(echo=seen.append))

    assert seen[0] == "Starting notice publish process..."
    assert seen[-1] == "Notice publish process completed. Published: 1 notices"


def test_scheduled_run_shares_now_across_flows(content_factory, notice_factory, fee_factory, db_session, recording_queue):
    content_factory("Syllabus", NOW)
    notice_factory("Orientation", NOW)
    fee_factory(NOW)

    report = run_scheduled(db_session, recording_queue, now=NOW)

    assert report.ok and report.exit_code == 0
    assert [flow.name for flow in report.flows] == ["content:publish", "notice:publish", "fees:remind"]
    assert [flow.count for flow in report.flows] == [1, 1, 1]
    assert _statuses(db_session, Content) == {"Syllabus": PublishStatus.PUBLISHED}
    assert len(recording_queue.jobs) == 1


def test_scheduled_run_continues_after_failed_flow(notice_factory, db_session, recording_queue, monkeypatch):
    notice_factory("Still published", NOW - days(1))

    def broken(session, now):
        raise QueryFailure("store unreachable")

    monkeypatch.setattr(triggers, "find_overdue", broken)

    report = run_scheduled(db_session, recording_queue, now=NOW)

    assert report.ok is False and report.exit_code == 1
    assert [flow.ok for flow in report.flows] == [True, True, False]
    assert "Fee reminder process failed: store unreachable" in report.lines
    assert _statuses(db_session, Notice) == {"Still published": PublishStatus.PUBLISHED}
    assert recording_queue.jobs == []
