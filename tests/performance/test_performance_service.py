from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from src.taskpulse.taskpulse.attendance.model import AttendanceRecord
from src.taskpulse.taskpulse.core.constants import MS_PER_HOUR
from src.taskpulse.taskpulse.core.enums import AttendanceStatus, Grade, NotificationType, PerformancePeriod, TaskStatus
from src.taskpulse.taskpulse.core.exceptions import (
    DuplicateRecordError,
    PermissionDenied,
    RecordNotFound,
    ValidationError,
)
from src.taskpulse.taskpulse.performance.model import Performance
from src.taskpulse.taskpulse.performance.service import PerformanceService
from src.taskpulse.taskpulse.sales.model import SalesCall
from src.taskpulse.taskpulse.tasks.model import LedgerEntry

JAN_START = datetime(2024, 1, 1, tzinfo=timezone.utc)
JAN_END = datetime(2024, 1, 31, 23, 59, 59, tzinfo=timezone.utc)


@pytest.fixture
def service(performance_repo, task_repo, employees, attendance_source, sales_source, sink):
    return PerformanceService(
        performance_repo, task_repo, employees, attendance_source, sales_source, notifier=sink
    )


def jan(employee_id=10, **kwargs):
    return dict(employee_id=employee_id, period="monthly", start_date=JAN_START, end_date=JAN_END, **kwargs)


def day(user_id, d, status):
    return AttendanceRecord(user_id=user_id, work_date=date(2024, 1, d), check_in_time=None, check_out_time=None, status=status)


def test_gathers_counters_from_sources(service, task_repo, make_task, attendance_source, admin, fixed_now):
    done = make_task(10, estimated_hours=4)
    done.status = TaskStatus.COMPLETED
    done.completed_date = fixed_now
    done.time_tracking = [LedgerEntry(user_id=10, total_time_spent=3 * MS_PER_HOUR)]
    task_repo.save(done)
    task_repo.save(make_task(10, due_in=timedelta(days=-2)))
    task_repo.save(make_task(10, due_in=timedelta(days=30)))
    task_repo.save(make_task(11))

    attendance_source.records = [
        day(10, 2, AttendanceStatus.ON_TIME),
        day(10, 3, AttendanceStatus.LATE),
        day(10, 4, AttendanceStatus.EARLY_LEAVE),
        day(10, 5, AttendanceStatus.ABSENT),
        day(11, 2, AttendanceStatus.ON_TIME),
    ]

    record = service.calculate_performance(admin, now=fixed_now, **jan())

    assert record.performance_id == 1
    assert record.tasks_assigned == 3
    assert record.tasks_completed == 1
    # The one due past January is not overdue for this window.
    assert record.tasks_overdue == 1
    assert record.average_task_completion_time == 3.0
    assert (record.attendance_days, record.late_arrivals, record.early_departures) == (3, 1, 1)
    assert record.total_working_days == 23
    assert record.sales_calls == 0
    assert record.overall_score == service.aggregator.calculate_overall_score(record)


def test_sales_counters_only_for_sales_designation(service, sales_source, admin, fixed_now):
    sales_source.calls = [
        SalesCall(sales_rep_id=12, scheduled_date=fixed_now, is_successful=True, deal_value=1500, deal_closed=True),
        SalesCall(sales_rep_id=12, scheduled_date=fixed_now, is_successful=False),
        SalesCall(sales_rep_id=12, scheduled_date=datetime(2024, 2, 3, tzinfo=timezone.utc), is_successful=True),
        SalesCall(sales_rep_id=10, scheduled_date=fixed_now, is_successful=True),
    ]

    cleo = service.calculate_performance(admin, now=fixed_now, **jan(12))
    ana = service.calculate_performance(admin, now=fixed_now, **jan(10))

    assert (cleo.sales_calls, cleo.sales_conversions, cleo.deals_closed) == (2, 1, 1)
    assert cleo.revenue_generated == 1500
    assert ana.sales_calls == 0


def test_calculation_guards(service, admin, ana, fixed_now):
    with pytest.raises(PermissionDenied):
        service.calculate_performance(ana, now=fixed_now, **jan())
    with pytest.raises(ValidationError):
        service.calculate_performance(
            admin, employee_id=10, period="monthly", start_date=JAN_END, end_date=JAN_START, now=fixed_now
        )
    with pytest.raises(ValidationError):
        service.calculate_performance(
            admin, employee_id=10, period="daily", start_date=JAN_START, end_date=JAN_END, now=fixed_now
        )
    with pytest.raises(RecordNotFound):
        service.calculate_performance(admin, now=fixed_now, **jan(404))


def test_duplicate_window(service, admin, fixed_now):
    service.calculate_performance(admin, now=fixed_now, **jan())
    with pytest.raises(DuplicateRecordError):
        service.calculate_performance(admin, now=fixed_now, **jan())
    # ISO strings resolve to the same window.
    with pytest.raises(DuplicateRecordError):
        service.calculate_performance(
            admin,
            employee_id=10,
            period="monthly",
            start_date="2024-01-01T00:00:00Z",
            end_date="2024-01-31T23:59:59Z",
            now=fixed_now,
        )


def test_update_recomputes_and_stamps_review(service, performance_repo, admin, pm, fixed_now):
    record = service.calculate_performance(admin, now=fixed_now, **jan())

    updated = service.update_performance(
        pm,
        record.performance_id,
        {"tasks_completed": 5, "tasks_assigned": 5, "attendance_days": 23, "review_notes": " Strong month "},
        now=fixed_now + timedelta(days=1),
    )

    assert updated.overall_score == 75
    assert updated.grade == Grade.C_PLUS
    assert updated.reviewed_by == 2
    assert updated.review_date == fixed_now + timedelta(days=1)
    assert updated.review_notes == "Strong month"
    assert performance_repo.get_by_id(record.performance_id).overall_score == 75


@pytest.mark.parametrize("changes", [{"start_date": JAN_START}, {"employee_id": 11}, {"grade": "A+"}, {"tasks_completed": -3}])
def test_update_rejects_bad_changes(service, admin, fixed_now, changes):
    record = service.calculate_performance(admin, now=fixed_now, **jan())
    with pytest.raises(ValidationError):
        service.update_performance(admin, record.performance_id, changes, now=fixed_now)


def test_update_missing_record(service, admin):
    with pytest.raises(RecordNotFound):
        service.update_performance(admin, 77, {"review_notes": "x"})


def test_history_visibility(service, performance_repo, admin, ana, ben, fixed_now):
    for month in (1, 2, 3):
        performance_repo.save(
            Performance(
                employee_id=10,
                period=PerformancePeriod.MONTHLY,
                start_date=datetime(2024, month, 1, tzinfo=timezone.utc),
                end_date=datetime(2024, month, 28, tzinfo=timezone.utc),
            )
        )

    history = service.employee_history(ana, 10, limit=2)
    assert [r.start_date.month for r in history] == [3, 2]
    assert len(service.employee_history(admin, 10)) == 3
    with pytest.raises(PermissionDenied):
        service.employee_history(ben, 10)


def test_stats(service, performance_repo, admin, ana):
    for employee_id, done in ((10, 10), (11, 5), (12, 0)):
        performance_repo.save(
            Performance(
                employee_id=employee_id,
                period=PerformancePeriod.MONTHLY,
                start_date=JAN_START,
                end_date=JAN_END,
                tasks_completed=done,
                tasks_assigned=10,
                attendance_days=20,
                total_working_days=20,
            )
        )

    stats = service.stats(admin)
    assert stats["totalRecords"] == 3
    assert (stats["highestScore"], stats["lowestScore"]) == (75, 45)
    assert stats["averageScore"] == 60
    assert stats["gradeDistribution"] == {"C+": 1, "D": 1, "F": 1}
    with pytest.raises(PermissionDenied):
        service.stats(ana)


def test_list_performances_filters_and_pages(service, performance_repo, admin, ana, fixed_now):
    for i, period in enumerate(["monthly", "monthly", "quarterly", "monthly"]):
        performance_repo.save(
            Performance(
                employee_id=10 + i,
                period=period,
                start_date=JAN_START,
                end_date=JAN_END,
                created_at=fixed_now + timedelta(days=i),
            )
        )

    everything = service.list_performances(admin)
    assert [r.employee_id for r in everything.items] == [13, 12, 11, 10]
    assert everything.meta()["totalItems"] == 4

    monthly = service.list_performances(admin, period="monthly", page=2, limit=2)
    assert [r.employee_id for r in monthly.items] == [10]
    assert (monthly.total, monthly.total_pages, monthly.has_next, monthly.has_prev) == (3, 2, False, True)

    windowed = service.list_performances(
        admin,
        start_date="2024-01-16T00:00:00Z",
        end_date=(fixed_now + timedelta(days=2)).isoformat(),
    )
    assert [r.employee_id for r in windowed.items] == [12, 11]

    with pytest.raises(ValidationError):
        service.list_performances(admin, period="daily")
    with pytest.raises(ValidationError):
        service.list_performances(admin, start_date="2024-02-01T00:00:00Z", end_date="2024-01-01T00:00:00Z")
    with pytest.raises(PermissionDenied):
        service.list_performances(ana)


def _monthly(employee_id, done, month=1):
    return Performance(
        employee_id=employee_id,
        period=PerformancePeriod.MONTHLY,
        start_date=datetime(2024, month, 1, tzinfo=timezone.utc),
        end_date=datetime(2024, month, 28, tzinfo=timezone.utc),
        tasks_completed=done,
        tasks_assigned=10,
    )


def test_monthly_top_first_seen_wins_ties(service, performance_repo):
    performance_repo.save(_monthly(11, 8))
    performance_repo.save(_monthly(10, 8))
    performance_repo.save(_monthly(12, 3))
    performance_repo.save(_monthly(13, 10, month=2))

    assert service.monthly_top(1, 2024).employee_id == 11
    assert service.monthly_top(2, 2024).employee_id == 13
    assert service.monthly_top(3, 2024) is None
    with pytest.raises(ValidationError):
        service.monthly_top(13, 2024)


def test_announce_notifies_winner(service, performance_repo, sink, admin, ana, fixed_now):
    performance_repo.save(_monthly(10, 9))

    with pytest.raises(PermissionDenied):
        service.announce_monthly_top(ana, 1, 2024, now=fixed_now)

    winner = service.announce_monthly_top(admin, 1, 2024, now=fixed_now)
    assert winner.employee_id == 10
    (event,) = sink.events
    assert event.type == NotificationType.EMPLOYEE_OF_MONTH
    assert event.recipient_id == 10
    assert "January 2024" in event.message
    assert event.data["performanceId"] == winner.performance_id

    assert service.announce_monthly_top(admin, 5, 2024, now=fixed_now) is None
    assert len(sink.events) == 1
