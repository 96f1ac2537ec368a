from __future__ import annotations

from dataclasses import dataclass

from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .core.constants import DEFAULT_TOP_PERFORMERS
from .database.connection import DBConfig, DatabaseConnection
from .notifications.mysql_notification_sink import MySQLNotificationSink
from .performance.mysql_performance_repository import MySQLPerformanceRepository
from .performance.service import PerformanceService
from .sales.mysql_sales_call_repository import MySQLSalesCallRepository
from .scoring.engine import ScoringEngine
from .scoring.service import ScoringService
from .tasks.mysql_task_repository import MySQLTaskRepository
from .tasks.service import TaskService
from .users.mysql_employee_directory import MySQLEmployeeDirectory


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    tasks_repo: MySQLTaskRepository
    employees: MySQLEmployeeDirectory
    attendance_repo: MySQLAttendanceRepository
    sales_calls_repo: MySQLSalesCallRepository
    performance_repo: MySQLPerformanceRepository
    notifier: MySQLNotificationSink

    task_service: TaskService
    scoring_service: ScoringService
    performance_service: PerformanceService


def build_container(*, db_config: dict, top_performers: int = DEFAULT_TOP_PERFORMERS) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    tasks_repo = MySQLTaskRepository(conn)
    employees = MySQLEmployeeDirectory(conn)
    attendance_repo = MySQLAttendanceRepository(conn)
    sales_calls_repo = MySQLSalesCallRepository(conn)
    performance_repo = MySQLPerformanceRepository(conn)
    notifier = MySQLNotificationSink(conn)

    task_service = TaskService(tasks_repo, employees, notifier=notifier)
    scoring_service = ScoringService(tasks_repo, employees, engine=ScoringEngine(top_performers=top_performers))
    performance_service = PerformanceService(
        performance_repo,
        tasks_repo,
        employees,
        attendance_repo,
        sales_calls_repo,
        notifier=notifier,
    )

    return Container(
        conn=conn,
        tasks_repo=tasks_repo,
        employees=employees,
        attendance_repo=attendance_repo,
        sales_calls_repo=sales_calls_repo,
        performance_repo=performance_repo,
        notifier=notifier,
        task_service=task_service,
        scoring_service=scoring_service,
        performance_service=performance_service,
    )
