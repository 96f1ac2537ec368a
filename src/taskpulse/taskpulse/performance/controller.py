from __future__ import annotations

from typing import Any, Dict

from flask import Flask, request

from ..common.datetime_utils import now_utc, to_iso
from ..common.web import api_view, json_body, ok
from ..container import Container
from ..core.constants import DEFAULT_PAGE_SIZE
from ..core.exceptions import ValidationError
from .aggregator import PerformanceAggregator
from .model import COUNTER_FIELDS, Performance


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


CAMEL_TO_FIELD = {_camel(name): name for name in COUNTER_FIELDS}
CAMEL_TO_FIELD.update(
    {
        "reviewNotes": "review_notes",
        "isActive": "is_active",
        "employeeId": "employee_id",
        "period": "period",
        "startDate": "start_date",
        "endDate": "end_date",
    }
)


def performance_to_response(record: Performance, aggregator: PerformanceAggregator) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "id": record.performance_id,
        "employeeId": record.employee_id,
        "period": record.period.value,
        "startDate": to_iso(record.start_date),
        "endDate": to_iso(record.end_date),
    }
    body.update({_camel(name): getattr(record, name) for name in COUNTER_FIELDS})
    body.update(aggregator.rates(record))
    body.update(
        {
            "overallScore": record.overall_score,
            "grade": record.grade.value,
            "reviewedBy": record.reviewed_by,
            "reviewDate": to_iso(record.review_date),
            "reviewNotes": record.review_notes,
            "isActive": record.is_active,
            "createdAt": to_iso(record.created_at),
        }
    )
    return body


def _int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def register(app: Flask, container: Container) -> None:
    service = container.performance_service

    def _out(record: Performance) -> Dict[str, Any]:
        return performance_to_response(record, service.aggregator)

    @app.route("/api/performance/calculate", methods=["POST"], endpoint="calculate_performance")
    @api_view
    def calculate_performance(actor):
        body = json_body()
        employee_id = body.get("employeeId")
        if employee_id is None:
            raise ValidationError("employeeId is required")
        try:
            employee_id = int(employee_id)
        except (TypeError, ValueError):
            raise ValidationError("employeeId must be an integer")
        record = service.calculate_performance(
            actor,
            employee_id=employee_id,
            period=body.get("period") or "monthly",
            start_date=body.get("startDate"),
            end_date=body.get("endDate"),
        )
        return ok({"performance": _out(record)}, message="Performance calculated successfully", status=201)

    @app.route("/api/performance", methods=["GET"], endpoint="list_performances")
    @api_view
    def list_performances(actor):
        args = request.args
        result = service.list_performances(
            actor,
            period=args.get("period") or None,
            start_date=args.get("startDate"),
            end_date=args.get("endDate"),
            page=args.get("page", 1),
            limit=args.get("limit", DEFAULT_PAGE_SIZE),
        )
        return ok(
            {"performances": [_out(r) for r in result.items], "pagination": result.meta()},
            message="Performance records retrieved successfully",
        )

    @app.route("/api/performance/employee/<int:employee_id>", methods=["GET"], endpoint="employee_performance")
    @api_view
    def employee_performance(actor, employee_id: int):
        records = service.employee_history(
            actor,
            employee_id,
            period=request.args.get("period") or "monthly",
            limit=_int_arg("limit", 12),
        )
        return ok({"performances": [_out(r) for r in records]})

    @app.route("/api/performance/<int:performance_id>", methods=["PUT"], endpoint="update_performance")
    @api_view
    def update_performance(actor, performance_id: int):
        body = json_body()
        changes = {CAMEL_TO_FIELD.get(k, k): v for k, v in body.items()}
        record = service.update_performance(actor, performance_id, changes)
        return ok({"performance": _out(record)}, message="Performance updated successfully")

    @app.route("/api/performance/stats", methods=["GET"], endpoint="performance_stats")
    @api_view
    def performance_stats(actor):
        stats = service.stats(
            actor,
            period=request.args.get("period") or "monthly",
            start_date=request.args.get("startDate"),
            end_date=request.args.get("endDate"),
        )
        return ok({"stats": stats})

    @app.route("/api/performance/employee-of-month", methods=["POST"], endpoint="announce_employee_of_month")
    @api_view
    def announce_employee_of_month(actor):
        body = json_body()
        now = now_utc()
        try:
            month = int(body.get("month") or now.month)
            year = int(body.get("year") or now.year)
        except (TypeError, ValueError):
            raise ValidationError("month and year must be integers")
        winner = service.announce_monthly_top(actor, month, year, now=now)
        return ok(
            {"employeeOfTheMonth": _out(winner) if winner else None, "month": month, "year": year},
            message="Employee of the Month calculated" if winner else "No performance records found for this month",
        )

    @app.route("/api/performance/employee-of-month/current", methods=["GET"], endpoint="current_employee_of_month")
    @api_view
    def current_employee_of_month(actor):
        now = now_utc()
        winner = service.monthly_top(now.month, now.year)
        return ok({"employeeOfTheMonth": _out(winner) if winner else None, "month": now.month, "year": now.year})
