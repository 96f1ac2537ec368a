from __future__ import annotations

from flask import Flask

from ..common.web import api_view, ok, query_datetime
from ..container import Container


def register(app: Flask, container: Container) -> None:
    @app.route("/api/tasks/employee-of-the-month", methods=["GET"], endpoint="employee_of_the_month")
    @api_view
    def employee_of_the_month(actor):
        result = container.scoring_service.calculate_employee_of_the_month(
            query_datetime("startDate"), query_datetime("endDate")
        )
        return ok(result.to_dict(), message="Employee of the month calculated successfully")
