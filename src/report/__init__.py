"""Optimization report assembly and serialization."""

from report.builder import ReportBuilder
from report.write import (
    dumps_plan,
    dumps_report,
    plan_to_dict,
    report_to_dict,
    write_report,
)

__all__ = [
    "ReportBuilder",
    "dumps_plan",
    "dumps_report",
    "plan_to_dict",
    "report_to_dict",
    "write_report",
]
