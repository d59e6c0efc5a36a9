"""Health report generation."""

from .health_report import (
    FALLBACK_RECOMMENDATIONS,
    HealthReportData,
    HealthReportService,
    ReportUser,
    format_goal_type,
    generate_health_report_data,
    render_report,
    sleep_quality,
)

__all__ = [
    "FALLBACK_RECOMMENDATIONS",
    "HealthReportData",
    "HealthReportService",
    "ReportUser",
    "format_goal_type",
    "generate_health_report_data",
    "render_report",
    "sleep_quality",
]
