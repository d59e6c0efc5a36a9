"""Health report assembly and plain-text rendering."""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Sequence

from ..health import HealthRecord
from ..llm_client import GroqLLMClient
from ..result import Outcome

logger = logging.getLogger(__name__)

TREND_DAYS = 7
DEFAULT_HEART_RATE = 70
DEFAULT_GOAL = "weight-loss"
TREND_DATE_FORMAT = "%m/%d/%Y"

INSIGHTS_SYSTEM_PROMPT = (
    "You are a wellness coach analyzing health data. Based on the provided data, give 3 "
    "specific, actionable insights phrased in the first person as if you're directly "
    "speaking to the user. Each insight should be concise (1-2 sentences) and focus on "
    "trends, improvements, or areas that need attention. Respond with a JSON object of "
    'the form {"insights": ["...", "...", "..."]}.'
)

FALLBACK_RECOMMENDATIONS = (
    "Try to increase your daily step count gradually to reach your goal of 10,000 steps.",
    "Aim for 7-8 hours of sleep consistently to improve your recovery and overall health.",
    "Continue monitoring your heart rate during workouts to ensure you're training in the optimal zone.",
)

SUMMARY_INTRO = (
    "This health report provides an overview of your recent wellness metrics including "
    "activity, sleep, heart rate, and weight data. "
)

GOAL_SUMMARIES = {
    "weight-loss": (
        "Your focus on weight loss is showing progress with consistent activity levels and "
        "good sleep patterns. Continue to monitor your caloric intake and maintain your "
        "exercise routine for optimal results."
    ),
    "muscle-gain": (
        "Your muscle gain journey is progressing well. Focus on ensuring adequate protein "
        "intake and recovery periods between strength training sessions to maximize your gains."
    ),
    "fitness": (
        "Your overall fitness metrics are showing improvement. Continue with your balanced "
        "approach to cardio and strength training while monitoring your recovery metrics."
    ),
    "mental-wellness": (
        "Your activity and sleep patterns support good mental wellness. Regular physical "
        "activity combined with adequate sleep are key foundations for emotional balance "
        "and stress management."
    ),
    "nutrition": (
        "Your health metrics indicate good overall wellness. Continue focusing on balanced "
        "nutrition to support your activity levels and ensure optimal recovery."
    ),
}

GENERIC_SUMMARY = (
    "Your wellness journey shows good progress across multiple metrics. Continue with "
    "your balanced approach to health and wellness."
)

HEART_RATE_TYPES = ("heartRate", "heart_rate")


@dataclass(frozen=True)
class ReportUser:
    name: str
    email: str | None = None
    primary_goal: str | None = None


@dataclass(frozen=True)
class ReportStats:
    steps: int
    sleep: str
    heart_rate: int
    weight: int


@dataclass(frozen=True)
class ActivityTrend:
    date: str
    steps: int
    active_minutes: int


@dataclass(frozen=True)
class SleepTrend:
    date: str
    duration: float
    quality: str


@dataclass
class HealthReportData:
    """Everything the rendered report shows."""

    user_name: str
    user_email: str
    goal_type: str
    date: str
    summary_title: str
    summary_content: str
    stats: ReportStats
    activity_trend: list[ActivityTrend] = field(default_factory=list)
    sleep_trend: list[SleepTrend] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


def _round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def _int_value(record: HealthRecord) -> int | None:
    value = record.numeric_value()
    return int(value) if value is not None else None


def sleep_quality(hours: float) -> str:
    if hours >= 7:
        return "Good"
    if hours >= 6:
        return "Fair"
    return "Poor"


def format_goal_type(goal: str) -> str:
    """'mental-wellness' -> 'Mental Wellness'."""
    return " ".join(word[:1].upper() + word[1:] for word in goal.split("-"))


def goal_summary(goal: str) -> str:
    return SUMMARY_INTRO + GOAL_SUMMARIES.get(goal, GENERIC_SUMMARY)


def _by_type(records: Sequence[HealthRecord], *data_types: str) -> list[HealthRecord]:
    """Parseable records of the given types, newest first."""
    matching = [r for r in records if r.data_type in data_types and r.numeric_value() is not None]
    return sorted(matching, key=lambda r: r.timestamp, reverse=True)


def _value_on(records: Sequence[HealthRecord], day: date) -> float:
    """Value of the latest record on a day, or 0."""
    for record in records:
        if record.timestamp.date() == day:
            return record.numeric_value() or 0.0
    return 0.0


def generate_health_report_data(
    user: ReportUser,
    records: Iterable[HealthRecord],
    today: date,
    insights: Sequence[str] | None = None,
) -> HealthReportData:
    """Assemble report data from a user's health records.

    Args:
        user: Who the report is for.
        records: The user's health records, in any order.
        today: Last day of the trend window.
        insights: Generated recommendations; the fixed fallback list is
            used when this is None or empty.

    Returns:
        HealthReportData ready for render_report.
    """
    records = list(records)
    steps = _by_type(records, "steps")
    sleep = _by_type(records, "sleep")
    heart_rate = _by_type(records, *HEART_RATE_TYPES)
    weight = _by_type(records, "weight")

    avg_heart_rate = DEFAULT_HEART_RATE
    if heart_rate:
        avg_heart_rate = _round_half_up(
            sum(_int_value(r) or 0 for r in heart_rate) / len(heart_rate)
        )

    stats = ReportStats(
        steps=(_int_value(steps[0]) or 0) if steps else 0,
        sleep=f"{sleep[0].value}h" if sleep else "No data",
        heart_rate=avg_heart_rate,
        weight=(_int_value(weight[0]) or 0) if weight else 0,
    )

    activity_trend = []
    sleep_trend = []
    for offset in range(TREND_DAYS - 1, -1, -1):
        day = today - timedelta(days=offset)
        label = day.strftime(TREND_DATE_FORMAT)

        day_steps = int(_value_on(steps, day))
        activity_trend.append(
            ActivityTrend(date=label, steps=day_steps, active_minutes=_round_half_up(day_steps / 1000 * 7))
        )

        hours = _value_on(sleep, day)
        sleep_trend.append(SleepTrend(date=label, duration=hours, quality=sleep_quality(hours)))

    goal = user.primary_goal or DEFAULT_GOAL
    return HealthReportData(
        user_name=user.name,
        user_email=user.email or "Not provided",
        goal_type=format_goal_type(goal),
        date=today.isoformat(),
        summary_title="Health Report Summary",
        summary_content=goal_summary(goal),
        stats=stats,
        activity_trend=activity_trend,
        sleep_trend=sleep_trend,
        recommendations=list(insights) if insights else list(FALLBACK_RECOMMENDATIONS),
    )


def render_report(data: HealthReportData) -> bytes:
    """Render the report as UTF-8 plain text."""
    lines = [
        f"Health Report for {data.user_name}",
        f"Generated: {data.date}",
        f"Goal Type: {data.goal_type}",
        "",
        f"Summary: {data.summary_content}",
        "",
        "Statistics:",
        f"- Steps: {data.stats.steps}",
        f"- Sleep: {data.stats.sleep}",
        f"- Heart Rate: {data.stats.heart_rate} BPM",
        f"- Weight: {data.stats.weight} lbs",
        "",
        "Activity (last 7 days):",
    ]
    lines.extend(
        f"- {t.date}: {t.steps} steps, {t.active_minutes} active min" for t in data.activity_trend
    )
    lines.append("")
    lines.append("Sleep (last 7 days):")
    lines.extend(f"- {t.date}: {t.duration:g}h ({t.quality})" for t in data.sleep_trend)
    lines.append("")
    lines.append("Recommendations:")
    lines.extend(f"{i}. {rec}" for i, rec in enumerate(data.recommendations, start=1))
    return ("\n".join(lines) + "\n").encode("utf-8")


class HealthReportService:
    """Builds reports, asking the LLM for recommendations when one is configured."""

    def __init__(self, llm: GroqLLMClient | None = None) -> None:
        self.llm = llm

    async def generate_insights(self, records: Sequence[HealthRecord]) -> Outcome[list[str]]:
        """Ask the LLM for three insights; fall back to the fixed list on failure."""
        fallback = list(FALLBACK_RECOMMENDATIONS)
        if self.llm is None:
            return Outcome.fallback(fallback, "no LLM configured")

        payload = json.dumps(
            [
                {
                    "dataType": r.data_type,
                    "value": r.value,
                    "unit": r.unit,
                    "timestamp": r.timestamp.isoformat(),
                }
                for r in records
            ]
        )
        try:
            response = await self.llm.complete_json(payload, system=INSIGHTS_SYSTEM_PROMPT)
        except Exception as e:
            logger.error("Error getting health insights: %s", e)
            return Outcome.fallback(fallback, e)

        insights = response.get("insights")
        if not isinstance(insights, list) or not insights:
            return Outcome.fallback(fallback, "response had no insights")
        return Outcome.success([str(item) for item in insights])

    async def build_report(
        self, user: ReportUser, records: Sequence[HealthRecord], today: date
    ) -> HealthReportData:
        insights = await self.generate_insights(records)
        return generate_health_report_data(user, records, today, insights.value)
