"""Rule-based observations over aggregated metrics."""

from __future__ import annotations

from pydantic import BaseModel, Field

from canvassiq.models import VoterMetrics

HEAVY_TACTIC_SHARE = 80.0
HIGH_UNDECIDED_RATE = 40.0
LOW_SUPPORT_RATE = 20.0
TREND_WINDOW = 7
TREND_BAND = 0.2
TEAM_GAP_FACTOR = 2


class DataInsights(BaseModel):
    insights: list[str] = Field(default_factory=list)
    anomalies: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)
    trends: list[str] = Field(default_factory=list)


def generate_insights(metrics: VoterMetrics) -> DataInsights:
    """Summarise tactic mix, contact outcomes, recent volume and team spread."""
    result = DataInsights()

    tactics_total = sum(metrics.tactics.values())
    if tactics_total > 0:
        ranked = sorted(metrics.tactics.items(), key=lambda kv: kv[1], reverse=True)
        top, top_count = ranked[0]
        share = top_count / tactics_total * 100
        result.insights.append(f"Most used tactic: {top} ({share:.1f}%)")
        if share > HEAVY_TACTIC_SHARE:
            runner_up = ranked[1][0] if len(ranked) > 1 else "other tactics"
            result.anomalies.append(
                f"Heavy reliance on {top} - consider diversifying contact methods"
            )
            result.recommendations.append(f"Try increasing {runner_up} to improve reach")

    contacts_total = metrics.contacts_total
    if contacts_total > 0:
        support_rate = metrics.contacts["support"] / contacts_total * 100
        undecided_rate = metrics.contacts["undecided"] / contacts_total * 100
        result.insights.append(f"Support rate: {support_rate:.1f}%")
        if undecided_rate > HIGH_UNDECIDED_RATE:
            result.insights.append(
                f"High undecided rate ({undecided_rate:.1f}%) - opportunity for follow-up"
            )
            result.recommendations.append("Focus on undecided contacts with targeted messaging")
        if support_rate < LOW_SUPPORT_RATE:
            result.anomalies.append("Low support conversion rate detected")
            result.recommendations.append("Review and refine contact scripts and approach")

    if len(metrics.by_date) > 1:
        recent = metrics.by_date[-TREND_WINDOW:]
        average = sum(d.contacts for d in recent) / len(recent)
        latest = recent[-1].contacts
        if latest > average * (1 + TREND_BAND):
            result.trends.append("Contact volume trending upward")
            result.insights.append("Recent increase in contact activity")
        elif latest < average * (1 - TREND_BAND):
            result.trends.append("Contact volume trending downward")
            result.anomalies.append("Declining contact activity needs attention")
            result.recommendations.append("Investigate causes of reduced contact volume")

    if len(metrics.team_attempts) > 1:
        ranked_teams = sorted(metrics.team_attempts.items(), key=lambda kv: kv[1], reverse=True)
        top_team, top_attempts = ranked_teams[0]
        _, bottom_attempts = ranked_teams[-1]
        if top_attempts > bottom_attempts * TEAM_GAP_FACTOR:
            result.insights.append(f"{top_team} significantly outperforming other teams")
            result.recommendations.append(f"Study {top_team}'s methods for best practices")

    return result
