"""
Insight generation for daily scores.

Turns a score result into a headline, a per-component explanation and one
actionable recommendation, ready for presentation.
"""

from typing import List, Optional, Tuple

from daily_scores.service.score_analysis.common.constants import InsightThresholds, SleepReference
from daily_scores.service.score_analysis.common.data_models import (
    ComponentInsight,
    InsightStatus,
    RecoveryScoreResult,
    ScoreComponent,
    ScoreInsight,
    SleepScoreResult,
)
from daily_scores.service.score_analysis.common.formatting import format_duration

_SEVERITY = {
    InsightStatus.OPTIMAL: 0,
    InsightStatus.GOOD: 1,
    InsightStatus.FAIR: 2,
    InsightStatus.POOR: 3,
}

_SLEEP_STRENGTHS = {
    "Duration": "sleep duration was on point",
    "Deep Sleep": "Deep Sleep was strong",
    "REM Sleep": "REM Sleep was strong",
    "Efficiency": "sleep was highly efficient",
    "Onset": "you fell asleep quickly",
}

_SLEEP_WEAKNESSES = {
    "Duration": "short sleep duration may leave you under-rested",
    "Deep Sleep": "a lack of Deep Sleep may impact physical recovery today",
    "REM Sleep": "low REM Sleep could affect mental clarity",
    "Efficiency": "restlessness reduced your sleep efficiency",
    "Onset": "long sleep onset delayed restorative processes",
}

_SLEEP_RECOMMENDATIONS = {
    "Duration": "Aim to be in bed 30 minutes earlier tonight to meet your sleep need.",
    "Deep Sleep": "To improve Deep Sleep, avoid caffeine after 2 PM and keep your room cool (about 19 °C).",
    "REM Sleep": "Avoid alcohol before bed and keep a consistent wake-up time to support REM Sleep.",
    "Efficiency": "Limit screen time before bed and keep the bedroom dark and quiet to boost efficiency.",
    "Onset": "Build a calming wind-down routine to help you fall asleep faster.",
}

_RECOVERY_LIMITER_HEADLINES = {
    "Heart Rate Variability": "Suboptimal HRV is limiting your body's ability to recover.",
    "Resting Heart Rate": "Elevated resting heart rate is constraining today's readiness.",
    "Sleep Quality": "Suboptimal sleep is the primary factor limiting recovery.",
}


def range_status(value: float, low: float, high: float) -> InsightStatus:
    """Grade a value by its relative distance outside the optimal range [low, high]."""
    if low <= value <= high:
        return InsightStatus.OPTIMAL

    if value < low:
        deviation = (low - value) / low if low else low - value
    else:
        deviation = (value - high) / high if high else value - high

    if deviation < InsightThresholds.GOOD_DEVIATION:
        return InsightStatus.GOOD
    if deviation < InsightThresholds.FAIR_DEVIATION:
        return InsightStatus.FAIR
    return InsightStatus.POOR


def score_status(score: float) -> InsightStatus:
    if score >= InsightThresholds.RECOVERY_OPTIMAL:
        return InsightStatus.OPTIMAL
    if score >= InsightThresholds.RECOVERY_GOOD:
        return InsightStatus.GOOD
    if score >= InsightThresholds.RECOVERY_FAIR:
        return InsightStatus.FAIR
    return InsightStatus.POOR


def _range_explanation(name: str, status: InsightStatus) -> str:
    return {
        InsightStatus.OPTIMAL: f"Your {name} met the optimal range.",
        InsightStatus.GOOD: f"Your {name} was close to optimal; small adjustments could make it perfect.",
        InsightStatus.FAIR: f"Your {name} was outside the optimal range. Aim for improvement.",
        InsightStatus.POOR: f"Your {name} was well outside the optimal range and needs attention.",
    }[status]


def _range_insight(
    name: str, value: float, display_value: str, optimal_range: str, bounds: Tuple[float, float]
) -> ComponentInsight:
    status = range_status(value, *bounds)
    return ComponentInsight(
        name=name,
        value=value,
        display_value=display_value,
        optimal_range=optimal_range,
        status=status,
        explanation=_range_explanation(name, status),
    )


def generate_sleep_insights(result: SleepScoreResult) -> ScoreInsight:
    """
    Explain a sleep score.

    Duration, efficiency and sleep onset are always graded; deep and REM sleep only
    when the session carried stage data. Deep and REM ranges scale with the time asleep.

    Args:
        result: Sleep score to explain

    Returns:
        Headline, component insights and a recommendation aimed at the weakest component
    """
    asleep = result.time_asleep_seconds
    components = [
        _range_insight(
            "Duration",
            asleep / 60,
            format_duration(asleep),
            "7-9h",
            SleepReference.OPTIMAL_DURATION_MINUTES,
        )
    ]

    if result.deep_sleep_seconds is not None:
        low_pct, high_pct = SleepReference.OPTIMAL_DEEP_PCT
        low, high = asleep * low_pct / 100, asleep * high_pct / 100
        components.append(
            _range_insight(
                "Deep Sleep",
                result.deep_sleep_seconds,
                format_duration(result.deep_sleep_seconds),
                f"{format_duration(low)}-{format_duration(high)}",
                (low, high),
            )
        )

    if result.rem_sleep_seconds is not None:
        if result.rem_sleep_seconds / 60 >= SleepReference.EXCELLENT_REM_MINUTES:
            components.append(
                ComponentInsight(
                    name="REM Sleep",
                    value=result.rem_sleep_seconds,
                    display_value=format_duration(result.rem_sleep_seconds),
                    optimal_range="2h+",
                    status=InsightStatus.OPTIMAL,
                    explanation="Excellent REM sleep duration (2h+).",
                )
            )
        else:
            low_pct, high_pct = SleepReference.OPTIMAL_REM_PCT
            low, high = asleep * low_pct / 100, asleep * high_pct / 100
            components.append(
                _range_insight(
                    "REM Sleep",
                    result.rem_sleep_seconds,
                    format_duration(result.rem_sleep_seconds),
                    f"{format_duration(low)}-{format_duration(high)}",
                    (low, high),
                )
            )

    components.append(
        _range_insight(
            "Efficiency",
            result.sleep_efficiency,
            f"{result.sleep_efficiency:.0f}%",
            "90-95%",
            SleepReference.OPTIMAL_EFFICIENCY_PCT,
        )
    )
    components.append(
        _range_insight(
            "Onset",
            result.time_to_fall_asleep_minutes,
            f"{result.time_to_fall_asleep_minutes:.0f} min",
            "<=15 min",
            SleepReference.OPTIMAL_ONSET_MINUTES,
        )
    )

    # max/min keep the first of equally graded components, so ties resolve in display order
    weakest = max(components, key=lambda c: _SEVERITY[c.status])
    strongest = min(components, key=lambda c: _SEVERITY[c.status])

    if weakest.status == InsightStatus.OPTIMAL:
        headline = "Your sleep was well balanced across all key metrics. Great job!"
        recommendation = "Maintain good sleep hygiene for continued improvements."
    elif strongest.status == weakest.status:
        headline = "Every part of your sleep fell outside its optimal range last night."
        recommendation = _SLEEP_RECOMMENDATIONS[weakest.name]
    else:
        headline = f"While your {_SLEEP_STRENGTHS[strongest.name]}, {_SLEEP_WEAKNESSES[weakest.name]}."
        recommendation = _SLEEP_RECOMMENDATIONS[weakest.name]

    return ScoreInsight(
        score=result.final_score, headline=headline, components=components, recommendation=recommendation
    )


def _hrv_insight(component: ScoreComponent) -> Optional[ComponentInsight]:
    current, baseline = component.current_value, component.baseline_value
    if current is None or not baseline:
        return None
    delta = (current - baseline) / baseline * 100
    if delta >= 0:
        explanation = f"Your HRV of {current:.0f} ms is {abs(delta):.0f}% above baseline, indicating strong autonomic recovery."
    else:
        explanation = f"Your HRV of {current:.0f} ms is {abs(delta):.0f}% below baseline, suggesting reduced recovery."
    return ComponentInsight(
        name="Heart Rate Variability",
        value=current,
        display_value=f"{current:.0f} ms",
        optimal_range=f"vs. {baseline:.0f} ms baseline",
        status=score_status(component.score),
        explanation=explanation,
    )


def _rhr_insight(component: ScoreComponent) -> Optional[ComponentInsight]:
    current, baseline = component.current_value, component.baseline_value
    if not component.available or current is None or not baseline:
        return None
    delta = (baseline - current) / baseline * 100
    if delta >= 0:
        explanation = (
            f"Your resting HR of {current:.0f} bpm is {abs(delta):.0f}% below baseline, "
            "signaling a well-recovered cardiovascular system."
        )
    else:
        explanation = (
            f"Your resting HR of {current:.0f} bpm is {abs(delta):.0f}% above baseline, indicating potential fatigue."
        )
    return ComponentInsight(
        name="Resting Heart Rate",
        value=current,
        display_value=f"{current:.0f} bpm",
        optimal_range=f"vs. {baseline:.0f} bpm baseline",
        status=score_status(component.score),
        explanation=explanation,
    )


def _sleep_quality_insight(component: ScoreComponent) -> ComponentInsight:
    score = int(component.score)
    if score >= 85:
        explanation = f"Last night's sleep score of {score} contributed positively to today's recovery."
    elif score >= 70:
        explanation = f"Sleep score of {score} provided a reasonable boost to recovery."
    elif score >= 50:
        explanation = f"Sleep score of {score} may limit recovery. Prioritize sleep quality tonight."
    else:
        explanation = f"Low sleep score of {score} is significantly constraining recovery today."
    return ComponentInsight(
        name="Sleep Quality",
        value=component.score,
        display_value=f"{score} / 100",
        optimal_range="",
        status=score_status(component.score),
        explanation=explanation,
    )


def _training_recommendation(score: int) -> str:
    if score >= 85:
        return "Your body is primed. Push maximal intensity or aim for a personal record today."
    if score >= 65:
        return "You are well-recovered. Execute your planned workout with discipline and focus."
    if score >= 40:
        return "Recovery is compromised. Reduce training volume by about 25% or lower the intensity."
    return "Recovery is low. Take a strategic rest day with active recovery only."


def generate_recovery_insights(result: RecoveryScoreResult) -> ScoreInsight:
    """Explain a recovery score: components against baseline, the main limiter and a training recommendation."""
    components: List[ComponentInsight] = [
        insight
        for insight in (
            _hrv_insight(result.hrv_component),
            _rhr_insight(result.rhr_component),
            _sleep_quality_insight(result.sleep_component),
        )
        if insight is not None
    ]

    driver = min(components, key=lambda c: _SEVERITY[c.status])
    limiter = max(components, key=lambda c: _SEVERITY[c.status])

    if all(c.status in (InsightStatus.OPTIMAL, InsightStatus.GOOD) for c in components):
        headline = "Your body is in a stable, well-recovered state, ready for a productive day."
    elif driver.name == limiter.name:
        headline = "Mixed signals detected. Monitor your recovery closely today."
    else:
        headline = _RECOVERY_LIMITER_HEADLINES.get(limiter.name, "One or more factors are limiting your recovery today.")

    return ScoreInsight(
        score=result.final_score,
        headline=headline,
        components=components,
        recommendation=_training_recommendation(result.final_score),
    )
