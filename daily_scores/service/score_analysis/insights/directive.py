"""Daily directive: one fixed recommendation chosen from the two daily scores."""

from daily_scores.service.score_analysis.common.constants import DirectiveThresholds

PEAK_PERFORMANCE = "Primed for peak performance. Your body is ready for a high-strain workout."
ACTIVE_RECOVERY = (
    "Nervous system under strain. Prioritize active recovery. A light walk or stretching is recommended."
)
NON_RESTORATIVE_SLEEP = "Sleep was not restorative. Focus on your wind-down routine tonight."
MAINTAIN_HABITS = "Maintain your current habits for continued progress."


def generate_directive(recovery_score: float, sleep_score: float) -> str:
    """
    Pick the directive for a day. Rules are checked in order and the first match wins.

    Args:
        recovery_score: Final recovery score (0-100)
        sleep_score: Final sleep score (0-100)

    Returns:
        Directive text
    """
    if recovery_score > DirectiveThresholds.PEAK_RECOVERY:
        return PEAK_PERFORMANCE
    if recovery_score < DirectiveThresholds.STRAINED_RECOVERY:
        return ACTIVE_RECOVERY
    if sleep_score < DirectiveThresholds.RESTORATIVE_SLEEP:
        return NON_RESTORATIVE_SLEEP
    return MAINTAIN_HABITS
