from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import sys
from pathlib import Path
from typing import Optional, Sequence

from loguru import logger

from daily_scores.config import ScoringSettings
from daily_scores.service.baseline_store import ScoreType
from daily_scores.service.score_analysis.common.data_models import DailyScores, ScoreInsight, SleepScoreResult
from daily_scores.service.score_analysis.common.errors import DataUnavailableError
from daily_scores.service.score_analysis.insights.insight_engine import (
    generate_recovery_insights,
    generate_sleep_insights,
)
from daily_scores.service_factory import ServiceFactory


def setup_logger(out_dir: Path, level: str = "INFO") -> None:
    log_dir = out_dir / "log"
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.remove()
    logger.add(sys.stderr, level=level)
    logger.add(log_dir / "debug.log", rotation="100 MB", retention="7 days", level="DEBUG")
    logger.add(log_dir / "error.log", rotation="100 MB", retention="7 days", level="ERROR")
    logger.info("logger initialised")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Daily recovery and sleep scores from personal baselines")
    parser.add_argument("--out_dir", type=Path, help="Output directory (overrides DAILY_SCORES_OUT_DIR)")
    parser.add_argument("--user_id", type=str, help="User whose data to use (overrides DAILY_SCORES_USER_ID)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import", help="Import a JSON health data export")
    import_parser.add_argument("file", type=Path, help="Export file with biomarkers and sleep sessions")

    refresh_parser = subparsers.add_parser("refresh", help="Recalculate the personal baseline")
    refresh_parser.add_argument("--force", action="store_true", help="Reset the baseline before recalculating")

    score_parser = subparsers.add_parser("score", help="Compute the scores for a day")
    score_parser.add_argument("--date", type=dt.date.fromisoformat, help="Date (YYYY-MM-DD), default today")
    score_parser.add_argument("--json", action="store_true", help="Print the full result as JSON")

    history_parser = subparsers.add_parser("history", help="List recorded scores")
    history_parser.add_argument("--type", choices=[t.value for t in ScoreType], help="Only this score type")
    history_parser.add_argument("--limit", type=int, help="Maximum number of entries")

    subparsers.add_parser("reset", help="Drop the stored baseline")
    return parser


def _format_insight(title: str, insight: ScoreInsight) -> list[str]:
    lines = [f"{title}: {insight.headline}"]
    lines += [f"  - {c.name}: {c.display_value} ({c.status.value}) {c.explanation}" for c in insight.components]
    lines.append(f"  {insight.recommendation}")
    return lines


def format_daily_scores(scores: DailyScores) -> str:
    confidence = " (low confidence, baseline still calibrating)" if scores.low_confidence else ""
    lines = [f"Scores for {scores.date.isoformat()}{confidence}", f"Recovery: {scores.recovery.final_score}/100"]
    lines += [f"  {c.name}: {c.contribution:.1f} pts. {c.description}" for c in scores.recovery.components]
    lines.append(f"Sleep: {scores.sleep.final_score}/100 ({scores.sleep.model.value})")
    lines += [f"  {c.name}: {c.contribution:.1f} pts. {c.description}" for c in scores.sleep.components]
    lines.append(f"Directive: {scores.directive}")
    lines += _format_insight("Recovery insight", generate_recovery_insights(scores.recovery))
    lines += _format_insight("Sleep insight", generate_sleep_insights(scores.sleep))
    return "\n".join(lines)


def format_sleep_score(sleep: SleepScoreResult) -> str:
    lines = [f"Sleep for {sleep.date.isoformat()}: {sleep.final_score}/100 ({sleep.model.value})"]
    lines += [f"  {c.name}: {c.contribution:.1f} pts. {c.description}" for c in sleep.components]
    lines += [f"  * {finding}" for finding in sleep.key_findings]
    return "\n".join(lines)


async def run(args: argparse.Namespace, factory: ServiceFactory) -> int:
    service = factory.scoring_service

    if args.command == "import":
        samples, sessions = factory.health_data_provider.import_json_export(args.file)
        print(f"Imported {samples} biomarker samples and {sessions} sleep sessions")
        return 0

    if args.command == "refresh":
        engine = factory.baseline_engine
        await engine.load()
        baseline = await (engine.force_refresh() if args.force else engine.refresh())
        print(baseline.model_dump_json(indent=2))
        return 0

    if args.command == "reset":
        await factory.baseline_engine.reset()
        print("Baseline reset")
        return 0

    if args.command == "history":
        score_type = ScoreType(args.type) if args.type else None
        for entry in service.history(score_type=score_type, limit=args.limit):
            print(f"{entry.date}  {entry.score_type.value:<8} {entry.score:>3}  (hrv60={entry.hrv60}, rhr60={entry.rhr60})")
        return 0

    date = args.date or dt.date.today()
    try:
        scores = await service.score_day(date)
    except DataUnavailableError as e:
        logger.warning(f"Recovery score unavailable: {e}")
        try:
            sleep = await service.score_sleep(date)
        except DataUnavailableError as sleep_error:
            logger.error(f"No scores available for {date}: {sleep_error}")
            return 2
        print(sleep.model_dump_json(indent=2) if args.json else format_sleep_score(sleep))
        return 0

    print(scores.model_dump_json(indent=2) if args.json else format_daily_scores(scores))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = ScoringSettings()
    if args.out_dir is not None:
        settings.out_dir = args.out_dir
    if args.user_id is not None:
        settings.user_id = args.user_id
    settings.out_dir.mkdir(parents=True, exist_ok=True)
    setup_logger(settings.out_dir, settings.log_level)

    factory = ServiceFactory(settings)
    try:
        return asyncio.run(run(args, factory))
    finally:
        if "health_data_provider" in factory.__dict__:
            factory.health_data_provider.close()


if __name__ == "__main__":
    sys.exit(main())
