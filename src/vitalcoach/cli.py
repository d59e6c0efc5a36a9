"""Operational CLI.

Provides subcommands for the retention sweep, nutrition summaries, memory
inspection, report rendering, transcription and accelerator status.
"""

import argparse
import asyncio
import json
import logging
import sys
import uuid
from datetime import date, datetime, time, timedelta
from pathlib import Path

from .accelerator import AcceleratorClient, AcceleratorError
from .attachments import AttachmentRetentionService
from .cache import TTLCache
from .chat import MessageStore
from .config import Settings, load_settings
from .events import configure_event_log
from .health import HealthStore, NutritionAggregationService
from .memory import MemoryService, MemoryStore
from .reports import HealthReportService, ReportUser, render_report
from .transcription import TranscriptionError, TranscriptionService

REPORT_WINDOW_DAYS = 30


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"Invalid date '{value}', expected YYYY-MM-DD") from e


def _health_store(settings: Settings) -> HealthStore:
    store = HealthStore(settings.db_path)
    store.init_db()
    return store


def _nutrition_service(settings: Settings) -> NutritionAggregationService:
    return NutritionAggregationService(
        _health_store(settings), cache=TTLCache(settings.nutrition_cache_ttl)
    )


def cmd_sweep(args: argparse.Namespace, settings: Settings) -> int:
    """Delete attachments past their retention period."""
    messages = MessageStore(settings.db_path)
    messages.init_db()
    service = AttachmentRetentionService(
        settings.uploads_dir,
        event_log=configure_event_log(settings.log_dir),
    )
    try:
        result = service.cleanup_expired_attachments(messages.iter_message_attachments)
    finally:
        messages.close()

    if result.degraded:
        print(f"Error: Sweep failed: {result.error}")
        return 1

    print(f"Deleted {result.deleted_files} file(s), freed {result.freed_bytes} bytes")
    return 0


def cmd_nutrition(args: argparse.Namespace, settings: Settings) -> int:
    """Print one day's nutrition summary."""
    service = _nutrition_service(settings)
    try:
        outcome = service.get_daily_summary(args.user, args.date or date.today())
    finally:
        service.store.close()

    if outcome.degraded:
        print(f"Error: Cannot load nutrition records: {outcome.error}")
        return 1
    summary = outcome.value

    if args.json:
        print(json.dumps(summary.to_dict(), indent=2))
        return 0

    print(f"\nNutrition for {summary.date.isoformat()} ({summary.entry_count} entries)")
    print("-" * 60)
    print(f"{'Meal':<12} {'Calories':>10} {'Protein':>9} {'Carbs':>9} {'Fat':>9}")
    for meal, totals in summary.meal_breakdown.items():
        print(
            f"{meal.value:<12} {totals.calories:>10.0f} {totals.protein:>9.1f} "
            f"{totals.carbs:>9.1f} {totals.fat:>9.1f}"
        )
    print("-" * 60)
    print(
        f"{'Total':<12} {summary.total_calories:>10.0f} {summary.total_protein:>9.1f} "
        f"{summary.total_carbs:>9.1f} {summary.total_fat:>9.1f}"
    )
    return 0


def cmd_weekly(args: argparse.Namespace, settings: Settings) -> int:
    """Print rounded daily averages for a week."""
    service = _nutrition_service(settings)
    start = args.start or (date.today() - timedelta(days=6))
    try:
        averages = service.get_weekly_averages(args.user, start)
    finally:
        service.store.close()

    print(f"\nWeek of {start.isoformat()}: {averages.days_with_data} day(s) with data")
    print(f"Calories: {averages.average_calories}")
    print(f"Protein: {averages.average_protein}g")
    print(f"Carbs: {averages.average_carbs}g")
    print(f"Fat: {averages.average_fat}g")
    print(f"Fiber: {averages.average_fiber}g")
    print(f"Sugar: {averages.average_sugar}g")
    print(f"Sodium: {averages.average_sodium}mg")
    return 0


def cmd_memories(args: argparse.Namespace, settings: Settings) -> int:
    """List, add or deactivate a user's memories."""
    store = MemoryStore(settings.db_path)
    store.init_db()
    service = MemoryService(store, cache=TTLCache(settings.memory_cache_ttl))

    try:
        if args.remember:
            outcome = service.process_with_deduplication(
                args.user, args.remember, f"cli-{uuid.uuid4().hex[:8]}"
            )
            if outcome.degraded:
                print(f"Error: {outcome.error}")
                return 1
            print(f"Memory {outcome.value.status.value} (hash {outcome.value.semantic_hash})")
            return 0

        if args.deactivate is not None:
            outcome = service.deactivate_memory(args.user, args.deactivate)
            if outcome.degraded:
                print(f"Error: {outcome.error}")
                return 1
            if not outcome.value:
                print(f"Error: Memory {args.deactivate} not found.")
                return 1
            print(f"Deactivated memory {args.deactivate}")
            return 0

        memories = store.get_active(args.user)
    finally:
        store.close()

    if not memories:
        print("No memories found.")
        return 0

    print(f"\n{'ID':<6} {'Category':<12} {'Score':<6} Content")
    print("-" * 80)
    for memory in memories:
        text = memory.text
        if len(text) > 52:
            text = text[:49] + "..."
        print(f"{memory.id:<6} {memory.category.value:<12} {memory.importance_score:<6.1f} {text}")

    print(f"\nTotal: {len(memories)} memory(ies)")
    return 0


def cmd_report(args: argparse.Namespace, settings: Settings) -> int:
    """Render a health report to a text file."""
    today = args.date or date.today()
    store = _health_store(settings)
    try:
        records = store.get_records(
            args.user, start=datetime.combine(today - timedelta(days=REPORT_WINDOW_DAYS), time.min)
        )
    finally:
        store.close()

    llm = None
    if settings.groq_api_key and not args.no_ai:
        from groq import AsyncGroq

        from .llm_client import GroqLLMClient

        llm = GroqLLMClient(AsyncGroq(api_key=settings.groq_api_key))

    service = HealthReportService(llm)
    user = ReportUser(name=args.name, email=args.email, primary_goal=args.goal)
    data = asyncio.run(service.build_report(user, records, today))

    output = args.output or Path(f"health-report-{today.isoformat()}.txt")
    output.write_bytes(render_report(data))
    print(f"Wrote report to {output}")
    return 0


def cmd_transcribe(args: argparse.Namespace, settings: Settings) -> int:
    """Transcribe an audio file."""
    try:
        audio = args.file.read_bytes()
    except OSError as e:
        print(f"Error: Cannot read {args.file}: {e}")
        return 1

    groq_client = None
    if settings.groq_api_key:
        from groq import AsyncGroq

        groq_client = AsyncGroq(api_key=settings.groq_api_key)

    service = TranscriptionService(groq_client=groq_client, google_api_key=settings.google_api_key)
    try:
        if args.provider == "google":
            result = asyncio.run(service.transcribe_with_google(audio))
        else:
            result = asyncio.run(service.transcribe_with_whisper(audio, args.file.name))
    except TranscriptionError as e:
        print(f"Error: {e}")
        return 1

    print(result.text)
    return 0


async def _probe_accelerator(settings: Settings) -> int:
    client = AcceleratorClient(settings.accelerator)
    try:
        if not settings.accelerator.enabled:
            print("Accelerator: disabled")
            return 0

        healthy = await client.check_health()
        print(f"Accelerator: {client.state.value} ({settings.accelerator.base_url})")
        if not healthy:
            return 1

        try:
            stats = await client.get_stats()
        except AcceleratorError as e:
            print(f"Error: Cannot fetch stats: {e}")
            return 1
        print(json.dumps(stats, indent=2))
        return 0
    finally:
        await client.aclose()


def cmd_monitor(args: argparse.Namespace, settings: Settings) -> int:
    """Check the accelerator and print its statistics."""
    return asyncio.run(_probe_accelerator(settings))


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="vitalcoach",
        description="Wellness coach backend tools",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Sub-command help")

    subparsers.add_parser("sweep", help="Delete expired attachments")

    nutrition_parser = subparsers.add_parser("nutrition", help="Show a day's nutrition summary")
    nutrition_parser.add_argument("user", type=int, help="User ID")
    nutrition_parser.add_argument("-d", "--date", type=_parse_date, help="Day (YYYY-MM-DD), default today")
    nutrition_parser.add_argument("--json", action="store_true", help="Print JSON")

    weekly_parser = subparsers.add_parser("weekly", help="Show weekly nutrition averages")
    weekly_parser.add_argument("user", type=int, help="User ID")
    weekly_parser.add_argument("-s", "--start", type=_parse_date, help="First day of the week")

    memories_parser = subparsers.add_parser("memories", help="List or manage memories")
    memories_parser.add_argument("user", type=int, help="User ID")
    memories_group = memories_parser.add_mutually_exclusive_group()
    memories_group.add_argument("--remember", metavar="TEXT", help="Process a message for memory")
    memories_group.add_argument("--deactivate", type=int, metavar="ID", help="Deactivate a memory")

    report_parser = subparsers.add_parser("report", help="Render a health report")
    report_parser.add_argument("user", type=int, help="User ID")
    report_parser.add_argument("-n", "--name", default="User", help="Name shown on the report")
    report_parser.add_argument("--email", help="Email shown on the report")
    report_parser.add_argument("-g", "--goal", help="Primary goal, e.g. weight-loss")
    report_parser.add_argument("-d", "--date", type=_parse_date, help="Report date")
    report_parser.add_argument("-o", "--output", type=Path, help="Output file")
    report_parser.add_argument("--no-ai", action="store_true", help="Skip generated recommendations")

    transcribe_parser = subparsers.add_parser("transcribe", help="Transcribe an audio file")
    transcribe_parser.add_argument("file", type=Path, help="Audio file")
    transcribe_parser.add_argument(
        "-p", "--provider",
        choices=("whisper", "google"),
        default="whisper",
        help="Transcription provider",
    )

    subparsers.add_parser("monitor", help="Check accelerator health")

    return parser


def run_cli(argv: list[str] | None = None, settings: Settings | None = None) -> int:
    """Run the CLI with given arguments.

    Args:
        argv: Command-line arguments. Uses sys.argv[1:] if None.
        settings: Settings to use. Loaded from env and config file if None.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "sweep": cmd_sweep,
        "nutrition": cmd_nutrition,
        "weekly": cmd_weekly,
        "memories": cmd_memories,
        "report": cmd_report,
        "transcribe": cmd_transcribe,
        "monitor": cmd_monitor,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    return handler(args, settings or load_settings())


if __name__ == "__main__":
    sys.exit(run_cli())
