"""
Metronome CLI

Read-only terminal view of the dashboard for one month.

Usage:
    metronome brief                      # Triage, deadlines, decisions, calendar
    metronome brief --month 2025-03      # Another month
    metronome brief --json               # Machine-readable
    metronome calendar --month 2025-03   # Key-date occurrences only
"""

import argparse
import asyncio
import json
import logging
import sys

import httpx

from metronome.client import MetronomeClient
from metronome.config import Settings, load_settings
from metronome.dashboard import MetronomeDashboard
from metronome.observability import configure_logging

logger = logging.getLogger(__name__)


def _month(value: str) -> tuple[int, int]:
    try:
        year, month = (int(part) for part in value.split("-"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM, got {value!r}") from None
    if not 1 <= month <= 12:
        raise argparse.ArgumentTypeError(f"month out of range: {value!r}")
    return year, month


def _print_brief(dashboard: MetronomeDashboard) -> None:
    summary = dashboard.summary
    print(f"# Metronome {dashboard.year:04d}-{dashboard.month:02d}\n")
    if summary is not None:
        print(f"Active: {summary.total_active}  On track: {summary.on_track_percentage}%")
        if summary.next_sync_date:
            print(
                f"Next sync: {summary.next_sync_date} "
                f"(in {summary.days_until_next_sync} days) {summary.next_sync_focus or ''}"
            )
        print()

    needs_attention, in_progress = dashboard.attention_split()
    print(f"## Needs Attention ({len(needs_attention)})")
    for initiative in needs_attention:
        print(f"- [{initiative.priority.value}] {initiative.title}")
    print(f"\n## In Progress ({len(in_progress)})")
    for initiative in in_progress:
        print(f"- [{initiative.priority.value}] {initiative.title}")

    buckets = dashboard.deadline_buckets
    for label, entries in (
        ("Overdue", buckets.overdue),
        ("This Week", buckets.this_week),
        ("Next Week", buckets.next_week),
    ):
        print(f"\n## {label} ({len(entries)})")
        for entry in entries:
            print(f"- {entry.deadline} {entry.item.title} ({entry.initiative_title})")

    decisions = dashboard.open_decisions
    print(f"\n## Open Decisions ({len(decisions)})")
    for decision in decisions:
        print(f"- {decision.title}")

    print()
    _print_calendar(dashboard)


def _print_calendar(dashboard: MetronomeDashboard) -> None:
    occurrences = dashboard.calendar_occurrences
    print(f"## Calendar ({len(occurrences)})")
    for occurrence in occurrences:
        marker = " (repeats)" if occurrence.parent_id else ""
        emoji = f"{occurrence.key_date.emoji} " if occurrence.key_date.emoji else ""
        print(f"- {occurrence.date} {emoji}{occurrence.title}{marker}")


async def _run(args, settings: Settings, transport: httpx.AsyncBaseTransport | None) -> int:
    async with MetronomeClient.from_settings(settings, transport=transport) as client:
        year, month = args.month if args.month else (None, None)
        dashboard = MetronomeDashboard(client, settings, year=year, month=month)
        report = await dashboard.load()

    if report.total_failure:
        print(f"❌ Could not load data from {settings.base_url}")
        return 1
    if report.failed_slices:
        logger.warning("Partial data, failed: %s", ", ".join(report.failed_slices))

    if args.command == "calendar":
        _print_calendar(dashboard)
    elif args.json:
        print(json.dumps(dashboard.to_dict(), indent=2, default=str))
    else:
        _print_brief(dashboard)
    return 0


def main(argv=None, transport: httpx.AsyncBaseTransport | None = None) -> int:
    parser = argparse.ArgumentParser(description="Metronome dashboard CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # brief
    p = subparsers.add_parser("brief", help="Dashboard brief for a month")
    p.add_argument("--month", type=_month, help="Month to show (YYYY-MM)")
    p.add_argument("--json", action="store_true", help="Print JSON")

    # calendar
    p = subparsers.add_parser("calendar", help="Key-date occurrences for a month")
    p.add_argument("--month", type=_month, required=True, help="Month to show (YYYY-MM)")

    args = parser.parse_args(argv)

    settings = load_settings()
    configure_logging(settings.log_level)
    return asyncio.run(_run(args, settings, transport))


if __name__ == "__main__":
    sys.exit(main())
