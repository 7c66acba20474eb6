"""Entry point for the user admin dashboard service."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

import uvicorn
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from src.config import settings
from src.health.cache import build_cache
from src.health.engine import build_default_aggregator
from src.notifications import NotificationCenter
from src.stats.formatting import format_date, format_number

console = Console()
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)


def run_server() -> None:
    """Start the FastAPI server."""
    console.print(Panel(f"Starting {settings.app_name} Dashboard API", style="bold green"))
    uvicorn.run(
        "src.api.server:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
    )


def run_health() -> int:
    """Run every probe once and print the report. Exit code 0 only when healthy."""
    cache = build_cache(settings.cache_url, socket_timeout=settings.health_probe_timeout)
    aggregator = build_default_aggregator(settings, cache)
    try:
        report = aggregator.check()
    finally:
        if hasattr(cache, "close"):
            cache.close()

    style = "bold green" if report.http_status == 200 else "bold red"
    console.print(Panel(f"{report.overall.value.upper()} ({report.http_status})", title="Health", style=style))

    table = Table("Service", "Status", "Message", "Latency")
    for name, result in report.services.items():
        colour = "green" if result.status.value == "up" else "red"
        table.add_row(name, f"[{colour}]{result.status.value}[/{colour}]", result.message, f"{result.latency_ms}ms")
    console.print(table)
    return 0 if report.http_status == 200 else 1


def run_stats() -> int:
    """Fetch the users listing once and print the dashboard statistics."""
    from src.api.server import build_refresh_controller

    notifications = NotificationCenter(enabled=False)
    controller = build_refresh_controller(notifications)

    with console.status("[bold green]Fetching users..."):
        asyncio.run(controller.refresh())

    state = controller.state
    if state.error:
        console.print(f"[bold red]Error:[/bold red] {state.error}")
        return 1

    snap = state.snapshot
    counts = snap.bucket_counts
    summary = Table("Total Users", "Joined Today", "This Week", "This Month")
    summary.add_row(
        format_number(snap.total_users),
        format_number(counts.today),
        format_number(counts.this_week),
        format_number(counts.this_month),
    )
    console.print(summary)

    recent = Table("ID", "Name", "Email", "Joined", title="Recent Users")
    for user in snap.recent_users:
        recent.add_row(str(user["id"]), str(user["name"]), str(user["email"]), format_date(user["created_at"]))
    console.print(recent)
    console.print(f"\n[dim]Last updated: {format_date(state.last_updated, '%H:%M:%S')}[/dim]")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="User Admin Dashboard")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("serve", help="Start the API server")
    sub.add_parser("health", help="Run the health probes once")
    sub.add_parser("stats", help="Fetch and print user statistics once")

    args = parser.parse_args()

    if args.command == "serve":
        run_server()
    elif args.command == "health":
        sys.exit(run_health())
    elif args.command == "stats":
        sys.exit(run_stats())
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
