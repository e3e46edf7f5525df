"""
Amenitiz Arrivals Scraper

One-shot fetch of today's arrivals from the command line.
"""

import argparse
import asyncio
import sys

from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

from arrivals.auth.two_factor import TwoFactorBridge
from arrivals.cache import ResultCache
from arrivals.config import load_config
from arrivals.coordinator import RefreshCoordinator
from arrivals.core.types import Guest, RunTrigger, TriggerOutcome
from arrivals.export import GuestExporter
from arrivals.extractor.amenitiz import AmenitizExtractor
from arrivals.logging_setup import setup_logging
from arrivals.retention import RetentionSweeper
from arrivals.storage.json_file import JsonFileSessionStore

console = Console()


def parse_args():
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description="Fetch today's Amenitiz arrivals")
    parser.add_argument("--config", default=None, help="Config file path (optional)")
    parser.add_argument(
        "--show-browser", action="store_true", help="Run Chromium with a visible window"
    )
    parser.add_argument(
        "--screenshots", action="store_true", help="Save a screenshot of each step"
    )
    parser.add_argument(
        "--no-export", action="store_true", help="Do not write guests-*.json/txt files"
    )
    return parser.parse_args()


class ConsoleCodeProvider:
    """Asks for the emailed code on the terminal"""

    async def __call__(self, message: str | None = None) -> str:
        if message:
            console.print(f"[red]{message}[/red]")
        code = await asyncio.to_thread(Prompt.ask, "2FA code received by email")
        return code.strip()


def show_guests(guests: list[Guest]) -> None:
    """Print guests as a table with a total"""
    table = Table(title="Today's guests")
    table.add_column("#", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Room", style="magenta")
    table.add_column("Persons")
    table.add_column("Amount due")
    table.add_column("Dates")

    for index, guest in enumerate(guests, 1):
        table.add_row(
            str(index),
            guest.name,
            guest.room_type,
            guest.persons,
            guest.amount_due,
            guest.dates,
        )

    if guests:
        console.print(table)
    else:
        console.print("No guests found for today")
    console.print(f"\nTotal: {len(guests)} guest(s)\n")


async def main() -> int:
    """Main entry point"""
    args = parse_args()
    config = load_config(args.config)
    if args.show_browser:
        config.amenitiz.headless = False
    if args.screenshots:
        config.amenitiz.screenshots = True
    setup_logging(config.log_file)

    storage = config.storage
    exporter = None
    if not args.no_export and storage.export_formats:
        exporter = GuestExporter(storage.data_dir, storage.export_formats)

    coordinator = RefreshCoordinator(
        extractor_factory=lambda: AmenitizExtractor(
            config.amenitiz, screenshot_dir=storage.screenshot_dir
        ),
        session_store=JsonFileSessionStore(storage.session_dir),
        bridge=TwoFactorBridge(),
        code_provider=ConsoleCodeProvider(),
        cache=ResultCache(default_ttl=config.refresh.cache_ttl_seconds),
        credentials=config.amenitiz.credentials,
        sweeper=RetentionSweeper(
            [storage.data_dir, storage.screenshot_dir], storage.retention_days
        ),
        exporter=exporter,
        interval=config.refresh.interval_seconds,
    )

    outcome = await coordinator.trigger(RunTrigger.FORCED)
    if outcome is not TriggerOutcome.SUCCEEDED:
        error = coordinator.last_error
        console.print(f"[bold red]Scraping failed:[/bold red] {error.message if error else outcome.name}")
        return 1

    show_guests(coordinator.guests() or [])
    console.print("[bold green]Scraping completed successfully[/bold green]")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
