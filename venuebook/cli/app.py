"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, List, Optional, Tuple

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.fixtures import load_seed_file, seed_from_mapping
from ..adapters.sql_store import SqlBookingStore
from ..config import AppConfig
from ..domain.exceptions import (
    BookingError,
    BookingValidationError,
    ConflictError,
)
from ..domain.models import BookingRequest, DayAvailability
from ..domain.slot_generator import SlotGenerator
from ..domain.timeutils import WEEKDAY_NAMES
from ..services.availability import AvailabilityService
from ..services.booking import BookingService

app = typer.Typer(
    name="venuebook",
    help="Query availability and manage bookings of venues",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
PartySizeOption = Annotated[int, typer.Option("--party-size", "-p", help="Number of guests")]
StaffOption = Annotated[Optional[int], typer.Option("--staff", "-s", help="Staff member id")]


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _bootstrap(config_file: Optional[Path]) -> Tuple[AppConfig, SqlBookingStore]:
    """Load the configuration, set up logging and open the store."""
    try:
        config = AppConfig.load_or_default(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    _setup_logging(config.log_level)
    return config, SqlBookingStore.from_url(config.database_url)


def _services(config: AppConfig, store: SqlBookingStore) -> Tuple[AvailabilityService, BookingService]:
    availability = AvailabilityService(store, slot_generator=SlotGenerator(config.slots.step_minutes))
    return availability, BookingService(store, availability=availability)


def _fail(error: BookingError) -> None:
    if isinstance(error, BookingValidationError):
        console.print("[bold red]✗ Booking request is invalid:[/bold red]")
        for message in error.messages:
            console.print(f"  • {message}")
    elif isinstance(error, ConflictError):
        console.print(f"[bold yellow]⚠ No longer available:[/bold yellow] {error}")
        console.print("Please query the slots again and pick another time.")
    else:
        console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


def _slot_table(day: DayAvailability) -> Table:
    table = Table(
        title=f"{WEEKDAY_NAMES[day.day_of_week]}, {day.date.isoformat()}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Time", style="bold")
    table.add_column("Available")
    table.add_column("Remaining", justify="right")
    table.add_column("Staff", style="dim")
    for slot in day.time_slots:
        table.add_row(
            f"{slot.start_time}-{slot.end_time}",
            "[green]yes[/green]" if slot.available else "[red]no[/red]",
            str(slot.remaining_capacity),
            str(slot.staff_member_id) if slot.staff_member_id is not None else "",
        )
    return table


@app.command("init-db")
def init_db(config_file: ConfigOption = None):
    """
    Create the database schema.
    """
    config, store = _bootstrap(config_file)
    store.create_schema()
    console.print(f"[green]✓ Database ready:[/green] {config.database_url}")


@app.command()
def seed(
    seed_file: Annotated[Path, typer.Argument(help="YAML file with venues, services, staff and rules")],
    config_file: ConfigOption = None,
):
    """
    Load venues, services, staff and opening hours from a YAML file.
    """
    config, store = _bootstrap(config_file)
    try:
        data = load_seed_file(seed_file)
        store.create_schema()
        ids = seed_from_mapping(store, data, venue_defaults=config.venue_defaults.as_dict())
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    table = Table(title="Seeded records", show_header=True, header_style="bold cyan")
    table.add_column("Record", style="bold yellow")
    table.add_column("Id", justify="right")
    for key, record_id in ids.items():
        table.add_row(key, str(record_id))
    console.print(table)


@app.command()
def slots(
    venue_id: Annotated[int, typer.Argument(help="Venue id")],
    service_id: Annotated[int, typer.Argument(help="Service id")],
    booking_date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    party_size: PartySizeOption = 1,
    staff_member_id: StaffOption = None,
    window_from: Annotated[Optional[str], typer.Option("--from", help="Earliest start (HH:MM)")] = None,
    window_to: Annotated[Optional[str], typer.Option("--to", help="Latest start (HH:MM)")] = None,
    config_file: ConfigOption = None,
):
    """
    Show the slots of one day.

    Examples:

        venuebook slots 1 2 2030-01-08
        venuebook slots 1 2 2030-01-08 --party-size 4 --from 18:00 --to 20:00
    """
    config, store = _bootstrap(config_file)
    availability, _ = _services(config, store)
    time_window = None
    if window_from or window_to:
        time_window = (window_from or "00:00", window_to or "23:59")
    try:
        day = availability.get_available_slots(
            venue_id, service_id, booking_date,
            party_size=party_size,
            time_window=time_window,
            staff_member_id=staff_member_id,
        )
    except BookingError as e:
        _fail(e)

    console.print()
    if not day.time_slots:
        console.print("[yellow]⚠ No slots on this day.[/yellow]")
    else:
        console.print(_slot_table(day))
    console.print()


@app.command()
def week(
    venue_id: Annotated[int, typer.Argument(help="Venue id")],
    service_id: Annotated[int, typer.Argument(help="Service id")],
    start_date: Annotated[str, typer.Argument(help="First day (YYYY-MM-DD)")],
    party_size: PartySizeOption = 1,
    staff_member_id: StaffOption = None,
    config_file: ConfigOption = None,
):
    """
    Show a seven-day overview starting at START_DATE.
    """
    config, store = _bootstrap(config_file)
    availability, _ = _services(config, store)
    try:
        days: List[DayAvailability] = availability.get_week_availability(
            venue_id, service_id, start_date,
            party_size=party_size,
            staff_member_id=staff_member_id,
        )
    except BookingError as e:
        _fail(e)

    table = Table(title="Week overview", show_header=True, header_style="bold cyan")
    table.add_column("Date", style="bold")
    table.add_column("Day")
    table.add_column("Free slots", justify="right")
    table.add_column("First free", style="green")
    for day in days:
        free = day.available_slots
        table.add_row(
            day.date.isoformat(),
            WEEKDAY_NAMES[day.day_of_week],
            f"{len(free)}/{len(day.time_slots)}",
            free[0].start_time if free else "-",
        )
    console.print(table)


@app.command()
def check(
    venue_id: Annotated[int, typer.Argument(help="Venue id")],
    service_id: Annotated[int, typer.Argument(help="Service id")],
    booking_date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Argument(help="Start (HH:MM)")],
    end_time: Annotated[str, typer.Argument(help="End (HH:MM)")],
    party_size: PartySizeOption = 1,
    staff_member_id: StaffOption = None,
    config_file: ConfigOption = None,
):
    """
    Quick availability check of one interval.
    """
    config, store = _bootstrap(config_file)
    availability, _ = _services(config, store)
    try:
        result = availability.is_time_slot_available(
            venue_id, service_id, booking_date, start_time, end_time,
            party_size=party_size,
            staff_member_id=staff_member_id,
        )
    except BookingError as e:
        _fail(e)

    if result.available:
        staff = f" (staff {result.staff_member_id})" if result.staff_member_id is not None else ""
        console.print(f"[bold green]✓ Available[/bold green]{staff}")
    else:
        console.print(f"[bold red]✗ Not available:[/bold red] {result.reason.value}")
        raise typer.Exit(2)


@app.command()
def validate(
    venue_id: Annotated[int, typer.Argument(help="Venue id")],
    service_id: Annotated[int, typer.Argument(help="Service id")],
    booking_date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Argument(help="Start (HH:MM)")],
    end_time: Annotated[str, typer.Argument(help="End (HH:MM)")],
    party_size: PartySizeOption = 1,
    staff_member_id: StaffOption = None,
    bypass_advance: Annotated[bool, typer.Option("--bypass-advance", help="Ignore notice periods")] = False,
    config_file: ConfigOption = None,
):
    """
    Run all booking rules and list every violation.
    """
    config, store = _bootstrap(config_file)
    availability, _ = _services(config, store)
    try:
        result = availability.validate_booking_request(
            venue_id, service_id, booking_date, start_time, end_time,
            party_size=party_size,
            staff_member_id=staff_member_id,
            bypass_advance_hours=bypass_advance,
        )
    except BookingError as e:
        _fail(e)

    if result.valid:
        console.print("[bold green]✓ Booking request is valid[/bold green]")
        return
    console.print(f"[bold red]✗ {len(result.errors)} problem(s):[/bold red]")
    for issue in result.errors:
        console.print(f"  • [dim]{issue.code.value}[/dim] {issue.message}")
    raise typer.Exit(2)


@app.command()
def book(
    venue_id: Annotated[int, typer.Argument(help="Venue id")],
    service_id: Annotated[int, typer.Argument(help="Service id")],
    booking_date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Argument(help="Start (HH:MM)")],
    end_time: Annotated[str, typer.Argument(help="End (HH:MM)")],
    party_size: PartySizeOption = 1,
    staff_member_id: StaffOption = None,
    name: Annotated[str, typer.Option("--name", help="Customer name")] = "",
    email: Annotated[str, typer.Option("--email", help="Customer e-mail")] = "",
    phone: Annotated[Optional[str], typer.Option("--phone", help="Customer phone")] = None,
    bypass_advance: Annotated[bool, typer.Option("--bypass-advance", help="Ignore notice periods")] = False,
    config_file: ConfigOption = None,
):
    """
    Create a pending booking.
    """
    config, store = _bootstrap(config_file)
    _, bookings = _services(config, store)
    request = BookingRequest(
        venue_id=venue_id,
        service_id=service_id,
        booking_date=booking_date,
        start_time=start_time,
        end_time=end_time,
        party_size=party_size,
        staff_member_id=staff_member_id,
        customer_name=name,
        customer_email=email,
        customer_phone=phone,
    )
    try:
        booking = bookings.create_booking(request, bypass_advance_hours=bypass_advance)
    except BookingError as e:
        _fail(e)

    staff_line = f"\n[bold]Staff:[/bold] {booking.staff_member_id}" if booking.staff_member_id else ""
    console.print(Panel.fit(
        f"[bold]Id:[/bold] {booking.id}\n"
        f"[bold]Token:[/bold] {booking.token}\n"
        f"[bold]When:[/bold] {booking.booking_date.isoformat()} {booking.start_time}-{booking.end_time}\n"
        f"[bold]Party size:[/bold] {booking.party_size}"
        f"{staff_line}",
        title="✓ Booking created"
    ))


@app.command()
def cancel(
    booking_id: Annotated[int, typer.Argument(help="Booking id")],
    reason: Annotated[Optional[str], typer.Option("--reason", help="Cancellation reason")] = None,
    force: Annotated[bool, typer.Option("--force", help="Ignore the cancellation window")] = False,
    config_file: ConfigOption = None,
):
    """
    Cancel a booking and release its slot.
    """
    config, store = _bootstrap(config_file)
    _, bookings = _services(config, store)
    try:
        booking = bookings.cancel_booking(booking_id, reason=reason, bypass_cancellation_window=force)
    except BookingError as e:
        _fail(e)
    console.print(f"[green]✓ Booking {booking.id} cancelled.[/green]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]venuebook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
