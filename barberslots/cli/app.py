"""
Main CLI application using Typer.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, List, Optional

import pendulum
import typer
from pendulum import Date, DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.api_client import ScheduleApiClient
from ..adapters.json_store import JsonScheduleStore
from ..config import AppConfig, get_default_config_path
from ..domain.clock import SystemClock
from ..domain.exceptions import BarberSlotsError, InvalidInput, UpstreamDataUnavailable
from ..domain.models import BarberSlots, CandidateSlot, DayAvailability
from ..domain.slot_generator import SlotGenerator
from ..domain.time_utils import coerce_date, format_hhmm
from ..services.availability import ServiceAvailabilityAggregator
from ..services.booking import BookingService
from ..services.slot_finder import SlotFinderService

app = typer.Typer(
    name="barberslots",
    help="Find bookable barbershop slots and manage appointments",
    add_completion=False
)

console = Console()
err_console = Console(stderr=True)

WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]
DAY_STYLES = {
    DayAvailability.AVAILABLE: "bold green",
    DayAvailability.BOOKED: "red",
    DayAvailability.NON_WORKING_DAY: "dim",
}

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")]
RemoteOption = Annotated[bool, typer.Option("--remote", help="Read schedules from the configured booking API instead of the data file.")]


@dataclass
class Backend:
    config: AppConfig
    store: JsonScheduleStore
    slot_finder: SlotFinderService
    aggregator: ServiceAvailabilityAggregator
    bookings: BookingService


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


def _build_backend(config_file: Optional[Path], remote: bool = False) -> Backend:
    """Load configuration and wire the store, clock and services together."""
    config = AppConfig.load_from_yaml(config_file or get_default_config_path())
    tz = config.timezone

    store = JsonScheduleStore(config.data_file, timezone=tz)
    reader = store
    if remote:
        if config.api is None:
            raise InvalidInput("--remote needs an 'api' section in the config file")
        reader = ScheduleApiClient(
            base_url=config.api.base_url,
            token=config.api.token,
            timezone=tz,
            timeout_seconds=config.api.timeout_seconds,
        )

    clock = SystemClock(tz)
    slot_finder = SlotFinderService(
        working_hours_provider=reader,
        booking_store=reader,
        time_off_store=reader,
        clock=clock,
        slot_generator=SlotGenerator(policy=config.build_policy(), timezone=tz),
    )
    return Backend(
        config=config,
        store=store,
        slot_finder=slot_finder,
        aggregator=ServiceAvailabilityAggregator(slot_finder, barber_directory=reader),
        bookings=BookingService(store, clock),
    )


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    if isinstance(error, UpstreamDataUnavailable):
        console.print("[yellow]Schedule data could not be verified. Please try again.[/yellow]")
    raise typer.Exit(1)


def _parse_day(value: Optional[str], tz: str) -> Date:
    if value is None:
        return pendulum.now(tz).date()
    return coerce_date(value)


def _parse_instant(value: str, tz: str) -> DateTime:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD HH:mm", tz=tz)
    except ValueError as exc:
        raise InvalidInput(f"Malformed time {value!r}, expected 'YYYY-MM-DD HH:mm'") from exc


def _service_duration(backend: Backend, service_id: int, duration: Optional[int]) -> int:
    """
    Explicit duration wins, then the service's own duration from the data file.

    Raises:
        InvalidInput: If neither is available
    """
    if duration is not None:
        return duration
    if backend.config.data_file.exists():
        service = backend.store.get_service(service_id)
        if service is not None:
            return service.duration_minutes
    raise InvalidInput(
        f"Cannot resolve the duration of service {service_id}: pass --duration or a known service"
    )


def _slot_table(title: str, slots: List[CandidateSlot], show_all: bool) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Start", style="bold")
    table.add_column("Until")
    table.add_column("Status")

    for slot in slots:
        if not slot.available and not show_all:
            continue
        status = "[green]free[/green]" if slot.available else "[dim]taken[/dim]"
        style = None if slot.available else "dim"
        table.add_row(slot.start.format("HH:mm"), slot.end.format("HH:mm"), status, style=style)

    return table


def _calendar_table(month_start: Date, availability: dict) -> Table:
    table = Table(
        title=month_start.format("MMMM YYYY"),
        show_header=True,
        header_style="bold cyan"
    )
    for name in ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]:
        table.add_column(name, justify="right")

    week = [""] * (month_start.isoweekday() - 1)
    for day, status in availability.items():
        week.append(f"[{DAY_STYLES[status]}]{day.day}[/]")
        if len(week) == 7:
            table.add_row(*week)
            week = []
    if week:
        table.add_row(*(week + [""] * (7 - len(week))))

    return table


@app.command()
def slots(
    barber_id: Annotated[str, typer.Argument(help="Barber id")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Day (YYYY-MM-DD). Defaults to today.")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", help="Service duration in minutes")] = None,
    cadence: Annotated[Optional[int], typer.Option("--cadence", help="Grid step in minutes")] = None,
    show_all: Annotated[bool, typer.Option("--all", help="Also list taken slots.")] = False,
    config_file: ConfigOption = None,
    remote: RemoteOption = False,
    verbose: VerboseOption = False,
):
    """
    Show the slot grid of one barber on one day.

    Examples:

        barberslots slots anna --date 2024-11-25 --duration 45

        barberslots slots anna --all
    """
    _configure_logging(verbose)
    try:
        backend = _build_backend(config_file, remote)
        tz = backend.config.timezone
        day = _parse_day(date, tz)
        service_duration = duration if duration is not None else backend.config.defaults.duration_minutes

        grid = asyncio.run(
            backend.slot_finder.generate_slots(barber_id, day, service_duration, cadence)
        )
    except (BarberSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print()
    if not grid:
        console.print(f"[yellow]⚠ {barber_id} does not work on {day.format('dddd, DD.MM.YYYY')}.[/yellow]")
        return

    free = sum(1 for slot in grid if slot.available)
    title = f"{barber_id} · {day.format('dddd, DD.MM.YYYY')} · {service_duration} min"
    console.print(_slot_table(title, grid, show_all))
    console.print(f"[bold green]✓ {free} of {len(grid)} slot(s) free[/bold green]\n")


@app.command()
def service_slots(
    service_id: Annotated[int, typer.Argument(help="Service id")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Day (YYYY-MM-DD). Defaults to today.")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", help="Override the service duration in minutes")] = None,
    show_all: Annotated[bool, typer.Option("--all", help="Also list taken slots.")] = False,
    config_file: ConfigOption = None,
    remote: RemoteOption = False,
    verbose: VerboseOption = False,
):
    """
    Show the slots of every barber offering a service on one day.
    """
    _configure_logging(verbose)
    try:
        backend = _build_backend(config_file, remote)
        day = _parse_day(date, backend.config.timezone)
        service_duration = _service_duration(backend, service_id, duration)

        results: List[BarberSlots] = asyncio.run(
            backend.aggregator.available_barber_slots(service_id, day, service_duration)
        )
    except (BarberSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print()
    if not results:
        console.print(f"[yellow]⚠ Nobody offers service {service_id} on {day.format('DD.MM.YYYY')}.[/yellow]\n")
        return

    for entry in results:
        free = sum(1 for slot in entry.slots if slot.available)
        console.print(f"[bold cyan]{entry.barber_id}[/bold cyan] · {day.format('DD.MM.YYYY')} · {free} free")
        for slot in entry.slots:
            if slot.available or show_all:
                console.print(f"  {slot.format_display()}")
        console.print()


@app.command()
def calendar(
    service_id: Annotated[int, typer.Argument(help="Service id")],
    month: Annotated[Optional[str], typer.Option("--month", "-m", help="Month (YYYY-MM). Defaults to the current month.")] = None,
    duration: Annotated[Optional[int], typer.Option("--duration", help="Override the service duration in minutes")] = None,
    config_file: ConfigOption = None,
    remote: RemoteOption = False,
    verbose: VerboseOption = False,
):
    """
    Show which days of a month still have a free slot for a service.
    """
    _configure_logging(verbose)
    try:
        backend = _build_backend(config_file, remote)
        tz = backend.config.timezone
        if month:
            try:
                month_start = pendulum.from_format(month, "YYYY-MM", tz=tz).date()
            except ValueError as exc:
                raise InvalidInput(f"Malformed month {month!r}, expected YYYY-MM") from exc
        else:
            month_start = pendulum.now(tz).date().start_of("month")
        service_duration = _service_duration(backend, service_id, duration)

        availability = asyncio.run(
            backend.aggregator.month_availability(service_id, month_start, service_duration)
        )
    except (BarberSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print()
    console.print(_calendar_table(month_start, availability))
    console.print("[bold green]available[/bold green]  [red]booked[/red]  [dim]closed[/dim]\n")


@app.command()
def book(
    barber_id: Annotated[str, typer.Argument(help="Barber id")],
    start: Annotated[str, typer.Argument(help="Start time ('YYYY-MM-DD HH:mm')")],
    customer: Annotated[str, typer.Option("--customer", help="Customer id")],
    service: Annotated[List[int], typer.Option("--service", "-s", help="Service id (repeat for several)")],
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Book an appointment; the slot is re-checked before it is written.
    """
    _configure_logging(verbose)
    try:
        backend = _build_backend(config_file)
        begin = _parse_instant(start, backend.config.timezone)
        booking = asyncio.run(
            backend.bookings.create_appointment(
                customer_id=customer,
                barber_id=barber_id,
                start=begin,
                service_ids=service,
            )
        )
    except (BarberSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(
        f"\n[bold green]✓ Booked[/bold green] {booking.start.format('DD.MM.YYYY HH:mm')} – "
        f"{booking.end.format('HH:mm')} with {barber_id} "
        f"(total {booking.total_price}, id {booking.id})\n"
    )


@app.command()
def cancel(
    barber_id: Annotated[str, typer.Argument(help="Barber id")],
    start: Annotated[str, typer.Argument(help="From ('YYYY-MM-DD HH:mm')")],
    end: Annotated[str, typer.Argument(help="Until ('YYYY-MM-DD HH:mm')")],
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Cancel every appointment of a barber starting in a period.
    """
    _configure_logging(verbose)
    try:
        backend = _build_backend(config_file)
        tz = backend.config.timezone
        result = asyncio.run(
            backend.bookings.cancel_range(barber_id, _parse_instant(start, tz), _parse_instant(end, tz))
        )
    except (BarberSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(f"\n[green]✓ {result.canceled_count} appointment(s) canceled.[/green]\n")


@app.command()
def time_off(
    barber_id: Annotated[str, typer.Argument(help="Barber id")],
    start: Annotated[str, typer.Argument(help="From ('YYYY-MM-DD HH:mm')")],
    end: Annotated[str, typer.Argument(help="Until ('YYYY-MM-DD HH:mm')")],
    reason: Annotated[Optional[str], typer.Option("--reason", help="Holiday, sick leave, ...")] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Block a period for a barber.
    """
    _configure_logging(verbose)
    try:
        backend = _build_backend(config_file)
        tz = backend.config.timezone
        period = asyncio.run(
            backend.bookings.add_time_off(
                barber_id, _parse_instant(start, tz), _parse_instant(end, tz), reason
            )
        )
    except (BarberSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    console.print(
        f"\n[green]✓ {barber_id} is off from {period.start.format('DD.MM.YYYY HH:mm')} "
        f"until {period.end.format('DD.MM.YYYY HH:mm')}.[/green]\n"
    )


@app.command()
def barbers(
    config_file: ConfigOption = None,
):
    """
    List all barbers with their working hours.
    """
    try:
        backend = _build_backend(config_file)
        entries = backend.store.list_barbers()
    except (BarberSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if not entries:
        console.print("[yellow]No barbers in the data file.[/yellow]")
        return

    table = Table(
        title="Barbers",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Id", style="bold yellow")
    table.add_column("Name")
    table.add_column("Active")
    table.add_column("Working hours", style="dim")

    for barber in entries:
        hours = ", ".join(
            f"{WEEKDAY_NAMES[entry.weekday]} {format_hhmm(entry.start_time)}-{format_hhmm(entry.end_time)}"
            for entry in backend.store.working_hours_for(barber.id)
        )
        table.add_row(barber.id, barber.name, "yes" if barber.active else "no", hours or "-")

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]barberslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
