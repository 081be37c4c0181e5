"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.schedule_store import InMemoryScheduleStore
from ..config import AppConfig, load_config
from ..domain.exceptions import ScheduleConflictError, SchedulingError
from ..domain.models import DAY_NAMES, Role, Schedule, ScheduleStatus
from ..domain.overlap import do_time_slots_overlap
from ..domain.timeslots import generate_time_slots, is_valid_time_slot, parse_time_slot
from ..services.scheduling_service import ScheduleRequest, SchedulingService

app = typer.Typer(
    name="classplanner",
    help="Plan weekly class slots and check trainer availability",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
DayOption = Annotated[int, typer.Option("--day", "-d", min=0, max=6, help="Day of week (0=Sunday)")]
WeekOption = Annotated[str, typer.Option("--week", "-w", help="Any date in the target week (YYYY-MM-DD)")]
SlotOption = Annotated[str, typer.Option("--slot", "-s", help="Time slot, e.g. 09:00-11:00")]


def _load(config_file: Optional[Path]) -> AppConfig:
    """Load configuration and set up logging, exiting on error."""
    try:
        config = load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    logging.basicConfig(
        level=config.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    return config


def _build_service(config: AppConfig) -> SchedulingService:
    try:
        store = InMemoryScheduleStore(data_file=config.data_file)
    except SchedulingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    return SchedulingService(repository=store, config=config)


def _schedule_table(title: str, schedules: List[Schedule]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim")
    table.add_column("Course", style="bold yellow")
    table.add_column("Trainer")
    table.add_column("Student")
    table.add_column("Week")
    table.add_column("Day")
    table.add_column("Slot")
    table.add_column("Status")

    for schedule in schedules:
        table.add_row(
            schedule.id,
            schedule.course_id,
            schedule.trainer_id or "-",
            schedule.student_id or "-",
            schedule.week_start.to_date_string(),
            schedule.day_name,
            schedule.time_slot,
            schedule.status.value,
        )
    return table


def _print_conflicts(error: ScheduleConflictError) -> None:
    for day, result in error.conflicts.items():
        console.print(f"[red]✗ {DAY_NAMES[day]}:[/red] {result.reason}")


@app.command()
def slots(config_file: ConfigOption = None):
    """
    List every bookable class slot of a day.
    """
    config = _load(config_file)
    options = generate_time_slots(config.slot_rules.to_rules())

    table = Table(
        title="Bookable time slots",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Value", style="bold yellow")
    table.add_column("Label")

    for option in options:
        table.add_row(option.value, option.label)

    console.print()
    console.print(table)
    console.print(f"\n{len(options)} slot(s)\n")


@app.command()
def validate(
    slot: Annotated[str, typer.Argument(help="Time slot, e.g. 09:00-11:00")],
    config_file: ConfigOption = None,
):
    """
    Check whether a slot string is bookable.
    """
    config = _load(config_file)

    if is_valid_time_slot(slot, config.slot_rules.to_rules()):
        console.print(f"[green]✓ {slot} is a valid slot[/green]")
        return

    if parse_time_slot(slot) is None:
        console.print(f"[red]✗ {slot!r} is not in HH:MM-HH:MM format[/red]")
    else:
        console.print(f"[red]✗ {slot} is outside class hours or has the wrong duration[/red]")
    raise typer.Exit(1)


@app.command()
def overlap(
    first: Annotated[str, typer.Argument(help="First slot")],
    second: Annotated[str, typer.Argument(help="Second slot")],
):
    """
    Check whether two slots overlap. Malformed slots never overlap.
    """
    if do_time_slots_overlap(first, second):
        console.print(f"[yellow]{first} and {second} overlap[/yellow]")
    else:
        console.print(f"[green]{first} and {second} do not overlap[/green]")


@app.command()
def check(
    trainer: Annotated[str, typer.Option("--trainer", "-t", help="Trainer id")],
    day: DayOption,
    week: WeekOption,
    slot: SlotOption,
    course: Annotated[Optional[str], typer.Option("--course", help="Course id (allows batch bookings)")] = None,
    config_file: ConfigOption = None,
):
    """
    Check whether a trainer is free for a slot, without booking it.
    """
    config = _load(config_file)
    service = _build_service(config)

    try:
        existing = asyncio.run(service.trainer_schedules(trainer))
        result = service.checker.check_conflict(
            trainer, day, week, slot, existing, course_id=course
        )
    except (SchedulingError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if result.allowed:
        console.print(f"[green]✓ Trainer {trainer} is free on {DAY_NAMES[day]} at {slot}[/green]")
    else:
        console.print(f"[red]✗ {result.reason}[/red] (schedule {result.conflicting_schedule_id})")
        raise typer.Exit(1)


@app.command()
def book(
    course: Annotated[str, typer.Option("--course", help="Course id")],
    week: WeekOption,
    slot: SlotOption,
    created_by: Annotated[str, typer.Option("--by", help="Id of the user making the booking")],
    days: Annotated[List[int], typer.Option("--day", "-d", min=0, max=6, help="Day of week (0=Sunday), repeatable")],
    trainer: Annotated[Optional[str], typer.Option("--trainer", "-t", help="Trainer id")] = None,
    student: Annotated[Optional[str], typer.Option("--student", help="Student id")] = None,
    role: Annotated[Role, typer.Option("--role", help="Role of the user making the booking")] = Role.SALES_CONSULTANT,
    config_file: ConfigOption = None,
):
    """
    Book a slot on one or more days of a week.

    Examples:

        classplanner book --course py101 --trainer t1 --student s1 \\
            --week 2024-01-01 --day 1 --day 3 --slot 09:00-11:00 --by sales1
    """
    config = _load(config_file)
    service = _build_service(config)

    request = ScheduleRequest(
        course_id=course,
        week_start=week,
        days_of_week=days,
        time_slot=slot,
        created_by=created_by,
        trainer_id=trainer,
        student_id=student,
    )

    try:
        result = asyncio.run(service.create_schedules(request, role))
    except ScheduleConflictError as e:
        console.print("[bold red]Booking rejected, nothing was saved:[/bold red]")
        _print_conflicts(e)
        raise typer.Exit(1)
    except (SchedulingError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if result.created:
        console.print(_schedule_table("Created schedules", result.created))
    for day_of_week, conflict in result.conflicts.items():
        console.print(f"[yellow]⚠ {DAY_NAMES[day_of_week]} skipped:[/yellow] {conflict.reason}")
    if not result.created:
        raise typer.Exit(1)


@app.command()
def status(
    schedule_id: Annotated[str, typer.Argument(help="Schedule id")],
    new_status: Annotated[ScheduleStatus, typer.Argument(help="New status")],
    role: Annotated[Role, typer.Option("--role", help="Role of the user making the change")] = Role.ADMIN,
    config_file: ConfigOption = None,
):
    """
    Change the status of a student's schedules in a course.
    """
    config = _load(config_file)
    service = _build_service(config)

    try:
        moved = asyncio.run(service.change_status(schedule_id, new_status, role))
    except SchedulingError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]✓ Updated {len(moved)} schedule(s) to {new_status.value}[/green]")


@app.command(name="list")
def list_schedules(
    trainer: Annotated[Optional[str], typer.Option("--trainer", "-t", help="Only this trainer")] = None,
    student: Annotated[Optional[str], typer.Option("--student", help="Only this student's active schedules")] = None,
    config_file: ConfigOption = None,
):
    """
    List stored schedules.
    """
    config = _load(config_file)
    service = _build_service(config)

    if trainer and student:
        console.print("[red]Error: --trainer and --student cannot be combined.[/red]")
        raise typer.Exit(1)

    if trainer:
        schedules = asyncio.run(service.trainer_schedules(trainer))
    elif student:
        schedules = asyncio.run(service.student_schedules(student))
    else:
        schedules = asyncio.run(service.all_schedules())

    if not schedules:
        console.print("[yellow]No schedules found.[/yellow]")
        return

    console.print()
    console.print(_schedule_table("Schedules", schedules))
    console.print()


@app.command()
def available(
    trainer: Annotated[str, typer.Option("--trainer", "-t", help="Trainer id")],
    day: DayOption,
    week: WeekOption,
    course: Annotated[Optional[str], typer.Option("--course", help="Course id (allows batch bookings)")] = None,
    config_file: ConfigOption = None,
):
    """
    Show the slots a trainer can still take on a day.
    """
    config = _load(config_file)
    service = _build_service(config)

    try:
        options = asyncio.run(service.available_slots(trainer, day, week, course_id=course))
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if not options:
        console.print(f"[yellow]⚠ Trainer {trainer} has no free slot on {DAY_NAMES[day]}.[/yellow]")
        return

    console.print(Panel.fit(
        "\n".join(f"{option.value}  [dim]{option.label}[/dim]" for option in options),
        title=f"Free slots for {trainer} on {DAY_NAMES[day]}"
    ))


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]classplanner[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
