"""Command-line interface for household energy tracking and bill splitting."""

import json
import logging
from datetime import date, datetime, time, timedelta
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import backup, db, household, logs, recurring, templates
from .analysis import bill_split, summary
from .analysis.aggregation import GROUP_BY_OPTIONS
from .models import BULK_SOURCE, PERIOD_IDS, RecurringSchedule, UsageSession, UsageTemplate
from .tariffs import (
    DEFAULT_CONFIG_PATH,
    TariffFetchError,
    check_schedule,
    load_tariffs_from_db,
    load_tariffs_from_url,
    load_tariffs_from_yaml,
    resolve_rate,
    save_tariffs_to_db,
    select_schedule,
)

console = Console()

DATE = click.DateTime(formats=["%Y-%m-%d"])
DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]

household_option = click.option(
    "--household",
    "household_id",
    envvar="WATTSHARE_HOUSEHOLD",
    required=True,
    help="Household id (or set WATTSHARE_HOUSEHOLD)",
)


def fail(ctx: click.Context, message: str) -> None:
    console.print(f"[red]Error: {message}[/red]")
    ctx.exit(1)


def resolve_range(from_date, to_date, days) -> tuple[date, date]:
    """Inclusive date range from --from/--to, or the last N days."""
    end = to_date.date() if to_date else date.today()
    start = from_date.date() if from_date else end - timedelta(days=days - 1)
    return start, end


@click.group()
@click.option("--db-path", type=click.Path(), help="Path to SQLite database")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.pass_context
def cli(ctx, db_path, verbose):
    """Household energy tracking - log device usage and split the bill."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = Path(db_path) if db_path else None


# Database commands
@cli.group()
def database():
    """Database management commands."""
    pass


@database.command("init")
@click.pass_context
def db_init(ctx):
    """Initialize the database schema."""
    db.init_db(ctx.obj["db_path"])
    console.print("[green]Database initialized successfully[/green]")

    # Offer to load tariffs
    if DEFAULT_CONFIG_PATH.exists():
        schedules = load_tariffs_from_yaml(DEFAULT_CONFIG_PATH)
        count = save_tariffs_to_db(schedules, ctx.obj["db_path"])
        console.print(f"[green]Loaded {count} tariff(s) from config[/green]")


@database.command("stats")
@click.pass_context
def db_stats(ctx):
    """Show database statistics."""
    stats = db.get_stats(ctx.obj["db_path"])

    table = Table(title="Database Statistics")
    table.add_column("Category", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Range")

    log_stats = stats["energy_logs"]
    table.add_row(
        "Energy logs",
        str(log_stats["count"]),
        f"{log_stats['earliest'] or 'N/A'} → {log_stats['latest'] or 'N/A'}",
    )
    for source, count in stats.get("logs_by_source", {}).items():
        table.add_row(f"  └ {source}", str(count), "")
    if log_stats["uncosted"]:
        table.add_row("  └ without breakdown", str(log_stats["uncosted"]), "")

    table.add_row("Users", str(stats["users"]["count"]), "")
    table.add_row("Devices", str(stats["devices"]["count"]), "")
    table.add_row("Recurring schedules", str(stats["recurring_schedules"]["count"]), "")
    table.add_row("Bill splits", str(stats["bill_splits"]["count"]), "")
    table.add_row("Tariffs", str(stats["tariffs"]["count"]), "")

    console.print(table)


# Tariff commands
@cli.group()
def tariff():
    """Tariff management commands."""
    pass


@tariff.command("load")
@click.option("--config", type=click.Path(exists=True), help="Path to tariffs.yaml")
@click.option("--url", help="Fetch tariffs.yaml from a URL instead")
@click.pass_context
def tariff_load(ctx, config, url):
    """Load tariffs from YAML config and check they cover every hour."""
    try:
        if url:
            schedules = load_tariffs_from_url(url)
        else:
            schedules = load_tariffs_from_yaml(Path(config) if config else None)
        for schedule in schedules:
            check_schedule(schedule)
    except (TariffFetchError, ValueError, FileNotFoundError) as e:
        fail(ctx, str(e))
        return

    count = save_tariffs_to_db(schedules, ctx.obj["db_path"])
    console.print(f"[green]Loaded {count} tariff(s)[/green]")


@tariff.command("show")
@click.pass_context
def tariff_show(ctx):
    """Show stored tariffs and their rate bands."""
    schedules = load_tariffs_from_db(ctx.obj["db_path"])
    if not schedules:
        console.print("[yellow]No tariffs loaded[/yellow]")
        return

    for schedule in schedules:
        valid_to = schedule.valid_to.date().isoformat() if schedule.valid_to else "open"
        table = Table(title=f"{schedule.name} ({schedule.valid_from.date().isoformat()} → {valid_to})")
        table.add_column("Season", style="cyan")
        table.add_column("Days")
        table.add_column("Hours")
        table.add_column("Period")
        table.add_column("$/kWh", justify="right")
        for band in schedule.bands:
            months = ",".join(str(m) for m in schedule.seasons.get(band.season, []))
            table.add_row(
                f"{band.season} ({months})",
                band.days,
                f"{band.start_time} - {band.end_time}",
                band.period_id,
                f"{band.price_per_kwh:.4f}",
            )
        console.print(table)


@tariff.command("check")
@click.pass_context
def tariff_check(ctx):
    """Verify stored tariffs cover every hour exactly once."""
    schedules = load_tariffs_from_db(ctx.obj["db_path"])
    if not schedules:
        fail(ctx, "No tariffs loaded")
        return
    problems = 0
    for schedule in schedules:
        try:
            check_schedule(schedule)
            console.print(f"[green]✓ {schedule.name}[/green]")
        except ValueError as e:
            console.print(f"[red]✗ {e}[/red]")
            problems += 1
    if problems:
        ctx.exit(1)


@tariff.command("rate")
@click.option("--date", "on_date", type=DATE, help="Date (YYYY-MM-DD), defaults to today")
@click.option("--hour", type=click.IntRange(0, 23), help="Hour of day (0-23), defaults to now")
@click.pass_context
def tariff_rate(ctx, on_date, hour):
    """Show the rate period in force at a date and hour."""
    now = datetime.now()
    day = on_date.date() if on_date else now.date()
    hour = hour if hour is not None else now.hour
    try:
        schedule = select_schedule(load_tariffs_from_db(ctx.obj["db_path"]), datetime.combine(day, time(hour)))
        rate = resolve_rate(day, hour, schedule)
    except ValueError as e:
        fail(ctx, str(e))
        return
    console.print(
        f"{day.isoformat()} ({DAY_NAMES[day.weekday()]}) {hour:02d}:00 → "
        f"[cyan]{rate.period_id}[/cyan] at ${rate.price_per_kwh:.4f}/kWh ({schedule.name})"
    )


# Household commands
@cli.group()
def user():
    """Household member commands."""
    pass


@user.command("add")
@click.argument("name")
@click.option("--email", help="Email address")
@click.option("--id", "user_id", help="User id (generated if omitted)")
@household_option
@click.pass_context
def user_add(ctx, name, email, user_id, household_id):
    """Add a household member."""
    try:
        member = household.add_user(name, household_id, email=email, user_id=user_id, db_path=ctx.obj["db_path"])
    except ValueError as e:
        fail(ctx, str(e))
        return
    console.print(f"[green]Added {member.name} ({member.id})[/green]")


@user.command("list")
@household_option
@click.pass_context
def user_list(ctx, household_id):
    """List household members."""
    members = household.get_household_users(household_id, ctx.obj["db_path"])
    if not members:
        console.print("[yellow]No members found[/yellow]")
        return

    table = Table(title="Household Members")
    table.add_column("Id", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Email")
    for member in members:
        table.add_row(member.id, member.name, member.email or "")
    console.print(table)


@cli.group()
def device():
    """Device commands."""
    pass


@device.command("add")
@click.argument("name")
@click.argument("wattage", type=float)
@click.option("--shared", is_flag=True, help="Device is shared by the household")
@click.option("--created-by", help="User id of the owner")
@household_option
@click.pass_context
def device_add(ctx, name, wattage, shared, created_by, household_id):
    """Register a device with its wattage."""
    try:
        new_device = household.add_device(
            name, wattage, household_id, is_shared=shared, created_by=created_by, db_path=ctx.obj["db_path"]
        )
    except ValueError as e:
        fail(ctx, str(e))
        return
    console.print(f"[green]Added {new_device.name} ({new_device.wattage:g} W) as {new_device.id}[/green]")


@device.command("list")
@household_option
@click.pass_context
def device_list(ctx, household_id):
    """List household devices."""
    devices = household.get_household_devices(household_id, ctx.obj["db_path"])
    if not devices:
        console.print("[yellow]No devices found[/yellow]")
        return

    table = Table(title="Devices")
    table.add_column("Id", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Wattage", justify="right")
    table.add_column("Shared", justify="center")
    for d in devices.values():
        table.add_row(d.id, d.name, f"{d.wattage:g} W", "[green]✓[/green]" if d.is_shared else "")
    console.print(table)


@device.command("remove")
@click.argument("device_id")
@click.option("--with-logs", is_flag=True, help="Also delete the device's energy logs")
@click.pass_context
def device_remove(ctx, device_id, with_logs):
    """Remove a device."""
    try:
        removed = household.delete_device(device_id, delete_logs=with_logs, db_path=ctx.obj["db_path"])
    except ValueError as e:
        fail(ctx, str(e))
        return
    if removed:
        console.print("[green]Device removed[/green]")
    else:
        console.print("[yellow]Device not found[/yellow]")


@device.group("group")
def device_group():
    """Device groups used together, e.g. a home office."""
    pass


@device_group.command("add")
@click.argument("name")
@click.argument("device_ids", nargs=-1, required=True)
@click.option("--created-by", help="User id creating the group")
@household_option
@click.pass_context
def device_group_add(ctx, name, device_ids, created_by, household_id):
    """Save a group of devices."""
    try:
        group = household.add_device_group(
            name, list(device_ids), household_id, created_by=created_by, db_path=ctx.obj["db_path"]
        )
    except ValueError as e:
        fail(ctx, str(e))
        return
    console.print(f"[green]Added group {group.name} with {len(group.device_ids)} device(s) as {group.id}[/green]")


@device_group.command("list")
@household_option
@click.pass_context
def device_group_list(ctx, household_id):
    """List device groups."""
    groups = household.get_device_groups(household_id, ctx.obj["db_path"])
    if not groups:
        console.print("[yellow]No device groups found[/yellow]")
        return

    devices = household.get_household_devices(household_id, ctx.obj["db_path"])
    table = Table(title="Device Groups")
    table.add_column("Id", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Devices")
    for group in groups:
        names = [devices[d].name if d in devices else d for d in group.device_ids]
        table.add_row(group.id, group.name, ", ".join(names))
    console.print(table)


@device_group.command("remove")
@click.argument("group_id")
@click.pass_context
def device_group_remove(ctx, group_id):
    """Remove a device group (its devices are kept)."""
    if household.delete_device_group(group_id, ctx.obj["db_path"]):
        console.print("[green]Device group removed[/green]")
    else:
        console.print("[yellow]Device group not found[/yellow]")


# Template commands
@cli.group("template")
def template_cmd():
    """Saved usage presets."""
    pass


@template_cmd.command("add")
@click.argument("name")
@click.option("--device", "device_id", help="Device id")
@click.option("--group", "group_id", help="Create one template per device of a group")
@click.option("--start", "start_time", required=True, help="Start time (HH:MM)")
@click.option("--end", "end_time", required=True, help="End time (HH:MM)")
@click.option("--user", "created_by", required=True, help="User id creating the template")
@click.option("--assign", "assigned", multiple=True, help="User id sharing the cost (repeatable)")
@household_option
@click.pass_context
def template_add(ctx, name, device_id, group_id, start_time, end_time, created_by, assigned, household_id):
    """Save a device and time preset."""
    db_path = ctx.obj["db_path"]
    if bool(device_id) == bool(group_id):
        fail(ctx, "Give exactly one of --device or --group")
        return

    try:
        if group_id:
            group = household.get_device_group(group_id, db_path)
            if group is None or group.household_id != household_id:
                fail(ctx, f"Device group {group_id} not found")
                return
            saved = templates.save_group_templates(
                name, group, start_time, end_time, created_by, list(assigned), db_path
            )
        else:
            template = UsageTemplate(
                id="",
                household_id=household_id,
                name=name,
                device_id=device_id,
                start_time=start_time,
                end_time=end_time,
                created_by=created_by,
                assigned_user_ids=list(assigned),
            )
            saved = [templates.save_template(template, db_path)]
    except ValueError as e:
        fail(ctx, str(e))
        return

    for template in saved:
        console.print(f"[green]Saved template {template.name} as {template.id}[/green]")


@template_cmd.command("list")
@household_option
@click.pass_context
def template_list(ctx, household_id):
    """List templates."""
    saved = templates.get_templates(household_id, ctx.obj["db_path"])
    if not saved:
        console.print("[yellow]No templates found[/yellow]")
        return

    devices = household.get_household_devices(household_id, ctx.obj["db_path"])
    table = Table(title="Templates")
    table.add_column("Id", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Device")
    table.add_column("Time")
    table.add_column("Assigned")
    for t in saved:
        d = devices.get(t.device_id)
        table.add_row(
            t.id,
            t.name,
            f"{d.name} ({d.wattage:g} W)" if d else t.device_id,
            f"{t.start_time} - {t.end_time}",
            ", ".join(t.assigned_user_ids) or t.created_by,
        )
    console.print(table)


@template_cmd.command("remove")
@click.argument("template_id")
@click.pass_context
def template_remove(ctx, template_id):
    """Delete a template."""
    if templates.delete_template(template_id, ctx.obj["db_path"]):
        console.print("[green]Template removed[/green]")
    else:
        console.print("[yellow]Template not found[/yellow]")


# Energy log commands
@cli.group("log")
def log_cmd():
    """Energy log commands."""
    pass


def print_log(log, label: str | None = None) -> None:
    prefix = f"{label}: " if label else ""
    console.print(f"[green]{prefix}Logged {log.total_kwh:.3f} kWh costing ${log.calculated_cost:.2f}[/green]")
    for period, usage in log.rate_breakdown.items():
        console.print(f"  {period}: {usage.kwh:.3f} kWh, ${usage.cost:.2f}")


@log_cmd.command("add")
@click.option("--device", "device_id", help="Device id")
@click.option("--group", "group_id", help="Log every device of a device group")
@click.option("--template", "template_id", help="Use a saved template's device and times")
@click.option("--date", "usage_date", type=DATE, help="Usage date (YYYY-MM-DD), defaults to today")
@click.option("--start", "start_time", help="Start time (HH:MM)")
@click.option("--end", "end_time", help="End time (HH:MM); earlier than start means past midnight")
@click.option("--end-date", type=DATE, help="End date for sessions longer than a day")
@click.option("--user", "created_by", required=True, help="User id logging the session")
@click.option("--assign", "assigned", multiple=True, help="User id sharing the cost (repeatable)")
@household_option
@click.pass_context
def log_add(
    ctx, device_id, group_id, template_id, usage_date, start_time, end_time, end_date, created_by, assigned,
    household_id,
):
    """Log a device usage session and compute its cost."""
    db_path = ctx.obj["db_path"]
    day = usage_date.date() if usage_date else date.today()

    if sum(1 for choice in (device_id, group_id, template_id) if choice) != 1:
        fail(ctx, "Give exactly one of --device, --group or --template")
        return

    if template_id:
        try:
            log = templates.create_log_from_template(template_id, day, created_by, db_path)
        except ValueError as e:
            fail(ctx, str(e))
            return
        print_log(log)
        return

    if not start_time or not end_time:
        fail(ctx, "--start and --end are required without --template")
        return

    if group_id:
        group = household.get_device_group(group_id, db_path)
        if group is None or group.household_id != household_id:
            fail(ctx, f"Device group {group_id} not found")
            return
        device_ids = group.device_ids
    else:
        device_ids = [device_id]

    devices = household.get_household_devices(household_id, db_path)
    for current in device_ids:
        session = UsageSession(
            device_id=current,
            usage_date=day,
            start_time=start_time,
            end_time=end_time,
            end_date=end_date.date() if end_date else None,
            household_id=household_id,
            created_by=created_by,
            assigned_user_ids=list(assigned),
        )
        try:
            log = logs.create_log(session, db_path)
        except ValueError as e:
            fail(ctx, str(e))
            return
        d = devices.get(current)
        print_log(log, d.name if group_id and d else None)


@log_cmd.command("bulk")
@click.option("--device", "device_id", required=True, help="Device id")
@click.option("--kwh", type=float, required=True, help="Total kWh for the date range")
@click.option("--period", "period_id", type=click.Choice(PERIOD_IDS), default="offPeak", help="Rate period to bill at")
@click.option("--from", "start_date", type=DATE, help="First date, defaults to today")
@click.option("--to", "end_date", type=DATE, help="Last date, defaults to --from")
@click.option("--rate", "price", type=float, help="Custom $/kWh instead of the tariff's period rate")
@click.option("--user", "created_by", required=True, help="User id entering the total")
@click.option("--assign", "assigned", multiple=True, help="User id sharing the cost (repeatable)")
@household_option
@click.pass_context
def log_bulk(ctx, device_id, kwh, period_id, start_date, end_date, price, created_by, assigned, household_id):
    """Enter a kWh total, e.g. from a charger or smart plug, without times."""
    start = start_date.date() if start_date else date.today()
    try:
        log = logs.create_bulk_log(
            device_id,
            household_id,
            created_by,
            kwh,
            period_id,
            start,
            end_date.date() if end_date else None,
            price_per_kwh=price,
            assigned_user_ids=list(assigned),
            db_path=ctx.obj["db_path"],
        )
    except ValueError as e:
        fail(ctx, str(e))
        return
    console.print(
        f"[green]Logged {log.total_kwh:.3f} kWh at {period_id} costing ${log.calculated_cost:.2f}[/green]"
    )


@log_cmd.command("list")
@click.option("--days", default=30, help="Number of days to show")
@click.option("--from", "from_date", type=DATE, help="Start date (YYYY-MM-DD)")
@click.option("--to", "to_date", type=DATE, help="End date (YYYY-MM-DD)")
@household_option
@click.pass_context
def log_list(ctx, days, from_date, to_date, household_id):
    """List energy logs."""
    start, end = resolve_range(from_date, to_date, days)
    entries = logs.get_logs_for_period(household_id, start, end, ctx.obj["db_path"])
    devices = household.get_household_devices(household_id, ctx.obj["db_path"])

    if not entries:
        console.print("[yellow]No logs found[/yellow]")
        return

    table = Table(title=f"Energy Logs ({start} → {end})")
    table.add_column("Date", style="cyan")
    table.add_column("Time")
    table.add_column("Device")
    table.add_column("kWh", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Source", style="dim")
    table.add_column("Id", style="dim")

    for log in entries:
        d = devices.get(log.device_id)
        table.add_row(
            log.usage_date.isoformat(),
            (
                f"{log.start_time} - {log.end_time}"
                if log.source_type != BULK_SOURCE
                else f"to {log.end_date or log.usage_date}"
            ),
            d.name if d else f"[red]{log.device_id}[/red]",
            f"{log.total_kwh:.3f}" if log.total_kwh is not None else "-",
            f"${log.calculated_cost:.2f}" if log.calculated_cost is not None else "-",
            log.source_type,
            log.id,
        )
    console.print(table)


@log_cmd.command("remove")
@click.argument("log_id")
@click.pass_context
def log_remove(ctx, log_id):
    """Delete an energy log."""
    if logs.delete_log(log_id, ctx.obj["db_path"]):
        console.print("[green]Log removed[/green]")
    else:
        console.print("[yellow]Log not found[/yellow]")


@log_cmd.command("recalculate")
@household_option
@click.pass_context
def log_recalculate(ctx, household_id):
    """Recompute costs of all logs against the stored tariffs."""
    try:
        result = logs.recalculate_logs(household_id, ctx.obj["db_path"])
    except ValueError as e:
        fail(ctx, str(e))
        return
    console.print(f"[green]Recalculated {result['updated']} log(s)[/green]")
    if result["skipped"]:
        console.print(f"  Kept {result['skipped']} bulk log(s) at their entered rate")
    if result["failed"]:
        console.print(f"[yellow]{result['failed']} log(s) could not be costed[/yellow]")


# Recurring schedule commands
@cli.group("recurring")
def recurring_cmd():
    """Recurring usage schedule commands."""
    pass


@recurring_cmd.command("add")
@click.argument("name")
@click.option("--device", "device_id", required=True, help="Device id")
@click.option("--days", "days_of_week", required=True, help="Weekdays, e.g. 0,1,2,3,4 (0=Monday)")
@click.option("--start", "start_time", required=True, help="Start time (HH:MM)")
@click.option("--end", "end_time", required=True, help="End time (HH:MM)")
@click.option("--from", "start_date", type=DATE, help="First date, defaults to today")
@click.option("--until", "end_date", type=DATE, help="Last date (open-ended if omitted)")
@click.option("--user", "created_by", required=True, help="User id creating the schedule")
@click.option("--assign", "assigned", multiple=True, help="User id sharing the cost (repeatable)")
@household_option
@click.pass_context
def recurring_add(ctx, name, device_id, days_of_week, start_time, end_time, start_date, end_date, created_by, assigned, household_id):
    """Add a recurring usage schedule."""
    try:
        weekdays = [int(d) for d in days_of_week.split(",") if d.strip()]
        schedule = recurring.save_schedule(
            RecurringSchedule(
                id="",
                household_id=household_id,
                name=name,
                device_id=device_id,
                days_of_week=weekdays,
                start_time=start_time,
                end_time=end_time,
                start_date=start_date.date() if start_date else date.today(),
                end_date=end_date.date() if end_date else None,
                assigned_user_ids=list(assigned),
                created_by=created_by,
            ),
            ctx.obj["db_path"],
        )
    except ValueError as e:
        fail(ctx, str(e))
        return
    console.print(f"[green]Added schedule {schedule.name} ({schedule.id})[/green]")


@recurring_cmd.command("list")
@household_option
@click.pass_context
def recurring_list(ctx, household_id):
    """List recurring schedules."""
    schedules = recurring.get_schedules(household_id, db_path=ctx.obj["db_path"])
    if not schedules:
        console.print("[yellow]No schedules found[/yellow]")
        return

    table = Table(title="Recurring Schedules")
    table.add_column("Name", style="cyan")
    table.add_column("Days")
    table.add_column("Time")
    table.add_column("Dates")
    table.add_column("Active", justify="center")
    table.add_column("Id", style="dim")
    for s in schedules:
        table.add_row(
            s.name,
            ",".join(DAY_NAMES[d] for d in s.days_of_week),
            f"{s.start_time} - {s.end_time}",
            f"{s.start_date} → {s.end_date or 'open'}",
            "[green]✓[/green]" if s.is_active else "",
            s.id,
        )
    console.print(table)


@recurring_cmd.command("generate")
@click.option("--id", "schedule_id", help="Only this schedule")
@click.option("--until", type=DATE, help="Generate up to this date, defaults to today")
@click.option("--replace", is_flag=True, help="Regenerate logs that already exist")
@household_option
@click.pass_context
def recurring_generate(ctx, schedule_id, until, replace, household_id):
    """Create energy logs from active recurring schedules."""
    until_date = until.date() if until else date.today()
    schedules = recurring.get_schedules(household_id, active_only=True, db_path=ctx.obj["db_path"])
    if schedule_id:
        schedules = [s for s in schedules if s.id == schedule_id]
    if not schedules:
        console.print("[yellow]No active schedules found[/yellow]")
        return

    tariffs = load_tariffs_from_db(ctx.obj["db_path"])
    if not tariffs:
        fail(ctx, "No tariffs loaded; run 'wattshare tariff load' first")
        return

    for schedule in schedules:
        result = recurring.generate_logs(
            schedule, until_date, replace_existing=replace, schedules=tariffs, db_path=ctx.obj["db_path"]
        )
        console.print(f"[green]{schedule.name}: generated {result['imported']} log(s)[/green]")
        if result["skipped"]:
            console.print(f"[yellow]  Skipped {result['skipped']} existing[/yellow]")
        if result["replaced"]:
            console.print(f"[yellow]  Replaced {result['replaced']} existing[/yellow]")
        if result["failed"]:
            console.print(f"[red]  Failed {result['failed']}[/red]")


# Summary commands
@cli.command()
@click.option("--days", default=30, help="Number of days to include")
@click.option("--from", "from_date", type=DATE, help="Start date (YYYY-MM-DD)")
@click.option("--to", "to_date", type=DATE, help="End date (YYYY-MM-DD)")
@click.option("--by", "group_by", type=click.Choice(GROUP_BY_OPTIONS), help="Show only one breakdown")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@household_option
@click.pass_context
def report(ctx, days, from_date, to_date, group_by, as_json, household_id):
    """Generate a period summary report."""
    start, end = resolve_range(from_date, to_date, days)
    db_path = ctx.obj["db_path"]

    data = summary.get_period_summary(
        logs.get_logs_for_period(household_id, start, end, db_path),
        start,
        end,
        devices=household.get_household_devices(household_id, db_path),
        users=household.get_household_users(household_id, db_path),
    )

    if group_by:
        rows = data[f"by_{group_by}"]
        if as_json:
            click.echo(json.dumps(rows, indent=2))
            return

        table = Table(title=f"Usage by {group_by} ({start} → {end})")
        table.add_column(group_by.capitalize(), style="cyan")
        table.add_column("kWh", justify="right")
        table.add_column("Cost", justify="right")
        table.add_column("Logs", justify="right")
        for row in rows:
            label = f"{row['label']} *" if row["estimated"] else row["label"]
            table.add_row(label, f"{row['kwh']:.3f}", f"${row['cost']:.2f}", str(row["logs"]))
        console.print(table)
        if any(row["estimated"] for row in rows):
            console.print("[dim]* includes usage estimated from device wattage[/dim]")
    elif as_json:
        click.echo(json.dumps(data, indent=2))
    else:
        console.print(summary.format_period_summary_text(data))


@cli.command("bill-split")
@click.argument("amount", type=float)
@click.option("--from", "from_date", type=DATE, help="Billing period start, defaults to first of this month")
@click.option("--to", "to_date", type=DATE, help="Billing period end, defaults to today")
@click.option("--save", "save_as", help="Store the split, created by this user id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@household_option
@click.pass_context
def bill_split_cmd(ctx, amount, from_date, to_date, save_as, as_json, household_id):
    """Split a bill between household members by their logged usage."""
    db_path = ctx.obj["db_path"]
    end = to_date.date() if to_date else date.today()
    start = from_date.date() if from_date else end.replace(day=1)
    members = household.get_household_users(household_id, db_path)

    try:
        split = bill_split.split_bill(
            amount,
            logs.get_logs_for_period(household_id, start, end, db_path),
            [m.id for m in members],
            household_id,
            start,
            end,
            devices=household.get_household_devices(household_id, db_path),
        )
    except ValueError as e:
        fail(ctx, str(e))
        return

    if save_as:
        bill_split.save_bill_split(split, save_as, db_path)

    if as_json:
        click.echo(
            json.dumps(
                {
                    "id": split.id,
                    "period": {"start": start.isoformat(), "end": end.isoformat()},
                    "total_bill_amount": round(split.total_bill_amount, 2),
                    "shared_cost": round(split.shared_cost, 2),
                    "shared_cost_per_user": round(split.shared_cost_per_user, 2),
                    "personal_costs": {k: round(v, 2) for k, v in split.personal_costs.items()},
                    "final_amounts": {k: round(v, 2) for k, v in split.final_amounts.items()},
                },
                indent=2,
            )
        )
    else:
        console.print(bill_split.format_bill_split_text(split, {m.id: m.name for m in members}))


# Backup commands
@cli.group("export")
def export_cmd():
    """Export household data."""
    pass


@export_cmd.command("csv")
@click.argument("path", type=click.Path())
@click.option("--days", default=365, help="Number of days to include")
@household_option
@click.pass_context
def export_csv(ctx, path, days, household_id):
    """Export energy logs to CSV."""
    start, end = resolve_range(None, None, days)
    db_path = ctx.obj["db_path"]
    count = backup.export_logs_csv(
        logs.get_logs_for_period(household_id, start, end, db_path),
        Path(path),
        household.get_household_devices(household_id, db_path),
    )
    console.print(f"[green]Exported {count} log(s) to {path}[/green]")


@export_cmd.command("backup")
@click.argument("path", type=click.Path())
@household_option
@click.pass_context
def export_backup(ctx, path, household_id):
    """Export devices and logs to a JSON backup."""
    data = backup.export_backup(household_id, ctx.obj["db_path"])
    Path(path).write_text(json.dumps(data, indent=2))
    console.print(
        f"[green]Backed up {len(data['devices'])} device(s) and {len(data['energy_logs'])} log(s)[/green]"
    )


@cli.group("import")
def import_cmd():
    """Import household data."""
    pass


@import_cmd.command("backup")
@click.argument("path", type=click.Path(exists=True))
@click.pass_context
def import_backup(ctx, path):
    """Restore devices and logs from a JSON backup."""
    try:
        data = json.loads(Path(path).read_text())
        result = backup.import_backup(data, ctx.obj["db_path"])
    except ValueError as e:
        fail(ctx, str(e))
        return

    console.print(
        f"[green]Imported {result['devices_imported']} device(s) and {result['logs_imported']} log(s)[/green]"
    )
    skipped = result["devices_skipped"] + result["logs_skipped"]
    if skipped:
        console.print(f"[yellow]Skipped {skipped} existing record(s)[/yellow]")


if __name__ == "__main__":
    cli()
