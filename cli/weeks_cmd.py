"""
CLI: weekstreak
Operator commands over the local document store.
"""
import sys
from pathlib import Path
from typing import Optional

import click

# project root on sys.path so `core` imports work when run as a script
project_root = Path(__file__).parent.parent
sys.path.append(str(project_root))

from core.document_store import DocumentStore
from core.event_log import read_events
from core.exceptions import WeekStreakError
from core.week_service import WeekService

STATUS_ICONS = {"locked": "🔒", "active": "▶️", "complete": "✅"}


def _service() -> WeekService:
    return WeekService(db=DocumentStore())


@click.group()
def cli():
    """WeekStreak commands"""
    pass


@cli.command()
@click.option("--host", default=None, help="Bind address (default WEEKSTREAK_HOST or 0.0.0.0)")
@click.option("--port", default=None, type=int, help="Port (default WEEKSTREAK_PORT or 8010)")
@click.option("--reload", is_flag=True, default=False, help="Reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server"""
    from main import run_server

    # without --reload, WEEKSTREAK_RELOAD decides
    run_server(host=host, port=port, reload=reload or None)


@cli.command()
@click.option("--user", "user_id", required=True, help="User id")
def status(user_id: str):
    """Show the active week and its days"""
    service = _service()
    week = service.current_week(user_id)
    if week is None:
        click.echo("ℹ️ No active week")
        return

    stats = week["task_stats"]
    click.echo(f"📅 {week['title']} ({week['type']})")
    click.echo(f"   {stats['completed']}/{stats['total']} days complete, {stats['progress']}%")
    for task in week["daily_tasks"]:
        icon = STATUS_ICONS.get(task["status"], "•")
        click.echo(f"  {icon} Day {task['day_number']}: {task['description']}  [{task['id']}]")


@cli.command()
@click.option("--user", "user_id", required=True, help="User id")
@click.option("--status", "goal_status", default=None, help="active | complete")
def goals(user_id: str, goal_status: Optional[str]):
    """List weekly goals, newest first"""
    items = _service().list_goals(user_id, status=goal_status)
    if not items:
        click.echo("ℹ️ No weekly goals")
        return
    for goal in items:
        stats = goal["task_stats"]
        icon = "✅" if goal["status"] == "complete" else "▶️"
        click.echo(f"{icon} {goal['title']} [{goal['id']}] {stats['completed']}/{stats['total']}")


@cli.command()
@click.argument("task_id")
@click.option("--user", "user_id", required=True, help="User id")
@click.option("--code-file", type=click.Path(exists=True, dir_okay=False), required=True,
              help="File with the code written for the day")
@click.option("--notes", required=True, help="What you learned")
@click.option("--github-url", default=None, help="Optional link to the code")
def complete(task_id: str, user_id: str, code_file: str, notes: str, github_url: Optional[str]):
    """Complete a day and run the unlock cascade"""
    code = Path(code_file).read_text(encoding="utf-8")
    try:
        result = _service().complete_task(user_id, task_id, code, notes, github_url)
    except WeekStreakError as e:
        click.echo(f"❌ {e.get_user_message()}", err=True)
        sys.exit(1)

    click.echo(f"✅ {result.message}")
    if result.next_task_unlocked:
        click.echo(f"🔓 Next day unlocked: {result.next_task_id}")
    if result.week_completed:
        click.echo("🏁 Week complete")


@cli.command()
@click.option("--user", "user_id", default=None, help="Only this user's events")
@click.option("--type", "event_type", default=None, help="Only this event type")
@click.option("--limit", default=20, show_default=True, help="Most recent N events")
def events(user_id: Optional[str], event_type: Optional[str], limit: int):
    """Show the domain event log"""
    for event in read_events(event_type=event_type, user_id=user_id, limit=limit):
        click.echo(f"{event['timestamp']}  {event['type']:<16} {event.get('payload', {})}")


if __name__ == "__main__":
    cli()
