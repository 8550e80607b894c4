"""challengeboard command line.

Every command opens the configured database, runs one engine call and
renders the result with Rich.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .challenges.errors import ChallengeError
from .config import configure_logging, get_config
from .db import get_db

app = typer.Typer(
    name="challengeboard",
    help="Run fitness challenges, leaderboards and rewards.",
    no_args_is_help=True,
)

challenge_app = typer.Typer(help="Manage challenges and track progress.")
app.add_typer(challenge_app, name="challenge")

activity_app = typer.Typer(help="Feed activity from tracking sources.")
app.add_typer(activity_app, name="activity")

team_app = typer.Typer(help="Manage teams.")
app.add_typer(team_app, name="team")

console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{message}[/dim]")


def get_engine():
    """Create an engine bound to the configured database."""
    from .engine import ChallengeEngine

    return ChallengeEngine(get_db())


def fail(error: Exception) -> None:
    """Report an engine error and exit with status 1."""
    print_error(str(error))
    raise typer.Exit(1)


STATUS_STYLES = {
    "upcoming": "[dim]upcoming[/dim]",
    "active": "[yellow]active[/yellow]",
    "completed": "[bold green]completed[/bold green]",
    "cancelled": "[red]cancelled[/red]",
}


def format_number(value: float) -> str:
    """Show whole numbers without a trailing .0."""
    return f"{value:g}" if value == int(value) else f"{value:.2f}"


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show engine log output"),
) -> None:
    """Configure logging before running a command."""
    configure_logging("INFO" if verbose else get_config().log_level)


# ============================================================================
# Challenge Commands
# ============================================================================


@challenge_app.command("create")
def challenge_create(
    file: Path = typer.Option(..., "--file", "-f", help="JSON challenge definition"),
) -> None:
    """Create a challenge from a JSON definition."""
    if not file.exists():
        print_error(f"File not found: {file}")
        raise typer.Exit(1)

    try:
        payload = json.loads(file.read_text())
    except json.JSONDecodeError as e:
        print_error(f"Invalid JSON: {e}")
        raise typer.Exit(1)

    try:
        challenge = get_engine().create_challenge(payload)
    except ChallengeError as e:
        fail(e)

    print_success(f"Challenge created: {challenge.title}")
    print_info(f"ID: {challenge.id}  Status: {challenge.status.value}")


@challenge_app.command("list")
def challenge_list(
    status: Optional[str] = typer.Option(
        None, "--status", "-s", help="Filter: upcoming, active, completed, cancelled"
    ),
) -> None:
    """List challenges."""
    from .challenges.schemas import ChallengeStatus

    status_filter = None
    if status:
        try:
            status_filter = ChallengeStatus(status)
        except ValueError:
            print_error(f"Invalid status: {status}")
            raise typer.Exit(1)

    challenges = get_engine().list_challenges(status_filter)

    if not challenges:
        print_info("No challenges found. Create one with 'challenge create'")
        return

    table = Table(title="Challenges", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Type")
    table.add_column("Participants", justify="right")
    table.add_column("Ends")
    table.add_column("Status")

    for ch in challenges:
        table.add_row(
            ch.id,
            ch.title,
            ch.challenge_type.value,
            str(ch.participant_count),
            ch.end_date.date().isoformat(),
            STATUS_STYLES[ch.status.value],
        )

    console.print(table)


@challenge_app.command("search")
def challenge_search(
    query: str = typer.Argument(..., help="Text to search titles, descriptions and tags"),
) -> None:
    """Search challenges."""
    challenges = get_engine().search_challenges(query)

    if not challenges:
        print_info(f"No challenges match '{query}'")
        return

    for ch in challenges:
        console.print(f"[cyan]{ch.title}[/cyan] [dim]({ch.id})[/dim] {STATUS_STYLES[ch.status.value]}")


@challenge_app.command("show")
def challenge_show(
    challenge_id: str = typer.Argument(..., help="Challenge ID"),
) -> None:
    """Show challenge details and requirements."""
    try:
        challenge = get_engine().get_challenge(challenge_id)
    except ChallengeError as e:
        fail(e)

    console.print(Panel(
        f"[bold]{challenge.title}[/bold]\n"
        f"{challenge.description}\n"
        f"{STATUS_STYLES[challenge.status.value]}  "
        f"[dim]{challenge.start_date:%Y-%m-%d} to {challenge.end_date:%Y-%m-%d}[/dim]",
        style="cyan",
    ))

    console.print("\n  [bold]Requirements:[/bold]")
    for req in challenge.requirements:
        console.print(
            f"    {req.id}: {format_number(req.target)} {req.unit} "
            f"[dim]({req.requirement_type.value})[/dim]"
        )

    if challenge.rewards:
        console.print("\n  [bold]Rewards:[/bold]")
        for reward in challenge.rewards:
            console.print(f"    {reward.name} [dim]({reward.condition.value})[/dim]")

    capacity = f"/{challenge.max_participants}" if challenge.max_participants else ""
    console.print(f"\n  Participants: {challenge.participant_count}{capacity}")


@challenge_app.command("join")
def challenge_join(
    challenge_id: str = typer.Argument(..., help="Challenge ID"),
    user_id: str = typer.Argument(..., help="User ID"),
    team: Optional[str] = typer.Option(None, "--team", "-t", help="Team tag"),
) -> None:
    """Join a challenge."""
    try:
        get_engine().join(challenge_id, user_id, team=team)
    except ChallengeError as e:
        fail(e)

    print_success(f"{user_id} joined {challenge_id}")


@challenge_app.command("leave")
def challenge_leave(
    challenge_id: str = typer.Argument(..., help="Challenge ID"),
    user_id: str = typer.Argument(..., help="User ID"),
) -> None:
    """Leave a challenge."""
    try:
        get_engine().leave(challenge_id, user_id)
    except ChallengeError as e:
        fail(e)

    print_success(f"{user_id} left {challenge_id}")


@challenge_app.command("cancel")
def challenge_cancel(
    challenge_id: str = typer.Argument(..., help="Challenge ID"),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation"),
) -> None:
    """Cancel a challenge. This cannot be undone."""
    if not force:
        typer.confirm(f"Cancel challenge {challenge_id}?", abort=True)

    try:
        get_engine().cancel(challenge_id)
    except ChallengeError as e:
        fail(e)

    print_success(f"Cancelled {challenge_id}")


@challenge_app.command("progress")
def challenge_progress(
    challenge_id: str = typer.Argument(..., help="Challenge ID"),
    user_id: str = typer.Argument(..., help="User ID"),
    requirement_id: str = typer.Argument(..., help="Requirement ID"),
    delta: float = typer.Argument(..., help="Amount accomplished since last report"),
) -> None:
    """Record progress toward a requirement."""
    try:
        result = get_engine().update_progress(challenge_id, user_id, requirement_id, delta)
    except ChallengeError as e:
        fail(e)

    print_success(f"{requirement_id}: {format_number(result.value)}")
    if result.newly_completed:
        console.print("[bold green]Challenge completed![/bold green]")
    for achievement in result.awarded:
        console.print(f"  Earned: [yellow]{achievement.title}[/yellow]")


@challenge_app.command("leaderboard")
def challenge_leaderboard(
    challenge_id: str = typer.Argument(..., help="Challenge ID"),
    limit: int = typer.Option(20, "--limit", "-n", help="Rows to show"),
) -> None:
    """Show a challenge leaderboard."""
    try:
        entries = get_engine().get_leaderboard(challenge_id)
    except ChallengeError as e:
        fail(e)

    if not entries:
        print_info("No participants yet")
        return

    table = Table(title="Leaderboard", show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right")
    table.add_column("User", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Progress", justify="right")
    table.add_column("Team")

    for entry in entries[:limit]:
        done = " [green]done[/green]" if entry.completed else ""
        table.add_row(
            str(entry.rank),
            entry.user_id,
            format_number(entry.score),
            f"{entry.progress_percent:.0f}%{done}",
            entry.team or "-",
        )

    console.print(table)


@challenge_app.command("teams")
def challenge_teams(
    challenge_id: str = typer.Argument(..., help="Challenge ID"),
) -> None:
    """Show team standings for a team challenge."""
    try:
        standings = get_engine().get_team_standings(challenge_id)
    except ChallengeError as e:
        fail(e)

    if not standings:
        print_info("No team standings for this challenge")
        return

    table = Table(title="Team Standings", show_header=True, header_style="bold magenta")
    table.add_column("#", justify="right")
    table.add_column("Team", style="cyan")
    table.add_column("Members", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Average", justify="right")

    for standing in standings:
        table.add_row(
            str(standing.rank),
            standing.name or standing.team_id,
            str(len(standing.members)),
            format_number(standing.total_score),
            format_number(standing.average_score),
        )

    console.print(table)


@challenge_app.command("finalize")
def challenge_finalize() -> None:
    """Issue final rewards for every challenge that has ended."""
    finalized = get_engine().finalize_due()

    if not finalized:
        print_info("Nothing to finalize")
        return

    print_success(f"Finalized {len(finalized)} challenge(s)")
    for challenge_id in finalized:
        print_info(f"  {challenge_id}")


# ============================================================================
# Activity Commands
# ============================================================================


@activity_app.command("log")
def activity_log(
    user_id: str = typer.Argument(..., help="User ID"),
    metric: str = typer.Argument(..., help="Metric type, e.g. steps, reps, calories"),
    value: float = typer.Argument(..., help="Amount accomplished"),
    exercise: Optional[str] = typer.Option(None, "--exercise", "-e", help="Exercise ID"),
) -> None:
    """Log activity and apply it to the user's challenges."""
    from .progress.events import ActivityEvent

    event = ActivityEvent(
        user_id=user_id,
        metric_type=metric,
        value=value,
        timestamp=datetime.now(timezone.utc),
        exercise_id=exercise,
    )

    try:
        results = get_engine().record_activity(event)
    except ChallengeError as e:
        fail(e)

    if not results:
        print_info("No active challenge tracks this activity")
        return

    for result in results:
        console.print(
            f"  {result.challenge_id}/{result.requirement_id}: {format_number(result.value)}"
        )
        if result.newly_completed:
            console.print(f"  [bold green]Completed {result.challenge_id}![/bold green]")


# ============================================================================
# Team Commands
# ============================================================================


@team_app.command("create")
def team_create(
    name: str = typer.Argument(..., help="Team name"),
    captain: Optional[str] = typer.Option(None, "--captain", "-c", help="Captain user ID"),
    team_id: Optional[str] = typer.Option(None, "--id", help="Team ID (default: generated)"),
    motto: Optional[str] = typer.Option(None, "--motto", "-m", help="Team motto"),
) -> None:
    """Create a team."""
    from pydantic import ValidationError

    from .teams.schemas import TeamCreate

    try:
        data = TeamCreate(id=team_id, name=name, captain=captain, motto=motto)
    except ValidationError as e:
        print_error(f"Invalid team: {e.errors()[0]['msg']}")
        raise typer.Exit(1)

    try:
        team = get_engine().create_team(data)
    except ChallengeError as e:
        fail(e)

    print_success(f"Team created: {team.name}")
    print_info(f"ID: {team.id}")


@team_app.command("join")
def team_join(
    team_id: str = typer.Argument(..., help="Team ID"),
    user_id: str = typer.Argument(..., help="User ID"),
) -> None:
    """Add a user to a team."""
    try:
        added = get_engine().join_team(team_id, user_id)
    except ChallengeError as e:
        fail(e)

    if added:
        print_success(f"{user_id} joined {team_id}")
    else:
        print_info(f"{user_id} is already on {team_id}")


@team_app.command("leave")
def team_leave(
    team_id: str = typer.Argument(..., help="Team ID"),
    user_id: str = typer.Argument(..., help="User ID"),
) -> None:
    """Remove a user from a team."""
    try:
        removed = get_engine().leave_team(team_id, user_id)
    except ChallengeError as e:
        fail(e)

    if removed:
        print_success(f"{user_id} left {team_id}")
    else:
        print_info(f"{user_id} is not on {team_id}")


@team_app.command("list")
def team_list() -> None:
    """List teams."""
    teams = get_engine().list_teams()

    if not teams:
        print_info("No teams yet. Create one with 'team create'")
        return

    table = Table(title="Teams", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Captain")
    table.add_column("Members", justify="right")

    for team in teams:
        table.add_row(team.id, team.name, team.captain or "-", str(len(team.members)))

    console.print(table)


# ============================================================================
# User Commands
# ============================================================================


@app.command()
def achievements(
    user_id: str = typer.Argument(..., help="User ID"),
) -> None:
    """List a user's achievements."""
    earned = get_engine().get_achievements(user_id)

    if not earned:
        print_info(f"{user_id} has no achievements yet")
        return

    table = Table(title=f"Achievements: {user_id}", show_header=True, header_style="bold magenta")
    table.add_column("Earned")
    table.add_column("Title", style="yellow")
    table.add_column("Challenge", style="dim")
    table.add_column("For")

    for achievement in earned:
        table.add_row(
            f"{achievement.earned_at:%Y-%m-%d}",
            achievement.title,
            achievement.challenge_id,
            achievement.condition.value,
        )

    console.print(table)


@app.command()
def stats(
    user_id: str = typer.Argument(..., help="User ID"),
) -> None:
    """Show a user's challenge statistics."""
    summary = get_engine().get_user_stats(user_id)

    console.print(Panel(
        f"Challenges joined: {summary.challenges_joined}\n"
        f"Challenges completed: {summary.challenges_completed}\n"
        f"Achievements: {summary.achievements_earned}\n"
        f"Teams: {summary.teams_joined}\n"
        f"Points: {format_number(summary.total_points)}",
        title=user_id,
        style="cyan",
    ))


@app.command()
def version() -> None:
    """Show version information."""
    from fittracker import __version__

    console.print(f"challengeboard version {__version__}")


# ============================================================================
# Main Entry Point
# ============================================================================


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
