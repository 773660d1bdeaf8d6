"""CLI helpers for inspecting what the portal shows a given user."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List

import typer
from rich.console import Console
from rich.table import Table

from edportal.academics.enrollment import FallbackPolicy
from edportal.academics.partition import TabbedContent
from edportal.core.errors import AuthorizationDenied, CollaboratorError, CourseNotFound
from edportal.portal.controller import CoursePageController, PageTab
from edportal.providers.document_store import DocumentStore

ENV_REPO_ROOT = "PORTAL_REPO_ROOT"
SNAPSHOT_ENV_VAR = "PORTAL_SNAPSHOT"


def _resolve_repo_root() -> Path:
    override = os.environ.get(ENV_REPO_ROOT)
    if override:
        return Path(override).expanduser().resolve()
    return Path(__file__).resolve().parents[1]


def _resolve_default_snapshot(repo_root: Path | None = None) -> Path:
    env_snapshot = os.environ.get(SNAPSHOT_ENV_VAR)
    if env_snapshot:
        return Path(env_snapshot).expanduser().resolve()
    base_root = repo_root or _resolve_repo_root()
    return (base_root / "config" / "sample_snapshot.yaml").resolve()


REPO_ROOT = _resolve_repo_root()
DEFAULT_SNAPSHOT = _resolve_default_snapshot(REPO_ROOT)

app = typer.Typer(help="Inspect courses, content tabs, grades and programs as a portal user sees them.")
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


def _open_controller(
    snapshot: Path | None,
    user: str,
    fallback: FallbackPolicy = FallbackPolicy.SHOW_ALL,
) -> CoursePageController:
    resolved = snapshot.expanduser().resolve() if snapshot is not None else _resolve_default_snapshot()
    if not resolved.exists():
        raise typer.BadParameter(f"Snapshot not found at {resolved}")
    store = DocumentStore(resolved)
    try:
        known = store.get_user(user)
    except CollaboratorError as exc:
        raise typer.BadParameter(exc.message) from exc
    if known is None:
        raise typer.BadParameter(f"User {user} not found in {resolved}")
    return CoursePageController(store, store.identity_for(user), fallback=fallback)


def _load(controller: CoursePageController, course_id: str):
    try:
        return controller.load(course_id)
    except CourseNotFound as exc:
        raise typer.BadParameter(exc.message) from exc


def query_courses(snapshot: Path | None, user: str) -> List[dict]:
    controller = _open_controller(snapshot, user)
    return [
        {"id": course.id, "name": course.name, "year": course.year, "section": course.section}
        for course in controller.list_courses()
    ]


def _tab_payload(content: TabbedContent, notices: List[str]) -> Dict[str, Any]:
    return {
        "visible_tabs": [tab.value for tab in content.visible_tabs],
        "active_tab": content.active_tab.value if content.active_tab else None,
        "buckets": {
            tab.value: [item.model_dump(mode="json") for item in content.buckets.get(tab)]
            for tab in content.visible_tabs
        },
        "notices": notices,
    }


def query_section(
    snapshot: Path | None,
    user: str,
    course_id: str,
    section: PageTab,
    fallback: FallbackPolicy = FallbackPolicy.SHOW_ALL,
) -> Dict[str, Any]:
    controller = _open_controller(snapshot, user, fallback)
    view = _load(controller, course_id)
    content = view.attachments if section is PageTab.ATTACHMENTS else view.videos
    return _tab_payload(content, list(view.notices))


def query_grades(snapshot: Path | None, user: str, course_id: str) -> Dict[str, Any]:
    controller = _open_controller(snapshot, user)
    _load(controller, course_id)
    grades = controller.grades(course_id)
    if grades.is_roster:
        return {"view": "roster", "roster": [summary.model_dump(mode="json") for summary in grades.roster]}
    if grades.self_report is not None:
        return {"view": "self", "report": grades.self_report.model_dump(mode="json")}
    return {"view": "none"}


def query_programs(snapshot: Path | None, user: str) -> List[dict]:
    controller = _open_controller(snapshot, user)
    return [stats.model_dump(mode="json") for stats in controller.program_stats()]


def _print_table(headers: list[str], rows: List[dict], keys: list[str]) -> None:
    table = Table(*headers)
    for row in rows:
        table.add_row(*[_cell(row.get(key)) for key in keys])
    console.print(table)


def _cell(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.1f}"
    return str(value)


def _print_section(payload: Dict[str, Any], label: str) -> None:
    if not payload["visible_tabs"]:
        console.print(f"[yellow]No {label} visible for this enrollment.[/yellow]")
    for tab in payload["visible_tabs"]:
        marker = " (active)" if tab == payload["active_tab"] else ""
        console.print(f"[bold]{tab.title()}{marker}[/bold]")
        _print_table(["Name", "Published", "URL"], payload["buckets"][tab], ["name", "timestamp", "url"])
    for notice in payload["notices"]:
        console.print(f"[red]{notice}[/red]")


SNAPSHOT_OPTION_HELP = f"Snapshot JSON/YAML path (defaults to {SNAPSHOT_ENV_VAR} or {DEFAULT_SNAPSHOT})."


@app.command()
def courses(
    user: str = typer.Option(..., "--user", help="User id to view the portal as."),
    snapshot: Path | None = typer.Option(None, "--snapshot", show_default=False, help=SNAPSHOT_OPTION_HELP),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of a table."),
) -> None:
    """List the courses a user can open."""

    rows = query_courses(snapshot, user)
    if as_json:
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    if not rows:
        console.print("[yellow]No courses available.[/yellow]")
        return
    _print_table(["ID", "Name", "Year", "Section"], rows, ["id", "name", "year", "section"])


@app.command()
def attachments(
    course_id: str = typer.Argument(..., help="Course identifier."),
    user: str = typer.Option(..., "--user", help="User id to view the portal as."),
    snapshot: Path | None = typer.Option(None, "--snapshot", show_default=False, help=SNAPSHOT_OPTION_HELP),
    fallback: FallbackPolicy = typer.Option(FallbackPolicy.SHOW_ALL, help="Policy for unreadable enrollment plans."),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """Show a course's attachments, bucketed by semester tab."""

    payload = query_section(snapshot, user, course_id, PageTab.ATTACHMENTS, fallback)
    if as_json:
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    _print_section(payload, "attachments")


@app.command()
def videos(
    course_id: str = typer.Argument(..., help="Course identifier."),
    user: str = typer.Option(..., "--user", help="User id to view the portal as."),
    snapshot: Path | None = typer.Option(None, "--snapshot", show_default=False, help=SNAPSHOT_OPTION_HELP),
    fallback: FallbackPolicy = typer.Option(FallbackPolicy.SHOW_ALL, help="Policy for unreadable enrollment plans."),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """Show a course's videos, recorded classes first."""

    payload = query_section(snapshot, user, course_id, PageTab.VIDEOS, fallback)
    if as_json:
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    _print_section(payload, "videos")


@app.command()
def grades(
    course_id: str = typer.Argument(..., help="Course identifier."),
    user: str = typer.Option(..., "--user", help="User id to view the portal as."),
    snapshot: Path | None = typer.Option(None, "--snapshot", show_default=False, help=SNAPSHOT_OPTION_HELP),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """Show the user's own grades, or the whole roster for administrators."""

    payload = query_grades(snapshot, user, course_id)
    if as_json:
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    if payload["view"] == "roster":
        if not payload["roster"]:
            console.print("[yellow]No graded work recorded for this course.[/yellow]")
        for summary in payload["roster"]:
            totals = summary["totals"]
            console.print(
                f"[bold]{summary['student_name']}[/bold] {_cell(totals['score'])}/{_cell(totals['max_points'])}"
                f" ({_cell(totals['percentage'])}%)"
            )
            _print_table(
                ["Assignment", "Score", "Max", "%"],
                summary["rows"],
                ["assignment_title", "score", "max_points", "percentage"],
            )
        return
    if payload["view"] == "self":
        report = payload["report"]
        _print_table(
            ["Assignment", "Score", "Max", "%"],
            report["rows"],
            ["assignment_title", "score", "max_points", "percentage"],
        )
        totals = report["totals"]
        console.print(f"Total {_cell(totals['score'])}/{_cell(totals['max_points'])} ({_cell(totals['percentage'])}%)")
        return
    console.print("[yellow]Grades are not available for this account.[/yellow]")


@app.command()
def programs(
    user: str = typer.Option(..., "--user", help="User id to view the portal as."),
    snapshot: Path | None = typer.Option(None, "--snapshot", show_default=False, help=SNAPSHOT_OPTION_HELP),
    as_json: bool = typer.Option(False, "--json"),
) -> None:
    """Summarize program registrations (administrators only)."""

    try:
        rows = query_programs(snapshot, user)
    except AuthorizationDenied as exc:
        console.print(f"[red]{exc.message}[/red]")
        raise typer.Exit(code=1) from exc
    if as_json:
        typer.echo(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    _print_table(
        ["Program", "Type", "Registrations", "Attendees", "Status"],
        rows,
        ["program_name", "program_type", "total_registrations", "total_attendees", "status"],
    )


if __name__ == "__main__":  # pragma: no cover
    app()
