"""
Rich-powered console output for pbhost.

Provides styled tables and status panels.
"""

import sys

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

console = Console(force_terminal=None, legacy_windows=True)

# ASCII-safe characters when output is not a terminal
_USE_ASCII = not sys.stdout.isatty()

STATUS_STYLES = {
    "ok": ("+" if _USE_ASCII else "✓", "green"),
    "error": ("x" if _USE_ASCII else "✗", "red"),
    "warning": ("!", "yellow"),
    "running": ("+" if _USE_ASCII else "●", "green"),
    "stopped": ("-" if _USE_ASCII else "○", "dim"),
}

CONTAINER_STYLES = {
    "running": "green",
    "exited": "red",
    "dead": "red",
    "restarting": "yellow",
    "paused": "yellow",
    "created": "yellow",
    "not created": "yellow",
    "unknown": "dim",
}


def status_icon(status: str) -> Text:
    """Create a styled status icon"""
    icon, style = STATUS_STYLES.get(status, ("?", "dim"))
    return Text(icon, style=style)


def projects_table(rows: list) -> Table:
    """
    Create a table of registered projects.

    Args:
        rows: ProjectRow objects (name, status, port, url)
    """
    table = Table(title="PocketBase Projects", show_header=True, header_style="bold cyan")

    table.add_column("Project", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Port", justify="right")
    table.add_column("URL", style="cyan")

    for row in rows:
        style = CONTAINER_STYLES.get(row.status, "dim")
        table.add_row(row.name, Text(row.status, style=style), str(row.port), row.url)

    return table


def drift_table(issues: list[dict]) -> Table:
    """Create a table of drift issues"""
    table = Table(title="Drift", show_header=True, header_style="bold yellow")

    table.add_column("Issue", style="dim")
    table.add_column("Detail")
    table.add_column("Fix", style="dim")

    for issue in issues:
        table.add_row(issue["code"], issue["message"], issue["fix"])

    return table


def stats_table(stats: list) -> Table:
    """Create a table of container resource usage"""
    table = Table(title="Container Resource Usage", show_header=True, header_style="bold")

    table.add_column("Container")
    table.add_column("CPU %", justify="right")
    table.add_column("Memory", justify="right")

    for row in stats:
        table.add_row(row.name, row.cpu, row.memory)

    return table


def status_panel(health: dict) -> Panel:
    """
    Create the system health panel.

    Args:
        health: dict with docker_running, proxy_running, proxy_service,
            project_count, running_count, drift_issues
    """
    lines = []

    if health.get("docker_running"):
        lines.append(Text.assemble(status_icon("ok"), " Docker is running"))
    else:
        lines.append(Text.assemble(status_icon("error"), " Docker is not running"))

    proxy = health.get("proxy_service", "nginx")
    if health.get("proxy_running"):
        lines.append(Text.assemble(status_icon("running"), f" {proxy} is running"))
    else:
        lines.append(Text.assemble(status_icon("stopped"), f" {proxy} is not running"))

    lines.append(Text(f"Projects: {health.get('project_count', 0)} ({health.get('running_count', 0)} running)"))

    drift = health.get("drift_issues", 0)
    if drift:
        lines.append(Text.assemble(status_icon("warning"), f" {drift} drift issue(s)"))
    else:
        lines.append(Text.assemble(status_icon("ok"), " Registry, routes and dependencies in sync"))

    content = Text("\n").join(lines)
    return Panel(content, title="System Status", border_style="cyan")


def probe_table(results: dict[str, tuple[bool, str]]) -> Table:
    """Create a table of health probe results through the proxy"""
    table = Table(title="Health Checks", show_header=True, header_style="bold")

    table.add_column("Project", style="bold")
    table.add_column("Result", justify="center")
    table.add_column("Detail", style="dim")

    for name, (ok, detail) in results.items():
        table.add_row(name, status_icon("ok" if ok else "error"), detail)

    return table


def print_projects(rows: list):
    console.print(projects_table(rows))


def print_drift(issues: list[dict]):
    console.print(drift_table(issues))


def print_stats(stats: list):
    console.print(stats_table(stats))


def print_status(health: dict):
    console.print(status_panel(health))


def print_probes(results: dict[str, tuple[bool, str]]):
    console.print(probe_table(results))
