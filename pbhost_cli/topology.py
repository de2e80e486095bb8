"""
Consistency between the registry, the route map and proxy dependencies.

Every registered project must have exactly one route (with its port) and
exactly one proxy dependency. Anything else is drift.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field

from .dependencies import DependencyLinker
from .registry import Registry
from .routes import DEFAULT_KEY, RouteSynthesizer

logger = logging.getLogger("pbhost.topology")


@dataclass
class DriftReport:
    issues: list[dict] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues

    def add(self, code: str, message: str, fix: str) -> None:
        self.issues.append({"code": code, "message": message, "fix": fix})

    def codes(self) -> list[str]:
        return [issue["code"] for issue in self.issues]


@dataclass
class TopologyChanges:
    routes_changed: bool = False
    dependencies_changed: bool = False

    @property
    def changed(self) -> bool:
        return self.routes_changed or self.dependencies_changed


def check_drift(registry: Registry, routes: RouteSynthesizer, deps: DependencyLinker) -> DriftReport:
    """Compare the three artifacts and report every inconsistency"""
    report = DriftReport()
    entries = registry.list()
    registered = {entry.name: entry.port for entry in entries}

    route_entries = routes.read_routes()
    route_counts = Counter(key for key, _ in route_entries)
    route_ports: dict[str, set[int]] = {}
    for key, port in route_entries:
        route_ports.setdefault(key, set()).add(port)

    if registered and DEFAULT_KEY not in route_counts:
        report.add("default_missing", "Route map has no default entry", "Run 'pbhost sync'.")

    for name, port in registered.items():
        if name not in route_counts:
            report.add("route_missing", f"'{name}' has no route in {routes.path.name}", "Run 'pbhost sync'.")
        elif route_ports[name] != {port}:
            found = ", ".join(str(p) for p in sorted(route_ports[name]))
            report.add(
                "route_port_mismatch",
                f"Route for '{name}' points to {found}, registry says {port}",
                "Run 'pbhost sync'.",
            )
        elif route_counts[name] > 1:
            report.add("route_duplicate", f"'{name}' has {route_counts[name]} route lines", "Run 'pbhost sync'.")

    for key in route_counts:
        if key != DEFAULT_KEY and key not in registered:
            report.add(
                "route_orphan", f"Route '{key}' has no registered project", "Run 'pbhost sync' or re-add the project."
            )

    dependencies = deps.read()
    dep_counts = Counter(dependencies)
    for name in registered:
        service = registry.service_name(name)
        if service not in dep_counts:
            report.add(
                "dependency_missing", f"Proxy does not depend on '{service}'", "Run 'pbhost sync'."
            )
        elif dep_counts[service] > 1:
            report.add("dependency_duplicate", f"Proxy depends on '{service}' more than once", "Run 'pbhost sync'.")

    for service in dep_counts:
        name = registry.project_name(service)
        if name is not None and name not in registered:
            report.add(
                "dependency_orphan",
                f"Proxy depends on '{service}', which is not registered",
                "Run 'pbhost sync'.",
            )

    if not report.ok:
        logger.warning("Detected %d drift issue(s)", len(report.issues))
    return report


def apply_topology(registry: Registry, routes: RouteSynthesizer, deps: DependencyLinker) -> TopologyChanges:
    """
    Derive the route map and dependency list from one registry snapshot.

    Routes are written first. If writing dependencies fails the route file is
    put back as it was, so either both artifacts change or neither does.
    """
    entries = registry.list()
    changes = TopologyChanges()

    previous_routes = routes.read_text()
    changes.routes_changed = routes.sync(entries)
    try:
        changes.dependencies_changed = deps.sync(registry.service_name(entry.name) for entry in entries)
    except Exception:
        if changes.routes_changed:
            logger.warning("Restoring %s after dependency update failure", routes.path)
            routes.restore_text(previous_routes)
        raise
    return changes
