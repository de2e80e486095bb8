"""
Command sequencing for registry mutations and lifecycle calls.

add/remove run as:
  1. validate inputs                      (InvalidArgument, nothing touched)
  2. lock, drift check, registry checks    (DriftDetected / DuplicateName /
                                            PortConflict / NotFound)
  3. registry mutation
  4. route map update                      \\ on failure earlier steps are
  5. proxy dependency update               |  reverted (PartialFailure*)
  6. data directory (add only)             /
  7. orchestrator call                     (OrchestratorError, no rollback)
"""

import logging
import random
import shutil
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .config import PbhostConfig
from .dependencies import DependencyLinker
from .errors import (
    ConfigAnchorMissing,
    DriftDetected,
    DuplicateName,
    InvalidArgument,
    OrchestratorError,
    PartialFailureManualInterventionRequired,
    PartialFailureRolledBack,
)
from .locking import RegistryLock
from .manifest import ComposeManifest
from .orchestrator import DockerCompose
from .ports import allocate_port, validate_requested_port
from .reconciler import OrphanReconciler, ReconcileReport
from .registry import Registry, ServiceEntry
from .routes import RouteSynthesizer
from .topology import DriftReport, TopologyChanges, apply_topology, check_drift
from .validation import validate_name, validate_port

logger = logging.getLogger("pbhost.dispatcher")

ALL = "all"


class _Journal:
    """Undo log for one mutation; each entry restores a file snapshot"""

    def __init__(self):
        self._undo: list[tuple[str, Callable[[], None]]] = []

    def step(self, step: str, artifact: str, snapshot: Callable[[], str | None], restore, action: Callable) -> None:
        before = snapshot()
        try:
            action()
        except Exception as exc:
            self.rollback(step, exc)
        self._undo.append((artifact, lambda: restore(before)))

    def rollback(self, step: str, cause: Exception) -> None:
        failed = []
        for artifact, undo in reversed(self._undo):
            try:
                undo()
            except Exception as exc:
                logger.error("Could not revert %s: %s", artifact, exc)
                if artifact not in failed:
                    failed.append(artifact)
        self._undo.clear()
        if failed:
            raise PartialFailureManualInterventionRequired(step, cause, failed) from cause
        logger.warning("Rolled back after %s failure: %s", step, cause)
        raise PartialFailureRolledBack(step, cause) from cause


@dataclass
class ProjectRow:
    name: str
    port: int
    status: str
    url: str
    data_dir: str


class Dispatcher:
    """Entry point for every pbhost operation"""

    def __init__(self, config: PbhostConfig, orchestrator=None, rng: random.Random | None = None):
        self.config = config
        self.manifest = ComposeManifest(config.compose_file)
        self.registry = Registry(
            self.manifest,
            service_prefix=config.service_prefix,
            data_dir_prefix=config.data_dir_prefix,
            image=config.image,
        )
        self.routes = RouteSynthesizer(config.nginx_conf, anchor=config.route_anchor, default_port=config.default_port)
        self.deps = DependencyLinker(self.manifest, proxy_service=config.proxy_service, service_prefix=config.service_prefix)
        self.orchestrator = orchestrator or DockerCompose(
            config.workdir,
            config.compose_file,
            proxy_service=config.proxy_service,
            service_prefix=config.service_prefix,
        )
        self.rng = rng

    # ─────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────

    def lock(self) -> RegistryLock:
        return RegistryLock(self.config.lock_file, timeout=self.config.lock_timeout)

    def _preflight(self) -> None:
        if not self.manifest.exists():
            raise ConfigAnchorMissing(f"Docker Compose file not found: {self.manifest.path}. Run 'pbhost init' first.")

    def _ensure_consistent(self) -> None:
        report = check_drift(self.registry, self.routes, self.deps)
        if not report.ok:
            raise DriftDetected(report.issues)

    def data_dir_path(self, entry: ServiceEntry) -> Path:
        return self.config.workdir / entry.data_dir

    def _manifest_step(self, journal: _Journal, step: str, action: Callable) -> None:
        journal.step(step, self.manifest.path.name, self.manifest.read_text, self.manifest.restore_text, action)

    def _routes_step(self, journal: _Journal, action: Callable) -> None:
        journal.step("routes", self.routes.path.name, self.routes.read_text, self.routes.restore_text, action)

    # ─────────────────────────────────────────────────────────────
    # Registry mutations
    # ─────────────────────────────────────────────────────────────

    def add(self, name: str, port=None, start: bool = True) -> ServiceEntry:
        """Register a project, wire its route and dependency, start it"""
        validate_name(name)
        if port is not None:
            port = validate_port(port)

        with self.lock():
            self._preflight()
            self._ensure_consistent()

            entries = self.registry.list()
            if any(entry.name == name for entry in entries):
                raise DuplicateName(name)
            owners = {entry.port: entry.name for entry in entries}
            if port is None:
                port = allocate_port(owners, self.config.port_range, self.config.port_attempts, self.rng)
            else:
                port = validate_requested_port(port, owners, owners)

            entry = self.registry.new_entry(name, port)
            service = self.registry.service_name(name)
            logger.info("Adding project '%s' on port %d", name, port)

            journal = _Journal()
            self._manifest_step(journal, "registry", lambda: self.registry.add(entry))
            self._routes_step(journal, lambda: self.routes.add_route(name, port))
            self._manifest_step(journal, "dependencies", lambda: self.deps.link(service))

            try:
                self.data_dir_path(entry).mkdir(parents=True, exist_ok=True)
            except OSError as e:
                journal.rollback("data directory", e)

        if start:
            self.orchestrator.up([service, self.config.proxy_service])
        return entry

    def remove(self, name: str) -> ServiceEntry:
        """
        Unregister a project and stop its container.

        The data directory is kept; see purge_data_dir().
        """
        validate_name(name)

        with self.lock():
            self._preflight()
            self._ensure_consistent()

            entry = self.registry.get(name)
            service = self.registry.service_name(name)
            logger.info("Removing project '%s'", name)

            journal = _Journal()
            self._manifest_step(journal, "registry", lambda: self.registry.remove(name))
            self._routes_step(journal, lambda: self.routes.remove_route(name, entry.port))
            self._manifest_step(journal, "dependencies", lambda: self.deps.unlink(service))

        try:
            self.orchestrator.remove_container(service)
        except OrchestratorError as e:
            # The container may never have been created
            logger.warning("Could not remove container %s: %s", service, e)
        self.orchestrator.up([self.config.proxy_service])
        return entry

    def purge_data_dir(self, entry: ServiceEntry) -> bool:
        """Delete a project's data directory. Returns False if it did not exist."""
        workdir = self.config.workdir.resolve()
        path = self.data_dir_path(entry).resolve()
        if path == workdir or workdir not in path.parents:
            raise InvalidArgument(f"Refusing to delete {path}: outside {workdir}")
        if not path.is_dir():
            return False
        shutil.rmtree(path)
        logger.info("Deleted data directory %s", path)
        return True

    def sync(self) -> TopologyChanges:
        """Rebuild routes and dependencies from the registry"""
        with self.lock():
            self._preflight()
            return apply_topology(self.registry, self.routes, self.deps)

    def drift(self) -> DriftReport:
        """Lock-free drift check (best-effort snapshot)"""
        return check_drift(self.registry, self.routes, self.deps)

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    def _service_for(self, name: str) -> str:
        validate_name(name)
        return self.registry.service_name(self.registry.get(name).name)

    def start(self, name: str) -> None:
        if name == ALL:
            self.orchestrator.up()
            return
        self.orchestrator.up([self._service_for(name), self.config.proxy_service])

    def stop(self, name: str) -> None:
        if name == ALL:
            self.orchestrator.stop()
            return
        self.orchestrator.stop([self._service_for(name)])

    def restart(self, name: str) -> None:
        if name == ALL:
            self.orchestrator.restart()
            return
        self.orchestrator.restart([self._service_for(name), self.config.proxy_service])

    def logs(self, name: str, follow: bool = False, lines: int | None = None) -> None:
        self.orchestrator.logs(self._service_for(name), follow=follow, lines=lines)

    def build(self) -> None:
        self.orchestrator.build(self.config.image, self.config.workdir)

    def cleanup(self, prune: bool = False) -> ReconcileReport:
        # Without a manifest every running container would look orphaned
        self._preflight()
        report = OrphanReconciler(self.registry, self.orchestrator).reconcile()
        if prune:
            self.orchestrator.prune()
        return report

    # ─────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────

    def projects(self) -> list[ProjectRow]:
        """Registered projects with their container state"""
        entries = self.registry.list()
        try:
            states = self.orchestrator.container_states()
        except OrchestratorError as e:
            logger.warning("Could not read container states: %s", e)
            states = None

        rows = []
        for entry in entries:
            service = self.registry.service_name(entry.name)
            if states is None:
                status = "unknown"
            else:
                status = states.get(service, "not created")
            rows.append(
                ProjectRow(
                    name=entry.name,
                    port=entry.port,
                    status=status,
                    url=self.config.url_for(entry.name),
                    data_dir=entry.data_dir,
                )
            )
        return rows
