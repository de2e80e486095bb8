"""Orphan container cleanup"""

import logging
from dataclasses import dataclass, field

from .errors import OrchestratorError
from .registry import Registry

logger = logging.getLogger("pbhost.reconciler")


@dataclass
class ReconcileReport:
    removed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    not_running: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


class OrphanReconciler:
    """
    Stops running containers that have no registry entry.

    The registry is only read here. Registered projects that are not running
    are reported but left alone; `pbhost start` brings them up.
    """

    def __init__(self, registry: Registry, orchestrator):
        self.registry = registry
        self.orchestrator = orchestrator

    def diff(self) -> tuple[list[str], list[str]]:
        """Return (orphan containers, registered services not running)"""
        running = self.orchestrator.list_running()
        registered = [self.registry.service_name(name) for name in self.registry.names()]
        orphans = [container for container in running if container not in registered]
        not_running = [service for service in registered if service not in running]
        return orphans, not_running

    def reconcile(self) -> ReconcileReport:
        orphans, not_running = self.diff()
        report = ReconcileReport(not_running=not_running)

        for container in orphans:
            logger.warning("Stopping orphan container: %s", container)
            try:
                self.orchestrator.remove_container(container)
            except OrchestratorError as e:
                logger.error("Failed to remove orphan %s: %s", container, e)
                report.failed[container] = str(e)
                continue
            report.removed.append(container)

        logger.info("Orphan cleanup removed %d container(s)", len(report.removed))
        return report
