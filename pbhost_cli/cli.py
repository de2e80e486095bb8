"""CLI command implementations"""

import json
import logging
from dataclasses import asdict

import httpx

from .config import CONFIG_FILENAMES, PbhostConfig
from .dispatcher import ALL, Dispatcher
from .errors import OrchestratorError, PartialFailureManualInterventionRequired, PbhostError
from .output import console, print_drift, print_probes, print_projects, print_stats, print_status
from .scaffold import write_scaffold
from .utils import confirm, msg_error, msg_info, msg_step, msg_success, msg_warning

logger = logging.getLogger("pbhost.cli")

PROXY_PORT = 80


def verify_route(host: str, path: str = "/", port: int = PROXY_PORT, timeout: float = 2.0) -> tuple[bool, str]:
    """
    Verify a project is reachable through the proxy.

    Sends a request with the project's Host header to the local proxy port.
    Returns (success, message).
    """
    url = f"http://127.0.0.1:{port}{path}"
    try:
        response = httpx.get(url, headers={"Host": host}, timeout=timeout, follow_redirects=False)
    except httpx.ConnectError:
        return (False, "Connection refused")
    except httpx.TimeoutException:
        return (False, "Timeout")
    except httpx.HTTPError as e:
        return (False, str(e))

    if response.status_code < 500:
        return (True, f"OK ({response.status_code})")
    return (False, f"Server error ({response.status_code})")


class PbhostCLI:
    """Main CLI interface"""

    def __init__(self, config: PbhostConfig | None = None, dispatcher: Dispatcher | None = None):
        self.config = config or PbhostConfig()
        self.dispatcher = dispatcher or Dispatcher(self.config)

    def _fail(self, error: Exception) -> bool:
        msg_error(str(error))
        if isinstance(error, PartialFailureManualInterventionRequired):
            for artifact in error.artifacts:
                msg_warning(f"Check {artifact} by hand, then run 'pbhost sync'")
        elif isinstance(error, OrchestratorError):
            msg_info("Registry changes were kept. Fix Docker and run 'pbhost start <name>'.")
        logger.debug("Command failed", exc_info=True)
        return False

    # ─────────────────────────────────────────────────────────────
    # Registry mutations
    # ─────────────────────────────────────────────────────────────

    def add(self, name: str, port=None, start: bool = True) -> bool:
        """Register a project and start it"""
        try:
            msg_step(1, 2, f"Registering '{name}'...")
            entry = self.dispatcher.add(name, port, start=False)
            msg_success(f"Added project '{entry.name}' on port {entry.port}")

            if start:
                msg_step(2, 2, "Starting containers...")
                self.dispatcher.start(entry.name)
                msg_success("Containers started")
            else:
                msg_info(f"Start it with: pbhost start {entry.name}")
        except (PbhostError, OSError) as e:
            return self._fail(e)

        print()
        msg_info(f"Access your project at: {self.config.url_for(entry.name)}")
        msg_info(f"Admin UI: {self.config.url_for(entry.name)}/_/")
        return True

    def remove(self, name: str, assume_yes: bool = False, keep_data: bool = False) -> bool:
        """Unregister a project, stop it and optionally delete its data"""
        try:
            entry = self.dispatcher.remove(name)
        except (PbhostError, OSError) as e:
            return self._fail(e)

        msg_success(f"Removed project '{name}'")

        data_dir = self.dispatcher.data_dir_path(entry)
        if keep_data or not data_dir.is_dir():
            return True
        if assume_yes or confirm(f"Remove data directory '{data_dir}'?"):
            try:
                self.dispatcher.purge_data_dir(entry)
            except (PbhostError, OSError) as e:
                return self._fail(e)
            msg_success(f"Deleted {data_dir}")
        else:
            msg_info(f"Kept data directory {data_dir}")
        return True

    def sync(self, check: bool = False) -> bool:
        """Repair (or with check, only report) route/dependency drift"""
        try:
            if check:
                report = self.dispatcher.drift()
                if report.ok:
                    msg_success("Registry, routes and dependencies are in sync")
                    return True
                print_drift(report.issues)
                return False

            changes = self.dispatcher.sync()
        except (PbhostError, OSError) as e:
            return self._fail(e)

        if not changes.changed:
            msg_success("Already in sync")
            return True
        if changes.routes_changed:
            msg_success(f"Rewrote route map in {self.config.nginx_conf.name}")
        if changes.dependencies_changed:
            msg_success(f"Rewrote {self.config.proxy_service} dependencies in {self.config.compose_file.name}")
        msg_info("Apply with: pbhost restart all")
        return True

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    def start(self, name: str) -> bool:
        try:
            self.dispatcher.start(name)
        except (PbhostError, OSError) as e:
            return self._fail(e)
        msg_success("Started all services" if name == ALL else f"Started '{name}'")
        return True

    def stop(self, name: str) -> bool:
        try:
            self.dispatcher.stop(name)
        except (PbhostError, OSError) as e:
            return self._fail(e)
        msg_success("Stopped all services" if name == ALL else f"Stopped '{name}'")
        return True

    def restart(self, name: str) -> bool:
        try:
            self.dispatcher.restart(name)
        except (PbhostError, OSError) as e:
            return self._fail(e)
        msg_success("Restarted all services" if name == ALL else f"Restarted '{name}'")
        return True

    def logs(self, name: str, follow: bool = False, lines: int | None = None) -> bool:
        try:
            self.dispatcher.logs(name, follow=follow, lines=lines)
        except KeyboardInterrupt:
            print()
            return True
        except (PbhostError, OSError) as e:
            return self._fail(e)
        return True

    def build(self) -> bool:
        msg_info(f"Building {self.config.image} from {self.config.workdir}")
        try:
            self.dispatcher.build()
        except (PbhostError, OSError) as e:
            return self._fail(e)
        msg_success(f"Built {self.config.image}")
        return True

    def cleanup(self, prune: bool = False) -> bool:
        """Stop containers that are no longer registered"""
        try:
            report = self.dispatcher.cleanup(prune=prune)
        except (PbhostError, OSError) as e:
            return self._fail(e)

        for container in report.removed:
            msg_success(f"Removed orphan container {container}")
        for container, reason in report.failed.items():
            msg_error(f"Could not remove {container}: {reason}")
        for service in report.not_running:
            msg_warning(f"{service} is registered but not running")
        if not report.removed and not report.failed:
            msg_success("No orphan containers")
        if prune:
            msg_success("Pruned unused Docker resources")
        return report.ok

    # ─────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────

    def list(self, as_json: bool = False) -> bool:
        """List registered projects"""
        try:
            rows = self.dispatcher.projects()
        except (PbhostError, OSError) as e:
            return self._fail(e)

        if as_json:
            print(json.dumps([asdict(row) for row in rows], indent=2))
            return True
        if not rows:
            msg_info("No projects registered. Add one with: pbhost add <name>")
            return True
        print_projects(rows)
        return True

    def status(self, probe: bool = False) -> bool:
        """Show docker/proxy health, drift, resource usage and projects"""
        orchestrator = self.dispatcher.orchestrator
        try:
            rows = self.dispatcher.projects()
            drift = self.dispatcher.drift()
        except (PbhostError, OSError) as e:
            return self._fail(e)

        docker_running = orchestrator.is_docker_running()
        running = [row for row in rows if row.status == "running"]
        health = {
            "docker_running": docker_running,
            "proxy_running": docker_running and orchestrator.is_service_running(self.config.proxy_service),
            "proxy_service": self.config.proxy_service,
            "project_count": len(rows),
            "running_count": len(running),
            "drift_issues": len(drift.issues),
        }
        print_status(health)

        if not drift.ok:
            print_drift(drift.issues)
            msg_info("Run 'pbhost sync' to repair.")

        if rows:
            print_projects(rows)

        if running:
            containers = [self.dispatcher.registry.service_name(row.name) for row in running]
            try:
                print_stats(orchestrator.stats(containers))
            except OrchestratorError as e:
                msg_warning(f"Could not read resource usage: {e}")

        if probe and rows:
            results = {}
            for row in rows:
                host = f"{row.name}.{self.config.domain}"
                with console.status(f"Checking {host}..."):
                    results[row.name] = verify_route(host, path="/api/health")
            print_probes(results)
            return all(ok for ok, _ in results.values())

        return docker_running and drift.ok

    # ─────────────────────────────────────────────────────────────
    # Setup
    # ─────────────────────────────────────────────────────────────

    def init(self, domain: str | None = None, force: bool = False) -> bool:
        """Write pbhost.yml and starter docker-compose.yml, nginx.conf, Dockerfile"""
        if domain:
            self.config.config["domain"] = domain.strip().lower()

        try:
            if self.config.config_file is None or force or domain:
                path = self.config.save(self.config.config_file or self.config.workdir / CONFIG_FILENAMES[0])
                msg_success(f"Wrote {path}")
            written, skipped = write_scaffold(self.config, force=force)
        except (PbhostError, OSError) as e:
            return self._fail(e)

        for path in written:
            msg_success(f"Wrote {path}")
        for path in skipped:
            msg_warning(f"{path} exists, kept (use --force to overwrite)")

        print()
        print("Next steps:")
        print("  1. pbhost build")
        print("  2. pbhost add <name>")
        print(f"  3. Open {self.config.url_for('<name>')}")
        print()
        return True

