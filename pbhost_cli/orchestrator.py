"""
Docker Compose orchestrator adapter.

Wraps the `docker compose` (or legacy `docker-compose`) and `docker` CLIs.
Every call is bounded by a timeout from subprocess_timeouts; failures and
timeouts surface as OrchestratorError.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .errors import OrchestratorError
from .subprocess_timeouts import get_timeout

logger = logging.getLogger("pbhost.orchestrator")


@dataclass(frozen=True)
class ContainerStats:
    name: str
    cpu: str
    memory: str


def _output(result: subprocess.CompletedProcess) -> str:
    return ((result.stdout or "") + (result.stderr or "")).strip()


class DockerCompose:
    """Command interface to the container orchestrator"""

    def __init__(
        self,
        workdir: Path,
        compose_file: Path,
        proxy_service: str = "nginx",
        service_prefix: str = "pocketbase_",
        compose_cmd: list[str] | None = None,
    ):
        self.workdir = Path(workdir)
        self.compose_file = Path(compose_file)
        self.proxy_service = proxy_service
        self.service_prefix = service_prefix
        self._compose_cmd = compose_cmd

    # ─────────────────────────────────────────────────────────────
    # Command plumbing
    # ─────────────────────────────────────────────────────────────

    def _run(self, cmd: list[str], operation: str, capture: bool = True) -> subprocess.CompletedProcess:
        timeout = get_timeout(operation)
        logger.debug("Running %s (timeout=%s)", " ".join(cmd), timeout)
        try:
            result = subprocess.run(
                cmd,
                cwd=str(self.workdir),
                capture_output=capture,
                text=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise OrchestratorError(f"'{' '.join(cmd)}' timed out after {timeout}s", command=cmd) from e
        except FileNotFoundError as e:
            raise OrchestratorError(f"'{cmd[0]}' not found. Is Docker installed?", command=cmd) from e

        if result.returncode != 0:
            output = _output(result) if capture else ""
            detail = f": {output}" if output else ""
            raise OrchestratorError(
                f"'{' '.join(cmd)}' failed with exit code {result.returncode}{detail}",
                command=cmd,
                returncode=result.returncode,
                output=output,
            )
        return result

    def compose_command(self) -> list[str]:
        """Detect `docker compose` (plugin) or `docker-compose` (standalone)"""
        if self._compose_cmd is not None:
            return self._compose_cmd

        if shutil.which("docker"):
            try:
                self._run(["docker", "compose", "version"], "compose_version")
                self._compose_cmd = ["docker", "compose"]
            except OrchestratorError:
                pass
        if self._compose_cmd is None and shutil.which("docker-compose"):
            self._compose_cmd = ["docker-compose"]
        if self._compose_cmd is None:
            raise OrchestratorError("Docker Compose is required but not installed.")

        logger.info("Using Docker Compose command: %s", " ".join(self._compose_cmd))
        return self._compose_cmd

    def _compose(self, args: list[str], operation: str, capture: bool = True) -> subprocess.CompletedProcess:
        cmd = [*self.compose_command(), "-f", str(self.compose_file), *args]
        return self._run(cmd, operation, capture=capture)

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    def up(self, services: list[str] | None = None) -> None:
        """Create/start services (all when services is None)"""
        operation = "compose_up" if services else "compose_up_all"
        self._compose(["up", "-d", *(services or []), "--remove-orphans"], operation)

    def stop(self, services: list[str] | None = None) -> None:
        self._compose(["stop", *(services or [])], "compose_stop")

    def restart(self, services: list[str] | None = None) -> None:
        self._compose(["restart", *(services or [])], "compose_restart")

    def logs(self, service: str, follow: bool = False, lines: int | None = None) -> None:
        """Stream logs to the terminal"""
        args = ["logs"]
        if lines:
            args.extend(["--tail", str(lines)])
        if follow:
            args.append("-f")
        args.append(service)
        self._compose(args, "compose_logs_follow" if follow else "compose_logs", capture=False)

    def remove_container(self, container: str) -> None:
        """Stop and delete a container by name"""
        self._run(["docker", "stop", container], "docker_stop")
        self._run(["docker", "rm", "-f", container], "docker_rm")

    def build(self, image: str, context: Path | None = None) -> None:
        self._run(["docker", "build", "-t", image, str(context or self.workdir)], "docker_build", capture=False)

    def prune(self) -> None:
        self._run(["docker", "system", "prune", "-f"], "docker_prune")

    # ─────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────

    def is_docker_running(self) -> bool:
        try:
            self._run(["docker", "info"], "docker_info")
        except OrchestratorError:
            return False
        return True

    def list_running(self) -> list[str]:
        """Names of running containers carrying the service prefix"""
        result = self._run(
            ["docker", "ps", "--filter", f"name={self.service_prefix}", "--format", "{{.Names}}"],
            "docker_ps",
        )
        names = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        # The name filter is a substring match
        return [name for name in names if name.startswith(self.service_prefix)]

    def container_states(self) -> dict[str, str]:
        """State (running/exited/...) of every prefixed container, running or not"""
        result = self._run(
            ["docker", "ps", "-a", "--filter", f"name={self.service_prefix}", "--format", "{{.Names}} {{.State}}"],
            "docker_ps",
        )
        states = {}
        for line in result.stdout.splitlines():
            parts = line.split()
            if len(parts) >= 2 and parts[0].startswith(self.service_prefix):
                states[parts[0]] = parts[1]
        return states

    def is_service_running(self, service: str) -> bool:
        try:
            result = self._compose(["ps", "--services", "--filter", "status=running"], "compose_ps")
        except OrchestratorError:
            return False
        return service in {line.strip() for line in result.stdout.splitlines()}

    def stats(self, containers: list[str]) -> list[ContainerStats]:
        """One-shot CPU/memory usage for running containers"""
        if not containers:
            return []
        result = self._run(
            ["docker", "stats", "--no-stream", "--format", "{{.Name}}\t{{.CPUPerc}}\t{{.MemUsage}}", *containers],
            "docker_stats",
        )
        rows = []
        for line in result.stdout.splitlines():
            parts = line.split("\t")
            if len(parts) == 3:
                rows.append(ContainerStats(name=parts[0], cpu=parts[1], memory=parts[2]))
        return rows
