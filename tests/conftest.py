import logging
import random

import pytest

from pbhost_cli.config import PbhostConfig
from pbhost_cli.dispatcher import Dispatcher
from pbhost_cli.errors import OrchestratorError
from pbhost_cli.orchestrator import ContainerStats
from pbhost_cli.scaffold import write_scaffold
from pbhost_cli.structured_logging import CommandContextFilter

PBHOST_ENV = (
    "PBHOST_WORKDIR",
    "PBHOST_DOMAIN",
    "PBHOST_COMPOSE_FILE",
    "PBHOST_NGINX_CONF",
    "PBHOST_LOG_FORMAT",
    "PBHOST_LOG_LEVEL",
    "PBHOST_LOG_FILE",
)


class FakeOrchestrator:
    """In-memory stand-in for DockerCompose"""

    def __init__(self):
        self.calls = []
        self.running: list[str] = []
        self.states: dict[str, str] = {}
        self.fail_on: set[str] = set()
        self.fail_containers: set[str] = set()
        self.docker_running = True

    def _record(self, op, *args):
        self.calls.append((op, *args))
        if op in self.fail_on:
            raise OrchestratorError(f"{op} failed", command=["docker", op], returncode=1)

    def up(self, services=None):
        self._record("up", services)

    def stop(self, services=None):
        self._record("stop", services)

    def restart(self, services=None):
        self._record("restart", services)

    def logs(self, service, follow=False, lines=None):
        self._record("logs", service, follow, lines)

    def remove_container(self, container):
        self._record("remove_container", container)
        if container in self.fail_containers:
            raise OrchestratorError(f"cannot stop {container}", command=["docker", "stop", container], returncode=1)
        if container in self.running:
            self.running.remove(container)

    def build(self, image, context=None):
        self._record("build", image, context)

    def prune(self):
        self._record("prune")

    def is_docker_running(self):
        return self.docker_running

    def list_running(self):
        return list(self.running)

    def container_states(self):
        if "container_states" in self.fail_on:
            raise OrchestratorError("docker ps failed")
        return dict(self.states)

    def is_service_running(self, service):
        return service in self.running

    def stats(self, containers):
        return [ContainerStats(name=c, cpu="0.50%", memory="12MiB / 1GiB") for c in containers]

    def ops(self):
        return [call[0] for call in self.calls]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in PBHOST_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def restore_logging():
    """Drop handlers installed by setup_logging()"""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if any(isinstance(f, CommandContextFilter) for f in handler.filters):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


@pytest.fixture
def config(tmp_path):
    """Config rooted at tmp_path with starter compose/nginx files"""
    cfg = PbhostConfig(tmp_path)
    write_scaffold(cfg)
    return cfg


@pytest.fixture
def orchestrator():
    return FakeOrchestrator()


@pytest.fixture
def dispatcher(config, orchestrator):
    return Dispatcher(config, orchestrator=orchestrator, rng=random.Random(1234))
