"""Tests for the docker compose adapter (subprocess is never really run)"""

import subprocess

import pytest

import pbhost_cli.orchestrator as orchestrator_module
from pbhost_cli.errors import OrchestratorError
from pbhost_cli.orchestrator import DockerCompose


class FakeRun:
    def __init__(self, stdout="", stderr="", returncode=0):
        self.calls = []
        self.stdout = stdout
        self.stderr = stderr
        self.returncode = returncode

    def __call__(self, cmd, **kwargs):
        self.calls.append((cmd, kwargs))
        return subprocess.CompletedProcess(cmd, self.returncode, stdout=self.stdout, stderr=self.stderr)


def _raise_timeout(*args, **kwargs):
    cmd = args[0] if args else kwargs.get("args", "docker")
    raise subprocess.TimeoutExpired(cmd=cmd, timeout=kwargs.get("timeout"))


def _raise_missing(*args, **kwargs):
    raise FileNotFoundError("docker")


@pytest.fixture
def compose(tmp_path):
    return DockerCompose(tmp_path, tmp_path / "docker-compose.yml", compose_cmd=["docker", "compose"])


def test_up_services(monkeypatch, compose, tmp_path):
    run = FakeRun()
    monkeypatch.setattr(orchestrator_module.subprocess, "run", run)

    compose.up(["pocketbase_blog", "nginx"])

    cmd, kwargs = run.calls[0]
    assert cmd == [
        "docker",
        "compose",
        "-f",
        str(tmp_path / "docker-compose.yml"),
        "up",
        "-d",
        "pocketbase_blog",
        "nginx",
        "--remove-orphans",
    ]
    assert kwargs["timeout"] == 60
    assert kwargs["cwd"] == str(tmp_path)
    assert kwargs["check"] is False


def test_up_all_uses_extended_timeout(monkeypatch, compose):
    run = FakeRun()
    monkeypatch.setattr(orchestrator_module.subprocess, "run", run)

    compose.up()

    cmd, kwargs = run.calls[0]
    assert cmd[-3:] == ["up", "-d", "--remove-orphans"]
    assert kwargs["timeout"] == 120


def test_failure_raises_with_output(monkeypatch, compose):
    monkeypatch.setattr(orchestrator_module.subprocess, "run", FakeRun(stderr="no such service: x", returncode=1))

    with pytest.raises(OrchestratorError) as excinfo:
        compose.stop(["x"])

    assert excinfo.value.returncode == 1
    assert "no such service" in excinfo.value.output
    assert "no such service" in str(excinfo.value)


def test_timeout_raises(monkeypatch, compose):
    monkeypatch.setattr(orchestrator_module.subprocess, "run", _raise_timeout)

    with pytest.raises(OrchestratorError) as excinfo:
        compose.restart(["pocketbase_blog"])

    assert "timed out" in str(excinfo.value).lower()


def test_missing_docker(monkeypatch, compose):
    monkeypatch.setattr(orchestrator_module.subprocess, "run", _raise_missing)

    with pytest.raises(OrchestratorError) as excinfo:
        compose.remove_container("pocketbase_blog")

    assert "not found" in str(excinfo.value)
    assert compose.is_docker_running() is False


def test_logs_follow_is_interactive(monkeypatch, compose):
    run = FakeRun()
    monkeypatch.setattr(orchestrator_module.subprocess, "run", run)

    compose.logs("pocketbase_blog", follow=True, lines=20)

    cmd, kwargs = run.calls[0]
    assert cmd[-5:] == ["logs", "--tail", "20", "-f", "pocketbase_blog"]
    assert kwargs["timeout"] is None
    assert kwargs["capture_output"] is False


def test_remove_container_stops_then_removes(monkeypatch, compose):
    run = FakeRun()
    monkeypatch.setattr(orchestrator_module.subprocess, "run", run)

    compose.remove_container("pocketbase_old")

    assert [call[0] for call in run.calls] == [
        ["docker", "stop", "pocketbase_old"],
        ["docker", "rm", "-f", "pocketbase_old"],
    ]


def test_list_running_filters_prefix(monkeypatch, compose):
    run = FakeRun(stdout="pocketbase_blog\nold_pocketbase_x\npocketbase_shop\n\n")
    monkeypatch.setattr(orchestrator_module.subprocess, "run", run)

    assert compose.list_running() == ["pocketbase_blog", "pocketbase_shop"]
    assert "name=pocketbase_" in run.calls[0][0]


def test_container_states(monkeypatch, compose):
    monkeypatch.setattr(
        orchestrator_module.subprocess, "run", FakeRun(stdout="pocketbase_blog running\npocketbase_shop exited\n")
    )
    assert compose.container_states() == {"pocketbase_blog": "running", "pocketbase_shop": "exited"}


def test_is_service_running(monkeypatch, compose):
    monkeypatch.setattr(orchestrator_module.subprocess, "run", FakeRun(stdout="nginx\npocketbase_blog\n"))
    assert compose.is_service_running("nginx") is True
    assert compose.is_service_running("pocketbase_shop") is False


def test_stats(monkeypatch, compose):
    monkeypatch.setattr(
        orchestrator_module.subprocess, "run", FakeRun(stdout="pocketbase_blog\t0.12%\t20MiB / 2GiB\n")
    )
    stats = compose.stats(["pocketbase_blog"])
    assert len(stats) == 1
    assert stats[0].cpu == "0.12%"
    assert compose.stats([]) == []


def test_compose_command_falls_back_to_standalone(monkeypatch, tmp_path):
    monkeypatch.setattr(orchestrator_module.shutil, "which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(orchestrator_module.subprocess, "run", FakeRun(returncode=1, stderr="unknown command"))

    compose = DockerCompose(tmp_path, tmp_path / "docker-compose.yml")

    assert compose.compose_command() == ["docker-compose"]


def test_compose_command_prefers_plugin(monkeypatch, tmp_path):
    monkeypatch.setattr(orchestrator_module.shutil, "which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(orchestrator_module.subprocess, "run", FakeRun(stdout="Docker Compose version v2.27.0"))

    compose = DockerCompose(tmp_path, tmp_path / "docker-compose.yml")

    assert compose.compose_command() == ["docker", "compose"]


def test_compose_command_missing(monkeypatch, tmp_path):
    monkeypatch.setattr(orchestrator_module.shutil, "which", lambda name: None)

    with pytest.raises(OrchestratorError):
        DockerCompose(tmp_path, tmp_path / "docker-compose.yml").compose_command()
