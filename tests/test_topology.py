"""Tests for drift detection and topology repair"""

import pytest

from pbhost_cli.topology import apply_topology, check_drift


def _drift_codes(dispatcher):
    return check_drift(dispatcher.registry, dispatcher.routes, dispatcher.deps).codes()


def _edit_nginx(config, old, new):
    text = config.nginx_conf.read_text(encoding="utf-8")
    assert old in text
    config.nginx_conf.write_text(text.replace(old, new), encoding="utf-8")


def _edit_depends_on(dispatcher, depends_on):
    data = dispatcher.manifest.load()
    nginx = data["services"]["nginx"]
    if depends_on is None:
        nginx.pop("depends_on", None)
    else:
        nginx["depends_on"] = depends_on
    dispatcher.manifest.save(data)


@pytest.fixture
def populated(dispatcher):
    dispatcher.add("app1", 8123, start=False)
    dispatcher.add("app2", 8456, start=False)
    return dispatcher


def test_fresh_workspace_has_no_drift(dispatcher):
    assert _drift_codes(dispatcher) == []


def test_consistent_after_adds(populated):
    assert _drift_codes(populated) == []


def test_route_missing(populated, config):
    _edit_nginx(config, "        app1    8123;\n", "")
    assert _drift_codes(populated) == ["route_missing"]


def test_route_port_mismatch(populated, config):
    _edit_nginx(config, "app1    8123;", "app1    8999;")
    assert _drift_codes(populated) == ["route_port_mismatch"]


def test_route_duplicate_and_orphan(populated, config):
    _edit_nginx(config, "        app1    8123;\n", "        app1    8123;\n        app1    8123;\n        ghost    8300;\n")
    assert sorted(_drift_codes(populated)) == ["route_duplicate", "route_orphan"]


def test_default_missing(populated, config):
    _edit_nginx(config, "        default    8090;\n", "")
    assert _drift_codes(populated) == ["default_missing"]


def test_dependency_issues(populated):
    _edit_depends_on(populated, ["pocketbase_app1", "pocketbase_app1", "pocketbase_ghost", "db"])
    assert sorted(_drift_codes(populated)) == ["dependency_duplicate", "dependency_missing", "dependency_orphan"]


def test_issue_details(populated, config):
    _edit_nginx(config, "app1    8123;", "app1    8999;")
    report = check_drift(populated.registry, populated.routes, populated.deps)
    assert not report.ok
    issue = report.issues[0]
    assert "8999" in issue["message"]
    assert "pbhost sync" in issue["fix"]


def test_apply_topology_repairs_everything(populated, config):
    _edit_nginx(config, "        app1    8123;\n", "        ghost    8300;\n")
    _edit_depends_on(populated, None)

    changes = apply_topology(populated.registry, populated.routes, populated.deps)

    assert changes.routes_changed and changes.dependencies_changed
    assert _drift_codes(populated) == []
    assert populated.routes.read_routes() == [("default", 8090), ("app2", 8456), ("app1", 8123)]
    assert populated.deps.read() == ["pocketbase_app1", "pocketbase_app2"]

    again = apply_topology(populated.registry, populated.routes, populated.deps)
    assert not again.changed


def test_apply_topology_restores_routes_when_dependencies_fail(populated, config, monkeypatch):
    _edit_nginx(config, "        app1    8123;\n", "")
    before = config.nginx_conf.read_text(encoding="utf-8")

    def fail(_services):
        raise OSError("disk full")

    monkeypatch.setattr(populated.deps, "sync", fail)

    with pytest.raises(OSError):
        apply_topology(populated.registry, populated.routes, populated.deps)

    assert config.nginx_conf.read_text(encoding="utf-8") == before
