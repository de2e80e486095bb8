import yaml

from pbhost_cli.config import PbhostConfig
from pbhost_cli.scaffold import scaffold_files, write_scaffold


def test_write_scaffold(tmp_path):
    config = PbhostConfig(tmp_path)

    written, skipped = write_scaffold(config)

    assert sorted(path.name for path in written) == ["Dockerfile", "docker-compose.yml", "nginx.conf"]
    assert skipped == []

    compose = yaml.safe_load((tmp_path / "docker-compose.yml").read_text(encoding="utf-8"))
    nginx = compose["services"]["nginx"]
    assert nginx["image"] == "nginx:alpine"
    assert "./nginx.conf:/etc/nginx/nginx.conf:ro" in nginx["volumes"]

    conf = (tmp_path / "nginx.conf").read_text(encoding="utf-8")
    assert "resolver 127.0.0.11" in conf
    assert "proxy_pass http://pocketbase_$project:$upstream_port;" in conf
    assert r"\.localhost$" in conf
    assert "__" not in conf

    assert "pocketbase" in (tmp_path / "Dockerfile").read_text(encoding="utf-8").lower()


def test_existing_files_are_kept(tmp_path):
    config = PbhostConfig(tmp_path)
    (tmp_path / "nginx.conf").write_text("# mine\n", encoding="utf-8")

    written, skipped = write_scaffold(config)

    assert [path.name for path in skipped] == ["nginx.conf"]
    assert (tmp_path / "nginx.conf").read_text(encoding="utf-8") == "# mine\n"
    assert len(written) == 2

    written, skipped = write_scaffold(config, force=True)
    assert len(written) == 3
    assert (tmp_path / "nginx.conf").read_text(encoding="utf-8") != "# mine\n"


def test_domain_is_escaped(tmp_path, monkeypatch):
    monkeypatch.setenv("PBHOST_DOMAIN", "Example.COM")
    config = PbhostConfig(tmp_path)

    files = scaffold_files(config)

    assert r"\.example\.com$" in files[config.nginx_conf]
