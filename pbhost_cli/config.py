"""Configuration management for pbhost.yml and environment overrides"""

import logging
import os
from pathlib import Path

import yaml

from .errors import InvalidArgument

logger = logging.getLogger("pbhost.config")

CONFIG_FILENAMES = ("pbhost.yml", "pbhost.yaml")


class PbhostConfig:
    """
    Manages per-deployment pbhost.yml configuration.

    Schema:
        compose_file: str     # Orchestrator manifest (default: docker-compose.yml)
        nginx_conf: str       # Routing configuration (default: nginx.conf)
        service_prefix: str   # Prefix of managed services (default: pocketbase_)
        data_dir_prefix: str  # Prefix of data directories (default: pb_data_)
        proxy_service: str    # Front-end service name (default: nginx)
        image: str            # Backend image tag
        domain: str           # Base domain for subdomain routing
        port_range: [int, int]
        default_port: int     # Fallback port of the route map
        route_anchor: str     # Line after which the route map is created
        lock_timeout: float   # Seconds to wait for the registry lock
        port_attempts: int    # Random draws before giving up
    """

    DEFAULT_CONFIG = {
        "compose_file": "docker-compose.yml",
        "nginx_conf": "nginx.conf",
        "service_prefix": "pocketbase_",
        "data_dir_prefix": "pb_data_",
        "proxy_service": "nginx",
        "image": "local/pocketbase:latest",
        "domain": "localhost",
        "port_range": [8100, 8999],
        "default_port": 8090,
        "route_anchor": "resolver 127.0.0.11",
        "lock_timeout": 10.0,
        "port_attempts": 100,
    }

    STRING_KEYS = (
        "compose_file",
        "nginx_conf",
        "service_prefix",
        "data_dir_prefix",
        "proxy_service",
        "image",
        "domain",
        "route_anchor",
    )

    def __init__(self, start_path: Path | None = None):
        env_workdir = os.getenv("PBHOST_WORKDIR")
        if start_path is None and env_workdir:
            start_path = Path(env_workdir)
        self.start_path = Path(start_path or os.getcwd()).resolve()
        self.config_file: Path | None = None
        self.config: dict = {}
        self._find_and_load()
        self._apply_env()

    def _find_and_load(self):
        """Search for pbhost.yml in current and parent directories"""
        current = self.start_path

        # Search up to 10 levels (prevent infinite loop)
        for _ in range(10):
            for filename in CONFIG_FILENAMES:
                config_path = current / filename
                if config_path.exists():
                    self.config_file = config_path
                    self._load_yaml()
                    return

            parent = current.parent
            if parent == current:
                break
            current = parent

        self.config = self.DEFAULT_CONFIG.copy()

    def _load_yaml(self):
        """Load config from YAML file"""
        try:
            with open(self.config_file, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise InvalidArgument(f"Failed to load {self.config_file}: {e}") from e

        if not isinstance(data, dict):
            raise InvalidArgument(f"{self.config_file} must contain a mapping")

        unknown = sorted(set(data) - set(self.DEFAULT_CONFIG))
        if unknown:
            logger.warning("Ignoring unknown keys in %s: %s", self.config_file, ", ".join(unknown))

        values = {k: v for k, v in data.items() if k in self.DEFAULT_CONFIG}
        self._validate(values)
        self.config = {**self.DEFAULT_CONFIG, **values}

    def _validate(self, values: dict):
        """Reject values of the wrong shape before any command uses them"""

        def fail(key, expected):
            raise InvalidArgument(f"Invalid {key} in {self.config_file}: {values[key]!r} (expected {expected})")

        def is_int(value):
            return isinstance(value, int) and not isinstance(value, bool)

        for key in self.STRING_KEYS:
            if key in values and (not isinstance(values[key], str) or not values[key].strip()):
                fail(key, "a non-empty string")

        if "port_range" in values:
            port_range = values["port_range"]
            if (
                not isinstance(port_range, list)
                or len(port_range) != 2
                or not all(is_int(port) and 1 <= port <= 65535 for port in port_range)
                or port_range[0] > port_range[1]
            ):
                fail("port_range", "[low, high] ports with low <= high")

        if "default_port" in values and not (is_int(values["default_port"]) and 1 <= values["default_port"] <= 65535):
            fail("default_port", "a port number")

        if "port_attempts" in values and not (is_int(values["port_attempts"]) and values["port_attempts"] >= 1):
            fail("port_attempts", "a positive integer")

        lock_timeout = values.get("lock_timeout", 0)
        if not (isinstance(lock_timeout, (int, float)) and not isinstance(lock_timeout, bool) and lock_timeout >= 0):
            fail("lock_timeout", "a number of seconds")

    def _apply_env(self):
        """Environment variables win over the config file"""
        overrides = {
            "PBHOST_DOMAIN": "domain",
            "PBHOST_COMPOSE_FILE": "compose_file",
            "PBHOST_NGINX_CONF": "nginx_conf",
        }
        for env_name, key in overrides.items():
            value = os.environ.get(env_name, "").strip()
            if value:
                self.config[key] = value

    def save(self, path: Path | None = None) -> Path:
        """Save config to YAML file"""
        save_path = path or self.config_file or (self.start_path / CONFIG_FILENAMES[0])
        with open(save_path, "w", encoding="utf-8") as f:
            yaml.dump(self.config, f, default_flow_style=False, sort_keys=False)
        self.config_file = save_path
        return save_path

    @property
    def workdir(self) -> Path:
        """Directory that relative paths resolve against"""
        if self.config_file is not None:
            return self.config_file.parent
        return self.start_path

    def _resolve(self, value: str) -> Path:
        path = Path(value).expanduser()
        if not path.is_absolute():
            path = self.workdir / path
        return path

    @property
    def compose_file(self) -> Path:
        return self._resolve(self.config["compose_file"])

    @property
    def nginx_conf(self) -> Path:
        return self._resolve(self.config["nginx_conf"])

    @property
    def lock_file(self) -> Path:
        compose = self.compose_file
        return compose.with_name(compose.name + ".lock")

    @property
    def service_prefix(self) -> str:
        return self.config.get("service_prefix") or "pocketbase_"

    @property
    def data_dir_prefix(self) -> str:
        return self.config.get("data_dir_prefix") or "pb_data_"

    @property
    def proxy_service(self) -> str:
        return self.config.get("proxy_service") or "nginx"

    @property
    def image(self) -> str:
        return self.config.get("image") or "local/pocketbase:latest"

    @property
    def domain(self) -> str:
        return (self.config.get("domain") or "localhost").strip().lower()

    @property
    def port_range(self) -> tuple[int, int]:
        low, high = self.config.get("port_range") or (8100, 8999)
        low, high = int(low), int(high)
        if low > high:
            raise InvalidArgument(f"Invalid port_range: {low} > {high}")
        return (low, high)

    @property
    def default_port(self) -> int:
        return int(self.config.get("default_port") or 8090)

    @property
    def route_anchor(self) -> str:
        return self.config.get("route_anchor") or "resolver 127.0.0.11"

    @property
    def lock_timeout(self) -> float:
        return float(self.config.get("lock_timeout", 10.0))

    @property
    def port_attempts(self) -> int:
        return int(self.config.get("port_attempts", 100))

    def url_for(self, name: str) -> str:
        """Public URL of a project"""
        return f"http://{name}.{self.domain}"

    def exists(self) -> bool:
        """Check if a pbhost.yml file was found"""
        return self.config_file is not None
