"""
Service registry backed by the compose manifest.

Every registered project is one `<prefix><name>` service block. The
registry only touches those blocks; other services (the proxy included)
are left as they are.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from .errors import DuplicateName, ManifestInvalid, NotFound, PortConflict
from .manifest import ComposeManifest

logger = logging.getLogger("pbhost.registry")

HEALTH_CHECK_PATH = "/api/health"
DATA_MOUNT = "/pb_data"

_HTTP_FLAG = re.compile(r"--http[= ](?:\S*:)?(\d+)\b")


@dataclass(frozen=True)
class ServiceEntry:
    name: str
    port: int
    data_dir: str
    health_path: str = HEALTH_CHECK_PATH


def parse_command_port(command) -> int | None:
    """Extract the listen port from a `serve --http=host:port` command"""
    if isinstance(command, list):
        command = " ".join(str(part) for part in command)
    if not isinstance(command, str):
        return None
    match = _HTTP_FLAG.search(command)
    if not match:
        return None
    return int(match.group(1))


def parse_data_dir(volumes) -> str | None:
    """Find the host directory mounted at /pb_data"""
    if not isinstance(volumes, list):
        return None
    for volume in volumes:
        if isinstance(volume, str):
            parts = volume.split(":")
            if len(parts) >= 2 and parts[1] == DATA_MOUNT:
                source = parts[0]
                return source[2:] if source.startswith("./") else source
        elif isinstance(volume, dict) and volume.get("target") == DATA_MOUNT:
            source = str(volume.get("source", ""))
            return source[2:] if source.startswith("./") else (source or None)
    return None


class Registry:
    """Registered PocketBase projects, in manifest order"""

    def __init__(
        self,
        manifest: ComposeManifest,
        service_prefix: str = "pocketbase_",
        data_dir_prefix: str = "pb_data_",
        image: str = "local/pocketbase:latest",
    ):
        self.manifest = manifest
        self.service_prefix = service_prefix
        self.data_dir_prefix = data_dir_prefix
        self.image = image

    # ─────────────────────────────────────────────────────────────
    # Naming
    # ─────────────────────────────────────────────────────────────

    def service_name(self, name: str) -> str:
        return f"{self.service_prefix}{name}"

    def data_dir_for(self, name: str) -> str:
        return f"{self.data_dir_prefix}{name}"

    def project_name(self, service: str) -> str | None:
        """Map a service/container name back to a project name"""
        if service.startswith(self.service_prefix) and len(service) > len(self.service_prefix):
            return service[len(self.service_prefix) :]
        return None

    def new_entry(self, name: str, port: int) -> ServiceEntry:
        return ServiceEntry(name=name, port=port, data_dir=self.data_dir_for(name))

    # ─────────────────────────────────────────────────────────────
    # Block conversion
    # ─────────────────────────────────────────────────────────────

    def render_block(self, entry: ServiceEntry) -> dict[str, Any]:
        """Service block for one entry"""
        service = self.service_name(entry.name)
        return {
            "image": self.image,
            "container_name": service,
            "restart": "always",
            "command": f"serve --http=0.0.0.0:{entry.port}",
            "volumes": [f"./{entry.data_dir}:{DATA_MOUNT}"],
            "healthcheck": {
                "test": [
                    "CMD-SHELL",
                    f"wget --no-verbose --tries=1 --spider http://localhost:{entry.port}{entry.health_path} || exit 1",
                ],
                "interval": "30s",
                "timeout": "10s",
                "retries": 3,
            },
        }

    def _parse_block(self, name: str, block: Any) -> ServiceEntry:
        if not isinstance(block, dict):
            raise ManifestInvalid(f"Service '{self.service_name(name)}' is not a mapping")
        port = parse_command_port(block.get("command"))
        if port is None:
            raise ManifestInvalid(f"Cannot read the port of service '{self.service_name(name)}' from its command")
        data_dir = parse_data_dir(block.get("volumes")) or self.data_dir_for(name)
        return ServiceEntry(name=name, port=port, data_dir=data_dir)

    def _entries(self, data: dict[str, Any]) -> list[ServiceEntry]:
        entries = []
        for service, block in (data.get("services") or {}).items():
            name = self.project_name(str(service))
            if name is None:
                continue
            entries.append(self._parse_block(name, block))
        return entries

    # ─────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────

    def list(self) -> list[ServiceEntry]:
        """All entries in manifest order"""
        return self._entries(self.manifest.load())

    def names(self) -> list[str]:
        return [entry.name for entry in self.list()]

    def ports(self) -> set[int]:
        return {entry.port for entry in self.list()}

    def exists(self, name: str) -> bool:
        return any(entry.name == name for entry in self.list())

    def get(self, name: str) -> ServiceEntry:
        for entry in self.list():
            if entry.name == name:
                return entry
        raise NotFound(name)

    # ─────────────────────────────────────────────────────────────
    # Mutations
    # ─────────────────────────────────────────────────────────────

    def check_can_add(self, entry: ServiceEntry, entries: list[ServiceEntry] | None = None) -> None:
        """Raise if adding entry would break name or port uniqueness"""
        if entries is None:
            entries = self.list()
        for existing in entries:
            if existing.name == entry.name:
                raise DuplicateName(entry.name)
        for existing in entries:
            if existing.port == entry.port:
                raise PortConflict(entry.port, existing.name)

    def add(self, entry: ServiceEntry) -> None:
        """Append an entry and persist"""
        data = self.manifest.load()
        self.check_can_add(entry, self._entries(data))
        services = self.manifest.services(data)
        services[self.service_name(entry.name)] = self.render_block(entry)
        self.manifest.save(data)
        logger.info("Registered %s on port %d", entry.name, entry.port)

    def remove(self, name: str) -> ServiceEntry:
        """Delete an entry and persist. The data directory is kept."""
        data = self.manifest.load()
        for entry in self._entries(data):
            if entry.name == name:
                break
        else:
            raise NotFound(name)

        del data["services"][self.service_name(name)]
        self.manifest.save(data)
        logger.info("Unregistered %s", name)
        return entry
