"""Proxy startup dependencies in the compose manifest"""

import logging
from collections.abc import Iterable
from typing import Any

from .errors import ConfigAnchorMissing
from .manifest import ComposeManifest

logger = logging.getLogger("pbhost.dependencies")


class DependencyLinker:
    """
    Keeps `services.<proxy>.depends_on` listing every registered service.

    Only dependencies carrying the service prefix are managed; any other
    dependency the proxy declares is left alone.
    """

    def __init__(self, manifest: ComposeManifest, proxy_service: str = "nginx", service_prefix: str = "pocketbase_"):
        self.manifest = manifest
        self.proxy_service = proxy_service
        self.service_prefix = service_prefix

    def _proxy_block(self, data: dict[str, Any]) -> dict[str, Any]:
        services = data.get("services") or {}
        block = services.get(self.proxy_service)
        if not isinstance(block, dict):
            raise ConfigAnchorMissing(
                f"Proxy service '{self.proxy_service}' not found in {self.manifest.path}; "
                "cannot declare its dependencies"
            )
        return block

    @staticmethod
    def _as_list(depends_on) -> list[str]:
        if depends_on is None:
            return []
        if isinstance(depends_on, dict):
            return [str(key) for key in depends_on]
        if isinstance(depends_on, list):
            return [str(item) for item in depends_on]
        return [str(depends_on)]

    def read(self) -> list[str]:
        """Service names the proxy depends on, in declaration order"""
        services = self.manifest.load().get("services") or {}
        block = services.get(self.proxy_service)
        if not isinstance(block, dict):
            return []
        return self._as_list(block.get("depends_on"))

    def _add(self, block: dict[str, Any], service: str) -> bool:
        depends_on = block.get("depends_on")
        if depends_on is None:
            block["depends_on"] = [service]
            return True
        if service in self._as_list(depends_on):
            return False
        if isinstance(depends_on, dict):
            depends_on[service] = {"condition": "service_started"}
        elif isinstance(depends_on, list):
            depends_on.append(service)
        else:
            block["depends_on"] = [str(depends_on), service]
        return True

    def _drop(self, block: dict[str, Any], service: str) -> bool:
        depends_on = block.get("depends_on")
        removed = False
        if isinstance(depends_on, dict):
            if service in depends_on:
                del depends_on[service]
                removed = True
        elif isinstance(depends_on, list):
            for index in reversed(range(len(depends_on))):
                if depends_on[index] == service:
                    del depends_on[index]
                    removed = True
        elif depends_on == service:
            depends_on = []
            removed = True
        if removed and not depends_on and "depends_on" in block:
            del block["depends_on"]
        return removed

    def link(self, service: str) -> bool:
        """Declare a dependency on service. Returns True when the manifest changed."""
        data = self.manifest.load()
        block = self._proxy_block(data)
        if not self._add(block, service):
            return False
        self.manifest.save(data)
        logger.info("Proxy now depends on %s", service)
        return True

    def unlink(self, service: str) -> bool:
        """Drop the dependency on service. Returns True when the manifest changed."""
        data = self.manifest.load()
        block = self._proxy_block(data)
        if not self._drop(block, service):
            return False
        self.manifest.save(data)
        logger.info("Proxy no longer depends on %s", service)
        return True

    def sync(self, services: Iterable[str]) -> bool:
        """Make the managed dependencies equal `services`"""
        desired = list(services)
        data = self.manifest.load()
        block = self._proxy_block(data)

        changed = False
        current = self._as_list(block.get("depends_on"))
        seen: set[str] = set()
        for item in current:
            if not item.startswith(self.service_prefix):
                continue
            if item not in desired or item in seen:
                # Drops every copy; the first wanted one is re-added below
                changed |= self._drop(block, item)
            else:
                seen.add(item)

        for service in desired:
            if service not in self._as_list(block.get("depends_on")):
                changed |= self._add(block, service)

        if changed:
            self.manifest.save(data)
            logger.info("Synchronized proxy dependencies in %s", self.manifest.path)
        return changed
