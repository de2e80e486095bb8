"""
Route table synthesis for nginx.conf.

pbhost owns a single block of the routing configuration:

    map $project $upstream_port {
        default    8090;
        app1    8123;
    }

The file is split into the lines before the block, the block itself and the
lines after it. Only the block is ever re-rendered; everything else is
written back exactly as it was read.
"""

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigAnchorMissing
from .manifest import atomic_write_text

logger = logging.getLogger("pbhost.routes")

DEFAULT_KEY = "default"
MAP_HEADER = re.compile(r"^(?P<indent>[ \t]*)map\s+\$project\s+\$upstream_port\s*\{\s*(#.*)?$")
MAP_CLOSE = re.compile(r"^[ \t]*\}\s*(#.*)?$")
MAP_ENTRY = re.compile(r"^(?P<indent>[ \t]*)(?P<key>[^\s#;{}]+)\s+(?P<port>\d+)\s*;\s*(#.*)?$")


@dataclass
class RouteLine:
    raw: str
    key: str | None = None
    port: int | None = None

    @classmethod
    def parse(cls, raw: str) -> "RouteLine":
        match = MAP_ENTRY.match(raw.rstrip("\r\n"))
        if not match:
            return cls(raw=raw)
        return cls(raw=raw, key=match.group("key"), port=int(match.group("port")))


def _ensure_newline(line: str) -> str:
    return line if line.endswith("\n") else line + "\n"


@dataclass
class RoutingConfig:
    """nginx.conf split around the managed map block"""

    before: list[str] = field(default_factory=list)
    header: str | None = None
    body: list[RouteLine] = field(default_factory=list)
    closing: str | None = None
    after: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> "RoutingConfig":
        lines = text.splitlines(keepends=True)
        for idx, line in enumerate(lines):
            if MAP_HEADER.match(line.rstrip("\r\n")):
                break
        else:
            return cls(before=lines)

        for end in range(idx + 1, len(lines)):
            if MAP_CLOSE.match(lines[end].rstrip("\r\n")):
                break
        else:
            raise ConfigAnchorMissing("Route map block in nginx config is not terminated with '}'")

        return cls(
            before=lines[:idx],
            header=lines[idx],
            body=[RouteLine.parse(line) for line in lines[idx + 1 : end]],
            closing=lines[end],
            after=lines[end + 1 :],
        )

    @property
    def has_block(self) -> bool:
        return self.header is not None

    def render(self) -> str:
        if not self.has_block:
            return "".join(self.before)
        parts = list(self.before)
        parts.append(self.header)
        parts.extend(line.raw for line in self.body)
        parts.append(self.closing)
        parts.extend(self.after)
        return "".join(parts)

    def entries(self) -> list[tuple[str, int]]:
        return [(line.key, line.port) for line in self.body if line.key is not None]

    def _entry_indent(self) -> str:
        for line in self.body:
            if line.key is not None:
                return MAP_ENTRY.match(line.raw.rstrip("\r\n")).group("indent")
        header_indent = MAP_HEADER.match(self.header.rstrip("\r\n")).group("indent")
        return header_indent + "    "

    def _entry_line(self, key: str, port: int) -> RouteLine:
        return RouteLine(raw=f"{self._entry_indent()}{key}    {port};\n", key=key, port=port)

    def create_block(self, anchor: str, default_port: int) -> None:
        """Insert an empty map block (default entry only) after the anchor line"""
        for idx, line in enumerate(self.before):
            stripped = line.strip()
            if anchor in stripped and not stripped.startswith("#"):
                break
        else:
            raise ConfigAnchorMissing(f"Anchor '{anchor}' not found in nginx config; cannot create route map")

        indent = re.match(r"^([ \t]*)", self.before[idx]).group(1)
        head = self.before[:idx] + [_ensure_newline(self.before[idx]), "\n"]
        self.after = self.before[idx + 1 :]
        self.before = head
        self.header = f"{indent}map $project $upstream_port {{\n"
        self.body = []
        self.closing = f"{indent}}}\n"
        self.body.append(self._entry_line(DEFAULT_KEY, default_port))

    def discard(self, key: str, port: int | None = None) -> int:
        """Remove lines for key (and exactly port when given)"""
        kept = []
        removed = 0
        for line in self.body:
            if line.key == key and (port is None or line.port == port):
                removed += 1
                continue
            kept.append(line)
        self.body = kept
        return removed

    def set(self, key: str, port: int) -> None:
        """Map key to port as the last entry, replacing older lines for key"""
        current = [line.port for line in self.body if line.key == key]
        if current == [port]:
            return
        self.discard(key)
        line = self._entry_line(key, port)
        # Trailing comments and blank lines stay below the entries
        insert_at = 0
        for idx, existing in enumerate(self.body):
            if existing.key is not None:
                insert_at = idx + 1
        self.body.insert(insert_at, line)

    def ensure_default(self, default_port: int) -> None:
        if any(line.key == DEFAULT_KEY for line in self.body):
            return
        self.body.insert(0, self._entry_line(DEFAULT_KEY, default_port))


class RouteSynthesizer:
    """Owns the route map block of the nginx config file"""

    def __init__(self, path: Path, anchor: str = "resolver 127.0.0.11", default_port: int = 8090):
        self.path = Path(path)
        self.anchor = anchor
        self.default_port = default_port

    def read_text(self) -> str | None:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def restore_text(self, content: str | None) -> None:
        if content is None:
            return
        atomic_write_text(self.path, content)

    def load(self) -> RoutingConfig:
        text = self.read_text()
        if text is None:
            raise ConfigAnchorMissing(f"nginx config not found: {self.path}")
        return RoutingConfig.parse(text)

    def _commit(self, config: RoutingConfig, original: str) -> bool:
        rendered = config.render()
        if rendered == original:
            return False
        atomic_write_text(self.path, rendered)
        return True

    def read_routes(self) -> list[tuple[str, int]]:
        """Entries of the map block, default included, in file order"""
        if not self.path.exists():
            return []
        return self.load().entries()

    def _load_with_block(self) -> tuple[RoutingConfig, str]:
        original = self.read_text()
        if original is None:
            raise ConfigAnchorMissing(f"nginx config not found: {self.path}")
        config = RoutingConfig.parse(original)
        if not config.has_block:
            config.create_block(self.anchor, self.default_port)
            logger.info("Created route map block in %s", self.path)
        return config, original

    def add_route(self, name: str, port: int) -> bool:
        """Map name to port. Returns True when the file changed."""
        config, original = self._load_with_block()
        config.set(name, port)
        changed = self._commit(config, original)
        if changed:
            logger.info("Added route %s -> %d", name, port)
        return changed

    def remove_route(self, name: str, port: int | None = None) -> bool:
        """Delete the route line(s) for name. Returns True when the file changed."""
        original = self.read_text()
        if original is None:
            return False
        config = RoutingConfig.parse(original)
        if not config.has_block:
            return False
        config.discard(name, port)
        changed = self._commit(config, original)
        if changed:
            logger.info("Removed route %s", name)
        return changed

    def sync(self, entries: Iterable) -> bool:
        """
        Make the map block equal default + entries.

        `entries` holds ServiceEntry-like objects with name/port. Returns True
        when the file changed; an already consistent file is not rewritten.
        """
        desired = {entry.name: entry.port for entry in entries}
        config, original = self._load_with_block()
        config.ensure_default(self.default_port)

        seen: set[str] = set()
        kept = []
        for line in config.body:
            if line.key is None or line.key == DEFAULT_KEY:
                kept.append(line)
                continue
            if desired.get(line.key) == line.port and line.key not in seen:
                seen.add(line.key)
                kept.append(line)
        config.body = kept

        for name, port in desired.items():
            if name not in seen:
                config.set(name, port)

        changed = self._commit(config, original)
        if changed:
            logger.info("Synchronized route map in %s", self.path)
        return changed
