"""
Orchestrator manifest (docker-compose.yml) document access.

The manifest is loaded as a round-trip YAML tree and written back atomically:
- comments, quoting, flow style and anchors of untouched nodes survive
- key order is preserved
- writes go to a temp file that replaces the original
- the original file mode is kept
"""

import io
import logging
import os
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError
from ruamel.yaml.util import load_yaml_guess_indent

from .errors import ManifestInvalid

logger = logging.getLogger("pbhost.manifest")


def _round_trip_yaml(sequence_indent: int = 2, sequence_offset: int = 0) -> YAML:
    yaml = YAML(typ="rt")
    yaml.preserve_quotes = True
    yaml.width = 4096
    yaml.indent(mapping=2, sequence=sequence_indent, offset=sequence_offset)
    return yaml


def _sequence_style(text: str) -> tuple[int, int]:
    """(indent, dash offset) of block sequences as the file writes them"""
    _, indent, offset = load_yaml_guess_indent(text)
    if offset is None or offset < 0:
        return (2, 0)
    return (max(indent or 2, offset + 2), offset)


def atomic_write_text(path: Path, content: str) -> None:
    """Write text via temp file + replace so readers never see a partial file"""
    tmp = path.with_suffix(path.suffix + ".tmp")
    mode = None
    if path.exists():
        mode = path.stat().st_mode & 0o777
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            tmp.chmod(mode)
        tmp.replace(path)
    except OSError:
        tmp.unlink(missing_ok=True)
        raise


class ComposeManifest:
    """Structured read/write access to the compose manifest"""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._sequence = (2, 0)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> dict[str, Any]:
        """
        Load the manifest tree.

        A missing file reads as an empty document.
        """
        if not self.path.exists():
            return {}
        try:
            text = self.path.read_text(encoding="utf-8")
            self._sequence = _sequence_style(text)
            data = _round_trip_yaml(*self._sequence).load(text)
        except YAMLError as e:
            raise ManifestInvalid(f"Failed to parse {self.path}: {e}") from e
        except OSError as e:
            raise ManifestInvalid(f"Failed to read {self.path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ManifestInvalid(f"{self.path} must contain a mapping at the top level")

        services = data.get("services")
        if services is not None and not isinstance(services, dict):
            raise ManifestInvalid(f"'services' in {self.path} must be a mapping")
        return data

    def services(self, data: dict[str, Any]) -> dict[str, Any]:
        """Return the services node, creating it when absent"""
        services = data.get("services")
        if services is None:
            services = {}
            data["services"] = services
        return services

    def dump(self, data: dict[str, Any]) -> str:
        stream = io.StringIO()
        _round_trip_yaml(*self._sequence).dump(data, stream)
        return stream.getvalue()

    def save(self, data: dict[str, Any]) -> None:
        """Persist the tree atomically"""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_text(self.path, self.dump(data))
        logger.debug("Wrote manifest %s", self.path)

    def read_text(self) -> str | None:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def restore_text(self, content: str | None) -> None:
        """Put back a previously captured file content"""
        if content is None:
            self.path.unlink(missing_ok=True)
            return
        atomic_write_text(self.path, content)
