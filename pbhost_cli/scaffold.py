"""Starter files for a new pbhost deployment"""

import logging
import re
from pathlib import Path

from .config import PbhostConfig
from .manifest import atomic_write_text

logger = logging.getLogger("pbhost.scaffold")

TEMPLATES_DIR = Path(__file__).parent / "templates"


def _render(template: str, config: PbhostConfig) -> str:
    text = (TEMPLATES_DIR / template).read_text(encoding="utf-8")
    replacements = {
        "__DOMAIN_PATTERN__": re.escape(config.domain),
        "__SERVICE_PREFIX__": config.service_prefix,
        "__PROXY_SERVICE__": config.proxy_service,
        "__NGINX_CONF__": config.config["nginx_conf"],
    }
    for placeholder, value in replacements.items():
        text = text.replace(placeholder, value)
    return text


def scaffold_files(config: PbhostConfig) -> dict[Path, str]:
    """Target path -> rendered content"""
    return {
        config.compose_file: _render("docker-compose.yml.tmpl", config),
        config.nginx_conf: _render("nginx.conf.tmpl", config),
        config.workdir / "Dockerfile": _render("Dockerfile.tmpl", config),
    }


def write_scaffold(config: PbhostConfig, force: bool = False) -> tuple[list[Path], list[Path]]:
    """
    Write starter files into the working directory.

    Existing files are kept unless force is set.

    Returns:
        (written, skipped)
    """
    written, skipped = [], []
    for path, content in scaffold_files(config).items():
        if path.exists() and not force:
            skipped.append(path)
            continue
        path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_text(path, content)
        logger.info("Wrote %s", path)
        written.append(path)
    return written, skipped
