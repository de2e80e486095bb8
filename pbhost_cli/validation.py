"""Project name and port validation"""

import logging
import re

from .errors import InvalidArgument

logger = logging.getLogger("pbhost.validation")

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

# Subdomain labels are limited to 63 characters (RFC 1035)
MAX_NAME_LENGTH = 63

# Keys with a special meaning inside an nginx map block
RESERVED_NAMES = {"default", "hostnames", "include", "volatile"}

MIN_PORT = 1024
MAX_PORT = 65535


def validate_name(name: str) -> str:
    """Validate a project name, returning it unchanged"""
    if not name:
        raise InvalidArgument("Project name cannot be empty.")

    if not NAME_PATTERN.match(name):
        logger.debug("Rejected project name: %r", name)
        raise InvalidArgument("Invalid project name. Use only letters, numbers, hyphens, and underscores.")

    if len(name) > MAX_NAME_LENGTH:
        raise InvalidArgument(f"Project name too long (max {MAX_NAME_LENGTH} characters).")

    # nginx matches map parameters case-sensitively
    if name in RESERVED_NAMES:
        raise InvalidArgument(f"'{name}' is reserved by the nginx route map.")

    return name


def validate_port(port) -> int:
    """
    Validate a port number given as int or string.

    Returns the port as int.
    """
    if isinstance(port, bool):
        raise InvalidArgument("Invalid port number. Use a number between 1024 and 65535.")
    if isinstance(port, str):
        text = port.strip()
        if not text.isdigit():
            raise InvalidArgument("Invalid port number. Use a number between 1024 and 65535.")
        port = int(text)
    if not isinstance(port, int) or port < MIN_PORT or port > MAX_PORT:
        raise InvalidArgument("Invalid port number. Use a number between 1024 and 65535.")
    return port


def is_valid_name(name: str) -> bool:
    """Non-raising variant of validate_name"""
    try:
        validate_name(name)
    except InvalidArgument:
        return False
    return True
