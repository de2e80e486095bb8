"""Port allocation for new projects"""

import logging
import random
from collections.abc import Iterable

from .errors import PortConflict, PortSpaceExhausted
from .validation import validate_port

logger = logging.getLogger("pbhost.ports")

DEFAULT_PORT_RANGE = (8100, 8999)
DEFAULT_ATTEMPTS = 100


def allocate_port(
    used_ports: Iterable[int],
    port_range: tuple[int, int] = DEFAULT_PORT_RANGE,
    attempts: int = DEFAULT_ATTEMPTS,
    rng: random.Random | None = None,
) -> int:
    """
    Draw a random port from port_range (inclusive) that is not in used_ports.

    Raises PortSpaceExhausted after `attempts` rejected draws.
    """
    used = set(used_ports)
    low, high = port_range
    rng = rng or random.Random()

    for attempt in range(1, attempts + 1):
        candidate = rng.randint(low, high)
        if candidate not in used:
            logger.debug("Allocated port %d after %d draw(s)", candidate, attempt)
            return candidate

    raise PortSpaceExhausted(f"No free port found in {low}-{high} after {attempts} attempts.")


def validate_requested_port(port, used_ports: Iterable[int], owners: dict[int, str] | None = None) -> int:
    """Check an explicit port for range and uniqueness"""
    port = validate_port(port)
    if port in set(used_ports):
        raise PortConflict(port, (owners or {}).get(port))
    return port
