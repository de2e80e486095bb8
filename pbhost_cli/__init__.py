"""
pbhost - run several PocketBase projects behind one nginx reverse proxy

Keeps the docker-compose service registry, the nginx route map and the proxy
dependencies consistent with each other.
"""

__version__ = "0.1.0"

from .config import PbhostConfig
from .dispatcher import Dispatcher
from .errors import PbhostError
from .registry import ServiceEntry

__all__ = [
    "Dispatcher",
    "PbhostConfig",
    "PbhostError",
    "ServiceEntry",
    "__version__",
]
