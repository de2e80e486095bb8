"""
Subprocess timeout constants for orchestrator calls.

Every docker / docker compose invocation goes through these values so that
no command can hang a pbhost invocation indefinitely.
"""

# Timeout constants (in seconds)

# Short operations (< 5 seconds)
TIMEOUT_QUICK = 5
"""Quick operations: version checks, listing containers."""

# Standard operations (< 30 seconds)
TIMEOUT_STANDARD = 30
"""Standard operations: stop/remove containers, most commands."""

# Long operations (< 60 seconds)
TIMEOUT_LONG = 60
"""Long operations: pulling and starting services, restarts."""

# Extended operations (< 120 seconds)
TIMEOUT_EXTENDED = 120
"""Extended operations: starting every service, system prune."""

# Image builds compile PocketBase from source
TIMEOUT_BUILD = 1800
"""Image builds: git clone plus a Go build."""

# Interactive operations (no timeout)
TIMEOUT_NONE = None
"""Interactive operations: following logs until Ctrl+C."""


# Operation-specific timeouts for orchestrator operations
TIMEOUTS = {
    # Tool detection
    "docker_version": TIMEOUT_QUICK,
    "compose_version": TIMEOUT_QUICK,
    "docker_info": TIMEOUT_QUICK,

    # Queries
    "docker_ps": TIMEOUT_QUICK,
    "docker_stats": TIMEOUT_STANDARD,
    "compose_ps": TIMEOUT_STANDARD,

    # Lifecycle
    "compose_up": TIMEOUT_LONG,
    "compose_up_all": TIMEOUT_EXTENDED,
    "compose_stop": TIMEOUT_LONG,
    "compose_restart": TIMEOUT_LONG,
    "docker_stop": TIMEOUT_STANDARD,
    "docker_rm": TIMEOUT_STANDARD,
    "docker_prune": TIMEOUT_EXTENDED,

    # Logs
    "compose_logs": TIMEOUT_STANDARD,
    "compose_logs_follow": TIMEOUT_NONE,  # Interactive - no timeout

    # Images
    "docker_build": TIMEOUT_BUILD,
}


def get_timeout(operation: str, default: int = TIMEOUT_STANDARD) -> int | None:
    """
    Get the recommended timeout for a specific operation.

    Args:
        operation: Operation name (e.g., "compose_up", "docker_ps")
        default: Default timeout if operation not found

    Returns:
        Timeout in seconds, or None for interactive operations

    Examples:
        >>> get_timeout("docker_ps")
        5
        >>> get_timeout("compose_up")
        60
        >>> get_timeout("compose_logs_follow")

        >>> get_timeout("unknown_operation")
        30
    """
    return TIMEOUTS.get(operation, default)
