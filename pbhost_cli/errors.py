"""Error taxonomy for pbhost operations"""


class PbhostError(Exception):
    """Base class for every failure reported to the user"""

    exit_code = 1


class InvalidArgument(PbhostError):
    """Bad name or port syntax. Raised before any side effect."""


class RegistryError(PbhostError):
    """Registry invariant violation. Raised before any side effect."""


class DuplicateName(RegistryError):
    def __init__(self, name: str):
        super().__init__(f"Project '{name}' already exists.")
        self.name = name


class PortConflict(RegistryError):
    def __init__(self, port: int, owner: str | None = None):
        detail = f" by project '{owner}'" if owner else " by another project"
        super().__init__(f"Port {port} is already in use{detail}.")
        self.port = port
        self.owner = owner


class NotFound(RegistryError):
    def __init__(self, name: str):
        super().__init__(f"Project '{name}' not found.")
        self.name = name


class PortSpaceExhausted(PbhostError):
    """No free port found within the allowed number of draws"""


class ConfigAnchorMissing(PbhostError):
    """A configuration file lacks the structure an edit depends on"""


class ManifestInvalid(PbhostError):
    """The orchestrator manifest cannot be parsed"""


class LockTimeout(PbhostError):
    """The registry lock could not be acquired in time"""


class DriftDetected(PbhostError):
    """Registry, routes and dependencies are out of sync"""

    def __init__(self, issues: list[dict]):
        lines = [f"  - {issue['message']}" for issue in issues]
        super().__init__(
            "Registry, routes and dependencies are out of sync:\n" + "\n".join(lines) + "\nRun 'pbhost sync' to repair."
        )
        self.issues = issues


class PartialFailureRolledBack(PbhostError):
    """A later step failed and earlier steps were reverted"""

    def __init__(self, step: str, cause: Exception):
        super().__init__(f"Failed while updating {step}: {cause}. Changes were rolled back.")
        self.step = step
        self.cause = cause


class PartialFailureManualInterventionRequired(PbhostError):
    """A later step failed and reverting earlier steps failed too"""

    def __init__(self, step: str, cause: Exception, artifacts: list[str]):
        super().__init__(
            f"Failed while updating {step}: {cause}. Rollback failed; "
            f"check these files by hand: {', '.join(artifacts)}"
        )
        self.step = step
        self.cause = cause
        self.artifacts = artifacts


class OrchestratorError(PbhostError):
    """An orchestrator command failed or timed out"""

    def __init__(self, message: str, command: list[str] | None = None, returncode: int | None = None, output: str = ""):
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.output = output
