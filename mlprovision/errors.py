from __future__ import annotations

from typing import List, Optional, Sequence


class WalkthroughHalt(Exception):
    """
    User-guided stop: a precondition is missing or a confirmation was declined.
    The CLI prints the guidance and exits normally.
    """

    def __init__(self, message: str, *, step: Optional[str] = None, missing: Sequence[str] = ()) -> None:
        self.step = step
        self.missing: List[str] = list(missing)
        super().__init__(message)


class ProvisioningError(Exception):
    """Base class for fatal failures that abort the whole run."""


class ProviderCommandError(ProvisioningError):
    """The external CLI returned a failure status."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        detail = f"\n{stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(f"command failed (exit {returncode}): {' '.join(self.command)}{detail}")


class AmbiguousResourceError(ProvisioningError):
    def __init__(self, kind: str, name: str, count: int) -> None:
        self.kind = kind
        self.name = name
        self.count = count
        super().__init__(f"{count} {kind} resources are named '{name}'; refusing to pick one")


class ProvisioningInconsistency(ProvisioningError):
    """A resource reported as created could not be resolved afterwards."""


class PreflightError(ProvisioningError):
    pass


class CommandPackError(ProvisioningError):
    pass
