"""Failure kinds raised by the client administration core."""

from pathlib import Path
from typing import Optional


class ClientRegistryError(Exception):
    """Base class for every failure surfaced to the registry caller."""
    pass


class InvalidName(ClientRegistryError):
    """Client name does not match the accepted pattern."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Invalid client name: {name!r}")


class AlreadyExists(ClientRegistryError):
    """A valid certificate already exists for the client name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Client already exists: {name}")


class NotFound(ClientRegistryError):
    """No valid certificate exists for the client name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Client not found: {name}")


class LedgerUnreadable(ClientRegistryError):
    """The PKI index file could not be read or parsed."""
    pass


class MissingMaterial(ClientRegistryError):
    """A certificate, key, secret or template file is absent."""

    def __init__(self, path: Path):
        self.path = Path(path)
        super().__init__(f"Missing material: {path}")


class FilesystemFailure(ClientRegistryError):
    """A file operation failed for a reason other than missing material."""

    failed_step: Optional[str] = None


class ToolchainFailure(ClientRegistryError):
    """The toolchain output was classified as a failure."""

    failed_step: Optional[str] = None

    def __init__(self, output: str, returncode: Optional[int] = None):
        self.output = output
        self.returncode = returncode
        super().__init__(output)


class ToolchainTimeout(ClientRegistryError):
    """The toolchain command did not finish within its time limit."""

    failed_step: Optional[str] = None

    def __init__(self, argv: list, timeout: float):
        self.argv = list(argv)
        self.timeout = timeout
        super().__init__(f"Timed out after {timeout}s: {' '.join(self.argv)}")


class ProcessFailure(ClientRegistryError):
    """The toolchain command could not be spawned at all."""

    failed_step: Optional[str] = None
