"""Client registry: list, create, revoke and fetch VPN client identities."""

import asyncio
import logging
from typing import List, Optional

from ..errors import AlreadyExists, FilesystemFailure, NotFound
from ..toolchain import ClientIdentity, CommandRunner, CRLStatus, IdentityStatus, IndexStore
from .config_assembler import ConfigAssembler
from .locks import KeyedLock
from .models import CLIENT_NAME_PATTERN, validate_client_name
from .revocation import RevocationCoordinator
from .settings import RegistrySettings

logger = logging.getLogger(__name__)


def _read_bundle(path) -> Optional[str]:
    try:
        return path.read_text()
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as e:
        raise FilesystemFailure(f"Cannot read {path}: {e}") from e


class ClientRegistry:
    """Façade over the ledger, toolchain, bundle assembly and revocation."""

    def __init__(
        self,
        settings: RegistrySettings,
        runner: Optional[CommandRunner] = None,
        index: Optional[IndexStore] = None,
    ):
        """
        Initialize the registry.

        Args:
            settings: Registry settings
            runner: Command runner (defaults to one using settings.command_timeout)
            index: Index store (defaults to one reading settings.index_path)
        """
        self.settings = settings
        self.runner = runner or CommandRunner(timeout=settings.command_timeout)
        self.index = index or IndexStore(settings.index_path)
        self.assembler = ConfigAssembler(settings)
        self.revocation = RevocationCoordinator(settings, self.runner)
        self._locks = KeyedLock()

        logger.info(f"Client registry initialized (easy-rsa: {settings.easy_rsa_dir})")

    async def _require_valid(self, name: str) -> None:
        # Names outside the pattern cannot map to a safe bundle path
        if not CLIENT_NAME_PATTERN.fullmatch(name) or not await self.index.exists(name):
            raise NotFound(name)

    async def list(self) -> List[str]:
        """List names of clients holding a valid certificate."""
        return await self.index.list_valid_names()

    async def identities(self) -> List[ClientIdentity]:
        """List every identity in the ledger, including revoked and expired ones."""
        return await self.index.identities()

    async def create(self, name: str, encrypt_key: bool = False) -> str:
        """
        Issue a client certificate and build its bundle.

        Args:
            name: Client name
            encrypt_key: Protect the private key with a passphrase

        Returns:
            Bundle text

        Raises:
            InvalidName: If the name is not acceptable
            AlreadyExists: If a valid certificate exists for the name
        """
        validate_client_name(name)

        async with self._locks.hold(name):
            if await self.index.exists(name):
                raise AlreadyExists(name)

            logger.info(f"Issuing client certificate for: {name} (encrypted key: {encrypt_key})")

            argv = [self.settings.easyrsa_command, "--batch", "build-client-full", name]
            if not encrypt_key:
                argv.append("nopass")
            async with self.revocation.toolchain_lock:
                await self.runner.run(argv, cwd=self.settings.easy_rsa_dir)

            config = await self.assembler.assemble(name)

        logger.info(f"Client created: {name}")
        return config

    async def delete(self, name: str) -> None:
        """
        Revoke a client and clean up its bundle and address lease.

        Raises:
            NotFound: If the name has no valid certificate
        """
        async with self._locks.hold(name):
            await self._require_valid(name)

            await self.revocation.revoke(name)

    async def fetch_config(self, name: str) -> str:
        """
        Return a client's bundle, generating it if not on disk.

        Raises:
            NotFound: If the name has no valid certificate
        """
        async with self._locks.hold(name):
            await self._require_valid(name)

            config = await asyncio.to_thread(_read_bundle, self.settings.bundle_path(name))
            if config is not None:
                return config

            logger.info(f"No bundle on disk for {name}, regenerating")
            return await self.assembler.assemble(name)

    async def reconcile(self, name: str) -> None:
        """
        Finish a revocation that stopped after the ledger update.

        Republishes the CRL and removes the bundle and address lease.

        Raises:
            NotFound: If the latest ledger record for the name is not revoked
        """
        async with self._locks.hold(name):
            record = await self.index.find(name) if CLIENT_NAME_PATTERN.fullmatch(name) else None
            if record is None or record.status is not IdentityStatus.REVOKED:
                raise NotFound(name)

            await self.revocation.revoke(name, resume_from="generate_crl")

    async def crl_status(self) -> Optional[CRLStatus]:
        """Summarize the published CRL."""
        return await self.revocation.crl_status()
