"""Certificate revocation and CRL publication."""

import asyncio
import itertools
import logging
import shutil
from pathlib import Path
from typing import Optional

from ..errors import ClientRegistryError, FilesystemFailure
from ..toolchain import CommandRunner, CRLStatus, inspect_crl
from .settings import RegistrySettings

logger = logging.getLogger(__name__)

REVOCATION_STEPS = (
    "revoke_certificate",
    "generate_crl",
    "remove_published_crl",
    "publish_crl",
    "set_crl_permissions",
    "remove_bundle",
    "release_address",
)

# Steps that rewrite the CRL shared by every client
PUBLICATION_STEPS = frozenset({
    "generate_crl",
    "remove_published_crl",
    "publish_crl",
    "set_crl_permissions",
})

# Steps that touch the index ledger or the CRL; easy-rsa tolerates one writer
LEDGER_STEPS = PUBLICATION_STEPS | {"revoke_certificate"}

CRL_MODE = 0o644


def _unlink(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        raise FilesystemFailure(f"Cannot remove {path}: {e}") from e


def _copy(src: Path, dst: Path) -> None:
    try:
        shutil.copyfile(src, dst)
    except OSError as e:
        raise FilesystemFailure(f"Cannot copy {src} to {dst}: {e}") from e


def _chmod(path: Path, mode: int) -> None:
    try:
        path.chmod(mode)
    except OSError as e:
        raise FilesystemFailure(f"Cannot chmod {path}: {e}") from e


def _remove_prefixed_lines(path: Path, prefix: str) -> int:
    try:
        lines = path.read_text().splitlines(keepends=True)
    except FileNotFoundError:
        return 0
    except (OSError, UnicodeDecodeError) as e:
        raise FilesystemFailure(f"Cannot read {path}: {e}") from e

    kept = [line for line in lines if not line.startswith(prefix)]
    removed = len(lines) - len(kept)
    if removed:
        try:
            path.write_text("".join(kept))
        except OSError as e:
            raise FilesystemFailure(f"Cannot write {path}: {e}") from e
    return removed


class RevocationCoordinator:
    """
    Sequences revoke, CRL regeneration, publication and cleanup.

    Every step is idempotent and there is no rollback: a failed sequence is
    completed by running it again, from the start or from the failed step.
    """

    def __init__(
        self,
        settings: RegistrySettings,
        runner: CommandRunner,
        toolchain_lock: Optional[asyncio.Lock] = None
    ):
        """
        Initialize the coordinator.

        Args:
            settings: Registry settings
            runner: Command runner used for easy-rsa invocations
            toolchain_lock: Lock shared by every ledger-writing easy-rsa call
        """
        self.settings = settings
        self.runner = runner
        self.toolchain_lock = toolchain_lock or asyncio.Lock()

    async def _revoke_certificate(self, name: str):
        await self.runner.run(
            [self.settings.easyrsa_command, "--batch", "revoke", name],
            cwd=self.settings.easy_rsa_dir,
        )

    async def _generate_crl(self, name: str):
        await self.runner.run(
            [self.settings.easyrsa_command, "gen-crl"],
            cwd=self.settings.easy_rsa_dir,
            extra_env={"EASYRSA_CRL_DAYS": str(self.settings.crl_days)},
        )

    async def _remove_published_crl(self, name: str):
        await asyncio.to_thread(_unlink, self.settings.published_crl_path)

    async def _publish_crl(self, name: str):
        await asyncio.to_thread(
            _copy, self.settings.generated_crl_path, self.settings.published_crl_path
        )

    async def _set_crl_permissions(self, name: str):
        await asyncio.to_thread(_chmod, self.settings.published_crl_path, CRL_MODE)

    async def _remove_bundle(self, name: str):
        await asyncio.to_thread(_unlink, self.settings.bundle_path(name))

    async def _release_address(self, name: str):
        removed = await asyncio.to_thread(
            _remove_prefixed_lines, self.settings.address_pool_path, f"{name},"
        )
        if removed:
            logger.info(f"Released address pool lease for: {name} ({removed} lines)")

    async def _run_steps(self, name: str, labels) -> None:
        for label in labels:
            logger.debug(f"Revocation of {name}: {label}")
            try:
                await getattr(self, f"_{label}")(name)
            except ClientRegistryError as e:
                e.failed_step = label
                if label in PUBLICATION_STEPS:
                    logger.error(
                        f"Revocation of {name} stopped at {label}; the certificate is revoked "
                        f"in the ledger but the published CRL is stale until it is republished"
                    )
                else:
                    logger.error(f"Revocation of {name} stopped at {label}: {e}")
                raise

    async def revoke(self, name: str, resume_from: Optional[str] = None) -> None:
        """
        Revoke a client certificate and publish the updated CRL.

        Args:
            name: Validated client name
            resume_from: Step label to restart from (defaults to the first step)

        Raises:
            ToolchainFailure: If an easy-rsa step fails
            FilesystemFailure: If a publication or cleanup step fails
            ValueError: If resume_from is not a known step
        """
        start = 0
        if resume_from is not None:
            if resume_from not in REVOCATION_STEPS:
                raise ValueError(f"Unknown revocation step: {resume_from}")
            start = REVOCATION_STEPS.index(resume_from)

        logger.info(f"Revoking client: {name} (from step: {REVOCATION_STEPS[start]})")

        steps = REVOCATION_STEPS[start:]
        for exclusive, group in itertools.groupby(steps, key=lambda s: s in LEDGER_STEPS):
            if exclusive:
                async with self.toolchain_lock:
                    await self._run_steps(name, group)
            else:
                await self._run_steps(name, group)

        logger.info(f"Client revoked and CRL published: {name}")

    async def crl_status(self) -> Optional[CRLStatus]:
        """Summarize the published CRL, or None if none is published."""
        return await asyncio.to_thread(inspect_crl, self.settings.published_crl_path)
