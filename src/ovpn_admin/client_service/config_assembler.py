"""Client bundle (.ovpn) assembly."""

import asyncio
import contextlib
import logging
import shutil
from pathlib import Path
from typing import Optional

from ..errors import FilesystemFailure, MissingMaterial
from .models import ConfigBundle, SecretKind, SharedSecret
from .settings import RegistrySettings

logger = logging.getLogger(__name__)

# easy-rsa prefixes the PEM payload with a text dump of the certificate
CERTIFICATE_MARKER = "Certificate:"


def strip_certificate_preamble(text: str) -> str:
    """Keep only what follows the first certificate marker."""
    _, marker, tail = text.partition(CERTIFICATE_MARKER)
    return tail if marker else text


def _read_text(path: Path) -> str:
    try:
        return path.read_text()
    except FileNotFoundError as e:
        raise MissingMaterial(path) from e
    except (OSError, UnicodeDecodeError) as e:
        raise FilesystemFailure(f"Cannot read {path}: {e}") from e


def _copy_file(src: Path, dst: Path) -> None:
    try:
        shutil.copyfile(src, dst)
    except FileNotFoundError as e:
        raise MissingMaterial(src if not src.exists() else dst.parent) from e
    except OSError as e:
        raise FilesystemFailure(f"Cannot copy {src} to {dst}: {e}") from e


def _write_text(path: Path, text: str) -> None:
    try:
        path.write_text(text)
    except OSError as e:
        raise FilesystemFailure(f"Cannot write {path}: {e}") from e


class ConfigAssembler:
    """Builds client bundles from the template and PKI material."""

    def __init__(self, settings: RegistrySettings):
        """
        Initialize the assembler.

        Args:
            settings: Registry settings holding every input and output path
        """
        self.settings = settings

    async def _read(self, path: Path) -> str:
        return await asyncio.to_thread(_read_text, path)

    async def _shared_secret(self) -> Optional[SharedSecret]:
        server_config = await self._read(self.settings.server_conf)

        if SecretKind.TLS_CRYPT.value in server_config:
            material = await self._read(self.settings.tls_crypt_key_path)
            return SharedSecret(kind=SecretKind.TLS_CRYPT, material=material)

        if SecretKind.TLS_AUTH.value in server_config:
            material = await self._read(self.settings.tls_auth_key_path)
            return SharedSecret(kind=SecretKind.TLS_AUTH, material=material, direction=1)

        return None

    async def build(self, name: str) -> ConfigBundle:
        """
        Gather bundle material for a client.

        The template is first copied to the bundle path and read back from it.

        Args:
            name: Validated client name

        Returns:
            Unserialized ConfigBundle

        Raises:
            MissingMaterial: If the template, a certificate, key or secret is absent
        """
        settings = self.settings
        bundle_path = settings.bundle_path(name)

        await asyncio.to_thread(_copy_file, settings.client_template, bundle_path)
        template_body = await self._read(bundle_path)

        ca_certificate = await self._read(settings.ca_cert_path)
        client_certificate = await self._read(settings.issued_cert_path(name))
        client_key = await self._read(settings.private_key_path(name))

        return ConfigBundle(
            template_body=template_body,
            ca_certificate=ca_certificate,
            client_certificate=strip_certificate_preamble(client_certificate),
            client_key=client_key,
            shared_secret=await self._shared_secret(),
        )

    async def assemble(self, name: str) -> str:
        """
        Build, persist and return the bundle text for a client.

        Args:
            name: Validated client name

        Returns:
            The .ovpn content written to the bundle file
        """
        logger.info(f"Generating client bundle for: {name}")

        bundle_path = self.settings.bundle_path(name)
        try:
            bundle = await self.build(name)
            text = bundle.render()
            await asyncio.to_thread(_write_text, bundle_path, text)
        except BaseException:
            # Only complete bundles may stay on disk
            with contextlib.suppress(OSError):
                bundle_path.unlink(missing_ok=True)
            raise

        secret = bundle.shared_secret.kind.value if bundle.shared_secret else "none"
        logger.info(f"Client bundle written: {bundle_path} (shared secret: {secret})")
        return text
