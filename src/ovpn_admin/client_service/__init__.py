"""Client Service - VPN client identity lifecycle and FastAPI adapter."""

from .settings import RegistrySettings
from .registry import ClientRegistry
from .config_assembler import ConfigAssembler
from .revocation import RevocationCoordinator

__all__ = ['RegistrySettings', 'ClientRegistry', 'ConfigAssembler', 'RevocationCoordinator']
