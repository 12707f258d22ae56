"""Filesystem layout and toolchain settings."""

from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RegistrySettings(BaseSettings):
    """
    Locations of the PKI, OpenVPN and bundle files.

    Read from the environment (empty variables count as unset); keyword
    arguments take precedence.
    """

    model_config = SettingsConfigDict(env_ignore_empty=True, extra="ignore")

    easy_rsa_dir: Path = Field(
        default=Path("/etc/openvpn/easy-rsa"),
        validation_alias=AliasChoices("easy_rsa_dir", "EASY_RSA_DIR"),
        description="easy-rsa installation"
    )
    openvpn_dir: Path = Field(
        default=Path("/etc/openvpn"),
        validation_alias=AliasChoices("openvpn_dir", "OPENVPN_DIR"),
        description="OpenVPN server directory"
    )
    client_config_dir: Path = Field(
        default=Path("/root"),
        validation_alias=AliasChoices("client_config_dir", "CLIENT_CONFIG_DIR"),
        description="Where client bundles are written"
    )
    index_file: Optional[Path] = Field(
        None,
        validation_alias=AliasChoices("index_file", "INDEX_FILE"),
        description="Index ledger (defaults to <easy-rsa>/pki/index.txt)"
    )
    client_template: Path = Field(
        default=Path("/etc/openvpn/client-template.txt"),
        validation_alias=AliasChoices("client_template", "CLIENT_TEMPLATE"),
        description="Client configuration template"
    )
    server_conf: Path = Field(
        default=Path("/etc/openvpn/server.conf"),
        validation_alias=AliasChoices("server_conf", "SERVER_CONF"),
        description="Server configuration"
    )
    easyrsa_command: str = Field(
        default="./easyrsa",
        validation_alias=AliasChoices("easyrsa_command", "EASYRSA_COMMAND"),
        description="easy-rsa executable, relative to easy_rsa_dir"
    )
    crl_days: int = Field(
        default=3650,
        ge=1,
        validation_alias=AliasChoices("crl_days", "OVPN_CRL_DAYS"),
        description="CRL validity window in days"
    )
    command_timeout: Optional[float] = Field(
        default=300.0,
        ge=0,
        validation_alias=AliasChoices("command_timeout", "OVPN_COMMAND_TIMEOUT"),
        description="Per-command timeout in seconds (0 disables)"
    )
    api_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("api_key", "OVPN_API_KEY"),
        description="Expected X-API-Key header value"
    )

    @field_validator("command_timeout")
    @classmethod
    def zero_disables_timeout(cls, v: Optional[float]) -> Optional[float]:
        return v or None

    @property
    def pki_dir(self) -> Path:
        return self.easy_rsa_dir / "pki"

    @property
    def index_path(self) -> Path:
        return self.index_file or self.pki_dir / "index.txt"

    @property
    def ca_cert_path(self) -> Path:
        return self.pki_dir / "ca.crt"

    @property
    def generated_crl_path(self) -> Path:
        return self.pki_dir / "crl.pem"

    @property
    def published_crl_path(self) -> Path:
        return self.openvpn_dir / "crl.pem"

    @property
    def address_pool_path(self) -> Path:
        return self.openvpn_dir / "ipp.txt"

    @property
    def tls_crypt_key_path(self) -> Path:
        return self.openvpn_dir / "tls-crypt.key"

    @property
    def tls_auth_key_path(self) -> Path:
        return self.openvpn_dir / "tls-auth.key"

    def issued_cert_path(self, name: str) -> Path:
        return self.pki_dir / "issued" / f"{name}.crt"

    def private_key_path(self, name: str) -> Path:
        return self.pki_dir / "private" / f"{name}.key"

    def bundle_path(self, name: str) -> Path:
        return self.client_config_dir / f"{name}.ovpn"
