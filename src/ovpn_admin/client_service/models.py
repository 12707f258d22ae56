"""Data models for the client service."""

import re
from enum import Enum
from typing import Optional
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field

from ..errors import InvalidName
from ..toolchain.models import ClientIdentity, CRLStatus

CLIENT_NAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


def validate_client_name(name: str) -> str:
    """
    Check a client name before it reaches the filesystem or toolchain.

    Raises:
        InvalidName: If the name is empty or has characters outside [A-Za-z0-9_-]
    """
    if not isinstance(name, str) or not CLIENT_NAME_PATTERN.fullmatch(name):
        raise InvalidName(name)
    return name


class SecretKind(str, Enum):
    """Control channel hardening mode."""

    TLS_CRYPT = "tls-crypt"
    TLS_AUTH = "tls-auth"


class SharedSecret(BaseModel):
    """Static key shared with the server for control channel hardening."""

    kind: SecretKind = Field(..., description="tls-crypt or tls-auth")
    material: str = Field(..., description="Static key file content")
    direction: Optional[int] = Field(None, description="key-direction (1 for tls-auth clients)")


class ConfigBundle(BaseModel):
    """Client configuration with all key material inlined."""

    template_body: str = Field(..., description="Client template content")
    ca_certificate: str = Field(..., description="CA certificate PEM")
    client_certificate: str = Field(..., description="Client certificate, preamble stripped")
    client_key: str = Field(..., description="Client private key PEM")
    shared_secret: Optional[SharedSecret] = Field(None, description="tls-crypt/tls-auth key")

    def render(self) -> str:
        """Serialize to the .ovpn text written to the bundle file."""
        parts = [
            self.template_body,
            "\n<ca>\n", self.ca_certificate, "</ca>\n",
            "<cert>\n", self.client_certificate, "</cert>\n",
            "<key>\n", self.client_key, "</key>\n",
        ]

        secret = self.shared_secret
        if secret is not None:
            if secret.direction is not None:
                parts.append(f"key-direction {secret.direction}\n")
            tag = secret.kind.value
            parts.extend([f"<{tag}>\n", secret.material, f"</{tag}>\n"])

        return "".join(parts)


class ClientCreateRequest(BaseModel):
    """Request model for client creation."""

    model_config = ConfigDict(populate_by_name=True)

    client_name: str = Field(..., alias="clientName", description="Client common name")
    use_password: bool = Field(default=False, alias="usePassword", description="Encrypt the private key")


class ClientListResponse(BaseModel):
    """Response model for the valid client listing."""

    clients: list[str] = Field(..., description="Names of clients with a valid certificate")


class IdentityListResponse(BaseModel):
    """Response model for the full ledger listing."""

    identities: list[ClientIdentity] = Field(..., description="Every identity in the ledger")


class ClientCreatedResponse(BaseModel):
    """Response model for client creation."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., description="Outcome message")
    client_name: str = Field(..., alias="clientName", description="Client common name")
    config_file: str = Field(..., alias="configFile", description="Generated .ovpn content")


class ClientConfigResponse(BaseModel):
    """Response model for bundle download."""

    config: str = Field(..., description=".ovpn content")


class MessageResponse(BaseModel):
    """Generic acknowledgement."""

    message: str = Field(..., description="Outcome message")


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str = Field(..., description="Service status")
    ledger_readable: bool = Field(..., description="Whether the index ledger could be parsed")
    valid_clients: int = Field(..., description="Number of clients with a valid certificate")
    crl: Optional[CRLStatus] = Field(None, description="Published CRL summary")
    crl_stale: bool = Field(default=False, description="Whether the published CRL is past nextUpdate")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Current server time"
    )


class ErrorResponse(BaseModel):
    """Body of an HTTPException raised by the API."""

    detail: str = Field(..., description="Error message")
