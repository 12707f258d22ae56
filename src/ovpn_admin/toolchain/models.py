"""Data models for PKI toolchain state."""

from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class IdentityStatus(str, Enum):
    """Status flag leading each index ledger line."""

    VALID = "V"
    REVOKED = "R"
    EXPIRED = "E"


class IndexRecord(BaseModel):
    """One line of the easy-rsa index ledger."""

    status: IdentityStatus = Field(..., description="Leading status flag")
    expires_at: datetime = Field(..., description="Certificate expiry timestamp")
    revoked_at: Optional[datetime] = Field(None, description="Revocation timestamp, if revoked")
    serial: str = Field(..., description="Hex serial number")
    filename: str = Field(default="unknown", description="Certificate filename field")
    subject: str = Field(..., description="Subject distinguished name")

    @property
    def common_name(self) -> str:
        """Value of the last CN= component of the subject."""
        segments = [s for s in self.subject.split("/") if s]
        for segment in reversed(segments):
            if segment.startswith("CN="):
                return segment[3:]

        # Fall back to the value of the trailing segment
        last = segments[-1] if segments else ""
        return last.split("=", 1)[1] if "=" in last else last


class ClientIdentity(BaseModel):
    """A VPN client identity derived from the index ledger."""

    name: str = Field(..., description="Client common name")
    status: IdentityStatus = Field(..., description="Current certificate status")
    serial: str = Field(..., description="Hex serial number")
    expires_at: datetime = Field(..., description="Certificate expiry timestamp")
    revoked_at: Optional[datetime] = Field(None, description="Revocation timestamp, if revoked")

    @classmethod
    def from_record(cls, record: IndexRecord) -> "ClientIdentity":
        return cls(
            name=record.common_name,
            status=record.status,
            serial=record.serial,
            expires_at=record.expires_at,
            revoked_at=record.revoked_at,
        )


class CommandResult(BaseModel):
    """Outcome of one toolchain invocation."""

    combined_output: str = Field(..., description="stdout followed by stderr")
    succeeded: bool = Field(..., description="Verdict of the output classifier")
    returncode: Optional[int] = Field(None, description="Process exit status")


class CRLStatus(BaseModel):
    """Summary of a published certificate revocation list."""

    path: str = Field(..., description="Published CRL path")
    issuer: str = Field(..., description="CRL issuer (RFC 4514)")
    last_update: datetime = Field(..., description="thisUpdate of the CRL")
    next_update: Optional[datetime] = Field(None, description="nextUpdate of the CRL")
    revoked_serials: list[str] = Field(default_factory=list, description="Revoked serials (hex)")
    sha256: str = Field(..., description="SHA-256 of the CRL file content")
    mode: int = Field(..., description="File permission bits")

    @property
    def is_stale(self) -> bool:
        if self.next_update is None:
            return False
        return self.next_update <= datetime.now(self.next_update.tzinfo)
