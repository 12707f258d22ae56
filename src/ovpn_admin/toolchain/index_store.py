"""Read access to the easy-rsa index ledger."""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from ..errors import LedgerUnreadable
from .models import ClientIdentity, IdentityStatus, IndexRecord

logger = logging.getLogger(__name__)

_TIMESTAMP_FORMATS = {
    13: "%y%m%d%H%M%SZ",
    15: "%Y%m%d%H%M%SZ",
}


def parse_timestamp(value: str) -> datetime:
    """Parse an ASN.1 UTCTime or GeneralizedTime string from the ledger."""
    fmt = _TIMESTAMP_FORMATS.get(len(value))
    if fmt is None:
        raise ValueError(f"Unrecognized ledger timestamp: {value!r}")
    return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)


def parse_record(line: str) -> IndexRecord:
    """
    Parse one ledger line.

    Fields are tab separated: status, expiry, revocation date (empty unless
    revoked, optionally followed by ",reason"), serial, filename, subject.

    Raises:
        ValueError: If the line is not a well-formed record
    """
    fields = line.split("\t")
    if len(fields) < 6:
        raise ValueError(f"Expected 6 fields, got {len(fields)}")

    status, expiry, revocation, serial, filename = fields[:5]
    subject = "\t".join(fields[5:])

    revoked_at = None
    if revocation:
        revoked_at = parse_timestamp(revocation.split(",", 1)[0])

    return IndexRecord(
        status=IdentityStatus(status),
        expires_at=parse_timestamp(expiry),
        revoked_at=revoked_at,
        serial=serial,
        filename=filename or "unknown",
        subject=subject,
    )


class IndexStore:
    """Parses the PKI serial-status ledger on every call."""

    def __init__(self, index_path: Path):
        """
        Initialize the index store.

        Args:
            index_path: Path to the easy-rsa index.txt
        """
        self.index_path = Path(index_path)

    def _read_records(self) -> list[IndexRecord]:
        try:
            content = self.index_path.read_text()
        except (OSError, UnicodeDecodeError) as e:
            raise LedgerUnreadable(f"Cannot read ledger {self.index_path}: {e}") from e

        records = []
        for lineno, line in enumerate(content.split("\n"), start=1):
            if not line.strip():
                continue
            try:
                records.append(parse_record(line))
            except (ValueError, ValidationError) as e:
                logger.error(f"Malformed ledger line {lineno} in {self.index_path}: {line!r}")
                raise LedgerUnreadable(
                    f"Malformed ledger line {lineno} in {self.index_path}: {e}"
                ) from e

        return records

    async def records(self) -> list[IndexRecord]:
        """Read and parse every ledger record."""
        return await asyncio.to_thread(self._read_records)

    async def list_valid_names(self) -> list[str]:
        """
        List names of currently valid certificates.

        Returns:
            Common names of records with the valid status flag, in ledger order
        """
        return [
            r.common_name for r in await self.records()
            if r.status is IdentityStatus.VALID
        ]

    async def exists(self, name: str) -> bool:
        """Check whether a valid certificate exists for a name."""
        return name in await self.list_valid_names()

    async def identities(self) -> list[ClientIdentity]:
        """List every identity in the ledger, whatever its status."""
        return [ClientIdentity.from_record(r) for r in await self.records()]

    async def find(self, name: str) -> Optional[IndexRecord]:
        """
        Find the most recent ledger record for a name.

        Returns:
            The last matching record or None
        """
        matches = [r for r in await self.records() if r.common_name == name]
        return matches[-1] if matches else None
