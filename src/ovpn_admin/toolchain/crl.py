"""Certificate revocation list inspection."""

import hashlib
import logging
from pathlib import Path
from typing import Optional

from cryptography import x509

from ..errors import FilesystemFailure
from .models import CRLStatus

logger = logging.getLogger(__name__)


def load_crl(data: bytes) -> x509.CertificateRevocationList:
    """Load a CRL in PEM or DER encoding."""
    if b"-----BEGIN X509 CRL-----" in data:
        return x509.load_pem_x509_crl(data)
    return x509.load_der_x509_crl(data)


def inspect_crl(path: Path) -> Optional[CRLStatus]:
    """
    Summarize a published CRL.

    Args:
        path: CRL file path

    Returns:
        CRLStatus, or None if no CRL has been published

    Raises:
        FilesystemFailure: If the file exists but cannot be read or parsed
    """
    path = Path(path)
    try:
        data = path.read_bytes()
        mode = path.stat().st_mode & 0o777
    except FileNotFoundError:
        return None
    except OSError as e:
        raise FilesystemFailure(f"Cannot read CRL {path}: {e}") from e

    try:
        crl = load_crl(data)
    except ValueError as e:
        logger.error(f"Published CRL {path} is not a valid CRL: {e}")
        raise FilesystemFailure(f"Invalid CRL {path}: {e}") from e

    return CRLStatus(
        path=str(path),
        issuer=crl.issuer.rfc4514_string(),
        last_update=crl.last_update_utc,
        next_update=crl.next_update_utc,
        revoked_serials=[format(r.serial_number, "X") for r in crl],
        sha256=hashlib.sha256(data).hexdigest(),
        mode=mode,
    )
