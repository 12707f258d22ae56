"""PKI toolchain access: command execution, ledger and CRL reading."""

from .command_runner import CommandRunner, classify_output, FAILURE_KEYWORDS, BENIGN_PHRASES
from .index_store import IndexStore
from .crl import inspect_crl
from .models import IdentityStatus, IndexRecord, ClientIdentity, CommandResult, CRLStatus

__all__ = [
    'CommandRunner',
    'classify_output',
    'FAILURE_KEYWORDS',
    'BENIGN_PHRASES',
    'IndexStore',
    'inspect_crl',
    'IdentityStatus',
    'IndexRecord',
    'ClientIdentity',
    'CommandResult',
    'CRLStatus',
]
