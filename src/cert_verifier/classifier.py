"""
Certificate status classification.

One rule, applied in order (first match wins):
1. no ledger record            -> NOT_FOUND
2. ledger/content unreadable   -> ERROR
3. revoked on chain            -> REVOKED
4. content hash differs        -> INVALID
5. otherwise                   -> VALID

Issuer-facing views show VALID as "ACTIVE"; that is a label only.
"""

from __future__ import annotations

from enum import Enum


class CredentialStatus(Enum):
    """Verification status of a certificate."""

    VALID = "VALID"
    REVOKED = "REVOKED"
    INVALID = "INVALID"
    NOT_FOUND = "NOT_FOUND"
    ERROR = "ERROR"


class View(Enum):
    """Who a result is being shown to."""

    HOLDER = "holder"
    ISSUER = "issuer"


def classify(
    exists: bool,
    readable: bool,
    revoked: bool,
    hash_match: bool,
) -> CredentialStatus:
    """Map verification facts to a status.

    Args:
        exists: The ledger holds a record for the identifier.
        readable: Ledger record and content were both read and hashed.
        revoked: The record's revocation flag.
        hash_match: The recomputed hash equals the on-chain hash.
    """
    if not exists:
        return CredentialStatus.NOT_FOUND
    if not readable:
        return CredentialStatus.ERROR
    if revoked:
        return CredentialStatus.REVOKED
    if not hash_match:
        return CredentialStatus.INVALID
    return CredentialStatus.VALID


def status_label(status: CredentialStatus, view: View = View.HOLDER) -> str:
    """Presentation label for a status."""
    if status is CredentialStatus.VALID and view is View.ISSUER:
        return "ACTIVE"
    return status.value


def parse_status(label: str) -> CredentialStatus:
    """Parse a status or its label (ACTIVE is accepted for VALID)."""
    normalized = label.strip().upper().replace("-", "_")
    if normalized == "ACTIVE":
        return CredentialStatus.VALID
    try:
        return CredentialStatus(normalized)
    except ValueError:
        raise ValueError(f"Unknown status: {label!r}") from None
