"""
Error taxonomy for certificate verification.

NotFound is a normal negative answer (the identifier was never issued).
LedgerUnavailable and ContentUnavailable are transport faults and may be
retried. MalformedContent means the off-chain document cannot be hashed.
"""

from __future__ import annotations


class CertVerifierError(Exception):
    """Base class for all verification errors."""


class ConfigError(CertVerifierError):
    """Raised when a required setting is missing."""


class InvalidAddress(CertVerifierError, ValueError):
    """Raised when a participant address is not a valid EVM address."""


class NotFound(CertVerifierError):
    """Raised when the ledger has no record for an identifier."""

    def __init__(self, identifier: int, message: str | None = None) -> None:
        self.identifier = identifier
        super().__init__(message or f"Certificate {identifier} not found")


class LedgerUnavailable(CertVerifierError):
    """Raised on RPC transport failures or unusable RPC responses."""


class ContentUnavailable(CertVerifierError):
    """Raised when certificate content cannot be fetched."""


class MalformedContent(CertVerifierError):
    """Raised when content cannot be parsed or canonicalized."""


TRANSIENT_ERRORS = (LedgerUnavailable, ContentUnavailable)
