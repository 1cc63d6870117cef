"""
Cert Verifier - verification of blockchain-anchored certificates.

Supports:
- Discovery of certificates per holder or issuer from registry event logs
- Authoritative record reads over Ethereum JSON-RPC
- Content integrity checks (JCS canonical JSON + keccak-256)
- Bounded-concurrency batch verification
"""

__version__ = "0.1.0"

from cert_verifier.cache import CachedContent, ContentCache
from cert_verifier.canonical import canonicalize, content_hash, keccak256
from cert_verifier.classifier import CredentialStatus, View, classify, status_label
from cert_verifier.config import Settings, load_settings
from cert_verifier.content import ContentFetcher
from cert_verifier.discovery import IdentifierDiscovery
from cert_verifier.errors import (
    CertVerifierError,
    ContentUnavailable,
    LedgerUnavailable,
    MalformedContent,
    NotFound,
)
from cert_verifier.ledger import (
    AuthoritativeRecord,
    EventLogEntry,
    ParticipantRole,
    RegistryReader,
    Role,
)
from cert_verifier.loader import BatchLoader, summarize
from cert_verifier.resolver import CredentialRecord, CredentialResolver, verify_certificate

__all__ = [
    "AuthoritativeRecord",
    "BatchLoader",
    "CachedContent",
    "CertVerifierError",
    "ContentCache",
    "ContentFetcher",
    "ContentUnavailable",
    "CredentialRecord",
    "CredentialResolver",
    "CredentialStatus",
    "EventLogEntry",
    "IdentifierDiscovery",
    "LedgerUnavailable",
    "MalformedContent",
    "NotFound",
    "ParticipantRole",
    "RegistryReader",
    "Role",
    "Settings",
    "View",
    "canonicalize",
    "classify",
    "content_hash",
    "keccak256",
    "load_settings",
    "status_label",
    "summarize",
    "verify_certificate",
]
