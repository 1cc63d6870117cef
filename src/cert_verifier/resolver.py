"""
Certificate resolution.

Resolves one identifier end to end:
1. Read the authoritative record from the registry
2. Fetch the content it points to
3. Canonicalize and hash the content
4. Compare against the on-chain hash and classify
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from cert_verifier.canonical import content_hash, hashes_equal, parse_content
from cert_verifier.classifier import CredentialStatus, View, classify, status_label
from cert_verifier.content import ContentFetcher
from cert_verifier.errors import (
    ContentUnavailable,
    LedgerUnavailable,
    MalformedContent,
    NotFound,
)
from cert_verifier.ledger import RegistryReader
from cert_verifier.metadata import validate_metadata

if TYPE_CHECKING:
    from cert_verifier.cache import ContentCache
    from cert_verifier.config import Settings

logger = logging.getLogger(__name__)


@dataclass
class CredentialRecord:
    """Verification result for one certificate.

    Derived on every request; never a source of truth.
    """

    identifier: int
    status: CredentialStatus
    issuer: str | None = None
    content_uri: str | None = None
    issued_at: int | None = None
    revoked: bool | None = None
    onchain_hash: str | None = None
    computed_hash: str | None = None
    content: Any = None
    holder: str | None = None
    error: str | None = None
    warnings: list[str] = field(default_factory=list)
    cause: Exception | None = field(default=None, repr=False, compare=False)

    @property
    def is_valid(self) -> bool:
        return self.status is CredentialStatus.VALID

    def label(self, view: View = View.HOLDER) -> str:
        return status_label(self.status, view)

    def to_dict(self, view: View = View.HOLDER) -> dict[str, Any]:
        """JSON-ready projection of the record."""
        return {
            "identifier": str(self.identifier),
            "status": self.label(view),
            "issuer": self.issuer,
            "holder": self.holder,
            "contentURI": self.content_uri,
            "issuedAt": self.issued_at,
            "revoked": self.revoked,
            "onchainHash": self.onchain_hash,
            "computedHash": self.computed_hash,
            "content": self.content,
            "error": self.error,
            "warnings": list(self.warnings),
        }


class CredentialResolver:
    """Resolves and classifies single certificates."""

    def __init__(
        self,
        ledger: RegistryReader,
        fetcher: ContentFetcher,
        cache: ContentCache | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            ledger: Shared registry reader.
            fetcher: Shared content fetcher.
            cache: Optional content cache. The ledger record is read on
                every call regardless.
        """
        self.ledger = ledger
        self.fetcher = fetcher
        self.cache = cache

    def resolve(self, identifier: int, holder: str | None = None) -> CredentialRecord:
        """Resolve one identifier to a classified record.

        Never raises for ledger or content failures; they are reported
        through the record's status and error.

        Args:
            identifier: Certificate identifier.
            holder: Recipient address already known to the caller, if any.

        Returns:
            The classified CredentialRecord.
        """
        try:
            onchain = self.ledger.read_record(identifier)
        except NotFound as e:
            return CredentialRecord(
                identifier=identifier,
                status=classify(exists=False, readable=False, revoked=False, hash_match=False),
                holder=holder,
                error=str(e),
                cause=e,
            )
        except LedgerUnavailable as e:
            logger.warning("Ledger read failed for certificate %d: %s", identifier, e)
            return CredentialRecord(
                identifier=identifier,
                status=classify(exists=True, readable=False, revoked=False, hash_match=False),
                holder=holder,
                error=str(e),
                cause=e,
            )

        record = CredentialRecord(
            identifier=identifier,
            status=CredentialStatus.ERROR,
            issuer=onchain.issuer,
            content_uri=onchain.content_uri,
            issued_at=onchain.issued_at,
            revoked=onchain.revoked,
            onchain_hash=onchain.content_hash,
            holder=holder,
        )

        cached = self.cache.get(identifier, onchain.content_uri) if self.cache is not None else None
        if cached is None:
            try:
                raw = self.fetcher.fetch(onchain.content_uri)
                content = parse_content(raw)
                computed = content_hash(content)
            except (ContentUnavailable, MalformedContent) as e:
                logger.warning("Content check failed for certificate %d: %s", identifier, e)
                record.error = str(e)
                record.cause = e
                record.status = classify(
                    exists=True, readable=False, revoked=onchain.revoked, hash_match=False
                )
                return record
            if self.cache is not None:
                self.cache.put(identifier, onchain.content_uri, content, computed)
        else:
            content, computed = cached.content, cached.computed_hash
            logger.debug("Using cached content for certificate %d", identifier)

        record.content = content
        record.computed_hash = computed

        if record.holder is None and isinstance(content, dict):
            recipient = content.get("recipient")
            if isinstance(recipient, str) and recipient:
                record.holder = recipient
        record.warnings = validate_metadata(content)

        record.status = classify(
            exists=True,
            readable=True,
            revoked=onchain.revoked,
            hash_match=hashes_equal(record.computed_hash, onchain.content_hash),
        )
        return record


def verify_certificate(identifier: int, settings: Settings | None = None) -> CredentialRecord:
    """Convenience function to verify one certificate.

    Args:
        identifier: Certificate identifier.
        settings: Connection settings. Loaded from the environment if not provided.

    Returns:
        The classified CredentialRecord.
    """
    from cert_verifier.config import load_settings

    settings = settings or load_settings()
    with settings.registry_reader() as ledger, settings.content_fetcher() as fetcher:
        return CredentialResolver(ledger, fetcher).resolve(identifier)
