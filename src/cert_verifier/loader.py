"""
Batch loading of certificates.

Resolves many identifiers with a small fixed worker pool so the RPC
endpoint and the content gateway are not flooded. Every identifier yields
exactly one record, whatever happens to the others, and the result is
always ordered by identifier, newest first.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Iterable, Mapping

from cert_verifier.classifier import CredentialStatus, View, status_label
from cert_verifier.discovery import IdentifierDiscovery
from cert_verifier.errors import TRANSIENT_ERRORS
from cert_verifier.ledger import ParticipantRole
from cert_verifier.resolver import CredentialRecord, CredentialResolver

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 5
DEFAULT_LIMIT = 50


def _error_record(identifier: int, holder: str | None, message: str, cause: Exception | None = None) -> CredentialRecord:
    return CredentialRecord(
        identifier=identifier,
        status=CredentialStatus.ERROR,
        holder=holder,
        error=message,
        cause=cause,
    )


class BatchLoader:
    """Resolves sets of identifiers under a concurrency bound."""

    def __init__(
        self,
        resolver: CredentialResolver,
        discovery: IdentifierDiscovery | None = None,
        concurrency: int = DEFAULT_CONCURRENCY,
        retries: int = 0,
        backoff: float = 0.5,
    ) -> None:
        """Initialize the loader.

        Args:
            resolver: Resolver run by every worker.
            discovery: Needed only for load_for_participant.
            concurrency: Number of worker threads.
            retries: Extra attempts for items that failed on a transport fault.
            backoff: Base delay in seconds between attempts (grows linearly).
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if retries < 0:
            raise ValueError("retries must not be negative")
        self.resolver = resolver
        self.discovery = discovery
        self.concurrency = concurrency
        self.retries = retries
        self.backoff = backoff

    def _resolve_one(self, identifier: int, holder: str | None, cancel: threading.Event) -> CredentialRecord:
        attempt = 0
        while True:
            if cancel.is_set():
                return _error_record(identifier, holder, "cancelled")
            try:
                record = self.resolver.resolve(identifier, holder=holder)
            except Exception as e:
                logger.exception("Unexpected failure resolving certificate %d", identifier)
                return _error_record(identifier, holder, f"Unexpected error: {e}", e)

            if attempt >= self.retries or not isinstance(record.cause, TRANSIENT_ERRORS):
                return record

            attempt += 1
            logger.warning(
                "Retrying certificate %d (attempt %d of %d): %s",
                identifier, attempt, self.retries, record.error,
            )
            if cancel.wait(self.backoff * attempt):
                return record

    def load(
        self,
        identifiers: Iterable[int],
        holders: Mapping[int, str] | None = None,
        cancel: threading.Event | None = None,
    ) -> list[CredentialRecord]:
        """Resolve identifiers concurrently.

        Args:
            identifiers: Identifiers to resolve. Duplicates are collapsed.
            holders: Known recipient address per identifier.
            cancel: Set it to stop starting new work; items not yet started
                are reported as ERROR with cause "cancelled".

        Returns:
            One record per unique identifier, sorted by identifier descending.
        """
        unique = sorted(set(identifiers), reverse=True)
        if not unique:
            return []
        holders = holders or {}
        cancel = cancel or threading.Event()

        records: list[CredentialRecord] = []
        with ThreadPoolExecutor(
            max_workers=min(self.concurrency, len(unique)),
            thread_name_prefix="cert-loader",
        ) as executor:
            futures: dict[int, Future[CredentialRecord]] = {
                identifier: executor.submit(
                    self._resolve_one, identifier, holders.get(identifier), cancel
                )
                for identifier in unique
            }
            try:
                for identifier, future in futures.items():
                    try:
                        records.append(future.result())
                    except Exception as e:
                        records.append(
                            _error_record(identifier, holders.get(identifier), f"Unexpected error: {e}", e)
                        )
            except BaseException:
                # Caller is going away; queued workers see the flag and stop.
                cancel.set()
                raise

        records.sort(key=lambda record: record.identifier, reverse=True)
        logger.info("Loaded %d certificates: %s", len(records), summarize(records))
        return records

    def load_for_participant(
        self,
        participant: str,
        role: ParticipantRole,
        limit: int | None = DEFAULT_LIMIT,
        cancel: threading.Event | None = None,
    ) -> list[CredentialRecord]:
        """Discover and resolve the newest certificates for an address.

        Args:
            participant: Holder or issuer address.
            role: Which side of the Minted event to match.
            limit: Maximum number of certificates (newest first). None for all.
            cancel: Cancellation signal passed to load().

        Raises:
            LedgerUnavailable: If discovery itself fails.
        """
        if self.discovery is None:
            raise ValueError("BatchLoader was created without a discovery component")
        entries = self.discovery.discover_entries(participant, role)
        identifiers = list(entries)
        if limit is not None:
            identifiers = identifiers[:limit]
        holders = {identifier: entries[identifier].holder for identifier in identifiers}
        return self.load(identifiers, holders=holders, cancel=cancel)


def summarize(records: Iterable[CredentialRecord], view: View = View.HOLDER) -> dict[str, int]:
    """Count records per status label."""
    counts = {status_label(status, view): 0 for status in CredentialStatus}
    for record in records:
        counts[record.label(view)] += 1
    return counts
