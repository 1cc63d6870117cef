"""
Identifier discovery.

The registry has no "certificates of address X" query, so the index is
rebuilt from the Minted event log. Events only name identifiers; current
state always comes from the authoritative record.
"""

from __future__ import annotations

import logging

from cert_verifier.ledger import EventLogEntry, ParticipantRole, RegistryReader

logger = logging.getLogger(__name__)


class IdentifierDiscovery:
    """Finds certificate identifiers for a holder or an issuer."""

    def __init__(self, ledger: RegistryReader, require_issuer_role: bool = False) -> None:
        """Initialize discovery.

        Args:
            ledger: Shared registry reader.
            require_issuer_role: Skip issuer scans for addresses that hold
                neither the issuer nor the admin role.
        """
        self.ledger = ledger
        self.require_issuer_role = require_issuer_role

    def _may_issue(self, participant: str) -> bool:
        return self.ledger.check_roles(participant).is_issuer

    def discover_entries(self, participant: str, role: ParticipantRole) -> dict[int, EventLogEntry]:
        """Map each discovered identifier to its Minted event, newest first.

        Duplicate events for the same identifier are collapsed, keeping the
        earliest one seen.
        """
        if (
            role is ParticipantRole.ISSUER
            and self.require_issuer_role
            and not self._may_issue(participant)
        ):
            logger.info("Skipping issuer scan for %s: no issuer role", participant)
            return {}

        entries: dict[int, EventLogEntry] = {}
        events = self.ledger.scan_events(participant, role)
        for event in events:
            entries.setdefault(event.identifier, event)

        if len(entries) != len(events):
            logger.debug("Dropped %d duplicate events", len(events) - len(entries))

        return {identifier: entries[identifier] for identifier in sorted(entries, reverse=True)}

    def discover(self, participant: str, role: ParticipantRole) -> list[int]:
        """Return unique identifiers for participant, sorted descending (newest first)."""
        return list(self.discover_entries(participant, role))

