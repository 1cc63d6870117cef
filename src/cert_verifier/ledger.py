"""
Read-only access to the certificate registry contract.

Talks Ethereum JSON-RPC over HTTP. Three reads are needed:
- eth_getLogs over the Minted event, to discover identifiers
- eth_call getCertificate(uint256), the authoritative record
- eth_call hasRole(bytes32,address), role flags

Registry ABI (relevant part):
    event Minted(uint256 indexed tokenId, address indexed to,
                 address indexed issuer, string tokenURI, bytes32 metadataHash)
    function getCertificate(uint256) view
        returns (address issuer, bytes32 metadataHash, string tokenURI,
                 uint64 issuedAt, bool revoked)
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import (
    decode_hex,
    event_signature_to_log_topic,
    function_signature_to_4byte_selector,
    is_address,
    to_checksum_address,
)

from cert_verifier.errors import ConfigError, InvalidAddress, LedgerUnavailable, NotFound

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

MINTED_TOPIC = "0x" + event_signature_to_log_topic(
    "Minted(uint256,address,address,string,bytes32)"
).hex()

GET_CERTIFICATE = function_signature_to_4byte_selector("getCertificate(uint256)")
HAS_ROLE = function_signature_to_4byte_selector("hasRole(bytes32,address)")

# uint64 and uint256 share the same 32-byte ABI slot.
CERTIFICATE_TYPES = ["address", "bytes32", "string", "uint256", "bool"]
MINTED_DATA_TYPES = ["string", "bytes32"]

# Substrings providers use when an eth_getLogs window is too wide.
RANGE_ERROR_MARKERS = (
    "block range",
    "range is too large",
    "range too large",
    "query returned more than",
    "too many",
    "exceed",
)


class ParticipantRole(Enum):
    """Which indexed Minted field an address is matched against."""

    HOLDER = "holder"
    ISSUER = "issuer"

    @property
    def topic_index(self) -> int:
        return 2 if self is ParticipantRole.HOLDER else 3


class Role(Enum):
    """Access-control roles exposed by the registry."""

    ADMIN = "DEFAULT_ADMIN_ROLE"
    ISSUER = "ISSUER_ROLE"


@dataclass(frozen=True)
class AuthoritativeRecord:
    """The registry's record for one certificate."""

    identifier: int
    issuer: str
    content_hash: str
    content_uri: str
    issued_at: int
    revoked: bool


@dataclass(frozen=True)
class EventLogEntry:
    """A decoded Minted event."""

    identifier: int
    holder: str
    issuer: str
    content_uri: str
    content_hash: str
    block_number: int


@dataclass(frozen=True)
class UserRoles:
    """Role flags for one address."""

    address: str
    is_admin: bool
    is_issuer: bool


class RPCError(LedgerUnavailable):
    """A JSON-RPC error object returned by the node."""

    def __init__(self, method: str, code: int | None, message: str, data: Any = None) -> None:
        self.method = method
        self.code = code
        self.rpc_message = message
        self.data = data
        super().__init__(f"RPC error from {method} ({code}): {message}")

    def is_revert(self) -> bool:
        """Check if the node reported an execution revert.

        Other -32000 errors ("header not found", "missing trie node") mean the
        node could not answer, not that the certificate is absent.
        """
        return self.code == 3 or "execution reverted" in self.rpc_message.lower()

    def is_range_error(self) -> bool:
        """Check if eth_getLogs rejected the block window as too large."""
        text = self.rpc_message.lower()
        return self.code == -32005 or any(marker in text for marker in RANGE_ERROR_MARKERS)


def normalize_address(address: str) -> str:
    """Validate an address and return its checksum form.

    Raises:
        InvalidAddress: If the value is not a 20-byte hex address.
    """
    if not isinstance(address, str) or not is_address(address):
        raise InvalidAddress(f"Invalid address: {address!r}")
    return to_checksum_address(address)


def _address_topic(address: str) -> str:
    return "0x" + "0" * 24 + address[2:].lower()


class RegistryReader:
    """Reads certificate state from the registry contract.

    One instance (and its HTTP connection pool) is meant to be created at
    startup and shared by every component; all methods are read-only.
    """

    def __init__(
        self,
        rpc_url: str,
        contract_address: str,
        deploy_block: int | None = None,
        timeout: float = 30.0,
        max_block_range: int = 10_000,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the reader.

        Args:
            rpc_url: JSON-RPC endpoint URL.
            contract_address: Address of the registry contract.
            deploy_block: Block the registry was deployed at. Event scans start here.
            timeout: Per-request timeout in seconds.
            max_block_range: Widest block window requested in one eth_getLogs call.
            client: Shared HTTP client. Created if not provided.
        """
        if max_block_range < 1:
            raise ValueError("max_block_range must be at least 1")
        self.rpc_url = rpc_url
        self.contract_address = normalize_address(contract_address)
        self.deploy_block = deploy_block
        self.max_block_range = max_block_range
        self._client = client or httpx.Client(timeout=timeout)
        self._ids = itertools.count(1)
        self._role_ids: dict[Role, bytes] = {}

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> RegistryReader:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _rpc(self, method: str, params: list[Any]) -> Any:
        """Perform one JSON-RPC request.

        Raises:
            RPCError: If the node answered with an error object.
            LedgerUnavailable: On transport, HTTP or framing failures.
        """
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise LedgerUnavailable(
                f"HTTP error from RPC endpoint during {method}: {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise LedgerUnavailable(f"Network error during {method}: {e}") from e
        except ValueError as e:
            raise LedgerUnavailable(f"Invalid JSON from RPC endpoint during {method}") from e

        if not isinstance(body, dict):
            raise LedgerUnavailable(f"Unexpected RPC response to {method}")
        error = body.get("error")
        if error:
            if isinstance(error, dict):
                raise RPCError(method, error.get("code"), str(error.get("message", "")), error.get("data"))
            raise RPCError(method, None, str(error))
        if "result" not in body:
            raise LedgerUnavailable(f"RPC response to {method} has no result")
        return body["result"]

    def _call(self, data: bytes) -> bytes:
        result = self._rpc(
            "eth_call",
            [{"to": self.contract_address, "data": "0x" + data.hex()}, "latest"],
        )
        if not isinstance(result, str):
            raise LedgerUnavailable("eth_call returned a non-string result")
        try:
            return decode_hex(result)
        except ValueError as e:
            raise LedgerUnavailable(f"eth_call returned invalid hex: {result[:20]}") from e

    def block_number(self) -> int:
        """Return the current chain head."""
        result = self._rpc("eth_blockNumber", [])
        try:
            return int(result, 16)
        except (TypeError, ValueError) as e:
            raise LedgerUnavailable(f"Invalid block number: {result!r}") from e

    def scan_events(self, participant: str, role: ParticipantRole) -> list[EventLogEntry]:
        """Return every Minted event where participant occupies the given role.

        Scans from the deployment block to the current head in windows of at
        most max_block_range blocks, halving a window whenever the provider
        rejects it as too large. The returned list is in scan order; callers
        sort it themselves.

        Raises:
            ConfigError: If no deployment block is configured.
            InvalidAddress: If participant is not a valid address.
            LedgerUnavailable: If any window cannot be fetched.
        """
        if self.deploy_block is None:
            raise ConfigError("A deployment block is required to scan registry events")

        address = normalize_address(participant)
        topics: list[str | None] = [MINTED_TOPIC, None, None, None]
        topics[role.topic_index] = _address_topic(address)
        topics = topics[: role.topic_index + 1]

        head = self.block_number()
        entries: list[EventLogEntry] = []
        start = self.deploy_block
        while start <= head:
            end = min(start + self.max_block_range - 1, head)
            entries.extend(self._scan_window(topics, start, end))
            start = end + 1

        logger.debug(
            "Scanned blocks %d..%d for %s %s: %d events",
            self.deploy_block, head, role.value, address, len(entries),
        )
        return entries

    def _scan_window(self, topics: list[str | None], start: int, end: int) -> list[EventLogEntry]:
        log_filter = {
            "address": self.contract_address,
            "topics": topics,
            "fromBlock": hex(start),
            "toBlock": hex(end),
        }
        try:
            logs = self._rpc("eth_getLogs", [log_filter])
        except RPCError as e:
            if not e.is_range_error():
                raise
            if start == end:
                raise LedgerUnavailable(
                    f"Provider rejected eth_getLogs for single block {start}: {e.rpc_message}"
                ) from e
            mid = (start + end) // 2
            logger.debug("Splitting log window %d..%d: %s", start, end, e.rpc_message)
            return self._scan_window(topics, start, mid) + self._scan_window(topics, mid + 1, end)

        if not isinstance(logs, list):
            raise LedgerUnavailable("eth_getLogs returned a non-list result")
        return [
            self._decode_log(log)
            for log in logs
            if not (isinstance(log, dict) and log.get("removed"))
        ]

    def _decode_log(self, log: dict[str, Any]) -> EventLogEntry:
        """Decode a raw Minted log.

        Raises:
            LedgerUnavailable: If the log does not have the Minted shape.
        """
        try:
            if not isinstance(log, dict):
                raise ValueError(f"expected an object, got {type(log).__name__}")
            topics = log["topics"]
            if len(topics) != 4 or topics[0].lower() != MINTED_TOPIC:
                raise ValueError(f"unexpected topics {topics}")
            content_uri, content_hash = decode(MINTED_DATA_TYPES, decode_hex(log["data"]))
            return EventLogEntry(
                identifier=int(topics[1], 16),
                holder=to_checksum_address("0x" + topics[2][-40:]),
                issuer=to_checksum_address("0x" + topics[3][-40:]),
                content_uri=content_uri,
                content_hash="0x" + content_hash.hex(),
                block_number=int(log["blockNumber"], 16),
            )
        except (KeyError, TypeError, ValueError, DecodingError) as e:
            raise LedgerUnavailable(f"Malformed Minted log: {e}") from e

    def read_record(self, identifier: int) -> AuthoritativeRecord:
        """Read the authoritative record for an identifier.

        Raises:
            NotFound: If the identifier was never issued.
            LedgerUnavailable: On transport failures or undecodable data.
        """
        if identifier < 0 or identifier >= 2**256:
            raise NotFound(identifier)

        try:
            result = self._call(GET_CERTIFICATE + encode(["uint256"], [identifier]))
        except RPCError as e:
            if e.is_revert():
                raise NotFound(identifier, f"Certificate {identifier} not found: {e.rpc_message}") from e
            raise

        if not result:
            raise NotFound(identifier)

        try:
            issuer, content_hash, content_uri, issued_at, revoked = decode(CERTIFICATE_TYPES, result)
        except DecodingError as e:
            raise LedgerUnavailable(f"Cannot decode getCertificate({identifier}): {e}") from e

        issuer = to_checksum_address(issuer)
        if issuer == ZERO_ADDRESS:
            raise NotFound(identifier)

        return AuthoritativeRecord(
            identifier=identifier,
            issuer=issuer,
            content_hash="0x" + content_hash.hex(),
            content_uri=content_uri,
            issued_at=issued_at,
            revoked=revoked,
        )

    def _role_id(self, role: Role) -> bytes:
        # Role ids are contract constants.
        if role not in self._role_ids:
            selector = function_signature_to_4byte_selector(f"{role.value}()")
            result = self._call(selector)
            try:
                (role_id,) = decode(["bytes32"], result)
            except DecodingError as e:
                raise LedgerUnavailable(f"Cannot decode {role.value}(): {e}") from e
            self._role_ids[role] = role_id
        return self._role_ids[role]

    def read_role_flag(self, address: str, role: Role) -> bool:
        """Check whether address holds role on the registry."""
        account = normalize_address(address)
        data = HAS_ROLE + encode(["bytes32", "address"], [self._role_id(role), account])
        try:
            (flag,) = decode(["bool"], self._call(data))
        except DecodingError as e:
            raise LedgerUnavailable(f"Cannot decode hasRole(): {e}") from e
        return flag

    def check_roles(self, address: str) -> UserRoles:
        """Read both role flags. Admins may also issue."""
        account = normalize_address(address)
        is_admin = self.read_role_flag(account, Role.ADMIN)
        is_issuer = self.read_role_flag(account, Role.ISSUER)
        return UserRoles(address=account, is_admin=is_admin, is_issuer=is_issuer or is_admin)
