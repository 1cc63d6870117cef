"""Shared fixtures and fakes."""

from __future__ import annotations

import json
import threading
import time

import httpx
import pytest
from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, keccak, to_checksum_address

from cert_verifier.canonical import content_hash
from cert_verifier.errors import ContentUnavailable, LedgerUnavailable, NotFound
from cert_verifier.ledger import (
    CERTIFICATE_TYPES,
    GET_CERTIFICATE,
    HAS_ROLE,
    MINTED_TOPIC,
    AuthoritativeRecord,
    EventLogEntry,
    ParticipantRole,
    UserRoles,
)

RPC_URL = "https://rpc.example.com"
CONTRACT = to_checksum_address("0x" + "11" * 20)
ISSUER = to_checksum_address("0x" + "22" * 20)
HOLDER = to_checksum_address("0x" + "33" * 20)
OTHER_HOLDER = to_checksum_address("0x" + "44" * 20)

ISSUER_ROLE_ID = keccak(text="ISSUER_ROLE")
ADMIN_ROLE_ID = b"\x00" * 32


def make_metadata(name: str = "Bachelor of Science", recipient: str = HOLDER) -> dict:
    return {
        "type": "Degree",
        "name": name,
        "specialization": "Computer Science",
        "recipient": recipient,
        "issuedBy": "Example University",
        "issuedDate": "2025-06-30",
        "student": {"id": "S-1001", "name": "Alex Doe"},
    }


def make_record(
    identifier: int,
    content: dict | None = None,
    revoked: bool = False,
    onchain_hash: str | None = None,
) -> AuthoritativeRecord:
    content = content if content is not None else make_metadata()
    return AuthoritativeRecord(
        identifier=identifier,
        issuer=ISSUER,
        content_hash=onchain_hash or content_hash(content),
        content_uri=f"https://gateway.example.com/ipfs/cid-{identifier}",
        issued_at=1_750_000_000 + identifier,
        revoked=revoked,
    )


def make_event(identifier: int, holder: str = HOLDER, issuer: str = ISSUER, block: int = 100) -> EventLogEntry:
    return EventLogEntry(
        identifier=identifier,
        holder=holder,
        issuer=issuer,
        content_uri=f"https://gateway.example.com/ipfs/cid-{identifier}",
        content_hash="0x" + "ab" * 32,
        block_number=block,
    )


class FakeLedger:
    """In-memory stand-in for RegistryReader."""

    def __init__(self) -> None:
        self.records: dict[int, AuthoritativeRecord] = {}
        self.events: list[EventLogEntry] = []
        self.unavailable: set[int] = set()
        self.delays: dict[int, float] = {}
        self.issuers: set[str] = set()
        self.admins: set[str] = set()
        self.read_calls: list[int] = []
        self.scan_calls = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def add(self, record: AuthoritativeRecord, holder: str = HOLDER) -> None:
        self.records[record.identifier] = record
        self.events.append(make_event(record.identifier, holder=holder, issuer=record.issuer))

    def read_record(self, identifier: int) -> AuthoritativeRecord:
        with self._lock:
            self.read_calls.append(identifier)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self.delays.get(identifier, 0))
            if identifier in self.unavailable:
                raise LedgerUnavailable("connection reset by peer")
            if identifier not in self.records:
                raise NotFound(identifier)
            return self.records[identifier]
        finally:
            with self._lock:
                self.active -= 1

    def scan_events(self, participant: str, role: ParticipantRole) -> list[EventLogEntry]:
        self.scan_calls += 1
        field = "holder" if role is ParticipantRole.HOLDER else "issuer"
        return [event for event in self.events if getattr(event, field) == participant]

    def check_roles(self, address: str) -> UserRoles:
        is_admin = address in self.admins
        return UserRoles(address=address, is_admin=is_admin, is_issuer=is_admin or address in self.issuers)


class FakeFetcher:
    """In-memory stand-in for ContentFetcher."""

    def __init__(self) -> None:
        self.documents: dict[str, bytes] = {}
        self.failures: dict[str, int] = {}
        self.calls: list[str] = []

    def put(self, record: AuthoritativeRecord, content) -> None:
        self.documents[record.content_uri] = json.dumps(content).encode()

    def fail(self, uri: str, times: int = 10**9) -> None:
        self.failures[uri] = times

    def fetch(self, uri: str) -> bytes:
        self.calls.append(uri)
        if self.failures.get(uri, 0) > 0:
            self.failures[uri] -= 1
            raise ContentUnavailable(f"HTTP error fetching content from {uri}: 504")
        if uri not in self.documents:
            raise ContentUnavailable(f"HTTP error fetching content from {uri}: 404")
        return self.documents[uri]


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


def store(ledger: FakeLedger, fetcher: FakeFetcher, identifier: int, **kwargs) -> AuthoritativeRecord:
    """Register a certificate in both fakes with matching content."""
    content = kwargs.pop("content", None) or make_metadata(name=f"Certificate {identifier}")
    holder = kwargs.pop("holder", HOLDER)
    record = make_record(identifier, content=content, **kwargs)
    ledger.add(record, holder=holder)
    fetcher.put(record, content)
    return record


def _topic_for_int(value: int) -> str:
    return "0x" + format(value, "064x")


def _topic_for_address(address: str) -> str:
    return "0x" + "0" * 24 + address[2:].lower()


class FakeNode:
    """JSON-RPC responder for respx, emulating an EVM node with the registry deployed."""

    def __init__(self, head: int = 1_000, max_log_range: int | None = None) -> None:
        self.head = head
        self.max_log_range = max_log_range
        self.certificates: dict[int, tuple] = {}
        self.logs: list[dict] = []
        self.roles: dict[bytes, set[str]] = {ISSUER_ROLE_ID: set(), ADMIN_ROLE_ID: set()}
        self.log_requests: list[tuple[int, int]] = []
        self.fail_with_status: int | None = None

    def add_certificate(
        self,
        identifier: int,
        holder: str,
        content: dict,
        block: int,
        revoked: bool = False,
        uri: str | None = None,
        issuer: str = ISSUER,
    ) -> None:
        uri = uri or f"https://gateway.example.com/ipfs/cid-{identifier}"
        digest = bytes.fromhex(content_hash(content)[2:])
        self.certificates[identifier] = (issuer, digest, uri, 1_750_000_000, revoked)
        self.logs.append(
            {
                "address": CONTRACT.lower(),
                "topics": [
                    MINTED_TOPIC,
                    _topic_for_int(identifier),
                    _topic_for_address(holder),
                    _topic_for_address(issuer),
                ],
                "data": "0x" + encode(["string", "bytes32"], [uri, digest]).hex(),
                "blockNumber": hex(block),
                "removed": False,
            }
        )

    def _result(self, request_id, result) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": request_id, "result": result})

    def _error(self, request_id, code: int, message: str) -> httpx.Response:
        return httpx.Response(
            200, json={"jsonrpc": "2.0", "id": request_id, "error": {"code": code, "message": message}}
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.fail_with_status:
            return httpx.Response(self.fail_with_status)

        body = json.loads(request.content)
        request_id, method, params = body["id"], body["method"], body["params"]

        if method == "eth_blockNumber":
            return self._result(request_id, hex(self.head))

        if method == "eth_getLogs":
            log_filter = params[0]
            start, end = int(log_filter["fromBlock"], 16), int(log_filter["toBlock"], 16)
            self.log_requests.append((start, end))
            if self.max_log_range is not None and end - start + 1 > self.max_log_range:
                return self._error(request_id, -32005, "query returned more than 10000 results")
            topics = log_filter["topics"]
            matched = [
                log
                for log in self.logs
                if start <= int(log["blockNumber"], 16) <= end
                and all(t is None or t == log["topics"][i] for i, t in enumerate(topics))
            ]
            return self._result(request_id, matched)

        if method == "eth_call":
            data = bytes.fromhex(params[0]["data"][2:])
            selector, args = data[:4], data[4:]
            if selector == GET_CERTIFICATE:
                (identifier,) = decode(["uint256"], args)
                if identifier not in self.certificates:
                    return self._error(request_id, 3, "execution reverted: Certificate does not exist")
                encoded = encode(CERTIFICATE_TYPES, list(self.certificates[identifier]))
                return self._result(request_id, "0x" + encoded.hex())
            if selector == function_signature_to_4byte_selector("ISSUER_ROLE()"):
                return self._result(request_id, "0x" + ISSUER_ROLE_ID.hex())
            if selector == function_signature_to_4byte_selector("DEFAULT_ADMIN_ROLE()"):
                return self._result(request_id, "0x" + ADMIN_ROLE_ID.hex())
            if selector == HAS_ROLE:
                role_id, account = decode(["bytes32", "address"], args)
                flag = to_checksum_address(account) in self.roles.get(role_id, set())
                return self._result(request_id, "0x" + encode(["bool"], [flag]).hex())

        return self._error(request_id, -32601, f"method not supported: {method}")
