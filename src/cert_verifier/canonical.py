"""
Canonical JSON and content hashing.

Certificate content is hashed as keccak256(utf8(canonical_json)), where
canonical_json is the RFC 8785 (JCS) serialization: keys sorted at every
depth, no whitespace, ECMAScript number formatting. This is byte-for-byte
what the issuing side produces with json-stable-stringify for plain JSON
documents, so the result can be compared against the bytes32 stored on chain.
"""

from __future__ import annotations

import json
from typing import Any

import jcs
from eth_utils import keccak

from cert_verifier.errors import MalformedContent


def canonicalize(content: Any) -> bytes:
    """Serialize content to canonical JSON bytes.

    Args:
        content: A JSON-compatible value (dict, list, str, int, float, bool, None).

    Returns:
        UTF-8 encoded canonical JSON.

    Raises:
        MalformedContent: If the value is cyclic, contains unsupported types,
            or contains non-finite numbers.
    """
    try:
        return jcs.canonicalize(content)
    except (TypeError, ValueError, RecursionError) as e:
        raise MalformedContent(f"Content cannot be canonicalized: {e}") from e


def keccak256(data: bytes) -> str:
    """Return the 0x-prefixed lowercase hex keccak-256 digest of data."""
    return "0x" + keccak(primitive=data).hex()


def content_hash(content: Any) -> str:
    """Hash a content object the way the registry expects it."""
    return keccak256(canonicalize(content))


def parse_content(raw: bytes) -> Any:
    """Decode raw content bytes as JSON.

    Raises:
        MalformedContent: If the bytes are not valid UTF-8 JSON.
    """
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, ValueError) as e:
        raise MalformedContent(f"Content is not valid JSON: {e}") from e


def hashes_equal(left: str | None, right: str | None) -> bool:
    """Compare two hex digests ignoring case."""
    if not left or not right:
        return False
    return left.lower() == right.lower()
