"""
Certificate metadata documents.

The content store holds one JSON document per certificate:

    {
      "type": "...", "name": "...", "specialization": "...",
      "recipient": "0x...", "issuedBy": "...", "issuedDate": "...",
      "student": {"id": "...", "name": "..."}
    }

Its canonical keccak-256 hash is what the registry stores at issuance.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from eth_utils import is_address

from cert_verifier.canonical import canonicalize, keccak256
from cert_verifier.errors import MalformedContent

REQUIRED_FIELDS = ("type", "name", "specialization", "recipient", "issuedBy", "issuedDate")


@dataclass
class Student:
    id: str
    name: str


@dataclass
class CertificateMetadata:
    """Parsed certificate metadata."""

    type: str
    name: str
    specialization: str
    recipient: str
    issued_by: str
    issued_date: str
    student: Student

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CertificateMetadata:
        """Create metadata from its JSON form.

        Raises:
            MalformedContent: If the document fails validation.
        """
        errors = validate_metadata(data)
        if errors:
            raise MalformedContent("Invalid certificate metadata: " + "; ".join(errors))
        student = data["student"]
        return cls(
            type=data["type"],
            name=data["name"],
            specialization=data["specialization"],
            recipient=data["recipient"],
            issued_by=data["issuedBy"],
            issued_date=data["issuedDate"],
            student=Student(id=student["id"], name=student["name"]),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "name": self.name,
            "specialization": self.specialization,
            "recipient": self.recipient,
            "issuedBy": self.issued_by,
            "issuedDate": self.issued_date,
            "student": {"id": self.student.id, "name": self.student.name},
        }


@dataclass(frozen=True)
class PreparedMetadata:
    """Metadata ready to be uploaded and anchored."""

    metadata: CertificateMetadata
    canonical_json: str
    content_hash: str


def _is_filled(value: Any) -> bool:
    return isinstance(value, str) and len(value) > 0


def validate_metadata(data: Any) -> list[str]:
    """Validate a metadata document.

    Args:
        data: The decoded JSON document.

    Returns:
        List of validation errors (empty if valid).
    """
    if not isinstance(data, dict):
        return ["Metadata must be a JSON object"]

    errors: list[str] = []
    for name in REQUIRED_FIELDS:
        if not _is_filled(data.get(name)):
            errors.append(f"{name} is required")

    recipient = data.get("recipient")
    if _is_filled(recipient) and not is_address(recipient):
        errors.append("Invalid recipient address")

    student = data.get("student")
    if not isinstance(student, dict):
        errors.append("student is required")
    else:
        if not _is_filled(student.get("id")):
            errors.append("student.id is required")
        if not _is_filled(student.get("name")):
            errors.append("student.name is required")

    return errors


def prepare_metadata(data: dict[str, Any]) -> PreparedMetadata:
    """Build the canonical document and its hash for issuance.

    Only the known fields are kept, so stray input keys never reach the
    anchored document.

    Raises:
        MalformedContent: If the input fails validation.
    """
    metadata = CertificateMetadata.from_dict(data)
    canonical = canonicalize(metadata.to_dict())
    return PreparedMetadata(
        metadata=metadata,
        canonical_json=canonical.decode("utf-8"),
        content_hash=keccak256(canonical),
    )
