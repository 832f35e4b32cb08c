"""Custom domain data model.

Storage file format (domains.json):
    {
        "domains": {
            "wedding-123": {
                "tenant_id": "wedding-123",
                "domain": "wedding.example.com",
                "verification_token": "3f1c9a0d8e7b6a5c4d3e2f1a0b9c8d7e",
                "status": "pending",
                "dns_records": [
                    {"type": "CNAME", "name": "wedding.example.com",
                     "value": "platform-host.app", "verified": false, "observed": null},
                    {"type": "TXT", "name": "_vowsite.wedding.example.com",
                     "value": "3f1c9a0d8e7b6a5c4d3e2f1a0b9c8d7e", "verified": false,
                     "observed": null}
                ],
                "failed_attempts": 0,
                "created_at": "2026-05-01T10:00:00+00:00",
                "last_checked_at": null,
                "verified_at": null,
                "activated_at": null
            }
        }
    }

The admin API uses the camelCase form produced by ``to_api_dict()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class DomainStatus(Enum):
    """Lifecycle status of a custom domain."""

    PENDING = "pending"
    VERIFYING = "verifying"
    SSL_PENDING = "ssl_pending"
    ACTIVE = "active"
    FAILED = "failed"


class RecordType(Enum):
    CNAME = "CNAME"
    TXT = "TXT"


@dataclass
class DnsRecordRequirement:
    """A DNS record the admin must publish."""

    type: RecordType
    name: str
    value: str
    verified: bool = False
    observed: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "value": self.value,
            "verified": self.verified,
            "observed": self.observed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DnsRecordRequirement:
        return cls(
            type=RecordType(data["type"]),
            name=data["name"],
            value=data["value"],
            verified=data.get("verified", False),
            observed=data.get("observed"),
        )

    def to_api_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "value": self.value,
            "verified": self.verified,
            "observedValue": self.observed,
        }


@dataclass
class CustomDomainConfig:
    """The custom domain attached to one tenant."""

    tenant_id: str
    domain: str
    verification_token: str
    status: DomainStatus = DomainStatus.PENDING
    dns_records: list[DnsRecordRequirement] = field(default_factory=list)
    failed_attempts: int = 0
    created_at: datetime = field(default_factory=_utc_now)
    last_checked_at: datetime | None = None
    verified_at: datetime | None = None
    activated_at: datetime | None = None

    @classmethod
    def create(
        cls,
        tenant_id: str,
        domain: str,
        verification_token: str,
        cname_target: str,
        txt_record_name: str,
    ) -> CustomDomainConfig:
        """Create a pending config with its two required records, CNAME first."""
        return cls(
            tenant_id=tenant_id,
            domain=domain,
            verification_token=verification_token,
            dns_records=[
                DnsRecordRequirement(RecordType.CNAME, domain, cname_target),
                DnsRecordRequirement(RecordType.TXT, txt_record_name, verification_token),
            ],
        )

    def record(self, record_type: RecordType) -> DnsRecordRequirement | None:
        for requirement in self.dns_records:
            if requirement.type is record_type:
                return requirement
        return None

    @property
    def all_records_verified(self) -> bool:
        return bool(self.dns_records) and all(r.verified for r in self.dns_records)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "tenant_id": self.tenant_id,
            "domain": self.domain,
            "verification_token": self.verification_token,
            "status": self.status.value,
            "dns_records": [r.to_dict() for r in self.dns_records],
            "failed_attempts": self.failed_attempts,
            "created_at": self.created_at.isoformat(),
            "last_checked_at": _iso(self.last_checked_at),
            "verified_at": _iso(self.verified_at),
            "activated_at": _iso(self.activated_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CustomDomainConfig:
        """Create from dictionary (JSON deserialization)."""
        return cls(
            tenant_id=data["tenant_id"],
            domain=data["domain"],
            verification_token=data["verification_token"],
            status=DomainStatus(data.get("status", DomainStatus.PENDING.value)),
            dns_records=[DnsRecordRequirement.from_dict(r) for r in data.get("dns_records", [])],
            failed_attempts=data.get("failed_attempts", 0),
            created_at=_parse_dt(data.get("created_at")) or _utc_now(),
            last_checked_at=_parse_dt(data.get("last_checked_at")),
            verified_at=_parse_dt(data.get("verified_at")),
            activated_at=_parse_dt(data.get("activated_at")),
        )

    def to_api_dict(self) -> dict[str, Any]:
        """Admin API representation (camelCase)."""
        return {
            "domain": self.domain,
            "verificationToken": self.verification_token,
            "status": self.status.value,
            "dnsRecords": [r.to_api_dict() for r in self.dns_records],
            "failedAttempts": self.failed_attempts,
            "createdAt": self.created_at.isoformat(),
            "lastCheckedAt": _iso(self.last_checked_at),
            "verifiedAt": _iso(self.verified_at),
            "activatedAt": _iso(self.activated_at),
        }
