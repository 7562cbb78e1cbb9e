"""System Security Plan data models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, field_validator

from .baseline import ProfileKind, Tier
from .control import ControlIdentifier


class ImplementationStatus(str, Enum):
    IMPLEMENTED = "IMPLEMENTED"
    PARTIALLY_IMPLEMENTED = "PARTIALLY_IMPLEMENTED"
    PLANNED = "PLANNED"
    ALTERNATIVE_IMPLEMENTATION = "ALTERNATIVE_IMPLEMENTATION"
    NOT_APPLICABLE = "NOT_APPLICABLE"


class ImplementationRecord(BaseModel):
    """How one control is implemented within an SSP."""

    control_id: ControlIdentifier
    status: ImplementationStatus = ImplementationStatus.PLANNED
    description: str = ""
    responsible_roles: list[str] = []
    last_updated: datetime

    @field_validator("responsible_roles")
    @classmethod
    def _dedupe_roles(cls, roles: list[str]) -> list[str]:
        seen: set[str] = set()
        result: list[str] = []
        for role in roles:
            role = role.strip()
            if role and role not in seen:
                seen.add(role)
                result.append(role)
        return result


class ComplianceDocument(BaseModel):
    id: str
    uuid: str
    title: str
    description: str = ""
    tier: Tier
    profile_kind: ProfileKind = ProfileKind.STANDARD
    status: str = "operational"
    version: str = "1.0"
    oscal_version: str = "1.1.0"
    authorization_type: str = "fedramp"
    implementations: list[ImplementationRecord] = []
    created: datetime
    updated: datetime

    def find(self, control_id: ControlIdentifier) -> int:
        """Index of the record for ``control_id``, or -1."""
        for index, record in enumerate(self.implementations):
            if record.control_id == control_id:
                return index
        return -1


class DocumentSummary(BaseModel):
    id: str
    title: str
    tier: Tier
    status: str
    created: datetime
    updated: datetime


class ValidationReport(BaseModel):
    document_id: str
    tier: Tier
    valid: bool
    missing_controls: list[ControlIdentifier] = []
    extra_controls: list[ControlIdentifier] = []
    counts_by_status: dict[str, int] = {}
    implementation_percentage: float = 0.0
    total_controls: int = 0
    baseline_size: int = 0
