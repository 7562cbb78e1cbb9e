"""Baseline profile data models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from .control import ControlIdentifier


class Tier(str, Enum):
    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"


class ProfileKind(str, Enum):
    STANDARD = "standard"
    AGENCY_SPECIFIC = "agency-specific"


class BaselineProfile(BaseModel):
    """Resolved required-control set for one (tier, kind)."""

    model_config = ConfigDict(frozen=True)

    tier: Tier
    kind: ProfileKind
    source: str
    title: str = ""
    controls: frozenset[ControlIdentifier]
