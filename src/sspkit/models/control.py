"""Control catalog data models."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator


class ControlIdentifier(BaseModel):
    """Canonical (family, number, enhancement) control identifier.

    Serialises as its hyphenated rendering (``AC-2(1)``) and validates from any
    text form the normalizer accepts, so stored documents round-trip.
    """

    model_config = ConfigDict(frozen=True)

    family: str = Field(pattern=r"^[A-Z]{2}$")
    number: int = Field(gt=0)
    enhancement: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _from_text(cls, data: Any) -> Any:
        if isinstance(data, str):
            from ..utils.control_ids import parse

            parsed = parse(data)
            return {
                "family": parsed.family,
                "number": parsed.number,
                "enhancement": parsed.enhancement,
            }
        return data

    @model_serializer
    def _to_text(self) -> str:
        return self.hyphenated

    @property
    def dotted(self) -> str:
        text = f"{self.family}.{self.number}"
        if self.enhancement is not None:
            text += f".{self.enhancement}"
        return text

    @property
    def hyphenated(self) -> str:
        text = f"{self.family}-{self.number}"
        if self.enhancement is not None:
            text += f"({self.enhancement})"
        return text

    def sort_key(self) -> tuple[str, int, int]:
        # Absent enhancement sorts before enhancement 0
        return (
            self.family,
            self.number,
            -1 if self.enhancement is None else self.enhancement,
        )

    def __lt__(self, other: ControlIdentifier) -> bool:
        if not isinstance(other, ControlIdentifier):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __str__(self) -> str:
        return self.hyphenated


class ControlFamily(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str


class ControlMetadata(BaseModel):
    id: ControlIdentifier
    title: str
    description: str = ""
    family: str
    enhancements: Optional[list[ControlIdentifier]] = None


class SearchFilter(BaseModel):
    """Catalog search criteria. All fields optional; empty filter lists everything."""

    query: Optional[str] = None
    family: Optional[str] = None
    tier: Optional[str] = None
    limit: int = Field(default=20, gt=0)
