"""
Query parameters for one pipeline run.

``QueryParameters`` is built once per inbound request and never mutated.
Validation against the class/spec/encounter tables happens upstream in
``talent_trends.reference``; this model only enforces shape.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

ALL_REGIONS = "all"


class QueryParameters(BaseModel):
    """Leaderboard filter for a single (class, spec, encounter, region) tuple.

    Attributes:
        class_name: Class key as configured, e.g. ``"Death_Knight"``.
        spec_name: Spec name, e.g. ``"Unholy"``.
        encounter_id: Warcraft Logs encounter id, e.g. ``3129``.
        region: Server region code (``"US"``, ``"EU"``...) or ``None`` for
            all regions.  ``""`` and ``"all"`` are normalised to ``None``.
    """

    model_config = ConfigDict(frozen=True)

    class_name: str
    spec_name: str
    encounter_id: int
    region: Optional[str] = None

    @field_validator("class_name", "spec_name")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("class_name and spec_name must not be blank.")
        return v

    @field_validator("encounter_id")
    @classmethod
    def validate_encounter_id(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"encounter_id must be positive, got {v}.")
        return v

    @field_validator("region")
    @classmethod
    def normalize_region(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v or v.lower() == ALL_REGIONS:
            return None
        return v.upper()
