"""
Static reference data: playable classes and specs, raid encounters, regions.

Classes and their specs come from ``data/classes.toml``, shipped as package
data (one table per class, keyed with underscores for multi-word names).
Encounters and regions change once per season and are kept here as constants.

``validate_query()`` checks an inbound request against these tables and
builds the ``QueryParameters`` for a pipeline run.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from talent_trends.models.query import ALL_REGIONS, QueryParameters

CLASSES_FILE = Path(__file__).parent / "data" / "classes.toml"


@dataclass(frozen=True)
class Encounter:
    id: int
    name: str


@dataclass(frozen=True)
class Region:
    code: str
    name: str


# Manaforge Omega (The War Within season 3)
ENCOUNTERS: tuple[Encounter, ...] = (
    Encounter(3129, "Plexus Sentinel"),
    Encounter(3131, "Loom'ithar"),
    Encounter(3130, "Soulbinder Naazindhri"),
    Encounter(3132, "Forgeweaver Araz"),
    Encounter(3122, "The Soul Hunters"),
    Encounter(3133, "Fractillus"),
    Encounter(3134, "Nexus-King Salahadaar"),
    Encounter(3135, "Dimensius, the All-Devouring"),
)

REGIONS: tuple[Region, ...] = (
    Region(ALL_REGIONS, "All Regions"),
    Region("US", "US & Oceanic"),
    Region("EU", "Europe"),
    Region("KR", "Korea"),
    Region("TW", "Taiwan"),
    Region("CN", "China"),
)


@dataclass(frozen=True)
class ClassSpecs:
    """Class key → allowed spec names, in file order."""

    classes: dict[str, tuple[str, ...]]

    def specs_for(self, class_name: str) -> Optional[tuple[str, ...]]:
        """Look up specs by key, accepting spaces in place of underscores."""
        return self.classes.get(class_name.strip().replace(" ", "_"))

    @staticmethod
    def display_name(class_name: str) -> str:
        return class_name.replace("_", " ")


def load_class_specs(path: Path = CLASSES_FILE) -> ClassSpecs:
    """Parse a classes TOML file.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If a class table has no ``specs`` list.
    """
    with open(path, "rb") as f:
        raw = tomllib.load(f)

    classes: dict[str, tuple[str, ...]] = {}
    for name, table in raw.items():
        specs = table.get("specs") if isinstance(table, dict) else None
        if not isinstance(specs, list) or not specs:
            raise ValueError(f"Class '{name}' in {path} has no specs list.")
        classes[name] = tuple(str(s) for s in specs)
    return ClassSpecs(classes=classes)


@lru_cache(maxsize=1)
def default_class_specs() -> ClassSpecs:
    return load_class_specs()


def validate_query(
    class_name: str,
    spec_name: str,
    encounter_id: int,
    region: Optional[str] = None,
    class_specs: Optional[ClassSpecs] = None,
) -> QueryParameters:
    """Validate a request against the reference tables.

    Raises:
        ValueError: On an unknown class, spec, encounter or region.
    """
    class_specs = class_specs or default_class_specs()

    specs = class_specs.specs_for(class_name)
    if specs is None:
        raise ValueError(
            f"Unknown class '{class_name}'. "
            f"Must be one of {sorted(class_specs.classes)}."
        )
    if spec_name not in specs:
        raise ValueError(
            f"Unknown spec '{spec_name}' for class '{class_name}'. "
            f"Must be one of {list(specs)}."
        )
    if encounter_id not in {e.id for e in ENCOUNTERS}:
        raise ValueError(f"Unknown encounter id {encounter_id}.")
    if region and region.upper() not in {r.code.upper() for r in REGIONS}:
        raise ValueError(
            f"Unknown region '{region}'. Must be one of {[r.code for r in REGIONS]}."
        )

    return QueryParameters(
        class_name=class_name.strip().replace(" ", "_"),
        spec_name=spec_name,
        encounter_id=encounter_id,
        region=region,
    )
