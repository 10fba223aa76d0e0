"""Catalogue versionné des propriétés cibles par type de données."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from concordmap.config import CatalogVisibility, ConfigError
from concordmap.matching.schema import TargetProperty

CATALOG_VERSION = "2025.1"


@dataclass(frozen=True)
class PropertyCatalog:
    """
    Propriétés cibles déclarées pour chaque type de données.

    Structure de données explicite construite une fois par version de schéma :
    aucun type n'est inspecté à l'exécution.
    """

    version: str
    properties_by_type: dict[str, tuple[TargetProperty, ...]] = field(default_factory=dict)

    def data_types(self) -> list[str]:
        return list(self.properties_by_type)

    def has_type(self, data_type: str) -> bool:
        return data_type in self.properties_by_type

    def properties_for(
        self,
        data_type: str,
        visibility: CatalogVisibility | None = None,
    ) -> list[TargetProperty]:
        """
        Propriétés d'un type, dans l'ordre de déclaration.

        Avec `visibility`, un type désactivé ne renvoie rien et les propriétés masquées sont exclues.

        Raises:
            ConfigError: Si le type est inconnu.
        """
        if data_type not in self.properties_by_type:
            raise ConfigError(f"Type de données inconnu: {data_type!r}. Connus: {self.data_types()}")
        props = self.properties_by_type[data_type]
        if visibility is None:
            return list(props)
        return [p for p in props if visibility.is_property_visible(data_type, p.name)]

    def get_property(self, data_type: str, name: str) -> TargetProperty | None:
        for prop in self.properties_by_type.get(data_type, ()):
            if prop.name == name:
                return prop
        return None

    def required_properties(self, data_type: str) -> list[TargetProperty]:
        return [p for p in self.properties_for(data_type) if p.required]

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> PropertyCatalog:
        """
        Construit un catalogue depuis {"version": ..., "types": {type: [{name, description, required}]}}.

        Raises:
            ConfigError: Si la structure est invalide ou une propriété est en double.
        """
        version = str(d.get("version", "")).strip()
        if not version:
            raise ConfigError("version du catalogue requise")
        types = d.get("types", {})
        if not isinstance(types, dict):
            raise ConfigError("types doit être un objet {type: [propriétés]}")

        properties_by_type: dict[str, tuple[TargetProperty, ...]] = {}
        for data_type, entries in types.items():
            if not isinstance(entries, list):
                raise ConfigError(f"types.{data_type} doit être une liste")
            props: list[TargetProperty] = []
            names: set[str] = set()
            for entry in entries:
                if isinstance(entry, str):
                    entry = {"name": entry}
                name = str(entry.get("name", "")).strip()
                if not name:
                    raise ConfigError(f"types.{data_type}: propriété sans nom")
                if name in names:
                    raise ConfigError(f"types.{data_type}: propriété {name!r} en double")
                names.add(name)
                props.append(
                    TargetProperty(
                        name=name,
                        data_type=data_type,
                        description=entry.get("description"),
                        required=bool(entry.get("required", False)),
                    )
                )
            properties_by_type[data_type] = tuple(props)
        return cls(version=version, properties_by_type=properties_by_type)


def _props(data_type: str, *specs: tuple[str, str | None, bool]) -> tuple[TargetProperty, ...]:
    return tuple(TargetProperty(name, data_type, description, required) for name, description, required in specs)


def default_catalog() -> PropertyCatalog:
    """Catalogue des types d'études et d'équipements connus."""
    return PropertyCatalog(
        version=CATALOG_VERSION,
        properties_by_type={
            "ArcFlash": _props(
                "ArcFlash",
                ("Id", "Arc Fault Bus Name", True),
                ("Scenario", "Scenario", True),
                ("WorstCase", "Worst Case", False),
                ("BusKV", "Arc Fault Bus kV", False),
                ("UpstreamDevice", "Upstream Trip Device Name", False),
                ("EquipmentType", "Equip Type", False),
                ("BoltedFaultKA", "Bolted Fault (kA)", False),
                ("ArcFaultKA", "Arc Fault (kA)", False),
                ("ArcTime", "Arc Time (sec)", False),
                ("ArcFlashBoundaryInches", "Arc Flash Boundary (in)", False),
                ("WorkingDistance", "Working Distance (in)", False),
                ("IncidentEnergy", "Incident Energy (cal/cm2)", True),
                ("Comments", None, False),
            ),
            "ShortCircuit": _props(
                "ShortCircuit",
                ("BusName", "Bus Name", True),
                ("EquipmentName", "Equipment Name", True),
                ("Scenario", "Scenario", True),
                ("WorstCase", "Worst Case", False),
                ("FaultType", "Fault Type", False),
                ("BusBaseKV", "Bus Base kV", False),
                ("EquipmentManufacturer", "Equipment Manufacturer", False),
                ("EquipmentStyle", "Equipment Style", False),
                ("HalfCycleRatingKA", "1/2 Cycle Rating (kA)", False),
                ("HalfCycleDutyKA", "1/2 Cycle Duty (kA)", False),
                ("HalfCycleDutyPercent", "1/2 Cycle Duty (%)", False),
            ),
            "Bus": _props(
                "Bus",
                ("Name", "Bus Name", True),
                ("BaseKV", "Base kV", False),
                ("NoOfPhases", "No of Phases", False),
                ("Manufacturer", None, False),
                ("Type", None, False),
                ("BusRatingA", "Bus Rating (A)", False),
            ),
            "LVCB": _props(
                "LVCB",
                ("Id", "LV Breakers", True),
                ("Bus", "On Bus", False),
                ("Voltage", None, False),
                ("Manufacturer", None, False),
                ("BreakerType", "Type", False),
                ("Style", None, False),
                ("FrameSize", "Frame Size", False),
            ),
            "Fuse": _props(
                "Fuse",
                ("Id", "Fuses", True),
                ("OnBus", "On Bus", False),
                ("BaseKV", "Base kV", False),
                ("Manufacturer", None, False),
                ("Type", None, False),
                ("Size", None, False),
            ),
            "Cable": _props(
                "Cable",
                ("Id", "Cables", True),
                ("FromBusId", "From Bus ID", False),
                ("ToBusId", "To Bus ID", False),
                ("Size", None, False),
                ("Length", None, False),
                ("Insulation", None, False),
            ),
        },
    )
