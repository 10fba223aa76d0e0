"""Schémas et types pour le matching et les associations colonne → propriété."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class MatchReason(str, Enum):
    """Raison d'une correspondance, de la plus spécifique à la moins spécifique."""

    EXACT = "Exact"
    CASE_INSENSITIVE = "CaseInsensitive"
    NORMALIZED = "Normalized"
    EDIT_DISTANCE = "EditDistance"
    PREFIX_SIMILARITY = "PrefixSimilarity"
    HYBRID = "Hybrid"
    NO_MATCH = "NoMatch"


class Severity(str, Enum):
    """Gravité d'une association manquante ou d'un problème de validation."""

    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"


ORIGIN_AUTO = "auto"
ORIGIN_MANUAL = "manual"
VALID_ORIGINS = frozenset({ORIGIN_AUTO, ORIGIN_MANUAL})


@dataclass(frozen=True)
class MatchResult:
    """Résultat de comparaison d'une chaîne source avec une chaîne cible."""

    source: str
    target: str
    score: float
    reason: MatchReason

    @property
    def is_match(self) -> bool:
        return self.reason is not MatchReason.NO_MATCH

    def __repr__(self) -> str:
        return f"MatchResult({self.source!r} -> {self.target!r}, score={self.score:.3f}, {self.reason.value})"


@dataclass(frozen=True)
class SourceColumn:
    """Colonne extraite d'un fichier. Identité : (source_table, name)."""

    name: str
    source_table: str = ""
    sample_non_empty_count: int = 0


@dataclass(frozen=True)
class TargetProperty:
    """Propriété canonique d'un type de données."""

    name: str
    data_type: str
    description: str | None = None
    required: bool = False


@dataclass(frozen=True)
class ColumnPropertyAssociation:
    """
    Lien entre un en-tête de colonne et une propriété cible.

    Unique par (target_data_type, property_name) dans un document de mapping.
    origin vaut "auto" (créée par l'auto-mapping) ou "manual" (confirmée par l'utilisateur).
    """

    target_data_type: str
    property_name: str
    column_header: str
    required: bool = False
    severity: Severity = Severity.WARNING
    aliases: tuple[str, ...] = field(default_factory=tuple)
    default_value: str | None = None
    origin: str = ORIGIN_MANUAL

    @property
    def key(self) -> tuple[str, str]:
        return (self.target_data_type, self.property_name)
