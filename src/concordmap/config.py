"""Configuration de l'auto-mapping et chargement du fichier config JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_AUTO_ACCEPT = 0.60
DEFAULT_SUGGEST_FLOOR = 0.40
DEFAULT_SEMANTIC_KEYWORDS = ("style", "type", "category", "class", "kind", "mode")
DEFAULT_SEMANTIC_THRESHOLD = 0.85


class ConcordMapError(Exception):
    """Exception de base pour ConcordMap."""


class ConfigError(ConcordMapError, ValueError):
    """Erreur de validation de la configuration ou d'un argument."""


class ConfigFileError(ConcordMapError):
    """Erreur de chargement d'un fichier JSON (fichier absent, JSON invalide)."""


def _check_unit_interval(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ConfigError(f"{name} doit être entre 0 et 1 (got {value})")


@dataclass(frozen=True)
class MatchThresholds:
    """Seuils de confiance : acceptation automatique et plancher de suggestion."""

    auto_accept: float = DEFAULT_AUTO_ACCEPT
    suggest_floor: float = DEFAULT_SUGGEST_FLOOR

    def validate(self) -> None:
        """
        Vérifie 0 <= suggest_floor <= auto_accept <= 1.

        Raises:
            ConfigError: Si les seuils sont incohérents.
        """
        _check_unit_interval("auto_accept", self.auto_accept)
        _check_unit_interval("suggest_floor", self.suggest_floor)
        if self.suggest_floor > self.auto_accept:
            raise ConfigError(
                f"suggest_floor ({self.suggest_floor}) doit être <= auto_accept ({self.auto_accept})"
            )

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> MatchThresholds:
        thresholds = cls(
            auto_accept=float(d.get("auto_accept", DEFAULT_AUTO_ACCEPT)),
            suggest_floor=float(d.get("suggest_floor", DEFAULT_SUGGEST_FLOOR)),
        )
        thresholds.validate()
        return thresholds


@dataclass(frozen=True)
class CatalogVisibility:
    """
    Visibilité des types de données et des propriétés.

    Valeur explicite passée à l'auto-mapping, à la validation et aux statistiques
    (aucun état global).
    """

    disabled_types: frozenset[str] = frozenset()
    hidden_properties: dict[str, frozenset[str]] = field(default_factory=dict)

    def is_type_enabled(self, data_type: str) -> bool:
        return data_type not in self.disabled_types

    def is_property_visible(self, data_type: str, property_name: str) -> bool:
        if not self.is_type_enabled(data_type):
            return False
        return property_name not in self.hidden_properties.get(data_type, frozenset())

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> CatalogVisibility:
        disabled = d.get("disabled_types", [])
        hidden = d.get("hidden_properties", {})
        if not isinstance(disabled, list):
            raise ConfigError("disabled_types doit être une liste")
        if not isinstance(hidden, dict):
            raise ConfigError("hidden_properties doit être un objet {type: [propriétés]}")
        return cls(
            disabled_types=frozenset(str(t) for t in disabled),
            hidden_properties={str(t): frozenset(str(p) for p in props) for t, props in hidden.items()},
        )


@dataclass
class AutoMapConfig:
    """Configuration principale de l'auto-mapping."""

    thresholds: MatchThresholds = field(default_factory=MatchThresholds)
    hybrid: bool = True
    use_descriptions: bool = True
    semantic_keywords: tuple[str, ...] = DEFAULT_SEMANTIC_KEYWORDS
    semantic_threshold: float = DEFAULT_SEMANTIC_THRESHOLD
    visibility: CatalogVisibility = field(default_factory=CatalogVisibility)

    def validate(self) -> None:
        """Raises: ConfigError si un seuil est hors bornes."""
        self.thresholds.validate()
        _check_unit_interval("semantic_threshold", self.semantic_threshold)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> AutoMapConfig:
        keywords = d.get("semantic_keywords", list(DEFAULT_SEMANTIC_KEYWORDS))
        if not isinstance(keywords, list):
            raise ConfigError("semantic_keywords doit être une liste")

        config = cls(
            thresholds=MatchThresholds.from_dict(d.get("thresholds", {})),
            hybrid=bool(d.get("hybrid", True)),
            use_descriptions=bool(d.get("use_descriptions", True)),
            semantic_keywords=tuple(str(k).lower() for k in keywords if str(k).strip()),
            semantic_threshold=float(d.get("semantic_threshold", DEFAULT_SEMANTIC_THRESHOLD)),
            visibility=CatalogVisibility.from_dict(d.get("visibility", {})),
        )
        config.validate()
        return config

    @classmethod
    def load(cls, path: str | Path) -> AutoMapConfig:
        """
        Charge la configuration depuis un fichier JSON.

        Raises:
            ConfigFileError: Si le fichier est absent ou le JSON invalide.
            ConfigError: Si la configuration est invalide.
        """
        return cls.from_dict(load_json_object(path, "configuration"))


def load_json_object(path: str | Path, what: str = "JSON") -> dict[str, Any]:
    """
    Lit un fichier JSON dont la racine doit être un objet.

    Raises:
        ConfigFileError: Fichier absent, illisible, JSON invalide ou racine non-objet.
    """
    path = Path(path).resolve()
    if not path.exists():
        raise ConfigFileError(f"Fichier de {what} introuvable: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            d = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigFileError(f"JSON invalide dans {path}: {e}") from e
    except OSError as e:
        raise ConfigFileError(f"Impossible de lire {path}: {e}") from e

    if not isinstance(d, dict):
        raise ConfigFileError(f"Fichier de {what} invalide: {path} doit contenir un objet JSON")
    return d
