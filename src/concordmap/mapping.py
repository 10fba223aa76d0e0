"""Document de mapping : associations colonne → propriété, persistance JSON et validation."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from concordmap.config import ConfigError, ConfigFileError, load_json_object
from concordmap.matching.schema import (
    ORIGIN_MANUAL,
    VALID_ORIGINS,
    ColumnPropertyAssociation,
    Severity,
)

logger = logging.getLogger(__name__)

MAPPING_FORMAT_VERSION = 1


@dataclass(frozen=True)
class ValidationIssue:
    """Problème détecté sur une association ou une propriété."""

    severity: Severity
    message: str
    data_type: str = ""
    property_name: str = ""


@dataclass
class MappingValidationReport:
    """Résultat de validation : erreurs bloquantes et avertissements."""

    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add(self, issue: ValidationIssue) -> None:
        if issue.severity is Severity.ERROR:
            self.errors.append(issue)
        else:
            self.warnings.append(issue)


def parse_severity(value: Any) -> Severity:
    """Convertit "error", "Warning"... en Severity (insensible à la casse)."""
    if isinstance(value, Severity):
        return value
    text = str(value).strip().lower()
    for severity in Severity:
        if severity.value.lower() == text:
            return severity
    raise ConfigError(f"severity invalide: {value!r}. Valides: {[s.value for s in Severity]}")


def _clean(value: Any) -> str:
    return "" if value is None else str(value).strip()


def normalize_association(assoc: ColumnPropertyAssociation) -> ColumnPropertyAssociation:
    """Trim de tous les champs texte et suppression des alias vides."""
    default = assoc.default_value.strip() if assoc.default_value is not None else None
    return replace(
        assoc,
        target_data_type=assoc.target_data_type.strip(),
        property_name=assoc.property_name.strip(),
        column_header=assoc.column_header.strip(),
        aliases=tuple(a.strip() for a in assoc.aliases if a and a.strip()),
        default_value=default or None,
    )


class MappingDocument:
    """
    Ensemble des associations d'un projet, uniques par (type de données, propriété).

    Une nouvelle association pour une clé existante remplace l'ancienne ;
    set_association() renvoie la précédente pour que l'appelant puisse avertir.
    """

    def __init__(self, associations: Iterable[ColumnPropertyAssociation] = ()) -> None:
        self._associations: dict[tuple[str, str], ColumnPropertyAssociation] = {}
        self.load_issues: list[ValidationIssue] = []
        for assoc in associations:
            self.set_association(assoc)

    def __len__(self) -> int:
        return len(self._associations)

    def __iter__(self) -> Iterator[ColumnPropertyAssociation]:
        return iter(list(self._associations.values()))

    def __contains__(self, assoc: object) -> bool:
        if not isinstance(assoc, ColumnPropertyAssociation):
            return False
        return self._associations.get(assoc.key) == assoc

    def set_association(self, assoc: ColumnPropertyAssociation) -> ColumnPropertyAssociation | None:
        """
        Ajoute ou remplace l'association pour (target_data_type, property_name).

        Returns:
            L'association remplacée, ou None.

        Raises:
            ConfigError: Si le type, la propriété ou l'en-tête est vide.
        """
        if assoc is None:
            raise TypeError("assoc ne peut pas être None")
        assoc = normalize_association(assoc)
        if not assoc.target_data_type or not assoc.property_name:
            raise ConfigError("target_data_type et property_name sont requis")
        if not assoc.column_header:
            raise ConfigError(
                f"column_header requis pour {assoc.target_data_type}.{assoc.property_name}"
            )
        if assoc.origin not in VALID_ORIGINS:
            raise ConfigError(f"origin invalide: {assoc.origin!r}. Valides: {sorted(VALID_ORIGINS)}")

        previous = self._associations.get(assoc.key)
        self._associations[assoc.key] = assoc
        if previous is not None and previous.column_header != assoc.column_header:
            logger.info(
                "Association %s.%s remplacée: %r -> %r",
                assoc.target_data_type,
                assoc.property_name,
                previous.column_header,
                assoc.column_header,
            )
        return previous

    def associate(
        self,
        data_type: str,
        property_name: str,
        column_header: str,
        *,
        required: bool = False,
        severity: Severity = Severity.WARNING,
        origin: str = ORIGIN_MANUAL,
    ) -> ColumnPropertyAssociation | None:
        """Raccourci de set_association(). Renvoie l'association remplacée."""
        return self.set_association(
            ColumnPropertyAssociation(
                target_data_type=data_type,
                property_name=property_name,
                column_header=column_header,
                required=required,
                severity=severity,
                origin=origin,
            )
        )

    def get(self, data_type: str, property_name: str) -> ColumnPropertyAssociation | None:
        return self._associations.get((data_type, property_name))

    def is_associated(self, data_type: str, property_name: str) -> bool:
        return (data_type, property_name) in self._associations

    def remove(self, data_type: str, property_name: str) -> ColumnPropertyAssociation | None:
        """Supprime l'association de la clé donnée et la renvoie (None si absente)."""
        return self._associations.pop((data_type, property_name), None)

    def remove_many(self, associations: Iterable[ColumnPropertyAssociation]) -> int:
        """Supprime exactement les associations données encore présentes. Renvoie le nombre supprimé."""
        removed = 0
        for assoc in associations:
            if assoc in self:
                del self._associations[assoc.key]
                removed += 1
        return removed

    def associations(self) -> list[ColumnPropertyAssociation]:
        return list(self._associations.values())

    def associations_for(self, data_type: str) -> list[ColumnPropertyAssociation]:
        return [a for a in self._associations.values() if a.target_data_type == data_type]

    def data_types(self) -> list[str]:
        """Types de données ayant au moins une association, dans l'ordre d'apparition."""
        return list(dict.fromkeys(a.target_data_type for a in self._associations.values()))

    def column_headers(self, data_type: str | None = None) -> set[str]:
        return {
            a.column_header
            for a in self._associations.values()
            if data_type is None or a.target_data_type == data_type
        }

    def clear(self, data_type: str | None = None) -> int:
        """Supprime toutes les associations (ou celles d'un type). Renvoie le nombre supprimé."""
        if data_type is None:
            count = len(self._associations)
            self._associations.clear()
            return count
        keys = [k for k in self._associations if k[0] == data_type]
        for key in keys:
            del self._associations[key]
        return len(keys)

    def validate(self) -> MappingValidationReport:
        """
        Valide le document.

        Erreurs : entrées chargées sans type, propriété ou en-tête ; propriété requise
        en double au chargement. Avertissements : doublons de clé au chargement,
        même en-tête utilisé par plusieurs propriétés d'un type.
        """
        report = MappingValidationReport()
        for issue in self.load_issues:
            report.add(issue)

        seen: dict[tuple[str, str], str] = {}
        for assoc in self._associations.values():
            header_key = (assoc.target_data_type, assoc.column_header.lower())
            if header_key in seen:
                report.add(
                    ValidationIssue(
                        Severity.WARNING,
                        f"L'en-tête {assoc.column_header!r} est utilisé par {seen[header_key]!r} "
                        f"et {assoc.property_name!r}",
                        assoc.target_data_type,
                        assoc.property_name,
                    )
                )
            else:
                seen[header_key] = assoc.property_name
        return report

    def to_dict(self) -> dict[str, Any]:
        mappings = []
        for a in self._associations.values():
            entry: dict[str, Any] = {
                "target_type": a.target_data_type,
                "property_name": a.property_name,
                "column_header": a.column_header,
                "required": a.required,
                "severity": a.severity.value,
                "origin": a.origin,
            }
            if a.aliases:
                entry["aliases"] = list(a.aliases)
            if a.default_value is not None:
                entry["default_value"] = a.default_value
            mappings.append(entry)
        return {"version": MAPPING_FORMAT_VERSION, "mappings": mappings}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> MappingDocument:
        """
        Construit un document depuis un dict (format de to_dict()).

        Les entrées incomplètes sont ignorées et signalées dans load_issues ;
        une clé en double remplace la précédente (avertissement).

        Raises:
            ConfigError: Si la structure est invalide (mappings non-liste, severity inconnue...).
        """
        entries = d.get("mappings", [])
        if not isinstance(entries, list):
            raise ConfigError("mappings doit être une liste")

        doc = cls()
        seen: set[tuple[str, str]] = set()
        for i, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise ConfigError(f"mappings[{i}] doit être un objet")
            data_type = _clean(entry.get("target_type"))
            prop = _clean(entry.get("property_name"))
            header = _clean(entry.get("column_header"))
            required = bool(entry.get("required", False))

            missing = [
                name
                for name, value in (("target_type", data_type), ("property_name", prop), ("column_header", header))
                if not value
            ]
            if missing:
                doc.load_issues.append(
                    ValidationIssue(
                        Severity.ERROR,
                        f"mappings[{i}]: champ(s) vide(s): {', '.join(missing)}",
                        data_type,
                        prop,
                    )
                )
                continue

            aliases = entry.get("aliases", [])
            if not isinstance(aliases, list):
                raise ConfigError(f"mappings[{i}].aliases doit être une liste")
            default_value = entry.get("default_value")

            key = (data_type, prop)
            if key in seen:
                severity = Severity.ERROR if required else Severity.WARNING
                doc.load_issues.append(
                    ValidationIssue(
                        severity,
                        f"mappings[{i}]: {data_type}.{prop} en double, la dernière entrée est conservée",
                        data_type,
                        prop,
                    )
                )
            seen.add(key)

            doc.set_association(
                ColumnPropertyAssociation(
                    target_data_type=data_type,
                    property_name=prop,
                    column_header=header,
                    required=required,
                    severity=parse_severity(entry.get("severity", Severity.WARNING.value)),
                    aliases=tuple(str(a) for a in aliases if a is not None),
                    default_value=None if default_value is None else str(default_value),
                    origin=_clean(entry.get("origin")) or ORIGIN_MANUAL,
                )
            )
        return doc

    def save(self, path: str | Path) -> None:
        """Écrit le document en JSON (UTF-8, indenté)."""
        path = Path(path)
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)
        except OSError as e:
            raise ConfigFileError(f"Impossible d'écrire {path}: {e}") from e

    @classmethod
    def load(cls, path: str | Path) -> MappingDocument:
        """
        Charge un document depuis un fichier JSON.

        Raises:
            ConfigFileError: Si le fichier est absent ou le JSON invalide.
            ConfigError: Si la structure est invalide.
        """
        return cls.from_dict(load_json_object(path, "mapping"))
