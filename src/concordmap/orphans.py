"""Détection des associations orphelines avant la suppression d'un fichier source."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path

from concordmap.config import ConcordMapError
from concordmap.io_excel import extract_columns
from concordmap.mapping import MappingDocument
from concordmap.matching.schema import ColumnPropertyAssociation, SourceColumn

logger = logging.getLogger(__name__)

ColumnExtractor = Callable[[Path], list[SourceColumn]]


@dataclass
class OrphanReport:
    """Associations rendues orphelines, groupées par type de données."""

    source: str = ""
    headers: frozenset[str] = frozenset()
    by_data_type: dict[str, list[ColumnPropertyAssociation]] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(len(v) for v in self.by_data_type.values())

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def associations(self) -> list[ColumnPropertyAssociation]:
        return [a for group in self.by_data_type.values() for a in group]

    def summary_text(self) -> str:
        if self.is_empty:
            return "Aucune association orpheline."
        lines = [f"{self.total} association(s) deviendront orphelines:"]
        for data_type, group in self.by_data_type.items():
            lines.append(f"  {data_type}:")
            for assoc in group:
                lines.append(f"    - {assoc.property_name} ← {assoc.column_header}")
        return "\n".join(lines)


def find_orphans_for_headers(
    document: MappingDocument,
    headers: Iterable[str],
    source: str = "",
) -> OrphanReport:
    """
    Associations dont l'en-tête figure parmi `headers`.

    Comparaison exacte insensible à la casse (après trim), jamais floue.
    """
    if document is None or headers is None:
        raise TypeError("document et headers sont requis")
    lowered = frozenset(h.strip().lower() for h in headers if h is not None and h.strip())
    report = OrphanReport(source=source, headers=lowered)
    for assoc in document:
        if assoc.column_header.strip().lower() in lowered:
            report.by_data_type.setdefault(assoc.target_data_type, []).append(assoc)
    return report


def find_orphaned_associations(
    document: MappingDocument,
    file_path: str | Path,
    extractor: ColumnExtractor | None = None,
) -> OrphanReport:
    """
    Associations qui perdraient leur colonne si `file_path` était retiré du projet.

    Les en-têtes de toutes les feuilles du fichier sont pris en compte. Un fichier
    illisible est journalisé et traité comme ne fournissant aucune colonne.
    """
    path = Path(file_path)
    extract = extractor or extract_columns
    try:
        columns = extract(path)
    except (ConcordMapError, OSError, ValueError) as e:
        logger.warning("Colonnes illisibles pour %s, aucune orpheline détectée: %s", path, e)
        columns = []
    return find_orphans_for_headers(document, (c.name for c in columns), source=str(path))


def remove_orphaned_associations(
    document: MappingDocument,
    confirmed: Iterable[ColumnPropertyAssociation],
) -> int:
    """Supprime exactement les associations confirmées. Renvoie le nombre supprimé."""
    removed = document.remove_many(confirmed)
    logger.info("%d association(s) orpheline(s) supprimée(s)", removed)
    return removed
