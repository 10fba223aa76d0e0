"""Auto-mapping : meilleure colonne par propriété, décision par bandes de confiance."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from concordmap.config import AutoMapConfig, ConfigError
from concordmap.mapping import MappingDocument
from concordmap.matching.schema import (
    ORIGIN_AUTO,
    ORIGIN_MANUAL,
    ColumnPropertyAssociation,
    MatchReason,
    Severity,
    SourceColumn,
    TargetProperty,
)
from concordmap.matching.scorers import classify

logger = logging.getLogger(__name__)

MATCHED_ON_NAME = "name"
MATCHED_ON_DESCRIPTION = "description"


@dataclass(frozen=True)
class AutoMapDecision:
    """Meilleur candidat trouvé pour une propriété."""

    target_property: TargetProperty
    column: SourceColumn | None
    score: float
    reason: MatchReason
    matched_on: str = MATCHED_ON_NAME
    threshold: float = 0.0

    @property
    def column_name(self) -> str:
        return self.column.name if self.column is not None else ""


@dataclass
class AutoMapSummary:
    """Résultat d'un auto-mapping pour un type de données."""

    data_type: str
    accepted: list[AutoMapDecision] = field(default_factory=list)
    suggested: list[AutoMapDecision] = field(default_factory=list)
    unmatched: list[AutoMapDecision] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def evaluated_count(self) -> int:
        return len(self.accepted) + len(self.suggested) + len(self.unmatched)

    def summary_text(self) -> str:
        lines = [
            f"Auto-mapping {self.data_type}: {len(self.accepted)} associée(s), "
            f"{len(self.suggested)} suggestion(s), {len(self.unmatched)} sans correspondance"
        ]
        for d in self.accepted:
            lines.append(f"  ✓ {d.target_property.name} ← {d.column_name} ({d.score:.0%})")
        for d in self.suggested:
            lines.append(f"  ? {d.target_property.name} ← {d.column_name} ({d.score:.0%}, à confirmer)")
        for d in self.unmatched:
            lines.append(f"  ✗ {d.target_property.name}")
        return "\n".join(lines)


class AutoMapper:
    """Associe automatiquement les colonnes source aux propriétés d'un type de données."""

    def __init__(self, config: AutoMapConfig | None = None) -> None:
        self.config = config or AutoMapConfig()
        self.config.validate()
        self.thresholds = self.config.thresholds
        self.visibility = self.config.visibility

    def _semantic_guard(self, prop: TargetProperty, data_type: str, column_name: str) -> bool:
        """
        True si une propriété d'identité est rapprochée d'une colonne de classification
        (ex. "Id" ← "Breaker Style").
        """
        is_identity = (
            prop.required
            or prop.name.lower() == "id"
            or prop.name.lower() == data_type.lower()
            or prop.name.lower() == data_type.lower() + "s"
        )
        if not is_identity:
            return False
        lowered = column_name.lower()
        return any(keyword in lowered for keyword in self.config.semantic_keywords)

    def score_property(
        self,
        prop: TargetProperty,
        candidates: Sequence[SourceColumn],
        data_type: str,
    ) -> AutoMapDecision:
        """
        Calcule le meilleur candidat pour une propriété.

        À score égal, la colonne déclarée en premier l'emporte.
        """
        best_column: SourceColumn | None = None
        best_score = 0.0
        best_reason = MatchReason.NO_MATCH
        best_on = MATCHED_ON_NAME

        for column in candidates:
            result = classify(column.name, prop.name, hybrid=self.config.hybrid)
            score, reason, matched_on = result.score, result.reason, MATCHED_ON_NAME
            if self.config.use_descriptions and prop.description and prop.description.strip():
                desc = classify(column.name, prop.description, hybrid=self.config.hybrid)
                if desc.score > score:
                    score, reason, matched_on = desc.score, desc.reason, MATCHED_ON_DESCRIPTION
            if score > best_score:
                best_column, best_score, best_reason, best_on = column, score, reason, matched_on

        threshold = self.thresholds.auto_accept
        if best_column is not None and self._semantic_guard(prop, data_type, best_column.name):
            threshold = max(threshold, self.config.semantic_threshold)
            logger.debug(
                "Seuil relevé à %.2f pour %s.%s (colonne %r)",
                threshold,
                data_type,
                prop.name,
                best_column.name,
            )

        return AutoMapDecision(
            target_property=prop,
            column=best_column,
            score=best_score,
            reason=best_reason,
            matched_on=best_on,
            threshold=threshold,
        )

    def run(
        self,
        columns: Sequence[SourceColumn],
        properties: Sequence[TargetProperty],
        document: MappingDocument,
        data_type: str | None = None,
        *,
        reevaluate: bool = False,
    ) -> AutoMapSummary:
        """
        Exécute l'auto-mapping pour un type de données.

        Seules les décisions au-dessus du seuil d'acceptation créent une association
        (origin "auto") dans le document. Les propriétés déjà associées sont ignorées,
        sauf si `reevaluate` est vrai ; les colonnes déjà associées ne sont plus candidates.

        Args:
            columns: Colonnes source, dans l'ordre de déclaration.
            properties: Propriétés cibles d'un même type de données.
            document: Document de mapping modifié pour les acceptations.
            data_type: Type de données (défaut : celui des propriétés).
            reevaluate: Réévaluer aussi les propriétés déjà associées.

        Returns:
            AutoMapSummary (accepted / suggested / unmatched / skipped).

        Raises:
            TypeError: Si columns, properties ou document est None.
            ConfigError: Si les propriétés mélangent plusieurs types de données.
        """
        if columns is None or properties is None or document is None:
            raise TypeError("columns, properties et document sont requis")
        if data_type is None:
            if not properties:
                raise ConfigError("data_type requis quand la liste de propriétés est vide")
            data_type = properties[0].data_type
        mixed = sorted({p.data_type for p in properties if p.data_type != data_type})
        if mixed:
            raise ConfigError(f"Propriétés d'autres types que {data_type!r}: {mixed}")

        summary = AutoMapSummary(data_type=data_type)
        if not self.visibility.is_type_enabled(data_type):
            logger.info("Type %s désactivé: auto-mapping ignoré", data_type)
            return summary

        to_evaluate: list[TargetProperty] = []
        for prop in properties:
            if not self.visibility.is_property_visible(data_type, prop.name):
                continue
            if document.is_associated(data_type, prop.name) and not reevaluate:
                summary.skipped.append(prop.name)
                continue
            to_evaluate.append(prop)

        evaluated_names = {p.name for p in to_evaluate}
        consumed = {
            a.column_header
            for a in document.associations_for(data_type)
            if a.property_name not in evaluated_names
        }

        # Première occurrence par nom : une association ne référence que l'en-tête
        unique_columns: dict[str, SourceColumn] = {}
        for column in columns:
            if column.name.strip() and column.name not in unique_columns:
                unique_columns[column.name] = column

        for prop in to_evaluate:
            candidates = [c for name, c in unique_columns.items() if name not in consumed]
            decision = self.score_property(prop, candidates, data_type)

            if decision.column is not None and decision.score >= decision.threshold:
                document.set_association(
                    ColumnPropertyAssociation(
                        target_data_type=data_type,
                        property_name=prop.name,
                        column_header=decision.column.name,
                        required=prop.required,
                        severity=Severity.ERROR if prop.required else Severity.WARNING,
                        origin=ORIGIN_AUTO,
                    )
                )
                consumed.add(decision.column.name)
                summary.accepted.append(decision)
            elif decision.column is not None and decision.score >= self.thresholds.suggest_floor:
                summary.suggested.append(decision)
            else:
                summary.unmatched.append(decision)

        logger.info(
            "Auto-mapping %s: %d associée(s), %d suggestion(s), %d sans correspondance, %d ignorée(s)",
            data_type,
            len(summary.accepted),
            len(summary.suggested),
            len(summary.unmatched),
            len(summary.skipped),
        )
        return summary

    def accept_suggestions(
        self,
        summary: AutoMapSummary,
        document: MappingDocument,
        choices: dict[str, bool],
    ) -> list[ColumnPropertyAssociation]:
        """
        Applique les choix utilisateur aux suggestions.

        choices: {nom_propriété: True pour confirmer, False pour rejeter}.
        Une suggestion confirmée devient une association manuelle ; elle quitte
        `suggested` pour `accepted` (ou `unmatched` si rejetée).

        Returns:
            Associations créées.
        """
        created: list[ColumnPropertyAssociation] = []
        remaining: list[AutoMapDecision] = []
        for decision in summary.suggested:
            name = decision.target_property.name
            if name not in choices or decision.column is None:
                remaining.append(decision)
                continue
            if choices[name]:
                assoc = ColumnPropertyAssociation(
                    target_data_type=summary.data_type,
                    property_name=name,
                    column_header=decision.column.name,
                    required=decision.target_property.required,
                    severity=Severity.ERROR if decision.target_property.required else Severity.WARNING,
                    origin=ORIGIN_MANUAL,
                )
                document.set_association(assoc)
                created.append(assoc)
                summary.accepted.append(decision)
            else:
                summary.unmatched.append(decision)
        summary.suggested = remaining
        return created
