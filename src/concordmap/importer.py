"""Réconciliation d'import : audit en lecture seule puis fusion par scénario dans le jeu de données."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

import pandas as pd

from concordmap.config import ConfigError
from concordmap.dataset import (
    ALL_SCENARIOS_LABEL,
    CompositeKey,
    Dataset,
    DatasetSourceInfo,
    Record,
    RecordKind,
    ScenarioSource,
)
from concordmap.mapping import MappingDocument
from concordmap.matching.schema import ColumnPropertyAssociation, Severity
from concordmap.normalize import cell_text

logger = logging.getLogger(__name__)

# Numéro de ligne affiché : ligne 1 = en-têtes
FIRST_DATA_ROW = 2


class MergeStrategy(str, Enum):
    """Politique de fusion des enregistrements entrants avec les existants."""

    REPLACE = "Replace"
    SKIP_EXISTING = "SkipExisting"
    MERGE = "Merge"


@dataclass(frozen=True)
class ImportOptions:
    """Options d'un appel d'import (immuables)."""

    skip_blank_rows: bool = True
    trim_whitespace: bool = True
    stop_on_first_error: bool = False
    scenario_renames: Mapping[str, str] | None = None
    selected_scenarios: frozenset[str] | None = None
    merge_strategy: MergeStrategy = MergeStrategy.REPLACE

    def validate(self) -> None:
        """Raises: ConfigError si un renommage a un nom vide."""
        for old, new in (self.scenario_renames or {}).items():
            if not str(old).strip() or not str(new).strip():
                raise ConfigError(f"Renommage de scénario invalide: {old!r} -> {new!r}")

    def rename(self, scenario: str) -> str:
        if not self.scenario_renames:
            return scenario
        return self.scenario_renames.get(scenario, scenario)

    def is_selected(self, scenario: str) -> bool:
        return not self.selected_scenarios or scenario in self.selected_scenarios

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ImportOptions:
        strategy = d.get("merge_strategy", MergeStrategy.REPLACE.value)
        try:
            merge_strategy = MergeStrategy(strategy)
        except ValueError:
            raise ConfigError(
                f"merge_strategy invalide: {strategy!r}. Valides: {[s.value for s in MergeStrategy]}"
            ) from None
        renames = d.get("scenario_renames") or {}
        selected = d.get("selected_scenarios") or []
        if not isinstance(renames, dict):
            raise ConfigError("scenario_renames doit être un objet {ancien: nouveau}")
        if not isinstance(selected, list):
            raise ConfigError("selected_scenarios doit être une liste")
        options = cls(
            skip_blank_rows=bool(d.get("skip_blank_rows", True)),
            trim_whitespace=bool(d.get("trim_whitespace", True)),
            stop_on_first_error=bool(d.get("stop_on_first_error", False)),
            scenario_renames={str(k): str(v) for k, v in renames.items()} or None,
            selected_scenarios=frozenset(str(s) for s in selected) or None,
            merge_strategy=merge_strategy,
        )
        options.validate()
        return options


@dataclass
class _PreparedKind:
    """Enregistrements d'un type prêts à fusionner, groupés par scénario (après renommage)."""

    kind: RecordKind
    groups: dict[str, dict[CompositeKey, Record]] = field(default_factory=dict)
    file_scenarios: Counter[str] = field(default_factory=Counter)
    discovered: set[str] = field(default_factory=set)
    # scénario cible -> nom dans le fichier
    origins: dict[str, str] = field(default_factory=dict)
    total_rows: int = 0
    valid_rows: int = 0
    blank_rows: int = 0
    filtered_rows: int = 0
    duplicate_rows: int = 0
    rejected: bool = False


@dataclass
class _Preparation:
    kinds: list[_PreparedKind] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    aborted: bool = False


@dataclass
class ImportAuditResult:
    """Aperçu en lecture seule d'un import."""

    detected_data_types: list[str] = field(default_factory=list)
    discovered_scenarios: list[str] = field(default_factory=list)
    per_data_type_counts: dict[str, int] = field(default_factory=dict)
    per_scenario_counts: dict[str, int] = field(default_factory=dict)
    uniform_by_data_type: dict[str, bool] = field(default_factory=dict)
    total_rows: int = 0
    valid_rows: int = 0
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def can_import(self) -> bool:
        return not self.errors

    @property
    def has_scenarios(self) -> bool:
        return bool(self.discovered_scenarios)

    @property
    def has_uniform_scenarios(self) -> bool:
        return all(self.uniform_by_data_type.values())

    def summary_text(self) -> str:
        if not self.can_import:
            return f"Import impossible: {len(self.errors)} erreur(s)"
        if self.has_scenarios:
            return f"{self.valid_rows} ligne(s), {len(self.discovered_scenarios)} scénario(s)"
        return f"{self.valid_rows} ligne(s), {len(self.detected_data_types)} type(s) de données"


@dataclass(frozen=True)
class ScenarioOutcome:
    """Effet de la fusion pour un couple (type, scénario)."""

    data_type: str
    scenario: str
    inserted: int = 0
    removed: int = 0
    skipped: int = 0


@dataclass
class ImportResult:
    """Résultat d'un import : seul canal de compte rendu de la réconciliation."""

    strategy: MergeStrategy
    outcomes: list[ScenarioOutcome] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    aborted: bool = False
    total_rows: int = 0
    valid_rows: int = 0

    @property
    def total_inserted(self) -> int:
        return sum(o.inserted for o in self.outcomes)

    @property
    def total_removed(self) -> int:
        return sum(o.removed for o in self.outcomes)

    @property
    def total_skipped(self) -> int:
        return sum(o.skipped for o in self.outcomes)

    @property
    def success(self) -> bool:
        return not self.aborted and not self.errors

    def per_data_type(self) -> dict[str, dict[str, int]]:
        totals: dict[str, dict[str, int]] = {}
        for o in self.outcomes:
            t = totals.setdefault(o.data_type, {"inserted": 0, "removed": 0, "skipped": 0})
            t["inserted"] += o.inserted
            t["removed"] += o.removed
            t["skipped"] += o.skipped
        return totals

    def outcome(self, data_type: str, scenario: str = ALL_SCENARIOS_LABEL) -> ScenarioOutcome | None:
        for o in self.outcomes:
            if o.data_type == data_type and o.scenario == scenario:
                return o
        return None


def _resolve_column(assoc: ColumnPropertyAssociation, columns: list[str]) -> str | None:
    """En-tête du DataFrame pour une association : exact, alias, puis insensible à la casse."""
    for header in (assoc.column_header, *assoc.aliases):
        if header in columns:
            return header
    wanted = {h.strip().lower() for h in (assoc.column_header, *assoc.aliases)}
    for column in columns:
        if str(column).strip().lower() in wanted:
            return column
    return None


class _Preparer:
    """Transforme les lignes d'un lot en enregistrements clés, sans toucher au jeu de données."""

    def __init__(self, document: MappingDocument, dataset: Dataset, options: ImportOptions) -> None:
        self.document = document
        self.dataset = dataset
        self.options = options
        self.result = _Preparation()

    def _error(self, message: str) -> bool:
        """Enregistre une erreur. Renvoie True si l'import doit s'arrêter."""
        self.result.errors.append(message)
        if self.options.stop_on_first_error:
            self.result.aborted = True
        return self.result.aborted

    def run(self, batch: Mapping[str, pd.DataFrame]) -> _Preparation:
        for kind_name, df in batch.items():
            if self.result.aborted:
                break
            if not self.dataset.has_kind(kind_name):
                self.result.warnings.append(f"Type de données inconnu ignoré: {kind_name}")
                continue
            prepared = self._prepare_kind(self.dataset.kind(kind_name), df)
            self.result.kinds.append(prepared)
        return self.result

    def _prepare_kind(self, kind: RecordKind, df: pd.DataFrame) -> _PreparedKind:
        prepared = _PreparedKind(kind=kind, total_rows=len(df))
        associations = self.document.associations_for(kind.name)
        columns = list(df.columns)

        if not associations:
            prepared.rejected = True
            self._error(f"{kind.name}: aucune association colonne → propriété")
            return prepared

        by_property = {a.property_name: a for a in associations}
        resolved: dict[str, str] = {}
        defaults: dict[str, str] = {}
        for assoc in associations:
            column = _resolve_column(assoc, columns)
            if column is not None:
                resolved[assoc.property_name] = column
                continue
            if assoc.default_value is not None:
                defaults[assoc.property_name] = assoc.default_value
                continue
            if assoc.property_name in kind.key_fields:
                continue
            if assoc.required and assoc.severity is Severity.ERROR:
                prepared.rejected = True
                if self._error(f"{kind.name}: colonne requise absente: {assoc.column_header!r} ({assoc.property_name})"):
                    return prepared
            else:
                self.result.warnings.append(
                    f"{kind.name}: colonne absente ignorée: {assoc.column_header!r} ({assoc.property_name})"
                )

        for key_field in kind.key_fields:
            if key_field in resolved or key_field in defaults:
                continue
            prepared.rejected = True
            if key_field not in by_property:
                message = f"{kind.name}: champ de clé {key_field!r} non associé"
            else:
                message = f"{kind.name}: colonne de clé absente: {by_property[key_field].column_header!r} ({key_field})"
            if self._error(message):
                return prepared
        if prepared.rejected:
            return prepared

        trim = self.options.trim_whitespace
        for position, (_, row) in enumerate(df.iterrows()):
            row_number = position + FIRST_DATA_ROW
            values = {prop: cell_text(row[column], trim=trim) for prop, column in resolved.items()}

            if self.options.skip_blank_rows and all(v == "" for v in values.values()):
                prepared.blank_rows += 1
                continue

            record: Record = dict(values)
            for prop, default in defaults.items():
                record[prop] = default
            for prop in resolved:
                assoc = by_property[prop]
                if record[prop] == "" and assoc.default_value is not None:
                    record[prop] = assoc.default_value

            try:
                key = kind.key_for(record, trim=trim)
            except ConfigError as e:
                if self._error(f"{kind.name} ligne {row_number}: {e}"):
                    return prepared
                continue

            scenario = kind.scenario_of(key)
            if scenario is not None:
                prepared.discovered.add(scenario)
                if not self.options.is_selected(scenario):
                    prepared.filtered_rows += 1
                    continue
                target = self.options.rename(scenario)
                prepared.origins.setdefault(target, scenario)
                if target != scenario:
                    key = key.with_component(kind.scenario_index, target)
                    record[kind.scenario_field] = target
            else:
                target = ALL_SCENARIOS_LABEL

            group = prepared.groups.setdefault(target, {})
            if key in group:
                prepared.duplicate_rows += 1
                self.result.warnings.append(
                    f"{kind.name} ligne {row_number}: clé en double {tuple(key)!r}, ligne ignorée"
                )
                continue
            group[key] = record
            prepared.valid_rows += 1
            if scenario is not None:
                prepared.file_scenarios[scenario] += 1

        if kind.has_scenarios and len(set(prepared.file_scenarios.values())) > 1:
            detail = ", ".join(f"{s}={n}" for s, n in sorted(prepared.file_scenarios.items()))
            self.result.warnings.append(f"{kind.name}: effectifs différents selon le scénario ({detail})")
        return prepared


def _prepare(
    batch: Mapping[str, pd.DataFrame],
    document: MappingDocument,
    dataset: Dataset,
    options: ImportOptions,
) -> _Preparation:
    if batch is None or document is None or dataset is None or options is None:
        raise TypeError("batch, document, dataset et options sont requis")
    options.validate()
    return _Preparer(document, dataset, options).run(batch)


def audit_batch(
    batch: Mapping[str, pd.DataFrame],
    document: MappingDocument,
    dataset: Dataset | None = None,
    options: ImportOptions | None = None,
) -> ImportAuditResult:
    """
    Prévisualise un import sans modifier le jeu de données.

    Les scénarios sont rapportés avec leur nom dans le fichier (avant renommage).
    Avec un jeu de données existant, signale aussi les effets prévisibles de la stratégie.

    Args:
        batch: {type de données: DataFrame lu avec les en-têtes source}.
        document: Associations utilisées pour lire les colonnes.
        dataset: Jeu de données cible (consulté seulement). None = jeu vide.
        options: Options d'import (défaut : ImportOptions()).

    Returns:
        ImportAuditResult (can_import vrai si aucune erreur).
    """
    options = options or ImportOptions()
    target = dataset if dataset is not None else Dataset()
    prep = _prepare(batch, document, target, options)

    audit = ImportAuditResult(warnings=list(prep.warnings), errors=list(prep.errors))
    discovered: set[str] = set()
    for prepared in prep.kinds:
        audit.total_rows += prepared.total_rows
        discovered.update(prepared.discovered)
        if prepared.rejected:
            continue
        audit.valid_rows += prepared.valid_rows
        if prepared.valid_rows:
            audit.detected_data_types.append(prepared.kind.name)
            audit.per_data_type_counts[prepared.kind.name] = prepared.valid_rows
        for scenario, count in prepared.file_scenarios.items():
            audit.per_scenario_counts[scenario] = audit.per_scenario_counts.get(scenario, 0) + count
        if prepared.kind.has_scenarios:
            audit.uniform_by_data_type[prepared.kind.name] = len(set(prepared.file_scenarios.values())) <= 1
        if dataset is not None:
            audit.warnings.extend(_strategy_notices(prepared, dataset, options.merge_strategy))
    audit.discovered_scenarios = sorted(discovered)
    return audit


def _strategy_notices(prepared: _PreparedKind, dataset: Dataset, strategy: MergeStrategy) -> list[str]:
    notices = []
    name = prepared.kind.name
    for scenario, records in prepared.groups.items():
        existing = _existing_keys(dataset, prepared.kind, scenario)
        if not existing:
            continue
        if strategy is MergeStrategy.REPLACE:
            notices.append(f"{name}/{scenario}: {len(existing)} enregistrement(s) existant(s) seront remplacés")
        elif strategy is MergeStrategy.SKIP_EXISTING:
            notices.append(f"{name}/{scenario}: déjà présent, {len(records)} ligne(s) seront ignorées")
        else:
            overlap = sum(1 for key in records if key in existing)
            if overlap:
                notices.append(
                    f"{name}/{scenario}: {overlap} clé(s) existante(s) conservée(s), champs possiblement obsolètes"
                )
    return notices


def _existing_keys(dataset: Dataset, kind: RecordKind, scenario: str) -> set[CompositeKey]:
    keys = dataset.keys(kind.name)
    if kind.scenario_index is None:
        return set(keys)
    return {key for key in keys if key[kind.scenario_index] == scenario}


def _merge_group(
    dataset: Dataset,
    kind: RecordKind,
    scenario: str,
    records: dict[CompositeKey, Record],
    strategy: MergeStrategy,
) -> ScenarioOutcome:
    existing = _existing_keys(dataset, kind, scenario)

    if strategy is MergeStrategy.REPLACE:
        for key in existing:
            dataset.remove(kind.name, key)
        for key, record in records.items():
            dataset.put(kind.name, key, record)
        return ScenarioOutcome(kind.name, scenario, inserted=len(records), removed=len(existing))

    if strategy is MergeStrategy.SKIP_EXISTING:
        if existing:
            return ScenarioOutcome(kind.name, scenario, skipped=len(records))
        for key, record in records.items():
            dataset.put(kind.name, key, record)
        return ScenarioOutcome(kind.name, scenario, inserted=len(records))

    inserted = skipped = 0
    for key, record in records.items():
        if key in existing:
            skipped += 1
            continue
        dataset.put(kind.name, key, record)
        inserted += 1
    return ScenarioOutcome(kind.name, scenario, inserted=inserted, skipped=skipped)


def _track_source(
    sources: DatasetSourceInfo, prepared: _PreparedKind, scenario: str, file_path: str
) -> None:
    kind = prepared.kind
    if not kind.has_scenarios:
        sources.record_kind(kind.name, file_path)
    else:
        original = prepared.origins.get(scenario)
        sources.record_scenario(kind.name, ScenarioSource(file_path, scenario, original))
    logger.debug("Provenance: %s/%s <- %s", kind.name, scenario, Path(file_path).name)


def import_batch(
    batch: Mapping[str, pd.DataFrame],
    document: MappingDocument,
    dataset: Dataset,
    options: ImportOptions | None = None,
    *,
    source: str | Path | None = None,
    sources: DatasetSourceInfo | None = None,
) -> ImportResult:
    """
    Fusionne un lot dans le jeu de données selon la stratégie choisie.

    Étapes : lignes vides ignorées, filtre des scénarios sélectionnés, renommage,
    puis fusion par (type, scénario). Les problèmes de données sont rapportés dans
    le résultat, jamais levés. Avec stop_on_first_error, la première erreur
    interrompt l'import avant toute écriture (aborted=True).

    Args:
        batch: {type de données: DataFrame lu avec les en-têtes source}.
        document: Associations utilisées pour lire les colonnes.
        dataset: Jeu de données modifié.
        options: Options d'import (défaut : ImportOptions()).
        source: Fichier d'origine du lot, pour le suivi de provenance.
        sources: Provenance mise à jour pour chaque groupe effectivement inséré
            (nom de scénario d'origine conservé). Ignoré sans `source`.

    Returns:
        ImportResult avec les compteurs par type et par scénario.
    """
    options = options or ImportOptions()
    prep = _prepare(batch, document, dataset, options)
    result = ImportResult(
        strategy=options.merge_strategy,
        warnings=list(prep.warnings),
        errors=list(prep.errors),
        total_rows=sum(p.total_rows for p in prep.kinds),
        valid_rows=sum(p.valid_rows for p in prep.kinds if not p.rejected),
    )

    if prep.aborted:
        result.aborted = True
        logger.warning("Import interrompu à la première erreur: %s", prep.errors[-1])
        return result

    for prepared in prep.kinds:
        if prepared.rejected:
            continue
        for scenario in sorted(prepared.groups):
            outcome = _merge_group(
                dataset, prepared.kind, scenario, prepared.groups[scenario], options.merge_strategy
            )
            result.outcomes.append(outcome)
            if sources is not None and source is not None and outcome.inserted:
                _track_source(sources, prepared, scenario, str(source))
            logger.info(
                "%s/%s: %d insérés, %d supprimés, %d ignorés",
                outcome.data_type,
                outcome.scenario,
                outcome.inserted,
                outcome.removed,
                outcome.skipped,
            )
            if options.merge_strategy is MergeStrategy.MERGE and outcome.skipped:
                result.warnings.append(
                    f"{outcome.data_type}/{outcome.scenario}: {outcome.skipped} enregistrement(s) existant(s) "
                    "conservé(s), champs possiblement obsolètes"
                )
    return result
