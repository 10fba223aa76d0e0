"""Jeu de données à clés composites, partitionné par scénario pour certains types."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from concordmap.config import CatalogVisibility, ConfigError

logger = logging.getLogger(__name__)

ALL_SCENARIOS_LABEL = "(All)"

Record = dict[str, Any]


@dataclass(frozen=True)
class CompositeKey:
    """
    Clé composite : tuple ordonné de composantes texte non vides.

    Égalité et hachage ordinaux (sensibles à la casse).
    """

    components: tuple[str, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.components, tuple):
            raise TypeError("components doit être un tuple")
        if not self.components:
            raise ConfigError("Une clé composite doit avoir au moins une composante")
        for i, component in enumerate(self.components):
            if not isinstance(component, str):
                raise TypeError(f"Composante {i} non textuelle: {component!r}")
            if not component.strip():
                raise ConfigError(f"Composante {i} vide dans la clé {self.components!r}")

    @classmethod
    def of(cls, *components: str) -> CompositeKey:
        return cls(tuple(components))

    def __len__(self) -> int:
        return len(self.components)

    def __getitem__(self, index: int) -> str:
        return self.components[index]

    def __iter__(self) -> Iterator[str]:
        return iter(self.components)

    def __repr__(self) -> str:
        return f"CompositeKey{self.components!r}"

    def with_component(self, index: int, value: str) -> CompositeKey:
        """Copie de la clé avec la composante `index` remplacée."""
        parts = list(self.components)
        parts[index] = value
        return CompositeKey(tuple(parts))


@dataclass(frozen=True)
class RecordKind:
    """
    Type d'enregistrement : champs de clé et position éventuelle du scénario.

    scenario_index est None pour les types sans scénario.
    """

    name: str
    key_fields: tuple[str, ...]
    scenario_index: int | None = None

    def __post_init__(self) -> None:
        if not self.name.strip():
            raise ConfigError("Nom de type d'enregistrement vide")
        if not self.key_fields:
            raise ConfigError(f"{self.name}: au moins un champ de clé requis")
        if self.scenario_index is not None and not 0 <= self.scenario_index < len(self.key_fields):
            raise ConfigError(
                f"{self.name}: scenario_index {self.scenario_index} hors des champs de clé {self.key_fields}"
            )

    @property
    def has_scenarios(self) -> bool:
        return self.scenario_index is not None

    @property
    def scenario_field(self) -> str | None:
        return self.key_fields[self.scenario_index] if self.scenario_index is not None else None

    def scenario_of(self, key: CompositeKey) -> str | None:
        return key[self.scenario_index] if self.scenario_index is not None else None

    def key_for(self, record: Record, *, trim: bool = True) -> CompositeKey:
        """
        Construit la clé d'un enregistrement à partir de ses champs de clé.

        Avec trim=False, les composantes gardent leurs espaces (comme l'enregistrement).

        Raises:
            ConfigError: Si un champ de clé est absent ou vide.
        """
        parts = []
        for name in self.key_fields:
            value = record.get(name)
            text = "" if value is None else str(value)
            if trim:
                text = text.strip()
            if not text.strip():
                raise ConfigError(f"{self.name}: champ de clé {name!r} vide")
            parts.append(text)
        return CompositeKey(tuple(parts))


DEFAULT_KINDS: tuple[RecordKind, ...] = (
    RecordKind("ArcFlash", ("Id", "Scenario"), scenario_index=1),
    RecordKind("ShortCircuit", ("BusName", "EquipmentName", "Scenario"), scenario_index=2),
    RecordKind("Bus", ("Name",)),
    RecordKind("LVCB", ("Id",)),
    RecordKind("Fuse", ("Id",)),
    RecordKind("Cable", ("Id",)),
)


class Dataset:
    """
    Enregistrements par type : {nom_type: {CompositeKey: enregistrement}}.

    Un seul écrivain à la fois : l'appelant sérialise les mutations.
    """

    def __init__(self, kinds: Iterable[RecordKind] | None = None) -> None:
        self._kinds: dict[str, RecordKind] = {}
        self._stores: dict[str, dict[CompositeKey, Record]] = {}
        for kind in DEFAULT_KINDS if kinds is None else kinds:
            self.register_kind(kind)

    def register_kind(self, kind: RecordKind) -> None:
        if kind.name in self._kinds and self._kinds[kind.name] != kind:
            raise ConfigError(f"Type {kind.name!r} déjà déclaré avec une autre clé")
        self._kinds[kind.name] = kind
        self._stores.setdefault(kind.name, {})

    def kind(self, name: str) -> RecordKind:
        try:
            return self._kinds[name]
        except KeyError:
            raise ConfigError(f"Type d'enregistrement inconnu: {name!r}. Connus: {list(self._kinds)}") from None

    def has_kind(self, name: str) -> bool:
        return name in self._kinds

    def kinds(self) -> list[RecordKind]:
        return list(self._kinds.values())

    def _store(self, kind_name: str) -> dict[CompositeKey, Record]:
        self.kind(kind_name)
        return self._stores[kind_name]

    def _check_key(self, kind_name: str, key: CompositeKey) -> None:
        expected = len(self.kind(kind_name).key_fields)
        if len(key) != expected:
            raise ConfigError(f"{kind_name}: clé à {len(key)} composante(s), {expected} attendue(s)")

    def put(self, kind_name: str, key: CompositeKey, record: Record) -> Record | None:
        """Insère ou remplace un enregistrement. Renvoie l'ancien (ou None)."""
        self._check_key(kind_name, key)
        store = self._store(kind_name)
        previous = store.get(key)
        store[key] = dict(record)
        return previous

    def add(self, kind_name: str, record: Record) -> CompositeKey:
        """Insère un enregistrement sous la clé dérivée de ses champs de clé."""
        key = self.kind(kind_name).key_for(record)
        self.put(kind_name, key, record)
        return key

    def get(self, kind_name: str, key: CompositeKey) -> Record | None:
        return self._store(kind_name).get(key)

    def contains(self, kind_name: str, key: CompositeKey) -> bool:
        return key in self._store(kind_name)

    def remove(self, kind_name: str, key: CompositeKey) -> Record | None:
        return self._store(kind_name).pop(key, None)

    def keys(self, kind_name: str) -> list[CompositeKey]:
        return list(self._store(kind_name))

    def records(self, kind_name: str) -> dict[CompositeKey, Record]:
        return dict(self._store(kind_name))

    def count(self, kind_name: str | None = None) -> int:
        if kind_name is None:
            return sum(len(store) for store in self._stores.values())
        return len(self._store(kind_name))

    @property
    def is_empty(self) -> bool:
        return self.count() == 0

    def clear(self, kind_name: str | None = None) -> int:
        """Vide un type (ou tout le jeu). Renvoie le nombre d'enregistrements supprimés."""
        if kind_name is None:
            removed = self.count()
            for store in self._stores.values():
                store.clear()
            return removed
        store = self._store(kind_name)
        removed = len(store)
        store.clear()
        return removed


@dataclass(frozen=True)
class ScenarioSource:
    """Fichier d'origine d'un scénario importé, avec son nom avant renommage."""

    file_path: str
    target_scenario: str
    original_scenario: str | None = None

    @property
    def was_renamed(self) -> bool:
        return self.original_scenario is not None and self.original_scenario != self.target_scenario


@dataclass
class DatasetSourceInfo:
    """
    Provenance des données : fichier par type sans scénario, et par (type, scénario) sinon.

    Permet de retrouver les données à réimporter ou à retirer quand un fichier change.
    """

    kind_sources: dict[str, str] = field(default_factory=dict)
    scenario_sources: dict[str, dict[str, ScenarioSource]] = field(default_factory=dict)

    def record_kind(self, kind_name: str, file_path: str) -> None:
        self.kind_sources[kind_name] = file_path

    def record_scenario(self, kind_name: str, source: ScenarioSource) -> None:
        self.scenario_sources.setdefault(kind_name, {})[source.target_scenario] = source

    def source_of(self, kind_name: str, scenario: str | None = None) -> str | None:
        """Fichier ayant fourni un type (ou un scénario d'un type), None si inconnu."""
        if scenario is None:
            return self.kind_sources.get(kind_name)
        entry = self.scenario_sources.get(kind_name, {}).get(scenario)
        return entry.file_path if entry is not None else None

    def clear(self) -> None:
        self.kind_sources.clear()
        self.scenario_sources.clear()


def _visible_kinds(dataset: Dataset, visibility: CatalogVisibility | None) -> list[RecordKind]:
    if visibility is None:
        return dataset.kinds()
    return [k for k in dataset.kinds() if visibility.is_type_enabled(k.name)]


def _scenario_counts(dataset: Dataset, kind: RecordKind) -> Counter[str]:
    return Counter(kind.scenario_of(key) for key in dataset.keys(kind.name))


def scenarios_of(dataset: Dataset, visibility: CatalogVisibility | None = None) -> list[str]:
    """
    Scénarios présents dans tous les types à scénario, triés.

    L'unicité est exacte (sensible à la casse) : "Main-Max" et "main-max" sont deux scénarios.
    """
    found: set[str] = set()
    for kind in _visible_kinds(dataset, visibility):
        if kind.has_scenarios:
            found.update(_scenario_counts(dataset, kind))
    return sorted(found)


def scenarios_for_kind(dataset: Dataset, kind_name: str) -> list[str]:
    kind = dataset.kind(kind_name)
    if not kind.has_scenarios:
        return []
    return sorted(_scenario_counts(dataset, kind))


def statistics_by_scenario(
    dataset: Dataset,
    visibility: CatalogVisibility | None = None,
) -> dict[str, dict[str, int]]:
    """
    Nombre d'enregistrements par type puis par scénario.

    Les types sans scénario utilisent le libellé "(All)" ; les types vides sont omis.
    """
    stats: dict[str, dict[str, int]] = {}
    for kind in _visible_kinds(dataset, visibility):
        total = dataset.count(kind.name)
        if total == 0:
            continue
        if kind.has_scenarios:
            counts = _scenario_counts(dataset, kind)
            stats[kind.name] = {scenario: counts[scenario] for scenario in sorted(counts)}
        else:
            stats[kind.name] = {ALL_SCENARIOS_LABEL: total}
    return stats


def statistics_for_scenario(
    dataset: Dataset,
    scenario: str,
    visibility: CatalogVisibility | None = None,
) -> dict[str, int]:
    """Nombre d'enregistrements d'un scénario par type à scénario (types à 0 omis)."""
    if scenario is None:
        raise TypeError("scenario ne peut pas être None")
    stats: dict[str, int] = {}
    for kind in _visible_kinds(dataset, visibility):
        if not kind.has_scenarios:
            continue
        count = _scenario_counts(dataset, kind)[scenario]
        if count:
            stats[kind.name] = count
    return stats


def scenario_record_count(dataset: Dataset, kind_name: str, scenario: str) -> int:
    kind = dataset.kind(kind_name)
    if not kind.has_scenarios:
        return 0
    return _scenario_counts(dataset, kind)[scenario]


def is_uniform(dataset: Dataset, kind_name: str) -> bool:
    """
    True si le type a au plus un scénario ou si tous ses scénarios ont le même effectif.

    Vrai aussi pour un type inconnu ou vide.
    """
    if not dataset.has_kind(kind_name):
        return True
    kind = dataset.kind(kind_name)
    if not kind.has_scenarios:
        return True
    counts = set(_scenario_counts(dataset, kind).values())
    return len(counts) <= 1


def has_uniform_scenarios(dataset: Dataset) -> bool:
    """True si tous les types à scénario sont uniformes."""
    return all(is_uniform(dataset, k.name) for k in dataset.kinds() if k.has_scenarios)


def rename_scenario(dataset: Dataset, old_name: str, new_name: str) -> int:
    """
    Renomme un scénario dans tous les types à scénario.

    Si la clé renommée existe déjà, l'enregistrement existant est conservé et
    l'enregistrement source reste sous l'ancien nom.

    Returns:
        Nombre d'enregistrements déplacés.

    Raises:
        ConfigError: Si un des noms est vide.
    """
    if not old_name or not old_name.strip() or not new_name or not new_name.strip():
        raise ConfigError("Les noms de scénario ne peuvent pas être vides")
    if old_name == new_name:
        return 0

    moved = 0
    collisions = 0
    for kind in dataset.kinds():
        if kind.scenario_index is None:
            continue
        for key, record in dataset.records(kind.name).items():
            if key[kind.scenario_index] != old_name:
                continue
            new_key = key.with_component(kind.scenario_index, new_name)
            if dataset.contains(kind.name, new_key):
                collisions += 1
                continue
            dataset.remove(kind.name, key)
            renamed = dict(record)
            renamed[kind.key_fields[kind.scenario_index]] = new_name
            dataset.put(kind.name, new_key, renamed)
            moved += 1
    if collisions:
        logger.warning(
            "Renommage %r -> %r: %d enregistrement(s) non déplacé(s), clé déjà présente",
            old_name,
            new_name,
            collisions,
        )
    return moved


def delete_scenario(dataset: Dataset, scenario: str) -> int:
    """Supprime tous les enregistrements d'un scénario. Renvoie le nombre supprimé."""
    if scenario is None:
        raise TypeError("scenario ne peut pas être None")
    removed = 0
    for kind in dataset.kinds():
        if kind.scenario_index is None:
            continue
        for key in dataset.keys(kind.name):
            if key[kind.scenario_index] == scenario:
                dataset.remove(kind.name, key)
                removed += 1
    return removed
