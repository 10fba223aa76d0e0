"""Tests du modèle de données à clés composites."""

import pytest

from concordmap.config import CatalogVisibility, ConfigError
from concordmap.dataset import (
    ALL_SCENARIOS_LABEL,
    CompositeKey,
    Dataset,
    DatasetSourceInfo,
    RecordKind,
    ScenarioSource,
    delete_scenario,
    has_uniform_scenarios,
    is_uniform,
    rename_scenario,
    scenario_record_count,
    scenarios_for_kind,
    scenarios_of,
    statistics_by_scenario,
    statistics_for_scenario,
)


def _fill_arc_flash(ds: Dataset, scenario: str, count: int) -> None:
    for i in range(count):
        ds.add("ArcFlash", {"Id": f"BUS-{i}", "Scenario": scenario, "IncidentEnergy": "1.2"})


@pytest.fixture
def two_scenarios() -> Dataset:
    ds = Dataset()
    _fill_arc_flash(ds, "Main-Max", 40)
    _fill_arc_flash(ds, "Main-Min", 40)
    return ds


def test_composite_key_validation() -> None:
    with pytest.raises(ConfigError, match="au moins une"):
        CompositeKey(())
    with pytest.raises(ConfigError, match="vide"):
        CompositeKey.of("BUS-1", " ")
    with pytest.raises(TypeError):
        CompositeKey.of("BUS-1", 3)  # type: ignore[arg-type]


def test_composite_key_ordinal_equality() -> None:
    assert CompositeKey.of("A", "Main") == CompositeKey.of("A", "Main")
    assert CompositeKey.of("A", "Main") != CompositeKey.of("A", "main")
    assert len({CompositeKey.of("A", "Main"), CompositeKey.of("A", "Main")}) == 1
    assert CompositeKey.of("A", "Main").with_component(1, "Alt") == CompositeKey.of("A", "Alt")


def test_record_kind_validation() -> None:
    with pytest.raises(ConfigError, match="scenario_index"):
        RecordKind("X", ("Id",), scenario_index=1)
    kind = RecordKind("ShortCircuit", ("BusName", "EquipmentName", "Scenario"), scenario_index=2)
    key = kind.key_for({"BusName": "B1", "EquipmentName": " CB-1 ", "Scenario": "Main"})
    assert key == CompositeKey.of("B1", "CB-1", "Main")
    assert kind.scenario_of(key) == "Main"
    with pytest.raises(ConfigError, match="EquipmentName"):
        kind.key_for({"BusName": "B1", "Scenario": "Main"})
    untrimmed = kind.key_for({"BusName": "B1", "EquipmentName": " CB-1 ", "Scenario": "Main"}, trim=False)
    assert untrimmed == CompositeKey.of("B1", " CB-1 ", "Main")
    with pytest.raises(ConfigError, match="EquipmentName"):
        kind.key_for({"BusName": "B1", "EquipmentName": "   ", "Scenario": "Main"}, trim=False)


def test_key_length_fixed_per_kind() -> None:
    ds = Dataset()
    with pytest.raises(ConfigError, match="composante"):
        ds.put("ArcFlash", CompositeKey.of("BUS-1"), {})
    with pytest.raises(ConfigError, match="inconnu"):
        ds.put("Transformer", CompositeKey.of("T1"), {})


def test_scenario_round_trip(two_scenarios: Dataset) -> None:
    assert scenarios_of(two_scenarios) == ["Main-Max", "Main-Min"]
    assert statistics_by_scenario(two_scenarios) == {"ArcFlash": {"Main-Max": 40, "Main-Min": 40}}
    assert is_uniform(two_scenarios, "ArcFlash")
    assert has_uniform_scenarios(two_scenarios)


def test_scenarios_exact_string(two_scenarios: Dataset) -> None:
    """Les scénarios ne sont pas repliés sur la casse."""
    _fill_arc_flash(two_scenarios, "main-max", 1)
    assert scenarios_of(two_scenarios) == ["Main-Max", "Main-Min", "main-max"]


def test_statistics_non_scenario_and_empty_kinds() -> None:
    ds = Dataset()
    ds.add("Bus", {"Name": "B1"})
    ds.add("Bus", {"Name": "B2"})
    ds.add("ShortCircuit", {"BusName": "B1", "EquipmentName": "CB-1", "Scenario": "Main"})
    stats = statistics_by_scenario(ds)
    assert stats == {"ShortCircuit": {"Main": 1}, "Bus": {ALL_SCENARIOS_LABEL: 2}}
    assert "Fuse" not in stats


def test_statistics_for_scenario(two_scenarios: Dataset) -> None:
    two_scenarios.add("ShortCircuit", {"BusName": "B1", "EquipmentName": "CB-1", "Scenario": "Main-Max"})
    two_scenarios.add("Bus", {"Name": "B1"})
    assert statistics_for_scenario(two_scenarios, "Main-Max") == {"ArcFlash": 40, "ShortCircuit": 1}
    assert statistics_for_scenario(two_scenarios, "Main-Min") == {"ArcFlash": 40}
    assert statistics_for_scenario(two_scenarios, "Other") == {}
    assert scenario_record_count(two_scenarios, "ArcFlash", "Main-Min") == 40
    assert scenario_record_count(two_scenarios, "Bus", "Main-Min") == 0


def test_statistics_respect_visibility(two_scenarios: Dataset) -> None:
    visibility = CatalogVisibility(disabled_types=frozenset({"ArcFlash"}))
    assert statistics_by_scenario(two_scenarios, visibility) == {}
    assert scenarios_of(two_scenarios, visibility) == []


def test_is_uniform() -> None:
    ds = Dataset()
    assert is_uniform(ds, "ArcFlash")
    assert is_uniform(ds, "Unknown")
    _fill_arc_flash(ds, "Main-Max", 40)
    assert is_uniform(ds, "ArcFlash")
    _fill_arc_flash(ds, "Main-Min", 39)
    assert not is_uniform(ds, "ArcFlash")
    assert not has_uniform_scenarios(ds)
    assert is_uniform(ds, "Bus")


def test_rename_scenario(two_scenarios: Dataset) -> None:
    moved = rename_scenario(two_scenarios, "Main-Min", "Baseline")
    assert moved == 40
    assert scenarios_for_kind(two_scenarios, "ArcFlash") == ["Baseline", "Main-Max"]
    record = two_scenarios.get("ArcFlash", CompositeKey.of("BUS-0", "Baseline"))
    assert record["Scenario"] == "Baseline"


def test_rename_scenario_collision_keeps_existing(two_scenarios: Dataset) -> None:
    moved = rename_scenario(two_scenarios, "Main-Min", "Main-Max")
    assert moved == 0
    assert two_scenarios.count("ArcFlash") == 80
    with pytest.raises(ConfigError):
        rename_scenario(two_scenarios, "Main-Min", " ")


def test_delete_scenario(two_scenarios: Dataset) -> None:
    two_scenarios.add("ShortCircuit", {"BusName": "B1", "EquipmentName": "CB-1", "Scenario": "Main-Min"})
    assert delete_scenario(two_scenarios, "Main-Min") == 41
    assert scenarios_of(two_scenarios) == ["Main-Max"]
    assert delete_scenario(two_scenarios, "Main-Min") == 0


def test_clear() -> None:
    ds = Dataset()
    _fill_arc_flash(ds, "Main", 3)
    ds.add("Bus", {"Name": "B1"})
    assert ds.clear("ArcFlash") == 3
    assert ds.count() == 1
    assert ds.clear() == 1
    assert ds.is_empty


def test_source_info() -> None:
    info = DatasetSourceInfo()
    info.record_kind("Bus", "buses.xlsx")
    info.record_scenario("ArcFlash", ScenarioSource("af.xlsx", "Baseline", "Main-Min"))
    info.record_scenario("ArcFlash", ScenarioSource("af.xlsx", "Main-Max", "Main-Max"))

    assert info.source_of("Bus") == "buses.xlsx"
    assert info.source_of("ArcFlash", "Baseline") == "af.xlsx"
    assert info.source_of("ArcFlash", "Main-Min") is None
    assert info.scenario_sources["ArcFlash"]["Baseline"].was_renamed
    assert not info.scenario_sources["ArcFlash"]["Main-Max"].was_renamed
    assert not ScenarioSource("af.xlsx", "Main").was_renamed

    info.clear()
    assert info.kind_sources == {}
    assert info.scenario_sources == {}
