"""Tests de l'auto-mapping."""

import pytest

from concordmap.config import AutoMapConfig, CatalogVisibility, ConfigError, MatchThresholds
from concordmap.mapping import MappingDocument
from concordmap.matching.automapper import MATCHED_ON_DESCRIPTION, AutoMapper
from concordmap.matching.schema import (
    ORIGIN_AUTO,
    ORIGIN_MANUAL,
    MatchReason,
    SourceColumn,
    TargetProperty,
)


def _columns(*names: str) -> list[SourceColumn]:
    return [SourceColumn(name=n, source_table="Sheet1", sample_non_empty_count=3) for n in names]


@pytest.fixture
def bus_properties() -> list[TargetProperty]:
    return [
        TargetProperty("Name", "Bus", required=True),
        TargetProperty("BaseKV", "Bus"),
        TargetProperty("Zone", "Bus"),
    ]


@pytest.fixture
def strict_config() -> AutoMapConfig:
    """Seuils serrés : exact → accepté, normalisé (0.96) → suggestion."""
    return AutoMapConfig(
        thresholds=MatchThresholds(auto_accept=0.97, suggest_floor=0.9),
        use_descriptions=False,
    )


def test_bands(bus_properties: list[TargetProperty], strict_config: AutoMapConfig) -> None:
    doc = MappingDocument()
    summary = AutoMapper(strict_config).run(_columns("Name", "base_kv", "Comments"), bus_properties, doc)

    assert [d.target_property.name for d in summary.accepted] == ["Name"]
    assert [d.target_property.name for d in summary.suggested] == ["BaseKV"]
    assert summary.suggested[0].column_name == "base_kv"
    assert summary.suggested[0].reason is MatchReason.NORMALIZED
    assert [d.target_property.name for d in summary.unmatched] == ["Zone"]

    # Seules les acceptations modifient le document
    assert len(doc) == 1
    assoc = doc.get("Bus", "Name")
    assert assoc is not None
    assert assoc.column_header == "Name"
    assert assoc.origin == ORIGIN_AUTO
    assert assoc.required


def test_idempotent(bus_properties: list[TargetProperty], strict_config: AutoMapConfig) -> None:
    doc = MappingDocument()
    mapper = AutoMapper(strict_config)
    columns = _columns("Name", "base_kv", "Comments")

    mapper.run(columns, bus_properties, doc)
    first = set(doc.associations())
    second_summary = mapper.run(columns, bus_properties, doc)

    assert set(doc.associations()) == first
    assert second_summary.accepted == []
    assert second_summary.skipped == ["Name"]
    assert [d.target_property.name for d in second_summary.suggested] == ["BaseKV"]


def test_default_thresholds_use_description() -> None:
    props = [TargetProperty("Name", "Bus", description="Bus Name", required=True)]
    doc = MappingDocument()
    summary = AutoMapper().run(_columns("Bus Name", "Voltage"), props, doc)

    assert len(summary.accepted) == 1
    decision = summary.accepted[0]
    assert decision.score == 1.0
    assert decision.matched_on == MATCHED_ON_DESCRIPTION
    assert doc.get("Bus", "Name").column_header == "Bus Name"


def test_tie_prefers_first_column() -> None:
    props = [TargetProperty("Id", "Fuse")]
    doc = MappingDocument()
    summary = AutoMapper().run(_columns("ID", "id"), props, doc)
    assert summary.accepted[0].column_name == "ID"
    assert summary.accepted[0].score == 0.98


def test_semantic_guard_raises_threshold() -> None:
    """Une propriété requise ne s'associe pas d'office à une colonne de classification."""
    config = AutoMapConfig(semantic_threshold=0.99, use_descriptions=False)
    columns = _columns("style")

    guarded = AutoMapper(config).run(columns, [TargetProperty("Style", "LVCB", required=True)], MappingDocument())
    assert guarded.accepted == []
    assert guarded.suggested[0].threshold == 0.99

    plain = AutoMapper(config).run(columns, [TargetProperty("Style", "LVCB")], MappingDocument())
    assert [d.column_name for d in plain.accepted] == ["style"]


def test_semantic_guard_plural_type_name() -> None:
    """Le pluriel du type ("Fuses" pour "Fuse") compte comme propriété d'identité."""
    config = AutoMapConfig(semantic_threshold=0.99, use_descriptions=False)
    columns = _columns("Fuses Style")

    guarded = AutoMapper(config).run(columns, [TargetProperty("Fuses", "Fuse")], MappingDocument())
    assert guarded.accepted == []
    assert guarded.suggested[0].threshold == 0.99

    plain = AutoMapper(config).run(columns, [TargetProperty("Fuses", "Cable")], MappingDocument())
    assert [d.column_name for d in plain.accepted] == ["Fuses Style"]


def test_manual_association_kept_unless_reevaluate() -> None:
    props = [TargetProperty("Name", "Bus", required=True)]
    doc = MappingDocument()
    doc.associate("Bus", "Name", "Old Name")

    summary = AutoMapper().run(_columns("Name"), props, doc)
    assert summary.skipped == ["Name"]
    assert doc.get("Bus", "Name").column_header == "Old Name"

    summary = AutoMapper().run(_columns("Name"), props, doc, reevaluate=True)
    assert [d.column_name for d in summary.accepted] == ["Name"]
    assert doc.get("Bus", "Name").column_header == "Name"
    assert doc.get("Bus", "Name").origin == ORIGIN_AUTO


def test_associated_columns_are_not_candidates() -> None:
    doc = MappingDocument()
    doc.associate("Bus", "Alias", "Name")
    summary = AutoMapper().run(_columns("Name"), [TargetProperty("Name", "Bus")], doc)
    assert summary.accepted == []
    assert summary.unmatched[0].column is None


def test_column_consumed_within_run() -> None:
    props = [TargetProperty("Id", "Cable"), TargetProperty("ID", "Cable")]
    doc = MappingDocument()
    summary = AutoMapper().run(_columns("Id"), props, doc)
    assert [d.target_property.name for d in summary.accepted] == ["Id"]
    assert summary.unmatched[0].target_property.name == "ID"


def test_visibility() -> None:
    props = [TargetProperty("Name", "Bus"), TargetProperty("Zone", "Bus")]
    config = AutoMapConfig(visibility=CatalogVisibility(hidden_properties={"Bus": frozenset({"Zone"})}))
    summary = AutoMapper(config).run(_columns("Name", "Zone"), props, MappingDocument())
    assert [d.target_property.name for d in summary.accepted] == ["Name"]
    assert summary.evaluated_count == 1

    disabled = AutoMapConfig(visibility=CatalogVisibility(disabled_types=frozenset({"Bus"})))
    doc = MappingDocument()
    summary = AutoMapper(disabled).run(_columns("Name"), props, doc)
    assert summary.evaluated_count == 0
    assert len(doc) == 0


def test_accept_suggestions(bus_properties: list[TargetProperty], strict_config: AutoMapConfig) -> None:
    doc = MappingDocument()
    mapper = AutoMapper(strict_config)
    summary = mapper.run(_columns("Name", "base_kv", "Comments"), bus_properties, doc)

    created = mapper.accept_suggestions(summary, doc, {"BaseKV": True})
    assert [a.column_header for a in created] == ["base_kv"]
    assert doc.get("Bus", "BaseKV").origin == ORIGIN_MANUAL
    assert summary.suggested == []
    assert [d.target_property.name for d in summary.accepted] == ["Name", "BaseKV"]


def test_reject_suggestion(bus_properties: list[TargetProperty], strict_config: AutoMapConfig) -> None:
    doc = MappingDocument()
    mapper = AutoMapper(strict_config)
    summary = mapper.run(_columns("Name", "base_kv"), bus_properties, doc)
    assert mapper.accept_suggestions(summary, doc, {"BaseKV": False}) == []
    assert not doc.is_associated("Bus", "BaseKV")
    assert "BaseKV" in [d.target_property.name for d in summary.unmatched]


def test_contract_errors() -> None:
    with pytest.raises(ConfigError, match="suggest_floor"):
        AutoMapper(AutoMapConfig(thresholds=MatchThresholds(auto_accept=0.3, suggest_floor=0.5)))
    with pytest.raises(ConfigError, match="autres types"):
        AutoMapper().run(
            _columns("Name"),
            [TargetProperty("Name", "Bus"), TargetProperty("Id", "Fuse")],
            MappingDocument(),
        )
    with pytest.raises(ConfigError, match="data_type requis"):
        AutoMapper().run(_columns("Name"), [], MappingDocument())
    with pytest.raises(TypeError):
        AutoMapper().run(None, [], MappingDocument())  # type: ignore[arg-type]


def test_summary_text(bus_properties: list[TargetProperty], strict_config: AutoMapConfig) -> None:
    summary = AutoMapper(strict_config).run(_columns("Name", "base_kv"), bus_properties, MappingDocument())
    text = summary.summary_text()
    assert "1 associée(s)" in text
    assert "Name ← Name" in text
