"""Tests du catalogue de propriétés."""

import pytest

from concordmap.catalog import PropertyCatalog, default_catalog
from concordmap.config import CatalogVisibility, ConfigError


def test_default_catalog() -> None:
    catalog = default_catalog()
    assert catalog.data_types() == ["ArcFlash", "ShortCircuit", "Bus", "LVCB", "Fuse", "Cable"]
    assert [p.name for p in catalog.required_properties("ArcFlash")] == ["Id", "Scenario", "IncidentEnergy"]
    assert catalog.get_property("Bus", "Name").description == "Bus Name"
    assert catalog.get_property("Bus", "Unknown") is None
    assert all(p.data_type == "Cable" for p in catalog.properties_for("Cable"))


def test_visibility_filter() -> None:
    catalog = default_catalog()
    visibility = CatalogVisibility(
        disabled_types=frozenset({"Fuse"}),
        hidden_properties={"Bus": frozenset({"Type"})},
    )
    assert catalog.properties_for("Fuse", visibility) == []
    assert "Type" not in [p.name for p in catalog.properties_for("Bus", visibility)]


def test_unknown_type() -> None:
    with pytest.raises(ConfigError, match="inconnu"):
        default_catalog().properties_for("Transformer")


def test_from_dict() -> None:
    catalog = PropertyCatalog.from_dict(
        {
            "version": "1",
            "types": {"Relay": ["Id", {"name": "Ct", "description": "CT Ratio", "required": True}]},
        }
    )
    assert [p.name for p in catalog.properties_for("Relay")] == ["Id", "Ct"]
    assert catalog.required_properties("Relay")[0].description == "CT Ratio"


def test_from_dict_errors() -> None:
    with pytest.raises(ConfigError, match="version"):
        PropertyCatalog.from_dict({"types": {}})
    with pytest.raises(ConfigError, match="double"):
        PropertyCatalog.from_dict({"version": "1", "types": {"Relay": ["Id", "Id"]}})
