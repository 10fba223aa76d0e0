"""Tests du moteur de matching flou."""

import pytest

from concordmap.config import ConfigError
from concordmap.matching.distance import edit_similarity, prefix_weighted_similarity
from concordmap.matching.schema import MatchReason
from concordmap.matching.scorers import classify, find_best_matches, matches_any


def test_classify_exact() -> None:
    r = classify("Name", "Name")
    assert r.score == 1.0
    assert r.reason is MatchReason.EXACT


def test_classify_case_insensitive() -> None:
    r = classify("name", "NAME")
    assert r.score == 0.98
    assert r.reason is MatchReason.CASE_INSENSITIVE


def test_classify_normalized() -> None:
    """Les séparateurs sont ignorés : 'LV Breakers' ≡ 'LVBreakers'."""
    r = classify("LV Breakers", "LVBreakers")
    assert r.score == 0.96
    assert r.reason is MatchReason.NORMALIZED
    assert classify("Base_kV", "base-kv").reason is MatchReason.NORMALIZED


def test_classify_case_sensitive_skips_case_tier() -> None:
    r = classify("name", "NAME", case_sensitive=True)
    assert r.reason is MatchReason.NORMALIZED


def test_classify_bus_name_symmetric() -> None:
    """
    'BUS_NAME' / 'Name' ne se normalisent pas à l'identique : le palier d'édition
    répond 0.5 (4 suppressions sur 8) dans les deux sens.
    """
    forward = classify("BUS_NAME", "Name")
    backward = classify("Name", "BUS_NAME")
    assert forward.reason is MatchReason.EDIT_DISTANCE
    assert forward.score == pytest.approx(0.5)
    assert forward.is_match
    assert (backward.score, backward.reason) == (forward.score, forward.reason)


def test_classify_prefix_tier() -> None:
    # Édition 3/8 sous le plancher, Jaro-Winkler au-dessus
    r = classify("bus", "Bus Name")
    assert r.reason is MatchReason.PREFIX_SIMILARITY
    assert r.score == pytest.approx(0.8542, abs=1e-4)


def test_classify_no_match() -> None:
    r = classify("abc", "xyz")
    assert r.score == 0.0
    assert r.reason is MatchReason.NO_MATCH
    assert not r.is_match


def test_classify_blank_is_no_match() -> None:
    assert classify("", "Name").reason is MatchReason.NO_MATCH
    assert classify("Name", "   ").reason is MatchReason.NO_MATCH


def test_classify_contract_violations() -> None:
    with pytest.raises(TypeError):
        classify(None, "Name")  # type: ignore[arg-type]
    with pytest.raises(TypeError, match="chaîne"):
        classify(1, "Name")  # type: ignore[arg-type]
    with pytest.raises(TypeError, match="target"):
        classify("Name", ["Name"])  # type: ignore[arg-type]
    with pytest.raises(ConfigError, match="floor"):
        classify("a", "b", floor=1.5)


def test_classify_hybrid_short_string_weight() -> None:
    """Chaîne courte (<= 4) : Jaro-Winkler pèse 0.6, l'édition 0.4."""
    r = classify("Mfr", "Manufacturer", hybrid=True)
    expected = 0.6 * prefix_weighted_similarity("Mfr", "Manufacturer") + 0.4 * edit_similarity(
        "Mfr", "Manufacturer"
    )
    assert r.score == pytest.approx(expected)


def test_classify_hybrid_long_string_weight() -> None:
    r = classify("Incident Energy", "IncidentEnergyCal", hybrid=True)
    expected = 0.5 * prefix_weighted_similarity("Incident Energy", "IncidentEnergyCal") + 0.5 * edit_similarity(
        "Incident Energy", "IncidentEnergyCal"
    )
    assert r.score == pytest.approx(expected)


def test_classify_hybrid_keeps_fast_path() -> None:
    assert classify("LV Breakers", "LVBreakers", hybrid=True).reason is MatchReason.NORMALIZED


def test_matches_any_empty_term_matches_everything() -> None:
    assert matches_any("", ["Voltage"], 0.99)
    assert matches_any(None, [], 0.99)
    assert matches_any("   ", ["x"], 1.0)


def test_matches_any() -> None:
    assert matches_any("bus", ["Voltage", "Bus Name"], 0.8)
    assert not matches_any("xyz", ["Voltage", None, ""], 0.1)


def test_matches_any_contract() -> None:
    with pytest.raises(TypeError):
        matches_any("a", None, 0.5)  # type: ignore[arg-type]
    with pytest.raises(ConfigError, match="threshold"):
        matches_any("a", ["a"], -0.1)


def test_find_best_matches_order() -> None:
    results = find_best_matches("Name", ["BusName", "NAME", "Name"])
    assert [r.target for r in results][:2] == ["Name", "NAME"]
    assert results[0].reason is MatchReason.EXACT


def test_find_best_matches_shorter_target_on_tie() -> None:
    results = find_best_matches("lv breakers", ["LV_Breakers", "LVBreakers"])
    assert [r.target for r in results] == ["LVBreakers", "LV_Breakers"]


def test_find_best_matches_filters() -> None:
    results = find_best_matches("Name", ["Name", "xyz", "", "NAME"], min_score=0.9, max_results=1)
    assert [r.target for r in results] == ["Name"]
    assert find_best_matches("  ", ["Name"]) == []
    with pytest.raises(ConfigError, match="max_results"):
        find_best_matches("Name", ["Name"], max_results=0)
