"""Moteur de matching flou : paliers exact / casse / normalisé puis algorithmes de similarité."""

from __future__ import annotations

from collections.abc import Iterable

from concordmap.config import ConfigError
from concordmap.matching.distance import edit_similarity, prefix_weighted_similarity, require_str
from concordmap.matching.schema import MatchReason, MatchResult
from concordmap.normalize import norm_header

EXACT_SCORE = 1.0
CASE_INSENSITIVE_SCORE = 0.98
NORMALIZED_SCORE = 0.96
DEFAULT_FLOOR = 0.4

# Jaro-Winkler pèse davantage quand une des chaînes est courte ("Id", "kV")
SHORT_STRING_LENGTH = 4
SHORT_STRING_PREFIX_WEIGHT = 0.6
DEFAULT_PREFIX_WEIGHT = 0.5
AGREEMENT_DELTA = 0.05


def _check_inputs(source: str, target: str) -> None:
    require_str("source", source)
    require_str("target", target)


def _fast_path(source: str, target: str, case_sensitive: bool) -> MatchResult | None:
    """Paliers 1 à 3 : exact, insensible à la casse, normalisé."""
    if source == target:
        return MatchResult(source, target, EXACT_SCORE, MatchReason.EXACT)
    if not case_sensitive and source.lower() == target.lower():
        return MatchResult(source, target, CASE_INSENSITIVE_SCORE, MatchReason.CASE_INSENSITIVE)
    if norm_header(source) == norm_header(target):
        return MatchResult(source, target, NORMALIZED_SCORE, MatchReason.NORMALIZED)
    return None


def hybrid_score(source: str, target: str, case_sensitive: bool = False) -> tuple[float, MatchReason]:
    """
    Moyenne pondérée de la similarité d'édition et de Jaro-Winkler.

    Returns:
        (score, raison) : HYBRID si les deux algorithmes concordent à 0.05 près,
        sinon l'algorithme qui a le mieux noté.
    """
    edit = edit_similarity(source, target, case_sensitive)
    prefix = prefix_weighted_similarity(source, target, case_sensitive=case_sensitive)
    short = len(source) <= SHORT_STRING_LENGTH or len(target) <= SHORT_STRING_LENGTH
    weight = SHORT_STRING_PREFIX_WEIGHT if short else DEFAULT_PREFIX_WEIGHT
    score = prefix * weight + edit * (1.0 - weight)

    if abs(edit - prefix) < AGREEMENT_DELTA:
        reason = MatchReason.HYBRID
    elif prefix > edit:
        reason = MatchReason.PREFIX_SIMILARITY
    else:
        reason = MatchReason.EDIT_DISTANCE
    return score, reason


def classify(
    source: str,
    target: str,
    *,
    hybrid: bool = False,
    floor: float = DEFAULT_FLOOR,
    case_sensitive: bool = False,
) -> MatchResult:
    """
    Compare deux chaînes en essayant les paliers du plus spécifique au moins spécifique.

    1. exact (1.0) ; 2. insensible à la casse (0.98) ; 3. normalisé (0.96) ;
    4. similarité d'édition >= floor ; 5. Jaro-Winkler >= floor ; 6. aucune correspondance.
    En mode hybride, les étapes 4 et 5 sont remplacées par la moyenne pondérée des deux scores.

    Args:
        source: Chaîne source (en-tête de colonne).
        target: Chaîne cible (nom de propriété).
        hybrid: Utiliser le score hybride après les paliers rapides.
        floor: Score minimal des étapes 4 et 5.
        case_sensitive: Comparaison sensible à la casse.

    Returns:
        MatchResult (score 0 et NO_MATCH si rien ne correspond).

    Raises:
        TypeError: Si source ou target est None.
        ConfigError: Si floor est hors [0, 1].
    """
    _check_inputs(source, target)
    if not 0.0 <= floor <= 1.0:
        raise ConfigError(f"floor doit être entre 0 et 1 (got {floor})")

    if not source.strip() or not target.strip():
        return MatchResult(source, target, 0.0, MatchReason.NO_MATCH)

    fast = _fast_path(source, target, case_sensitive)
    if fast is not None:
        return fast

    if hybrid:
        score, reason = hybrid_score(source, target, case_sensitive)
        if score <= 0.0:
            return MatchResult(source, target, 0.0, MatchReason.NO_MATCH)
        return MatchResult(source, target, score, reason)

    edit = edit_similarity(source, target, case_sensitive)
    if edit >= floor:
        return MatchResult(source, target, edit, MatchReason.EDIT_DISTANCE)

    prefix = prefix_weighted_similarity(source, target, case_sensitive=case_sensitive)
    if prefix >= floor:
        return MatchResult(source, target, prefix, MatchReason.PREFIX_SIMILARITY)

    return MatchResult(source, target, 0.0, MatchReason.NO_MATCH)


def matches_any(
    term: str | None,
    fields: Iterable[str | None],
    threshold: float,
    *,
    hybrid: bool = False,
) -> bool:
    """
    True si `term` correspond à au moins un champ avec un score >= threshold.

    Un terme vide correspond à tout (recherche sans filtre).

    Raises:
        TypeError: Si fields est None.
        ConfigError: Si threshold est hors [0, 1].
    """
    if fields is None:
        raise TypeError("fields ne peut pas être None")
    if not 0.0 <= threshold <= 1.0:
        raise ConfigError(f"threshold doit être entre 0 et 1 (got {threshold})")
    if term is None or not term.strip():
        return True

    for value in fields:
        if value is None or not value.strip():
            continue
        if classify(term, value, hybrid=hybrid).score >= threshold:
            return True
    return False


def find_best_matches(
    query: str,
    candidates: Iterable[str],
    *,
    min_score: float = 0.0,
    max_results: int | None = None,
    hybrid: bool = True,
) -> list[MatchResult]:
    """
    Classe les candidats par score décroissant, puis par cible la plus courte.

    À score et longueur égaux, l'ordre de déclaration est conservé.

    Raises:
        TypeError: Si query ou candidates est None.
        ConfigError: Si min_score est hors [0, 1] ou max_results < 1.
    """
    if query is None or candidates is None:
        raise TypeError("query et candidates ne peuvent pas être None")
    if not 0.0 <= min_score <= 1.0:
        raise ConfigError(f"min_score doit être entre 0 et 1 (got {min_score})")
    if max_results is not None and max_results < 1:
        raise ConfigError(f"max_results doit être >= 1 (got {max_results})")
    if not query.strip():
        return []

    scored: list[tuple[int, MatchResult]] = []
    for idx, candidate in enumerate(candidates):
        if candidate is None or not candidate.strip():
            continue
        result = classify(query, candidate, hybrid=hybrid)
        if result.score >= min_score:
            scored.append((idx, result))

    scored.sort(key=lambda item: (-item[1].score, len(item[1].target), item[0]))
    results = [r for _, r in scored]
    return results[:max_results] if max_results is not None else results
