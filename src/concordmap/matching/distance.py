"""Primitives de distance entre chaînes : Levenshtein et Jaro-Winkler."""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein

DEFAULT_PREFIX_SCALE = 0.1
MAX_PREFIX_LENGTH = 4


def require_str(name: str, value: str) -> None:
    if value is None:
        raise TypeError(f"{name} ne peut pas être None")
    if not isinstance(value, str):
        raise TypeError(f"{name} doit être une chaîne (got {type(value).__name__})")


def edit_distance(a: str, b: str, case_sensitive: bool = False) -> int:
    """
    Distance de Levenshtein (insertion, suppression, substitution de coût 1).

    Args:
        a: Première chaîne.
        b: Seconde chaîne.
        case_sensitive: Si False, compare en minuscules.

    Returns:
        Nombre minimal d'éditions. Chaîne vide contre non vide : longueur de l'autre.

    Raises:
        TypeError: Si une des chaînes est None.
    """
    require_str("a", a)
    require_str("b", b)
    if not case_sensitive:
        a, b = a.lower(), b.lower()
    if a == b:
        return 0
    return Levenshtein.distance(a, b)


def edit_similarity(a: str, b: str, case_sensitive: bool = False) -> float:
    """
    Similarité normalisée : 1 - distance / max(len(a), len(b)).

    Deux chaînes vides → 1.0 ; une seule vide → 0.0.
    """
    require_str("a", a)
    require_str("b", b)
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    distance = edit_distance(a, b, case_sensitive)
    return 1.0 - distance / max(len(a), len(b))


def jaro_similarity(a: str, b: str) -> float:
    """Similarité de Jaro (sensible à la casse, aucune normalisation)."""
    len_a, len_b = len(a), len(b)
    if len_a == 0 and len_b == 0:
        return 1.0
    if len_a == 0 or len_b == 0:
        return 0.0

    window = max(max(len_a, len_b) // 2 - 1, 1)
    a_matched = [False] * len_a
    b_matched = [False] * len_b

    matches = 0
    for i in range(len_a):
        start = max(0, i - window)
        end = min(i + window + 1, len_b)
        for j in range(start, end):
            if b_matched[j] or a[i] != b[j]:
                continue
            a_matched[i] = b_matched[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    # Caractères appariés mais dans un ordre différent (demi-compte entier)
    transpositions = 0
    k = 0
    for i in range(len_a):
        if not a_matched[i]:
            continue
        while not b_matched[k]:
            k += 1
        if a[i] != b[k]:
            transpositions += 1
        k += 1

    return (
        matches / len_a
        + matches / len_b
        + (matches - transpositions // 2) / matches
    ) / 3.0


def common_prefix_length(a: str, b: str, limit: int = MAX_PREFIX_LENGTH) -> int:
    """Longueur du préfixe commun, plafonnée à `limit`."""
    length = 0
    for ca, cb in zip(a[:limit], b[:limit]):
        if ca != cb:
            break
        length += 1
    return length


def prefix_weighted_similarity(
    a: str,
    b: str,
    prefix_scale: float = DEFAULT_PREFIX_SCALE,
    case_sensitive: bool = False,
) -> float:
    """
    Similarité de Jaro-Winkler : Jaro augmenté selon le préfixe commun (4 caractères max).

    Args:
        a: Première chaîne.
        b: Seconde chaîne.
        prefix_scale: Poids du préfixe (0.1 par défaut, 0.25 max pour rester dans [0, 1]).
        case_sensitive: Si False, compare en minuscules.

    Returns:
        Score entre 0 et 1. Chaînes identiques (après casse) → 1.0.

    Raises:
        TypeError: Si une des chaînes est None.
        ValueError: Si prefix_scale est hors [0, 0.25].
    """
    require_str("a", a)
    require_str("b", b)
    if not 0.0 <= prefix_scale <= 0.25:
        raise ValueError(f"prefix_scale doit être entre 0 et 0.25 (got {prefix_scale})")
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    if not case_sensitive:
        a, b = a.lower(), b.lower()
    if a == b:
        return 1.0

    jaro = jaro_similarity(a, b)
    prefix = common_prefix_length(a, b)
    return jaro + prefix * prefix_scale * (1.0 - jaro)
