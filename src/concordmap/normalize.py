"""Normalisation d'en-têtes de colonnes et de valeurs de cellules."""

from __future__ import annotations

import re
from typing import Any

import pandas as pd

# Caractères ignorés par la comparaison "normalisée" d'en-têtes
_HEADER_SEPARATORS = re.compile(r"[ _\-/]")


def norm_header(name: str) -> str:
    """
    Normalise un en-tête pour la comparaison : retire espaces, '_', '-', '/' et passe en minuscules.

    "LV Breakers" et "LVBreakers" donnent tous deux "lvbreakers".
    """
    return _HEADER_SEPARATORS.sub("", name).lower()


def is_missing(value: Any) -> bool:
    """True pour None, NaN et NA pandas."""
    if value is None:
        return True
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def cell_text(value: Any, *, trim: bool = True) -> str:
    """Convertit une cellule en texte ("" si vide), avec trim optionnel."""
    if is_missing(value):
        return ""
    text = str(value)
    return text.strip() if trim else text
