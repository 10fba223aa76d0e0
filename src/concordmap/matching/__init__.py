"""Module de matching flou entre en-têtes de colonnes et propriétés cibles."""
