"""I/O tableurs : lecture des feuilles et extraction des colonnes source (Excel, ODS, CSV)."""

from __future__ import annotations

import csv
from pathlib import Path

import pandas as pd

from concordmap.config import ConcordMapError
from concordmap.matching.schema import SourceColumn

SUPPORTED_INPUT_EXTENSIONS = (".xlsx", ".xls", ".ods", ".csv")
CSV_DELIMITERS = [",", ";", "\t", "|"]
CSV_ENCODINGS = ("utf-8", "latin-1")


class ExcelFileError(ConcordMapError):
    """Erreur de chargement d'un fichier (fichier absent, feuille inexistante, format illisible)."""


def _get_engine(path: Path) -> str | None:
    """Retourne le moteur pandas selon l'extension, ou None pour auto."""
    suffix = path.suffix.lower()
    if suffix == ".xlsx":
        return "openpyxl"
    if suffix == ".xls":
        return "xlrd"
    if suffix in (".ods", ".odt"):
        return "odf"
    return None


def _is_csv(path: Path) -> bool:
    return path.suffix.lower() == ".csv"


def _detect_csv_delimiter(path: Path, encoding: str) -> str:
    """Devine le séparateur sur les premières lignes non vides (',' par défaut)."""
    with path.open("r", encoding=encoding) as f:
        sample_lines = [line for line in (f.readline() for _ in range(20)) if line.strip()][:5]
    if not sample_lines:
        return ","
    try:
        return csv.Sniffer().sniff("".join(sample_lines), delimiters=CSV_DELIMITERS).delimiter
    except csv.Error:
        first = sample_lines[0]
        counts = {d: first.count(d) for d in CSV_DELIMITERS}
        best = max(counts, key=lambda d: counts[d])
        return best if counts[best] > 0 else ","


def _read_csv(path: Path) -> pd.DataFrame:
    last_error: Exception | None = None
    for encoding in CSV_ENCODINGS:
        try:
            delimiter = _detect_csv_delimiter(path, encoding)
            return pd.read_csv(path, dtype=str, encoding=encoding, sep=delimiter, keep_default_na=False)
        except UnicodeDecodeError as e:
            last_error = e
        except (pd.errors.ParserError, pd.errors.EmptyDataError, OSError) as e:
            raise ExcelFileError(f"Erreur CSV {path}: {e}. Vérifiez la ligne d'en-tête et le séparateur.") from e
    raise ExcelFileError(f"Encodage CSV non reconnu pour {path}: {last_error}")


def _open_workbook(path: Path) -> pd.ExcelFile:
    try:
        engine = _get_engine(path)
        return pd.ExcelFile(path, engine=engine) if engine else pd.ExcelFile(path)
    except ImportError as e:
        ext = path.suffix.lower()
        if ext == ".xls":
            raise ExcelFileError(f"Format .xls requis: pip install xlrd. Détail: {e}") from e
        if ext in (".ods", ".odt"):
            raise ExcelFileError(f"Format ODS requis: pip install odfpy. Détail: {e}") from e
        raise ExcelFileError(f"Impossible de lire {path}: {e}") from e
    except Exception as e:
        raise ExcelFileError(f"Impossible de lire le fichier {path}: {e}") from e


def _check_exists(path: Path) -> None:
    if not path.exists():
        raise ExcelFileError(f"Fichier introuvable: {path}")


def csv_table_name(path: Path) -> str:
    """Nom de "feuille" d'un CSV : le nom du fichier sans extension."""
    return path.stem


def list_sheets(filepath: str | Path) -> list[str]:
    """
    Liste les noms des feuilles d'un fichier tableur.

    Un CSV expose une seule table nommée d'après le fichier.

    Raises:
        ExcelFileError: Si le fichier est absent ou illisible.
    """
    path = Path(filepath)
    _check_exists(path)
    if _is_csv(path):
        return [csv_table_name(path)]
    with _open_workbook(path) as xl:
        return [str(s) for s in xl.sheet_names]


def load_sheet(filepath: str | Path, sheet_name: str | None = None) -> pd.DataFrame:
    """
    Charge une feuille dans un DataFrame en préservant le texte (dtype str).

    Args:
        filepath: Chemin vers le fichier.
        sheet_name: Nom de la feuille (None = première). Ignoré pour CSV.

    Raises:
        ExcelFileError: Si le fichier est absent, illisible ou si la feuille n'existe pas.
    """
    path = Path(filepath)
    _check_exists(path)
    if _is_csv(path):
        return _read_csv(path)

    with _open_workbook(path) as xl:
        sheets = [str(s) for s in xl.sheet_names]
        if sheet_name is None:
            sheet_name = sheets[0]
        elif sheet_name not in sheets:
            raise ExcelFileError(
                f"Feuille '{sheet_name}' introuvable dans {path}. Feuilles: {', '.join(sheets)}"
            )
        try:
            return xl.parse(sheet_name, dtype=str)
        except Exception as e:
            raise ExcelFileError(f"Erreur feuille '{sheet_name}' dans {path}: {e}") from e


def load_all_sheets(filepath: str | Path) -> dict[str, pd.DataFrame]:
    """Charge toutes les feuilles : {nom_feuille: DataFrame}."""
    path = Path(filepath)
    return {name: load_sheet(path, name) for name in list_sheets(path)}


def columns_of(df: pd.DataFrame, table: str) -> list[SourceColumn]:
    """Colonnes d'un DataFrame avec le nombre de cellules non vides."""
    columns: list[SourceColumn] = []
    for name in df.columns:
        header = str(name).strip()
        if not header or header.startswith("Unnamed:"):
            continue
        values = df[name].astype("string").str.strip()
        non_empty = int((values.fillna("") != "").sum())
        columns.append(SourceColumn(name=header, source_table=table, sample_non_empty_count=non_empty))
    return columns


def extract_columns(filepath: str | Path) -> list[SourceColumn]:
    """
    Extrait les colonnes de toutes les feuilles d'un fichier.

    Returns:
        SourceColumn dans l'ordre des feuilles puis des colonnes.

    Raises:
        ExcelFileError: Si le fichier est absent ou illisible.
    """
    columns: list[SourceColumn] = []
    for table, df in load_all_sheets(filepath).items():
        columns.extend(columns_of(df, table))
    return columns


def save_xlsx(filepath: str | Path, dataframes: dict[str, pd.DataFrame]) -> None:
    """
    Sauvegarde plusieurs DataFrames dans un fichier xlsx (une feuille par DataFrame).

    Args:
        filepath: Chemin de sortie.
        dataframes: Dict {nom_feuille: DataFrame}.
    """
    with pd.ExcelWriter(filepath, engine="openpyxl") as writer:
        for sheet_name, df in dataframes.items():
            # Excel limite les noms de feuille à 31 caractères
            df.to_excel(writer, sheet_name=str(sheet_name)[:31], index=False)
