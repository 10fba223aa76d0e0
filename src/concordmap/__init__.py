"""ConcordMap - Association floue d'en-têtes et fusion de jeux de données par scénario."""

from concordmap.config import ConcordMapError, ConfigError, ConfigFileError
from concordmap.io_excel import ExcelFileError

__all__ = [
    "__version__",
    "ConcordMapError",
    "ConfigError",
    "ConfigFileError",
    "ExcelFileError",
]

__version__ = "0.1.0"
