"""Synaptica: research paper aggregation, CSV import and open-access full text."""

__version__ = "0.1.0"

from .core import Synaptica
from .data_loader import PubMedCSVLoader, parse_csv, parse_csv_line
from .fulltext import FullTextContent, FullTextFetcher
from .importer import CSVImporter, ImportOutcome
from .normalizer import PaperRecord, normalize_row

__all__ = [
    "Synaptica",
    "PubMedCSVLoader",
    "parse_csv",
    "parse_csv_line",
    "FullTextContent",
    "FullTextFetcher",
    "CSVImporter",
    "ImportOutcome",
    "PaperRecord",
    "normalize_row",
]
