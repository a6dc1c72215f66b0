"""Normalization of PubMed CSV rows into paper records."""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .errors import RowRejected

DEFAULT_MAX_AUTHORS = 10

# Tried in order against the Citation column when no journal column exists
CITATION_JOURNAL_PATTERNS = [
    re.compile(r"^([^.]+)\."),  # "Journal. Year;Volume(Issue):Pages"
    re.compile(r"^(.+?)\s+\d{4}"),  # "Journal Year;Volume"
    re.compile(r"^([^;]+);"),  # "Journal;Year"
]

JOURNAL_COLUMNS = ["Journal", "Journal/Book"]

YEAR_PATTERN = re.compile(r"(\d{4})")
AUTHOR_SEPARATOR = re.compile(r"[;,]")


@dataclass
class PaperRecord:
    """Canonical paper record, independent of the source column naming."""

    pmid: str
    title: str
    authors: List[str] = field(default_factory=list)
    journal: str = ""
    pub_date: str = ""
    abstract: str = ""
    pmc_id: Optional[str] = None
    doi: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        """Convert to dictionary for YAML/JSON serialization."""
        return {
            "pmid": self.pmid,
            "title": self.title,
            "authors": list(self.authors),
            "journal": self.journal,
            "pub_date": self.pub_date,
            "abstract": self.abstract,
            "pmc_id": self.pmc_id,
            "doi": self.doi,
        }


def clean_pmid(value: Optional[str]) -> str:
    """Strip every non-digit character from a PMID value."""
    return re.sub(r"\D", "", value or "")


def parse_authors(
    authors: Optional[str],
    first_author: Optional[str] = None,
    max_authors: int = DEFAULT_MAX_AUTHORS,
) -> List[str]:
    """Split an author list on ';' or ',' and fall back to the first author."""
    names = [
        name.strip()
        for name in AUTHOR_SEPARATOR.split(authors or "")
        if name.strip()
    ][:max_authors]

    if not names and first_author and first_author.strip():
        names = [first_author.strip()]

    return names


def journal_from_citation(citation: Optional[str]) -> str:
    """Derive a journal name from a PubMed citation string."""
    if not citation:
        return ""

    for pattern in CITATION_JOURNAL_PATTERNS:
        match = pattern.search(citation)
        if match:
            return match.group(1).strip()
    return ""


def extract_year(*candidates: Optional[str]) -> str:
    """Return the first 4-digit run of the first non-empty candidate."""
    for value in candidates:
        if value:
            match = YEAR_PATTERN.search(value)
            return match.group(1) if match else ""
    return ""


def normalize_pmc_id(value: Optional[str]) -> Optional[str]:
    """Normalize 'PMC123', '123' or ' pmc123 ' to 'PMC123'."""
    digits = clean_pmid(value)
    return f"PMC{digits}" if digits else None


def normalize_row(
    row: Dict[str, str], max_authors: int = DEFAULT_MAX_AUTHORS
) -> PaperRecord:
    """
    Map a header-keyed PubMed CSV row to a PaperRecord.

    Args:
        row: Row produced by ``data_loader.parse_csv``
        max_authors: Maximum number of authors to keep

    Returns:
        The normalized record

    Raises:
        RowRejected: If the PMID is empty once non-digits are removed
    """
    title = (row.get("Title") or "").strip()

    pmid = clean_pmid(row.get("PMID"))
    if not pmid:
        raise RowRejected(f"Invalid PMID for paper: {title[:50]}...")

    journal = ""
    for column in JOURNAL_COLUMNS:
        if row.get(column):
            journal = row[column]
            break
    else:
        journal = journal_from_citation(row.get("Citation"))

    return PaperRecord(
        pmid=pmid,
        title=title,
        authors=parse_authors(row.get("Authors"), row.get("First Author"), max_authors),
        journal=journal.strip(),
        pub_date=extract_year(row.get("Publication Year"), row.get("Create Date")),
        abstract=(row.get("Abstract") or "").strip(),
        pmc_id=normalize_pmc_id(row.get("PMCID")),
        doi=(row.get("DOI") or "").strip() or None,
    )
