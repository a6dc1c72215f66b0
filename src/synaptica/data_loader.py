"""CSV loading for PubMed exports."""

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Sequence, Union

import pandas as pd

from .normalizer import PaperRecord

logger = logging.getLogger(__name__)


def parse_csv_line(line: str) -> List[str]:
    """
    Split one CSV line into fields.

    Double quotes delimit fields that may contain commas; inside quotes a
    doubled quote stands for a literal one. Fields are stripped of
    surrounding whitespace, and a blank field is kept as an empty string.

    Args:
        line: A single, non-empty line of CSV text

    Returns:
        The fields of the line, in order
    """
    fields: List[str] = []
    current: List[str] = []
    in_quotes = False
    i = 0

    while i < len(line):
        char = line[i]

        if char == '"':
            if in_quotes and i + 1 < len(line) and line[i + 1] == '"':
                # Escaped quote
                current.append('"')
                i += 1
            else:
                in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            fields.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        i += 1

    fields.append("".join(current).strip())
    return fields


def parse_csv(csv_text: str) -> List[Dict[str, str]]:
    """
    Parse CSV text into header-keyed rows.

    Blank lines are dropped. The first remaining line is the header; rows
    without both a Title and a PMID value are left out.

    Args:
        csv_text: Full contents of a CSV file

    Returns:
        List of rows mapping column name to value
    """
    lines = [line for line in csv_text.splitlines() if line.strip()]
    if len(lines) < 2:
        return []

    headers = [h.replace('"', "").strip() for h in parse_csv_line(lines[0])]
    rows: List[Dict[str, str]] = []

    for line_number, line in enumerate(lines[1:], start=2):
        values = parse_csv_line(line)
        row = {
            header: values[index] if index < len(values) else ""
            for index, header in enumerate(headers)
        }

        if row.get("Title") and row.get("PMID"):
            rows.append(row)
        else:
            logger.debug(f"Skipping line {line_number}: missing Title or PMID")

    return rows


class PubMedCSVLoader:
    """Loads CSV files exported from PubMed's "Save > CSV" option."""

    # Columns written by PubMed's CSV export
    STANDARD_COLUMNS = [
        "PMID",
        "Title",
        "Authors",
        "Citation",
        "First Author",
        "Journal/Book",
        "Publication Year",
        "Create Date",
        "PMCID",
        "NIHMS ID",
        "DOI",
    ]

    ENCODINGS = ["utf-8", "utf-8-sig", "latin-1", "cp1252"]

    def __init__(self, data_dir: Union[str, Path] = "."):
        """Initialize with the directory relative paths are resolved against."""
        self.data_dir = Path(data_dir)

    def load_text(self, filename: Union[str, Path]) -> str:
        """
        Read a CSV file as text.

        Args:
            filename: File name, absolute or relative to the data directory

        Returns:
            File contents with a UTF-8 byte order mark removed
        """
        file_path = Path(filename)
        if not file_path.is_absolute():
            file_path = self.data_dir / file_path

        if not file_path.exists():
            raise FileNotFoundError(f"CSV file not found: {file_path}")

        raw = file_path.read_bytes()
        for encoding in self.ENCODINGS:
            try:
                text = raw.decode(encoding)
                break
            except UnicodeDecodeError:
                continue
        else:
            raise ValueError(f"Could not decode CSV file: {file_path}")

        logger.info(f"Read {len(raw)} bytes from {file_path} ({encoding})")
        return text.lstrip("\ufeff")

    def load_rows(self, filename: Union[str, Path]) -> List[Dict[str, str]]:
        """Read and parse a CSV file into header-keyed rows."""
        rows = parse_csv(self.load_text(filename))
        logger.info(f"Parsed {len(rows)} usable rows from {filename}")
        return rows

    def to_dataframe(self, records: Sequence[PaperRecord]) -> pd.DataFrame:
        """Build a DataFrame with one row per paper record."""
        if not records:
            return pd.DataFrame(columns=list(PaperRecord.__dataclass_fields__))

        df = pd.DataFrame([asdict(record) for record in records])
        df["year"] = pd.to_numeric(df["pub_date"], errors="coerce")
        df["author_count"] = df["authors"].apply(len)
        return df

    def get_basic_stats(self, df: pd.DataFrame) -> dict:
        """Get basic statistics about a set of papers."""
        stats: dict = {
            "total_papers": len(df),
            "date_range": {},
            "author_stats": {},
            "top_journals": {},
            "with_abstract": 0,
        }

        if len(df) == 0:
            return stats

        years = (
            df["year"]
            if "year" in df.columns
            else pd.to_numeric(df["pub_date"], errors="coerce")
        )
        valid_years = years.dropna()
        if not valid_years.empty:
            stats["date_range"] = {
                "min_year": int(valid_years.min()),
                "max_year": int(valid_years.max()),
                "year_distribution": {
                    int(year): int(count)
                    for year, count in valid_years.value_counts()
                    .sort_index()
                    .items()
                },
            }

        if "author_count" in df.columns:
            stats["author_stats"] = {
                "mean_authors": float(df["author_count"].mean()),
                "max_authors": int(df["author_count"].max()),
            }

        journals = df["journal"][df["journal"] != ""]
        if not journals.empty:
            stats["top_journals"] = {
                str(name): int(count)
                for name, count in journals.value_counts().head(10).items()
            }

        stats["with_abstract"] = int((df["abstract"].str.strip() != "").sum())
        return stats
