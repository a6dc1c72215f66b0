"""Sequential batch import of PubMed CSV rows into a project."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from .data_loader import PubMedCSVLoader, parse_csv
from .errors import DuplicatePaperError, RowRejected
from .normalizer import DEFAULT_MAX_AUTHORS, normalize_row
from .project_store import ProjectStore

logger = logging.getLogger(__name__)

NO_VALID_DATA_MESSAGE = "No valid data found in CSV file"


@dataclass
class ImportProgress:
    """Position of an import run: ``current`` of ``total`` rows processed."""

    current: int
    total: int

    @property
    def percentage(self) -> float:
        if self.total == 0:
            return 100.0
        return round(100.0 * self.current / self.total, 1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current": self.current,
            "total": self.total,
            "percentage": self.percentage,
        }


@dataclass
class ImportOutcome:
    """Counts and error messages of one import run."""

    success_count: int = 0
    failed_count: int = 0
    duplicate_count: int = 0
    errors: List[str] = field(default_factory=list)

    def summary_errors(self, limit: int = 5) -> List[str]:
        """First ``limit`` errors, plus a line saying how many were left out."""
        shown = self.errors[:limit]
        hidden = len(self.errors) - len(shown)
        if hidden > 0:
            shown = shown + [f"...and {hidden} more"]
        return shown

    def to_dict(self, error_limit: Optional[int] = None) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success_count": self.success_count,
            "failed_count": self.failed_count,
            "duplicate_count": self.duplicate_count,
            "errors": (
                list(self.errors)
                if error_limit is None
                else self.summary_errors(error_limit)
            ),
        }


ProgressCallback = Callable[[ImportProgress], None]


class CSVImporter:
    """Drives normalization and saving of CSV rows, one row at a time."""

    def __init__(
        self,
        store: ProjectStore,
        user_id: str,
        max_authors: int = DEFAULT_MAX_AUTHORS,
    ):
        self.store = store
        self.user_id = user_id
        self.max_authors = max_authors

    def import_rows(
        self,
        project_id: str,
        rows: Sequence[Dict[str, str]],
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportOutcome:
        """
        Normalize and save every row into a project.

        Rows are processed strictly in order and each save completes before
        the next row starts. A failing row is recorded in the outcome and
        never stops the batch.

        Args:
            project_id: Target project
            rows: Header-keyed rows from ``parse_csv``
            on_progress: Called with the position after every row

        Returns:
            Outcome of the whole run
        """
        outcome = ImportOutcome()
        total = len(rows)
        logger.info(f"Importing {total} rows into project {project_id}")

        for index, row in enumerate(rows):
            title = (row.get("Title") or "").strip()
            raw_pmid = row.get("PMID", "")

            try:
                record = normalize_row(row, self.max_authors)
                self.store.save_paper_to_project(project_id, record, self.user_id)
                outcome.success_count += 1
            except RowRejected as e:
                outcome.failed_count += 1
                outcome.errors.append(e.reason)
            except DuplicatePaperError:
                outcome.failed_count += 1
                outcome.duplicate_count += 1
                outcome.errors.append(
                    f"Duplicate paper (PMID: {raw_pmid}): {title[:50]}..."
                )
            except Exception as e:
                logger.error(f"Failed to import row {index + 1} ({raw_pmid}): {e}")
                outcome.failed_count += 1
                outcome.errors.append(f"Failed to import {raw_pmid}: {e}")

            if on_progress is not None:
                on_progress(ImportProgress(index + 1, total))

        logger.info(
            f"Import into {project_id} finished: {outcome.success_count} saved, "
            f"{outcome.failed_count} failed ({outcome.duplicate_count} duplicates)"
        )
        return outcome

    def import_csv_text(
        self,
        project_id: str,
        csv_text: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportOutcome:
        """Parse CSV text and import its rows."""
        rows = parse_csv(csv_text)
        if not rows:
            logger.warning(f"No valid rows in CSV for project {project_id}")
            return ImportOutcome(failed_count=1, errors=[NO_VALID_DATA_MESSAGE])

        return self.import_rows(project_id, rows, on_progress)

    def import_file(
        self,
        project_id: str,
        csv_path: Union[str, Path],
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportOutcome:
        """
        Read a CSV file and import its rows.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file cannot be decoded
        """
        text = PubMedCSVLoader().load_text(csv_path)
        return self.import_csv_text(project_id, text, on_progress)
