"""Main synaptica module tying projects, imports and full-text retrieval together."""

import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .analysis import PaperAnalyzer
from .availability import AvailabilityResolver, AvailabilityResult, check_papers_sequentially
from .config import Settings
from .data_loader import PubMedCSVLoader
from .errors import DuplicatePaperError, PubMedError, StoreError
from .fulltext import FullTextContent, FullTextFetcher
from .importer import CSVImporter, ImportOutcome, ProgressCallback
from .normalizer import PaperRecord
from .project_store import FullTextStatus, Project, ProjectStore
from .pubmed_client import PubMedClient

logger = logging.getLogger(__name__)


class Synaptica:
    """Main class for managing research projects and their papers."""

    def __init__(
        self,
        data_dir: Union[str, Path] = "data",
        settings: Optional[Settings] = None,
        resolver: Optional[AvailabilityResolver] = None,
        fetcher: Optional[FullTextFetcher] = None,
        pubmed: Optional[PubMedClient] = None,
        analyzer: Optional[PaperAnalyzer] = None,
    ):
        """
        Initialize Synaptica with a data directory.

        Args:
            data_dir: Directory holding the project index and saved papers
            settings: Runtime settings; defaults are used when omitted
            resolver: Availability resolver (built from settings if omitted)
            fetcher: Full-text fetcher (built from settings if omitted)
            pubmed: PubMed client (built from settings if omitted)
            analyzer: LLM analyzer (built from settings if omitted)
        """
        self.data_dir = Path(data_dir)
        self.settings = settings or Settings()

        self.store = ProjectStore(self.data_dir)
        self.csv_loader = PubMedCSVLoader(self.data_dir)

        self.resolver = resolver or AvailabilityResolver(self.settings)
        self.fetcher = fetcher or FullTextFetcher(self.settings, resolver=self.resolver)
        self.pubmed = pubmed or PubMedClient(self.settings)
        self.analyzer = analyzer or PaperAnalyzer(
            model=self.settings.openai_model,
            max_tokens=self.settings.openai_max_tokens,
        )

    def create_project(self, name: str, user_id: str, description: str = "") -> Project:
        """Create a new, empty project."""
        return self.store.create_project(name, user_id, description)

    def list_projects(self, user_id: Optional[str] = None) -> List[Project]:
        """List all projects, or only those owned by a user."""
        return self.store.get_all_projects(user_id)

    def get_project(self, project_id: str) -> Optional[Project]:
        """Get a specific project by ID."""
        return self.store.get_project_by_id(project_id)

    def get_project_papers(
        self, project_id: str, user_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Get the papers saved in a project."""
        return self.store.get_project_papers(project_id, user_id)

    def import_csv(
        self,
        project_id: str,
        csv_text: str,
        user_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportOutcome:
        """
        Import a PubMed CSV export into a project.

        Raises:
            ProjectNotFoundError: If the project does not exist or the user
                does not own it
        """
        self.store.require_project(project_id, user_id)
        importer = CSVImporter(self.store, user_id, self.settings.max_authors)
        return importer.import_csv_text(project_id, csv_text, on_progress)

    def import_csv_file(
        self,
        project_id: str,
        csv_path: Union[str, Path],
        user_id: str,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ImportOutcome:
        """Import a PubMed CSV file into a project."""
        text = self.csv_loader.load_text(csv_path)
        return self.import_csv(project_id, text, user_id, on_progress)

    def save_search_results(
        self, project_id: str, pmids: List[str], user_id: str
    ) -> ImportOutcome:
        """Fetch PubMed details for PMIDs and save them into a project."""
        self.store.require_project(project_id, user_id)
        outcome = ImportOutcome()

        for article in self.pubmed.fetch_details(pmids):
            try:
                self.store.save_paper_to_project(project_id, article.to_record(), user_id)
                outcome.success_count += 1
            except DuplicatePaperError as e:
                outcome.failed_count += 1
                outcome.duplicate_count += 1
                outcome.errors.append(str(e))
            except StoreError as e:
                outcome.failed_count += 1
                outcome.errors.append(str(e))

        return outcome

    def check_project_availability(
        self,
        project_id: str,
        user_id: Optional[str] = None,
        delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> List[AvailabilityResult]:
        """Check which papers of a project have open-access full text."""
        papers = self.store.get_project_papers(project_id, user_id)
        logger.info(f"Checking availability for {len(papers)} papers in {project_id}")
        return check_papers_sequentially(
            self.resolver,
            papers,
            delay=self.settings.availability_delay if delay is None else delay,
            sleep=sleep,
        )

    def fetch_full_text(
        self,
        project_id: str,
        pmid: str,
        pmc_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Optional[FullTextContent]:
        """
        Retrieve and store the full text of a saved paper.

        The paper's ``full_text_status`` moves to ``fetching`` and then to
        ``completed`` or ``failed``.

        Returns:
            The stored content, or None when no full text was available

        Raises:
            StoreError: If the paper is not saved in the project
        """
        self.store.require_project(project_id, user_id)
        paper = self.store.get_paper(project_id, pmid)
        if paper is None:
            raise StoreError(f"Paper {pmid} not found in project '{project_id}'")

        self.store.update_paper(project_id, pmid, full_text_status=FullTextStatus.FETCHING)
        known_pmc_id = pmc_id or paper.get("pmc_id")
        logger.info(f"Fetching full text for PMID {pmid}, PMC ID: {known_pmc_id or 'none'}")

        try:
            content = self.fetcher.get_full_text(pmid, known_pmc_id)
        except Exception:
            self.store.update_paper(project_id, pmid, full_text_status=FullTextStatus.FAILED)
            raise

        if content is None:
            logger.info(f"No full text found for PMID {pmid}")
            self.store.update_paper(project_id, pmid, full_text_status=FullTextStatus.FAILED)
            return None

        self.store.update_paper(
            project_id,
            pmid,
            full_text=content.full_text,
            full_text_source=content.source.origin,
            full_text_status=FullTextStatus.COMPLETED,
            sections=dict(content.sections),
        )
        logger.info(f"Stored full text for PMID {pmid} ({len(content.full_text)} chars)")
        return content

    def fetch_missing_abstracts(
        self, project_id: str, user_id: Optional[str] = None
    ) -> Dict[str, int]:
        """Fill in abstracts from PubMed for papers saved without one."""
        papers = self.store.get_project_papers(project_id, user_id)
        missing = [p for p in papers if not (p.get("abstract") or "").strip()]
        logger.info(f"{len(missing)} papers without abstract in {project_id}")

        updated = 0
        failed = 0
        for paper in missing:
            pmid = paper["pmid"]
            try:
                abstract = self.pubmed.fetch_abstract(pmid)
            except PubMedError as e:
                logger.warning(f"Could not fetch abstract for {pmid}: {e}")
                failed += 1
                continue

            if abstract:
                self.store.update_paper(project_id, pmid, abstract=abstract)
                updated += 1
            else:
                failed += 1

        return {"updated": updated, "failed": failed}

    def analyze_project(
        self, project_id: str, user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Run the LLM cross-paper analysis over every paper of a project."""
        return self.analyzer.analyze(self.store.get_project_papers(project_id, user_id))

    def get_project_statistics(
        self, project_id: str, user_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Get paper statistics for a project."""
        papers = self.store.get_project_papers(project_id, user_id)
        records = [
            PaperRecord(
                **{
                    key: paper[key]
                    for key in PaperRecord.__dataclass_fields__
                    if paper.get(key) is not None
                }
            )
            for paper in papers
        ]
        df = self.csv_loader.to_dataframe(records)
        stats = self.csv_loader.get_basic_stats(df)

        status_counts: Dict[str, int] = {}
        for paper in papers:
            status = paper.get("full_text_status", FullTextStatus.PENDING)
            status_counts[status] = status_counts.get(status, 0) + 1
        stats["full_text_status"] = status_counts
        stats["project_id"] = project_id
        return stats
