"""Open-access availability checks for PubMed papers."""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests

from .config import Settings
from .errors import RetryError
from .normalizer import normalize_pmc_id
from .retry import RetryPolicy
from .session import build_session

logger = logging.getLogger(__name__)

PMC_ARTICLE_URL = "https://www.ncbi.nlm.nih.gov/pmc/articles"


class SourceOrigin:
    """Full-text origin constants."""

    PMC = "pmc"
    ARXIV = "arxiv"
    DOI = "doi"
    PUBLISHER = "publisher"


class SourceFormat:
    """Full-text document format constants."""

    XML = "xml"
    HTML = "html"
    TEXT = "text"


@dataclass(frozen=True)
class FullTextSource:
    """A place where the free full text of a paper can be retrieved."""

    origin: str
    locator: str
    format: str

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {"origin": self.origin, "locator": self.locator, "format": self.format}


@dataclass
class AvailabilityResult:
    """Availability of one paper within a project-wide check."""

    pmid: str
    title: str
    sources: List[FullTextSource] = field(default_factory=list)
    paper_id: Optional[str] = None

    @property
    def has_full_text(self) -> bool:
        return len(self.sources) > 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "paper_id": self.paper_id,
            "pmid": self.pmid,
            "title": self.title,
            "has_full_text": self.has_full_text,
            "sources": [source.to_dict() for source in self.sources],
        }


def pmc_source(pmc_id: str, base_url: str = PMC_ARTICLE_URL) -> FullTextSource:
    """Build the PMC source for a PMC identifier ('PMC123' or '123')."""
    normalized = normalize_pmc_id(pmc_id)
    if not normalized:
        raise ValueError(f"Invalid PMC identifier: {pmc_id!r}")

    return FullTextSource(
        origin=SourceOrigin.PMC,
        locator=f"{base_url.rstrip('/')}/{normalized}/",
        format=SourceFormat.XML,
    )


def extract_pmc_id(locator: str) -> Optional[str]:
    """Recover the 'PMC<digits>' identifier from a source locator."""
    match = re.search(r"PMC\d+", locator or "")
    return match.group(0) if match else None


def parse_linksets(data: Any) -> Optional[str]:
    """
    Read the PMC identifier out of an ELink JSON response.

    Missing or empty ``linksets``/``linksetdbs``/``links`` mean that PubMed
    has no PMC record for the paper; they are not treated as errors.

    Args:
        data: Decoded JSON body of an ``elink.fcgi`` call

    Returns:
        'PMC<digits>' or None when no mapping exists
    """
    if not isinstance(data, dict):
        return None

    linksets = data.get("linksets") or []
    if not linksets or not isinstance(linksets[0], dict):
        return None

    linksetdbs = linksets[0].get("linksetdbs") or []
    if not linksetdbs or not isinstance(linksetdbs[0], dict):
        return None

    links = linksetdbs[0].get("links") or []
    if not links:
        return None

    return normalize_pmc_id(str(links[0]))


class AvailabilityResolver:
    """Finds open-access full-text sources for a PubMed identifier."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the resolver.

        Args:
            settings: Endpoint URLs, timeout and retry defaults
            session: HTTP session; a new one is built when omitted
            retry_policy: Retry policy for the PMID -> PMC lookup
            sleep: Function used to wait between lookup attempts
        """
        self.settings = settings or Settings()
        self.session = session or build_session(self.settings.user_agent)
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.settings.retry_attempts,
            base_delay=self.settings.retry_base_delay,
            max_delay=self.settings.retry_max_delay,
        )
        self.timeout = self.settings.availability_timeout
        self.sleep = sleep

    def check_availability(
        self, pmid: str, pmc_id: Optional[str] = None
    ) -> List[FullTextSource]:
        """
        List the sources holding free full text for a paper.

        A known PMC identifier is used as is, without any network call.
        Otherwise PubMed's link service is asked for the PMC record, with
        retries. Exhausted retries give an empty list, not an error.

        Args:
            pmid: PubMed identifier
            pmc_id: Already known PMC identifier, if any

        Returns:
            Zero or one full-text sources
        """
        logger.info(f"Checking availability for PMID {pmid}, PMC ID: {pmc_id or 'none'}")

        if pmc_id and normalize_pmc_id(pmc_id):
            return [pmc_source(pmc_id, self.settings.pmc_article_url)]

        try:
            found = self.retry_policy.call(self.lookup_pmc_id, pmid, sleep=self.sleep)
        except RetryError as e:
            logger.warning(
                f"PMC lookup for PMID {pmid} failed after {e.attempts} attempts: "
                f"{e.last_error}"
            )
            return []

        if not found:
            logger.info(f"No PMC record linked to PMID {pmid}")
            return []

        logger.info(f"Found {found} for PMID {pmid}")
        return [pmc_source(found, self.settings.pmc_article_url)]

    def lookup_pmc_id(self, pmid: str) -> Optional[str]:
        """
        Ask PubMed's ELink service for the PMC record of a paper, once.

        Raises:
            requests.RequestException: On network errors, timeouts and
                non-2xx responses
            ValueError: If the body is not valid JSON
        """
        response = self.session.get(
            f"{self.settings.eutils_base_url}/elink.fcgi",
            params={
                "dbfrom": "pubmed",
                "linkname": "pubmed_pmc",
                "id": pmid,
                "retmode": "json",
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        return parse_linksets(response.json())


def check_papers_sequentially(
    resolver: AvailabilityResolver,
    papers: Iterable[Dict[str, Any]],
    delay: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
) -> List[AvailabilityResult]:
    """
    Check availability for many papers, one at a time.

    Requests are spaced by ``delay`` seconds (none before the first) to stay
    polite with the NCBI services. A paper whose check fails is reported as
    having no full text.

    Args:
        resolver: Resolver used for every paper
        papers: Mappings with at least ``pmid``, optionally ``title``,
            ``pmc_id`` and ``paper_id``
        delay: Seconds to wait between two papers
        sleep: Function used to wait

    Returns:
        One result per paper, in input order
    """
    results: List[AvailabilityResult] = []

    for index, paper in enumerate(papers):
        if index > 0 and delay > 0:
            sleep(delay)

        pmid = str(paper.get("pmid", ""))
        result = AvailabilityResult(
            pmid=pmid,
            title=paper.get("title", ""),
            paper_id=paper.get("paper_id"),
        )
        try:
            result.sources = resolver.check_availability(pmid, paper.get("pmc_id"))
        except Exception as e:
            logger.error(f"Error checking availability for {pmid}: {e}")

        results.append(result)

    return results
