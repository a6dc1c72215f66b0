"""Full-text retrieval from PubMed Central.

Articles are fetched from the PMC OAI-PMH service as JATS XML and split
into title, abstract, full body text and the usual IMRaD sections. Every
failure (network, HTTP status, OAI error, unparseable XML, empty article)
is logged and returned as ``None``; nothing is raised to the caller.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import requests
from bs4 import BeautifulSoup

from .availability import (
    PMC_ARTICLE_URL,
    AvailabilityResolver,
    FullTextSource,
    SourceOrigin,
    extract_pmc_id,
    pmc_source,
)
from .config import Settings
from .normalizer import normalize_pmc_id
from .session import build_session

logger = logging.getLogger(__name__)

MIN_FULL_TEXT_LENGTH = 100

# Checked in order; the first keyword found in a section title wins
SECTION_CATEGORIES: List[Tuple[str, str]] = [
    ("introduction", "introduction"),
    ("method", "methods"),
    ("result", "results"),
    ("discussion", "discussion"),
    ("conclusion", "conclusion"),
]

OAI_ERROR_PATTERN = re.compile(r"<error[\s>]|noRecordsMatch")


@dataclass
class FullTextContent:
    """Title, abstract, body text and categorized sections of an article."""

    title: str
    abstract: str
    full_text: str
    source: FullTextSource
    sections: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "title": self.title,
            "abstract": self.abstract,
            "full_text": self.full_text,
            "sections": dict(self.sections),
            "source": self.source.to_dict(),
        }


def classify_section(title: Optional[str]) -> Optional[str]:
    """Map a section title to one of the canonical section keys."""
    lowered = (title or "").lower()
    for keyword, key in SECTION_CATEGORIES:
        if keyword in lowered:
            return key
    return None


def _text(element: Any) -> str:
    """Whitespace-normalized text content of an element."""
    return re.sub(r"\s+", " ", element.get_text()).strip()


def parse_article_xml(
    xml_text: str,
    pmc_id: str,
    min_length: int = MIN_FULL_TEXT_LENGTH,
    article_url: str = PMC_ARTICLE_URL,
) -> Optional[FullTextContent]:
    """
    Decompose a JATS article (bare or wrapped in an OAI-PMH envelope).

    Args:
        xml_text: Raw XML response
        pmc_id: PMC identifier of the article
        min_length: Length at least one of title, abstract or body text
            must reach for the article to count as extracted
        article_url: Base URL of PMC article pages, used for the source

    Returns:
        The extracted content, or None when nothing meaningful was found
    """
    if OAI_ERROR_PATTERN.search(xml_text):
        logger.error(f"PMC OAI service returned an error or no record for {pmc_id}")
        logger.debug(f"Response snippet: {xml_text[:500]}")
        return None

    try:
        soup = BeautifulSoup(xml_text, "lxml-xml")
    except Exception as e:
        logger.error(f"XML parsing error for {pmc_id}: {e}")
        return None

    article = soup.find("article")
    if article is None:
        root = soup.find()
        logger.error(
            f"No article element found for {pmc_id} "
            f"(root: {root.name if root else 'none'})"
        )
        return None

    title_el = article.find("article-title")
    title = _text(title_el) if title_el else ""

    abstract = ""
    abstract_el = article.find("abstract")
    if abstract_el is not None:
        first_paragraph = abstract_el.find("p")
        if first_paragraph is not None:
            abstract = _text(first_paragraph)

    full_text = ""
    sections: Dict[str, str] = {}

    body = article.find("body")
    if body is not None:
        # Nested sections are visited too, in document order; their paragraphs
        # also count towards every enclosing section
        for index, sec in enumerate(body.find_all("sec")):
            sec_title_el = sec.find("title", recursive=False)
            sec_title = _text(sec_title_el) if sec_title_el else ""

            paragraphs = [_text(p) for p in sec.find_all("p")]
            section_text = "\n\n".join(p for p in paragraphs if p)
            if not section_text:
                continue

            full_text += f"\n\n{sec_title}\n{section_text}"

            category = classify_section(sec_title or f"section-{index}")
            if category:
                sections[category] = section_text
    else:
        logger.warning(f"No body element found in article {pmc_id}")

    full_text = full_text.strip()
    logger.info(
        f"Parsed {pmc_id}: title {len(title)} chars, abstract {len(abstract)} chars, "
        f"body {len(full_text)} chars, sections: {', '.join(sections) or 'none'}"
    )

    if max(len(title), len(abstract), len(full_text)) < min_length:
        logger.error(f"Insufficient content extracted from {pmc_id}")
        return None

    return FullTextContent(
        title=title,
        abstract=abstract,
        full_text=full_text,
        sections=sections,
        source=pmc_source(pmc_id, article_url),
    )


class FullTextFetcher:
    """Retrieves and parses open-access full text for PubMed papers."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        resolver: Optional[AvailabilityResolver] = None,
    ):
        """Initialize the fetcher.

        Args:
            settings: Endpoint URLs, timeout and content thresholds
            session: HTTP session for the OAI service
            resolver: Availability resolver used by ``get_full_text``
        """
        self.settings = settings or Settings()
        self.session = session or build_session(self.settings.user_agent, max_retries=2)
        self.resolver = resolver or AvailabilityResolver(self.settings)
        self.timeout = self.settings.fulltext_timeout

    def fetch_from_pmc(self, pmc_id: str) -> Optional[FullTextContent]:
        """
        Fetch and parse one PMC article.

        Args:
            pmc_id: 'PMC<digits>' or bare digits

        Returns:
            Parsed content, or None when the article is unavailable
        """
        normalized = normalize_pmc_id(pmc_id)
        if not normalized:
            logger.error(f"Invalid PMC identifier: {pmc_id!r}")
            return None

        logger.info(f"Fetching full text for {normalized}")
        try:
            response = self.session.get(
                self.settings.pmc_oai_url,
                params={
                    "verb": "GetRecord",
                    "identifier": f"oai:pubmedcentral.nih.gov:{normalized[3:]}",
                    "metadataPrefix": "pmc",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Error fetching {normalized} from PMC: {e}")
            return None

        logger.info(f"PMC response for {normalized}: {len(response.text)} characters")
        return parse_article_xml(
            response.text,
            normalized,
            self.settings.min_full_text_length,
            self.settings.pmc_article_url,
        )

    def get_full_text(
        self, pmid: str, pmc_id: Optional[str] = None
    ) -> Optional[FullTextContent]:
        """
        Resolve where a paper's full text lives and retrieve it.

        Args:
            pmid: PubMed identifier
            pmc_id: Already known PMC identifier, if any

        Returns:
            Parsed content, or None when no open-access copy could be read
        """
        sources = self.resolver.check_availability(pmid, pmc_id)
        logger.info(f"Found {len(sources)} sources for PMID {pmid}")

        pmc = next((s for s in sources if s.origin == SourceOrigin.PMC), None)
        if pmc is None:
            logger.info(f"No full text source for PMID {pmid}")
            return None

        found_id = extract_pmc_id(pmc.locator)
        if not found_id:
            logger.error(f"Failed to extract PMC ID from {pmc.locator}")
            return None

        return self.fetch_from_pmc(found_id)
