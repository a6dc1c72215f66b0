"""PubMed E-utilities client: search, article details and abstracts."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import requests
from bs4 import BeautifulSoup

from .config import Settings
from .errors import PubMedError
from .normalizer import PaperRecord, extract_year, normalize_pmc_id
from .session import build_session

logger = logging.getLogger(__name__)

# PubMed splits these phrases into separate terms unless hyphenated
TERM_REWRITES = [
    (re.compile(r"CAR T", re.IGNORECASE), "CAR-T"),
    (re.compile(r"T cell", re.IGNORECASE), "T-cell"),
    (re.compile(r"NK cell", re.IGNORECASE), "NK-cell"),
    (re.compile(r"B cell", re.IGNORECASE), "B-cell"),
]

STOP_WORDS = {"and", "or", "the", "for", "with"}
MAX_KEY_TERMS = 5
MIN_ABSTRACT_LENGTH = 10
DISPLAY_AUTHORS = 3


@dataclass
class PubMedLink:
    """A link to the full text or publisher page of an article."""

    type: str
    url: str
    label: str


@dataclass
class PubMedArticle:
    """Article metadata as returned by EFetch."""

    pmid: str
    title: str
    authors: List[str] = field(default_factory=list)
    journal: str = ""
    pub_date: str = ""
    abstract: str = ""
    doi: Optional[str] = None
    pmc_id: Optional[str] = None
    links: List[PubMedLink] = field(default_factory=list)

    def to_record(self) -> PaperRecord:
        """Convert to a canonical paper record for saving into a project."""
        return PaperRecord(
            pmid=self.pmid,
            title=self.title,
            authors=list(self.authors),
            journal=self.journal,
            pub_date=extract_year(self.pub_date),
            abstract=self.abstract,
            pmc_id=self.pmc_id,
            doi=self.doi,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "pmid": self.pmid,
            "title": self.title,
            "authors": list(self.authors),
            "journal": self.journal,
            "pub_date": self.pub_date,
            "abstract": self.abstract,
            "doi": self.doi,
            "pmc_id": self.pmc_id,
            "links": [vars(link) for link in self.links],
        }


def preprocess_term(term: str) -> str:
    """Hyphenate cell-type phrases so PubMed keeps them together."""
    for pattern, replacement in TERM_REWRITES:
        term = pattern.sub(replacement, term)
    return term.strip()


def key_terms_query(term: str) -> str:
    """Build an AND query from the longer, non-stop-word terms of a query."""
    terms = [
        word
        for word in term.split(" ")
        if len(word) > 3 and word.lower() not in STOP_WORDS
    ]
    return " AND ".join(terms[:MAX_KEY_TERMS])


def _text(element) -> str:
    return element.get_text().strip() if element is not None else ""


def parse_pmc_links(xml_text: str) -> Dict[str, str]:
    """Map PMIDs to PMC identifiers from an ELink XML response."""
    soup = BeautifulSoup(xml_text, "lxml-xml")
    pmc_map: Dict[str, str] = {}

    for link_set in soup.find_all("LinkSet"):
        id_list = link_set.find("IdList")
        from_ids = id_list.find_all("Id") if id_list else []
        if len(from_ids) != 1:
            # Links of a multi-PMID LinkSet cannot be told apart
            logger.warning(f"Skipping ELink LinkSet with {len(from_ids)} source IDs")
            continue
        from_id = _text(from_ids[0])

        for db in link_set.find_all("LinkSetDb"):
            if _text(db.find("DbTo")) != "pmc":
                continue
            link = db.find("Link")
            pmc_id = _text(link.find("Id")) if link else ""
            if from_id and pmc_id:
                pmc_map[from_id] = pmc_id
            break

    return pmc_map


def parse_articles(xml_text: str, pmc_map: Optional[Dict[str, str]] = None) -> List[PubMedArticle]:
    """Parse PubmedArticle elements of an EFetch XML response."""
    soup = BeautifulSoup(xml_text, "lxml-xml")
    pmc_map = pmc_map or {}
    articles: List[PubMedArticle] = []

    for article in soup.find_all("PubmedArticle"):
        pmid = _text(article.find("PMID"))
        if not pmid:
            continue

        authors = [
            _text(name)
            for name in article.select("Author > LastName")
            if _text(name)
        ]

        pub_date = article.find("PubDate")
        year = _text(pub_date.find("Year")) if pub_date else ""

        doi_el = article.find("ELocationID", attrs={"EIdType": "doi"})
        doi = _text(doi_el) or None

        pmc_id = normalize_pmc_id(pmc_map.get(pmid))

        links: List[PubMedLink] = []
        if pmc_id:
            links.append(
                PubMedLink(
                    type="PMC",
                    url=f"https://www.ncbi.nlm.nih.gov/pmc/articles/{pmc_id}/",
                    label="Free Full-Text (PMC)",
                )
            )
        if doi:
            links.append(
                PubMedLink(type="DOI", url=f"https://doi.org/{doi}", label="Publisher (DOI)")
            )

        articles.append(
            PubMedArticle(
                pmid=pmid,
                title=_text(article.find("ArticleTitle")) or "No title available",
                authors=authors[:DISPLAY_AUTHORS],
                journal=_text(article.find("Title")) or "Unknown journal",
                pub_date=year,
                abstract=_text(article.find("AbstractText")),
                doi=doi,
                pmc_id=pmc_id,
                links=links,
            )
        )

    return articles


def parse_abstract(xml_text: str) -> Optional[str]:
    """Join every AbstractText piece (structured abstracts have several)."""
    soup = BeautifulSoup(xml_text, "lxml-xml")
    pieces = [_text(piece) for piece in soup.find_all("AbstractText")]
    abstract = " ".join(piece for piece in pieces if piece)
    if len(abstract) <= MIN_ABSTRACT_LENGTH:
        return None
    return abstract


class PubMedClient:
    """Thin client over the ESearch, EFetch and ELink services."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
    ):
        self.settings = settings or Settings()
        self.session = session or build_session(self.settings.user_agent, max_retries=2)
        self.timeout = self.settings.pubmed_timeout

    def _get(self, endpoint: str, params: Dict[str, Any]) -> requests.Response:
        url = f"{self.settings.eutils_base_url}/{endpoint}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise PubMedError(f"Request to {endpoint} failed: {e}") from e
        return response

    def _esearch(self, term: str, retmax: int) -> List[str]:
        response = self._get(
            "esearch.fcgi",
            {
                "db": "pubmed",
                "term": term,
                "retmode": "json",
                "retmax": str(retmax),
                "sort": "relevance",
            },
        )
        try:
            data = response.json()
        except ValueError as e:
            raise PubMedError(f"Invalid ESearch response: {e}") from e

        result = data.get("esearchresult") or {}
        ids = [str(pmid) for pmid in result.get("idlist") or []]
        logger.info(f"Found {result.get('count', 0)} total results, got {len(ids)} IDs")
        return ids

    def search(self, term: str, retmax: int = 100) -> List[str]:
        """
        Search PubMed and return matching PMIDs, most relevant first.

        When the query finds nothing, it is retried once as an AND of its
        key terms.

        Raises:
            PubMedError: If the service cannot be reached or answers badly
        """
        if not term.strip():
            return []

        processed = preprocess_term(term)
        logger.info(f"Searching PubMed for: {processed}")
        ids = self._esearch(processed, retmax)

        if not ids:
            fallback = key_terms_query(processed)
            if fallback and fallback != processed:
                logger.info(f"No results, trying key terms: {fallback}")
                ids = self._esearch(fallback, retmax)

        return ids

    def fetch_details(self, pmids: Sequence[str]) -> List[PubMedArticle]:
        """Fetch metadata and PMC links for a list of PMIDs."""
        if not pmids:
            return []

        details = self._get(
            "efetch.fcgi", {"db": "pubmed", "id": ",".join(pmids), "retmode": "xml"}
        )
        # Repeated id parameters make ELink answer with one LinkSet per PMID
        links = self._get(
            "elink.fcgi",
            {"dbfrom": "pubmed", "db": "pmc", "id": list(pmids), "retmode": "xml"},
        )
        return parse_articles(details.text, parse_pmc_links(links.text))

    def fetch_abstract(self, pmid: str) -> Optional[str]:
        """Fetch the abstract of one paper, or None if it has none."""
        response = self._get(
            "efetch.fcgi",
            {"db": "pubmed", "id": pmid, "retmode": "xml", "rettype": "abstract"},
        )
        return parse_abstract(response.text)
