"""Shared pytest fixtures and configuration for synaptica tests."""

import sys
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional, Union

import pytest
import requests

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Import after adding path
from synaptica import Synaptica  # noqa: E402
from synaptica.availability import AvailabilityResolver  # noqa: E402
from synaptica.config import Settings  # noqa: E402
from synaptica.fulltext import FullTextFetcher  # noqa: E402
from synaptica.pubmed_client import PubMedClient  # noqa: E402
from synaptica.retry import RetryPolicy  # noqa: E402
from synaptica.web_server import SynapticaWebServer  # noqa: E402

SAMPLE_CSV = """PMID,Title,Authors,Citation,First Author,Journal/Book,Publication Year,Create Date,PMCID,NIHMS ID,DOI
"38001234","CAR-T cell therapy in solid tumors","Smith J, Doe A, Lee K","Nat Med. 2023;29(4):812-820.","Smith J","Nat Med","2023","2023/05/01","PMC10111111","","10.1038/s41591-023-0001"
"38001235","Checkpoint inhibitors and the gut microbiome","Garcia M; Chen L","Cell. 2022;185(2):100-115.","Garcia M","Cell","2022","2022/01/15","","",""
"38001236","A ""quoted"" title, with a comma","","J Immunol 2021;206:1-10","Brown T","","","2021/03/03","","",""
"""

SAMPLE_ARTICLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<OAI-PMH xmlns="http://www.openarchives.org/OAI/2.0/">
  <GetRecord>
    <record>
      <metadata>
        <article xmlns:xlink="http://www.w3.org/1999/xlink" article-type="research-article">
          <front>
            <article-meta>
              <title-group>
                <article-title>Engineered T cells against solid tumors</article-title>
              </title-group>
              <abstract>
                <p>Chimeric antigen receptor T cells have transformed the treatment of blood cancers.</p>
                <p>Second abstract paragraph.</p>
              </abstract>
            </article-meta>
          </front>
          <body>
            <sec>
              <title>Introduction</title>
              <p>Solid tumors remain difficult to treat with cellular therapies because of the hostile microenvironment.</p>
              <p></p>
              <p>We review recent progress.</p>
            </sec>
            <sec>
              <title>Results and Discussion</title>
              <p>Response rates improved in three of five trials.</p>
            </sec>
            <sec>
              <title>Methods</title>
              <p>We searched PubMed for trials published since 2015.</p>
              <sec>
                <title>Statistics</title>
                <p>Pooled estimates used a random effects model.</p>
              </sec>
            </sec>
            <sec>
              <title>Funding</title>
              <p>Supported by a research grant.</p>
            </sec>
          </body>
        </article>
      </metadata>
    </record>
  </GetRecord>
</OAI-PMH>
"""


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(
        self,
        text: str = "",
        status_code: int = 200,
        json_data: Any = None,
    ):
        self.text = text
        self.status_code = status_code
        self._json_data = json_data

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self) -> Any:
        if self._json_data is None:
            raise ValueError("No JSON object could be decoded")
        return self._json_data


Reply = Union[FakeResponse, Exception]


class FakeSession:
    """Replays canned replies to ``get`` and records every call."""

    def __init__(self, replies: Optional[List[Reply]] = None):
        self.replies = list(replies or [])
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, timeout: Any = None) -> FakeResponse:
        self.calls.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        if not self.replies:
            raise requests.ConnectionError(f"No reply queued for {url}")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class SleepRecorder:
    """Records requested delays instead of sleeping."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def linkset_json(pmc_digits: Optional[str]) -> Dict[str, Any]:
    """ELink JSON body mapping a PMID to a PMC record (or to nothing)."""
    if pmc_digits is None:
        return {"linksets": [{"dbfrom": "pubmed", "ids": ["1"]}]}
    return {
        "linksets": [
            {
                "dbfrom": "pubmed",
                "linksetdbs": [
                    {"dbto": "pmc", "linkname": "pubmed_pmc", "links": [pmc_digits]}
                ],
            }
        ]
    }


@pytest.fixture
def temp_data_dir() -> Generator[Path, None, None]:
    """Create a temporary data directory for isolated tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def sample_csv() -> str:
    """A small PubMed CSV export."""
    return SAMPLE_CSV


@pytest.fixture
def sample_article_xml() -> str:
    """A PMC OAI-PMH GetRecord response holding a JATS article."""
    return SAMPLE_ARTICLE_XML


@pytest.fixture
def make_session() -> Callable[..., FakeSession]:
    """Factory for fake HTTP sessions."""
    return FakeSession


@pytest.fixture
def make_response() -> Callable[..., FakeResponse]:
    """Factory for fake HTTP responses."""
    return FakeResponse


@pytest.fixture
def make_linkset() -> Callable[[Optional[str]], Dict[str, Any]]:
    """Factory for ELink JSON bodies."""
    return linkset_json


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    """A sleep function that only records delays."""
    return SleepRecorder()


@pytest.fixture
def settings() -> Settings:
    """Default settings with zero inter-request delay."""
    return Settings(availability_delay=0.0)


@pytest.fixture
def offline_synaptica(temp_data_dir: Path, settings: Settings) -> Synaptica:
    """A Synaptica instance whose HTTP clients fail on any request."""
    resolver = AvailabilityResolver(
        settings,
        session=FakeSession(),
        retry_policy=RetryPolicy(max_attempts=1),
        sleep=SleepRecorder(),
    )
    return Synaptica(
        temp_data_dir,
        settings,
        resolver=resolver,
        fetcher=FullTextFetcher(settings, session=FakeSession(), resolver=resolver),
        pubmed=PubMedClient(settings, session=FakeSession()),
    )


@pytest.fixture
def web_client(offline_synaptica: Synaptica) -> Generator[Any, None, None]:
    """Create a Flask test client over an offline Synaptica instance."""
    web_server = SynapticaWebServer(
        data_dir=offline_synaptica.data_dir, synaptica=offline_synaptica
    )
    web_server.app.config["TESTING"] = True
    with web_server.app.test_client() as client:
        yield client
