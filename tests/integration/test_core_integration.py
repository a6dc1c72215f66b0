"""Integration tests for the Synaptica facade over fake NCBI services."""

from pathlib import Path
from typing import Any

import pytest

from synaptica import Synaptica
from synaptica.availability import AvailabilityResolver
from synaptica.config import Settings
from synaptica.errors import ProjectNotFoundError, StoreError
from synaptica.fulltext import FullTextFetcher
from synaptica.importer import ImportProgress
from synaptica.pubmed_client import PubMedClient


def _synaptica(
    data_dir: Path,
    link_session: Any,
    oai_session: Any,
    pubmed_session: Any,
    sleep: Any,
) -> Synaptica:
    settings = Settings(availability_delay=0.25)
    resolver = AvailabilityResolver(settings, session=link_session, sleep=sleep)
    return Synaptica(
        data_dir,
        settings,
        resolver=resolver,
        fetcher=FullTextFetcher(settings, session=oai_session, resolver=resolver),
        pubmed=PubMedClient(settings, session=pubmed_session),
    )


def test_import_then_fetch_full_text(
    temp_data_dir: Path,
    sample_csv: str,
    sample_article_xml: str,
    make_session: Any,
    make_response: Any,
    sleep_recorder: Any,
) -> None:
    """Test the CSV path followed by the full-text path for one paper."""
    oai_session = make_session([make_response(text=sample_article_xml)])
    synaptica = _synaptica(
        temp_data_dir, make_session(), oai_session, make_session(), sleep_recorder
    )
    synaptica.create_project("Review", "alice")
    updates = []

    outcome = synaptica.import_csv("review", sample_csv, "alice", updates.append)

    assert outcome.success_count == 3
    assert updates[-1] == ImportProgress(3, 3)

    content = synaptica.fetch_full_text("review", "38001234")

    assert content is not None
    assert oai_session.calls[0]["params"]["identifier"] == "oai:pubmedcentral.nih.gov:10111111"
    paper = synaptica.store.get_paper("review", "38001234")
    assert paper["full_text_status"] == "completed"
    assert set(paper["sections"]) == {"introduction", "results", "methods"}
    assert paper["full_text"].startswith("Introduction")


def test_fetch_full_text_failure_marks_paper(
    temp_data_dir: Path,
    sample_csv: str,
    make_session: Any,
    make_response: Any,
    make_linkset: Any,
    sleep_recorder: Any,
) -> None:
    """Test that an unavailable paper is marked failed."""
    link_session = make_session([make_response(json_data=make_linkset(None))])
    synaptica = _synaptica(
        temp_data_dir, link_session, make_session(), make_session(), sleep_recorder
    )
    synaptica.create_project("Review", "alice")
    synaptica.import_csv("review", sample_csv, "alice")

    assert synaptica.fetch_full_text("review", "38001235") is None
    assert synaptica.store.get_paper("review", "38001235")["full_text_status"] == "failed"

    with pytest.raises(StoreError):
        synaptica.fetch_full_text("review", "404")


def test_project_availability_spacing(
    temp_data_dir: Path,
    sample_csv: str,
    make_session: Any,
    make_response: Any,
    make_linkset: Any,
    sleep_recorder: Any,
) -> None:
    """Test the inter-request delay across a project's papers."""
    link_session = make_session(
        [
            make_response(json_data=make_linkset("222")),
            make_response(json_data=make_linkset(None)),
        ]
    )
    synaptica = _synaptica(
        temp_data_dir, link_session, make_session(), make_session(), sleep_recorder
    )
    synaptica.create_project("Review", "alice")
    synaptica.import_csv("review", sample_csv, "alice")

    results = synaptica.check_project_availability("review", sleep=sleep_recorder)

    assert [r.has_full_text for r in results] == [True, True, False]
    assert sleep_recorder.delays == [0.25, 0.25]
    assert len(link_session.calls) == 2


def test_fetch_missing_abstracts(
    temp_data_dir: Path,
    sample_csv: str,
    make_session: Any,
    make_response: Any,
    sleep_recorder: Any,
) -> None:
    """Test abstract backfill counting updates and failures."""
    abstract_xml = (
        "<PubmedArticleSet><AbstractText>A meaningful abstract about the gut microbiome."
        "</AbstractText></PubmedArticleSet>"
    )
    pubmed_session = make_session(
        [make_response(text=abstract_xml), make_response(text="<PubmedArticleSet/>"), make_response(status_code=500)]
    )
    synaptica = _synaptica(
        temp_data_dir, make_session(), make_session(), pubmed_session, sleep_recorder
    )
    synaptica.create_project("Review", "alice")
    synaptica.import_csv("review", sample_csv, "alice")

    result = synaptica.fetch_missing_abstracts("review")

    assert result == {"updated": 1, "failed": 2}
    papers = synaptica.get_project_papers("review")
    assert papers[0]["abstract"].startswith("A meaningful abstract")


def test_import_requires_owner(
    temp_data_dir: Path, sample_csv: str, make_session: Any, sleep_recorder: Any
) -> None:
    """Test that a user cannot import into another user's project."""
    synaptica = _synaptica(
        temp_data_dir, make_session(), make_session(), make_session(), sleep_recorder
    )
    synaptica.create_project("Review", "alice")

    with pytest.raises(ProjectNotFoundError):
        synaptica.import_csv("review", sample_csv, "mallory")


def test_import_csv_file_and_statistics(
    temp_data_dir: Path, sample_csv: str, make_session: Any, sleep_recorder: Any
) -> None:
    """Test importing from disk and the project statistics."""
    csv_file = temp_data_dir / "export.csv"
    csv_file.write_text(sample_csv, encoding="utf-8")
    synaptica = _synaptica(
        temp_data_dir, make_session(), make_session(), make_session(), sleep_recorder
    )
    synaptica.create_project("Review", "alice")

    synaptica.import_csv_file("review", csv_file, "alice")
    stats = synaptica.get_project_statistics("review")

    assert stats["total_papers"] == 3
    assert stats["date_range"]["min_year"] == 2021
    assert stats["date_range"]["max_year"] == 2023
    assert stats["full_text_status"] == {"pending": 3}
