"""JSON web API for Synaptica projects, imports and full-text retrieval."""

import logging
import os
import threading
import warnings
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from flask import Flask, Response, jsonify, request

from .config import Settings, load_settings
from .core import Synaptica
from .errors import AnalysisError, ProjectNotFoundError, PubMedError, StoreError
from .importer import ImportProgress
from .log_setup import setup_logger

logger = logging.getLogger(__name__)

DEFAULT_SECRET_KEY = "synaptica_secret_key_change_in_production"  # nosec B105
DEFAULT_USER_ID = "local"

NO_FULL_TEXT_MESSAGE = (
    "No full text available. This may occur if: 1) The paper is not in PMC open "
    "access collection, 2) PMC API is temporarily unavailable, or 3) The paper "
    "format is not supported."
)

ApiResponse = Union[Response, Tuple[Response, int]]


@dataclass
class ImportStatus:
    """Track import progress for a project."""

    project_id: str
    current: int = 0
    total: int = 0
    is_running: bool = False
    last_outcome: Optional[Dict[str, Any]] = None


class SynapticaWebServer:
    """Web server exposing the Synaptica pipelines over HTTP."""

    def __init__(
        self,
        data_dir: Union[str, Path] = "data",
        settings: Optional[Settings] = None,
        synaptica: Optional[Synaptica] = None,
    ):
        """Initialize the web server.

        Args:
            data_dir: Data directory path
            settings: Runtime settings
            synaptica: Preconfigured facade, mainly for tests
        """
        self.data_dir = Path(data_dir)
        self.synaptica = synaptica or Synaptica(self.data_dir, settings)
        self.settings = self.synaptica.settings

        self.app = Flask(__name__)
        # Use environment variable for secret key, fallback to warning
        self.app.secret_key = os.environ.get("SYNAPTICA_SECRET_KEY", DEFAULT_SECRET_KEY)
        if self.app.secret_key == DEFAULT_SECRET_KEY:
            warnings.warn(
                "WARNING: Using default secret key! Set SYNAPTICA_SECRET_KEY in production.",
                UserWarning,
            )
        self.app.config["DEFAULT_USER_ID"] = DEFAULT_USER_ID

        # Import progress per project
        self.progress: Dict[str, ImportStatus] = {}
        self._progress_lock = threading.Lock()

        self._setup_routes()

    def _current_user(self) -> str:
        """Caller identity; authentication happens in front of this server."""
        return request.headers.get("X-User-Id") or self.app.config["DEFAULT_USER_ID"]

    def _update_progress(self, project_id: str, **kwargs: Any) -> None:
        with self._progress_lock:
            status = self.progress.setdefault(project_id, ImportStatus(project_id))
            for key, value in kwargs.items():
                setattr(status, key, value)

    def _setup_routes(self) -> None:
        """Setup Flask routes."""

        @self.app.errorhandler(ProjectNotFoundError)
        def project_not_found(error: ProjectNotFoundError) -> ApiResponse:
            return jsonify({"error": str(error)}), 404

        @self.app.route("/api/projects", methods=["GET"])
        def list_projects() -> ApiResponse:
            projects = self.synaptica.list_projects(self._current_user())
            return jsonify([asdict(project) for project in projects])

        @self.app.route("/api/projects", methods=["POST"])
        def create_project() -> ApiResponse:
            data = request.get_json(silent=True) or {}
            try:
                project = self.synaptica.create_project(
                    data.get("name", ""),
                    self._current_user(),
                    data.get("description", ""),
                )
            except ValueError as e:
                return jsonify({"error": str(e)}), 400
            return jsonify(asdict(project)), 201

        @self.app.route("/api/projects/<project_id>/papers", methods=["GET"])
        def project_papers(project_id: str) -> ApiResponse:
            return jsonify(
                self.synaptica.get_project_papers(project_id, self._current_user())
            )

        @self.app.route("/api/projects/<project_id>/papers", methods=["POST"])
        def save_papers(project_id: str) -> ApiResponse:
            """Save PubMed search results (a list of PMIDs) into a project."""
            data = request.get_json(silent=True) or {}
            pmids = [str(pmid) for pmid in data.get("pmids") or []]
            if not pmids:
                return jsonify({"error": "No PMIDs provided"}), 400
            try:
                outcome = self.synaptica.save_search_results(
                    project_id, pmids, self._current_user()
                )
            except PubMedError as e:
                return jsonify({"error": str(e)}), 502
            return jsonify(outcome.to_dict())

        @self.app.route("/api/projects/<project_id>/import", methods=["POST"])
        def import_csv(project_id: str) -> ApiResponse:
            user_id = self._current_user()

            upload = request.files.get("file")
            if upload is not None:
                if not (upload.filename or "").lower().endswith(".csv"):
                    return jsonify({"error": "Please select a valid CSV file"}), 400
                csv_text = upload.read().decode("utf-8-sig", errors="replace")
            else:
                data = request.get_json(silent=True) or {}
                csv_text = data.get("csv", "")
            if not csv_text:
                return jsonify({"error": "No CSV data provided"}), 400

            with self._progress_lock:
                status = self.progress.get(project_id)
                if status is not None and status.is_running:
                    return jsonify({"error": "An import is already running"}), 409
                self.progress[project_id] = ImportStatus(project_id, is_running=True)

            def on_progress(progress: ImportProgress) -> None:
                self._update_progress(
                    project_id, current=progress.current, total=progress.total
                )

            try:
                outcome = self.synaptica.import_csv(
                    project_id, csv_text, user_id, on_progress
                )
            finally:
                self._update_progress(project_id, is_running=False)

            result = outcome.to_dict(self.settings.error_summary_limit)
            result["total_errors"] = len(outcome.errors)
            self._update_progress(project_id, last_outcome=result)
            return jsonify(result)

        @self.app.route("/api/projects/<project_id>/import_progress")
        def import_progress(project_id: str) -> ApiResponse:
            with self._progress_lock:
                status = self.progress.get(project_id, ImportStatus(project_id))
                progress = ImportProgress(status.current, status.total)
                return jsonify(
                    {
                        **progress.to_dict(),
                        "is_running": status.is_running,
                        "last_outcome": status.last_outcome,
                    }
                )

        @self.app.route("/api/projects/<project_id>/check-availability")
        def check_availability(project_id: str) -> ApiResponse:
            results = self.synaptica.check_project_availability(
                project_id, self._current_user()
            )
            return jsonify([result.to_dict() for result in results])

        @self.app.route(
            "/api/projects/<project_id>/papers/<pmid>/fetch-fulltext", methods=["POST"]
        )
        def fetch_fulltext(project_id: str, pmid: str) -> ApiResponse:
            data = request.get_json(silent=True) or {}
            try:
                content = self.synaptica.fetch_full_text(
                    project_id, pmid, data.get("pmcid"), self._current_user()
                )
            except StoreError:
                return jsonify({"error": "Paper not found or access denied"}), 404
            except Exception as e:
                logger.error(f"Error fetching full text for {pmid}: {e}")
                return jsonify({"error": f"Failed to fetch full text: {e}"}), 500

            if content is None:
                return jsonify({"error": NO_FULL_TEXT_MESSAGE}), 404
            return jsonify({"success": True, "full_text": content.to_dict()})

        @self.app.route("/api/projects/<project_id>/fetch-abstracts", methods=["POST"])
        def fetch_abstracts(project_id: str) -> ApiResponse:
            return jsonify(
                self.synaptica.fetch_missing_abstracts(project_id, self._current_user())
            )

        @self.app.route("/api/projects/<project_id>/stats")
        def project_stats(project_id: str) -> ApiResponse:
            return jsonify(
                self.synaptica.get_project_statistics(project_id, self._current_user())
            )

        @self.app.route("/api/search")
        def search() -> ApiResponse:
            term = request.args.get("term", "")
            if not term.strip():
                return jsonify([])
            try:
                pmids = self.synaptica.pubmed.search(term)
                articles = self.synaptica.pubmed.fetch_details(pmids)
            except PubMedError as e:
                logger.error(f"Error fetching PubMed data: {e}")
                return jsonify({"error": "Failed to fetch PubMed articles"}), 502
            return jsonify([article.to_dict() for article in articles])

        @self.app.route("/api/analyze-papers", methods=["POST"])
        def analyze_papers() -> ApiResponse:
            data = request.get_json(silent=True) or {}
            papers = data.get("papers")
            if not papers or not isinstance(papers, list):
                return jsonify({"error": "No papers provided"}), 400
            try:
                return jsonify(self.synaptica.analyzer.analyze(papers))
            except AnalysisError as e:
                logger.error(f"Error in paper analysis: {e}")
                return jsonify({"error": str(e)}), 500

    def run(self, host: str = "127.0.0.1", port: int = 5000, debug: bool = False) -> None:
        """Run the web server."""
        self.app.run(host=host, port=port, debug=debug, threaded=True)


def create_app(
    data_dir: Union[str, Path] = "data",
    config: Optional[Dict[str, Any]] = None,
    synaptica: Optional[Synaptica] = None,
) -> Flask:
    """Flask app factory for the Synaptica web server (for testing and WSGI)."""
    server = SynapticaWebServer(data_dir=data_dir, synaptica=synaptica)
    if config:
        server.app.config.update(config)
    return server.app


def main() -> None:
    """CLI entry point for running the Synaptica web server."""
    import argparse

    parser = argparse.ArgumentParser(description="Run the Synaptica web server.")
    parser.add_argument(
        "--data-dir", type=str, default="data", help="Data directory (default: data)"
    )
    parser.add_argument("--config", type=str, default=None, help="YAML settings file")
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind (default: 127.0.0.1, use 0.0.0.0 to expose to network)",
    )
    parser.add_argument(
        "--port", type=int, default=5000, help="Port to bind (default: 5000)"
    )
    parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    args = parser.parse_args()

    setup_logger(level=logging.DEBUG if args.debug else logging.INFO)
    settings = load_settings(args.config)
    server = SynapticaWebServer(data_dir=args.data_dir, settings=settings)
    print(f"Synaptica web server running at http://{args.host}:{args.port}")
    server.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
