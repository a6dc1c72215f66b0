"""Command line interface for synaptica."""

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import load_settings
from .core import Synaptica
from .importer import ImportProgress
from .log_setup import setup_logger

DEFAULT_USER_ID = "local"


def _common_options() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--data-dir", default="data", help="Data directory path")
    common.add_argument("--config", default=None, help="YAML settings file")
    common.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    return common


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with all subcommands."""
    parser = argparse.ArgumentParser(
        description="Synaptica: research paper aggregation"
    )
    common = _common_options()
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("list-projects", parents=[common], help="List all projects")

    create_parser = subparsers.add_parser(
        "create-project", parents=[common], help="Create a new project"
    )
    create_parser.add_argument("name", help="Project name")
    create_parser.add_argument("--description", default="", help="Project description")
    create_parser.add_argument("--user", default=DEFAULT_USER_ID, help="Owner user ID")

    import_parser = subparsers.add_parser(
        "import-csv", parents=[common], help="Import a PubMed CSV export into a project"
    )
    import_parser.add_argument("project_id", help="Project ID")
    import_parser.add_argument("csv_file", help="Path to the CSV file")
    import_parser.add_argument("--user", default=DEFAULT_USER_ID, help="Owner user ID")

    availability_parser = subparsers.add_parser(
        "check-availability",
        parents=[common],
        help="Check open-access full-text availability for a project",
    )
    availability_parser.add_argument("project_id", help="Project ID")

    fulltext_parser = subparsers.add_parser(
        "fetch-fulltext", parents=[common], help="Fetch the full text of a saved paper"
    )
    fulltext_parser.add_argument("project_id", help="Project ID")
    fulltext_parser.add_argument("pmid", help="PubMed ID of the paper")
    fulltext_parser.add_argument("--pmcid", default=None, help="Known PMC ID")

    abstracts_parser = subparsers.add_parser(
        "fetch-abstracts",
        parents=[common],
        help="Fill in missing abstracts from PubMed",
    )
    abstracts_parser.add_argument("project_id", help="Project ID")

    stats_parser = subparsers.add_parser(
        "stats", parents=[common], help="Show statistics for a project"
    )
    stats_parser.add_argument("project_id", help="Project ID")

    search_parser = subparsers.add_parser(
        "search", parents=[common], help="Search PubMed"
    )
    search_parser.add_argument("term", help="Search term")
    search_parser.add_argument(
        "--max-results", type=int, default=20, help="Maximum number of results"
    )
    search_parser.add_argument(
        "--save-to", default=None, help="Project ID to save the results into"
    )
    search_parser.add_argument("--user", default=DEFAULT_USER_ID, help="Owner user ID")

    web_parser = subparsers.add_parser(
        "web", parents=[common], help="Start the web API server"
    )
    web_parser.add_argument("--host", default="127.0.0.1", help="Host to bind")
    web_parser.add_argument("--port", type=int, default=5000, help="Port to bind")

    return parser


def _print_progress(progress: ImportProgress) -> None:
    print(f"\rImported {progress.current}/{progress.total}", end="", flush=True)
    if progress.current == progress.total:
        print()


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the synaptica CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return

    setup_logger(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        settings = load_settings(args.config)
        synaptica = Synaptica(args.data_dir, settings)

        if args.command == "list-projects":
            projects = synaptica.list_projects()
            if not projects:
                print("No projects found.")
                return

            print("Projects:")
            for project in projects:
                papers = synaptica.get_project_papers(project.project_id)
                print(f"  {project.project_id}: {project.name}")
                print(f"    Owner: {project.user_id}, created {project.created_date}")
                print(f"    Papers: {len(papers)}")
                if project.description:
                    print(f"    {project.description}")

        elif args.command == "create-project":
            project = synaptica.create_project(args.name, args.user, args.description)
            print(f"Created project '{project.project_id}'")

        elif args.command == "import-csv":
            outcome = synaptica.import_csv_file(
                args.project_id, args.csv_file, args.user, _print_progress
            )
            print(f"Imported: {outcome.success_count}")
            print(f"Failed: {outcome.failed_count}")
            print(f"Duplicates: {outcome.duplicate_count}")
            for error in outcome.summary_errors(settings.error_summary_limit):
                print(f"  - {error}")

        elif args.command == "check-availability":
            results = synaptica.check_project_availability(args.project_id)
            available = [r for r in results if r.has_full_text]
            for result in results:
                marker = "yes" if result.has_full_text else "no "
                print(f"  [{marker}] {result.pmid}: {result.title[:70]}")
            print(f"\n{len(available)} of {len(results)} papers have free full text")

        elif args.command == "fetch-fulltext":
            content = synaptica.fetch_full_text(args.project_id, args.pmid, args.pmcid)
            if content is None:
                print(f"No full text available for PMID {args.pmid}")
                sys.exit(2)

            print(f"Title: {content.title}")
            print(f"Source: {content.source.locator}")
            print(f"Full text: {len(content.full_text)} characters")
            print(f"Sections: {', '.join(content.sections) or 'none'}")

        elif args.command == "fetch-abstracts":
            result = synaptica.fetch_missing_abstracts(args.project_id)
            print(f"Updated: {result['updated']}, failed: {result['failed']}")

        elif args.command == "stats":
            stats = synaptica.get_project_statistics(args.project_id)
            print(json.dumps(stats, indent=2))

        elif args.command == "search":
            pmids = synaptica.pubmed.search(args.term, retmax=args.max_results)
            if not pmids:
                print("No results found.")
                return

            if args.save_to:
                outcome = synaptica.save_search_results(args.save_to, pmids, args.user)
                print(
                    f"Saved {outcome.success_count} papers to '{args.save_to}' "
                    f"({outcome.duplicate_count} already saved)"
                )
            else:
                for article in synaptica.pubmed.fetch_details(pmids):
                    authors = ", ".join(article.authors)
                    print(f"{article.pmid}  {article.title}")
                    print(f"          {authors} - {article.journal} {article.pub_date}")

        elif args.command == "web":
            from .web_server import SynapticaWebServer

            print(f"Synaptica web server running at http://{args.host}:{args.port}")
            print("Press Ctrl+C to stop the server")
            server = SynapticaWebServer(args.data_dir, synaptica=synaptica)
            server.run(host=args.host, port=args.port)

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
