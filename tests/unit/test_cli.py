"""Unit tests for the command line interface."""

import json
from pathlib import Path
from typing import Any

import pytest

from synaptica.cli import build_parser, main


def test_parser_subcommands() -> None:
    """Test that subcommands accept the shared options."""
    args = build_parser().parse_args(
        ["import-csv", "review", "export.csv", "--data-dir", "/tmp/x", "-v"]
    )

    assert args.command == "import-csv"
    assert args.data_dir == "/tmp/x"
    assert args.verbose is True
    assert args.user == "local"


def test_create_import_and_stats(
    temp_data_dir: Path, sample_csv: str, capsys: Any
) -> None:
    """Test a project life cycle driven from the command line."""
    data_dir = str(temp_data_dir)
    csv_file = temp_data_dir / "export.csv"
    csv_file.write_text(sample_csv, encoding="utf-8")

    main(["create-project", "Gut Review", "--data-dir", data_dir])
    main(["import-csv", "gut_review", str(csv_file), "--data-dir", data_dir])
    output = capsys.readouterr().out

    assert "Created project 'gut_review'" in output
    assert "Imported: 3" in output
    assert "Failed: 0" in output

    main(["list-projects", "--data-dir", data_dir])
    listing = capsys.readouterr().out
    assert "gut_review: Gut Review" in listing
    assert "Papers: 3" in listing

    main(["stats", "gut_review", "--data-dir", data_dir])
    stats = json.loads(capsys.readouterr().out)
    assert stats["total_papers"] == 3
    assert stats["project_id"] == "gut_review"


def test_list_projects_empty(temp_data_dir: Path, capsys: Any) -> None:
    """Test the message shown when there are no projects."""
    main(["list-projects", "--data-dir", str(temp_data_dir)])

    assert "No projects found." in capsys.readouterr().out


def test_errors_exit_nonzero(temp_data_dir: Path, capsys: Any) -> None:
    """Test that failures are reported on stderr with exit code 1."""
    with pytest.raises(SystemExit) as exc_info:
        main(["stats", "missing", "--data-dir", str(temp_data_dir)])

    assert exc_info.value.code == 1
    assert capsys.readouterr().err.startswith("Error:")
