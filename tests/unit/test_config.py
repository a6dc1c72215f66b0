"""Unit tests for settings loading."""

from pathlib import Path

import pytest

from synaptica.config import Settings, load_settings


def test_defaults() -> None:
    """Test the default timeouts and retry values."""
    settings = load_settings()

    assert settings.availability_timeout == 10.0
    assert settings.fulltext_timeout == 15.0
    assert settings.retry_attempts == 3
    assert settings.max_authors == 10
    assert settings.to_dict()["error_summary_limit"] == 5


def test_yaml_file(temp_data_dir: Path) -> None:
    """Test values read from a YAML file."""
    config_file = temp_data_dir / "synaptica.yaml"
    config_file.write_text("retry_attempts: 5\navailability_delay: 1.5\n")

    settings = load_settings(config_file)

    assert settings.retry_attempts == 5
    assert settings.availability_delay == 1.5
    assert settings.fulltext_timeout == Settings().fulltext_timeout


def test_environment_overrides_file(
    temp_data_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Test that SYNAPTICA_* variables win over the file."""
    config_file = temp_data_dir / "synaptica.yaml"
    config_file.write_text("retry_attempts: 5\n")
    monkeypatch.setenv("SYNAPTICA_RETRY_ATTEMPTS", "2")
    monkeypatch.setenv("SYNAPTICA_FULLTEXT_TIMEOUT", "30")
    monkeypatch.setenv("SYNAPTICA_OPENAI_MODEL", "gpt-4o-mini")

    settings = load_settings(config_file)

    assert settings.retry_attempts == 2
    assert settings.fulltext_timeout == 30.0
    assert settings.openai_model == "gpt-4o-mini"


def test_invalid_files(temp_data_dir: Path) -> None:
    """Test missing files, non-mappings and unknown keys."""
    with pytest.raises(FileNotFoundError):
        load_settings(temp_data_dir / "missing.yaml")

    not_mapping = temp_data_dir / "list.yaml"
    not_mapping.write_text("- a\n- b\n")
    with pytest.raises(ValueError):
        load_settings(not_mapping)

    unknown = temp_data_dir / "unknown.yaml"
    unknown.write_text("no_such_setting: 1\n")
    with pytest.raises(ValueError):
        load_settings(unknown)
